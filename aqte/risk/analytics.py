"""
AQTE v1.0 - Performance Analytics
==================================

Métricas de performance, curva de equity e projeção de lucro
auto-corrigível a partir do histórico fechado (TradeHistory).

Percentuais nesta camada são 0-100 (exibição), ao contrário de
RiskMetrics (frações 0-1).
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.constants import DEFAULT_INITIAL_BALANCE, PositionStatus
from ..core.models import TradeHistory
from ..core.utils import Clock, system_clock

SECONDS_PER_DAY = 86400
PROJECTION_WINDOW = 50
BAND_WIDTH = 1.5


@dataclass
class PerformanceMetrics:
    """Resumo de performance (percentuais 0-100)."""
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win_amount: float = 0.0
    avg_loss_amount: float = 0.0
    avg_win_percent: float = 0.0
    avg_loss_percent: float = 0.0
    avg_risk_reward_ratio: float = 0.0
    profit_factor: float = 0.0
    total_profit: float = 0.0
    total_loss: float = 0.0
    net_pnl: float = 0.0
    max_drawdown: float = 0.0
    current_drawdown: float = 0.0
    current_streak: int = 0         # positivo = wins, negativo = losses
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    avg_trade_duration_seconds: float = 0.0
    best_trade: Optional[TradeHistory] = None
    worst_trade: Optional[TradeHistory] = None


@dataclass
class ProjectionPoint:
    timestamp: float
    projected_balance: float
    upper_bound: float
    lower_bound: float
    confidence: int


@dataclass
class ProfitProjection:
    current_balance: float
    starting_balance: float
    metrics: PerformanceMetrics
    equity_curve: pd.DataFrame
    projection: List[ProjectionPoint] = field(default_factory=list)
    projected_balance: float = 0.0
    projected_pnl: float = 0.0
    projected_pnl_percent: float = 0.0
    projection_confidence: int = 0


def _closed_sorted(trades: Sequence[TradeHistory]) -> List[TradeHistory]:
    closed = [t for t in trades if t.status == PositionStatus.CLOSED]
    return sorted(closed, key=lambda t: t.closed_at)


def _streaks(pnls: Sequence[float]):
    current = 0
    longest_win = 0
    longest_loss = 0
    for pnl in pnls:
        if pnl > 0:
            current = current + 1 if current > 0 else 1
            longest_win = max(longest_win, current)
        else:
            current = current - 1 if current < 0 else -1
            longest_loss = max(longest_loss, -current)
    return current, longest_win, longest_loss


def calculate_performance_metrics(trades: Sequence[TradeHistory]) -> PerformanceMetrics:
    """
    Métricas de performance do histórico fechado.

    pnl <= 0 conta como perda (breakeven não estende sequência de wins).
    Drawdown sobre o PnL cumulativo, pico começando em 0.
    """
    closed = [t for t in _closed_sorted(trades) if t.exit_price > 0]
    if not closed:
        return PerformanceMetrics()

    pnl = pd.Series([t.pnl for t in closed], dtype=float)
    pnl_percent = pd.Series([t.pnl_percent for t in closed], dtype=float)
    win_mask = pnl > 0

    wins = pnl[win_mask]
    losses = pnl[~win_mask]
    total_profit = float(wins.sum())
    total_loss = abs(float(losses.sum()))

    avg_win = total_profit / len(wins) if len(wins) else 0.0
    avg_loss = total_loss / len(losses) if len(losses) else 0.0

    if total_loss > 0:
        profit_factor = total_profit / total_loss
    else:
        profit_factor = float("inf") if total_profit > 0 else 0.0

    cumulative = pnl.cumsum()
    peak = cumulative.clip(lower=0).cummax()
    drawdown = ((peak - cumulative) / peak.where(peak > 0)).fillna(0.0) * 100

    current, longest_win, longest_loss = _streaks(pnl.tolist())

    return PerformanceMetrics(
        total_trades=len(closed),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / len(closed) * 100,
        avg_win_amount=avg_win,
        avg_loss_amount=avg_loss,
        avg_win_percent=float(pnl_percent[win_mask].mean()) if len(wins) else 0.0,
        avg_loss_percent=abs(float(pnl_percent[~win_mask].mean())) if len(losses) else 0.0,
        avg_risk_reward_ratio=avg_win / avg_loss if avg_loss > 0 else 0.0,
        profit_factor=profit_factor,
        total_profit=total_profit,
        total_loss=total_loss,
        net_pnl=total_profit - total_loss,
        max_drawdown=float(drawdown.max()),
        current_drawdown=float(drawdown.iloc[-1]),
        current_streak=current,
        longest_win_streak=longest_win,
        longest_loss_streak=longest_loss,
        avg_trade_duration_seconds=float(np.mean([t.duration_seconds for t in closed])),
        best_trade=max(closed, key=lambda t: t.pnl),
        worst_trade=min(closed, key=lambda t: t.pnl),
    )


def generate_equity_curve(
    trades: Sequence[TradeHistory],
    starting_balance: float = DEFAULT_INITIAL_BALANCE,
) -> pd.DataFrame:
    """
    Curva de equity: uma linha por trade fechado, em ordem de fechamento.

    Returns:
        DataFrame [timestamp, balance, pnl, trade_id]. A primeira linha é o
        ponto de partida (abertura do primeiro trade, pnl 0, trade_id None).
    """
    closed = _closed_sorted(trades)
    start_ts = closed[0].opened_at if closed else None

    rows = [{
        "timestamp": start_ts,
        "balance": starting_balance,
        "pnl": 0.0,
        "trade_id": None,
    }]
    balance = starting_balance
    for t in closed:
        balance += t.pnl
        rows.append({
            "timestamp": t.closed_at,
            "balance": balance,
            "pnl": t.pnl,
            "trade_id": t.id,
        })

    return pd.DataFrame(rows, columns=["timestamp", "balance", "pnl", "trade_id"])


def generate_profit_projection(
    trades: Sequence[TradeHistory],
    current_balance: float,
    starting_balance: float = DEFAULT_INITIAL_BALANCE,
    projection_days: int = 30,
    trades_per_day: float = 2,
    clock: Clock = system_clock,
) -> ProfitProjection:
    """
    Projeção por valor esperado sobre os últimos 50 trades.

    Bandas: ±1.5σ·sqrt(trades_per_day·dia) em torno da trajetória esperada.
    Confiança: min(100, 2·amostras), decaindo 2 pontos percentuais por dia.
    """
    recent = _closed_sorted(trades)[-PROJECTION_WINDOW:]
    metrics = calculate_performance_metrics(recent)
    equity_curve = generate_equity_curve(trades, starting_balance)

    win_rate = metrics.win_rate / 100
    expected_per_trade = (
        win_rate * metrics.avg_win_amount - (1 - win_rate) * metrics.avg_loss_amount
    )

    pnls = np.array([t.pnl for t in recent], dtype=float)
    std_dev = float(np.std(pnls, ddof=1)) if len(pnls) > 1 else 0.0

    base_confidence = min(100, len(recent) * 2)
    expected_daily = expected_per_trade * trades_per_day
    daily_std = std_dev * math.sqrt(trades_per_day)
    now = clock()

    projection: List[ProjectionPoint] = []
    for day in range(1, projection_days + 1):
        expected = current_balance + expected_daily * day
        band = daily_std * math.sqrt(day) * BAND_WIDTH
        time_decay = max(0, 100 - day * 2)
        projection.append(ProjectionPoint(
            timestamp=now + day * SECONDS_PER_DAY,
            projected_balance=max(0.0, expected),
            upper_bound=expected + band,
            lower_bound=max(0.0, expected - band),
            confidence=round(base_confidence * time_decay / 100),
        ))

    final_balance = projection[-1].projected_balance if projection else current_balance
    projected_pnl = final_balance - current_balance

    return ProfitProjection(
        current_balance=current_balance,
        starting_balance=starting_balance,
        metrics=metrics,
        equity_curve=equity_curve,
        projection=projection,
        projected_balance=final_balance,
        projected_pnl=projected_pnl,
        projected_pnl_percent=(
            projected_pnl / current_balance * 100 if current_balance > 0 else 0.0
        ),
        projection_confidence=base_confidence,
    )
