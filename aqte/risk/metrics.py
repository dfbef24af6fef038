"""
AQTE v1.0 - Métricas de Risco
==============================

Métricas derivadas de uma janela de histórico de trades.
Recalculadas a cada chamada; nunca persistidas pelo core.

Histórico vazio → DEFAULT_RISK_METRICS (valores conservadores), sem erro.
"""

from typing import Sequence

import numpy as np

from ..core.models import RiskMetrics, TradeResult
from ..core.utils import trades_to_dataframe

DEFAULT_RISK_METRICS = RiskMetrics(
    win_rate=0.5,
    avg_win=100.0,
    avg_loss=100.0,
    avg_win_percent=2.0,
    avg_loss_percent=2.0,
    profit_factor=1.0,
    expectancy=0.0,
    max_drawdown=0.1,
    total_trades=0,
)


def calculate_max_drawdown(pnls: Sequence[float]) -> float:
    """
    Drawdown máximo (fração 0-1) do PnL cumulativo em ordem cronológica.
    Pico começa em 0; sem pico positivo não há drawdown.
    """
    if len(pnls) == 0:
        return 0.0
    cumulative = np.cumsum(np.asarray(pnls, dtype=float))
    peak = np.maximum.accumulate(np.maximum(cumulative, 0.0))
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdown = np.where(peak > 0, (peak - cumulative) / peak, 0.0)
    return float(min(1.0, max(0.0, drawdown.max())))


def calculate_risk_metrics(trades: Sequence[TradeResult]) -> RiskMetrics:
    """
    Calcula métricas de risco.

    Profit factor: lucro bruto / perda bruta; inf se há lucro sem perdas;
    1.0 sem trades decisivos.
    Expectancy: win_rate·avg_win - (1 - win_rate)·avg_loss.
    """
    if not trades:
        return DEFAULT_RISK_METRICS

    df = trades_to_dataframe(trades)
    wins = df[df["pnl"] > 0]
    losses = df[df["pnl"] < 0]
    total = len(df)

    win_rate = len(wins) / total
    avg_win = float(wins["pnl"].mean()) if len(wins) else 0.0
    avg_loss = abs(float(losses["pnl"].mean())) if len(losses) else 0.0
    avg_win_percent = float(wins["pnl_percent"].mean()) if len(wins) else 0.0
    avg_loss_percent = abs(float(losses["pnl_percent"].mean())) if len(losses) else 0.0

    gross_profit = float(wins["pnl"].sum())
    gross_loss = abs(float(losses["pnl"].sum()))
    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    else:
        profit_factor = float("inf") if gross_profit > 0 else 1.0

    expectancy = win_rate * avg_win - (1 - win_rate) * avg_loss

    return RiskMetrics(
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        avg_win_percent=avg_win_percent,
        avg_loss_percent=avg_loss_percent,
        profit_factor=profit_factor,
        expectancy=expectancy,
        max_drawdown=calculate_max_drawdown(df["pnl"].to_numpy()),
        total_trades=total,
    )


def format_risk_metrics(metrics: RiskMetrics) -> str:
    """Resumo legível (logs e CLI)."""
    return (
        f"Win Rate: {metrics.win_rate * 100:.1f}%\n"
        f"Avg Win: ${metrics.avg_win:.2f} ({metrics.avg_win_percent:.2f}%)\n"
        f"Avg Loss: ${metrics.avg_loss:.2f} ({metrics.avg_loss_percent:.2f}%)\n"
        f"Profit Factor: {metrics.profit_factor:.2f}\n"
        f"Expectancy: ${metrics.expectancy:.2f}\n"
        f"Max Drawdown: {metrics.max_drawdown * 100:.1f}%\n"
        f"Total Trades: {metrics.total_trades}"
    )
