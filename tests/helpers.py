"""
Factories e dublês compartilhados pela suíte de testes.
"""

import time

import numpy as np
import pandas as pd

from aqte.core.constants import (
    Direction,
    PositionStatus,
    RiskLevel,
    Timeframe,
    TradingMode,
)
from aqte.core.models import (
    MarketConditions,
    SignalSetup,
    TradeHistory,
    TradeResult,
)


# ── Mercado ──────────────────────────────────────────────────────────────────

def make_market(
    symbol="BTCUSDT", price=100000.0, vol=0.04, atr=2000.0,
    sentiment=None, rsi=None, ema200=None, prices=(),
):
    """MarketConditions de teste com defaults razoáveis."""
    return MarketConditions(
        symbol=symbol,
        current_price=price,
        daily_volatility=vol,
        atr=atr,
        ema200=ema200,
        rsi=rsi,
        sentiment_score=sentiment,
        historical_prices=tuple(prices),
    )


def make_bars_df(n=60, base_price=100.0, seed=42):
    """DataFrame OHLC com passeio aleatório reprodutível."""
    rng = np.random.default_rng(seed)
    close = base_price * np.exp(np.cumsum(rng.normal(0, 0.01, n)))
    high = close * (1 + np.abs(rng.normal(0, 0.003, n)))
    low = close * (1 - np.abs(rng.normal(0, 0.003, n)))
    return pd.DataFrame({
        "time": 1700000000 + np.arange(n) * 900,
        "open": close,
        "high": high,
        "low": low,
        "close": close,
    })


def alternating_prices(n=100, center=100.0, swing=1.0):
    """Série anti-persistente: sobe e desce a cada barra."""
    return [center + swing * (1 if i % 2 == 0 else -1) for i in range(n)]


# ── Sinais ───────────────────────────────────────────────────────────────────

def make_signal(
    asset="BTCUSDT", direction=Direction.LONG, entry=100.0, leverage=10.0,
    confidence=80, stop_loss=None, take_profit=None, risk_level=RiskLevel.HIGH,
    signal_id="sig_1", timestamp=1700000000.0,
):
    """SignalSetup pronto para o ledger/FSM."""
    if stop_loss is None:
        stop_loss = entry * (0.94 if direction == Direction.LONG else 1.06)
    if take_profit is None:
        distance = abs(entry - stop_loss) * 2
        take_profit = entry + distance if direction == Direction.LONG else entry - distance
    return SignalSetup(
        id=signal_id,
        asset=asset,
        direction=direction,
        entry_price=entry,
        stop_loss_price=stop_loss,
        take_profit_price=take_profit,
        leverage_recommendation=leverage,
        risk_reward_ratio=2.0,
        confidence_score=confidence,
        risk_level=risk_level,
        rationale="test",
        timeframe=Timeframe.M15,
        timestamp=timestamp,
    )


# ── Histórico ────────────────────────────────────────────────────────────────

def make_trades(pnls, pnl_percent=1.0, start=1700000000.0):
    """TradeResult em ordem cronológica (closed_at crescente)."""
    return [
        TradeResult(
            pnl=float(p),
            pnl_percent=pnl_percent if p > 0 else -pnl_percent,
            closed_at=start + i * 60,
        )
        for i, p in enumerate(pnls)
    ]


def make_history(pnls, start=1700000000.0, duration=600, asset="BTCUSDT"):
    """TradeHistory fechados, um por pnl."""
    records = []
    for i, pnl in enumerate(pnls):
        opened = start + i * 3600
        records.append(TradeHistory(
            id=f"pos_{i + 1}",
            asset=asset,
            direction=Direction.LONG,
            entry_price=100.0,
            exit_price=100.0 + pnl / 10.0 if 100.0 + pnl / 10.0 > 0 else 1.0,
            size=10.0,
            leverage=10.0,
            margin=100.0,
            pnl=float(pnl),
            pnl_percent=float(pnl),
            opened_at=opened,
            closed_at=opened + duration,
            duration_seconds=duration,
            mode=TradingMode.PAPER,
            status=PositionStatus.CLOSED,
        ))
    return records


# ── Tempo ────────────────────────────────────────────────────────────────────

class FixedClock:
    """Relógio controlado manualmente."""

    def __init__(self, now=1700000000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ManualHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler que só dispara quando o teste manda."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = ManualHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def fire_all(self):
        for handle in self.pending:
            handle.callback()


def wait_until(predicate, timeout=2.0, interval=0.01):
    """Espera ativa para testes com threads."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
