"""
AQTE v1.0 - Funções Auxiliares
===============================

Funções puras de utilidade e capacidades injetáveis (relógio, gerador de id).
Só o orchestrator fornece tempo real e aleatoriedade ao core.
"""

import math
import time
import uuid
from typing import Callable, List, Sequence

import pandas as pd

from .models import TradeResult

Clock = Callable[[], float]
IdFactory = Callable[[str], str]


def system_clock() -> float:
    """Relógio real (Unix timestamp em segundos)."""
    return time.time()


def random_id(prefix: str) -> str:
    """Gera id único no formato '<prefix>_<hex>'."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def sequential_ids(start: int = 1) -> IdFactory:
    """Gerador de ids determinístico (testes e replays)."""
    counter = {"n": start}

    def _next(prefix: str) -> str:
        value = counter["n"]
        counter["n"] += 1
        return f"{prefix}_{value}"

    return _next


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half(value: float) -> float:
    """Arredonda para o 0.5 mais próximo (meio para cima)."""
    return math.floor(value * 2 + 0.5) / 2


def trades_to_dataframe(trades: Sequence[TradeResult]) -> pd.DataFrame:
    """
    Converte lista de TradeResult para DataFrame ordenado cronologicamente.

    Trades sem closed_at mantêm a ordem de chegada (sort estável).

    Returns:
        DataFrame com colunas [pnl, pnl_percent, closed_at].
    """
    if not trades:
        return pd.DataFrame(columns=["pnl", "pnl_percent", "closed_at"])

    df = pd.DataFrame([
        {
            "pnl": float(t.pnl),
            "pnl_percent": float(t.pnl_percent),
            "closed_at": t.closed_at,
        }
        for t in trades
    ])
    if df["closed_at"].notna().all():
        df = df.sort_values("closed_at", kind="mergesort").reset_index(drop=True)
    return df


def parse_price_list(raw: str) -> List[float]:
    """Converte '100,101.5,99' em lista de floats (CLI)."""
    if not raw:
        return []
    return [float(p) for p in raw.split(",") if p.strip()]
