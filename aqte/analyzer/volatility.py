"""
AQTE v1.0 - Volatilidade por Timeframe
=======================================

Escala raiz-do-tempo relativa ao baseline diário (1d = 1.0).
Timeframes menores reduzem volatilidade e ATR, nunca aumentam.
"""

import logging
from typing import Optional, Union

from ..core.constants import TIMEFRAME_SCALERS, Timeframe

logger = logging.getLogger("Analyzer.Volatility")

TimeframeLike = Union[Timeframe, str]


def resolve_timeframe(timeframe: Optional[TimeframeLike]) -> Optional[Timeframe]:
    """Converte '15m' ou Timeframe.M15 para o enum. None se desconhecido."""
    if timeframe is None:
        return None
    if isinstance(timeframe, Timeframe):
        return timeframe
    try:
        return Timeframe(str(timeframe))
    except ValueError:
        return None


def timeframe_scaler(timeframe: Optional[TimeframeLike]) -> float:
    """Fator de escala do timeframe. Desconhecido → 1.0 (sem escala)."""
    tf = resolve_timeframe(timeframe)
    if tf is None:
        if timeframe is not None:
            logger.warning(f"Timeframe desconhecido '{timeframe}', sem escala")
        return 1.0
    return TIMEFRAME_SCALERS[tf]


def scale_for_timeframe(base_value: float, timeframe: Optional[TimeframeLike]) -> float:
    """
    Escala um valor diário (volatilidade ou ATR) para o timeframe.

    Exemplo: scale_for_timeframe(2000, "1h") ≈ 408.
    """
    return base_value * timeframe_scaler(timeframe)


def scale_atr_for_timeframe(daily_atr: float, timeframe: Optional[TimeframeLike]) -> float:
    """Alias semântico para ATR."""
    return scale_for_timeframe(daily_atr, timeframe)
