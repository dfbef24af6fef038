"""
AQTE v1.0 - Analyzer
=====================

Regime (Hurst), Ornstein-Uhlenbeck e escala de volatilidade por timeframe.
"""

from .regime import (
    calculate_hurst_exponent,
    detect_regime,
    estimate_ou_parameters,
    generate_ou_signal,
)
from .volatility import (
    resolve_timeframe,
    scale_atr_for_timeframe,
    scale_for_timeframe,
    timeframe_scaler,
)
from .indicators import (
    calc_atr,
    calc_ema,
    calc_rsi,
    market_conditions_from_bars,
    realized_volatility,
)

__all__ = [
    "calculate_hurst_exponent", "detect_regime",
    "estimate_ou_parameters", "generate_ou_signal",
    "resolve_timeframe", "scale_atr_for_timeframe", "scale_for_timeframe",
    "timeframe_scaler",
    "calc_atr", "calc_ema", "calc_rsi", "market_conditions_from_bars",
    "realized_volatility",
]
