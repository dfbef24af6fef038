"""
AQTE v1.0 - Signal Generator
=============================

Setup de trade: direção, alavancagem, SL (Chandelier), TP (R:R), confiança.
"""

from .calculations import (
    calculate_confidence,
    calculate_leverage,
    calculate_stop_loss,
    calculate_take_profit,
    determine_direction,
    directional_score,
    generate_rationale,
    get_risk_level,
)
from .signal_engine import (
    DEFAULT_CONFIG,
    SignalGenerator,
    analyze_regime,
    generate_signal,
    sanitize_market,
)

__all__ = [
    "calculate_confidence", "calculate_leverage", "calculate_stop_loss",
    "calculate_take_profit", "determine_direction", "directional_score",
    "generate_rationale", "get_risk_level",
    "DEFAULT_CONFIG", "SignalGenerator", "analyze_regime", "generate_signal",
    "sanitize_market",
]
