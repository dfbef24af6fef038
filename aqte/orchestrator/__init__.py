"""
AQTE v1.0 - Orchestrator
=========================

Cola tudo: config + logging + sessão + gateway + pipeline de auto-trade.
Única camada que fornece tempo real e aleatoriedade ao core.
"""

from .auto_trader import AutoTrader, CycleResult, RiskCheck
from .lifecycle import (
    build_auto_trade_settings,
    build_session,
    build_signal_config,
    load_config,
    setup_logging,
)

__all__ = [
    "AutoTrader", "CycleResult", "RiskCheck",
    "build_auto_trade_settings", "build_session", "build_signal_config",
    "load_config", "setup_logging",
]
