"""
AQTE v1.0 - Core
=================

Núcleo compartilhado: constantes, modelos de dados, erros e utils.
NENHUMA dependência de I/O ou rede (exceto numpy/pandas).
"""

from .constants import (
    VERSION,
    BotStatus,
    Direction,
    KellyMode,
    PositionStatus,
    Regime,
    RiskLevel,
    Timeframe,
    TradingMode,
    TIMEFRAME_SCALERS,
    VALID_TRANSITIONS,
)
from .errors import (
    AQTEError,
    InputError,
    InsufficientBalanceError,
    InvalidTransitionError,
    PositionNotFoundError,
    SessionClosedError,
    StatisticalInsufficiencyWarning,
)
from .models import (
    AutoTradeSettings,
    LivePosition,
    LockedSignal,
    MarketConditions,
    OrderResult,
    OUParameters,
    OUSignal,
    PositionSizeResult,
    RiskMetrics,
    SignalEngineConfig,
    SignalSetup,
    TradeHistory,
    TradeResult,
    WalletState,
)
from .utils import random_id, sequential_ids, system_clock, trades_to_dataframe

__all__ = [
    "VERSION", "BotStatus", "Direction", "KellyMode", "PositionStatus",
    "Regime", "RiskLevel", "Timeframe", "TradingMode",
    "TIMEFRAME_SCALERS", "VALID_TRANSITIONS",
    "AQTEError", "InputError", "InsufficientBalanceError",
    "InvalidTransitionError", "PositionNotFoundError", "SessionClosedError",
    "StatisticalInsufficiencyWarning",
    "AutoTradeSettings", "LivePosition", "LockedSignal", "MarketConditions",
    "OrderResult",
    "OUParameters", "OUSignal", "PositionSizeResult", "RiskMetrics",
    "SignalEngineConfig", "SignalSetup", "TradeHistory", "TradeResult",
    "WalletState",
    "random_id", "sequential_ids", "system_clock", "trades_to_dataframe",
]
