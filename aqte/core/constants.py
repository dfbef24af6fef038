"""
AQTE v1.0 - Constantes e Enums Globais
=======================================

Definições imutáveis compartilhadas por todos os módulos.
NENHUMA dependência de I/O ou libs externas.
"""

import math
from enum import Enum

VERSION = "1.0.0"


class Direction(str, Enum):
    """Direção do trade."""
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def sign(self) -> int:
        """+1 para LONG, -1 para SHORT (multiplicador de PnL)."""
        return 1 if self is Direction.LONG else -1


class Timeframe(str, Enum):
    """Timeframes suportados pelo Signal Engine."""
    M5 = "5m"
    M15 = "15m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"


class Regime(str, Enum):
    """Regime de mercado detectado pelo expoente de Hurst."""
    TRENDING = "TRENDING"
    MEAN_REVERSION = "MEAN_REVERSION"
    RANDOM_WALK = "RANDOM_WALK"


class RiskLevel(str, Enum):
    """Classificação de risco por alavancagem."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class KellyMode(str, Enum):
    """Fração do Kelly aplicada no sizing."""
    FULL = "FULL"
    HALF = "HALF"
    QUARTER = "QUARTER"


class TradingMode(str, Enum):
    """Modo de execução."""
    PAPER = "PAPER"
    LIVE = "LIVE"


class BotStatus(str, Enum):
    """Estados da FSM do bot."""
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    SIGNAL_LOCKED = "SIGNAL_LOCKED"
    COUNTDOWN = "COUNTDOWN"
    EXECUTING = "EXECUTING"
    COOLDOWN = "COOLDOWN"


class PositionStatus(str, Enum):
    """Status de posição."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"


# Minutos por timeframe
TIMEFRAME_MINUTES: dict[Timeframe, int] = {
    Timeframe.M5: 5,
    Timeframe.M15: 15,
    Timeframe.H1: 60,
    Timeframe.H4: 240,
    Timeframe.D1: 1440,
}

# Escala raiz-do-tempo relativa ao dia (1d = 1.0)
# 4h ≈ 0.408, 1h ≈ 0.204, 15m ≈ 0.102, 5m ≈ 0.059
TIMEFRAME_SCALERS: dict[Timeframe, float] = {
    tf: math.sqrt(minutes / TIMEFRAME_MINUTES[Timeframe.D1])
    for tf, minutes in TIMEFRAME_MINUTES.items()
}

# Transições legais da FSM (NENHUMA outra é permitida)
VALID_TRANSITIONS: dict[BotStatus, frozenset] = {
    BotStatus.IDLE: frozenset({BotStatus.ANALYZING, BotStatus.SIGNAL_LOCKED}),
    BotStatus.ANALYZING: frozenset({BotStatus.IDLE, BotStatus.SIGNAL_LOCKED}),
    BotStatus.SIGNAL_LOCKED: frozenset({BotStatus.COUNTDOWN, BotStatus.IDLE}),
    BotStatus.COUNTDOWN: frozenset({BotStatus.EXECUTING, BotStatus.IDLE}),
    BotStatus.EXECUTING: frozenset({BotStatus.COOLDOWN}),
    BotStatus.COOLDOWN: frozenset({BotStatus.IDLE}),
}

# Regime (limiares de Hurst)
HURST_MEAN_REVERSION_MAX: float = 0.45
HURST_TRENDING_MIN: float = 0.55
MIN_SAMPLES_FOR_HURST: int = 20

# Z-score de entrada do sinal OU
OU_ENTRY_Z: float = 2.0

# Risk engine
MAX_RISK_OF_RUIN: float = 0.0001    # 0.01% (Zero Ruin)
MIN_TRADES_FOR_STATS: int = 10
MAX_OPTIMAL_F: float = 0.25
DEFAULT_OPTIMAL_F: float = 0.02
MIN_POSITION_FRACTION: float = 0.005
MAX_POSITION_FRACTION: float = 0.25

# Sessão
COOLDOWN_SECONDS: float = 10.0
COUNTDOWN_SECONDS: int = 3
DEFAULT_INITIAL_BALANCE: float = 10000.0
