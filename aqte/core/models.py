"""
AQTE v1.0 - Modelos de Dados (DTOs)
====================================

Dataclasses usadas como contratos entre módulos.
Nenhum comportamento complexo - apenas dados e propriedades derivadas.
"""

from dataclasses import dataclass, field, fields
from typing import Optional, Tuple

from .constants import (
    Direction,
    PositionStatus,
    Regime,
    RiskLevel,
    Timeframe,
    TradingMode,
)


def _from_dict(cls, data: Optional[dict]):
    """Constrói dataclass ignorando chaves desconhecidas (YAML parcial)."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


# =============================================================================
# MERCADO / SINAL
# =============================================================================

@dataclass(frozen=True)
class MarketConditions:
    """
    Snapshot imutável de mercado fornecido pelo price feed.
    Volatilidade diária em fração decimal (0.05 = 5%).
    """
    symbol: str
    current_price: float
    daily_volatility: float
    atr: float                          # Average True Range em unidades de preço
    ema200: Optional[float] = None
    rsi: Optional[float] = None         # 0 a 100
    sentiment_score: Optional[float] = None   # -1 a 1
    volume_24h: Optional[float] = None
    historical_prices: Tuple[float, ...] = ()


@dataclass(frozen=True)
class OUParameters:
    """Parâmetros de Ornstein-Uhlenbeck (sigma = desvio estacionário)."""
    mu: float
    theta: float
    sigma: float


@dataclass(frozen=True)
class OUSignal:
    """Sinal de reversão à média. direction=None é zona neutra."""
    direction: Optional[Direction]
    z_score: float

    @property
    def is_neutral(self) -> bool:
        return self.direction is None


@dataclass(frozen=True)
class SignalSetup:
    """
    Setup completo de trade emitido pelo Signal Generator.
    Invariante: |tp - entry| ≈ |entry - sl| * risk_reward_ratio.
    """
    id: str
    asset: str
    direction: Direction
    entry_price: float
    stop_loss_price: float
    take_profit_price: float
    leverage_recommendation: float
    risk_reward_ratio: float
    confidence_score: int
    risk_level: RiskLevel
    rationale: str
    timeframe: Timeframe
    timestamp: float                    # Unix timestamp do momento da emissão
    regime: Optional[Regime] = None
    hurst_exponent: Optional[float] = None
    z_score: Optional[float] = None
    warnings: Tuple[str, ...] = ()

    @property
    def stop_distance(self) -> float:
        return abs(self.entry_price - self.stop_loss_price)

    @property
    def stop_loss_percent(self) -> float:
        """Distância do SL como fração do preço de entrada."""
        if self.entry_price <= 0:
            return 0.0
        return self.stop_distance / self.entry_price


# =============================================================================
# RISCO
# =============================================================================

@dataclass(frozen=True)
class TradeResult:
    """Resultado de um trade fechado (entrada do Risk Engine)."""
    pnl: float
    pnl_percent: float = 0.0
    closed_at: Optional[float] = None


@dataclass(frozen=True)
class RiskMetrics:
    """Métricas derivadas de uma janela de histórico."""
    win_rate: float
    avg_win: float
    avg_loss: float
    avg_win_percent: float
    avg_loss_percent: float
    profit_factor: float
    expectancy: float
    max_drawdown: float
    total_trades: int


@dataclass
class PositionSizeResult:
    """Resultado do sizing com todas as restrições de risco."""
    optimal_f: float
    kelly_fraction: float
    risk_of_ruin: float
    safe_position_size: float
    safe_position_percent: float
    leverage_adjusted_size: float
    margin_required: float
    max_loss_amount: float
    is_zero_ruin_safe: bool
    warnings: list = field(default_factory=list)


# =============================================================================
# CARTEIRA / POSIÇÕES
# =============================================================================

@dataclass(frozen=True)
class WalletState:
    """
    Fonte única de verdade dos saldos da sessão.
    Invariantes: available + locked == balance; equity == balance + unrealized_pnl.
    """
    balance: float
    available: float
    locked: float
    equity: float
    total_pnl: float
    unrealized_pnl: float
    initial_balance: float

    @classmethod
    def initial(cls, initial_balance: float) -> "WalletState":
        return cls(
            balance=initial_balance,
            available=initial_balance,
            locked=0.0,
            equity=initial_balance,
            total_pnl=0.0,
            unrealized_pnl=0.0,
            initial_balance=initial_balance,
        )


@dataclass(frozen=True)
class LivePosition:
    """Posição aberta com PnL em tempo real. Nunca mutada após close."""
    id: str
    asset: str
    direction: Direction
    entry_price: float
    current_price: float
    size: float                 # Quantidade do ativo
    leverage: float
    margin: float
    unrealized_pnl: float
    unrealized_pnl_percent: float
    liquidation_price: float
    opened_at: float
    mode: TradingMode = TradingMode.PAPER
    status: PositionStatus = PositionStatus.OPEN
    take_profit_price: Optional[float] = None
    stop_loss_price: Optional[float] = None

    @property
    def notional(self) -> float:
        return self.size * self.current_price


@dataclass(frozen=True)
class TradeHistory:
    """Registro imutável de posição fechada (append-only)."""
    id: str
    asset: str
    direction: Direction
    entry_price: float
    exit_price: float
    size: float
    leverage: float
    margin: float
    pnl: float
    pnl_percent: float
    opened_at: float
    closed_at: float
    duration_seconds: int
    mode: TradingMode = TradingMode.PAPER
    status: PositionStatus = PositionStatus.CLOSED

    @property
    def is_win(self) -> bool:
        return self.pnl > 0

    def as_trade_result(self) -> TradeResult:
        """Converte para a entrada do Risk Engine."""
        return TradeResult(
            pnl=self.pnl, pnl_percent=self.pnl_percent, closed_at=self.closed_at
        )


@dataclass(frozen=True)
class LockedSignal:
    """Sinal travado aguardando execução."""
    signal: SignalSetup
    locked_at: float
    countdown_seconds: int


@dataclass
class OrderResult:
    """Resultado de ordem no gateway."""
    success: bool
    order_id: Optional[str] = None
    price: Optional[float] = None
    quantity: float = 0.0
    error: str = ""


# =============================================================================
# CONFIGURAÇÃO (value objects públicos)
# =============================================================================

@dataclass(frozen=True)
class SignalEngineConfig:
    """Parâmetros do Signal Generator."""
    safety_factor: float = 2.0
    atr_multiplier: float = 3.0
    min_risk_reward_ratio: float = 2.0
    max_leverage: float = 20
    min_leverage: float = 1
    timeframe: Timeframe = Timeframe.M15

    def __post_init__(self):
        # YAML entrega string; normaliza para o enum
        if not isinstance(self.timeframe, Timeframe):
            object.__setattr__(self, "timeframe", Timeframe(self.timeframe))

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "SignalEngineConfig":
        return _from_dict(cls, data)


@dataclass(frozen=True)
class AutoTradeSettings:
    """Critérios de auto-execução."""
    enabled: bool = False
    confidence_threshold: float = 75
    max_leverage: float = 20
    risk_reward_ratio: float = 2.0
    safety_factor: float = 2.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AutoTradeSettings":
        return _from_dict(cls, data)


__all__ = [
    "MarketConditions", "OUParameters", "OUSignal", "SignalSetup",
    "TradeResult", "RiskMetrics", "PositionSizeResult",
    "WalletState", "LivePosition", "TradeHistory", "LockedSignal", "OrderResult",
    "SignalEngineConfig", "AutoTradeSettings",
]
