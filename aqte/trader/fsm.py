"""
AQTE v1.0 - Trade State Machine
================================

Reducer puro: dispatch(state, action) -> Transition.

Fluxo do bot:
  IDLE → (ANALYZING) → SIGNAL_LOCKED → COUNTDOWN → EXECUTING → COOLDOWN → IDLE

Regras:
  - Transição fora de VALID_TRANSITIONS é rejeitada: o MESMO objeto de estado
    volta com ok=False e o erro como valor.
  - Operações de ledger (ExecuteTrade, ClosePosition, UpdateMarkPrices) são
    uma única substituição de estado; nenhum observador vê efeito parcial.
  - Toda transição aceita incrementa state.version.
  - Tempo chega dentro das actions; o reducer não lê relógio.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..core.constants import (
    COOLDOWN_SECONDS,
    COUNTDOWN_SECONDS,
    DEFAULT_INITIAL_BALANCE,
    VALID_TRANSITIONS,
    BotStatus,
    Timeframe,
    TradingMode,
)
from ..core.errors import AQTEError, InputError, InvalidTransitionError
from ..core.models import (
    AutoTradeSettings,
    LivePosition,
    LockedSignal,
    SignalSetup,
    TradeHistory,
    WalletState,
)
from . import ledger

logger = logging.getLogger("Trader.FSM")


@dataclass(frozen=True)
class TradeState:
    """Snapshot imutável da sessão de trading."""
    wallet: WalletState
    positions: Tuple[LivePosition, ...] = ()
    history: Tuple[TradeHistory, ...] = ()
    bot_status: BotStatus = BotStatus.IDLE
    locked_signal: Optional[LockedSignal] = None
    cooldown_ends_at: Optional[float] = None
    settings: AutoTradeSettings = field(default_factory=AutoTradeSettings)
    active_timeframe: Timeframe = Timeframe.M15
    mode: TradingMode = TradingMode.PAPER
    mark_prices: Mapping[str, float] = field(default_factory=dict)
    version: int = 0

    @classmethod
    def initial(
        cls,
        initial_balance: float = DEFAULT_INITIAL_BALANCE,
        settings: Optional[AutoTradeSettings] = None,
        mode: TradingMode = TradingMode.PAPER,
        timeframe: Timeframe = Timeframe.M15,
    ) -> "TradeState":
        return cls(
            wallet=WalletState.initial(initial_balance),
            settings=settings or AutoTradeSettings(),
            mode=TradingMode(mode),
            active_timeframe=Timeframe(timeframe),
        )

    def has_open_position(self, asset: str) -> bool:
        return any(p.asset == asset for p in self.positions)


# =============================================================================
# ACTIONS
# =============================================================================

@dataclass(frozen=True)
class SetBotStatus:
    status: BotStatus


@dataclass(frozen=True)
class LockSignal:
    signal: SignalSetup
    locked_at: float
    countdown_seconds: int = COUNTDOWN_SECONDS


@dataclass(frozen=True)
class StartCountdown:
    seconds: int = COUNTDOWN_SECONDS


@dataclass(frozen=True)
class StartCooldown:
    now: float
    seconds: float = COOLDOWN_SECONDS


@dataclass(frozen=True)
class ClearCooldown:
    pass


@dataclass(frozen=True)
class ExecuteTrade:
    signal: SignalSetup
    margin: float
    position_id: str
    opened_at: float


@dataclass(frozen=True)
class ClosePosition:
    position_id: str
    closed_at: float
    exit_price: Optional[float] = None     # None → mark price


@dataclass(frozen=True)
class UpdateMarkPrices:
    prices: Mapping[str, float]


@dataclass(frozen=True)
class UpdateSettings:
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class SetTimeframe:
    timeframe: Union[Timeframe, str]


@dataclass(frozen=True)
class SetMode:
    mode: Union[TradingMode, str]


@dataclass(frozen=True)
class ResetWallet:
    initial_balance: Optional[float] = None


Action = Union[
    SetBotStatus, LockSignal, StartCountdown, StartCooldown, ClearCooldown,
    ExecuteTrade, ClosePosition, UpdateMarkPrices, UpdateSettings,
    SetTimeframe, SetMode, ResetWallet,
]


@dataclass(frozen=True)
class Transition:
    """Resultado de dispatch. Rejeitada: state é o objeto original."""
    state: TradeState
    ok: bool
    error: Optional[Exception] = None


# =============================================================================
# FSM
# =============================================================================

def can_transition(current: BotStatus, target: BotStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


def _require(state: TradeState, target: BotStatus) -> None:
    if not can_transition(state.bot_status, target):
        raise InvalidTransitionError(state.bot_status, target)


def _set_status(state: TradeState, action: SetBotStatus) -> TradeState:
    try:
        target = BotStatus(action.status)
    except ValueError:
        raise InputError(f"Status inválido: {action.status}")
    _require(state, target)
    if target == BotStatus.IDLE:
        return dataclasses.replace(
            state, bot_status=target, locked_signal=None, cooldown_ends_at=None
        )
    return dataclasses.replace(state, bot_status=target)


def _lock_signal(state: TradeState, action: LockSignal) -> TradeState:
    _require(state, BotStatus.SIGNAL_LOCKED)
    return dataclasses.replace(
        state,
        bot_status=BotStatus.SIGNAL_LOCKED,
        locked_signal=LockedSignal(
            signal=action.signal,
            locked_at=action.locked_at,
            countdown_seconds=action.countdown_seconds,
        ),
    )


def _start_countdown(state: TradeState, action: StartCountdown) -> TradeState:
    _require(state, BotStatus.COUNTDOWN)
    if state.locked_signal is None:
        raise InputError("Countdown sem sinal travado")
    return dataclasses.replace(
        state,
        bot_status=BotStatus.COUNTDOWN,
        locked_signal=dataclasses.replace(
            state.locked_signal, countdown_seconds=action.seconds
        ),
    )


def _start_cooldown(state: TradeState, action: StartCooldown) -> TradeState:
    _require(state, BotStatus.COOLDOWN)
    return dataclasses.replace(
        state,
        bot_status=BotStatus.COOLDOWN,
        locked_signal=None,
        cooldown_ends_at=action.now + action.seconds,
    )


def _clear_cooldown(state: TradeState, action: ClearCooldown) -> TradeState:
    if state.bot_status != BotStatus.COOLDOWN:
        raise InvalidTransitionError(state.bot_status, BotStatus.IDLE)
    return dataclasses.replace(state, bot_status=BotStatus.IDLE, cooldown_ends_at=None)


def _execute_trade(state: TradeState, action: ExecuteTrade) -> TradeState:
    wallet, positions = ledger.open_position(
        state.wallet,
        state.positions,
        action.signal,
        action.margin,
        action.position_id,
        action.opened_at,
        state.mode,
    )
    changes: Dict[str, Any] = {"wallet": wallet, "positions": positions}
    # Execução manual fora do fluxo do bot não mexe no status
    if state.bot_status == BotStatus.COUNTDOWN:
        changes["bot_status"] = BotStatus.EXECUTING
        changes["locked_signal"] = None
    return dataclasses.replace(state, **changes)


def _close_position(state: TradeState, action: ClosePosition) -> TradeState:
    position = ledger.find_position(state.positions, action.position_id)
    exit_price = ledger.exit_price_for(position, state.mark_prices, action.exit_price)
    wallet, positions, record = ledger.close_position(
        state.wallet, state.positions, action.position_id, exit_price, action.closed_at
    )
    return dataclasses.replace(
        state, wallet=wallet, positions=positions, history=state.history + (record,)
    )


def _update_mark_prices(state: TradeState, action: UpdateMarkPrices) -> TradeState:
    mark_prices = dict(state.mark_prices)
    mark_prices.update(
        (asset, price) for asset, price in action.prices.items()
        if ledger.is_valid_price(price)
    )
    wallet, positions = ledger.apply_mark_prices(state.wallet, state.positions, mark_prices)
    return dataclasses.replace(
        state, wallet=wallet, positions=positions, mark_prices=mark_prices
    )


def _update_settings(state: TradeState, action: UpdateSettings) -> TradeState:
    known = {f.name for f in dataclasses.fields(AutoTradeSettings)}
    unknown = set(action.changes) - known
    if unknown:
        raise InputError(f"Settings desconhecidos: {sorted(unknown)}")
    return dataclasses.replace(
        state, settings=dataclasses.replace(state.settings, **action.changes)
    )


def _set_timeframe(state: TradeState, action: SetTimeframe) -> TradeState:
    try:
        timeframe = Timeframe(action.timeframe)
    except ValueError:
        raise InputError(f"Timeframe inválido: {action.timeframe}")
    return dataclasses.replace(state, active_timeframe=timeframe)


def _set_mode(state: TradeState, action: SetMode) -> TradeState:
    try:
        mode = TradingMode(action.mode)
    except ValueError:
        raise InputError(f"Modo inválido: {action.mode}")
    return dataclasses.replace(state, mode=mode)


def _reset_wallet(state: TradeState, action: ResetWallet) -> TradeState:
    """Reset fora da tabela de adjacência: volta a IDLE de qualquer estado."""
    balance = action.initial_balance
    if balance is None:
        balance = state.wallet.initial_balance
    if balance <= 0:
        raise InputError(f"Saldo inicial deve ser positivo: {balance}")
    return TradeState(
        wallet=WalletState.initial(balance),
        settings=state.settings,
        active_timeframe=state.active_timeframe,
        mode=state.mode,
        version=state.version,
    )


_HANDLERS = {
    SetBotStatus: _set_status,
    LockSignal: _lock_signal,
    StartCountdown: _start_countdown,
    StartCooldown: _start_cooldown,
    ClearCooldown: _clear_cooldown,
    ExecuteTrade: _execute_trade,
    ClosePosition: _close_position,
    UpdateMarkPrices: _update_mark_prices,
    UpdateSettings: _update_settings,
    SetTimeframe: _set_timeframe,
    SetMode: _set_mode,
    ResetWallet: _reset_wallet,
}


def dispatch(state: TradeState, action: Action) -> Transition:
    """
    Aplica action ao estado.

    Returns:
        Transition(novo_estado, True) ou Transition(state, False, erro).
        Nunca levanta AQTEError.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return Transition(state, False, InputError(f"Action desconhecida: {action!r}"))

    try:
        new_state = handler(state, action)
    except AQTEError as e:
        logger.debug(f"{type(action).__name__} rejeitada: {e}")
        return Transition(state, False, e)

    return Transition(dataclasses.replace(new_state, version=state.version + 1), True)


def should_auto_execute(state: TradeState, signal: SignalSetup) -> bool:
    """
    Auto-execução só com bot IDLE, auto-trade ligado, confiança acima do
    threshold, alavancagem dentro do limite e sem posição aberta no ativo.
    """
    settings = state.settings
    return (
        state.bot_status == BotStatus.IDLE
        and settings.enabled
        and signal.confidence_score >= settings.confidence_threshold
        and signal.leverage_recommendation <= settings.max_leverage
        and not state.has_open_position(signal.asset)
    )
