"""
AQTE v1.0 - Trading Session
============================

Host da FSM: único escritor do TradeState.

- dispatch serializado por lock (nenhuma intercalação observável)
- cooldown como evento agendado via Scheduler injetado, com token próprio
  que só dispara contra o mesmo episódio de COOLDOWN
- listeners recebem cada transição aceita (snapshots para persistência)
- shutdown() cancela o cooldown pendente e rejeita novos dispatches
- falha do scheduler ao agendar o cooldown devolve o bot a IDLE
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Mapping, Optional

from ..core.constants import COOLDOWN_SECONDS, COUNTDOWN_SECONDS, BotStatus
from ..core.errors import SessionClosedError
from ..core.models import LivePosition, SignalSetup
from ..core.utils import Clock, IdFactory, random_id, system_clock
from .fsm import (
    Action,
    ClearCooldown,
    ClosePosition,
    ExecuteTrade,
    LockSignal,
    ResetWallet,
    SetBotStatus,
    StartCooldown,
    StartCountdown,
    TradeState,
    Transition,
    UpdateMarkPrices,
    dispatch,
    should_auto_execute,
)

logger = logging.getLogger("Trader.Session")

Listener = Callable[[Action, Transition], None]


# =============================================================================
# SCHEDULERS
# =============================================================================

class Scheduler(ABC):
    """Agenda callback único. O retorno precisa expor cancel()."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]):
        pass


class AsyncioScheduler(Scheduler):
    """Usa loop.call_later do event loop informado (ou o corrente)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]):
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)


class ThreadingScheduler(Scheduler):
    """threading.Timer daemon (sessões sem event loop)."""

    def call_later(self, delay: float, callback: Callable[[], None]):
        timer = threading.Timer(max(0.0, delay), callback)
        timer.daemon = True
        timer.start()
        return timer


class _CooldownToken:
    """Identifica um episódio de cooldown (cooldown_ends_at)."""

    def __init__(self, ends_at: float):
        self.ends_at = ends_at
        self.cancelled = False
        self.handle = None

    def cancel(self):
        self.cancelled = True
        if self.handle is not None:
            self.handle.cancel()


# =============================================================================
# SESSION
# =============================================================================

class TradingSession:
    """
    Sessão de trading com estado único e serializado.

    Exemplo:
        session = TradingSession(scheduler=AsyncioScheduler())
        session.lock_signal(signal)
        session.start_countdown()
        session.execute_signal(signal, margin=500.0)   # inicia cooldown
    """

    def __init__(
        self,
        state: Optional[TradeState] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Clock = system_clock,
        id_factory: IdFactory = random_id,
        cooldown_seconds: float = COOLDOWN_SECONDS,
        countdown_seconds: int = COUNTDOWN_SECONDS,
    ):
        self._state = state or TradeState.initial()
        self.scheduler = scheduler or ThreadingScheduler()
        self.clock = clock
        self.id_factory = id_factory
        self.cooldown_seconds = cooldown_seconds
        self.countdown_seconds = countdown_seconds

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._cooldown: Optional[_CooldownToken] = None
        self._closed = False

    @property
    def state(self) -> TradeState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    # =================================================================
    # Dispatch
    # =================================================================

    def dispatch(self, action: Action) -> Transition:
        with self._lock:
            if self._closed:
                return Transition(self._state, False, SessionClosedError("Sessão encerrada"))

            result = dispatch(self._state, action)
            if not result.ok:
                logger.info(f"{type(action).__name__} rejeitada: {result.error}")
                return result

            self._state = result.state
            scheduled = self._sync_cooldown()
            self._notify(action, result)
            if not scheduled:
                self._release_cooldown()
            return result

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registra listener. Retorna função para cancelar a inscrição."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, action: Action, result: Transition):
        for listener in list(self._listeners):
            try:
                listener(action, result)
            except Exception as e:
                logger.exception(f"Listener falhou em {type(action).__name__}: {e}")

    # =================================================================
    # Cooldown
    # =================================================================

    def _sync_cooldown(self) -> bool:
        """
        Mantém exatamente um token para o episódio de COOLDOWN corrente.
        Retorna False se o scheduler falhou ao agendar a expiração.
        """
        state = self._state
        in_cooldown = (
            state.bot_status == BotStatus.COOLDOWN and state.cooldown_ends_at is not None
        )

        if self._cooldown is not None:
            if in_cooldown and self._cooldown.ends_at == state.cooldown_ends_at:
                return True
            self._cooldown.cancel()
            self._cooldown = None

        if in_cooldown:
            token = _CooldownToken(state.cooldown_ends_at)
            delay = state.cooldown_ends_at - self.clock()
            try:
                token.handle = self.scheduler.call_later(delay, lambda: self._expire(token))
            except Exception as e:
                logger.exception(f"Falha ao agendar cooldown: {e}")
                return False
            self._cooldown = token
            logger.debug(f"Cooldown agendado ({delay:.1f}s)")
        return True

    def _release_cooldown(self):
        """Sem timer o episódio nunca expiraria: encerra o cooldown agora."""
        action = ClearCooldown()
        result = dispatch(self._state, action)
        if result.ok:
            self._state = result.state
            self._notify(action, result)
            logger.warning("Cooldown sem timer encerrado → IDLE")

    def _expire(self, token: _CooldownToken):
        with self._lock:
            if token.cancelled or self._closed or token is not self._cooldown:
                return
            state = self._state
            if (
                state.bot_status != BotStatus.COOLDOWN
                or state.cooldown_ends_at != token.ends_at
            ):
                return
            self._cooldown = None
            self.dispatch(ClearCooldown())
            logger.info("Cooldown encerrado → IDLE")

    # =================================================================
    # Operações
    # =================================================================

    def set_status(self, status: BotStatus) -> Transition:
        return self.dispatch(SetBotStatus(status))

    def lock_signal(self, signal: SignalSetup) -> Transition:
        return self.dispatch(LockSignal(signal, self.clock(), self.countdown_seconds))

    def start_countdown(self, seconds: Optional[int] = None) -> Transition:
        if seconds is None:
            seconds = self.countdown_seconds
        return self.dispatch(StartCountdown(seconds))

    def start_cooldown(self, seconds: Optional[float] = None) -> Transition:
        if seconds is None:
            seconds = self.cooldown_seconds
        return self.dispatch(StartCooldown(self.clock(), seconds))

    def execute_signal(self, signal: SignalSetup, margin: float) -> Transition:
        """
        Abre posição a partir do sinal. Vindo do COUNTDOWN, o bot passa por
        EXECUTING e entra em cooldown na sequência.
        """
        with self._lock:
            result = self.dispatch(ExecuteTrade(
                signal=signal,
                margin=margin,
                position_id=self.id_factory("pos"),
                opened_at=self.clock(),
            ))
            if result.ok:
                logger.info(
                    f"[{signal.asset}] {signal.direction.value} aberta "
                    f"margem={margin:.2f} lev={signal.leverage_recommendation}x"
                )
                if result.state.bot_status == BotStatus.EXECUTING:
                    self.start_cooldown()
            return result

    def close_position(self, position_id: str, exit_price: Optional[float] = None) -> Transition:
        result = self.dispatch(ClosePosition(position_id, self.clock(), exit_price))
        if result.ok:
            record = result.state.history[-1]
            logger.info(f"[{record.asset}] fechada pnl={record.pnl:+.2f}")
        return result

    def update_mark_prices(self, prices: Mapping[str, float]) -> Transition:
        return self.dispatch(UpdateMarkPrices(dict(prices)))

    def reset_wallet(self, initial_balance: Optional[float] = None) -> Transition:
        return self.dispatch(ResetWallet(initial_balance))

    def should_auto_execute(self, signal: SignalSetup) -> bool:
        return should_auto_execute(self._state, signal)

    def shutdown(self):
        """Cancela cooldown pendente e fecha a sessão para novos dispatches."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._cooldown is not None:
                self._cooldown.cancel()
                self._cooldown = None
        logger.info("Sessão encerrada")

    # =================================================================
    # Seletores
    # =================================================================

    def open_positions(self) -> List[LivePosition]:
        return list(self._state.positions)

    def position_for(self, asset: str) -> Optional[LivePosition]:
        for pos in self._state.positions:
            if pos.asset == asset:
                return pos
        return None

    def total_trades(self) -> int:
        return len(self._state.history)

    def win_rate(self) -> float:
        """Fração de trades vencedores (0-1). 0 sem histórico."""
        history = self._state.history
        if not history:
            return 0.0
        return sum(1 for t in history if t.is_win) / len(history)
