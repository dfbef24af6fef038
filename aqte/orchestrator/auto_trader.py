"""
AQTE v1.0 - Auto Trader
========================

Pipeline de auto-trade sobre uma TradingSession e um gateway injetado:

  MarketConditions → SignalSetup → critérios de auto-execução → risk check
  → sizing → LOCK → COUNTDOWN → ordem no gateway → ledger → COOLDOWN

Erros de gateway são capturados e logados; a sessão volta a IDLE.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from ..core.constants import BotStatus, KellyMode, RiskLevel, TradingMode
from ..core.models import MarketConditions, PositionSizeResult, SignalSetup
from ..gateway.base import BaseGateway
from ..gateway.errors import GatewayError
from ..generator.signal_engine import SignalGenerator
from ..risk.sizing import calculate_optimal_position_size, recommended_kelly_mode
from ..trader.fsm import Transition
from ..trader.session import TradingSession

logger = logging.getLogger("Orchestrator.AutoTrader")

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RiskCheck:
    """Resultado de verificação de risco."""
    passed: bool
    reason: str = ""


@dataclass
class CycleResult:
    """Resultado de um ciclo do pipeline."""
    signal: SignalSetup
    executed: bool
    sizing: Optional[PositionSizeResult] = None
    position_id: Optional[str] = None
    reason: str = ""


class AutoTrader:
    """
    Coordena gerador, sizing, sessão e gateway.

    Args:
        session: Sessão (único escritor do estado).
        gateway: Gateway de exchange já construído.
        generator: SignalGenerator (default: config padrão).
        config: Seção risk do YAML (kelly_mode, min_margin).
        sleep: Espera do countdown (injetável para testes).
    """

    def __init__(
        self,
        session: TradingSession,
        gateway: BaseGateway,
        generator: Optional[SignalGenerator] = None,
        config: Optional[dict] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        config = config or {}
        self.session = session
        self.gateway = gateway
        self.generator = generator or SignalGenerator()
        self.kelly_mode: Optional[KellyMode] = (
            KellyMode(config["kelly_mode"]) if config.get("kelly_mode") else None
        )
        self.min_margin: float = config.get("min_margin", 0.0)
        self._sleep = sleep

        # position_id → order_id no gateway
        self.orders: Dict[str, str] = {}

    # =================================================================
    # Checks
    # =================================================================

    def validate_risk(self, signal: SignalSetup) -> RiskCheck:
        state = self.session.state

        if state.wallet.available <= 0:
            return RiskCheck(False, "Insufficient available balance")

        if signal.leverage_recommendation > state.settings.max_leverage:
            return RiskCheck(
                False,
                f"Leverage {signal.leverage_recommendation}x exceeds max "
                f"{state.settings.max_leverage}x",
            )

        if signal.risk_level == RiskLevel.EXTREME and state.mode == TradingMode.LIVE:
            return RiskCheck(False, "EXTREME risk signals blocked for live trading")

        return RiskCheck(True)

    def size_position(self, signal: SignalSetup) -> PositionSizeResult:
        state = self.session.state
        trades = [h.as_trade_result() for h in state.history]
        mode = self.kelly_mode or recommended_kelly_mode(signal.leverage_recommendation)
        return calculate_optimal_position_size(
            trades,
            state.wallet.available,
            signal.entry_price,
            signal.stop_loss_price,
            signal.leverage_recommendation,
            mode,
        )

    # =================================================================
    # Pipeline
    # =================================================================

    async def run_cycle(self, market: MarketConditions) -> CycleResult:
        """Executa um ciclo completo para um snapshot de mercado."""
        signal = self.generator.generate(market)

        if not self.session.should_auto_execute(signal):
            return CycleResult(signal, False, reason="Auto-execute criteria not met")

        check = self.validate_risk(signal)
        if not check.passed:
            logger.warning(f"[{signal.asset}] Risk BLOCKED: {check.reason}")
            return CycleResult(signal, False, reason=check.reason)

        sizing = self.size_position(signal)
        for warning in sizing.warnings:
            logger.info(f"[{signal.asset}] Sizing: {warning}")

        margin = min(sizing.margin_required, self.session.state.wallet.available)
        if margin <= 0 or margin < self.min_margin:
            return CycleResult(signal, False, sizing, reason=f"Margin too small ({margin:.2f})")

        if not self.session.lock_signal(signal).ok:
            return CycleResult(signal, False, sizing, reason="Could not lock signal")
        countdown = self.session.start_countdown()
        if not countdown.ok:
            self.session.set_status(BotStatus.IDLE)
            return CycleResult(signal, False, sizing, reason="Could not start countdown")

        await self._sleep(countdown.state.locked_signal.countdown_seconds)

        # Cancelado durante o countdown (set_status IDLE externo)
        locked = self.session.state.locked_signal
        if (
            self.session.state.bot_status != BotStatus.COUNTDOWN
            or locked is None
            or locked.signal.id != signal.id
        ):
            logger.info(f"[{signal.asset}] Countdown cancelado")
            return CycleResult(signal, False, sizing, reason="Countdown cancelled")

        try:
            order = await self.gateway.place_order(
                signal.asset,
                signal.direction,
                margin,
                signal.leverage_recommendation,
                signal.entry_price,
            )
        except GatewayError as e:
            logger.error(f"[{signal.asset}] Ordem falhou: {e}")
            self.session.set_status(BotStatus.IDLE)
            return CycleResult(signal, False, sizing, reason=str(e))

        filled = signal
        if order.price:
            filled = dataclasses.replace(signal, entry_price=order.price)

        result = self.session.execute_signal(filled, margin)
        if not result.ok:
            logger.error(f"[{signal.asset}] Ledger rejeitou execução: {result.error}")
            await self._unwind(order.order_id)
            self.session.set_status(BotStatus.IDLE)
            return CycleResult(signal, False, sizing, reason=str(result.error))

        position_id = self._position_id(result, signal.asset)
        if position_id and order.order_id:
            self.orders[position_id] = order.order_id

        return CycleResult(signal, True, sizing, position_id=position_id)

    async def close(self, position_id: str) -> Transition:
        """Fecha no gateway (quando houver ordem) e liquida no ledger."""
        exit_price = None
        order_id = self.orders.get(position_id)
        if order_id is not None:
            try:
                order = await self.gateway.close_position(order_id)
                exit_price = order.price
                del self.orders[position_id]
            except GatewayError as e:
                logger.error(f"Fechamento no gateway falhou ({position_id}): {e}")
                raise
        return self.session.close_position(position_id, exit_price)

    async def sync_mark_prices(self) -> Transition:
        assets = sorted({p.asset for p in self.session.state.positions})
        prices = await self.gateway.get_mark_prices(assets) if assets else {}
        return self.session.update_mark_prices(prices)

    async def _unwind(self, order_id: Optional[str]):
        if order_id is None:
            return
        try:
            await self.gateway.close_position(order_id)
        except GatewayError as e:
            logger.error(f"Falha ao desfazer ordem {order_id}: {e}")

    @staticmethod
    def _position_id(result: Transition, asset: str) -> Optional[str]:
        for pos in reversed(result.state.positions):
            if pos.asset == asset:
                return pos.id
        return None
