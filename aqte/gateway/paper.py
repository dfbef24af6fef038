"""
AQTE v1.0 - Paper Gateway
==========================

Gateway em memória: preenche ordens no último preço conhecido
(ou no preço de referência), com latência e slippage configuráveis.

Features:
  - Latência simulada (asyncio.sleep)
  - Slippage em fração do preço, sempre contra a posição
  - set_price() para alimentar mark prices nos testes
"""

import asyncio
import logging
import random
from typing import Dict, List, Optional

from ..core.constants import Direction
from ..core.models import OrderResult
from .base import BaseGateway
from .errors import GatewayConnectionError, OrderRejectedError

logger = logging.getLogger("Gateway.Paper")


class PaperGateway(BaseGateway):
    """Gateway paper para testes e desenvolvimento."""

    def __init__(self, config: Optional[dict] = None):
        """
        Args:
            config: Campos opcionais: latency (s), slippage_min, slippage_max
                    (fração do preço).
        """
        config = config or {}
        self._latency = config.get("latency", 0.0)
        self._slippage_range = (
            config.get("slippage_min", 0.0),
            config.get("slippage_max", 0.0),
        )
        self._connected = False
        self._prices: Dict[str, float] = {}
        self.open_orders: Dict[str, dict] = {}
        self.closed_orders: List[dict] = []
        self.next_order = 1

    # =========================================================================
    # CONEXÃO
    # =========================================================================

    async def connect(self) -> bool:
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        self._connected = True
        logger.info("Paper gateway conectado")
        return True

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("Paper gateway desconectado")

    def is_connected(self) -> bool:
        return self._connected

    def _ensure_connected(self):
        if not self._connected:
            raise GatewayConnectionError("Paper gateway não conectado")

    # =========================================================================
    # MERCADO
    # =========================================================================

    async def get_mark_prices(self, assets: List[str]) -> Dict[str, float]:
        return {a: self._prices[a] for a in assets if a in self._prices}

    def set_price(self, asset: str, price: float) -> None:
        self._prices[asset] = price

    # =========================================================================
    # EXECUÇÃO
    # =========================================================================

    def _slip(self, price: float, direction: Direction, closing: bool = False) -> float:
        if not any(self._slippage_range):
            return price
        slip = random.uniform(*self._slippage_range) * price
        # Entrada LONG e saída SHORT pagam acima do preço
        sign = direction.sign if not closing else -direction.sign
        return price + slip * sign

    async def place_order(
        self,
        asset: str,
        direction: Direction,
        margin: float,
        leverage: float,
        reference_price: float,
    ) -> OrderResult:
        self._ensure_connected()
        if self._latency > 0:
            await asyncio.sleep(self._latency)

        if margin <= 0 or leverage <= 0:
            raise OrderRejectedError(
                f"Parâmetros inválidos: margin={margin} leverage={leverage}", code=400
            )

        base_price = self._prices.get(asset, reference_price)
        if base_price is None or base_price <= 0:
            raise OrderRejectedError(f"Sem preço para {asset}", code=404)

        price = self._slip(base_price, direction)
        quantity = margin * leverage / price

        order_id = f"paper_{self.next_order}"
        self.next_order += 1
        self.open_orders[order_id] = {
            "order_id": order_id,
            "asset": asset,
            "direction": direction,
            "price": price,
            "quantity": quantity,
            "margin": margin,
            "leverage": leverage,
        }

        logger.debug(
            f"Ordem aberta: {asset} {direction.value} {quantity:.6f} @ {price:.2f} #{order_id}"
        )
        return OrderResult(success=True, order_id=order_id, price=price, quantity=quantity)

    async def close_position(self, order_id: str) -> OrderResult:
        self._ensure_connected()
        if self._latency > 0:
            await asyncio.sleep(self._latency)

        order = self.open_orders.pop(order_id, None)
        if order is None:
            raise OrderRejectedError(f"Ordem {order_id} não encontrada", code=404)

        base_price = self._prices.get(order["asset"], order["price"])
        price = self._slip(base_price, order["direction"], closing=True)
        self.closed_orders.append({**order, "close_price": price})

        logger.debug(f"Ordem fechada: #{order_id} @ {price:.2f}")
        return OrderResult(
            success=True, order_id=order_id, price=price, quantity=order["quantity"]
        )
