"""
AQTE v1.0 - Gateway Base (Interface Abstrata)
==============================================

Todo gateway de exchange deve implementar esta interface.
Injetado explicitamente no orchestrator; o core não conhece a exchange.

Implementações:
  - paper.py: Paper trading em memória (testes e desenvolvimento)
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from ..core.constants import Direction
from ..core.models import OrderResult


class BaseGateway(ABC):
    """Interface abstrata para gateways de exchange."""

    # =========================================================================
    # CONEXÃO
    # =========================================================================

    @abstractmethod
    async def connect(self) -> bool:
        """
        Estabelece conexão e autentica.

        Returns:
            True se conectou com sucesso.
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    # =========================================================================
    # MERCADO
    # =========================================================================

    @abstractmethod
    async def get_mark_prices(self, assets: List[str]) -> Dict[str, float]:
        """Preços de marcação atuais. Ativos sem preço ficam de fora."""
        ...

    # =========================================================================
    # EXECUÇÃO
    # =========================================================================

    @abstractmethod
    async def place_order(
        self,
        asset: str,
        direction: Direction,
        margin: float,
        leverage: float,
        reference_price: float,
    ) -> OrderResult:
        """
        Envia ordem a mercado.

        Args:
            asset: Ativo (ex: "BTCUSDT").
            direction: LONG ou SHORT.
            margin: Margem em moeda da conta.
            leverage: Alavancagem.
            reference_price: Preço de referência (entrada do sinal).

        Raises:
            GatewayConnectionError: Gateway desconectado.
            OrderRejectedError: Ordem recusada.
        """
        ...

    @abstractmethod
    async def close_position(self, order_id: str) -> OrderResult:
        """
        Fecha posição aberta pela ordem order_id.

        Raises:
            OrderRejectedError: Ordem inexistente ou já fechada.
        """
        ...
