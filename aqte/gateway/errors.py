"""
AQTE v1.0 - Gateway Errors
===========================

Hierarquia de exceções dos gateways de exchange.
Levantadas pelos gateways; capturadas e logadas pelo orchestrator.
"""


class GatewayError(Exception):
    """Erro base do Gateway."""
    pass


class GatewayConnectionError(GatewayError):
    """Gateway desconectado ou conexão perdida."""
    pass


class OrderRejectedError(GatewayError):
    """Ordem recusada pela exchange."""
    def __init__(self, message: str, code: int = 0):
        self.code = code
        super().__init__(message)
