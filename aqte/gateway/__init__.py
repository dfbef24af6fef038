from .base import BaseGateway
from .errors import GatewayConnectionError, GatewayError, OrderRejectedError
from .paper import PaperGateway

__all__ = [
    "BaseGateway",
    "GatewayConnectionError",
    "GatewayError",
    "OrderRejectedError",
    "PaperGateway",
]
