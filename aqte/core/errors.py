"""
AQTE v1.0 - Erros do Core
==========================

Hierarquia de exceções do engine.
O ledger levanta estas exceções; a FSM as captura e devolve a instância
como valor em Transition.error, para teste determinístico sem try/except.
"""


class AQTEError(Exception):
    """Erro base do engine."""
    pass


class InputError(AQTEError):
    """MarketConditions inválido (preço não positivo, volatilidade negativa...)."""
    pass


class InsufficientBalanceError(AQTEError):
    """Margem solicitada maior que o saldo disponível."""
    def __init__(self, required: float, available: float):
        self.required = required
        self.available = available
        super().__init__(
            f"Margem insuficiente: required={required:.2f} available={available:.2f}"
        )


class InvalidTransitionError(AQTEError):
    """Transição fora da tabela de adjacência da FSM."""
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Transição inválida: {_name(current)} -> {_name(target)}")


class PositionNotFoundError(AQTEError):
    """Posição inexistente ou já fechada."""
    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Posição não encontrada: {position_id}")


class SessionClosedError(AQTEError):
    """Dispatch após shutdown() da sessão."""
    pass


class StatisticalInsufficiencyWarning(UserWarning):
    """Histórico com menos trades que o mínimo estatístico."""
    pass


def _name(status) -> str:
    return getattr(status, "value", str(status))
