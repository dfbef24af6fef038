"""
AQTE v1.0 - Ledger
===================

Aritmética pura de carteira e posições.

Cada função recebe o estado atual e devolve valores novos; nada é mutado.
Falhas levantam AQTEError e a FSM converte em Transition.error.

Invariantes garantidos por _rebuild_wallet:
  available + locked == balance   (locked = soma das margens abertas)
  equity == balance + unrealized_pnl
"""

import dataclasses
import math
from typing import Mapping, Optional, Sequence, Tuple

from ..core.constants import Direction, PositionStatus, TradingMode
from ..core.errors import InputError, InsufficientBalanceError, PositionNotFoundError
from ..core.models import LivePosition, SignalSetup, TradeHistory, WalletState

Positions = Tuple[LivePosition, ...]


def is_valid_price(price: Optional[float]) -> bool:
    """Preço utilizável: finito e positivo."""
    return price is not None and math.isfinite(price) and price > 0


def price_diff(direction: Direction, entry_price: float, price: float) -> float:
    """Variação de preço a favor da posição."""
    return (price - entry_price) * direction.sign


def position_pnl(
    direction: Direction, entry_price: float, price: float, size: float
) -> float:
    return price_diff(direction, entry_price, price) * size


def pnl_percent(
    direction: Direction, entry_price: float, price: float, leverage: float
) -> float:
    """Retorno sobre a margem (%)."""
    if entry_price <= 0:
        return 0.0
    return price_diff(direction, entry_price, price) / entry_price * 100 * leverage


def liquidation_price(entry_price: float, direction: Direction, leverage: float) -> float:
    """LONG: entry·(1 - 1/lev). SHORT: entry·(1 + 1/lev)."""
    if direction == Direction.LONG:
        return entry_price * (1 - 1 / leverage)
    return entry_price * (1 + 1 / leverage)


def position_size(margin: float, leverage: float, entry_price: float) -> float:
    """Quantidade do ativo: margem·alavancagem / entrada."""
    return margin * leverage / entry_price


def _rebuild_wallet(
    wallet: WalletState,
    positions: Sequence[LivePosition],
    realized: float = 0.0,
) -> WalletState:
    balance = wallet.balance + realized
    locked = sum(p.margin for p in positions)
    unrealized = sum(p.unrealized_pnl for p in positions)
    return dataclasses.replace(
        wallet,
        balance=balance,
        available=balance - locked,
        locked=locked,
        unrealized_pnl=unrealized,
        equity=balance + unrealized,
        total_pnl=wallet.total_pnl + realized,
    )


def find_position(positions: Sequence[LivePosition], position_id: str) -> LivePosition:
    for pos in positions:
        if pos.id == position_id and pos.status == PositionStatus.OPEN:
            return pos
    raise PositionNotFoundError(position_id)


# =============================================================================
# OPERAÇÕES
# =============================================================================

def open_position(
    wallet: WalletState,
    positions: Positions,
    signal: SignalSetup,
    margin: float,
    position_id: str,
    opened_at: float,
    mode: TradingMode = TradingMode.PAPER,
) -> Tuple[WalletState, Positions]:
    """
    Abre posição: margem sai de available para locked e a posição OPEN
    entra na lista no mesmo retorno.

    Raises:
        InputError: margem ou entrada não finitas ou <= 0 ou alavancagem <= 0.
        InsufficientBalanceError: margem > available.
    """
    if not math.isfinite(margin) or margin <= 0:
        raise InputError(f"Margem deve ser positiva: {margin}")
    if not is_valid_price(signal.entry_price):
        raise InputError(f"Preço de entrada inválido: {signal.entry_price}")
    leverage = signal.leverage_recommendation
    if not math.isfinite(leverage) or leverage <= 0:
        raise InputError(f"Alavancagem inválida: {leverage}")
    if margin > wallet.available:
        raise InsufficientBalanceError(margin, wallet.available)

    position = LivePosition(
        id=position_id,
        asset=signal.asset,
        direction=signal.direction,
        entry_price=signal.entry_price,
        current_price=signal.entry_price,
        size=position_size(margin, leverage, signal.entry_price),
        leverage=leverage,
        margin=margin,
        unrealized_pnl=0.0,
        unrealized_pnl_percent=0.0,
        liquidation_price=liquidation_price(signal.entry_price, signal.direction, leverage),
        opened_at=opened_at,
        mode=mode,
        take_profit_price=signal.take_profit_price,
        stop_loss_price=signal.stop_loss_price,
    )

    new_positions = positions + (position,)
    return _rebuild_wallet(wallet, new_positions), new_positions


def close_position(
    wallet: WalletState,
    positions: Positions,
    position_id: str,
    exit_price: float,
    closed_at: float,
) -> Tuple[WalletState, Positions, TradeHistory]:
    """
    Fecha posição: margem + pnl voltam para available, balance absorve o pnl,
    registro imutável de histórico é criado e a posição sai da lista aberta.

    Raises:
        PositionNotFoundError: id inexistente.
        InputError: exit_price não finito ou <= 0.
    """
    position = find_position(positions, position_id)
    if not is_valid_price(exit_price):
        raise InputError(f"Preço de saída inválido: {exit_price}")

    pnl = position_pnl(position.direction, position.entry_price, exit_price, position.size)

    record = TradeHistory(
        id=position.id,
        asset=position.asset,
        direction=position.direction,
        entry_price=position.entry_price,
        exit_price=exit_price,
        size=position.size,
        leverage=position.leverage,
        margin=position.margin,
        pnl=pnl,
        pnl_percent=pnl_percent(
            position.direction, position.entry_price, exit_price, position.leverage
        ),
        opened_at=position.opened_at,
        closed_at=closed_at,
        duration_seconds=max(0, int(closed_at - position.opened_at)),
        mode=position.mode,
    )

    remaining = tuple(p for p in positions if p.id != position_id)
    return _rebuild_wallet(wallet, remaining, realized=pnl), remaining, record


def mark_position(position: LivePosition, price: float) -> LivePosition:
    return dataclasses.replace(
        position,
        current_price=price,
        unrealized_pnl=position_pnl(
            position.direction, position.entry_price, price, position.size
        ),
        unrealized_pnl_percent=pnl_percent(
            position.direction, position.entry_price, price, position.leverage
        ),
    )


def apply_mark_prices(
    wallet: WalletState,
    positions: Positions,
    prices: Mapping[str, float],
) -> Tuple[WalletState, Positions]:
    """
    Reprecifica posições cujo ativo está em prices e recalcula equity.
    Preços não finitos ou não positivos são ignorados. O(posições abertas).
    """
    updated = []
    for pos in positions:
        price = prices.get(pos.asset)
        if is_valid_price(price):
            pos = mark_position(pos, price)
        updated.append(pos)

    new_positions = tuple(updated)
    return _rebuild_wallet(wallet, new_positions), new_positions


def exit_price_for(
    position: LivePosition, mark_prices: Mapping[str, float], exit_price: Optional[float] = None
) -> float:
    """Preço explícito, senão mark price válido do ativo, senão último current_price."""
    if exit_price is not None:
        return exit_price
    mark = mark_prices.get(position.asset)
    return mark if is_valid_price(mark) else position.current_price
