"""Trade State Machine: reducer puro, ledger e host da sessão."""

from .fsm import (
    Action,
    ClearCooldown,
    ClosePosition,
    ExecuteTrade,
    LockSignal,
    ResetWallet,
    SetBotStatus,
    SetMode,
    SetTimeframe,
    StartCooldown,
    StartCountdown,
    TradeState,
    Transition,
    UpdateMarkPrices,
    UpdateSettings,
    can_transition,
    dispatch,
    should_auto_execute,
)
from .ledger import liquidation_price, position_pnl, position_size
from .session import AsyncioScheduler, Scheduler, ThreadingScheduler, TradingSession

__all__ = [
    "Action", "ClearCooldown", "ClosePosition", "ExecuteTrade", "LockSignal",
    "ResetWallet", "SetBotStatus", "SetMode", "SetTimeframe", "StartCooldown",
    "StartCountdown", "TradeState", "Transition", "UpdateMarkPrices",
    "UpdateSettings", "can_transition", "dispatch", "should_auto_execute",
    "liquidation_price", "position_pnl", "position_size",
    "AsyncioScheduler", "Scheduler", "ThreadingScheduler", "TradingSession",
]
