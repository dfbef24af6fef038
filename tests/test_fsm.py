"""
Testes: trader/fsm.py + trader/ledger.py - reducer puro, adjacência, carteira
"""

import math

import pytest

from aqte.core.constants import BotStatus, Direction, Timeframe, TradingMode
from aqte.core.errors import (
    InputError,
    InsufficientBalanceError,
    InvalidTransitionError,
    PositionNotFoundError,
)
from aqte.core.models import AutoTradeSettings, WalletState
from aqte.trader import ledger
from aqte.trader.fsm import (
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
    UpdateMarkPrices,
    UpdateSettings,
    can_transition,
    dispatch,
    should_auto_execute,
)
from .helpers import make_signal

T0 = 1700000000.0


def _apply(state, *actions):
    """Aplica actions em sequência exigindo sucesso em todas."""
    for action in actions:
        result = dispatch(state, action)
        assert result.ok, result.error
        state = result.state
    return state


def _with_position(state, signal=None, margin=100.0, position_id="pos_1"):
    signal = signal or make_signal()
    return _apply(state, ExecuteTrade(signal, margin, position_id, T0))


def _assert_wallet_invariants(wallet: WalletState):
    assert wallet.available + wallet.locked == pytest.approx(wallet.balance)
    assert wallet.equity == pytest.approx(wallet.balance + wallet.unrealized_pnl)


# ═══════════════════════════════════════════════════════════════════════════
# Adjacência
# ═══════════════════════════════════════════════════════════════════════════

class TestTransitions:

    @pytest.mark.parametrize("current,target", [
        (BotStatus.IDLE, BotStatus.ANALYZING),
        (BotStatus.IDLE, BotStatus.SIGNAL_LOCKED),
        (BotStatus.ANALYZING, BotStatus.IDLE),
        (BotStatus.SIGNAL_LOCKED, BotStatus.COUNTDOWN),
        (BotStatus.COUNTDOWN, BotStatus.EXECUTING),
        (BotStatus.COUNTDOWN, BotStatus.IDLE),
        (BotStatus.EXECUTING, BotStatus.COOLDOWN),
        (BotStatus.COOLDOWN, BotStatus.IDLE),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (BotStatus.IDLE, BotStatus.EXECUTING),
        (BotStatus.IDLE, BotStatus.COOLDOWN),
        (BotStatus.EXECUTING, BotStatus.IDLE),
        (BotStatus.COOLDOWN, BotStatus.EXECUTING),
        (BotStatus.SIGNAL_LOCKED, BotStatus.EXECUTING),
    ])
    def test_forbidden(self, current, target):
        assert not can_transition(current, target)

    def test_rejected_returns_same_object(self, state):
        result = dispatch(state, SetBotStatus(BotStatus.EXECUTING))
        assert not result.ok
        assert result.state is state
        assert isinstance(result.error, InvalidTransitionError)
        assert result.error.current == BotStatus.IDLE
        assert result.error.target == BotStatus.EXECUTING

    def test_accepted_bumps_version(self, state):
        result = dispatch(state, SetBotStatus(BotStatus.ANALYZING))
        assert result.ok
        assert result.state.version == state.version + 1
        assert result.state.bot_status == BotStatus.ANALYZING
        assert state.bot_status == BotStatus.IDLE

    def test_invalid_status_string(self, state):
        result = dispatch(state, SetBotStatus("SLEEPING"))
        assert not result.ok
        assert isinstance(result.error, InputError)

    def test_status_accepts_string_value(self, state):
        result = dispatch(state, SetBotStatus("ANALYZING"))
        assert result.ok
        assert result.state.bot_status == BotStatus.ANALYZING

    def test_unknown_action(self, state):
        result = dispatch(state, object())
        assert not result.ok
        assert result.state is state
        assert isinstance(result.error, InputError)


# ═══════════════════════════════════════════════════════════════════════════
# Fluxo do bot
# ═══════════════════════════════════════════════════════════════════════════

class TestBotFlow:

    def test_full_cycle(self, state, signal):
        s = _apply(state, LockSignal(signal, T0))
        assert s.bot_status == BotStatus.SIGNAL_LOCKED
        assert s.locked_signal.signal is signal

        s = _apply(s, StartCountdown(5))
        assert s.bot_status == BotStatus.COUNTDOWN
        assert s.locked_signal.countdown_seconds == 5

        s = _apply(s, ExecuteTrade(signal, 100.0, "pos_1", T0 + 5))
        assert s.bot_status == BotStatus.EXECUTING
        assert s.locked_signal is None
        assert len(s.positions) == 1

        s = _apply(s, StartCooldown(T0 + 5, 10))
        assert s.bot_status == BotStatus.COOLDOWN
        assert s.cooldown_ends_at == T0 + 15

        s = _apply(s, ClearCooldown())
        assert s.bot_status == BotStatus.IDLE
        assert s.cooldown_ends_at is None
        assert s.version == 5

    def test_countdown_requires_lock(self, state):
        s = _apply(state, SetBotStatus(BotStatus.ANALYZING))
        result = dispatch(s, StartCountdown())
        assert not result.ok

    def test_cancel_from_countdown_clears_lock(self, state, signal):
        s = _apply(state, LockSignal(signal, T0), StartCountdown())
        s = _apply(s, SetBotStatus(BotStatus.IDLE))
        assert s.bot_status == BotStatus.IDLE
        assert s.locked_signal is None

    def test_clear_cooldown_outside_cooldown(self, state):
        result = dispatch(state, ClearCooldown())
        assert not result.ok
        assert isinstance(result.error, InvalidTransitionError)

    def test_cooldown_only_from_executing(self, state):
        result = dispatch(state, StartCooldown(T0))
        assert not result.ok
        assert result.state is state

    def test_manual_execution_keeps_status(self, state, signal):
        s = _apply(state, ExecuteTrade(signal, 100.0, "pos_1", T0))
        assert s.bot_status == BotStatus.IDLE
        assert len(s.positions) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Ledger via dispatch
# ═══════════════════════════════════════════════════════════════════════════

class TestExecuteTrade:

    def test_moves_margin_to_locked(self, state, signal):
        s = _with_position(state, signal)
        assert s.wallet.balance == 10000
        assert s.wallet.available == pytest.approx(9900)
        assert s.wallet.locked == pytest.approx(100)
        _assert_wallet_invariants(s.wallet)

    def test_position_fields(self, state, signal):
        pos = _with_position(state, signal).positions[0]
        assert pos.id == "pos_1"
        assert pos.size == pytest.approx(10)          # 100 · 10 / 100
        assert pos.liquidation_price == pytest.approx(90)
        assert pos.unrealized_pnl == 0.0
        assert pos.mode == TradingMode.PAPER
        assert pos.stop_loss_price == signal.stop_loss_price

    def test_short_liquidation_above_entry(self, state):
        signal = make_signal(direction=Direction.SHORT)
        pos = _with_position(state, signal).positions[0]
        assert pos.liquidation_price == pytest.approx(110)

    def test_insufficient_balance(self, state, signal):
        result = dispatch(state, ExecuteTrade(signal, 20000.0, "pos_1", T0))
        assert not result.ok
        assert result.state is state
        assert isinstance(result.error, InsufficientBalanceError)
        assert result.error.required == 20000.0

    @pytest.mark.parametrize("margin", [0.0, -5.0])
    def test_non_positive_margin(self, state, signal, margin):
        result = dispatch(state, ExecuteTrade(signal, margin, "pos_1", T0))
        assert isinstance(result.error, InputError)

    @pytest.mark.parametrize("margin", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_margin(self, state, signal, margin):
        result = dispatch(state, ExecuteTrade(signal, margin, "pos_1", T0))
        assert not result.ok
        assert isinstance(result.error, InputError)
        assert result.state is state

    def test_invalid_entry_price(self, state):
        result = dispatch(state, ExecuteTrade(make_signal(entry=0.0, stop_loss=0.0), 100.0, "p", T0))
        assert isinstance(result.error, InputError)

    def test_multiple_positions_lock_sum(self, state):
        s = _with_position(state, make_signal(asset="BTCUSDT"), 100.0, "pos_1")
        s = _with_position(s, make_signal(asset="ETHUSDT"), 250.0, "pos_2")
        assert s.wallet.locked == pytest.approx(350)
        assert s.wallet.available == pytest.approx(9650)
        _assert_wallet_invariants(s.wallet)


class TestMarkPrices:

    def test_unrealized_pnl(self, state, signal):
        s = _apply(_with_position(state, signal), UpdateMarkPrices({"BTCUSDT": 105.0}))
        pos = s.positions[0]
        assert pos.current_price == 105.0
        assert pos.unrealized_pnl == pytest.approx(50)
        assert pos.unrealized_pnl_percent == pytest.approx(50)
        assert s.wallet.equity == pytest.approx(10050)
        assert s.wallet.balance == 10000
        _assert_wallet_invariants(s.wallet)

    def test_short_gains_when_price_falls(self, state):
        s = _with_position(state, make_signal(direction=Direction.SHORT))
        s = _apply(s, UpdateMarkPrices({"BTCUSDT": 95.0}))
        assert s.positions[0].unrealized_pnl == pytest.approx(50)

    def test_non_positive_price_ignored(self, state, signal):
        s = _apply(_with_position(state, signal), UpdateMarkPrices({"BTCUSDT": 0.0}))
        assert s.positions[0].current_price == 100.0

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), -1.0])
    def test_invalid_price_not_stored(self, state, signal, price):
        s = _apply(_with_position(state, signal), UpdateMarkPrices({"BTCUSDT": price}))
        assert s.positions[0].current_price == 100.0
        assert "BTCUSDT" not in s.mark_prices
        assert math.isfinite(s.wallet.equity)
        _assert_wallet_invariants(s.wallet)

    def test_bad_tick_keeps_last_valid_mark(self, state, signal):
        s = _apply(
            _with_position(state, signal),
            UpdateMarkPrices({"BTCUSDT": 102.0}),
            UpdateMarkPrices({"BTCUSDT": 0.0}),
        )
        assert s.mark_prices["BTCUSDT"] == 102.0
        assert s.positions[0].current_price == 102.0

    def test_other_assets_untouched(self, state, signal):
        s = _apply(_with_position(state, signal), UpdateMarkPrices({"ETHUSDT": 3000.0}))
        assert s.positions[0].current_price == 100.0
        assert s.mark_prices["ETHUSDT"] == 3000.0

    def test_prices_are_merged(self, state):
        s = _apply(state, UpdateMarkPrices({"A": 1.0}), UpdateMarkPrices({"B": 2.0}))
        assert dict(s.mark_prices) == {"A": 1.0, "B": 2.0}


class TestClosePosition:

    def test_realizes_pnl(self, state, signal):
        s = _apply(_with_position(state, signal), ClosePosition("pos_1", T0 + 600, 110.0))
        assert s.positions == ()
        assert s.wallet.balance == pytest.approx(10100)
        assert s.wallet.available == pytest.approx(10100)
        assert s.wallet.locked == 0
        assert s.wallet.total_pnl == pytest.approx(100)
        _assert_wallet_invariants(s.wallet)

        record = s.history[0]
        assert record.id == "pos_1"
        assert record.pnl == pytest.approx(100)
        assert record.pnl_percent == pytest.approx(100)
        assert record.duration_seconds == 600
        assert record.is_win

    def test_loss(self, state, signal):
        s = _apply(_with_position(state, signal), ClosePosition("pos_1", T0 + 60, 95.0))
        assert s.wallet.balance == pytest.approx(9950)
        assert not s.history[0].is_win

    def test_falls_back_to_mark_price(self, state, signal):
        s = _apply(
            _with_position(state, signal),
            UpdateMarkPrices({"BTCUSDT": 102.0}),
            ClosePosition("pos_1", T0 + 60),
        )
        assert s.history[0].exit_price == 102.0
        assert s.wallet.balance == pytest.approx(10020)

    def test_falls_back_to_entry_without_marks(self, state, signal):
        s = _apply(_with_position(state, signal), ClosePosition("pos_1", T0 + 60))
        assert s.history[0].exit_price == 100.0
        assert s.history[0].pnl == 0.0

    def test_close_after_zero_mark_uses_last_valid_price(self, state, signal):
        s = _apply(
            _with_position(state, signal),
            UpdateMarkPrices({"BTCUSDT": 102.0}),
            UpdateMarkPrices({"BTCUSDT": 0.0}),
            ClosePosition("pos_1", T0 + 60),
        )
        assert s.history[0].exit_price == 102.0
        assert s.wallet.balance == pytest.approx(10020)

    def test_close_after_nan_mark_uses_current_price(self, state, signal):
        s = _apply(
            _with_position(state, signal),
            UpdateMarkPrices({"BTCUSDT": float("nan")}),
            ClosePosition("pos_1", T0 + 60),
        )
        assert s.history[0].exit_price == 100.0
        assert s.wallet.balance == pytest.approx(10000)
        assert s.wallet.available == pytest.approx(10000)
        _assert_wallet_invariants(s.wallet)

    def test_unknown_position(self, state):
        result = dispatch(state, ClosePosition("nope", T0, 100.0))
        assert not result.ok
        assert isinstance(result.error, PositionNotFoundError)
        assert result.error.position_id == "nope"

    def test_double_close_rejected(self, state, signal):
        s = _apply(_with_position(state, signal), ClosePosition("pos_1", T0, 101.0))
        result = dispatch(s, ClosePosition("pos_1", T0, 101.0))
        assert isinstance(result.error, PositionNotFoundError)
        assert len(s.history) == 1

    def test_invalid_exit_price(self, state, signal):
        s = _with_position(state, signal)
        result = dispatch(s, ClosePosition("pos_1", T0, -1.0))
        assert isinstance(result.error, InputError)
        assert result.state is s

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), 0.0])
    def test_non_finite_exit_price(self, state, signal, price):
        s = _with_position(state, signal)
        result = dispatch(s, ClosePosition("pos_1", T0, price))
        assert not result.ok
        assert isinstance(result.error, InputError)
        assert result.state is s


class TestLedgerConservation:

    def _assert_conserved(self, state):
        wallet = state.wallet
        realized = sum(h.pnl for h in state.history)
        _assert_wallet_invariants(wallet)
        assert wallet.balance == pytest.approx(wallet.initial_balance + realized)
        assert wallet.total_pnl == pytest.approx(realized)
        assert wallet.locked == pytest.approx(sum(p.margin for p in state.positions))

    def test_mixed_sequence(self, state):
        actions = [
            ExecuteTrade(make_signal(asset="BTCUSDT"), 100.0, "pos_1", T0),
            ExecuteTrade(make_signal(asset="ETHUSDT", direction=Direction.SHORT), 200.0, "pos_2", T0),
            UpdateMarkPrices({"BTCUSDT": 104.0, "ETHUSDT": 97.0}),
            ClosePosition("pos_1", T0 + 60),
            ExecuteTrade(make_signal(asset="SOLUSDT"), 50.0, "pos_3", T0 + 60),
            UpdateMarkPrices({"ETHUSDT": 103.0, "SOLUSDT": 90.0}),
            ClosePosition("pos_2", T0 + 120),
            UpdateMarkPrices({"SOLUSDT": float("nan")}),
            ClosePosition("pos_3", T0 + 180, 92.0),
        ]
        s = state
        for action in actions:
            result = dispatch(s, action)
            assert result.ok, result.error
            s = result.state
            self._assert_conserved(s)

        assert [h.pnl for h in s.history] == pytest.approx([40.0, -60.0, -40.0])
        assert s.wallet.balance == pytest.approx(9940)
        assert s.wallet.available == pytest.approx(9940)
        assert s.positions == ()

    def test_rejections_do_not_leak(self, state, signal):
        s = _with_position(state, signal)
        for action in (
            ExecuteTrade(signal, float("nan"), "pos_2", T0),
            ExecuteTrade(signal, 1_000_000.0, "pos_2", T0),
            ClosePosition("pos_1", T0, float("inf")),
            ClosePosition("missing", T0, 100.0),
        ):
            result = dispatch(s, action)
            assert not result.ok
            self._assert_conserved(result.state)
        self._assert_conserved(_apply(s, ClosePosition("pos_1", T0 + 60, 97.0)))


# ═══════════════════════════════════════════════════════════════════════════
# Settings / modo / reset
# ═══════════════════════════════════════════════════════════════════════════

class TestConfiguration:

    def test_update_settings(self, state):
        s = _apply(state, UpdateSettings({"enabled": True, "confidence_threshold": 60}))
        assert s.settings.enabled
        assert s.settings.confidence_threshold == 60

    def test_unknown_setting_rejected(self, state):
        result = dispatch(state, UpdateSettings({"turbo": True}))
        assert isinstance(result.error, InputError)

    def test_timeframe_and_mode(self, state):
        s = _apply(state, SetTimeframe("1h"), SetMode("LIVE"))
        assert s.active_timeframe == Timeframe.H1
        assert s.mode == TradingMode.LIVE

    def test_invalid_timeframe_and_mode(self, state):
        assert isinstance(dispatch(state, SetTimeframe("2d")).error, InputError)
        assert isinstance(dispatch(state, SetMode("SIM")).error, InputError)

    def test_live_mode_tags_positions(self, state, signal):
        s = _with_position(_apply(state, SetMode(TradingMode.LIVE)), signal)
        assert s.positions[0].mode == TradingMode.LIVE

    def test_reset_from_any_state(self, state, signal):
        s = _apply(
            state,
            UpdateSettings({"enabled": True}),
            SetTimeframe("4h"),
            LockSignal(signal, T0),
            StartCountdown(),
            ExecuteTrade(signal, 100.0, "pos_1", T0),
        )
        s = _apply(s, ResetWallet(5000.0))
        assert s.bot_status == BotStatus.IDLE
        assert s.positions == ()
        assert s.history == ()
        assert s.wallet == WalletState.initial(5000.0)
        assert s.settings.enabled
        assert s.active_timeframe == Timeframe.H4
        assert s.version == 6

    def test_reset_defaults_to_initial_balance(self, state, signal):
        s = _apply(_with_position(state, signal), ClosePosition("pos_1", T0, 120.0))
        s = _apply(s, ResetWallet())
        assert s.wallet.balance == 10000

    def test_reset_rejects_non_positive_balance(self, state):
        assert isinstance(dispatch(state, ResetWallet(0)).error, InputError)


# ═══════════════════════════════════════════════════════════════════════════
# Auto-execução
# ═══════════════════════════════════════════════════════════════════════════

class TestShouldAutoExecute:

    @pytest.fixture
    def enabled(self):
        return TradeState.initial(
            10000.0, settings=AutoTradeSettings(enabled=True, confidence_threshold=75)
        )

    def test_all_criteria_met(self, enabled):
        assert should_auto_execute(enabled, make_signal(confidence=80))

    def test_disabled(self, state):
        assert not should_auto_execute(state, make_signal(confidence=95))

    def test_confidence_threshold_inclusive(self, enabled):
        assert should_auto_execute(enabled, make_signal(confidence=75))
        assert not should_auto_execute(enabled, make_signal(confidence=74))

    def test_leverage_limit(self, enabled):
        assert not should_auto_execute(enabled, make_signal(leverage=25))

    def test_bot_busy(self, enabled, signal):
        busy = _apply(enabled, SetBotStatus(BotStatus.ANALYZING))
        assert not should_auto_execute(busy, signal)

    def test_open_position_on_asset(self, enabled, signal):
        s = _with_position(enabled, signal)
        assert not should_auto_execute(s, signal)
        assert should_auto_execute(s, make_signal(asset="ETHUSDT"))


# ═══════════════════════════════════════════════════════════════════════════
# Ledger puro
# ═══════════════════════════════════════════════════════════════════════════

class TestLedgerFunctions:

    def test_pnl_percent_is_return_on_margin(self):
        assert ledger.pnl_percent(Direction.LONG, 100.0, 101.0, 10) == pytest.approx(10)
        assert ledger.pnl_percent(Direction.SHORT, 100.0, 101.0, 10) == pytest.approx(-10)
        assert ledger.pnl_percent(Direction.LONG, 0.0, 101.0, 10) == 0.0

    def test_position_size(self):
        assert ledger.position_size(100.0, 10, 50.0) == pytest.approx(20)

    def test_open_does_not_mutate_inputs(self, signal):
        wallet = WalletState.initial(1000.0)
        new_wallet, positions = ledger.open_position(wallet, (), signal, 100.0, "p1", T0)
        assert wallet.available == 1000.0
        assert new_wallet.available == 900.0
        assert len(positions) == 1

    def test_open_raises_on_overdraw(self, signal):
        with pytest.raises(InsufficientBalanceError):
            ledger.open_position(WalletState.initial(50.0), (), signal, 100.0, "p1", T0)

    def test_find_position_raises(self):
        with pytest.raises(PositionNotFoundError):
            ledger.find_position((), "missing")

    def test_exit_price_precedence(self, state, signal):
        pos = _with_position(state, signal).positions[0]
        assert ledger.exit_price_for(pos, {"BTCUSDT": 99.0}, 101.0) == 101.0
        assert ledger.exit_price_for(pos, {"BTCUSDT": 99.0}) == 99.0
        assert ledger.exit_price_for(pos, {}) == 100.0
        assert ledger.exit_price_for(pos, {"BTCUSDT": float("nan")}) == 100.0
        assert ledger.exit_price_for(pos, {"BTCUSDT": 0.0}) == 100.0

    @pytest.mark.parametrize("price,valid", [
        (100.0, True), (0.0, False), (-1.0, False),
        (float("nan"), False), (float("inf"), False), (None, False),
    ])
    def test_is_valid_price(self, price, valid):
        assert ledger.is_valid_price(price) is valid
