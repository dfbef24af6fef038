"""
Fixtures compartilhadas para toda a suíte de testes.
"""

import pytest

from aqte.core.models import AutoTradeSettings
from aqte.core.utils import sequential_ids
from aqte.trader.fsm import TradeState
from aqte.trader.session import TradingSession
from .helpers import FixedClock, ManualScheduler, make_signal


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def state():
    return TradeState.initial(10000.0)


@pytest.fixture
def signal():
    return make_signal()


@pytest.fixture
def session(clock, scheduler):
    return TradingSession(
        state=TradeState.initial(
            10000.0,
            settings=AutoTradeSettings(enabled=True, confidence_threshold=70),
        ),
        scheduler=scheduler,
        clock=clock,
        id_factory=sequential_ids(),
    )
