"""
AQTE v1.0 - Lifecycle
======================

Funções de bootstrap: config YAML, logging e montagem dos objetos
de configuração/sessão a partir das seções do YAML.

Seções: signal_engine, auto_trade, risk, session, logging.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

import yaml

from ..core.constants import (
    COOLDOWN_SECONDS,
    COUNTDOWN_SECONDS,
    DEFAULT_INITIAL_BALANCE,
    Timeframe,
    TradingMode,
)
from ..core.models import AutoTradeSettings, SignalEngineConfig
from ..trader.fsm import TradeState
from ..trader.session import Scheduler, TradingSession

logger = logging.getLogger("Lifecycle")


def load_config(config_path: str) -> dict:
    """
    Carrega configuração YAML com expansão de variáveis de ambiente.

    Suporta ${VAR} e ${VAR:default} no YAML.
    """
    with open(config_path) as f:
        raw = f.read()

    def _expand(match):
        var = match.group(1)
        if ":" in var:
            name, default = var.split(":", 1)
            return os.environ.get(name, default)
        return os.environ.get(var, match.group(0))

    expanded = re.sub(r"\$\{([^}]+)\}", _expand, raw)
    config = yaml.safe_load(expanded)
    return config or {}


def setup_logging(config: dict, level: Optional[str] = None):
    """Configura logging a partir da config. level sobrescreve o YAML."""
    log_cfg = config.get("logging") or {}
    level = level or log_cfg.get("level", "INFO")
    log_file = log_cfg.get("log_file")

    handlers = [logging.StreamHandler()]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True,
    )


def build_signal_config(config: dict) -> SignalEngineConfig:
    return SignalEngineConfig.from_dict(config.get("signal_engine"))


def build_auto_trade_settings(config: dict) -> AutoTradeSettings:
    return AutoTradeSettings.from_dict(config.get("auto_trade"))


def build_session(config: dict, scheduler: Optional[Scheduler] = None, **kwargs) -> TradingSession:
    """
    Monta TradingSession a partir da seção session (+ auto_trade).

    kwargs extras (clock, id_factory) são repassados à sessão.
    """
    session_cfg = config.get("session") or {}
    timeframe = session_cfg.get(
        "timeframe", (config.get("signal_engine") or {}).get("timeframe", Timeframe.M15)
    )

    state = TradeState.initial(
        initial_balance=float(session_cfg.get("initial_balance", DEFAULT_INITIAL_BALANCE)),
        settings=build_auto_trade_settings(config),
        mode=TradingMode(str(session_cfg.get("mode", TradingMode.PAPER.value)).upper()),
        timeframe=Timeframe(timeframe),
    )

    session = TradingSession(
        state=state,
        scheduler=scheduler,
        cooldown_seconds=float(session_cfg.get("cooldown_seconds", COOLDOWN_SECONDS)),
        countdown_seconds=int(session_cfg.get("countdown_seconds", COUNTDOWN_SECONDS)),
        **kwargs,
    )
    logger.info(
        f"Sessão criada: mode={state.mode.value} balance={state.wallet.balance:.2f} "
        f"timeframe={state.active_timeframe.value}"
    )
    return session
