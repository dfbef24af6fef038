"""
AQTE v1.0 - Signal Engine
==========================

Orquestração pura: MarketConditions + config → SignalSetup.

Determinístico dado (market, config, clock, id_factory). Relógio e gerador
de id são injetados; só o orchestrator usa tempo real.

Dados inválidos não levantam exceção: degradam para valores seguros e são
listados em SignalSetup.warnings.
"""

import dataclasses
import logging
import math
from typing import List, Optional, Tuple

from ..analyzer.regime import (
    calculate_hurst_exponent,
    detect_regime,
    estimate_ou_parameters,
    generate_ou_signal,
)
from ..core.constants import MIN_SAMPLES_FOR_HURST, Regime
from ..core.models import MarketConditions, OUSignal, SignalEngineConfig, SignalSetup
from ..core.utils import Clock, IdFactory, clamp, random_id, system_clock
from .calculations import (
    calculate_confidence,
    calculate_leverage,
    calculate_stop_loss,
    calculate_take_profit,
    determine_direction,
    generate_rationale,
    get_risk_level,
)

logger = logging.getLogger("Generator.Signal")

DEFAULT_CONFIG = SignalEngineConfig()


def sanitize_market(market: MarketConditions) -> Tuple[MarketConditions, List[str]]:
    """
    Normaliza MarketConditions para valores seguros.

    Returns:
        (market saneado, lista de avisos). Lista vazia se já era válido.
    """
    warnings: List[str] = []
    changes = {}

    price = market.current_price
    if price is None or not math.isfinite(price) or price <= 0:
        warnings.append(f"Invalid price ({price}); signal confidence forced to 0")
        changes["current_price"] = 0.0

    vol = market.daily_volatility
    if vol is None or not math.isfinite(vol) or vol < 0:
        warnings.append(f"Invalid daily volatility ({vol}); using minimum leverage")
        changes["daily_volatility"] = 0.0

    atr = market.atr
    if atr is None or not math.isfinite(atr) or atr < 0:
        warnings.append(f"Invalid ATR ({atr}); stop distance set to 0")
        changes["atr"] = 0.0

    if market.rsi is not None and not 0 <= market.rsi <= 100:
        warnings.append(f"RSI out of range ({market.rsi}); clamped")
        changes["rsi"] = clamp(market.rsi, 0, 100)

    if market.sentiment_score is not None and not -1 <= market.sentiment_score <= 1:
        warnings.append(f"Sentiment out of range ({market.sentiment_score}); clamped")
        changes["sentiment_score"] = clamp(market.sentiment_score, -1, 1)

    if changes:
        market = dataclasses.replace(market, **changes)
    return market, warnings


def analyze_regime(
    market: MarketConditions,
) -> Tuple[Optional[Regime], Optional[float], Optional[OUSignal]]:
    """
    Regime, Hurst e sinal OU a partir do histórico de preços.

    Sem histórico: (None, None, None). Sinal OU só em MEAN_REVERSION.
    """
    prices = market.historical_prices
    if not prices:
        return None, None, None

    hurst = calculate_hurst_exponent(prices)
    regime = detect_regime(hurst)

    ou_signal = None
    if regime == Regime.MEAN_REVERSION and len(prices) >= MIN_SAMPLES_FOR_HURST:
        params = estimate_ou_parameters(prices)
        ou_signal = generate_ou_signal(market.current_price, params)

    return regime, hurst, ou_signal


def generate_signal(
    market: MarketConditions,
    config: Optional[SignalEngineConfig] = None,
    clock: Clock = system_clock,
    id_factory: IdFactory = random_id,
) -> SignalSetup:
    """
    Gera setup completo de trade.

    Args:
        market: Snapshot de mercado.
        config: Parâmetros do engine (default: SignalEngineConfig()).
        clock: Fonte de tempo (Unix segundos).
        id_factory: Gerador de id ('sig' é o prefixo).
    """
    cfg = config or DEFAULT_CONFIG
    market, warnings = sanitize_market(market)

    regime, hurst, ou_signal = analyze_regime(market)
    direction = determine_direction(
        market, regime or Regime.RANDOM_WALK, ou_signal
    )

    leverage = calculate_leverage(
        market.daily_volatility,
        cfg.safety_factor,
        cfg.max_leverage,
        cfg.min_leverage,
        cfg.timeframe,
    )

    entry_price = market.current_price
    stop_loss_price = calculate_stop_loss(
        entry_price, market.atr, direction, cfg.atr_multiplier, cfg.timeframe
    )
    take_profit_price = calculate_take_profit(
        entry_price, stop_loss_price, direction, cfg.min_risk_reward_ratio
    )

    if entry_price > 0:
        confidence = calculate_confidence(market, regime, hurst)
    else:
        confidence = 0

    signal = SignalSetup(
        id=id_factory("sig"),
        asset=market.symbol,
        direction=direction,
        entry_price=entry_price,
        stop_loss_price=stop_loss_price,
        take_profit_price=take_profit_price,
        leverage_recommendation=leverage,
        risk_reward_ratio=cfg.min_risk_reward_ratio,
        confidence_score=confidence,
        risk_level=get_risk_level(leverage),
        rationale=generate_rationale(market, direction),
        timeframe=cfg.timeframe,
        timestamp=clock(),
        regime=regime,
        hurst_exponent=hurst,
        z_score=ou_signal.z_score if ou_signal else None,
        warnings=tuple(warnings),
    )

    logger.debug(
        f"[{signal.asset}] {signal.direction.value} lev={leverage}x "
        f"conf={confidence} regime={regime.value if regime else '-'}"
    )
    return signal


class SignalGenerator:
    """
    Fachada com config e capacidades injetadas.
    Sem estado mutável: pode ser compartilhada entre tasks.
    """

    def __init__(
        self,
        config: Optional[SignalEngineConfig] = None,
        clock: Clock = system_clock,
        id_factory: IdFactory = random_id,
    ):
        self.config = config or DEFAULT_CONFIG
        self.clock = clock
        self.id_factory = id_factory

    def generate(self, market: MarketConditions) -> SignalSetup:
        return generate_signal(market, self.config, self.clock, self.id_factory)
