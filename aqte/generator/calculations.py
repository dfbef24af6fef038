"""
AQTE v1.0 - Cálculos do Signal Engine
======================================

Fórmulas puras do setup de trade:
  - Alavancagem: 1 / (vol_escalada * safety_factor)
  - Stop Loss:   Chandelier Exit (entry ∓ ATR_escalado * multiplicador)
  - Take Profit: entry ± |entry - SL| * RRR
  - Direção, confiança e rationale a partir de sentimento/RSI/EMA/regime
"""

import math
from typing import List, Optional, Tuple

from ..analyzer.volatility import TimeframeLike, scale_for_timeframe
from ..core.constants import Direction, Regime, RiskLevel, Timeframe
from ..core.models import MarketConditions, OUSignal
from ..core.utils import clamp, round_half

# Pesos do voto de direção (somam 100)
SENTIMENT_WEIGHT = 40
RSI_WEIGHT = 30
EMA_WEIGHT = 30

RSI_OVERSOLD = 30
RSI_OVERBOUGHT = 70

LOW_VOLATILITY = 0.03
HIGH_VOLATILITY = 0.06


def calculate_leverage(
    daily_volatility: float,
    safety_factor: float = 2.0,
    max_leverage: float = 20,
    min_leverage: float = 1,
    timeframe: TimeframeLike = Timeframe.D1,
) -> float:
    """
    Alavancagem recomendada pela volatilidade.

    Volatilidade menor → alavancagem maior. Timeframes curtos escalam a
    volatilidade para baixo e permitem alavancagem maior.

    Returns:
        Alavancagem em [min_leverage, max_leverage], arredondada a 0.5.
        daily_volatility não finita ou <= 0 → min_leverage.
    """
    if not math.isfinite(daily_volatility) or daily_volatility <= 0 or safety_factor <= 0:
        return float(min_leverage)

    scaled_vol = scale_for_timeframe(daily_volatility, timeframe)
    if scaled_vol <= 0:
        return float(min_leverage)

    raw = 1.0 / (scaled_vol * safety_factor)
    leverage = round_half(clamp(raw, min_leverage, max_leverage))
    return float(clamp(leverage, min_leverage, max_leverage))


def calculate_stop_loss(
    entry_price: float,
    atr: float,
    direction: Direction,
    atr_multiplier: float = 3.0,
    timeframe: TimeframeLike = Timeframe.D1,
) -> float:
    """Chandelier Exit: LONG abaixo da entrada, SHORT acima."""
    stop_distance = scale_for_timeframe(max(atr, 0.0), timeframe) * atr_multiplier
    if direction == Direction.LONG:
        return entry_price - stop_distance
    return entry_price + stop_distance


def calculate_take_profit(
    entry_price: float,
    stop_loss_price: float,
    direction: Direction,
    risk_reward_ratio: float = 2.0,
) -> float:
    """TP pela relação risco-retorno."""
    reward = abs(entry_price - stop_loss_price) * risk_reward_ratio
    if direction == Direction.LONG:
        return entry_price + reward
    return entry_price - reward


def get_risk_level(leverage: float) -> RiskLevel:
    if leverage <= 3:
        return RiskLevel.LOW
    if leverage <= 7:
        return RiskLevel.MEDIUM
    if leverage <= 15:
        return RiskLevel.HIGH
    return RiskLevel.EXTREME


def _ema_ratio(market: MarketConditions) -> Optional[float]:
    if market.ema200 is None or market.ema200 <= 0 or market.current_price <= 0:
        return None
    return (market.current_price - market.ema200) / market.ema200


def directional_score(market: MarketConditions) -> float:
    """Voto ponderado: sentimento 40%, RSI 30%, posição vs EMA200 30%."""
    score = 0.0

    if market.sentiment_score is not None:
        score += market.sentiment_score * SENTIMENT_WEIGHT

    if market.rsi is not None:
        if market.rsi < RSI_OVERSOLD:
            score += RSI_WEIGHT
        elif market.rsi > RSI_OVERBOUGHT:
            score -= RSI_WEIGHT
        else:
            score += (50 - market.rsi) * 0.6

    ratio = _ema_ratio(market)
    if ratio is not None:
        score += clamp(ratio * 300, -EMA_WEIGHT, EMA_WEIGHT)

    return score


def determine_direction(
    market: MarketConditions,
    regime: Regime = Regime.RANDOM_WALK,
    ou_signal: Optional[OUSignal] = None,
) -> Direction:
    """
    Em MEAN_REVERSION o sinal OU decide; zona neutra (None) cai no voto.
    Empate (score 0) resolve para LONG.
    """
    if (
        regime == Regime.MEAN_REVERSION
        and ou_signal is not None
        and ou_signal.direction is not None
    ):
        return ou_signal.direction

    return Direction.LONG if directional_score(market) >= 0 else Direction.SHORT


def calculate_confidence(
    market: MarketConditions,
    regime: Optional[Regime] = None,
    hurst: Optional[float] = None,
) -> int:
    """
    Score de confiança 0-100.

    Base 50, ajustado por magnitude do sentimento (até +20), extremo de RSI
    (+15, neutro +5), força da tendência vs EMA200 (até +10), volatilidade
    (baixa +5, alta -5) e clareza do regime (até +15).
    """
    score = 50.0

    if market.sentiment_score is not None:
        score += abs(market.sentiment_score) * 20

    if market.rsi is not None:
        if market.rsi < RSI_OVERSOLD or market.rsi > RSI_OVERBOUGHT:
            score += 15
        else:
            score += 5

    ratio = _ema_ratio(market)
    if ratio is not None:
        score += min(10.0, abs(ratio) * 200)

    if market.daily_volatility < LOW_VOLATILITY:
        score += 5
    elif market.daily_volatility > HIGH_VOLATILITY:
        score -= 5

    if regime is not None and regime != Regime.RANDOM_WALK and hurst is not None:
        score += min(15.0, abs(hurst - 0.5) * 100)

    return int(clamp(round(score), 0, 100))


def _rationale_factors(market: MarketConditions) -> List[Tuple[str, float]]:
    """Labels qualificados com força normalizada em [0, 1]."""
    factors: List[Tuple[str, float]] = []

    s = market.sentiment_score
    if s is not None:
        if s > 0.5:
            factors.append(("Strong Bullish Sentiment", abs(s)))
        elif s > 0.2:
            factors.append(("Positive Sentiment", abs(s)))
        elif s < -0.5:
            factors.append(("Strong Bearish Sentiment", abs(s)))
        elif s < -0.2:
            factors.append(("Negative Sentiment", abs(s)))

    if market.rsi is not None:
        strength = min(1.0, abs(market.rsi - 50) / 50)
        if market.rsi < RSI_OVERSOLD:
            factors.append(("RSI Oversold", strength))
        elif market.rsi > RSI_OVERBOUGHT:
            factors.append(("RSI Overbought", strength))

    ratio = _ema_ratio(market)
    if ratio is not None:
        strength = min(1.0, abs(ratio) * 10)
        if ratio > 0.02:
            factors.append(("Above 200 EMA", strength))
        elif ratio < -0.02:
            factors.append(("Below 200 EMA", strength))

    vol = market.daily_volatility
    if 0 <= vol < 0.025:
        factors.append(("Low Volatility", 1.0 - vol / 0.025))
    elif vol > HIGH_VOLATILITY:
        factors.append(("High Volatility", min(1.0, vol / HIGH_VOLATILITY - 1.0 + 0.3)))

    return factors


def generate_rationale(market: MarketConditions, direction: Direction) -> str:
    """Top 3 fatores por força, unidos por ' + '."""
    factors = _rationale_factors(market)
    if not factors:
        if direction == Direction.LONG:
            return "Technical indicators favor upside"
        return "Technical indicators favor downside"

    ranked = sorted(factors, key=lambda f: f[1], reverse=True)
    return " + ".join(label for label, _ in ranked[:3])
