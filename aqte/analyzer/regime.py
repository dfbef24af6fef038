"""
AQTE v1.0 - Regime de Mercado
==============================

Expoente de Hurst (R/S) e processo de Ornstein-Uhlenbeck.

  - H < 0.45  → MEAN_REVERSION (anti-persistente)
  - H > 0.55  → TRENDING (persistente)
  - senão     → RANDOM_WALK

Funções puras: nunca levantam exceção em entrada curta ou degenerada.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from ..core.constants import (
    HURST_MEAN_REVERSION_MAX,
    HURST_TRENDING_MIN,
    MIN_SAMPLES_FOR_HURST,
    OU_ENTRY_Z,
    Direction,
    Regime,
)
from ..core.models import OUParameters, OUSignal

logger = logging.getLogger("Analyzer.Regime")

# Menor janela usada no R/S
_MIN_WINDOW = 4
_N_WINDOWS = 8


def _clean(prices: Optional[Sequence[float]]) -> np.ndarray:
    if prices is None:
        return np.empty(0)
    values = np.asarray(list(prices), dtype=float)
    return values[np.isfinite(values)]


def _window_sizes(n: int) -> np.ndarray:
    """Janelas log-espaçadas entre _MIN_WINDOW e n/2."""
    max_window = n // 2
    if max_window < _MIN_WINDOW:
        return np.empty(0, dtype=int)
    sizes = np.logspace(
        math.log10(_MIN_WINDOW), math.log10(max_window), num=_N_WINDOWS
    )
    return np.unique(np.floor(sizes).astype(int))


def _mean_rescaled_range(series: np.ndarray, size: int) -> float:
    """Média de R/S sobre blocos não sobrepostos de tamanho `size`."""
    chunks = len(series) // size
    if chunks == 0:
        return 0.0
    blocks = series[: chunks * size].reshape(chunks, size)
    deviations = blocks - blocks.mean(axis=1, keepdims=True)
    cumulative = np.cumsum(deviations, axis=1)
    ranges = cumulative.max(axis=1) - cumulative.min(axis=1)
    stds = blocks.std(axis=1)
    valid = stds > 0
    if not valid.any():
        return 0.0
    return float(np.mean(ranges[valid] / stds[valid]))


def calculate_hurst_exponent(prices: Sequence[float]) -> float:
    """
    Estima o expoente de Hurst por rescaled range.

    Args:
        prices: Série de preços (mais antigo → mais recente).

    Returns:
        H em [0, 1]. 0.5 (random walk) com menos de 20 amostras
        ou regressão degenerada.
    """
    values = _clean(prices)
    if len(values) < MIN_SAMPLES_FOR_HURST:
        return 0.5

    # Retornos log quando possível (preços estritamente positivos)
    if np.all(values > 0):
        series = np.diff(np.log(values))
    else:
        series = np.diff(values)

    log_sizes = []
    log_rs = []
    for size in _window_sizes(len(series)):
        rs = _mean_rescaled_range(series, int(size))
        if rs > 0:
            log_sizes.append(math.log(size))
            log_rs.append(math.log(rs))

    if len(log_sizes) < 2:
        return 0.5

    slope = float(np.polyfit(log_sizes, log_rs, 1)[0])
    if not math.isfinite(slope):
        return 0.5
    return max(0.0, min(1.0, slope))


def detect_regime(hurst: float) -> Regime:
    """Classifica o regime a partir de H."""
    if hurst < HURST_MEAN_REVERSION_MAX:
        return Regime.MEAN_REVERSION
    if hurst > HURST_TRENDING_MIN:
        return Regime.TRENDING
    return Regime.RANDOM_WALK


def estimate_ou_parameters(prices: Sequence[float]) -> OUParameters:
    """
    Ajusta um OU discreto por regressão lag-1: x[t+1] = a + b·x[t] + e.

    theta = -ln(b), mu = a / (1 - b), sigma = std(e) / sqrt(1 - b²)
    (desvio estacionário, usado no z-score).

    Sem reversão (b fora de (0, 1)) ou dados insuficientes:
    (média, theta=0, desvio amostral).
    """
    values = _clean(prices)
    if len(values) == 0:
        return OUParameters(mu=0.0, theta=0.0, sigma=0.0)

    fallback = OUParameters(
        mu=float(values.mean()), theta=0.0, sigma=float(values.std())
    )
    if len(values) < 3:
        return fallback

    x = values[:-1]
    y = values[1:]
    if np.var(x) == 0:
        return fallback

    b, a = np.polyfit(x, y, 1)
    if not (0.0 < b < 1.0):
        logger.debug(f"OU sem reversão (b={b:.4f}), usando fallback")
        return fallback

    residuals = y - (a + b * x)
    theta = -math.log(b)
    mu = a / (1.0 - b)
    sigma = float(residuals.std()) / math.sqrt(1.0 - b * b)

    return OUParameters(mu=float(mu), theta=float(theta), sigma=sigma)


def generate_ou_signal(
    price: float, params: OUParameters, entry_z: float = OU_ENTRY_Z
) -> OUSignal:
    """
    Sinal de reversão à média por z-score.

    LONG se z <= -entry_z, SHORT se z >= entry_z, senão direction=None
    (zona neutra, valor válido e não erro).
    """
    if params.sigma <= 0:
        return OUSignal(direction=None, z_score=0.0)

    z_score = (price - params.mu) / params.sigma
    if z_score <= -entry_z:
        return OUSignal(direction=Direction.LONG, z_score=z_score)
    if z_score >= entry_z:
        return OUSignal(direction=Direction.SHORT, z_score=z_score)
    return OUSignal(direction=None, z_score=z_score)
