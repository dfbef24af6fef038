"""
AQTE v1.0 - Position Sizing
============================

Sizing com rigor matemático:
  - Optimal f (Ralph Vince): grid search do Terminal Wealth Relative
  - Kelly Criterion (Full / Half / Quarter)
  - Risk of Ruin: ((1 - edge) / (1 + edge)) ^ (balance / risco_por_trade)
  - Zero Ruin: RoR <= 0.01%

Nenhuma função levanta exceção em entrada vazia ou degenerada: retornam
defaults conservadores e avisos legíveis.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Union
from warnings import warn

import numpy as np

from ..core.constants import (
    DEFAULT_OPTIMAL_F,
    MAX_OPTIMAL_F,
    MAX_POSITION_FRACTION,
    MAX_RISK_OF_RUIN,
    MIN_POSITION_FRACTION,
    MIN_TRADES_FOR_STATS,
    KellyMode,
)
from ..core.errors import StatisticalInsufficiencyWarning
from ..core.models import PositionSizeResult, RiskMetrics, TradeResult
from ..core.utils import clamp
from .metrics import calculate_risk_metrics

logger = logging.getLogger("Risk.Sizing")

_KELLY_MULTIPLIERS = {
    KellyMode.FULL: 1.0,
    KellyMode.HALF: 0.5,
    KellyMode.QUARTER: 0.25,
}

# Grid de f: 0.01 a 1.00 (inteiros / 100 evitam drift de float)
_F_GRID = np.arange(1, 101) / 100.0


@dataclass
class RiskSizing:
    """Sizing por percentual fixo de risco."""
    position_size: float
    margin: float
    risk_amount: float


# =============================================================================
# OPTIMAL f
# =============================================================================

def calculate_optimal_f(trades: Sequence[TradeResult], balance: float) -> float:
    """
    Optimal f de Ralph Vince.

    f* = argmax TWR(f), TWR(f) = Π(1 + f·(-R_i / maior_perda)), R_i = pnl/balance.
    Candidatos com algum HPR <= 0 são descartados.

    Returns:
        Fração do capital em risco: min(0.25, f*·|maior_perda|).
        Menos de 10 trades, sem perdas ou balance <= 0 → 0.02.
    """
    if len(trades) < MIN_TRADES_FOR_STATS or balance <= 0:
        return DEFAULT_OPTIMAL_F

    returns = np.array([t.pnl for t in trades], dtype=float) / balance
    largest_loss = float(returns.min())
    if largest_loss >= 0:
        return DEFAULT_OPTIMAL_F

    hpr = 1.0 + _F_GRID[:, None] * (-returns[None, :] / largest_loss)
    valid = (hpr > 0).all(axis=1)
    if not valid.any():
        return DEFAULT_OPTIMAL_F

    # log-TWR evita overflow com históricos longos
    log_twr = np.where(valid, np.log(np.where(hpr > 0, hpr, 1.0)).sum(axis=1), -np.inf)
    best_f = float(_F_GRID[int(np.argmax(log_twr))])

    return min(MAX_OPTIMAL_F, best_f * abs(largest_loss))


# =============================================================================
# KELLY
# =============================================================================

def calculate_kelly_fraction(metrics: RiskMetrics) -> float:
    """
    Kelly: f* = (b·p - q) / b, b = avg_win / avg_loss.

    Returns:
        Fração em [0, 1]. 0 se avg_loss == 0 ou win_rate == 0.
    """
    if metrics.avg_loss <= 0 or metrics.win_rate <= 0:
        return 0.0

    b = metrics.avg_win / metrics.avg_loss
    if b <= 0:
        return 0.0
    p = metrics.win_rate
    q = 1 - p

    return clamp((b * p - q) / b, 0.0, 1.0)


def apply_kelly_mode(kelly_fraction: float, mode: Union[KellyMode, str]) -> float:
    """FULL = f, HALF = f/2, QUARTER = f/4. Modo desconhecido → HALF."""
    try:
        mode = KellyMode(mode)
    except ValueError:
        logger.warning(f"Kelly mode desconhecido '{mode}', usando HALF")
        mode = KellyMode.HALF
    return kelly_fraction * _KELLY_MULTIPLIERS[mode]


def recommended_kelly_mode(leverage: float) -> KellyMode:
    """Alavancagem alta sempre em Quarter Kelly."""
    if leverage <= 5:
        return KellyMode.HALF
    return KellyMode.QUARTER


# =============================================================================
# RISK OF RUIN
# =============================================================================

def trading_edge(metrics: RiskMetrics) -> float:
    """edge = (p·avg_win - q·avg_loss) / avg_loss. 0 sem perdas médias."""
    if metrics.avg_loss <= 0:
        return 0.0
    p = metrics.win_rate
    return (p * metrics.avg_win - (1 - p) * metrics.avg_loss) / metrics.avg_loss


def calculate_risk_of_ruin(
    metrics: RiskMetrics, risk_per_trade: float, balance: float
) -> float:
    """
    Probabilidade de ruína em [0, 1].

    edge <= 0 → 1 (ruína certa). Sem perdas médias ou risco <= 0 → 0.
    balance <= 0 → 1 (conta já arruinada).
    """
    if balance <= 0:
        return 1.0
    if metrics.avg_loss <= 0 or risk_per_trade <= 0:
        return 0.0

    edge = trading_edge(metrics)
    if edge <= 0:
        return 1.0
    if edge >= 1:
        return 0.0

    units = balance / risk_per_trade
    ror = math.pow((1 - edge) / (1 + edge), units)
    return clamp(ror, 0.0, 1.0)


def find_zero_ruin_size(
    metrics: RiskMetrics, balance: float, max_ror: float = MAX_RISK_OF_RUIN
) -> float:
    """
    Maior risco por trade com RoR <= max_ror.
    Busca binária (50 iterações) em [0, 0.5·balance].
    """
    if balance <= 0:
        return 0.0

    low = 0.0
    high = balance * 0.5
    safe_size = 0.0

    for _ in range(50):
        mid = (low + high) / 2
        if calculate_risk_of_ruin(metrics, mid, balance) <= max_ror:
            safe_size = mid
            low = mid
        else:
            high = mid

    return safe_size


# =============================================================================
# SIZING
# =============================================================================

def calculate_position_for_risk(
    balance: float,
    risk_percent: float,
    entry_price: float,
    stop_loss_price: float,
    leverage: float,
) -> RiskSizing:
    """
    Sizing por risco fixo: arriscar risk_percent do balance até o SL.

    Exemplo: 10000, 2%, SL a 6% → risco 200, posição 3333.33, margem 333.33 (10x).
    """
    risk_amount = balance * risk_percent
    if entry_price <= 0:
        return RiskSizing(position_size=0.0, margin=0.0, risk_amount=risk_amount)

    stop_loss_percent = abs(entry_price - stop_loss_price) / entry_price
    if stop_loss_percent == 0:
        return RiskSizing(position_size=0.0, margin=0.0, risk_amount=risk_amount)

    position_size = risk_amount / stop_loss_percent
    margin = position_size / leverage if leverage > 0 else position_size
    return RiskSizing(
        position_size=position_size, margin=margin, risk_amount=risk_amount
    )


def _empty_result(warnings: List[str]) -> PositionSizeResult:
    return PositionSizeResult(
        optimal_f=0.0,
        kelly_fraction=0.0,
        risk_of_ruin=1.0,
        safe_position_size=0.0,
        safe_position_percent=0.0,
        leverage_adjusted_size=0.0,
        margin_required=0.0,
        max_loss_amount=0.0,
        is_zero_ruin_safe=False,
        warnings=warnings,
    )


def calculate_optimal_position_size(
    trades: Sequence[TradeResult],
    balance: float,
    entry_price: float,
    stop_loss_price: float,
    leverage: float,
    kelly_mode: Union[KellyMode, str] = KellyMode.HALF,
) -> PositionSizeResult:
    """
    Position size com todas as restrições de risco.

    1. fração = min(Optimal f, Kelly ajustado pelo modo)
    2. risco = balance · fração · SL% · alavancagem
    3. RoR acima do limite Zero Ruin → refaz via find_zero_ruin_size
    4. fração final limitada a [0.5%, 25%] do balance

    Returns:
        PositionSizeResult com avisos (nunca levanta exceção).
    """
    warnings: List[str] = []
    metrics = calculate_risk_metrics(trades)

    if metrics.total_trades < MIN_TRADES_FOR_STATS:
        message = (
            f"Insufficient trade history ({metrics.total_trades}/"
            f"{MIN_TRADES_FOR_STATS}). Using conservative defaults."
        )
        warn(message, StatisticalInsufficiencyWarning, stacklevel=2)
        warnings.append(message)

    if balance <= 0:
        warnings.append("Account balance must be positive. No position allowed.")
        return _empty_result(warnings)

    if leverage <= 0:
        warnings.append(f"Invalid leverage ({leverage}). Assuming 1x.")
        leverage = 1.0

    if entry_price <= 0:
        warnings.append("Invalid entry price. Stop loss distance treated as zero.")
        stop_loss_percent = 0.0
    else:
        stop_loss_percent = abs(entry_price - stop_loss_price) / entry_price
    if stop_loss_percent == 0:
        warnings.append("Stop loss distance is zero. Risk per trade cannot be bounded.")

    optimal_f = calculate_optimal_f(trades, balance)
    kelly_fraction = calculate_kelly_fraction(metrics)
    adjusted_kelly = apply_kelly_mode(kelly_fraction, kelly_mode)

    # Mais conservador entre Optimal f e Kelly
    position_fraction = min(optimal_f, adjusted_kelly)

    # Risco em $ por unidade de fração
    risk_unit = balance * stop_loss_percent * leverage
    risk_of_ruin = calculate_risk_of_ruin(
        metrics, position_fraction * risk_unit, balance
    )

    if risk_of_ruin > MAX_RISK_OF_RUIN:
        safe_risk = find_zero_ruin_size(metrics, balance, MAX_RISK_OF_RUIN)
        position_fraction = safe_risk / risk_unit if risk_unit > 0 else 0.0
        warnings.append("Position size reduced to satisfy Zero Ruin constraint.")

    position_fraction = clamp(
        position_fraction, MIN_POSITION_FRACTION, MAX_POSITION_FRACTION
    )
    risk_amount = position_fraction * risk_unit
    risk_of_ruin = calculate_risk_of_ruin(metrics, risk_amount, balance)
    is_zero_ruin_safe = risk_of_ruin <= MAX_RISK_OF_RUIN

    if trading_edge(metrics) <= 0:
        warnings.append("No positive edge in trade history. Risk of ruin is certain.")
    elif not is_zero_ruin_safe:
        warnings.append("Minimum position size still exceeds the Zero Ruin threshold.")

    if leverage > 10 and kelly_mode == KellyMode.FULL:
        warnings.append(
            "High leverage with Full Kelly is extremely risky. "
            "Consider Half or Quarter Kelly."
        )

    if metrics.profit_factor < 1.2:
        warnings.append("Low profit factor. System edge may be insufficient.")

    if metrics.max_drawdown > 0.3:
        warnings.append("Historical max drawdown exceeds 30%. Exercise caution.")

    safe_position_size = balance * position_fraction

    return PositionSizeResult(
        optimal_f=optimal_f,
        kelly_fraction=kelly_fraction,
        risk_of_ruin=risk_of_ruin,
        safe_position_size=safe_position_size,
        safe_position_percent=position_fraction * 100,
        leverage_adjusted_size=safe_position_size * leverage,
        margin_required=safe_position_size,
        max_loss_amount=safe_position_size * stop_loss_percent * leverage,
        is_zero_ruin_safe=is_zero_ruin_safe,
        warnings=warnings,
    )
