"""Risk & Position-Sizing Engine + analytics."""

from .analytics import (
    PerformanceMetrics,
    ProfitProjection,
    ProjectionPoint,
    calculate_performance_metrics,
    generate_equity_curve,
    generate_profit_projection,
)
from .metrics import (
    DEFAULT_RISK_METRICS,
    calculate_max_drawdown,
    calculate_risk_metrics,
    format_risk_metrics,
)
from .sizing import (
    RiskSizing,
    apply_kelly_mode,
    calculate_kelly_fraction,
    calculate_optimal_f,
    calculate_optimal_position_size,
    calculate_position_for_risk,
    calculate_risk_of_ruin,
    find_zero_ruin_size,
    recommended_kelly_mode,
    trading_edge,
)

__all__ = [
    "DEFAULT_RISK_METRICS",
    "PerformanceMetrics",
    "ProfitProjection",
    "ProjectionPoint",
    "RiskSizing",
    "apply_kelly_mode",
    "calculate_kelly_fraction",
    "calculate_max_drawdown",
    "calculate_optimal_f",
    "calculate_optimal_position_size",
    "calculate_performance_metrics",
    "calculate_position_for_risk",
    "calculate_risk_metrics",
    "calculate_risk_of_ruin",
    "find_zero_ruin_size",
    "format_risk_metrics",
    "generate_equity_curve",
    "generate_profit_projection",
    "recommended_kelly_mode",
    "trading_edge",
]
