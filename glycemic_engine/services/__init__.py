# Calculation services
from glycemic_engine.services.bolus_wizard import (
    BwpSandbox,
    calculate,
    high_snoozed_by_iob,
    notification_level,
)
from glycemic_engine.services.cob import calc_treatment, cob_total
from glycemic_engine.services.statistics import (
    InsufficientDataError,
    analyze_glucose_data,
    calculate_basic_stats,
    calculate_glycemic_variability,
    calculate_multi_period_statistics,
    calculate_time_in_range,
    calculate_treatment_summary,
)
from glycemic_engine.services.trend import (
    calculate_delta,
    calculate_direction,
    get_direction_info,
)

__all__ = [
    "BwpSandbox",
    "calculate",
    "high_snoozed_by_iob",
    "notification_level",
    "calc_treatment",
    "cob_total",
    "InsufficientDataError",
    "analyze_glucose_data",
    "calculate_basic_stats",
    "calculate_glycemic_variability",
    "calculate_multi_period_statistics",
    "calculate_time_in_range",
    "calculate_treatment_summary",
    "calculate_delta",
    "calculate_direction",
    "get_direction_info",
]
