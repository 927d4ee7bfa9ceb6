"""Glucose statistics schemas.

All glucose values are mg/dL. Percentages are 0-100 and durations are
minutes unless a field says otherwise.
"""

from datetime import datetime
from typing import Final, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from glycemic_engine.core.models import Treatment

# Reading interval (minutes) per CGM sensor type
SENSOR_READING_INTERVALS: Final[dict[str, int]] = {
    "GENERIC_1MIN": 1,
    "GENERIC_5MIN": 5,
    "GENERIC_15MIN": 15,
    "DEXCOM_G6": 5,
    "DEXCOM_G7": 5,
    "LIBRE_1MIN": 1,
    "LIBRE_15MIN": 15,
}


class GlucosePercentiles(BaseModel):
    model_config = ConfigDict(frozen=True)

    p5: float = 0.0
    p10: float = 0.0
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    p95: float = 0.0


class BasicGlucoseStats(BaseModel):
    """Descriptive statistics over a set of glucose readings."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    standard_deviation: float = 0.0
    percentiles: GlucosePercentiles = Field(default_factory=GlucosePercentiles)


class AveragedStats(BasicGlucoseStats):
    """Basic statistics for one hour of the day (0-23, UTC)."""

    hour: int = Field(ge=0, le=23)


class GlycemicVariability(BaseModel):
    """Glycemic variability metrics."""

    model_config = ConfigDict(frozen=True)

    coefficient_of_variation: float = 0.0
    standard_deviation: float = 0.0
    mean_amplitude_glycemic_excursions: float = 0.0
    continuous_overlapping_net_glycemic_action: float = 0.0
    average_daily_risk_range: float = 0.0
    lability_index: float = 0.0
    j_index: float = 0.0
    high_blood_glucose_index: float = 0.0
    low_blood_glucose_index: float = 0.0
    glycemic_variability_index: float = 0.0
    patient_glycemic_status: float = 0.0
    estimated_a1c: float = 0.0


class GlycemicThresholds(BaseModel):
    """Band boundaries for time-in-range (mg/dL).

    Bands: severe low (< severe_low), low (< target_bottom), target
    (target_bottom..target_top inclusive), high (<= severe_high) and
    severe high. ``low`` and ``high`` bound the low/high episodes.
    """

    model_config = ConfigDict(frozen=True)

    severe_low: float = 54
    low: float = 70
    target_bottom: float = 70
    target_top: float = 180
    tight_target_bottom: float = 70
    tight_target_top: float = 140
    high: float = 180
    severe_high: float = 250

    @model_validator(mode="after")
    def validate_ordering(self) -> Self:
        """Ensure band boundaries are ordered."""
        if not (
            self.severe_low <= self.target_bottom < self.target_top <= self.severe_high
        ):
            raise ValueError(
                "thresholds must satisfy severe_low <= target_bottom < "
                "target_top <= severe_high"
            )
        if self.tight_target_bottom >= self.tight_target_top:
            raise ValueError("tight_target_bottom must be below tight_target_top")
        if self.low > self.high:
            raise ValueError(f"low ({self.low}) must not exceed high ({self.high})")
        return self


class TimeInRangePercentages(BaseModel):
    model_config = ConfigDict(frozen=True)

    severe_low: float = 0.0
    low: float = 0.0
    target: float = 0.0
    tight_target: float = 0.0
    high: float = 0.0
    severe_high: float = 0.0


class TimeInRangeDurations(BaseModel):
    """Minutes spent in each band."""

    model_config = ConfigDict(frozen=True)

    severe_low: float = 0.0
    low: float = 0.0
    target: float = 0.0
    tight_target: float = 0.0
    high: float = 0.0
    severe_high: float = 0.0


class TimeInRangeEpisodes(BaseModel):
    """Number of contiguous runs beyond each threshold."""

    model_config = ConfigDict(frozen=True)

    severe_low: int = 0
    low: int = 0
    high: int = 0
    severe_high: int = 0


class TimeInRangeMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentages: TimeInRangePercentages = Field(default_factory=TimeInRangePercentages)
    durations: TimeInRangeDurations = Field(default_factory=TimeInRangeDurations)
    episodes: TimeInRangeEpisodes = Field(default_factory=TimeInRangeEpisodes)


class DistributionBin(BaseModel):
    """Histogram bin covering min <= value < max."""

    model_config = ConfigDict(frozen=True)

    range: str
    min: float
    max: float


class DistributionDataPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    range: str
    count: int
    percent: float


class FoodTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    carbs: float = 0.0
    protein: float = 0.0
    fat: float = 0.0


class InsulinTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    bolus: float = 0.0
    basal: float = 0.0


class TreatmentTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    food: FoodTotals = Field(default_factory=FoodTotals)
    insulin: InsulinTotals = Field(default_factory=InsulinTotals)


class TreatmentSummary(BaseModel):
    """Totals across a set of treatments."""

    model_config = ConfigDict(frozen=True)

    totals: TreatmentTotals = Field(default_factory=TreatmentTotals)
    treatment_count: int = 0


class DayData(BaseModel):
    """One day of treatments with its summary and time in range."""

    model_config = ConfigDict(frozen=True)

    date: str
    treatments: list[Treatment] = Field(default_factory=list)
    treatment_summary: TreatmentSummary = Field(default_factory=TreatmentSummary)
    time_in_ranges: TimeInRangeMetrics = Field(default_factory=TimeInRangeMetrics)


class OverallAverages(BaseModel):
    """Per-day averages across a reporting period."""

    model_config = ConfigDict(frozen=True)

    avg_total_daily: float = 0.0
    avg_bolus: float = 0.0
    avg_basal: float = 0.0
    bolus_percentage: float = 0.0
    basal_percentage: float = 0.0
    avg_carbs: float = 0.0
    avg_protein: float = 0.0
    avg_fat: float = 0.0
    avg_time_in_range: float = 0.0
    avg_tight_time_in_range: float = 0.0


class ExtendedAnalysisConfig(BaseModel):
    """Options for the combined glucose analysis."""

    model_config = ConfigDict(frozen=True)

    thresholds: GlycemicThresholds = Field(default_factory=GlycemicThresholds)
    sensor_type: str = "GENERIC_5MIN"
    include_looping_metrics: bool = False
    units: str = "mg/dl"

    @model_validator(mode="after")
    def validate_sensor_type(self) -> Self:
        """Reject sensor types with no known reading interval."""
        if self.sensor_type not in SENSOR_READING_INTERVALS:
            raise ValueError(
                f"Unknown sensor_type {self.sensor_type!r}; expected one of "
                f"{sorted(SENSOR_READING_INTERVALS)}"
            )
        return self

    @property
    def reading_interval_minutes(self) -> int:
        return SENSOR_READING_INTERVALS[self.sensor_type]


class DataGap(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: int  # epoch ms of the reading before the gap
    end: int  # epoch ms of the reading after the gap
    duration: float  # minutes


class GapAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    gaps: list[DataGap] = Field(default_factory=list)
    longest_gap: float = 0.0
    average_gap: float = 0.0


class DataQuality(BaseModel):
    """Completeness and noise of a CGM trace."""

    model_config = ConfigDict(frozen=True)

    total_readings: int = 0
    missing_readings: int = 0
    data_completeness: float = 0.0
    cgm_active_percent: float = 0.0
    gap_analysis: GapAnalysis = Field(default_factory=GapAnalysis)
    noise_level: float = 0.0
    calibration_events: int = 0
    sensor_warmups: int = 0


class AnalysisTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: int = 0
    end: int = 0
    time_of_analysis: int = 0


class GlucoseAnalytics(BaseModel):
    """Combined analysis of a glucose and treatment window."""

    model_config = ConfigDict(frozen=True)

    basic_stats: BasicGlucoseStats = Field(default_factory=BasicGlucoseStats)
    time_in_range: TimeInRangeMetrics = Field(default_factory=TimeInRangeMetrics)
    glycemic_variability: GlycemicVariability | None = None
    data_quality: DataQuality = Field(default_factory=DataQuality)
    time: AnalysisTime = Field(default_factory=AnalysisTime)


class PeriodStatistics(BaseModel):
    """Analysis of a trailing period ending at the evaluation time."""

    model_config = ConfigDict(frozen=True)

    period_days: int
    start_date: datetime
    end_date: datetime
    analytics: GlucoseAnalytics | None = None
    treatment_summary: TreatmentSummary | None = None
    has_sufficient_data: bool = False
    entry_count: int = 0
    treatment_count: int = 0


class MultiPeriodStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    last_day: PeriodStatistics
    last_3_days: PeriodStatistics
    last_week: PeriodStatistics
    last_month: PeriodStatistics
    last_90_days: PeriodStatistics
    last_updated: datetime
