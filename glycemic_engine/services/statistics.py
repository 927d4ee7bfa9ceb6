"""Glucose statistics.

Batch analytics over a window of CGM entries and treatments: basic
statistics, time in range, glycemic variability, estimated A1c,
distribution histograms, hourly averages and treatment summaries.

Every function is a pure function of its input. Readings outside the
physiological range (0, 700) mg/dL are dropped before any statistic
consumes them. Empty input yields zeroed results, except for the
variability metrics, which raise InsufficientDataError because a
variability figure over one point would be misleading.

Key clinical formulas:
- Estimated A1c (ADAG): (mean + 46.7) / 28.7
- J-index: 0.001 x (mean + SD)^2
- LBGI/HBGI (Kovatchev): f = 1.509 x (ln(bg)^1.084 - 5.381), risk = 10 f^2
- PGS: GVI x mean x (1 - fraction in 70-180)
"""

import math
import statistics as pystats
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta

from glycemic_engine.core.constants import (
    ADAG_INTERCEPT,
    ADAG_SLOPE,
    DEFAULT_READING_INTERVAL_MINUTES,
    DISTRIBUTION_BIN_WIDTH_MGDL,
    MAX_PHYSIOLOGICAL_MGDL,
    MIN_PHYSIOLOGICAL_MGDL,
    MMOL_TO_MGDL,
    MS_PER_HOUR,
    MS_PER_MINUTE,
)
from glycemic_engine.core.models import Entry, Treatment
from glycemic_engine.logging_config import correlation_scope, get_logger
from glycemic_engine.schemas.statistics import (
    AnalysisTime,
    AveragedStats,
    BasicGlucoseStats,
    DataGap,
    DataQuality,
    DayData,
    DistributionBin,
    DistributionDataPoint,
    ExtendedAnalysisConfig,
    FoodTotals,
    GapAnalysis,
    GlucoseAnalytics,
    GlucosePercentiles,
    GlycemicThresholds,
    GlycemicVariability,
    InsulinTotals,
    MultiPeriodStatistics,
    OverallAverages,
    PeriodStatistics,
    TimeInRangeDurations,
    TimeInRangeEpisodes,
    TimeInRangeMetrics,
    TimeInRangePercentages,
    TreatmentSummary,
    TreatmentTotals,
)

logger = get_logger(__name__)

# Fraction-in-range band used by PGS (mg/dL, inclusive)
PGS_RANGE_LOW = 70.0
PGS_RANGE_HIGH = 180.0

# Readings closer together than this count toward the lability index
LABILITY_MAX_GAP_MINUTES = 60

# Readings per day at the default interval, used to split ADRR days
READINGS_PER_DAY = 24 * 60 // DEFAULT_READING_INTERVAL_MINUTES

# Minimum readings (one hour at 5-minute intervals) for a period to
# count as having sufficient data
MIN_READINGS_FOR_PERIOD = 12

MULTI_PERIOD_DAYS = {
    "last_day": 1,
    "last_3_days": 3,
    "last_week": 7,
    "last_month": 30,
    "last_90_days": 90,
}

CALIBRATION_ENTRY_TYPE = "cal"
SENSOR_WARMUP_EVENTS = {"sensor start", "sensor change"}


class InsufficientDataError(ValueError):
    """Raised when too few readings exist for a meaningful metric."""


# ---------------------------------------------------------------------------
# Basic statistics
# ---------------------------------------------------------------------------


def _is_physiological(value: float) -> bool:
    return MIN_PHYSIOLOGICAL_MGDL < value < MAX_PHYSIOLOGICAL_MGDL


def extract_glucose_values(entries: Iterable[Entry]) -> list[float]:
    """Entry.glucose_value of each reading in the physiological range."""
    values = []
    for entry in entries:
        value = entry.glucose_value
        if value and _is_physiological(value):
            values.append(float(value))
    return values


def calculate_mean(values: Iterable[float]) -> float:
    """Mean rounded to one decimal; 0 for no values."""
    data = list(values)
    if not data:
        return 0.0
    return round(sum(data) / len(data), 1)


def calculate_percentile(sorted_values: Sequence[float], percentile: float) -> float:
    """Linear-interpolation percentile of an ascending sequence.

    Args:
        sorted_values: Values sorted ascending
        percentile: Percentile, 0-100

    Returns:
        Interpolated value at index percentile/100 x (n - 1); 0 when empty.
    """
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])

    index = percentile / 100 * (len(sorted_values) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return float(sorted_values[lower])
    weight = index - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def _sample_sd(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    return pystats.stdev(values)


def calculate_basic_stats(glucose_values: Iterable[float]) -> BasicGlucoseStats:
    """Count, mean, median, range, sample SD and percentiles."""
    values = sorted(v for v in glucose_values if _is_physiological(v))
    if not values:
        return BasicGlucoseStats()

    return BasicGlucoseStats(
        count=len(values),
        mean=sum(values) / len(values),
        median=calculate_percentile(values, 50),
        min=values[0],
        max=values[-1],
        standard_deviation=_sample_sd(values),
        percentiles=GlucosePercentiles(
            p5=calculate_percentile(values, 5),
            p10=calculate_percentile(values, 10),
            p25=calculate_percentile(values, 25),
            p50=calculate_percentile(values, 50),
            p75=calculate_percentile(values, 75),
            p90=calculate_percentile(values, 90),
            p95=calculate_percentile(values, 95),
        ),
    )


# ---------------------------------------------------------------------------
# Glycemic variability
# ---------------------------------------------------------------------------


def calculate_estimated_a1c(average_glucose: float) -> float:
    """ADAG estimated A1c (%) from mean glucose (mg/dL); 0 for no mean."""
    if average_glucose <= 0:
        return 0.0
    return (average_glucose + ADAG_INTERCEPT) / ADAG_SLOPE


def calculate_estimated_hba1c(values: Iterable[float]) -> str:
    """Estimated A1c as a one-decimal display string ("0" without data)."""
    data = [v for v in values if _is_physiological(v)]
    if not data:
        return "0"
    return f"{calculate_estimated_a1c(sum(data) / len(data)):.1f}"


def _turning_points(values: Sequence[float]) -> list[float]:
    # Collapse plateaus, then keep endpoints and local extrema
    collapsed = [values[0]]
    for value in values[1:]:
        if value != collapsed[-1]:
            collapsed.append(value)
    if len(collapsed) < 3:
        return collapsed

    points = [collapsed[0]]
    for prev, current, nxt in zip(collapsed, collapsed[1:], collapsed[2:]):
        if (current > prev and current > nxt) or (current < prev and current < nxt):
            points.append(current)
    points.append(collapsed[-1])
    return points


def calculate_mage(values: Iterable[float]) -> float:
    """Mean amplitude of glycemic excursions.

    Averages the peak-to-nadir excursions that exceed one standard
    deviation. Returns 0 for fewer than 3 values or when no excursion
    qualifies.
    """
    data = list(values)
    if len(data) < 3:
        return 0.0

    sd = _sample_sd(data)
    points = _turning_points(data)
    excursions = [
        abs(b - a) for a, b in zip(points, points[1:]) if abs(b - a) > sd
    ]
    if not excursions:
        return 0.0
    return sum(excursions) / len(excursions)


def calculate_conga(values: Iterable[float], hours: int = 2) -> float:
    """CONGA-n: SD of differences between readings n hours apart."""
    data = list(values)
    lag = hours * 60 // DEFAULT_READING_INTERVAL_MINUTES
    if len(data) <= lag + 1:
        return 0.0
    differences = [data[i] - data[i - lag] for i in range(lag, len(data))]
    return _sample_sd(differences)


def _bg_risk(value: float) -> float:
    """Signed Kovatchev risk: negative for low risk, positive for high."""
    f = 1.509 * (math.log(value) ** 1.084 - 5.381)
    risk = 10 * f * f
    return -risk if f < 0 else risk


def calculate_lbgi(values: Iterable[float]) -> float:
    """Low blood glucose index."""
    risks = [_bg_risk(v) for v in values if v > 0]
    if not risks:
        return 0.0
    return sum(-r for r in risks if r < 0) / len(risks)


def calculate_hbgi(values: Iterable[float]) -> float:
    """High blood glucose index."""
    risks = [_bg_risk(v) for v in values if v > 0]
    if not risks:
        return 0.0
    return sum(r for r in risks if r > 0) / len(risks)


def calculate_adrr(values: Iterable[float]) -> float:
    """Average daily risk range: mean over days of max low + max high risk."""
    data = [v for v in values if v > 0]
    if not data:
        return 0.0

    daily_ranges = []
    for start in range(0, len(data), READINGS_PER_DAY):
        risks = [_bg_risk(v) for v in data[start : start + READINGS_PER_DAY]]
        max_low = max((-r for r in risks if r < 0), default=0.0)
        max_high = max((r for r in risks if r > 0), default=0.0)
        daily_ranges.append(max_low + max_high)
    return sum(daily_ranges) / len(daily_ranges)


def calculate_j_index(values: Iterable[float], mean: float) -> float:
    data = list(values)
    if not data:
        return 0.0
    return 0.001 * (mean + _sample_sd(data)) ** 2


def _timed_values(entries: Iterable[Entry]) -> list[tuple[int, float]]:
    timed = [(entry.mills, float(entry.glucose_value)) for entry in entries]
    return sorted((t, v) for t, v in timed if _is_physiological(v))


def calculate_lability_index(entries: Iterable[Entry]) -> float:
    """Lability index: mean of (delta mmol/L)^2 per hour between readings.

    Pairs further apart than an hour are skipped.
    """
    timed = _timed_values(entries)
    terms = []
    for (t0, v0), (t1, v1) in zip(timed, timed[1:]):
        gap_minutes = (t1 - t0) / MS_PER_MINUTE
        if gap_minutes <= 0 or gap_minutes > LABILITY_MAX_GAP_MINUTES:
            continue
        delta_mmol = (v1 - v0) / MMOL_TO_MGDL
        terms.append(delta_mmol**2 / (gap_minutes / 60))
    if not terms:
        return 0.0
    return sum(terms) / len(terms)


def calculate_gvi(values: Sequence[float], entries: Iterable[Entry]) -> float:
    """Glycemic variability index: trace length over ideal straight-line length.

    A flat trace scores 1.0. Uses entry timestamps when available,
    otherwise assumes the default reading interval.
    """
    timed = _timed_values(entries)
    if len(timed) >= 2:
        points = [(t / MS_PER_MINUTE, v) for t, v in timed]
    else:
        points = [
            (i * DEFAULT_READING_INTERVAL_MINUTES, v) for i, v in enumerate(values)
        ]
    if len(points) < 2:
        return 0.0

    total = sum(
        math.hypot(t1 - t0, v1 - v0)
        for (t0, v0), (t1, v1) in zip(points, points[1:])
    )
    ideal = math.hypot(points[-1][0] - points[0][0], points[-1][1] - points[0][1])
    if ideal == 0:
        return 0.0
    return total / ideal


def calculate_pgs(values: Iterable[float], gvi: float, mean_glucose: float) -> float:
    """Patient glycemic status: GVI x mean x (1 - fraction in range)."""
    data = list(values)
    if not data:
        return 0.0
    in_range = sum(1 for v in data if PGS_RANGE_LOW <= v <= PGS_RANGE_HIGH)
    return gvi * mean_glucose * (1 - in_range / len(data))


def calculate_glycemic_variability(
    values: Iterable[float], entries: Iterable[Entry] = ()
) -> GlycemicVariability:
    """All variability metrics for a set of readings.

    Args:
        values: Glucose values (mg/dL), in time order
        entries: The same readings as entries, for time-aware metrics

    Raises:
        InsufficientDataError: When fewer than 2 values are given
    """
    data = [v for v in values if _is_physiological(v)]
    if len(data) < 2:
        raise InsufficientDataError(
            "Not enough data points to calculate glycemic variability metrics"
        )

    entries = list(entries)
    mean = sum(data) / len(data)
    sd = _sample_sd(data)
    gvi = calculate_gvi(data, entries)

    return GlycemicVariability(
        coefficient_of_variation=sd / mean * 100,
        standard_deviation=sd,
        mean_amplitude_glycemic_excursions=calculate_mage(data),
        continuous_overlapping_net_glycemic_action=calculate_conga(data),
        average_daily_risk_range=calculate_adrr(data),
        lability_index=calculate_lability_index(entries),
        j_index=calculate_j_index(data, mean),
        high_blood_glucose_index=calculate_hbgi(data),
        low_blood_glucose_index=calculate_lbgi(data),
        glycemic_variability_index=gvi,
        patient_glycemic_status=calculate_pgs(data, gvi, mean),
        estimated_a1c=calculate_estimated_a1c(mean),
    )


# ---------------------------------------------------------------------------
# Time in range and distribution
# ---------------------------------------------------------------------------


def _count_runs(flags: Sequence[bool]) -> int:
    return sum(1 for i, flag in enumerate(flags) if flag and (i == 0 or not flags[i - 1]))


def calculate_time_in_range(
    entries: Iterable[Entry],
    thresholds: GlycemicThresholds | None = None,
    reading_interval_minutes: int = DEFAULT_READING_INTERVAL_MINUTES,
) -> TimeInRangeMetrics:
    """Percentages, minutes and episodes per glucose band."""
    thresholds = thresholds or GlycemicThresholds()
    values = [v for _, v in _timed_values(entries)]
    if not values:
        return TimeInRangeMetrics()

    counts = {
        "severe_low": 0,
        "low": 0,
        "target": 0,
        "tight_target": 0,
        "high": 0,
        "severe_high": 0,
    }
    for value in values:
        if value < thresholds.severe_low:
            counts["severe_low"] += 1
        elif value < thresholds.target_bottom:
            counts["low"] += 1
        elif value <= thresholds.target_top:
            counts["target"] += 1
        elif value <= thresholds.severe_high:
            counts["high"] += 1
        else:
            counts["severe_high"] += 1

        if thresholds.tight_target_bottom <= value <= thresholds.tight_target_top:
            counts["tight_target"] += 1

    total = len(values)
    percentages = {band: count / total * 100 for band, count in counts.items()}
    durations = {band: count * reading_interval_minutes for band, count in counts.items()}

    episodes = TimeInRangeEpisodes(
        severe_low=_count_runs([v < thresholds.severe_low for v in values]),
        low=_count_runs([v < thresholds.low for v in values]),
        high=_count_runs([v > thresholds.high for v in values]),
        severe_high=_count_runs([v > thresholds.severe_high for v in values]),
    )

    return TimeInRangeMetrics(
        percentages=TimeInRangePercentages(**percentages),
        durations=TimeInRangeDurations(**durations),
        episodes=episodes,
    )


def default_distribution_bins(
    width: int = DISTRIBUTION_BIN_WIDTH_MGDL,
) -> list[DistributionBin]:
    """Fixed-width bins covering the physiological range ("70-80", ...)."""
    return [
        DistributionBin(range=f"{low}-{low + width}", min=low, max=low + width)
        for low in range(0, int(MAX_PHYSIOLOGICAL_MGDL), width)
    ]


def calculate_glucose_distribution_from_values(
    glucose_values: Iterable[float],
    bins: Sequence[DistributionBin] | None = None,
) -> list[DistributionDataPoint]:
    """Histogram over ``bins``; only non-empty bins are returned.

    When the bins cover every reading the percentages sum to exactly 100:
    the last non-empty bin takes the remainder.
    """
    values = [v for v in glucose_values if _is_physiological(v)]
    if not values:
        return []

    bins = bins if bins is not None else default_distribution_bins()
    total = len(values)
    counts = []
    for bin_ in bins:
        count = sum(1 for v in values if bin_.min <= v < bin_.max)
        if count:
            counts.append((bin_.range, count))

    percents = [count * 100 / total for _, count in counts]
    if percents and sum(count for _, count in counts) == total:
        percents[-1] = 100 - sum(percents[:-1])

    return [
        DistributionDataPoint(range=range_, count=count, percent=percent)
        for (range_, count), percent in zip(counts, percents, strict=True)
    ]


def calculate_glucose_distribution(
    entries: Iterable[Entry],
    bins: Sequence[DistributionBin] | None = None,
) -> list[DistributionDataPoint]:
    return calculate_glucose_distribution_from_values(
        extract_glucose_values(entries), bins
    )


def calculate_averaged_stats(entries: Iterable[Entry]) -> list[AveragedStats]:
    """Basic statistics per hour of day (UTC); always 24 buckets."""
    by_hour: dict[int, list[float]] = {hour: [] for hour in range(24)}
    for mills, value in _timed_values(entries):
        hour = datetime.fromtimestamp(mills / 1000, tz=UTC).hour
        by_hour[hour].append(value)

    return [
        AveragedStats(hour=hour, **calculate_basic_stats(values).model_dump())
        for hour, values in by_hour.items()
    ]


# ---------------------------------------------------------------------------
# Treatments
# ---------------------------------------------------------------------------


def is_bolus_treatment(treatment: Treatment) -> bool:
    """Bolus-family event types all contain "bolus" (Meal, Snack, Combo...)."""
    return "bolus" in (treatment.event_type or "").lower()


def calculate_treatment_summary(treatments: Iterable[Treatment]) -> TreatmentSummary:
    """Macro-nutrient and insulin totals, split bolus vs basal."""
    carbs = protein = fat = bolus = basal = 0.0
    count = 0
    for treatment in treatments:
        count += 1
        carbs += treatment.carbs or 0
        protein += treatment.protein or 0
        fat += treatment.fat or 0
        if treatment.insulin:
            if is_bolus_treatment(treatment):
                bolus += treatment.insulin
            else:
                basal += treatment.insulin

    return TreatmentSummary(
        totals=TreatmentTotals(
            food=FoodTotals(carbs=carbs, protein=protein, fat=fat),
            insulin=InsulinTotals(bolus=bolus, basal=basal),
        ),
        treatment_count=count,
    )


def get_total_insulin(summary: TreatmentSummary) -> float:
    insulin = summary.totals.insulin
    return insulin.bolus + insulin.basal


def get_bolus_percentage(summary: TreatmentSummary) -> float:
    total = get_total_insulin(summary)
    if total == 0:
        return 0.0
    return summary.totals.insulin.bolus / total * 100


def get_basal_percentage(summary: TreatmentSummary) -> float:
    total = get_total_insulin(summary)
    if total == 0:
        return 0.0
    return summary.totals.insulin.basal / total * 100


def calculate_overall_averages(days: Iterable[DayData]) -> OverallAverages | None:
    """Averages per day across a period; None when there are no days."""
    days = list(days)
    if not days:
        return None

    n = len(days)
    total_bolus = sum(d.treatment_summary.totals.insulin.bolus for d in days)
    total_basal = sum(d.treatment_summary.totals.insulin.basal for d in days)
    total_insulin = total_bolus + total_basal

    return OverallAverages(
        avg_total_daily=total_insulin / n,
        avg_bolus=total_bolus / n,
        avg_basal=total_basal / n,
        bolus_percentage=total_bolus / total_insulin * 100 if total_insulin else 0.0,
        basal_percentage=total_basal / total_insulin * 100 if total_insulin else 0.0,
        avg_carbs=sum(d.treatment_summary.totals.food.carbs for d in days) / n,
        avg_protein=sum(d.treatment_summary.totals.food.protein for d in days) / n,
        avg_fat=sum(d.treatment_summary.totals.food.fat for d in days) / n,
        avg_time_in_range=sum(d.time_in_ranges.percentages.target for d in days) / n,
        avg_tight_time_in_range=sum(
            d.time_in_ranges.percentages.tight_target for d in days
        )
        / n,
    )


def validate_treatment_data(treatment: Treatment) -> bool:
    """Reject treatments without id or time, or with negative amounts."""
    if not treatment.id or treatment.mills is None:
        return False
    if treatment.insulin is not None and treatment.insulin < 0:
        return False
    if treatment.carbs is not None and treatment.carbs < 0:
        return False
    return True


def clean_treatment_data(treatments: Iterable[Treatment]) -> list[Treatment]:
    cleaned = []
    rejected = 0
    for treatment in treatments:
        if validate_treatment_data(treatment):
            cleaned.append(treatment)
        else:
            rejected += 1
    if rejected:
        logger.debug("Dropped invalid treatments", rejected=rejected)
    return cleaned


# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------


def _strip_leading_zero(text: str) -> str:
    if text.startswith("0."):
        return text[1:]
    if text.startswith("-0."):
        return "-" + text[2:]
    return text


def format_insulin_display(value: float) -> str:
    """Two decimals without a leading zero (0.5 -> ".50"); 0 -> "0"."""
    if value == 0:
        return "0"
    return _strip_leading_zero(f"{value:.2f}")


def format_carb_display(value: float) -> str:
    """One decimal without a leading zero (0.5 -> ".5"); 0 -> "0"."""
    if value == 0:
        return "0"
    return _strip_leading_zero(f"{value:.1f}")


def format_percentage_display(value: float) -> str:
    return f"{value:.1f}"


# ---------------------------------------------------------------------------
# Combined analysis
# ---------------------------------------------------------------------------


def assess_data_quality(
    entries: Iterable[Entry],
    treatments: Iterable[Treatment] = (),
    reading_interval_minutes: int = DEFAULT_READING_INTERVAL_MINUTES,
) -> DataQuality:
    """Completeness, gaps, noise and sensor events of a CGM trace."""
    entries = list(entries)
    timed = _timed_values(entries)
    total = len(timed)

    calibrations = sum(1 for e in entries if e.type == CALIBRATION_ENTRY_TYPE)
    warmups = 0
    for treatment in treatments:
        event = (treatment.event_type or "").lower()
        if "calibration" in event:
            calibrations += 1
        elif event in SENSOR_WARMUP_EVENTS:
            warmups += 1

    if total < 2:
        return DataQuality(
            total_readings=total,
            data_completeness=100.0 if total else 0.0,
            cgm_active_percent=100.0 if total else 0.0,
            calibration_events=calibrations,
            sensor_warmups=warmups,
        )

    interval_ms = reading_interval_minutes * MS_PER_MINUTE
    span_ms = timed[-1][0] - timed[0][0]
    expected = span_ms // interval_ms + 1
    missing = max(expected - total, 0)

    gaps = [
        DataGap(start=t0, end=t1, duration=(t1 - t0) / MS_PER_MINUTE)
        for (t0, _), (t1, _) in zip(timed, timed[1:])
        if t1 - t0 > 2 * interval_ms
    ]
    gap_minutes = sum(gap.duration for gap in gaps)
    span_minutes = span_ms / MS_PER_MINUTE
    active = 100.0 if span_minutes == 0 else (1 - gap_minutes / span_minutes) * 100

    values = [v for _, v in timed]
    second_differences = [
        abs(values[i + 1] - 2 * values[i] + values[i - 1])
        for i in range(1, len(values) - 1)
    ]
    noise = (
        sum(second_differences) / len(second_differences) if second_differences else 0.0
    )

    return DataQuality(
        total_readings=total,
        missing_readings=missing,
        data_completeness=min(total / expected * 100, 100.0),
        cgm_active_percent=max(active, 0.0),
        gap_analysis=GapAnalysis(
            gaps=gaps,
            longest_gap=max((gap.duration for gap in gaps), default=0.0),
            average_gap=gap_minutes / len(gaps) if gaps else 0.0,
        ),
        noise_level=noise,
        calibration_events=calibrations,
        sensor_warmups=warmups,
    )


@correlation_scope()
def analyze_glucose_data(
    entries: Iterable[Entry],
    treatments: Iterable[Treatment],
    config: ExtendedAnalysisConfig | None = None,
    now: int | None = None,
) -> GlucoseAnalytics:
    """Basic stats, time in range, variability and data quality in one pass.

    Never raises for sparse input: variability is None below 2 readings.
    """
    config = config or ExtendedAnalysisConfig()
    entries = sorted(entries, key=lambda e: e.mills)
    treatments = list(treatments)
    values = [v for _, v in _timed_values(entries)]
    interval = config.reading_interval_minutes

    variability = None
    if len(values) >= 2:
        variability = calculate_glycemic_variability(values, entries)
    else:
        logger.debug("Variability skipped, too few readings", readings=len(values))

    if now is None:
        now = int(datetime.now(UTC).timestamp() * 1000)

    return GlucoseAnalytics(
        basic_stats=calculate_basic_stats(values),
        time_in_range=calculate_time_in_range(entries, config.thresholds, interval),
        glycemic_variability=variability,
        data_quality=assess_data_quality(entries, treatments, interval),
        time=AnalysisTime(
            start=entries[0].mills if entries else 0,
            end=entries[-1].mills if entries else 0,
            time_of_analysis=now,
        ),
    )


@correlation_scope()
def calculate_multi_period_statistics(
    entries: Iterable[Entry],
    treatments: Iterable[Treatment],
    now: datetime | None = None,
    config: ExtendedAnalysisConfig | None = None,
) -> MultiPeriodStatistics:
    """Analyses for the trailing day, 3 days, week, 30 days and 90 days."""
    now = now or datetime.now(UTC)
    end_ms = int(now.timestamp() * 1000)
    entries = list(entries)
    treatments = list(treatments)

    periods = {}
    for name, days in MULTI_PERIOD_DAYS.items():
        start = now - timedelta(days=days)
        start_ms = end_ms - days * 24 * MS_PER_HOUR
        period_entries = [e for e in entries if start_ms <= e.mills <= end_ms]
        period_treatments = [
            t for t in treatments if t.mills is not None and start_ms <= t.mills <= end_ms
        ]
        periods[name] = PeriodStatistics(
            period_days=days,
            start_date=start,
            end_date=now,
            analytics=(
                analyze_glucose_data(period_entries, period_treatments, config, end_ms)
                if period_entries
                else None
            ),
            treatment_summary=calculate_treatment_summary(period_treatments),
            has_sufficient_data=len(period_entries) >= MIN_READINGS_FOR_PERIOD,
            entry_count=len(period_entries),
            treatment_count=len(period_treatments),
        )

    return MultiPeriodStatistics(**periods, last_updated=now)
