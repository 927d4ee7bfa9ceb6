"""Glycemic engine clinical and legacy-parity constants.

Values marked "legacy" must not be changed without re-validating the
golden-vector regression tests: they reproduce Nightscout calculations
bit for bit, quirks included.
"""

from typing import Final

# Unit conversion: mg/dL per mmol/L, from the molar mass of glucose
# (180.156 g/mol). Used for every conversion except the delta display.
MMOL_TO_MGDL: Final[float] = 18.01559

# Legacy: the delta display scales mg/dL to mmol/L with a plain 18.
DELTA_MMOL_FACTOR: Final[float] = 18.0

# Milliseconds per minute / hour
MS_PER_MINUTE: Final[int] = 60_000
MS_PER_HOUR: Final[int] = 3_600_000

# CGM freshness: a reading older than this (minutes) is not current.
# 15 min = 3x the 5-minute CGM reading interval.
CGM_FRESHNESS_MAX_MINUTES: Final[int] = 15

# Lowest meaningful sensor value (mg/dL). Below this CGMs report
# error codes rather than glucose.
MIN_VALID_SGV_MGDL: Final[int] = 39

# Delta: gaps longer than this (minutes) are interpolated back to a
# 5-minute equivalent.
DELTA_INTERPOLATION_THRESHOLD_MINUTES: Final[int] = 9
DELTA_INTERPOLATION_WINDOW_MINUTES: Final[int] = 5

# COB: carbs are held for this many minutes before absorption starts.
CARB_ABSORPTION_DELAY_MINUTES: Final[int] = 20

# Legacy: insulin activity scaling used to extend carb decay while
# insulin is active.
LIVER_SENS_RATIO: Final[float] = 8.0

# Legacy: decays-in horizon (hours) below which insulin activity is
# no longer consulted.
COB_ACTIVITY_HORIZON_HOURS: Final[float] = -10.0

# Per-treatment absorption adjustments. >= 20 g fat slows gastric
# emptying enough to roughly halve the absorption rate; fast-acting
# carbs (glucose tabs, juice) absorb about twice as fast.
HIGH_FAT_THRESHOLD_GRAMS: Final[float] = 20.0
HIGH_FAT_RATE_MULTIPLIER: Final[float] = 0.5
FAST_CARB_RATE_MULTIPLIER: Final[float] = 2.0
FAST_CARB_KEYWORDS: Final[tuple[str, ...]] = ("glucose", "tablet", "juice", "dextrose")

# High-glucose snooze fallback when no profile target is available.
# 180 mg/dL is the conventional top of the target range.
DEFAULT_HIGH_THRESHOLD_MGDL: Final[float] = 180.0

# Statistics: physiologically valid sensor range (exclusive bounds).
MIN_PHYSIOLOGICAL_MGDL: Final[float] = 0.0
MAX_PHYSIOLOGICAL_MGDL: Final[float] = 700.0

# Default CGM reading interval (minutes) for duration and gap math.
DEFAULT_READING_INTERVAL_MINUTES: Final[int] = 5

# Distribution histogram bin width (mg/dL).
DISTRIBUTION_BIN_WIDTH_MGDL: Final[int] = 10

# ADAG estimated A1c: A1c = (mean + 46.7) / 28.7
ADAG_INTERCEPT: Final[float] = 46.7
ADAG_SLOPE: Final[float] = 28.7

# Pump delivery increment (units)
PUMP_BOLUS_INCREMENT: Final[float] = 0.05
