"""Glycemic engine enums."""

from enum import StrEnum, auto


class GlucoseUnits(StrEnum):
    """Display units for glucose values."""

    MGDL = "mg/dl"
    MMOL = "mmol"


class Direction(StrEnum):
    """CGM trend direction.

    Values are the strings devices report, so ``Direction(raw)`` parses
    a known device string. TRIPLE_UP and TRIPLE_DOWN are never reported
    by devices; only calculate_direction produces them.
    """

    NONE = "NONE"  # No direction reported
    TRIPLE_UP = "TripleUp"  # >= 3.5 mg/dL/min
    DOUBLE_UP = "DoubleUp"  # Rising fast (2 to 3.5 mg/dL/min)
    SINGLE_UP = "SingleUp"  # Rising (1 to 2 mg/dL/min)
    FORTY_FIVE_UP = "FortyFiveUp"  # Rising slowly
    FLAT = "Flat"  # Stable (-1/3 to +1/3 mg/dL/min)
    FORTY_FIVE_DOWN = "FortyFiveDown"  # Falling slowly
    SINGLE_DOWN = "SingleDown"  # Falling (-1 to -2 mg/dL/min)
    DOUBLE_DOWN = "DoubleDown"  # Falling fast (-2 to -3.5 mg/dL/min)
    TRIPLE_DOWN = "TripleDown"  # <= -3.5 mg/dL/min
    NOT_COMPUTABLE = "NOT COMPUTABLE"  # Sensor unable to determine
    RATE_OUT_OF_RANGE = "RATE OUT OF RANGE"  # Rate outside sensor range
    CGM_ERROR = "CGM ERROR"  # Sensor error state
    UNKNOWN = "UNKNOWN"  # Unrecognized device string


class CobSource(StrEnum):
    """Origin of a carbs-on-board figure."""

    CARE_PORTAL = "Care Portal"  # Derived from logged treatments
    LOOP = "Loop"
    OPENAPS = "OpenAPS"


class BwpLevel(StrEnum):
    """Bolus wizard preview notification level."""

    none = auto()
    warn = auto()
    urgent = auto()


class ProfileValue(StrEnum):
    """Time-scheduled profile fields, named as stored in profile documents."""

    basal = auto()
    carbratio = auto()
    sens = auto()
    target_low = auto()
    target_high = auto()
