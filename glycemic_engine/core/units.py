"""Unit conversion and display formatting.

Every rounding rule here is legacy-exact: display strings match what
Nightscout clients show character for character, so prefer adding a
new helper over changing an existing one.
"""

import math
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from glycemic_engine.core.constants import MMOL_TO_MGDL, PUMP_BOLUS_INCREMENT
from glycemic_engine.core.enums import GlucoseUnits

Numeric = float | int | Decimal
NumericInput = Numeric | str | None


def normalize_units(units: str | None) -> GlucoseUnits:
    """Map a free-form units string ("mmol", "mmol/L", "mg/dL") to GlucoseUnits."""
    if units and units.strip().lower().startswith("mmol"):
        return GlucoseUnits.MMOL
    return GlucoseUnits.MGDL


def legacy_round(value: float) -> int:
    """Round half toward positive infinity: 2.5 gives 3 and -2.5 gives -2."""
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def mgdl_to_mmol(mgdl: float) -> float:
    """Convert mg/dL to mmol/L rounded to one decimal."""
    return round(mgdl / MMOL_TO_MGDL, 1)


def mmol_to_mgdl(mmol: float) -> int:
    """Convert mmol/L to whole mg/dL."""
    return round(mmol * MMOL_TO_MGDL)


def mgdl_to_mmol_str(mgdl: float) -> str:
    """Convert mg/dL to a one-decimal mmol/L display string (99 -> "5.5")."""
    return f"{mgdl / MMOL_TO_MGDL:.1f}"


def convert_glucose(value: float, from_units: str | None, to_units: str | None) -> float:
    """Convert a glucose value (or a glucose-per-unit ratio) between units.

    No rounding is applied, so the result is safe to feed back into
    calculations. Identical units return the value unchanged.
    """
    source = normalize_units(from_units)
    target = normalize_units(to_units)
    if source == target:
        return value
    if target == GlucoseUnits.MMOL:
        return value / MMOL_TO_MGDL
    return value * MMOL_TO_MGDL


def scale_mgdl(mgdl: float, units: str | None) -> float:
    """Scale a stored mg/dL reading into display units."""
    if normalize_units(units) == GlucoseUnits.MMOL and mgdl:
        return mgdl_to_mmol(mgdl)
    return float(mgdl)


# ---------------------------------------------------------------------------
# Numeric string formatting
# ---------------------------------------------------------------------------


def parse_numeric(value: NumericInput) -> Decimal | None:
    """Parse a boundary value into a finite Decimal.

    Returns None for anything unparseable: None, booleans, non-numeric
    strings, NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        parsed = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        parsed = Decimal(repr(value))
    else:
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    if not parsed.is_finite():
        return None
    return parsed


def to_fixed(value: float) -> str:
    """Two-decimal string, with zero rendered as a bare "0"."""
    if value == 0:
        return "0"
    return f"{value:.2f}"


def to_rounded_str(value: NumericInput, digits: int) -> str:
    """Round half away from zero at ``digits`` places and print the shortest form.

    ``digits`` may be negative (123.45 at -2 -> "100"). Unparseable input
    yields the "0" sentinel.

    Examples:
        >>> to_rounded_str(3.345, 2)
        '3.35'
        >>> to_rounded_str(-2.47, 1)
        '-2.5'
    """
    parsed = parse_numeric(value)
    if parsed is None:
        return "0"

    rounded = parsed.scaleb(digits).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    result = rounded.scaleb(-digits)
    if result.is_zero():
        return "0"
    return format(result.normalize(), "f")


def round_insulin_to_pump_precision(
    insulin: float, increment: float = PUMP_BOLUS_INCREMENT
) -> float:
    """Round to the pump's delivery increment, ties away from zero (1.23 -> 1.25)."""
    step = Decimal(repr(increment))
    steps = (Decimal(repr(insulin)) / step).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return float(steps * step)


# ---------------------------------------------------------------------------
# Legacy display formatters (default BWP formatter callbacks)
# ---------------------------------------------------------------------------


def round_insulin_for_display_format(
    insulin: float, rounding_style: str = "generic"
) -> str:
    """Format insulin units the way pump screens show them.

    Values are floored to the display step. The "medtronic" style uses 0.1 U steps, or 0.05 U steps at
    or below 0.5 U.
    """
    if insulin == 0:
        return "0"

    if rounding_style == "medtronic":
        step, digits = (0.05, 2) if insulin <= 0.5 else (0.1, 1)
    else:
        step, digits = 0.01, 2

    # round() first to absorb float noise like 1.2 / 0.01 = 119.99999999999999
    floored = math.floor(round(insulin / step, 6)) * step
    return f"{floored:.{digits}f}"


def round_bg_to_display_format(bg: float, units: str | None = None) -> str:
    """Format a glucose value: whole mg/dL, or mmol/L to one decimal."""
    if normalize_units(units) == GlucoseUnits.MMOL:
        text = f"{legacy_round(bg * 10) / 10:.1f}"
        return text.removesuffix(".0")
    return str(legacy_round(bg))


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def merge_input_time(date: str, time: str | None = None) -> int:
    """Combine an ISO date and an optional "HH:MM" time into epoch ms.

    Naive values are taken as UTC.
    """
    text = f"{date}T{time}" if time else date
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp() * 1000)
