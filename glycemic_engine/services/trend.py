"""Trend direction and glucose delta.

Direction glyphs, slope classification and the 5-minute delta shown
next to the current reading. Deltas over long gaps are interpolated
back to a 5-minute equivalent so a missed reading does not inflate the
displayed rate of change.
"""

from collections.abc import Sequence

from glycemic_engine.core.constants import (
    DELTA_INTERPOLATION_THRESHOLD_MINUTES,
    DELTA_INTERPOLATION_WINDOW_MINUTES,
    DELTA_MMOL_FACTOR,
    MS_PER_MINUTE,
)
from glycemic_engine.core.enums import Direction, GlucoseUnits
from glycemic_engine.core.models import DeltaResult, DirectionInfo, Entry
from glycemic_engine.core.units import legacy_round, normalize_units
from glycemic_engine.logging_config import get_logger

logger = get_logger(__name__)

DIRECTION_GLYPHS: dict[Direction, str] = {
    Direction.NONE: "⇼",
    Direction.TRIPLE_UP: "⤊",
    Direction.DOUBLE_UP: "⇈",
    Direction.SINGLE_UP: "↑",
    Direction.FORTY_FIVE_UP: "↗",
    Direction.FLAT: "→",
    Direction.FORTY_FIVE_DOWN: "↘",
    Direction.SINGLE_DOWN: "↓",
    Direction.DOUBLE_DOWN: "⇊",
    Direction.TRIPLE_DOWN: "⤋",
    Direction.NOT_COMPUTABLE: "-",
    Direction.RATE_OUT_OF_RANGE: "⇕",
    Direction.CGM_ERROR: "✖",
    Direction.UNKNOWN: "-",
}

DIRECTION_DISPLAY: dict[Direction, str] = {
    Direction.NONE: "No direction",
    Direction.TRIPLE_UP: "Rising very fast",
    Direction.DOUBLE_UP: "Rising fast",
    Direction.SINGLE_UP: "Rising",
    Direction.FORTY_FIVE_UP: "Rising slowly",
    Direction.FLAT: "Stable",
    Direction.FORTY_FIVE_DOWN: "Falling slowly",
    Direction.SINGLE_DOWN: "Falling",
    Direction.DOUBLE_DOWN: "Falling fast",
    Direction.TRIPLE_DOWN: "Falling very fast",
    Direction.NOT_COMPUTABLE: "Not computable",
    Direction.RATE_OUT_OF_RANGE: "Rate out of range",
    Direction.CGM_ERROR: "CGM error",
    Direction.UNKNOWN: "Unknown",
}

# (lower bound in mg/dL/min, inclusive?, direction), evaluated top down
_SLOPE_THRESHOLDS: tuple[tuple[float, bool, Direction], ...] = (
    (3.5, True, Direction.TRIPLE_UP),
    (2.0, True, Direction.DOUBLE_UP),
    (1.0, True, Direction.SINGLE_UP),
    (1 / 3, True, Direction.FORTY_FIVE_UP),
    (-1 / 3, False, Direction.FLAT),
    (-1.0, False, Direction.FORTY_FIVE_DOWN),
    (-2.0, False, Direction.SINGLE_DOWN),
    (-3.5, False, Direction.DOUBLE_DOWN),
)


def parse_direction(raw: str | None) -> Direction:
    """Parse a device direction string.

    Missing values map to NONE; strings no device table knows map to
    UNKNOWN rather than being guessed.
    """
    if not raw:
        return Direction.NONE
    try:
        return Direction(raw)
    except ValueError:
        logger.debug("Unrecognized direction string", direction=raw)
        return Direction.UNKNOWN


def direction_to_char(direction: Direction) -> str:
    return DIRECTION_GLYPHS.get(direction, DIRECTION_GLYPHS[Direction.UNKNOWN])


def char_to_entity(char: str | None) -> str:
    """HTML numeric entity for the first character ("→" -> "&#8594;")."""
    if not char:
        return ""
    return f"&#{ord(char[0])};"


def get_direction_info(entry: Entry | None) -> DirectionInfo:
    """Glyph, HTML entity and label for an entry's reported direction."""
    if entry is None:
        return DirectionInfo()

    direction = parse_direction(entry.direction)
    label = direction_to_char(direction)
    return DirectionInfo(
        value=direction,
        label=label,
        entity=char_to_entity(label),
        display=DIRECTION_DISPLAY[direction],
    )


def calculate_direction(current: float, previous: float, minutes: float) -> Direction:
    """Classify the slope between two readings.

    Args:
        current: Current glucose (mg/dL)
        previous: Previous glucose (mg/dL)
        minutes: Minutes between the two readings

    Returns:
        Direction for the slope in mg/dL per minute; NONE when the
        interval is not positive.
    """
    if minutes <= 0:
        return Direction.NONE

    slope = (current - previous) / minutes
    for bound, inclusive, direction in _SLOPE_THRESHOLDS:
        if slope > bound or (inclusive and slope == bound):
            return direction
    return Direction.TRIPLE_DOWN


def calculate_delta(
    entries: Sequence[Entry], units: str | None = GlucoseUnits.MGDL
) -> DeltaResult | None:
    """Delta between the two most recent entries.

    Returns None when fewer than two entries are given or either of the
    two latest readings has no glucose value.
    """
    if len(entries) < 2:
        return None

    recent, previous = sorted(entries, key=lambda e: e.mills, reverse=True)[:2]
    recent_value = recent.glucose_value
    previous_value = previous.glucose_value
    if not recent_value or not previous_value:
        logger.debug(
            "Delta skipped, missing glucose value",
            recent_mills=recent.mills,
            previous_mills=previous.mills,
        )
        return None

    absolute = recent_value - previous_value
    elapsed_mins = (recent.mills - previous.mills) / MS_PER_MINUTE
    interpolated = elapsed_mins > DELTA_INTERPOLATION_THRESHOLD_MINUTES

    if interpolated:
        mean5_mins_ago = (
            recent_value
            - (recent_value - previous_value)
            / elapsed_mins
            * DELTA_INTERPOLATION_WINDOW_MINUTES
        )
    else:
        mean5_mins_ago = previous_value

    mgdl = legacy_round(recent_value - mean5_mins_ago)

    if normalize_units(units) == GlucoseUnits.MMOL:
        scaled = (
            legacy_round(
                (recent_value / DELTA_MMOL_FACTOR - mean5_mins_ago / DELTA_MMOL_FACTOR)
                * 10
            )
            / 10
        )
        display = f"{scaled:+.1f}" if scaled != 0 else "+0.0"
    else:
        scaled = mgdl
        display = f"{mgdl:+d}"

    return DeltaResult(
        absolute=absolute,
        elapsed_mins=elapsed_mins,
        interpolated=interpolated,
        mean5_mins_ago=mean5_mins_ago,
        mgdl=mgdl,
        scaled=scaled,
        display=display,
        previous=previous,
        current=recent,
        times={"recent": recent.mills, "previous": previous.mills},
    )
