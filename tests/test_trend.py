"""Tests for trend direction and glucose delta."""

import pytest

from glycemic_engine.core.enums import Direction
from glycemic_engine.core.models import DirectionInfo, Entry
from glycemic_engine.services.trend import (
    calculate_delta,
    calculate_direction,
    char_to_entity,
    direction_to_char,
    get_direction_info,
    parse_direction,
)

NOW = 1_432_865_028_827
MINUTE_MS = 60_000


def _entry(minutes_ago: float, mgdl: int = 0, sgv: float | None = None, **kwargs):
    return Entry(
        mills=NOW - int(minutes_ago * MINUTE_MS), mgdl=mgdl, sgv=sgv, **kwargs
    )


class TestDirectionInfo:
    """Tests for mapping device direction strings to display info."""

    def test_flat(self):
        info = get_direction_info(_entry(0, 100, direction="Flat"))
        assert info.value == Direction.FLAT
        assert info.label == "→"
        assert info.entity == "&#8594;"
        assert info.display == "Stable"

    def test_double_up(self):
        info = get_direction_info(_entry(0, 100, direction="DoubleUp"))
        assert info.value == Direction.DOUBLE_UP
        assert info.label == "⇈"

    def test_not_computable(self):
        info = get_direction_info(_entry(0, 100, direction="NOT COMPUTABLE"))
        assert info.value == Direction.NOT_COMPUTABLE
        assert info.label == "-"

    def test_missing_direction_is_none(self):
        info = get_direction_info(_entry(0, 100))
        assert info.value == Direction.NONE
        assert info.label == "⇼"

    def test_unknown_string(self):
        info = get_direction_info(_entry(0, 100, direction="Sideways"))
        assert info.value == Direction.UNKNOWN

    def test_no_entry(self):
        assert get_direction_info(None) == DirectionInfo()

    def test_parse_direction(self):
        assert parse_direction("") == Direction.NONE
        assert parse_direction(None) == Direction.NONE
        assert parse_direction("SingleDown") == Direction.SINGLE_DOWN

    def test_glyph_and_entity(self):
        assert direction_to_char(Direction.SINGLE_UP) == "↑"
        assert char_to_entity("↑") == "&#8593;"
        assert char_to_entity("") == ""


class TestCalculateDirection:
    """Slope classification in mg/dL per minute."""

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (20, Direction.TRIPLE_UP),  # 4.0
            (17.5, Direction.TRIPLE_UP),  # 3.5, inclusive
            (15, Direction.DOUBLE_UP),  # 3.0
            (10, Direction.DOUBLE_UP),  # 2.0, inclusive
            (5, Direction.SINGLE_UP),  # 1.0, inclusive
            (2.5, Direction.FORTY_FIVE_UP),  # 0.5
            (0, Direction.FLAT),
            (-1, Direction.FLAT),  # -0.2
            (-2.5, Direction.FORTY_FIVE_DOWN),  # -0.5
            (-5, Direction.SINGLE_DOWN),  # -1.0
            (-7.5, Direction.SINGLE_DOWN),  # -1.5
            (-10, Direction.DOUBLE_DOWN),  # -2.0
            (-15, Direction.DOUBLE_DOWN),  # -3.0
            (-17.5, Direction.TRIPLE_DOWN),  # -3.5
            (-25, Direction.TRIPLE_DOWN),  # -5.0
        ],
    )
    def test_slope_bands(self, delta, expected):
        assert calculate_direction(100 + delta, 100, 5) == expected

    def test_monotonic_in_slope(self):
        order = [
            Direction.TRIPLE_DOWN,
            Direction.DOUBLE_DOWN,
            Direction.SINGLE_DOWN,
            Direction.FORTY_FIVE_DOWN,
            Direction.FLAT,
            Direction.FORTY_FIVE_UP,
            Direction.SINGLE_UP,
            Direction.DOUBLE_UP,
            Direction.TRIPLE_UP,
        ]
        edges = [1 / 3, 1.0, 2.0, 3.5]
        slopes = sorted(
            {i / 12 for i in range(-60, 61)} | set(edges) | {-e for e in edges}
        )

        ranks = [order.index(calculate_direction(slope, 0, 1)) for slope in slopes]

        assert ranks == sorted(ranks)
        assert calculate_direction(1 / 3, 0, 1) == Direction.FORTY_FIVE_UP
        assert calculate_direction(-1 / 3, 0, 1) == Direction.FORTY_FIVE_DOWN

    def test_non_positive_interval(self):
        assert calculate_direction(120, 100, 0) == Direction.NONE
        assert calculate_direction(120, 100, -5) == Direction.NONE


class TestCalculateDelta:
    """Tests for the 5-minute delta."""

    def test_requires_two_entries(self):
        assert calculate_delta([]) is None
        assert calculate_delta([_entry(0, 100)]) is None

    def test_simple_mgdl_delta(self):
        delta = calculate_delta([_entry(5, 100), _entry(0, 105)], "mg/dl")
        assert delta.mgdl == 5
        assert delta.scaled == 5
        assert delta.display == "+5"
        assert delta.interpolated is False
        assert delta.elapsed_mins == pytest.approx(5.0)

    def test_negative_display(self):
        delta = calculate_delta([_entry(5, 110), _entry(0, 100)])
        assert delta.mgdl == -10
        assert delta.display == "-10"

    def test_zero_display(self):
        delta = calculate_delta([_entry(5, 100), _entry(0, 100)])
        assert delta.display == "+0"

    def test_uses_two_most_recent_in_any_order(self):
        entries = [_entry(0, 120), _entry(10, 90), _entry(5, 110)]
        delta = calculate_delta(entries)
        assert delta.mgdl == 10
        assert delta.current.mgdl == 120
        assert delta.previous.mgdl == 110

    def test_interpolated_over_long_gap(self):
        delta = calculate_delta([_entry(11, 100), _entry(0, 110)])
        expected_mean5 = 110 - (110 - 100) / 11 * 5
        assert delta.interpolated is True
        assert delta.elapsed_mins == pytest.approx(11.0)
        assert delta.mean5_mins_ago == pytest.approx(expected_mean5)
        assert delta.mgdl == 5  # 4.545 rounds to 5
        assert delta.absolute == 10

    def test_nine_minutes_is_not_interpolated(self):
        delta = calculate_delta([_entry(9, 100), _entry(0, 110)])
        assert delta.interpolated is False
        assert delta.mgdl == 10

    def test_mmol_uses_factor_18(self):
        delta = calculate_delta([_entry(5, 180), _entry(0, 198)], "mmol")
        assert delta.mgdl == 18
        assert delta.scaled == pytest.approx(1.0)
        assert delta.display == "+1.0"

    def test_mmol_negative(self):
        delta = calculate_delta([_entry(5, 198), _entry(0, 180)], "mmol")
        assert delta.display == "-1.0"

    def test_mmol_zero(self):
        delta = calculate_delta([_entry(5, 100), _entry(0, 100)], "mmol")
        assert delta.display == "+0.0"

    def test_sgv_fallback(self):
        delta = calculate_delta([_entry(5, sgv=100), _entry(0, sgv=104)])
        assert delta.mgdl == 4

    def test_missing_value_returns_none(self):
        assert calculate_delta([_entry(5, 100), _entry(0)]) is None

    def test_times(self):
        previous, recent = _entry(5, 100), _entry(0, 105)
        delta = calculate_delta([previous, recent])
        assert delta.times == {"recent": recent.mills, "previous": previous.mills}
