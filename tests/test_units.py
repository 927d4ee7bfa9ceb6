"""Tests for unit conversion and legacy display formatting."""

from decimal import Decimal

import pytest

from glycemic_engine.core.enums import GlucoseUnits
from glycemic_engine.core.units import (
    convert_glucose,
    legacy_round,
    merge_input_time,
    mgdl_to_mmol,
    mgdl_to_mmol_str,
    mmol_to_mgdl,
    normalize_units,
    parse_numeric,
    round_bg_to_display_format,
    round_insulin_for_display_format,
    round_insulin_to_pump_precision,
    scale_mgdl,
    to_fixed,
    to_rounded_str,
)


class TestNormalizeUnits:
    """Tests for units string parsing."""

    @pytest.mark.parametrize("raw", ["mmol", "mmol/L", "MMOL/l", " mmol "])
    def test_mmol_variants(self, raw):
        assert normalize_units(raw) == GlucoseUnits.MMOL

    @pytest.mark.parametrize("raw", ["mg/dl", "mg/dL", "", None, "bogus"])
    def test_everything_else_is_mgdl(self, raw):
        assert normalize_units(raw) == GlucoseUnits.MGDL


class TestLegacyRound:
    """Half-way values round toward positive infinity."""

    def test_positive_half_rounds_up(self):
        assert legacy_round(2.5) == 3
        assert legacy_round(0.5) == 1

    def test_negative_half_rounds_toward_zero(self):
        assert legacy_round(-2.5) == -2
        assert legacy_round(-0.5) == 0

    def test_non_half_values(self):
        assert legacy_round(2.4) == 2
        assert legacy_round(-2.6) == -3


class TestConversion:
    """Tests for mg/dL <-> mmol/L conversion."""

    def test_mgdl_to_mmol_rounds_to_one_decimal(self):
        assert mgdl_to_mmol(180) == 10.0
        assert mgdl_to_mmol(99) == 5.5

    def test_mmol_to_mgdl_is_whole(self):
        assert mmol_to_mgdl(10.0) == 180
        assert mmol_to_mgdl(5.5) == 99

    def test_mgdl_to_mmol_str(self):
        assert mgdl_to_mmol_str(99) == "5.5"
        assert mgdl_to_mmol_str(180) == "10.0"

    def test_convert_glucose_same_units_is_identity(self):
        assert convert_glucose(123.4, "mg/dl", "mg/dL") == 123.4

    def test_convert_glucose_is_unrounded(self):
        assert convert_glucose(100, "mg/dl", "mmol") == pytest.approx(100 / 18.01559)
        assert convert_glucose(5, "mmol", "mg/dl") == pytest.approx(5 * 18.01559)

    def test_scale_mgdl(self):
        assert scale_mgdl(180, "mmol") == 10.0
        assert scale_mgdl(180, "mg/dl") == 180.0

    def test_scale_mgdl_zero_stays_zero(self):
        assert scale_mgdl(0, "mmol") == 0.0


class TestNumericFormatting:
    """Tests for boundary parsing and rounded string output."""

    @pytest.mark.parametrize(
        "raw", [None, True, "abc", float("nan"), float("inf"), "Infinity"]
    )
    def test_parse_numeric_rejects(self, raw):
        assert parse_numeric(raw) is None

    def test_parse_numeric_accepts(self):
        assert parse_numeric("1.25") == Decimal("1.25")
        assert parse_numeric(3) == Decimal(3)
        assert parse_numeric(0.1) == Decimal("0.1")

    def test_to_fixed(self):
        assert to_fixed(0) == "0"
        assert to_fixed(1.5) == "1.50"

    def test_to_rounded_str_half_away_from_zero(self):
        assert to_rounded_str(3.345, 2) == "3.35"
        assert to_rounded_str(-2.47, 1) == "-2.5"
        assert to_rounded_str(2.5, 0) == "3"

    def test_to_rounded_str_trims_trailing_zeros(self):
        assert to_rounded_str(1.5, 2) == "1.5"
        assert to_rounded_str(2.0, 2) == "2"

    def test_to_rounded_str_negative_digits(self):
        assert to_rounded_str(123.45, -2) == "100"

    def test_to_rounded_str_zero_and_unparseable(self):
        assert to_rounded_str(0.0001, 2) == "0"
        assert to_rounded_str("n/a", 2) == "0"
        assert to_rounded_str(None, 2) == "0"


class TestPumpPrecision:
    """Insulin rounds to the nearest 0.05 U, ties away from zero."""

    def test_small_doses(self):
        assert round_insulin_to_pump_precision(0.03) == pytest.approx(0.05)
        assert round_insulin_to_pump_precision(0.08) == pytest.approx(0.10)

    def test_tie_rounds_up(self):
        assert round_insulin_to_pump_precision(1.225) == pytest.approx(1.25)

    def test_regular_dose(self):
        assert round_insulin_to_pump_precision(1.23) == pytest.approx(1.25)
        assert round_insulin_to_pump_precision(1.22) == pytest.approx(1.20)

    def test_custom_increment(self):
        assert round_insulin_to_pump_precision(1.26, increment=0.1) == pytest.approx(1.3)


class TestInsulinDisplay:
    """Tests for the default insulin display formatter."""

    def test_zero(self):
        assert round_insulin_for_display_format(0) == "0"

    def test_generic_floors_to_hundredths(self):
        assert round_insulin_for_display_format(1.2) == "1.20"
        assert round_insulin_for_display_format(1.239) == "1.23"
        assert round_insulin_for_display_format(-1) == "-1.00"

    def test_generic_negative_floors_away_from_zero(self):
        assert round_insulin_for_display_format(-0.0611) == "-0.07"

    def test_medtronic_style(self):
        assert round_insulin_for_display_format(0.47, "medtronic") == "0.45"
        assert round_insulin_for_display_format(1.26, "medtronic") == "1.2"


class TestBgDisplay:
    """Tests for the default glucose display formatter."""

    def test_mgdl_is_whole(self):
        assert round_bg_to_display_format(50) == "50"
        assert round_bg_to_display_format(49.5, "mg/dl") == "50"

    def test_mmol_one_decimal(self):
        assert round_bg_to_display_format(5.56, "mmol") == "5.6"

    def test_mmol_drops_trailing_zero(self):
        assert round_bg_to_display_format(5.0, "mmol") == "5"


class TestMergeInputTime:
    """Tests for date/time merging."""

    def test_date_and_time(self):
        assert merge_input_time("1970-01-02", "00:00") == 86_400_000

    def test_naive_is_utc(self):
        assert merge_input_time("1970-01-01", "00:01") == 60_000

    def test_explicit_zone(self):
        assert merge_input_time("1970-01-01T01:00:00+01:00") == 0
