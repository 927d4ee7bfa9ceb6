"""Tests for therapy profile lookup."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from glycemic_engine.config import Settings
from glycemic_engine.core.enums import ProfileValue
from glycemic_engine.core.models import ProfileData, ProfileDocument, TimeValue, Treatment
from glycemic_engine.core.profile import (
    DefaultProfile,
    IobProvider,
    ProfileProvider,
    ProfileStore,
    seconds_from_midnight,
    value_at,
)

MINUTE_MS = 60_000


def _mills(hour: int, minute: int = 0, day: int = 1) -> int:
    return int(datetime(2024, 3, day, hour, minute, tzinfo=UTC).timestamp() * 1000)


def _schedule(*slots: tuple[str, float]) -> list[TimeValue]:
    return [TimeValue(time=time, value=value) for time, value in slots]


def _profile(**overrides) -> ProfileData:
    values = {
        "dia": 4.0,
        "carbs_hr": 25.0,
        "timezone": "UTC",
        "units": "mg/dl",
        "basal": _schedule(("00:00", 0.8), ("06:00", 1.2), ("22:00", 0.9)),
        "carbratio": _schedule(("00:00", 12.0), ("11:00", 10.0)),
        "sens": _schedule(("00:00", 60.0), ("12:00", 45.0)),
        "target_low": _schedule(("00:00", 90.0)),
        "target_high": _schedule(("00:00", 140.0)),
    }
    values.update(overrides)
    return ProfileData(**values)


def _document(start: int = 0, **store: ProfileData) -> ProfileDocument:
    return ProfileDocument(
        mills=start,
        default_profile="Default",
        store=store or {"Default": _profile()},
    )


class TestDefaultProfile:
    """Fallback provider used when no profile is loaded."""

    def test_defaults_from_settings(self):
        profile = DefaultProfile()
        assert profile.has_data() is False
        assert profile.get_carb_absorption_rate(0) == 30
        assert profile.get_sensitivity(0) == 95
        assert profile.get_carb_ratio(0) == 18
        assert profile.get_units(0) is None

    def test_custom_config(self):
        profile = DefaultProfile(Settings(default_sensitivity=40, default_basal=0.7))
        assert profile.get_sensitivity(0) == 40
        assert profile.get_basal_rate(0) == 0.7

    def test_satisfies_protocol(self):
        assert isinstance(DefaultProfile(), ProfileProvider)
        assert isinstance(ProfileStore(), ProfileProvider)


class TestSchedules:
    """Tests for daily schedule resolution."""

    def test_value_at_picks_last_started_slot(self):
        schedule = _schedule(("00:00", 1.0), ("06:00", 2.0), ("18:30", 3.0))
        assert value_at(schedule, 0) == 1.0
        assert value_at(schedule, 6 * 3600 - 1) == 1.0
        assert value_at(schedule, 6 * 3600) == 2.0
        assert value_at(schedule, 23 * 3600) == 3.0

    def test_value_at_unsorted_schedule(self):
        schedule = _schedule(("12:00", 2.0), ("00:00", 1.0))
        assert value_at(schedule, 13 * 3600) == 2.0

    def test_value_at_empty(self):
        assert value_at([], 100) is None

    def test_time_as_seconds_takes_precedence(self):
        slot = TimeValue(time="06:00", value=1.0, time_as_seconds=3600)
        assert slot.seconds == 3600

    def test_seconds_from_midnight_utc(self):
        assert seconds_from_midnight(_mills(6, 30), "UTC") == 6 * 3600 + 30 * 60
        assert seconds_from_midnight(_mills(6, 30), None) == 6 * 3600 + 30 * 60

    def test_seconds_from_midnight_in_profile_timezone(self):
        try:
            ZoneInfo("America/New_York")
        except ZoneInfoNotFoundError:
            pytest.skip("tz database not available")
        # 06:00 UTC is 01:00 in New York during EST
        time = int(datetime(2024, 1, 15, 6, 0, tzinfo=UTC).timestamp() * 1000)
        assert seconds_from_midnight(time, "America/New_York") == 3600

    def test_unknown_timezone_uses_utc(self):
        time = _mills(6)
        assert seconds_from_midnight(time, "Not/AZone") == 6 * 3600


class TestProfileStore:
    """Tests for document-backed profile lookup."""

    def test_has_data(self):
        assert ProfileStore().has_data() is False
        assert ProfileStore([_document()]).has_data() is True

    def test_values_follow_schedule(self):
        store = ProfileStore([_document()])
        assert store.get_basal_rate(_mills(5)) == 0.8
        assert store.get_basal_rate(_mills(7)) == 1.2
        assert store.get_basal_rate(_mills(23)) == 0.9
        assert store.get_sensitivity(_mills(13)) == 45.0
        assert store.get_carb_ratio(_mills(10)) == 12.0
        assert store.get_low_bg_target(_mills(10)) == 90.0
        assert store.get_high_bg_target(_mills(10)) == 140.0
        assert store.get_value_by_time(_mills(11), ProfileValue.carbratio) == 10.0

    def test_scalar_values(self):
        store = ProfileStore([_document()])
        assert store.get_dia(_mills(1)) == 4.0
        assert store.get_carb_absorption_rate(_mills(1)) == 25.0
        assert store.get_units(_mills(1)) == "mg/dl"

    def test_units_fall_back_to_document(self):
        doc = ProfileDocument(mills=0, units="mmol", store={"Default": _profile(units=None)})
        assert ProfileStore([doc]).get_units(_mills(1)) == "mmol"

    def test_units_follow_document_at_time(self):
        old = _document(_mills(0, day=1), Default=_profile(units="mmol"))
        new = _document(_mills(0, day=2), Default=_profile(units="mg/dl"))
        store = ProfileStore([old, new])
        assert store.get_units(_mills(12, day=1)) == "mmol"
        assert store.get_units(_mills(12, day=2)) == "mg/dl"

    def test_missing_schedule_uses_fallback(self):
        store = ProfileStore(
            [_document(Default=_profile(sens=[]))],
            fallback=DefaultProfile(Settings(default_sensitivity=77)),
        )
        assert store.get_sensitivity(_mills(1)) == 77

    def test_non_positive_absorption_rate_uses_fallback(self):
        store = ProfileStore([_document(Default=_profile(carbs_hr=0))])
        assert store.get_carb_absorption_rate(_mills(1)) == 30

    def test_empty_store_uses_fallback(self):
        store = ProfileStore()
        assert store.get_carb_absorption_rate(_mills(1)) == 30
        assert store.get_current_profile(_mills(1)) is None

    def test_latest_document_at_time(self):
        old = _document(_mills(0, day=1), Default=_profile(dia=3.0))
        new = _document(_mills(0, day=2), Default=_profile(dia=5.0))
        store = ProfileStore([new, old])
        assert store.get_dia(_mills(12, day=1)) == 3.0
        assert store.get_dia(_mills(12, day=2)) == 5.0
        assert store.document_at() is new

    def test_start_date_string(self):
        doc = ProfileDocument(startDate="2024-03-01T00:00:00Z", store={"Default": _profile()})
        assert doc.start_mills == _mills(0)

    def test_named_profile(self):
        store = ProfileStore(
            [_document(Default=_profile(), Exercise=_profile(sens=_schedule(("00:00", 120.0))))]
        )
        assert store.get_sensitivity(_mills(1), "Exercise") == 120.0

    def test_unknown_default_name_uses_first_profile(self):
        doc = ProfileDocument(
            mills=0, default_profile="Missing", store={"Only": _profile(dia=6.0)}
        )
        assert ProfileStore([doc]).get_dia(_mills(1)) == 6.0

    def test_validates_nightscout_json(self):
        doc = ProfileDocument.model_validate(
            {
                "_id": "abc",
                "defaultProfile": "Default",
                "startDate": "2024-03-01T00:00:00.000Z",
                "store": {
                    "Default": {
                        "dia": 3,
                        "carbs_hr": 20,
                        "sens": [{"time": "00:00", "value": 50, "timeAsSeconds": 0}],
                    }
                },
            }
        )
        assert ProfileStore([doc]).get_sensitivity(_mills(1)) == 50


class TestProfileSwitch:
    """Profile Switch treatments select the active named profile."""

    @pytest.fixture
    def document(self):
        return _document(
            Default=_profile(),
            Sick=_profile(sens=_schedule(("00:00", 30.0))),
        )

    def _switch(self, at: int, duration: float | None = None) -> Treatment:
        return Treatment(
            mills=at, event_type="Profile Switch", profile="Sick", duration=duration
        )

    def test_switch_applies_after_start(self, document):
        store = ProfileStore([document], [self._switch(_mills(8))])
        assert store.get_sensitivity(_mills(7)) == 60.0
        assert store.get_sensitivity(_mills(9)) == 30.0

    def test_switch_expires_after_duration(self, document):
        store = ProfileStore([document], [self._switch(_mills(8), duration=60)])
        assert store.get_sensitivity(_mills(8, 30)) == 30.0
        assert store.get_sensitivity(_mills(9)) == 60.0

    def test_explicit_name_beats_switch(self, document):
        store = ProfileStore([document], [self._switch(_mills(8))])
        assert store.get_sensitivity(_mills(9), "Default") == 60.0

    def test_with_treatments_returns_new_store(self, document):
        store = ProfileStore([document])
        switched = store.with_treatments([self._switch(_mills(8))])
        assert store.get_sensitivity(_mills(9)) == 60.0
        assert switched.get_sensitivity(_mills(9)) == 30.0


class TestTempBasal:
    """Scheduled basal with temp basal and combo bolus adjustments."""

    def test_no_adjustments(self):
        result = ProfileStore([_document()]).get_temp_basal(_mills(7))
        assert result.basal == 1.2
        assert result.temp_basal == 1.2
        assert result.total_basal == 1.2
        assert result.treatment is None

    def test_percent_temp_basal(self):
        temp = Treatment(mills=_mills(7), event_type="Temp Basal", percent=-50, duration=60)
        result = ProfileStore([_document()], [temp]).get_temp_basal(_mills(7, 30))
        assert result.temp_basal == pytest.approx(0.6)
        assert result.treatment == temp

    def test_absolute_temp_basal(self):
        temp = Treatment(mills=_mills(7), event_type="Temp Basal", absolute=2.0, duration=30)
        store = ProfileStore([_document()], [temp])
        assert store.get_temp_basal(_mills(7, 15)).temp_basal == 2.0
        assert store.get_temp_basal(_mills(7, 30)).temp_basal == 1.2

    def test_combo_bolus_adds_to_total(self):
        combo = Treatment(mills=_mills(7), event_type="Combo Bolus", relative=0.5, duration=120)
        result = ProfileStore([_document()], [combo]).get_temp_basal(_mills(8))
        assert result.combo_bolus_basal == 0.5
        assert result.total_basal == pytest.approx(1.7)


class TestIobProviderProtocol:
    def test_fake_satisfies_protocol(self, make_iob):
        assert isinstance(make_iob(), IobProvider)
