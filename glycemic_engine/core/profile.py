"""Therapy profile lookup.

Profiles are piecewise in time: sensitivity, carb ratio, basal and
targets follow a daily schedule in the profile's own timezone, and the
active named profile can change through stored documents or "Profile
Switch" treatments. Every accessor therefore takes the evaluation
instant (epoch ms) and an optional profile name.

Two providers live here:

- DefaultProfile answers every query with configured fallbacks and
  reports ``has_data() is False``.
- ProfileStore resolves values from Nightscout-style profile documents,
  falling back to DefaultProfile values where a field is missing.

The IOB model is not part of this engine; IobProvider describes the
narrow interface the COB model uses to read insulin activity.
"""

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, tzinfo
from functools import lru_cache
from operator import attrgetter
from typing import Protocol, Self, runtime_checkable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from glycemic_engine.config import Settings, settings
from glycemic_engine.core.constants import MS_PER_MINUTE
from glycemic_engine.core.enums import ProfileValue
from glycemic_engine.core.models import (
    DeviceStatus,
    IobResult,
    ProfileData,
    ProfileDocument,
    TempBasalResult,
    TimeValue,
    Treatment,
)
from glycemic_engine.logging_config import get_logger

logger = get_logger(__name__)

PROFILE_SWITCH_EVENT = "Profile Switch"
TEMP_BASAL_EVENT = "Temp Basal"
COMBO_BOLUS_EVENT = "Combo Bolus"


@runtime_checkable
class ProfileProvider(Protocol):
    """Point-in-time therapy parameter lookup."""

    def has_data(self) -> bool: ...

    def get_units(self, time: int, profile_name: str | None = None) -> str | None: ...

    def get_dia(self, time: int, profile_name: str | None = None) -> float: ...

    def get_sensitivity(self, time: int, profile_name: str | None = None) -> float: ...

    def get_carb_ratio(self, time: int, profile_name: str | None = None) -> float: ...

    def get_carb_absorption_rate(
        self, time: int, profile_name: str | None = None
    ) -> float: ...

    def get_basal_rate(self, time: int, profile_name: str | None = None) -> float: ...

    def get_low_bg_target(self, time: int, profile_name: str | None = None) -> float: ...

    def get_high_bg_target(
        self, time: int, profile_name: str | None = None
    ) -> float: ...


@runtime_checkable
class IobProvider(Protocol):
    """Produces a precomputed insulin-on-board result for an instant."""

    def calc_total(
        self,
        treatments: Sequence[Treatment],
        device_statuses: Sequence[DeviceStatus],
        profile: ProfileProvider | None,
        time: int,
        profile_name: str | None = None,
    ) -> IobResult: ...


class DefaultProfile:
    """Profile provider with no loaded data.

    Answers with the configured fallback values so that callers degrade
    to an approximate estimate instead of failing.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings

    def has_data(self) -> bool:
        return False

    def get_units(self, time: int, profile_name: str | None = None) -> str | None:
        return None

    def get_dia(self, time: int, profile_name: str | None = None) -> float:
        return self._config.default_dia

    def get_sensitivity(self, time: int, profile_name: str | None = None) -> float:
        return self._config.default_sensitivity

    def get_carb_ratio(self, time: int, profile_name: str | None = None) -> float:
        return self._config.default_carb_ratio

    def get_carb_absorption_rate(
        self, time: int, profile_name: str | None = None
    ) -> float:
        return self._config.default_carbs_hr

    def get_basal_rate(self, time: int, profile_name: str | None = None) -> float:
        return self._config.default_basal

    def get_low_bg_target(self, time: int, profile_name: str | None = None) -> float:
        return self._config.default_target_low

    def get_high_bg_target(self, time: int, profile_name: str | None = None) -> float:
        return self._config.default_target_high


@lru_cache(maxsize=64)
def _zone(name: str | None) -> tzinfo:
    if not name or name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown profile timezone, using UTC", timezone=name)
        return UTC


def seconds_from_midnight(time: int, timezone: str | None = None) -> int:
    """Seconds since local midnight for an epoch-ms instant."""
    local = datetime.fromtimestamp(time / 1000, tz=UTC).astimezone(_zone(timezone))
    return local.hour * 3600 + local.minute * 60 + local.second


def value_at(schedule: Sequence[TimeValue], seconds: int) -> float | None:
    """Value of the last schedule slot starting at or before ``seconds``.

    Returns None for an empty schedule. A schedule that starts after
    midnight applies its first slot to the early hours.
    """
    if not schedule:
        return None
    slots = sorted(schedule, key=lambda slot: slot.seconds)
    value = slots[0].value
    for slot in slots:
        if seconds >= slot.seconds:
            value = slot.value
        else:
            break
    return value


def _active_window(treatment: Treatment, time: int) -> bool:
    if treatment.mills is None or treatment.mills > time:
        return False
    duration_ms = (treatment.duration or 0) * MS_PER_MINUTE
    return time < treatment.mills + duration_ms


class ProfileStore:
    """Profile provider backed by stored profile documents.

    Args:
        documents: Profile documents; the one whose start is the latest
            at or before the evaluation time is active.
        treatments: Profile Switch, Temp Basal and Combo Bolus treatments
            used to pick the active profile and the running basal.
        fallback: Provider answering for missing fields.
    """

    def __init__(
        self,
        documents: Iterable[ProfileDocument] = (),
        treatments: Iterable[Treatment] = (),
        fallback: ProfileProvider | None = None,
    ) -> None:
        self._documents = tuple(sorted(documents, key=lambda doc: doc.start_mills))
        self._fallback = fallback or DefaultProfile()

        switches, temp_basals, combos = [], [], []
        for treatment in treatments:
            if treatment.mills is None:
                continue
            if treatment.event_type == PROFILE_SWITCH_EVENT:
                switches.append(treatment)
            elif treatment.event_type == TEMP_BASAL_EVENT:
                temp_basals.append(treatment)
            elif treatment.event_type == COMBO_BOLUS_EVENT:
                combos.append(treatment)

        by_time = attrgetter("mills")
        self._profile_switches = tuple(sorted(switches, key=by_time))
        self._temp_basals = tuple(sorted(temp_basals, key=by_time))
        self._combo_boluses = tuple(sorted(combos, key=by_time))

    def with_treatments(self, treatments: Iterable[Treatment]) -> Self:
        """Return a store over the same documents using ``treatments``."""
        return type(self)(self._documents, treatments, self._fallback)

    # ------------------------------------------------------------------
    # Document and profile selection
    # ------------------------------------------------------------------

    def has_data(self) -> bool:
        return any(doc.store for doc in self._documents)

    def document_at(self, time: int | None = None) -> ProfileDocument | None:
        """Profile document in effect at ``time`` (latest when time is None)."""
        if not self._documents:
            return None
        if time is None:
            return self._documents[-1]
        active = self._documents[0]
        for doc in self._documents:
            if doc.start_mills <= time:
                active = doc
            else:
                break
        return active

    def get_active_profile_switch(self, time: int) -> Treatment | None:
        """Latest Profile Switch at or before ``time`` that has not expired."""
        latest = None
        for treatment in self._profile_switches:
            if treatment.mills <= time:
                latest = treatment
            else:
                break
        if latest is None:
            return None
        if latest.duration and time >= latest.mills + latest.duration * MS_PER_MINUTE:
            return None
        return latest

    def get_current_profile(
        self, time: int | None = None, profile_name: str | None = None
    ) -> ProfileData | None:
        doc = self.document_at(time)
        if doc is None:
            return None

        name = profile_name
        if name is None and time is not None:
            switch = self.get_active_profile_switch(time)
            if switch is not None and switch.profile in doc.store:
                name = switch.profile
        if name is None:
            name = doc.default_profile

        profile = doc.store.get(name)
        if profile is None and doc.store:
            logger.debug(
                "Profile name not in store, using first entry",
                profile_name=name,
            )
            profile = next(iter(doc.store.values()))
        return profile

    def get_value_by_time(
        self, time: int, value_type: ProfileValue, profile_name: str | None = None
    ) -> float | None:
        profile = self.get_current_profile(time, profile_name)
        if profile is None:
            return None
        schedule: list[TimeValue] = getattr(profile, value_type.value)
        return value_at(schedule, seconds_from_midnight(time, profile.timezone))

    # ------------------------------------------------------------------
    # ProfileProvider
    # ------------------------------------------------------------------

    def get_units(self, time: int, profile_name: str | None = None) -> str | None:
        doc = self.document_at(time)
        if doc is None:
            return None
        profile = self.get_current_profile(time, profile_name)
        if profile is not None and profile.units:
            return profile.units
        return doc.units

    def get_dia(self, time: int, profile_name: str | None = None) -> float:
        profile = self.get_current_profile(time, profile_name)
        if profile is None:
            return self._fallback.get_dia(time, profile_name)
        return profile.dia

    def get_carb_absorption_rate(
        self, time: int, profile_name: str | None = None
    ) -> float:
        profile = self.get_current_profile(time, profile_name)
        if profile is None or profile.carbs_hr <= 0:
            return self._fallback.get_carb_absorption_rate(time, profile_name)
        return profile.carbs_hr

    def get_sensitivity(self, time: int, profile_name: str | None = None) -> float:
        value = self.get_value_by_time(time, ProfileValue.sens, profile_name)
        if value is None:
            return self._fallback.get_sensitivity(time, profile_name)
        return value

    def get_carb_ratio(self, time: int, profile_name: str | None = None) -> float:
        value = self.get_value_by_time(time, ProfileValue.carbratio, profile_name)
        if value is None:
            return self._fallback.get_carb_ratio(time, profile_name)
        return value

    def get_basal_rate(self, time: int, profile_name: str | None = None) -> float:
        value = self.get_value_by_time(time, ProfileValue.basal, profile_name)
        if value is None:
            return self._fallback.get_basal_rate(time, profile_name)
        return value

    def get_low_bg_target(self, time: int, profile_name: str | None = None) -> float:
        value = self.get_value_by_time(time, ProfileValue.target_low, profile_name)
        if value is None:
            return self._fallback.get_low_bg_target(time, profile_name)
        return value

    def get_high_bg_target(self, time: int, profile_name: str | None = None) -> float:
        value = self.get_value_by_time(time, ProfileValue.target_high, profile_name)
        if value is None:
            return self._fallback.get_high_bg_target(time, profile_name)
        return value

    # ------------------------------------------------------------------
    # Basal adjustments
    # ------------------------------------------------------------------

    def get_temp_basal_treatment(self, time: int) -> Treatment | None:
        return next(
            (t for t in reversed(self._temp_basals) if _active_window(t, time)), None
        )

    def get_combo_bolus_treatment(self, time: int) -> Treatment | None:
        return next(
            (t for t in reversed(self._combo_boluses) if _active_window(t, time)),
            None,
        )

    def get_temp_basal(
        self, time: int, profile_name: str | None = None
    ) -> TempBasalResult:
        """Scheduled basal with any running temp basal and combo bolus applied.

        A percent temp basal scales the scheduled rate ((100 + percent)%);
        an absolute temp basal replaces it.
        """
        basal = self.get_basal_rate(time, profile_name)
        temp_basal = basal
        combo_bolus_basal = 0.0

        treatment = self.get_temp_basal_treatment(time)
        if treatment is not None:
            if treatment.percent is not None:
                temp_basal = basal * (100 + treatment.percent) / 100
            if treatment.absolute is not None:
                temp_basal = treatment.absolute

        combo = self.get_combo_bolus_treatment(time)
        if combo is not None and combo.relative:
            combo_bolus_basal = combo.relative

        return TempBasalResult(
            basal=basal,
            temp_basal=temp_basal,
            combo_bolus_basal=combo_bolus_basal,
            total_basal=temp_basal + combo_bolus_basal,
            treatment=treatment,
            combo_bolus_treatment=combo,
        )
