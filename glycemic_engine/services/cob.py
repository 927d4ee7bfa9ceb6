"""Carbohydrates on board.

Two sources are combined. Closed-loop controllers (Loop, OpenAPS)
report their own COB in device status; when such a report is at least
as fresh as the newest carb entry it is used as-is. Otherwise COB is
derived from carb treatments with the legacy chained decay curve:

- each meal is held for a 20 minute delay before absorbing
- it then absorbs at the profile's carbs_hr rate
- a meal eaten while a previous one is still absorbing queues behind
  it, so its decay end is pushed out by the time still outstanding
- while insulin is active, absorption is stretched by the insulin
  activity (liver sensitivity ratio of 8)

The curve matches Nightscout's chained decay exactly and is covered by
golden-vector tests. Do not simplify it without re-running them.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

from glycemic_engine.config import settings
from glycemic_engine.core.constants import (
    CARB_ABSORPTION_DELAY_MINUTES,
    COB_ACTIVITY_HORIZON_HOURS,
    FAST_CARB_KEYWORDS,
    FAST_CARB_RATE_MULTIPLIER,
    HIGH_FAT_RATE_MULTIPLIER,
    HIGH_FAT_THRESHOLD_GRAMS,
    LIVER_SENS_RATIO,
    MS_PER_HOUR,
    MS_PER_MINUTE,
)
from glycemic_engine.core.enums import CobSource
from glycemic_engine.core.models import (
    CobContribution,
    CobResult,
    DeviceStatus,
    Treatment,
)
from glycemic_engine.core.profile import DefaultProfile, IobProvider, ProfileProvider
from glycemic_engine.core.units import legacy_round
from glycemic_engine.logging_config import correlation_scope, get_logger

logger = get_logger(__name__)


@dataclass
class CarbDecay:
    """Decay state of one carb treatment on the chained curve."""

    initial_carbs: float
    decayed_by: int  # epoch ms when the treatment is fully absorbed
    is_decaying: int  # 1 while absorbing, else 0
    carb_time: int


def _has_carbs(treatment: Treatment) -> bool:
    return bool(treatment.carbs) and treatment.carbs > 0 and treatment.mills is not None


def carb_decay(
    treatment: Treatment,
    time: int,
    last_decayed_by: int,
    carbs_hr: float,
    delay_minutes: int = CARB_ABSORPTION_DELAY_MINUTES,
) -> CarbDecay | None:
    """Place a carb treatment on the chained decay curve.

    Args:
        treatment: Carb treatment (carbs > 0)
        time: Evaluation time, epoch ms
        last_decayed_by: Decay end of the previous treatment (0 for none)
        carbs_hr: Absorption rate, grams per hour
        delay_minutes: Delay before absorption starts

    Returns:
        CarbDecay, or None for a treatment without carbs.
    """
    if not _has_carbs(treatment):
        return None

    carbs_min = carbs_hr / 60
    carb_time = treatment.mills
    minutes_left = (last_decayed_by - carb_time) / MS_PER_MINUTE

    # Legacy: the decay end advances in whole minutes (fraction truncated)
    absorb_minutes = max(delay_minutes, minutes_left) + treatment.carbs / carbs_min
    decayed_by = carb_time + math.trunc(absorb_minutes) * MS_PER_MINUTE

    if delay_minutes > minutes_left:
        initial_carbs = treatment.carbs
    else:
        initial_carbs = treatment.carbs + minutes_left * carbs_min

    start_decay = carb_time + delay_minutes * MS_PER_MINUTE
    is_decaying = 1 if time < last_decayed_by or time > start_decay else 0

    return CarbDecay(
        initial_carbs=initial_carbs,
        decayed_by=decayed_by,
        is_decaying=is_decaying,
        carb_time=carb_time,
    )


def _carb_absorption_rate(
    profile: ProfileProvider, time: int, profile_name: str | None
) -> float:
    carbs_hr = profile.get_carb_absorption_rate(time, profile_name)
    if carbs_hr <= 0:
        logger.warning(
            "Carb absorption rate not positive, using default",
            carbs_hr=carbs_hr,
            default=settings.default_carbs_hr,
        )
        return settings.default_carbs_hr
    return carbs_hr


def _insulin_activity(
    iob_provider: IobProvider | None,
    treatments: Sequence[Treatment],
    device_statuses: Sequence[DeviceStatus],
    profile: ProfileProvider,
    time: int,
    profile_name: str | None,
) -> float:
    if iob_provider is None:
        return 0.0
    return iob_provider.calc_total(
        treatments, device_statuses, profile, time, profile_name
    ).activity


def from_treatments(
    treatments: Sequence[Treatment],
    device_statuses: Sequence[DeviceStatus],
    profile: ProfileProvider | None,
    time: int,
    iob_provider: IobProvider | None = None,
    profile_name: str | None = None,
) -> CobResult:
    """COB derived from carb treatments strictly before ``time``."""
    profile = profile if profile is not None else DefaultProfile()

    total_cob = 0.0
    last_carbs: Treatment | None = None
    last_decayed_by = 0
    is_decaying = 0
    carbs_hr = _carb_absorption_rate(profile, time, profile_name)

    carb_treatments = sorted(
        (t for t in treatments if _has_carbs(t) and t.mills < time),
        key=lambda t: t.mills,
    )

    for treatment in carb_treatments:
        carbs_hr = _carb_absorption_rate(profile, treatment.mills, profile_name)
        decay = carb_decay(treatment, time, last_decayed_by, carbs_hr)
        last_carbs = treatment

        decays_in_hr = (decay.decayed_by - time) / MS_PER_HOUR
        if decays_in_hr > COB_ACTIVITY_HORIZON_HOURS and iob_provider is not None:
            avg_activity = (
                _insulin_activity(
                    iob_provider, treatments, device_statuses, profile, last_decayed_by, profile_name
                )
                + _insulin_activity(
                    iob_provider, treatments, device_statuses, profile, decay.decayed_by, profile_name
                )
            ) / 2
            sens = profile.get_sensitivity(treatment.mills, profile_name)
            carb_ratio = profile.get_carb_ratio(treatment.mills, profile_name)
            delayed_carbs = avg_activity * LIVER_SENS_RATIO / sens * carb_ratio
            delay_minutes = legacy_round(delayed_carbs / carbs_hr * 60)
            if delay_minutes > 0:
                decay.decayed_by += delay_minutes * MS_PER_MINUTE
                decays_in_hr = (decay.decayed_by - time) / MS_PER_HOUR

        last_decayed_by = decay.decayed_by

        if decays_in_hr > 0:
            total_cob += min(treatment.carbs, decays_in_hr * carbs_hr)
            is_decaying = decay.is_decaying
        else:
            # Legacy: a fully absorbed treatment resets the running total
            total_cob = 0.0

    sens = profile.get_sensitivity(time, profile_name)
    carb_ratio = profile.get_carb_ratio(time, profile_name)
    raw_carb_impact = is_decaying * sens / carb_ratio * carbs_hr / 60
    cob = max(total_cob, 0.0)

    return CobResult(
        cob=cob,
        source=CobSource.CARE_PORTAL,
        decayed_by=last_decayed_by or None,
        is_decaying=is_decaying,
        carbs_hr=carbs_hr,
        raw_carb_impact=raw_carb_impact,
        last_carbs=last_carbs,
        display=_display(cob),
        display_line=_display_line(cob),
    )


def from_device_status(device_status: DeviceStatus) -> CobResult | None:
    """COB reported by a closed-loop controller, copied verbatim."""
    loop = device_status.loop
    if loop is not None and loop.cob is not None and loop.cob.cob is not None:
        source = CobSource.LOOP
        cob = loop.cob.cob
    elif device_status.openaps is not None and device_status.openaps.cob is not None:
        source = CobSource.OPENAPS
        cob = device_status.openaps.cob
    else:
        return None

    return CobResult(
        cob=cob,
        source=source,
        device=device_status.device,
        mills=device_status.mills,
        display=_display(cob),
        display_line=_display_line(cob),
    )


def last_cob_device_status(
    device_statuses: Sequence[DeviceStatus],
    time: int,
    max_age_minutes: int | None = None,
) -> CobResult | None:
    """Most recent device-reported COB within the freshness window."""
    if max_age_minutes is None:
        max_age_minutes = settings.cob_device_status_max_age_minutes
    earliest = time - max_age_minutes * MS_PER_MINUTE

    latest: CobResult | None = None
    for status in device_statuses:
        if not earliest <= status.mills <= time:
            continue
        result = from_device_status(status)
        if result is not None and (latest is None or result.mills > latest.mills):
            latest = result
    return latest


@correlation_scope()
def cob_total(
    treatments: Sequence[Treatment],
    device_statuses: Sequence[DeviceStatus],
    profile: ProfileProvider | None,
    time: int,
    iob_provider: IobProvider | None = None,
    profile_name: str | None = None,
) -> CobResult:
    """Carbs on board at ``time``.

    Args:
        treatments: Treatments, any order; non-carb entries are ignored
        device_statuses: Device statuses that may carry a reported COB
        profile: Profile provider; None falls back to default values
        time: Evaluation time, epoch ms
        iob_provider: Optional source of insulin activity that stretches
            carb absorption while insulin is active
        profile_name: Named profile to use instead of the active one

    Returns:
        CobResult from the device report when it is at least as fresh
        as the newest carb treatment, otherwise from treatments.
    """
    if profile is None:
        logger.debug("No profile for COB, using defaults", time=time)

    treatment_cob = from_treatments(
        treatments, device_statuses, profile, time, iob_provider, profile_name
    )
    device_cob = last_cob_device_status(device_statuses, time)

    if device_cob is not None:
        last_carbs = treatment_cob.last_carbs
        if last_carbs is None or last_carbs.mills <= device_cob.mills:
            logger.debug(
                "Using device-reported COB",
                source=device_cob.source,
                device=device_cob.device,
                cob=device_cob.cob,
            )
            return device_cob

    return treatment_cob


def absorption_rate(treatment: Treatment, profile_rate: float) -> float:
    """Absorption rate (g/hour) for one treatment.

    A custom absorption time overrides the profile rate. High-fat meals
    absorb at half the rate; fast carbs named in the notes at double.
    """
    rate = profile_rate
    if treatment.absorption_time and treatment.absorption_time > 0 and treatment.carbs:
        rate = treatment.carbs / (treatment.absorption_time / 60)

    if treatment.fat is not None and treatment.fat >= HIGH_FAT_THRESHOLD_GRAMS:
        rate *= HIGH_FAT_RATE_MULTIPLIER

    notes = (treatment.notes or "").lower()
    if any(keyword in notes for keyword in FAST_CARB_KEYWORDS):
        rate *= FAST_CARB_RATE_MULTIPLIER

    return rate


def calc_treatment(
    treatment: Treatment,
    profile: ProfileProvider | None,
    time: int,
    profile_name: str | None = None,
) -> CobContribution:
    """Remaining carbs and current BG impact of a single treatment.

    Unlike cob_total this looks at the treatment in isolation (no
    chaining) and honours per-treatment absorption hints.
    """
    if not _has_carbs(treatment) or treatment.mills > time:
        return CobContribution()

    profile = profile if profile is not None else DefaultProfile()
    rate = absorption_rate(
        treatment, _carb_absorption_rate(profile, treatment.mills, profile_name)
    )
    if rate <= 0:
        return CobContribution(cob_contrib=treatment.carbs)

    decay = carb_decay(treatment, time, 0, rate)
    decays_in_hr = (decay.decayed_by - time) / MS_PER_HOUR
    if decays_in_hr <= 0:
        return CobContribution()

    cob_contrib = min(treatment.carbs, decays_in_hr * rate)
    activity_contrib = 0.0
    if decay.is_decaying:
        sens = profile.get_sensitivity(time, profile_name)
        carb_ratio = profile.get_carb_ratio(time, profile_name)
        activity_contrib = sens / carb_ratio * rate / 60

    return CobContribution(cob_contrib=cob_contrib, activity_contrib=activity_contrib)


def _display(cob: float) -> float:
    return legacy_round(cob * 10) / 10


def _display_line(cob: float) -> str:
    display = _display(cob)
    text = f"{display:.1f}".removesuffix(".0")
    return f"COB: {text}g"
