"""Bolus wizard preview (BWP).

Combines the current glucose, insulin on board and the profile in
effect at the evaluation time into a correction estimate:

    effect  = IOB x sensitivity
    outcome = current BG - effect

An outcome above the high target yields a positive correction bolus;
one below the low target yields a negative estimate, which is also
expressed as a temp basal percentage for pumps that can reduce basal
instead.

Glucose, sensitivity and targets are all handled in the sandbox's
display units. Profile values are converted from the profile's own
units before use.

IMPORTANT: This is a preview for display and alarm snoozing only. It
does NOT replace clinical judgment and must never drive insulin
delivery on its own.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial

from glycemic_engine.config import settings
from glycemic_engine.core.constants import (
    CGM_FRESHNESS_MAX_MINUTES,
    DEFAULT_HIGH_THRESHOLD_MGDL,
    MIN_VALID_SGV_MGDL,
    MS_PER_MINUTE,
)
from glycemic_engine.core.enums import BwpLevel, GlucoseUnits
from glycemic_engine.core.models import Entry, IobResult, Treatment
from glycemic_engine.core.profile import ProfileProvider
from glycemic_engine.core.units import (
    convert_glucose,
    legacy_round,
    round_bg_to_display_format,
    round_insulin_for_display_format,
    scale_mgdl,
)
from glycemic_engine.logging_config import correlation_scope, get_logger
from glycemic_engine.schemas.bolus_wizard import (
    BolusWizardResult,
    BwpNotificationSettings,
    TempBasalAdjustment,
)

logger = get_logger(__name__)

MISSING_PROFILE = "Missing need a treatment profile"
MISSING_PROFILE_FIELDS = "Missing sens, target_high, or target_low treatment profile fields"
MISSING_IOB = "Missing IOB property"
DATA_NOT_CURRENT = "Data isn't current"

AIM_ABOVE_HIGH = "above high"
AIM_BELOW_LOW = "below low"


@dataclass(frozen=True)
class BwpSandbox:
    """Everything the bolus wizard needs for one evaluation.

    Attributes:
        time: Evaluation time, epoch ms
        units: Display units for glucose, sensitivity and targets
        entries: Recent CGM entries
        treatments: Recent treatments (for the recent-carbs lookup)
        profile: Profile provider, resolved at ``time``
        iob: Insulin on board computed by the IOB model
        profile_name: Named profile to use instead of the active one
        insulin_formatter: Display formatter for insulin units
        bg_formatter: Display formatter for glucose values
        recent_carbs_window_minutes: Look-back for recent carbs
    """

    time: int
    units: str = GlucoseUnits.MGDL
    entries: Sequence[Entry] = ()
    treatments: Sequence[Treatment] = ()
    profile: ProfileProvider | None = None
    iob: IobResult | None = None
    profile_name: str | None = None
    insulin_formatter: Callable[[float], str] | None = None
    bg_formatter: Callable[[float], str] | None = None
    recent_carbs_window_minutes: int | None = None

    def last_entry(self) -> Entry | None:
        """Latest entry at or before the evaluation time."""
        past = [e for e in self.entries if e.mills <= self.time]
        return max(past, key=lambda e: e.mills, default=None)

    def last_scaled_sgv(self) -> float | None:
        entry = self.last_entry()
        if entry is None:
            return None
        return scale_mgdl(entry.glucose_value, self.units)

    def is_current(self, entry: Entry) -> bool:
        return self.time - entry.mills <= CGM_FRESHNESS_MAX_MINUTES * MS_PER_MINUTE

    def profile_glucose_value(self, getter: str) -> float:
        """Profile glucose value (sensitivity or target) in display units.

        Args:
            getter: ProfileProvider method name, e.g. "get_sensitivity"
        """
        raw = getattr(self.profile, getter)(self.time, self.profile_name)
        profile_units = (
            self.profile.get_units(self.time, self.profile_name) or self.units
        )
        return convert_glucose(raw, profile_units, self.units)

    def round_insulin_for_display_format(self, insulin: float) -> str:
        formatter = self.insulin_formatter or round_insulin_for_display_format
        return formatter(insulin)

    def round_bg_to_display_format(self, bg: float) -> str:
        formatter = self.bg_formatter or partial(
            round_bg_to_display_format, units=self.units
        )
        return formatter(bg)


def check_missing_info(sandbox: BwpSandbox) -> list[str]:
    """List every reason the preview cannot be calculated.

    Returns human-readable messages for display; an empty list means
    the preview can run. Never raises for missing data.
    """
    errors: list[str] = []

    profile = sandbox.profile
    if profile is None or not profile.has_data():
        errors.append(MISSING_PROFILE)
    else:
        required = (
            sandbox.profile_glucose_value("get_sensitivity"),
            sandbox.profile_glucose_value("get_high_bg_target"),
            sandbox.profile_glucose_value("get_low_bg_target"),
        )
        if any(value <= 0 for value in required):
            errors.append(MISSING_PROFILE_FIELDS)

    if sandbox.iob is None:
        errors.append(MISSING_IOB)

    entry = sandbox.last_entry()
    if (
        entry is None
        or entry.glucose_value < MIN_VALID_SGV_MGDL
        or not sandbox.is_current(entry)
    ):
        errors.append(DATA_NOT_CURRENT)

    return errors


def find_recent_carbs(sandbox: BwpSandbox) -> Treatment | None:
    """Latest carb treatment within the look-back window (inclusive)."""
    window_minutes = sandbox.recent_carbs_window_minutes
    if window_minutes is None:
        window_minutes = settings.bwp_recent_carbs_window_minutes
    window_ms = window_minutes * MS_PER_MINUTE

    recent = None
    for treatment in sandbox.treatments:
        if treatment.mills is None or not treatment.carbs or treatment.carbs <= 0:
            continue
        if treatment.mills > sandbox.time or sandbox.time - treatment.mills > window_ms:
            continue
        if recent is None or treatment.mills >= recent.mills:
            recent = treatment
    return recent


def calculate_temp_basal_adjustment(
    bolus_estimate: float, basal: float
) -> TempBasalAdjustment | None:
    """Temp basal percentages that absorb a negative estimate.

    The estimate is spread over half an hour of basal (basal / 2) or a
    full hour; the remaining fraction is the temp basal percentage.
    Percentages below zero mean even a full suspend cannot cover the
    estimate in that window.
    """
    if bolus_estimate >= 0 or basal <= 0:
        return None

    thirty_min_insulin = basal / 2
    return TempBasalAdjustment(
        thirty_min=legacy_round(
            (thirty_min_insulin + bolus_estimate) / thirty_min_insulin * 100
        ),
        one_hour=legacy_round((basal + bolus_estimate) / basal * 100),
    )


@correlation_scope()
def calculate(sandbox: BwpSandbox) -> BolusWizardResult:
    """Calculate the bolus wizard preview.

    Args:
        sandbox: Evaluation context

    Returns:
        BolusWizardResult. When required data is missing the result is
        zeroed and ``errors`` lists what is missing.
    """
    errors = check_missing_info(sandbox)
    if errors:
        logger.debug("BWP skipped, missing data", errors=errors, time=sandbox.time)
        return BolusWizardResult(
            scaled_sgv=sandbox.last_scaled_sgv(),
            errors=errors,
            display_line=f"BWP: {sandbox.round_insulin_for_display_format(0)}U",
        )

    profile = sandbox.profile
    scaled_sgv = sandbox.last_scaled_sgv()
    iob = sandbox.iob.iob
    sens = sandbox.profile_glucose_value("get_sensitivity")
    target_high = sandbox.profile_glucose_value("get_high_bg_target")
    target_low = sandbox.profile_glucose_value("get_low_bg_target")

    effect = iob * sens
    outcome = scaled_sgv - effect

    bolus_estimate = 0.0
    aim_target = None
    aim_target_string = None

    if outcome > target_high:
        bolus_estimate = (outcome - target_high) / sens
        aim_target = target_high
        aim_target_string = AIM_ABOVE_HIGH
    elif outcome < target_low:
        bolus_estimate = -abs(outcome - target_low) / sens
        aim_target = target_low
        aim_target_string = AIM_BELOW_LOW

    basal = profile.get_basal_rate(sandbox.time, sandbox.profile_name)
    temp_basal_adjustment = calculate_temp_basal_adjustment(bolus_estimate, basal)

    bolus_estimate_display = sandbox.round_insulin_for_display_format(bolus_estimate)

    return BolusWizardResult(
        scaled_sgv=scaled_sgv,
        iob=iob,
        effect=effect,
        outcome=outcome,
        bolus_estimate=bolus_estimate,
        aim_target=aim_target,
        aim_target_string=aim_target_string,
        below_low_target=scaled_sgv < target_low,
        temp_basal_adjustment=temp_basal_adjustment,
        recent_carbs=find_recent_carbs(sandbox),
        effect_display=sandbox.round_bg_to_display_format(effect),
        outcome_display=sandbox.round_bg_to_display_format(outcome),
        bolus_estimate_display=bolus_estimate_display,
        display_iob=sandbox.round_insulin_for_display_format(iob),
        display_line=f"BWP: {bolus_estimate_display}U",
    )


def _is_high(sandbox: BwpSandbox) -> bool:
    scaled_sgv = sandbox.last_scaled_sgv()
    if scaled_sgv is None:
        return False

    threshold = 0.0
    if sandbox.profile is not None and sandbox.profile.has_data():
        threshold = sandbox.profile_glucose_value("get_high_bg_target")
    if threshold <= 0:
        threshold = convert_glucose(
            DEFAULT_HIGH_THRESHOLD_MGDL, GlucoseUnits.MGDL, sandbox.units
        )
    return scaled_sgv >= threshold


def high_snoozed_by_iob(
    result: BolusWizardResult,
    notification_settings: BwpNotificationSettings,
    sandbox: BwpSandbox,
) -> bool:
    """Whether a high alarm should be snoozed because IOB already covers it.

    True when glucose is at or above the high target and the remaining
    correction estimate is below ``snooze_bwp``.
    """
    return _is_high(sandbox) and result.bolus_estimate < notification_settings.snooze_bwp


def notification_level(
    result: BolusWizardResult,
    notification_settings: BwpNotificationSettings,
    sandbox: BwpSandbox,
) -> BwpLevel:
    """Alarm level for a high reading that still needs a correction."""
    if result.errors or not _is_high(sandbox):
        return BwpLevel.none
    if result.bolus_estimate < notification_settings.warn_bwp:
        return BwpLevel.none
    if result.bolus_estimate >= notification_settings.urgent_bwp:
        return BwpLevel.urgent
    return BwpLevel.warn
