"""Bolus wizard preview schemas."""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from glycemic_engine.config import Settings, settings
from glycemic_engine.core.models import Treatment


class TempBasalAdjustment(BaseModel):
    """Temp basal that would deliver the negative bolus estimate as less basal.

    Both values are percentages of the running basal rate: 0 means
    suspend for the window, 100 means no change.
    """

    model_config = ConfigDict(frozen=True)

    thirty_min: int = Field(description="Percent of basal for a 30 minute temp.")
    one_hour: int = Field(description="Percent of basal for a 1 hour temp.")


class BolusWizardResult(BaseModel):
    """Bolus wizard preview for the current reading."""

    model_config = ConfigDict(frozen=True)

    scaled_sgv: float | None = None
    iob: float = 0.0
    effect: float = 0.0
    outcome: float = 0.0
    bolus_estimate: float = 0.0
    aim_target: float | None = None
    aim_target_string: str | None = None
    below_low_target: bool = False
    temp_basal_adjustment: TempBasalAdjustment | None = None
    recent_carbs: Treatment | None = None
    errors: list[str] = Field(default_factory=list)

    effect_display: str = "0"
    outcome_display: str = "0"
    bolus_estimate_display: str = "0"
    display_iob: str = "0"
    display_line: str = "BWP: 0U"


class BwpNotificationSettings(BaseModel):
    """Alarm thresholds for the bolus wizard preview (units of insulin)."""

    model_config = ConfigDict(frozen=True)

    snooze_bwp: float = Field(
        ge=0,
        description="High alarms are snoozed while the estimate is below this.",
    )
    warn_bwp: float = Field(ge=0)
    urgent_bwp: float = Field(ge=0)
    snooze_length: int = Field(ge=0, description="Snooze length in minutes.")

    @model_validator(mode="after")
    def validate_levels(self) -> Self:
        """Ensure the warn level does not exceed the urgent level."""
        if self.warn_bwp > self.urgent_bwp:
            raise ValueError(
                f"warn_bwp ({self.warn_bwp}) must not exceed "
                f"urgent_bwp ({self.urgent_bwp})"
            )
        return self

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> Self:
        """Build notification settings from GLYCEMIC_BWP_* configuration."""
        config = config or settings
        return cls(
            snooze_bwp=config.bwp_snooze,
            warn_bwp=config.bwp_warn,
            urgent_bwp=config.bwp_urgent,
            snooze_length=config.bwp_snooze_length_minutes,
        )
