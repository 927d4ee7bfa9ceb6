"""Glycemic engine Pydantic models.

Immutable input records (entries, treatments, device statuses, profile
documents) and the small result records shared across services. Field
names are snake_case; the camelCase names used by Nightscout JSON are
accepted as aliases so stored documents validate directly.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from glycemic_engine.core.enums import CobSource, Direction


class Entry(BaseModel):
    """A single CGM glucose observation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    mills: int = Field(description="Observation time, epoch milliseconds.")
    mgdl: int = Field(
        default=0, description="Canonical mg/dL value. 0 means unset, use sgv."
    )
    sgv: float | None = None
    direction: str | None = None
    type: str | None = None
    device: str | None = None
    noise: int | None = None

    @property
    def glucose_value(self) -> float:
        """mg/dL value, falling back to sgv when mgdl is unset."""
        if self.mgdl:
            return self.mgdl
        return self.sgv or 0


class Treatment(BaseModel):
    """A care event: carbs, insulin, temp basal, sensor change, etc."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    # None only so that validate_treatment_data can reject it
    mills: int | None = None
    event_type: str | None = Field(default=None, alias="eventType")
    carbs: float | None = None
    insulin: float | None = None
    protein: float | None = None
    fat: float | None = None
    notes: str | None = None
    absorption_time: float | None = Field(
        default=None,
        alias="absorptionTime",
        description="Custom carb absorption time in minutes.",
    )
    duration: float | None = Field(default=None, description="Minutes.")
    percent: float | None = None
    absolute: float | None = None
    relative: float | None = None
    profile: str | None = None


class LoopCob(BaseModel):
    """COB block of a Loop device status."""

    model_config = ConfigDict(frozen=True)

    cob: float | None = None
    timestamp: str | None = None


class LoopStatus(BaseModel):
    """Loop closed-loop controller status."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    cob: LoopCob | None = None


class OpenApsStatus(BaseModel):
    """OpenAPS controller status (COB from the latest suggestion)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cob: float | None = Field(default=None, alias="COB")


class DeviceStatus(BaseModel):
    """Snapshot reported by an uploader or closed-loop controller."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    mills: int
    device: str | None = None
    loop: LoopStatus | None = None
    openaps: OpenApsStatus | None = None


class IobResult(BaseModel):
    """Insulin on board, produced outside this engine."""

    model_config = ConfigDict(frozen=True)

    iob: float = 0.0
    activity: float = 0.0
    mills: int | None = None
    source: str | None = None
    device: str | None = None


class TimeValue(BaseModel):
    """One slot of a daily profile schedule."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: str = "00:00"
    value: float
    time_as_seconds: int | None = Field(default=None, alias="timeAsSeconds")

    @property
    def seconds(self) -> int:
        """Slot start as seconds since local midnight."""
        if self.time_as_seconds is not None:
            return self.time_as_seconds
        hours, _, minutes = self.time.partition(":")
        return int(hours) * 3600 + int(minutes or 0) * 60


class ProfileData(BaseModel):
    """A named therapy profile (one entry of a profile document's store)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dia: float = 3.0
    carbs_hr: float = 20.0
    delay: float = 20.0
    timezone: str | None = None
    units: str | None = None
    basal: list[TimeValue] = Field(default_factory=list)
    carbratio: list[TimeValue] = Field(default_factory=list)
    sens: list[TimeValue] = Field(default_factory=list)
    target_low: list[TimeValue] = Field(default_factory=list)
    target_high: list[TimeValue] = Field(default_factory=list)


class ProfileDocument(BaseModel):
    """A stored profile document: a set of named profiles and a start date."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    default_profile: str = Field(default="Default", alias="defaultProfile")
    start_date: str | None = Field(default=None, alias="startDate")
    mills: int | None = None
    units: str | None = None
    store: dict[str, ProfileData] = Field(default_factory=dict)

    @property
    def start_mills(self) -> int:
        """Effective start time in epoch ms (0 when undated)."""
        if self.mills is not None:
            return self.mills
        if self.start_date:
            parsed = datetime.fromisoformat(self.start_date.replace("Z", "+00:00"))
            return int(parsed.timestamp() * 1000)
        return 0


class TempBasalResult(BaseModel):
    """Basal rate in effect at an instant, including temp and combo adjustments."""

    model_config = ConfigDict(frozen=True)

    basal: float
    temp_basal: float
    combo_bolus_basal: float = 0.0
    total_basal: float
    treatment: Treatment | None = None
    combo_bolus_treatment: Treatment | None = None


class DirectionInfo(BaseModel):
    """Display information for a trend direction."""

    model_config = ConfigDict(frozen=True)

    value: Direction | None = None
    label: str | None = None
    entity: str | None = None
    display: str | None = None


class DeltaResult(BaseModel):
    """Rate of change between the two most recent readings."""

    model_config = ConfigDict(frozen=True)

    absolute: float = Field(description="recent - previous, mg/dL, uninterpolated.")
    elapsed_mins: float
    interpolated: bool
    mean5_mins_ago: float
    mgdl: int = Field(description="5-minute equivalent delta in mg/dL.")
    scaled: float = Field(description="Delta in display units.")
    display: str
    previous: Entry
    current: Entry
    times: dict[str, int]


class CobContribution(BaseModel):
    """Carbs on board and BG impact from a single treatment."""

    model_config = ConfigDict(frozen=True)

    cob_contrib: float = 0.0
    activity_contrib: float = 0.0


class CobResult(BaseModel):
    """Carbs on board at an instant."""

    model_config = ConfigDict(frozen=True)

    cob: float = 0.0
    source: CobSource = CobSource.CARE_PORTAL
    device: str | None = None
    mills: int | None = None
    decayed_by: int | None = None
    is_decaying: int = 0
    carbs_hr: float | None = None
    raw_carb_impact: float = 0.0
    last_carbs: Treatment | None = None
    display: float = 0.0
    display_line: str = "COB: 0g"
