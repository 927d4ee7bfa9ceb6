"""Glycemic engine core: domain records, units and profile lookup.

Everything in this package is shared by the calculation services:

1. Domain records (entries, treatments, device statuses, profiles)
2. Unit conversion and legacy-exact display formatting
3. Point-in-time profile lookup (ProfileProvider, ProfileStore)

Stored glucose is always mg/dL. Profile sensitivity and targets are in
the profile's declared units and must be converted explicitly with
units.convert_glucose before being combined with mg/dL values.
"""

from glycemic_engine.core.enums import (
    BwpLevel,
    CobSource,
    Direction,
    GlucoseUnits,
    ProfileValue,
)
from glycemic_engine.core.models import (
    CobContribution,
    CobResult,
    DeltaResult,
    DeviceStatus,
    DirectionInfo,
    Entry,
    IobResult,
    LoopCob,
    LoopStatus,
    OpenApsStatus,
    ProfileData,
    ProfileDocument,
    TempBasalResult,
    TimeValue,
    Treatment,
)
from glycemic_engine.core.profile import (
    DefaultProfile,
    IobProvider,
    ProfileProvider,
    ProfileStore,
)

__all__ = [
    "BwpLevel",
    "CobContribution",
    "CobResult",
    "CobSource",
    "DefaultProfile",
    "DeltaResult",
    "DeviceStatus",
    "Direction",
    "DirectionInfo",
    "Entry",
    "GlucoseUnits",
    "IobProvider",
    "IobResult",
    "LoopCob",
    "LoopStatus",
    "OpenApsStatus",
    "ProfileData",
    "ProfileDocument",
    "ProfileProvider",
    "ProfileStore",
    "ProfileValue",
    "TempBasalResult",
    "TimeValue",
    "Treatment",
]
