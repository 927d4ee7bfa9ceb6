"""Pytest configuration and shared fixtures.

Profiles and IOB are external collaborators of the engine, so tests
drive the services through small in-memory fakes of ProfileProvider
and IobProvider.
"""

from dataclasses import dataclass

import pytest

from glycemic_engine.core.models import IobResult


@dataclass
class FakeProfile:
    """ProfileProvider returning the same values at every instant."""

    sens: float = 95.0
    carb_ratio: float = 18.0
    carbs_hr: float = 30.0
    basal: float = 0.0
    target_low: float = 0.0
    target_high: float = 0.0
    dia: float = 3.0
    units: str | None = None
    loaded: bool = True

    def has_data(self) -> bool:
        return self.loaded

    def get_units(self, time, profile_name=None):
        return self.units

    def get_dia(self, time, profile_name=None):
        return self.dia

    def get_sensitivity(self, time, profile_name=None):
        return self.sens

    def get_carb_ratio(self, time, profile_name=None):
        return self.carb_ratio

    def get_carb_absorption_rate(self, time, profile_name=None):
        return self.carbs_hr

    def get_basal_rate(self, time, profile_name=None):
        return self.basal

    def get_low_bg_target(self, time, profile_name=None):
        return self.target_low

    def get_high_bg_target(self, time, profile_name=None):
        return self.target_high


@dataclass
class FakeIob:
    """IobProvider with constant activity; records the times it was asked for."""

    iob: float = 0.0
    activity: float = 0.0

    def __post_init__(self):
        self.calls: list[int] = []

    def calc_total(self, treatments, device_statuses, profile, time, profile_name=None):
        self.calls.append(time)
        return IobResult(iob=self.iob, activity=self.activity, mills=time)


@pytest.fixture
def make_profile():
    """Factory for FakeProfile instances."""
    return FakeProfile


@pytest.fixture
def make_iob():
    """Factory for FakeIob instances."""
    return FakeIob
