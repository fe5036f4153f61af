"""Shared fixtures for Presence Pre-heat tests."""
from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from custom_components.presence_preheat.engine import PreheatEngine, TrackedDevice, Tunables

NOW = 1_700_000_000.0

TEST_ZONE = "zone.home"
TEST_PERSON = "person.anna"
TEST_PHONE = "device_tracker.anna_phone"
TEST_PHONE_DISTANCE = "sensor.anna_phone_distance"
TEST_PHONE_2 = "device_tracker.ben_phone"
TEST_PHONE_2_DISTANCE = "sensor.ben_phone_distance"
TEST_THERMOSTAT_LIVING = "climate.living_room"
TEST_THERMOSTAT_BEDROOM = "climate.bedroom"
TEST_CONTROL_DATA = "input_text.preheat_control_data"
TEST_NOTIFY_TARGET = "notify.mobile_app_anna_phone"


def make_state(entity_id: str, state: str, **attributes: Any) -> MagicMock:
    """Create a minimal stand-in for a Home Assistant state object."""
    mock_state = MagicMock()
    mock_state.entity_id = entity_id
    mock_state.state = state
    mock_state.attributes = attributes
    return mock_state


@pytest.fixture
def devices() -> list[TrackedDevice]:
    return [
        TrackedDevice(TEST_PHONE, TEST_PHONE_DISTANCE),
        TrackedDevice(TEST_PHONE_2, TEST_PHONE_2_DISTANCE),
    ]


@pytest.fixture
def engine(devices) -> PreheatEngine:
    """Engine with two tracked phones, two thermostats and default tunables."""
    return PreheatEngine(devices, [TEST_THERMOSTAT_LIVING, TEST_THERMOSTAT_BEDROOM], Tunables())
