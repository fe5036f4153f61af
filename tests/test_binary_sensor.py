"""Tests for the pre-heat active binary sensor."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

from custom_components.presence_preheat.binary_sensor import PreheatActiveBinarySensor
from custom_components.presence_preheat.control_data import ControlData, DeviceSample
from custom_components.presence_preheat.engine import DecisionBranch

from .conftest import NOW, TEST_PHONE


def make_sensor(control_data: ControlData, branch=None, last_evaluation=None) -> PreheatActiveBinarySensor:
    coordinator = MagicMock()
    coordinator.control_data = control_data
    coordinator.last_branch = branch
    coordinator.last_evaluation = last_evaluation
    entry = MagicMock()
    entry.entry_id = "test_entry"
    entry.title = "Home"
    entry.data = {}
    return PreheatActiveBinarySensor(coordinator, entry)


class TestPreheatActiveBinarySensor:
    """Tests for the pre-heat active binary sensor."""

    def test_idle(self):
        """Test the sensor before any evaluation."""
        sensor = make_sensor(ControlData())

        assert sensor.is_on is False
        assert sensor.unique_id == "test_entry_preheat_active"
        attributes = sensor.extra_state_attributes
        assert attributes["triggered_by"] is None
        assert attributes["cooldown_until"] is None
        assert attributes["last_decision"] is None

    def test_active_cycle(self):
        """Test that an active cycle is mirrored with its details."""
        evaluated = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        sensor = make_sensor(
            ControlData(
                preheat_globally_active=True,
                preheat_triggered_by=TEST_PHONE,
                preheat_last_active_update=NOW,
                devices={TEST_PHONE: DeviceSample(3999.96, NOW)},
            ),
            branch=DecisionBranch.START,
            last_evaluation=evaluated,
        )

        assert sensor.is_on is True
        attributes = sensor.extra_state_attributes
        assert attributes["triggered_by"] == TEST_PHONE
        assert attributes["last_active_update"] == "2023-11-14T22:13:20+00:00"
        assert attributes["tracked_devices"] == {TEST_PHONE: 4000.0}
        assert attributes["last_decision"] == "start"
        assert attributes["last_evaluation"] == evaluated.isoformat()
