"""Tests for the config flow helpers."""
from __future__ import annotations

from custom_components.presence_preheat.config_flow import (
    STEP_PREHEAT_DATA_SCHEMA,
    _check_pairing,
    _validate_input,
)
from custom_components.presence_preheat.const import (
    CONF_DISTANCE_SENSORS,
    CONF_DISTANCE_THRESHOLD,
    CONF_NOTIFICATION_TARGET,
    CONF_NOTIFY_ON_START,
    CONF_PREHEAT_TRACKERS,
    DEFAULT_DISTANCE_THRESHOLD,
)

from .conftest import TEST_PHONE, TEST_PHONE_2, TEST_PHONE_DISTANCE, TEST_PHONE_2_DISTANCE


class TestCheckPairing:
    """Tests for pairing trackers with distance sensors."""

    def test_pairing_ok(self):
        """Test that equal lists of trackers and sensors pass."""
        data = {
            CONF_PREHEAT_TRACKERS: [TEST_PHONE, TEST_PHONE_2],
            CONF_DISTANCE_SENSORS: [TEST_PHONE_DISTANCE, TEST_PHONE_2_DISTANCE],
        }
        assert _check_pairing(data) is None

    def test_pairing_mismatch(self):
        """Test that a missing distance sensor is reported."""
        data = {
            CONF_PREHEAT_TRACKERS: [TEST_PHONE, TEST_PHONE_2],
            CONF_DISTANCE_SENSORS: [TEST_PHONE_DISTANCE],
        }
        assert _check_pairing(data) == "sensor_count_mismatch"

    def test_pairing_empty(self):
        """Test that an entry without pre-heat trackers passes."""
        assert _check_pairing({}) is None


class TestValidateInput:
    """Tests for validating the pre-heat step."""

    def test_preheat_step_defaults(self):
        """Test that omitted tunables take their defaults."""
        validated = _validate_input({}, STEP_PREHEAT_DATA_SCHEMA)

        assert validated[CONF_DISTANCE_THRESHOLD] == DEFAULT_DISTANCE_THRESHOLD
        assert validated[CONF_NOTIFY_ON_START] is False
        assert CONF_NOTIFICATION_TARGET not in validated

    def test_preheat_step_clears_empty_target(self):
        """Test that an empty notification target is stored as None."""
        validated = _validate_input({CONF_NOTIFICATION_TARGET: ""}, STEP_PREHEAT_DATA_SCHEMA)
        assert validated[CONF_NOTIFICATION_TARGET] is None
