"""Persisted control data for Presence Pre-heat.

All dynamic data of the rule lives in a single ``input_text`` helper as a
JSON object. The field names are shared with deployments of the original
blueprint, so they must not change.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import json
import math
from typing import Any, Dict, Iterable, Optional

from .const import (
    ATTR_COOLDOWN_UNTIL,
    ATTR_DEVICES,
    ATTR_DISTANCE,
    ATTR_LAST_ACTIVE_UPDATE,
    ATTR_PREHEAT_ACTIVE,
    ATTR_TIMESTAMP,
    ATTR_TRIGGERED_BY,
)

_UNUSABLE_STATES = ("", "unknown", "unavailable", "none")


def _as_float(value: Any, default: float) -> float:
    """Return value as a finite float, or default when it is not one."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


@dataclass(frozen=True)
class DeviceSample:
    """Last known distance of a tracked device and when it was recorded."""

    distance: float
    timestamp: float

    @property
    def is_valid(self) -> bool:
        """True if the sample can serve as the previous point of a speed estimate."""
        return self.distance >= 0 and self.timestamp > 0

    def as_dict(self) -> Dict[str, float]:
        return {ATTR_DISTANCE: float(self.distance), ATTR_TIMESTAMP: float(self.timestamp)}

    @classmethod
    def from_dict(cls, payload: Any) -> Optional["DeviceSample"]:
        """Build a sample from its JSON form, None if it is malformed."""
        if not isinstance(payload, dict):
            return None
        distance = _as_float(payload.get(ATTR_DISTANCE), -1.0)
        timestamp = _as_float(payload.get(ATTR_TIMESTAMP), -1.0)
        if distance < 0 or timestamp <= 0:
            return None
        return cls(distance=distance, timestamp=timestamp)


@dataclass(frozen=True)
class ControlData:
    """Pre-heat status, cooldown and per-device samples."""

    preheat_globally_active: bool = False
    preheat_cooldown_until: float = 0.0
    preheat_triggered_by: Optional[str] = None
    preheat_last_active_update: float = 0.0
    devices: Dict[str, DeviceSample] = field(default_factory=dict)

    def with_sample(self, device_id: str, sample: DeviceSample) -> "ControlData":
        """Return a copy with the sample of one device replaced."""
        devices = dict(self.devices)
        devices[device_id] = sample
        return replace(self, devices=devices)

    def cleared_cycle(self) -> "ControlData":
        """Return a copy with no active pre-heat cycle."""
        return replace(
            self,
            preheat_globally_active=False,
            preheat_triggered_by=None,
            preheat_last_active_update=0.0,
        )

    def reconcile(self, device_ids: Iterable[str]) -> "ControlData":
        """Drop data of devices that are no longer configured.

        An active cycle whose triggering device is gone can never receive a
        heartbeat again, so it is cleared as well.
        """
        configured = list(device_ids)
        devices = {
            device_id: sample
            for device_id, sample in self.devices.items()
            if device_id in configured
        }
        reconciled = replace(self, devices=devices)
        if reconciled.preheat_globally_active and reconciled.preheat_triggered_by not in configured:
            reconciled = reconciled.cleared_cycle()
        return reconciled

    def as_dict(self) -> Dict[str, Any]:
        """Return the JSON-serializable wire form."""
        return {
            ATTR_PREHEAT_ACTIVE: self.preheat_globally_active,
            ATTR_COOLDOWN_UNTIL: int(self.preheat_cooldown_until),
            ATTR_TRIGGERED_BY: self.preheat_triggered_by,
            ATTR_LAST_ACTIVE_UPDATE: self.preheat_last_active_update,
            ATTR_DEVICES: {device_id: sample.as_dict() for device_id, sample in self.devices.items()},
        }

    def to_json(self) -> str:
        # input_text values are length limited, keep the encoding compact
        return json.dumps(self.as_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ControlData":
        """Build control data from its wire form, defaulting every bad field."""
        devices: Dict[str, DeviceSample] = {}
        devices_payload = payload.get(ATTR_DEVICES)
        if isinstance(devices_payload, dict):
            for device_id, sample_payload in devices_payload.items():
                sample = DeviceSample.from_dict(sample_payload)
                if sample is not None:
                    devices[str(device_id)] = sample

        triggered_by = payload.get(ATTR_TRIGGERED_BY)
        if not isinstance(triggered_by, str) or triggered_by.strip().lower() in _UNUSABLE_STATES:
            triggered_by = None

        return cls(
            preheat_globally_active=_as_bool(payload.get(ATTR_PREHEAT_ACTIVE)),
            preheat_cooldown_until=_as_float(payload.get(ATTR_COOLDOWN_UNTIL), 0.0),
            preheat_triggered_by=triggered_by,
            preheat_last_active_update=_as_float(payload.get(ATTR_LAST_ACTIVE_UPDATE), 0.0),
            devices=devices,
        )


def parse_control_data(raw: Optional[str]) -> ControlData:
    """Parse the helper value, falling back to the empty record.

    Never raises: an empty, unavailable or corrupt helper yields defaults.
    """
    if raw is None or raw.strip().lower() in _UNUSABLE_STATES:
        return ControlData()
    try:
        payload = json.loads(raw)
    except ValueError:
        return ControlData()
    if not isinstance(payload, dict):
        return ControlData()
    return ControlData.from_dict(payload)
