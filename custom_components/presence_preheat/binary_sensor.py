"""Binary sensor platform for Presence Pre-heat."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from homeassistant.components.binary_sensor import BinarySensorDeviceClass, BinarySensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_NAME
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.util import dt as dt_util

from .const import DEFAULT_NAME, DOMAIN, SIGNAL_CONTROL_DATA_UPDATED
from .coordinator import PreheatCoordinator

_LOGGER = logging.getLogger(__name__)


def _iso_or_none(ts: float) -> Optional[str]:
    if not ts:
        return None
    return dt_util.utc_from_timestamp(ts).isoformat()


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities,
) -> None:
    """Set up Presence Pre-heat binary sensors."""
    coordinator = hass.data[DOMAIN]["coordinators"][entry.entry_id]
    async_add_entities([PreheatActiveBinarySensor(coordinator, entry)])


class PreheatActiveBinarySensor(BinarySensorEntity):
    """Binary sensor reflecting whether a pre-heat cycle is active."""

    _attr_has_entity_name = True
    _attr_should_poll = False
    _attr_device_class = BinarySensorDeviceClass.HEAT

    def __init__(self, coordinator: PreheatCoordinator, entry: ConfigEntry) -> None:
        self._coordinator = coordinator
        self._entry = entry
        base_name = entry.title or entry.data.get(CONF_NAME) or DEFAULT_NAME
        self._attr_unique_id = f"{entry.entry_id}_preheat_active"
        self._attr_name = f"{base_name} Pre-heat Active"
        self._attr_icon = "mdi:home-thermometer-outline"
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry.entry_id)},
            name=base_name,
        )
        self._attr_is_on = False
        self._attr_extra_state_attributes: dict[str, Any] = {}
        self._unsub_dispatcher: Optional[Callable[[], None]] = None
        self._update_from_coordinator()

    async def async_added_to_hass(self) -> None:
        """Run when the binary sensor is added to Home Assistant."""
        await super().async_added_to_hass()
        self._unsub_dispatcher = async_dispatcher_connect(
            self.hass,
            f"{SIGNAL_CONTROL_DATA_UPDATED}_{self._entry.entry_id}",
            self._handle_control_data_updated,
        )

    async def async_will_remove_from_hass(self) -> None:
        """Cleanup when the binary sensor is removed."""
        if self._unsub_dispatcher:
            self._unsub_dispatcher()
            self._unsub_dispatcher = None
        await super().async_will_remove_from_hass()

    @callback
    def _handle_control_data_updated(self) -> None:
        """Handle a finished evaluation."""
        self._update_from_coordinator()
        self.async_write_ha_state()

    def _update_from_coordinator(self) -> None:
        """Mirror the coordinator's control data."""
        data = self._coordinator.control_data
        branch = self._coordinator.last_branch
        last_evaluation = self._coordinator.last_evaluation

        self._attr_is_on = data.preheat_globally_active
        self._attr_extra_state_attributes = {
            "triggered_by": data.preheat_triggered_by,
            "last_active_update": _iso_or_none(data.preheat_last_active_update),
            "cooldown_until": _iso_or_none(data.preheat_cooldown_until),
            "tracked_devices": {
                device_id: round(sample.distance, 1) for device_id, sample in data.devices.items()
            },
            "last_decision": branch.value if branch else None,
            "last_evaluation": last_evaluation.isoformat() if last_evaluation else None,
        }
