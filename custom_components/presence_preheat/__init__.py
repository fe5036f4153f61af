"""The Presence Pre-heat integration."""

import logging
import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.helpers.typing import ConfigType
from homeassistant.helpers import config_validation as cv

from .const import DOMAIN, PLATFORMS, SERVICE_EVALUATE, SERVICE_RESET_CONTROL_DATA
from .coordinator import PreheatCoordinator
from .engine import Trigger

_LOGGER = logging.getLogger(__name__)

ATTR_ENTRY_ID = "entry_id"

SERVICE_SCHEMA = vol.Schema({
    vol.Optional(ATTR_ENTRY_ID): cv.string,
})


def _coordinators_for_call(hass: HomeAssistant, call: ServiceCall) -> list:
    """Return the coordinators targeted by a service call (all if no entry_id)."""
    coordinators = hass.data.get(DOMAIN, {}).get("coordinators", {})
    entry_id = call.data.get(ATTR_ENTRY_ID)
    if entry_id is None:
        return list(coordinators.values())
    coordinator = coordinators.get(entry_id)
    if coordinator is None:
        _LOGGER.warning("Could not find presence pre-heat entry: %s", entry_id)
        return []
    return [coordinator]


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the Presence Pre-heat integration."""
    hass.data.setdefault(DOMAIN, {}).setdefault("coordinators", {})
    _LOGGER.info("Presence Pre-heat async_setup completed. Entries are set up via async_setup_entry.")
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Presence Pre-heat from a config entry."""
    coordinators = hass.data.setdefault(DOMAIN, {}).setdefault("coordinators", {})

    _LOGGER.info("Setting up Presence Pre-heat entry %s", entry.entry_id)

    coordinator = PreheatCoordinator(hass, entry)
    coordinators[entry.entry_id] = coordinator
    await coordinator.async_start()

    try:
        await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    except Exception:
        # Listeners must not outlive a failed setup
        await coordinator.async_stop()
        coordinators.pop(entry.entry_id, None)
        raise

    # Register services if not already registered
    if not hass.services.has_service(DOMAIN, SERVICE_EVALUATE):
        async def evaluate_service(call: ServiceCall) -> None:
            """Service to run an evaluation immediately."""
            for target in _coordinators_for_call(hass, call):
                await target.async_evaluate(Trigger.presence_change())

        async def reset_control_data_service(call: ServiceCall) -> None:
            """Service to overwrite the control data helper with the empty record."""
            for target in _coordinators_for_call(hass, call):
                await target.async_reset_control_data()
                _LOGGER.info("Reset control data for %s", target.entry_id)

        hass.services.async_register(DOMAIN, SERVICE_EVALUATE, evaluate_service, schema=SERVICE_SCHEMA)
        hass.services.async_register(
            DOMAIN, SERVICE_RESET_CONTROL_DATA, reset_control_data_service, schema=SERVICE_SCHEMA
        )

    # Listen for options updates.
    entry.async_on_unload(entry.add_update_listener(async_update_options))

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Handle removal of an entry."""
    _LOGGER.info("Unloading Presence Pre-heat entry %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        _LOGGER.warning("Failed to unload platforms of Presence Pre-heat entry %s", entry.entry_id)
        return False

    coordinators = hass.data.get(DOMAIN, {}).get("coordinators", {})
    coordinator = coordinators.pop(entry.entry_id, None)
    if coordinator is not None:
        await coordinator.async_stop()

    if not coordinators:
        hass.services.async_remove(DOMAIN, SERVICE_EVALUATE)
        hass.services.async_remove(DOMAIN, SERVICE_RESET_CONTROL_DATA)

    _LOGGER.info("Successfully unloaded Presence Pre-heat entry %s", entry.entry_id)
    return True


async def async_update_options(hass: HomeAssistant, entry: ConfigEntry):
    """Handle options update."""
    _LOGGER.debug("Options updated for %s, reloading entry", entry.entry_id)
    await hass.config_entries.async_reload(entry.entry_id)
