"""Tests for integration setup, unload and services."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from custom_components.presence_preheat import (
    _coordinators_for_call,
    async_setup_entry,
    async_unload_entry,
)
from custom_components.presence_preheat.const import (
    DOMAIN,
    SERVICE_EVALUATE,
    SERVICE_RESET_CONTROL_DATA,
)
from custom_components.presence_preheat.engine import Trigger


def make_coordinator(entry_id: str) -> MagicMock:
    coordinator = MagicMock()
    coordinator.entry_id = entry_id
    coordinator.async_start = AsyncMock()
    coordinator.async_stop = AsyncMock()
    coordinator.async_evaluate = AsyncMock()
    coordinator.async_reset_control_data = AsyncMock()
    return coordinator


def make_entry(entry_id: str) -> MagicMock:
    entry = MagicMock()
    entry.entry_id = entry_id
    entry.data = {}
    entry.options = {}
    return entry


def make_call(**data) -> MagicMock:
    call = MagicMock()
    call.data = data
    return call


@pytest.fixture
def hass():
    """Mocked Home Assistant instance with a working service registry."""
    mock_hass = MagicMock()
    mock_hass.data = {}
    mock_hass.config_entries.async_forward_entry_setups = AsyncMock()
    mock_hass.config_entries.async_unload_platforms = AsyncMock(return_value=True)

    registered = {}

    def register(domain, service, handler, schema=None):
        registered[(domain, service)] = handler

    mock_hass.services.async_register.side_effect = register
    mock_hass.services.has_service.side_effect = lambda domain, service: (domain, service) in registered
    mock_hass.registered_services = registered
    return mock_hass


@pytest.fixture
def coordinators():
    """Coordinators handed out per entry id."""
    created = {}

    def factory(hass, entry):
        created[entry.entry_id] = make_coordinator(entry.entry_id)
        return created[entry.entry_id]

    with patch("custom_components.presence_preheat.PreheatCoordinator", side_effect=factory):
        yield created


async def setup_entries(hass, *entry_ids):
    entries = [make_entry(entry_id) for entry_id in entry_ids]
    for entry in entries:
        assert await async_setup_entry(hass, entry) is True
    return entries


class TestSetup:
    """Tests for setting up and unloading entries."""

    async def test_setup_starts_coordinator_and_registers_services(self, hass, coordinators):
        """Test that an entry gets a started coordinator and both services."""
        await setup_entries(hass, "entry_a")

        assert hass.data[DOMAIN]["coordinators"] == {"entry_a": coordinators["entry_a"]}
        coordinators["entry_a"].async_start.assert_awaited_once()
        assert set(hass.registered_services) == {
            (DOMAIN, SERVICE_EVALUATE),
            (DOMAIN, SERVICE_RESET_CONTROL_DATA),
        }

    async def test_services_registered_once(self, hass, coordinators):
        """Test that a second entry reuses the registered services."""
        await setup_entries(hass, "entry_a", "entry_b")
        assert hass.services.async_register.call_count == 2

    async def test_failed_platform_setup_stops_coordinator(self, hass, coordinators):
        """Test that listeners are removed when forwarding the platforms fails."""
        hass.config_entries.async_forward_entry_setups.side_effect = RuntimeError("platform failed")

        with pytest.raises(RuntimeError):
            await async_setup_entry(hass, make_entry("entry_a"))

        coordinators["entry_a"].async_stop.assert_awaited_once()
        assert hass.data[DOMAIN]["coordinators"] == {}

    async def test_unload_last_entry_removes_services(self, hass, coordinators):
        """Test that unloading the last entry stops it and removes the services."""
        (entry,) = await setup_entries(hass, "entry_a")

        assert await async_unload_entry(hass, entry) is True

        coordinators["entry_a"].async_stop.assert_awaited_once()
        assert hass.data[DOMAIN]["coordinators"] == {}
        removed = {call.args for call in hass.services.async_remove.call_args_list}
        assert removed == {(DOMAIN, SERVICE_EVALUATE), (DOMAIN, SERVICE_RESET_CONTROL_DATA)}

    async def test_unload_keeps_services_for_remaining_entries(self, hass, coordinators):
        """Test that services stay while another entry is loaded."""
        entry_a, _ = await setup_entries(hass, "entry_a", "entry_b")

        await async_unload_entry(hass, entry_a)

        assert list(hass.data[DOMAIN]["coordinators"]) == ["entry_b"]
        hass.services.async_remove.assert_not_called()

    async def test_failed_unload_keeps_coordinator(self, hass, coordinators):
        """Test that a failed platform unload leaves the coordinator running."""
        (entry,) = await setup_entries(hass, "entry_a")
        hass.config_entries.async_unload_platforms.return_value = False

        assert await async_unload_entry(hass, entry) is False

        coordinators["entry_a"].async_stop.assert_not_called()
        assert "entry_a" in hass.data[DOMAIN]["coordinators"]
        hass.services.async_remove.assert_not_called()


class TestServices:
    """Tests for the evaluate and reset_control_data services."""

    async def test_evaluate_all_entries(self, hass, coordinators):
        """Test that evaluate without entry_id runs every coordinator."""
        await setup_entries(hass, "entry_a", "entry_b")

        await hass.registered_services[(DOMAIN, SERVICE_EVALUATE)](make_call())

        for coordinator in coordinators.values():
            coordinator.async_evaluate.assert_awaited_once_with(Trigger.presence_change())

    async def test_evaluate_single_entry(self, hass, coordinators):
        """Test that evaluate with an entry_id only runs that coordinator."""
        await setup_entries(hass, "entry_a", "entry_b")

        await hass.registered_services[(DOMAIN, SERVICE_EVALUATE)](make_call(entry_id="entry_b"))

        coordinators["entry_a"].async_evaluate.assert_not_called()
        coordinators["entry_b"].async_evaluate.assert_awaited_once()

    async def test_reset_control_data(self, hass, coordinators):
        """Test that reset_control_data resets the targeted coordinator."""
        await setup_entries(hass, "entry_a", "entry_b")

        await hass.registered_services[(DOMAIN, SERVICE_RESET_CONTROL_DATA)](make_call(entry_id="entry_a"))

        coordinators["entry_a"].async_reset_control_data.assert_awaited_once()
        coordinators["entry_b"].async_reset_control_data.assert_not_called()

    async def test_unknown_entry_is_skipped(self, hass, coordinators, caplog):
        """Test that an unknown entry_id is logged and nothing runs."""
        await setup_entries(hass, "entry_a")

        await hass.registered_services[(DOMAIN, SERVICE_EVALUATE)](make_call(entry_id="missing"))

        coordinators["entry_a"].async_evaluate.assert_not_called()
        assert "missing" in caplog.text


class TestCoordinatorsForCall:
    """Tests for resolving service targets."""

    def test_no_integration_data(self):
        """Test that nothing is targeted before any entry is set up."""
        hass = MagicMock()
        hass.data = {}
        assert _coordinators_for_call(hass, make_call()) == []

    def test_all_entries(self):
        """Test that a call without entry_id targets every coordinator."""
        hass = MagicMock()
        first, second = make_coordinator("entry_a"), make_coordinator("entry_b")
        hass.data = {DOMAIN: {"coordinators": {"entry_a": first, "entry_b": second}}}
        assert _coordinators_for_call(hass, make_call()) == [first, second]
