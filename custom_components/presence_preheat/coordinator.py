"""Home Assistant glue for the Presence Pre-heat decision engine."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from homeassistant.config_entries import ConfigEntry  # type: ignore
from homeassistant.const import ATTR_ENTITY_ID, ATTR_TEMPERATURE  # type: ignore
from homeassistant.core import Event, HomeAssistant, callback  # type: ignore
from homeassistant.helpers.dispatcher import async_dispatcher_send  # type: ignore
from homeassistant.helpers.event import (  # type: ignore
    async_track_state_change_event,
    async_track_time_interval,
)
from homeassistant.util import dt as dt_util  # type: ignore

from .const import (
    CONF_ACTIVITY_TIMEOUT_MINUTES,
    CONF_CLIMATE_ENTITIES,
    CONF_CONTROL_DATA_ENTITY,
    CONF_COOLDOWN_MINUTES,
    CONF_DISTANCE_SENSORS,
    CONF_DISTANCE_THRESHOLD,
    CONF_MAX_PREHEAT_TEMP,
    CONF_MAX_PREHEAT_TEMP_ENTITY,
    CONF_MAX_TIME_DIFF_ENTITY,
    CONF_MAX_TIME_DIFF_MINUTES,
    CONF_MIN_APPROACH_SPEED,
    CONF_MIN_APPROACH_SPEED_ENTITY,
    CONF_NOTIFICATION_TARGET,
    CONF_PREHEAT_TRACKERS,
    CONF_PRESENCE_TRACKERS,
    CONF_TEMP_INCREMENT,
    CONF_ZONE,
    PERIODIC_CHECK_MINUTES,
    SIGNAL_CONTROL_DATA_UPDATED,
)
from .control_data import ControlData, parse_control_data
from .engine import (
    Decision,
    DecisionBranch,
    PreheatEngine,
    TrackedDevice,
    Trigger,
    Tunables,
)
from .notifications import notify_service, render_notification, should_notify

_LOGGER = logging.getLogger(__name__)

_UNUSABLE_STATES = ("unknown", "unavailable")


def _entity_list(value: Any) -> List[str]:
    """Normalize a single entity id or a list of them."""
    if isinstance(value, list):
        return [entity for entity in value if isinstance(entity, str) and entity]
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def _entity_id(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _state_to_float(state: Any) -> Optional[float]:
    """Return the numeric value of a state object, None if it has none."""
    if state is None or state.state in _UNUSABLE_STATES:
        return None
    try:
        value = float(state.state)
    except (ValueError, TypeError):
        return None
    return value if math.isfinite(value) else None


def _is_occupied(state: Any) -> bool:
    count = _state_to_float(state)
    return count is not None and count > 0


class PreheatCoordinator:
    """Feeds state changes into the engine and executes its decisions."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self._hass = hass
        self._entry_id = entry.entry_id
        self._config: Dict[str, Any] = {**entry.data, **entry.options}
        config = self._config

        self._zone_entity_id = _entity_id(config.get(CONF_ZONE))
        self._presence_trackers = _entity_list(config.get(CONF_PRESENCE_TRACKERS))
        trackers = _entity_list(config.get(CONF_PREHEAT_TRACKERS))
        sensors = _entity_list(config.get(CONF_DISTANCE_SENSORS))
        if len(trackers) != len(sensors):
            _LOGGER.warning(
                "[%s] %d pre-heat trackers but %d distance sensors, extra entries are ignored",
                self._entry_id,
                len(trackers),
                len(sensors),
            )
        self._climate_entities = _entity_list(config.get(CONF_CLIMATE_ENTITIES))
        self._control_data_entity_id = _entity_id(config.get(CONF_CONTROL_DATA_ENTITY))

        self._engine = PreheatEngine(
            [TrackedDevice(tracker, sensor) for tracker, sensor in zip(trackers, sensors)],
            self._climate_entities,
            self._read_tunables(),
        )

        self._lock = asyncio.Lock()
        self._unsubs: List[Callable[[], None]] = []

        self.control_data: ControlData = ControlData()
        self.last_branch: Optional[DecisionBranch] = None
        self.last_evaluation: Optional[datetime] = None

    @property
    def entry_id(self) -> str:
        return self._entry_id

    @property
    def engine(self) -> PreheatEngine:
        return self._engine

    async def async_start(self) -> None:
        """Load stored control data and start listening for triggers."""
        self.control_data = parse_control_data(self._read_raw_control_data())

        if self._zone_entity_id:
            self._unsubs.append(
                async_track_state_change_event(self._hass, [self._zone_entity_id], self._async_zone_changed)
            )
        if self._presence_trackers:
            self._unsubs.append(
                async_track_state_change_event(self._hass, self._presence_trackers, self._async_presence_changed)
            )
        sensors = [device.distance_sensor_id for device in self._engine.devices]
        if sensors:
            self._unsubs.append(
                async_track_state_change_event(self._hass, sensors, self._async_distance_changed)
            )
        self._unsubs.append(
            async_track_time_interval(
                self._hass, self._async_periodic_check, timedelta(minutes=PERIODIC_CHECK_MINUTES)
            )
        )
        _LOGGER.info(
            "[%s] Listening to zone %s, %d trackers and %d distance sensors",
            self._entry_id,
            self._zone_entity_id,
            len(self._presence_trackers),
            len(sensors),
        )

    async def async_stop(self) -> None:
        """Remove all listeners."""
        while self._unsubs:
            self._unsubs.pop()()

    # Triggers

    def _schedule(self, trigger: Trigger) -> None:
        self._hass.async_create_task(self.async_evaluate(trigger))

    @callback
    def _async_zone_changed(self, event: Event) -> None:
        """Trigger only when the zone crosses between empty and occupied."""
        old_state = event.data.get("old_state")
        new_state = event.data.get("new_state")
        if _is_occupied(old_state) == _is_occupied(new_state):
            return
        self._schedule(Trigger.presence_change())

    @callback
    def _async_presence_changed(self, event: Event) -> None:
        self._schedule(Trigger.presence_change())

    @callback
    def _async_distance_changed(self, event: Event) -> None:
        """Translate a distance sensor update into a trigger for its tracker."""
        sensor_id = event.data.get("entity_id")
        device_id = self._engine.device_for_sensor(sensor_id)
        if device_id is None:
            return
        self._schedule(Trigger.distance_update(device_id, _state_to_float(event.data.get("new_state"))))

    async def _async_periodic_check(self, _now: datetime) -> None:
        """Periodic tick evaluating the activity timeout."""
        await self.async_evaluate(Trigger.periodic_check())

    # Evaluation

    async def async_evaluate(self, trigger: Trigger, now_ts: Optional[float] = None) -> Optional[Decision]:
        """Run one evaluation and apply its decision.

        Triggers arriving while an evaluation runs are dropped.
        """
        if self._lock.locked():
            _LOGGER.debug("[%s] Evaluation in progress, dropping %s trigger", self._entry_id, trigger.kind.value)
            return None

        async with self._lock:
            if now_ts is None:
                now_ts = dt_util.utcnow().timestamp()

            self._engine.tunables = self._read_tunables()
            state = parse_control_data(self._read_raw_control_data())
            decision = self._engine.decide(
                zone_occupied=self._read_zone_occupied(),
                trigger=trigger,
                state=state,
                now=now_ts,
                read_setpoint=self._read_setpoint,
                read_distance=self._read_distance,
            )
            await self._async_apply(decision)

            self.control_data = decision.state
            self.last_branch = decision.branch
            self.last_evaluation = dt_util.utc_from_timestamp(now_ts)
            async_dispatcher_send(self._hass, f"{SIGNAL_CONTROL_DATA_UPDATED}_{self._entry_id}")
            return decision

    async def async_reset_control_data(self) -> None:
        """Overwrite the helper with the empty record."""
        async with self._lock:
            self.control_data = ControlData()
            await self._async_write_control_data(self.control_data)
            async_dispatcher_send(self._hass, f"{SIGNAL_CONTROL_DATA_UPDATED}_{self._entry_id}")

    async def _async_apply(self, decision: Decision) -> None:
        """Execute the host commands of a decision."""
        if decision.branch is DecisionBranch.START:
            _LOGGER.info(
                "[%s] Pre-heating started by %s",
                self._entry_id,
                decision.state.preheat_triggered_by,
            )
        elif decision.branch is DecisionBranch.TIMEOUT and decision.notification:
            _LOGGER.info(
                "[%s] Pre-heating stopped, no update from %s",
                self._entry_id,
                decision.notification.device_id,
            )
        elif decision.branch is DecisionBranch.ARRIVAL and decision.notification:
            _LOGGER.info("[%s] Pre-heating stopped by arrival", self._entry_id)

        if decision.preset_mode is not None and self._climate_entities:
            await self._async_call(
                "climate",
                "set_preset_mode",
                {ATTR_ENTITY_ID: self._climate_entities, "preset_mode": decision.preset_mode.value},
            )

        for entity_id, temperature in decision.thermostat_commands:
            await self._async_call(
                "climate",
                "set_temperature",
                {ATTR_ENTITY_ID: entity_id, ATTR_TEMPERATURE: temperature},
            )

        await self._async_write_control_data(decision.state)

        if should_notify(decision.notification, self._config):
            await self._async_send_notification(decision)

    async def _async_write_control_data(self, data: ControlData) -> None:
        if not self._control_data_entity_id:
            _LOGGER.warning("[%s] No control data helper configured, state is not persisted", self._entry_id)
            return
        await self._async_call(
            "input_text",
            "set_value",
            {ATTR_ENTITY_ID: self._control_data_entity_id, "value": data.to_json()},
        )

    async def _async_send_notification(self, decision: Decision) -> None:
        service = notify_service(self._config.get(CONF_NOTIFICATION_TARGET))
        if service is None or decision.notification is None:
            return
        title, message = render_notification(decision.notification, self._friendly_name)
        domain, name = service
        await self._async_call(domain, name, {"title": title, "message": message})

    async def _async_call(self, domain: str, service: str, data: Dict[str, Any]) -> None:
        """Call a Home Assistant service, logging failures."""
        try:
            await self._hass.services.async_call(domain, service, data, blocking=True)
        except Exception as err:  # pylint: disable=broad-except
            _LOGGER.error("[%s] Failed to call %s.%s: %s", self._entry_id, domain, service, err)

    # Reads

    def _get_state(self, entity_id: Optional[str]) -> Any:
        if not entity_id:
            return None
        return self._hass.states.get(entity_id)

    def _read_zone_occupied(self) -> bool:
        state = self._get_state(self._zone_entity_id)
        if state is not None and _state_to_float(state) is None:
            _LOGGER.warning(
                "[%s] Zone %s has no person count (%s), treating it as empty",
                self._entry_id,
                self._zone_entity_id,
                state.state,
            )
        return _is_occupied(state)

    def _read_raw_control_data(self) -> Optional[str]:
        state = self._get_state(self._control_data_entity_id)
        return state.state if state else None

    def _read_setpoint(self, entity_id: str) -> Optional[float]:
        state = self._get_state(entity_id)
        if not state:
            return None
        value = state.attributes.get(ATTR_TEMPERATURE)
        try:
            return float(value) if value is not None else None
        except (ValueError, TypeError):
            _LOGGER.warning("[%s] Invalid setpoint from %s: %s", self._entry_id, entity_id, value)
            return None

    def _read_distance(self, entity_id: str) -> Optional[float]:
        state = self._get_state(entity_id)
        value = _state_to_float(state)
        if value is None and state is not None and state.state not in _UNUSABLE_STATES:
            _LOGGER.warning("[%s] Invalid distance from %s: %s", self._entry_id, entity_id, state.state)
        return value

    def _friendly_name(self, entity_id: str) -> Optional[str]:
        state = self._get_state(entity_id)
        if not state:
            return None
        return state.attributes.get("friendly_name")

    def _read_tunables(self) -> Tunables:
        """Collect tunables from the options and the optional input_number overrides."""
        config = self._config

        def override(entity_key: str, value_key: str) -> Any:
            value = _state_to_float(self._get_state(_entity_id(config.get(entity_key))))
            return value if value is not None else config.get(value_key)

        return Tunables.from_mapping(
            {
                "distance_threshold": config.get(CONF_DISTANCE_THRESHOLD),
                "temp_increment": config.get(CONF_TEMP_INCREMENT),
                "cooldown_minutes": config.get(CONF_COOLDOWN_MINUTES),
                "activity_timeout_minutes": config.get(CONF_ACTIVITY_TIMEOUT_MINUTES),
                "min_approach_speed": override(CONF_MIN_APPROACH_SPEED_ENTITY, CONF_MIN_APPROACH_SPEED),
                "max_time_diff_minutes": override(CONF_MAX_TIME_DIFF_ENTITY, CONF_MAX_TIME_DIFF_MINUTES),
                "max_preheat_temp": override(CONF_MAX_PREHEAT_TEMP_ENTITY, CONF_MAX_PREHEAT_TEMP),
            }
        )
