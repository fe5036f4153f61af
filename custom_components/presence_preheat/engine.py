"""Pre-heat decision logic for Presence Pre-heat.

The engine is pure: it receives the zone occupancy, the trigger, the stored
control data and the current time, and returns the next control data plus
the commands the host should execute. Thermostat setpoints and distance
sensor states are pulled through callables only when a branch needs them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
import logging
import math
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from .const import (
    DEFAULT_ACTIVITY_TIMEOUT_MINUTES,
    DEFAULT_COOLDOWN_MINUTES,
    DEFAULT_DISTANCE_THRESHOLD,
    DEFAULT_MAX_PREHEAT_TEMP,
    DEFAULT_MAX_TIME_DIFF_MINUTES,
    DEFAULT_MIN_APPROACH_SPEED,
    DEFAULT_TEMP_INCREMENT,
    DEFAULT_THERMOSTAT_TEMP,
    INVALID_DISTANCE,
    MIN_SAMPLE_INTERVAL_SECONDS,
    PRESET_AWAY,
    PRESET_HOME,
    SENTINEL_DISTANCE,
)
from .control_data import ControlData, DeviceSample

_LOGGER = logging.getLogger(__name__)

SetpointReader = Callable[[str], Optional[float]]
DistanceReader = Callable[[str], Optional[float]]


class TriggerKind(str, Enum):
    """What caused an evaluation."""

    PRESENCE_CHANGE = "presence_change"
    DISTANCE_UPDATE = "distance_update"
    PERIODIC_CHECK = "periodic_check"


class PresetMode(str, Enum):
    HOME = PRESET_HOME
    AWAY = PRESET_AWAY


class NotificationKind(str, Enum):
    PREHEAT_STARTED = "preheat_started"
    PREHEAT_STOPPED_ARRIVAL = "preheat_stopped_arrival"
    PREHEAT_TIMEOUT = "preheat_timeout"


class DecisionBranch(str, Enum):
    """Row of the decision table that produced a decision."""

    ARRIVAL = "arrival"
    TRACK = "track"
    START = "start"
    TIMEOUT = "timeout"
    HOLD = "hold"
    AWAY = "away"


@dataclass(frozen=True)
class Trigger:
    """An evaluation trigger; distance updates carry the reporting device."""

    kind: TriggerKind
    device_id: Optional[str] = None
    distance: float = INVALID_DISTANCE

    @classmethod
    def presence_change(cls) -> "Trigger":
        return cls(TriggerKind.PRESENCE_CHANGE)

    @classmethod
    def periodic_check(cls) -> "Trigger":
        return cls(TriggerKind.PERIODIC_CHECK)

    @classmethod
    def distance_update(cls, device_id: str, distance: Optional[float]) -> "Trigger":
        value = INVALID_DISTANCE if distance is None else float(distance)
        return cls(TriggerKind.DISTANCE_UPDATE, device_id=device_id, distance=value)

    @property
    def has_valid_reading(self) -> bool:
        """True for a distance update with a usable (non-negative) reading."""
        return (
            self.kind is TriggerKind.DISTANCE_UPDATE
            and self.device_id is not None
            and self.distance >= 0
        )


@dataclass(frozen=True)
class TrackedDevice:
    """A presence tracker paired with the sensor reporting its distance from home."""

    device_id: str
    distance_sensor_id: str


def _tunable(data: Mapping[str, Any], key: str, default: float) -> float:
    value = data.get(key)
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


@dataclass
class Tunables:
    """Numeric settings of the engine."""

    distance_threshold: float = DEFAULT_DISTANCE_THRESHOLD  # [m]
    temp_increment: float = DEFAULT_TEMP_INCREMENT  # [°C]
    cooldown_minutes: float = DEFAULT_COOLDOWN_MINUTES
    activity_timeout_minutes: float = DEFAULT_ACTIVITY_TIMEOUT_MINUTES  # 0 disables
    min_approach_speed: float = DEFAULT_MIN_APPROACH_SPEED  # [m/min]
    max_time_diff_minutes: float = DEFAULT_MAX_TIME_DIFF_MINUTES
    max_preheat_temp: float = DEFAULT_MAX_PREHEAT_TEMP  # [°C]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Tunables":
        """Build tunables keyed by field name, defaulting missing or bad values."""
        return cls(**{item.name: _tunable(data, item.name, item.default) for item in fields(cls)})


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    device_id: Optional[str] = None


@dataclass
class Decision:
    """Outcome of one evaluation."""

    branch: DecisionBranch
    state: ControlData
    thermostat_commands: List[Tuple[str, float]] = field(default_factory=list)
    preset_mode: Optional[PresetMode] = None
    notification: Optional[Notification] = None


def approach_speed_ok(
    current_distance: float,
    previous: Optional[DeviceSample],
    now: float,
    tunables: Tunables,
) -> bool:
    """Return True if two consecutive samples show a fast enough approach.

    The previous sample must be valid and farther away, and the two samples
    must lie within (MIN_SAMPLE_INTERVAL_SECONDS, max_time_diff) of each other.
    """
    if current_distance < 0 or previous is None or not previous.is_valid:
        return False
    if current_distance >= previous.distance:
        return False

    time_diff = now - previous.timestamp
    if time_diff <= MIN_SAMPLE_INTERVAL_SECONDS or time_diff >= tunables.max_time_diff_minutes * 60:
        return False

    required_distance = (tunables.min_approach_speed / 60.0) * time_diff
    return (previous.distance - current_distance) >= required_distance


@dataclass(frozen=True)
class _Context:
    zone_occupied: bool
    trigger: Trigger
    state: ControlData
    now: float


class PreheatEngine:
    """Decision table turning sensor changes into thermostat commands."""

    def __init__(
        self,
        devices: Sequence[TrackedDevice],
        thermostats: Sequence[str],
        tunables: Optional[Tunables] = None,
    ) -> None:
        self.devices = list(devices)
        self.thermostats = list(thermostats)
        self.tunables = tunables or Tunables()

        # Ordered rows; the guards exclude each other so order only documents priority
        self._table = (
            (DecisionBranch.ARRIVAL, self._is_arrival, self._arrival),
            (DecisionBranch.TRACK, self._is_track, self._track),
            (DecisionBranch.START, self._is_start, self._start),
            (DecisionBranch.TIMEOUT, self._is_timeout, self._timeout),
            (DecisionBranch.HOLD, self._is_hold, self._hold),
        )

    @property
    def device_ids(self) -> List[str]:
        return [device.device_id for device in self.devices]

    def device_for_sensor(self, sensor_id: str) -> Optional[str]:
        """Return the tracker paired with a distance sensor."""
        for device in self.devices:
            if device.distance_sensor_id == sensor_id:
                return device.device_id
        return None

    def decide(
        self,
        *,
        zone_occupied: bool,
        trigger: Trigger,
        state: ControlData,
        now: float,
        read_setpoint: Optional[SetpointReader] = None,
        read_distance: Optional[DistanceReader] = None,
    ) -> Decision:
        """Evaluate the decision table and return the first matching decision."""
        ctx = _Context(
            zone_occupied=bool(zone_occupied),
            trigger=trigger,
            state=state.reconcile(self.device_ids),
            now=float(now),
        )

        for branch, guard, action in self._table:
            if guard(ctx):
                decision = action(ctx, read_setpoint)
                break
        else:
            decision = self._away(ctx, read_distance)

        _LOGGER.debug(
            "Pre-heat decision %s for %s (device=%s, distance=%s)",
            decision.branch.value,
            trigger.kind.value,
            trigger.device_id,
            trigger.distance,
        )
        return decision

    # Guards

    def _is_known_update(self, ctx: _Context) -> bool:
        return ctx.trigger.has_valid_reading and ctx.trigger.device_id in self.device_ids

    def _is_arrival(self, ctx: _Context) -> bool:
        return ctx.zone_occupied

    def _is_track(self, ctx: _Context) -> bool:
        return (
            not ctx.zone_occupied
            and ctx.state.preheat_globally_active
            and self._is_known_update(ctx)
        )

    def _is_start(self, ctx: _Context) -> bool:
        if ctx.zone_occupied or ctx.state.preheat_globally_active:
            return False
        if ctx.now <= ctx.state.preheat_cooldown_until:
            return False
        if not self._is_known_update(ctx):
            return False
        if ctx.trigger.distance >= self.tunables.distance_threshold:
            return False
        previous = ctx.state.devices.get(ctx.trigger.device_id)
        return approach_speed_ok(ctx.trigger.distance, previous, ctx.now, self.tunables)

    def _is_timeout(self, ctx: _Context) -> bool:
        state = ctx.state
        return (
            not ctx.zone_occupied
            and ctx.trigger.kind is TriggerKind.PERIODIC_CHECK
            and state.preheat_globally_active
            and self.tunables.activity_timeout_minutes > 0
            and state.preheat_triggered_by is not None
            and (ctx.now - state.preheat_last_active_update) > self.tunables.activity_timeout_minutes * 60
        )

    def _is_hold(self, ctx: _Context) -> bool:
        return (
            not ctx.zone_occupied
            and ctx.state.preheat_globally_active
            and not self._is_track(ctx)
            and not self._is_timeout(ctx)
        )

    # Actions

    def _arrival(self, ctx: _Context, _read_setpoint: Optional[SetpointReader]) -> Decision:
        was_active = ctx.state.preheat_globally_active
        state = ControlData(
            preheat_globally_active=False,
            preheat_cooldown_until=int(ctx.now + self.tunables.cooldown_minutes * 60),
            preheat_triggered_by=None,
            preheat_last_active_update=0.0,
            devices={
                device_id: DeviceSample(SENTINEL_DISTANCE, ctx.now)
                for device_id in self.device_ids
            },
        )
        notification = None
        if was_active:
            notification = Notification(NotificationKind.PREHEAT_STOPPED_ARRIVAL, ctx.state.preheat_triggered_by)
        return Decision(
            branch=DecisionBranch.ARRIVAL,
            state=state,
            preset_mode=PresetMode.HOME,
            notification=notification,
        )

    def _track(self, ctx: _Context, _read_setpoint: Optional[SetpointReader]) -> Decision:
        device_id = ctx.trigger.device_id
        state = ctx.state.with_sample(device_id, DeviceSample(ctx.trigger.distance, ctx.now))
        if device_id == state.preheat_triggered_by:
            state = replace(state, preheat_last_active_update=ctx.now)
        return Decision(branch=DecisionBranch.TRACK, state=state)

    def _start(self, ctx: _Context, read_setpoint: Optional[SetpointReader]) -> Decision:
        commands = []
        for thermostat in self.thermostats:
            current = read_setpoint(thermostat) if read_setpoint else None
            if current is None:
                current = DEFAULT_THERMOSTAT_TEMP
            target = min(current + self.tunables.temp_increment, self.tunables.max_preheat_temp)
            commands.append((thermostat, target))

        device_id = ctx.trigger.device_id
        state = replace(
            ctx.state.with_sample(device_id, DeviceSample(ctx.trigger.distance, ctx.now)),
            preheat_globally_active=True,
            preheat_triggered_by=device_id,
            preheat_last_active_update=ctx.now,
        )
        return Decision(
            branch=DecisionBranch.START,
            state=state,
            thermostat_commands=commands,
            notification=Notification(NotificationKind.PREHEAT_STARTED, device_id),
        )

    def _timeout(self, ctx: _Context, _read_setpoint: Optional[SetpointReader]) -> Decision:
        # Setpoints stay pre-heated, only the cycle is forgotten
        return Decision(
            branch=DecisionBranch.TIMEOUT,
            state=ctx.state.cleared_cycle(),
            notification=Notification(NotificationKind.PREHEAT_TIMEOUT, ctx.state.preheat_triggered_by),
        )

    def _hold(self, ctx: _Context, _read_setpoint: Optional[SetpointReader]) -> Decision:
        return Decision(branch=DecisionBranch.HOLD, state=ctx.state)

    def _away(self, ctx: _Context, read_distance: Optional[DistanceReader]) -> Decision:
        devices = {}
        for device in self.devices:
            distance: Optional[float] = None
            if ctx.trigger.has_valid_reading and ctx.trigger.device_id == device.device_id:
                distance = ctx.trigger.distance
            elif read_distance is not None:
                distance = read_distance(device.distance_sensor_id)
            if distance is None or distance < 0:
                distance = SENTINEL_DISTANCE
            devices[device.device_id] = DeviceSample(float(distance), ctx.now)

        state = replace(ctx.state.cleared_cycle(), devices=devices)
        return Decision(branch=DecisionBranch.AWAY, state=state, preset_mode=PresetMode.AWAY)
