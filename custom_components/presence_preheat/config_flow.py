"""Config flow for Presence Pre-heat integration."""
import logging
from typing import Any, Dict, Optional

import voluptuous as vol # type: ignore

from homeassistant import config_entries # type: ignore
from homeassistant.core import callback # type: ignore
from homeassistant.helpers import selector # type: ignore
from homeassistant.const import CONF_NAME # type: ignore

from .const import (
    DOMAIN,
    CONF_ZONE,
    CONF_PRESENCE_TRACKERS,
    CONF_PREHEAT_TRACKERS,
    CONF_DISTANCE_SENSORS,
    CONF_CLIMATE_ENTITIES,
    CONF_CONTROL_DATA_ENTITY,
    CONF_DISTANCE_THRESHOLD,
    CONF_TEMP_INCREMENT,
    CONF_COOLDOWN_MINUTES,
    CONF_ACTIVITY_TIMEOUT_MINUTES,
    CONF_MIN_APPROACH_SPEED,
    CONF_MAX_TIME_DIFF_MINUTES,
    CONF_MAX_PREHEAT_TEMP,
    CONF_MAX_PREHEAT_TEMP_ENTITY,
    CONF_MIN_APPROACH_SPEED_ENTITY,
    CONF_MAX_TIME_DIFF_ENTITY,
    CONF_NOTIFY_ON_START,
    CONF_NOTIFY_ON_ARRIVAL,
    CONF_NOTIFICATION_TARGET,
    DEFAULT_NAME,
    DEFAULT_DISTANCE_THRESHOLD,
    DEFAULT_TEMP_INCREMENT,
    DEFAULT_COOLDOWN_MINUTES,
    DEFAULT_ACTIVITY_TIMEOUT_MINUTES,
    DEFAULT_MIN_APPROACH_SPEED,
    DEFAULT_MAX_TIME_DIFF_MINUTES,
    DEFAULT_MAX_PREHEAT_TEMP,
)

_LOGGER = logging.getLogger(__name__)


def _number(min_value: float, max_value: float, step: float, unit: str) -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=min_value, max=max_value, step=step, unit_of_measurement=unit, mode="box"
        )
    )


ENTITY_FIELDS = {
    vol.Required(CONF_ZONE): selector.EntitySelector(
        selector.EntitySelectorConfig(domain="zone")
    ),
    vol.Required(CONF_PRESENCE_TRACKERS): selector.EntitySelector(
        selector.EntitySelectorConfig(domain=["device_tracker", "person"], multiple=True)
    ),
    # Order of trackers and distance sensors must match
    vol.Required(CONF_PREHEAT_TRACKERS): selector.EntitySelector(
        selector.EntitySelectorConfig(domain=["device_tracker", "person"], multiple=True)
    ),
    vol.Required(CONF_DISTANCE_SENSORS): selector.EntitySelector(
        selector.EntitySelectorConfig(domain="sensor", multiple=True)
    ),
    vol.Required(CONF_CLIMATE_ENTITIES): selector.EntitySelector(
        selector.EntitySelectorConfig(domain="climate", multiple=True)
    ),
    vol.Required(CONF_CONTROL_DATA_ENTITY): selector.EntitySelector(
        selector.EntitySelectorConfig(domain="input_text")
    ),
}

PREHEAT_FIELDS = {
    vol.Required(CONF_DISTANCE_THRESHOLD, default=DEFAULT_DISTANCE_THRESHOLD): _number(500, 20000, 100, "m"),
    vol.Required(CONF_TEMP_INCREMENT, default=DEFAULT_TEMP_INCREMENT): _number(0.1, 2.0, 0.1, "°C"),
    vol.Required(CONF_COOLDOWN_MINUTES, default=DEFAULT_COOLDOWN_MINUTES): _number(0, 120, 5, "min"),
    vol.Required(CONF_ACTIVITY_TIMEOUT_MINUTES, default=DEFAULT_ACTIVITY_TIMEOUT_MINUTES): _number(0, 240, 15, "min"),
    vol.Required(CONF_MIN_APPROACH_SPEED, default=DEFAULT_MIN_APPROACH_SPEED): _number(10, 2000, 10, "m/min"),
    vol.Required(CONF_MAX_TIME_DIFF_MINUTES, default=DEFAULT_MAX_TIME_DIFF_MINUTES): _number(1, 30, 1, "min"),
    vol.Required(CONF_MAX_PREHEAT_TEMP, default=DEFAULT_MAX_PREHEAT_TEMP): _number(10, 30, 0.5, "°C"),
    vol.Optional(CONF_MAX_PREHEAT_TEMP_ENTITY): selector.EntitySelector(
        selector.EntitySelectorConfig(domain="input_number")
    ),
    vol.Optional(CONF_MIN_APPROACH_SPEED_ENTITY): selector.EntitySelector(
        selector.EntitySelectorConfig(domain="input_number")
    ),
    vol.Optional(CONF_MAX_TIME_DIFF_ENTITY): selector.EntitySelector(
        selector.EntitySelectorConfig(domain="input_number")
    ),
    vol.Required(CONF_NOTIFY_ON_START, default=False): selector.BooleanSelector(),
    vol.Required(CONF_NOTIFY_ON_ARRIVAL, default=False): selector.BooleanSelector(),
    vol.Optional(CONF_NOTIFICATION_TARGET): selector.TextSelector(),
}

STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_NAME, default=DEFAULT_NAME): str,
        **ENTITY_FIELDS,
    }
)

STEP_PREHEAT_DATA_SCHEMA = vol.Schema(PREHEAT_FIELDS)


def _validate_input(user_input: dict, schema: vol.Schema) -> dict:
    """Validate user input against schema, clean up empty optional fields."""
    validated_input = schema(user_input)
    cleaned_input = validated_input.copy()

    for key_marker in schema.schema:
        key_str = key_marker.schema if isinstance(key_marker, vol.Marker) else key_marker
        if key_str in cleaned_input and cleaned_input[key_str] == "":
            if isinstance(key_marker, vol.Optional):
                cleaned_input[key_str] = None
    return cleaned_input


def _check_pairing(data: Dict[str, Any]) -> Optional[str]:
    """Return an error key if trackers and distance sensors cannot be paired."""
    trackers = data.get(CONF_PREHEAT_TRACKERS) or []
    sensors = data.get(CONF_DISTANCE_SENSORS) or []
    if len(trackers) != len(sensors):
        return "sensor_count_mismatch"
    return None


def _form_errors(err: vol.MultipleInvalid) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for error in err.errors:
        path = error.path[0] if error.path else "base"
        errors[path if isinstance(path, str) else "base"] = "invalid_input"
    return errors


class PresencePreheatConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Presence Pre-heat."""

    VERSION = 1

    def __init__(self):
        """Initialize the config flow."""
        self._config_data = {}

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Handle the entity selection step."""
        errors: Dict[str, str] = {}
        if user_input is not None:
            try:
                validated_input = _validate_input(user_input, STEP_USER_DATA_SCHEMA)
                pairing_error = _check_pairing(validated_input)
                if pairing_error:
                    errors["base"] = pairing_error
                else:
                    await self.async_set_unique_id(validated_input[CONF_NAME])
                    self._abort_if_unique_id_configured()
                    self._config_data.update(validated_input)
                    return await self.async_step_preheat()
            except vol.MultipleInvalid as e:
                _LOGGER.error("Validation error in user step: %s", e)
                errors.update(_form_errors(e))

        return self.async_show_form(
            step_id="user", data_schema=STEP_USER_DATA_SCHEMA, errors=errors
        )

    async def async_step_preheat(self, user_input: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Handle the pre-heat tuning and notification step."""
        errors: Dict[str, str] = {}
        if user_input is not None:
            try:
                validated_input = _validate_input(user_input, STEP_PREHEAT_DATA_SCHEMA)
                self._config_data.update(validated_input)
                return self._async_create_entry()
            except vol.MultipleInvalid as e:
                _LOGGER.error("Validation error in pre-heat step: %s", e)
                errors.update(_form_errors(e))

        return self.async_show_form(
            step_id="preheat",
            data_schema=STEP_PREHEAT_DATA_SCHEMA,
            errors=errors,
        )

    def _async_create_entry(self):
        """Create the config entry from the stored data."""
        final_data = {k: v for k, v in self._config_data.items() if v is not None}
        _LOGGER.info("Creating Presence Pre-heat entry: %s", final_data.get(CONF_NAME))
        _LOGGER.debug("Final config data for entry: %s", final_data)
        return self.async_create_entry(title=final_data[CONF_NAME], data=final_data)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> config_entries.OptionsFlow:
        """Get the options flow for this handler."""
        return PresencePreheatOptionsFlow(config_entry)


class PresencePreheatOptionsFlow(config_entries.OptionsFlow):
    """Handle an options flow for Presence Pre-heat."""

    def __init__(self, config_entry: config_entries.ConfigEntry):
        """Initialize options flow."""
        self.current_options = dict(config_entry.options)
        self.initial_data = dict(config_entry.data)

    def _get_options_schema(self) -> vol.Schema:
        """Return the options schema with the current values suggested."""
        options_schema_dict = {}

        for key_obj, selector_config in {**ENTITY_FIELDS, **PREHEAT_FIELDS}.items():
            key_str = key_obj.schema if isinstance(key_obj, vol.Marker) else key_obj
            current_value = self.current_options.get(key_str, self.initial_data.get(key_str))

            if current_value is None and key_obj.default is not vol.UNDEFINED:
                current_value = key_obj.default() if callable(key_obj.default) else key_obj.default

            if isinstance(key_obj, vol.Optional):
                options_schema_dict[vol.Optional(key_str, description={"suggested_value": current_value if current_value is not None else ""})] = selector_config
            else:
                options_schema_dict[vol.Required(key_str, default=current_value)] = selector_config

        return vol.Schema(options_schema_dict)

    async def async_step_init(self, user_input: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Manage the options."""
        errors: Dict[str, str] = {}

        if user_input is not None:
            updated_options = self.current_options.copy()
            try:
                current_schema = self._get_options_schema()
                processed_input = current_schema(user_input)

                pairing_error = _check_pairing(processed_input)
                if pairing_error:
                    errors["base"] = pairing_error
                else:
                    for key, value in processed_input.items():
                        # Cleared optional fields must override the original entry data
                        updated_options[key] = None if value == "" else value

                    _LOGGER.debug("Options Flow: Updating entry with new options: %s", updated_options)
                    return self.async_create_entry(title="", data=updated_options)
            except vol.MultipleInvalid as e:
                _LOGGER.error("Validation error in options step: %s", e)
                for error_detail in e.errors:
                    path = error_detail.path[0] if error_detail.path else "base"
                    errors[path if isinstance(path, str) else "base"] = "invalid_option_input"

        return self.async_show_form(
            step_id="init",
            data_schema=self._get_options_schema(),
            errors=errors,
        )
