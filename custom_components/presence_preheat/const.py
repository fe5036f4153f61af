"""Constants for the Presence Pre-heat integration."""

DOMAIN = "presence_preheat"

# Platforms to set up
PLATFORMS = ["binary_sensor"]

# Configuration Keys
CONF_ZONE = "zone"
CONF_PRESENCE_TRACKERS = "presence_trackers"
CONF_PREHEAT_TRACKERS = "preheat_trackers"
CONF_DISTANCE_SENSORS = "distance_sensors"
CONF_CLIMATE_ENTITIES = "climate_entities"
CONF_CONTROL_DATA_ENTITY = "control_data_entity"
CONF_DISTANCE_THRESHOLD = "distance_threshold"
CONF_TEMP_INCREMENT = "temp_increment"
CONF_COOLDOWN_MINUTES = "cooldown_minutes"
CONF_ACTIVITY_TIMEOUT_MINUTES = "activity_timeout_minutes"
CONF_MIN_APPROACH_SPEED = "min_approach_speed"
CONF_MAX_TIME_DIFF_MINUTES = "max_time_diff_minutes"
CONF_MAX_PREHEAT_TEMP = "max_preheat_temp"

# Optional input_number overrides, read on every evaluation
CONF_MAX_PREHEAT_TEMP_ENTITY = "max_preheat_temp_entity"
CONF_MIN_APPROACH_SPEED_ENTITY = "min_approach_speed_entity"
CONF_MAX_TIME_DIFF_ENTITY = "max_time_diff_entity"

# Notifications
CONF_NOTIFY_ON_START = "notify_on_start"
CONF_NOTIFY_ON_ARRIVAL = "notify_on_arrival"
CONF_NOTIFICATION_TARGET = "notification_target"

# Default values
DEFAULT_NAME = "Presence Pre-heat"
DEFAULT_DISTANCE_THRESHOLD = 5000.0  # m
DEFAULT_TEMP_INCREMENT = 0.5  # °C
DEFAULT_COOLDOWN_MINUTES = 15.0
DEFAULT_ACTIVITY_TIMEOUT_MINUTES = 60.0  # 0 disables the timeout
DEFAULT_MIN_APPROACH_SPEED = 100.0  # m/min
DEFAULT_MAX_TIME_DIFF_MINUTES = 5.0
DEFAULT_MAX_PREHEAT_TEMP = 20.0  # °C
DEFAULT_THERMOSTAT_TEMP = 18.0  # °C - assumed setpoint when a thermostat reports none

# Distance stored for devices whose position is unknown or just arrived
SENTINEL_DISTANCE = 99999.0
# Reading reported by an unavailable distance sensor
INVALID_DISTANCE = -1.0
# Two samples closer together than this are too noisy for a speed estimate
MIN_SAMPLE_INTERVAL_SECONDS = 5.0

PERIODIC_CHECK_MINUTES = 5

# Presets applied to the controlled thermostats
PRESET_HOME = "home"
PRESET_AWAY = "away"

# Persisted control data (JSON keys of the input_text helper)
ATTR_PREHEAT_ACTIVE = "preheat_globally_active"
ATTR_COOLDOWN_UNTIL = "preheat_cooldown_until_ts"
ATTR_TRIGGERED_BY = "preheat_triggered_by_device_id"
ATTR_LAST_ACTIVE_UPDATE = "preheat_last_active_device_update_ts"
ATTR_DEVICES = "devices"
ATTR_DISTANCE = "dist"
ATTR_TIMESTAMP = "ts"

# Notification texts
NOTIFY_TITLE = "Heating Control"
NOTIFY_TITLE_TIMEOUT = "Heating Control (Timeout)"
NOTIFY_MESSAGE_STARTED = "Heating: Pre-heating started for {device}."
NOTIFY_MESSAGE_ARRIVAL = "Heating: Pre-heating stopped, someone has arrived."
NOTIFY_MESSAGE_TIMEOUT = "Heating: Pre-heating stopped due to inactivity of {device}."

# Services
SERVICE_EVALUATE = "evaluate"
SERVICE_RESET_CONTROL_DATA = "reset_control_data"

# Dispatcher signals
SIGNAL_CONTROL_DATA_UPDATED = "presence_preheat_control_data_updated"
