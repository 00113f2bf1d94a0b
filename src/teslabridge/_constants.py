"""Internal constants shared across the package."""

# Refresh grant parameters expected by the owner API token endpoint.
GRANT_TYPE = "refresh_token"
CLIENT_ID = "ownerapi"
SCOPE = "openid email offline_access"

BATTERY_TOPIC = "/tesla/state/battery"
STATE_TOPIC = "/tesla/state/charging"

PRESENCE_HOME = "home"
PRESENCE_NOT_HOME = "not_home"

CHARGING_STATES: frozenset[str] = frozenset({"Charging", "NoPower"})
DRIVING_SHIFT_STATES: frozenset[str] = frozenset({"D", "R"})

# Seconds.
ACTIVE_INTERVAL = 5 * 60
IDLE_INTERVAL = 15 * 60
PRESENCE_INTERVAL = 10 * 60
SETTLE_DELAY = 10.0

MQTT_PORT = 1883
MQTT_CLIENT_ID = "teslaClient"
MQTT_RECONNECT_ATTEMPTS = 3
MQTT_RECONNECT_DELAY = 60.0
