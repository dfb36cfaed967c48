"""Internal constants shared across the library."""

BASE_URL = "https://owner-api.teslamotors.com"
AUTH_BASE_URL = "https://auth.tesla.com"
AUTHORIZE_PATH = "/oauth2/v3/authorize"
TOKEN_PATH = "/oauth2/v3/token"
REVOKE_PATH = "/oauth/revoke"
VEHICLES_PATH = "/api/1/vehicles"

OAUTH_CLIENT_ID = "ownerapi"
OAUTH_REDIRECT_URI = "https://auth.tesla.com/void/callback"
OAUTH_SCOPE = "openid email offline_access"

USER_AGENT = "pyteslacar/0.1"
X_TESLA_USER_AGENT = "TeslaApp/4.10.0"

JSON_HEADERS: dict[str, str] = {
    "accept": "application/json",
    "content-type": "application/json; charset=UTF-8",
    "user-agent": USER_AGENT,
    "x-tesla-user-agent": X_TESLA_USER_AGENT,
}

# Reason the owner API returns with HTTP 200 when the car's internal buses stay asleep.
COULD_NOT_WAKE_BUSES = "could_not_wake_buses"

# Seconds in the future a software update is scheduled for.
SOFTWARE_UPDATE_OFFSET_S = 120

CHARGE_LIMIT_MIN = 50
CHARGE_LIMIT_MAX = 100
TEMP_MIN_C = 15.0
TEMP_MAX_C = 28.0
