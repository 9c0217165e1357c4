"""mapsmoke constants."""

# Site under test.
DEFAULT_BASE_URL = "https://www.navigator.ba/"

DEFAULT_TIMEOUT_S = 5.0
DEFAULT_POLL_INTERVAL_S = 0.1
DEFAULT_NAVIGATION_TIMEOUT_S = 30.0
DEFAULT_SCENARIO_TIMEOUT_S = 90.0
DEFAULT_CONCURRENCY = 4

ENV_PREFIX = "MAPSMOKE_"
