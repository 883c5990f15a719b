"""Host, port and logging settings for the attempt API."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
API_LOG_LEVEL: str = "info"
# Only used to discover the LAN address; no packets are sent.
LAN_PROBE_ADDRESS: tuple[str, int] = ("8.8.8.8", 80)
LOOPBACK_ADDRESS: str = "127.0.0.1"
