import os
from pathlib import Path

from kumo_controller import __version__

__all__ = [
    "KUMO_API_BASE",
    "KUMO_API_TIMEOUT",
    "KUMO_APP_VERSION",
    "KUMO_ARP_TIMEOUT",
    "KUMO_CONFIG_DIR",
    "KUMO_CREDENTIALS_PATH",
    "KUMO_DEBUG",
    "KUMO_DEFAULT_HEADERS",
    "KUMO_DEVICE_ID_PREFIX",
    "KUMO_LOCAL_HEADERS",
    "KUMO_LOCAL_TIMEOUT",
    "KUMO_LOG_FORMAT",
    "KUMO_LOG_HUMAN_OUTPUT",
    "KUMO_LOG_JSON_FILE",
    "KUMO_MANUFACTURER",
    "KUMO_MAX_REDISCOVERIES",
    "KUMO_PERF_THRESHOLD_MS",
    "KUMO_PERF_TRACKING",
    "KUMO_POLL_INTERVAL",
    "KUMO_RETRY_BASE_DELAY",
    "KUMO_TOKEN_FALLBACK_DELAY",
    "KUMO_TOKEN_TTL",
    "KUMO_VERSION",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


KUMO_VERSION: str = __version__
KUMO_MANUFACTURER: str = "Mitsubishi"
KUMO_DEVICE_ID_PREFIX: str = "KUMO"

KUMO_API_BASE: str = os.environ.get("KUMO_API_BASE", "https://geo-c.kumocloud.com").rstrip("/")
KUMO_APP_VERSION: str = os.environ.get("KUMO_APP_VERSION", "2.2.0")
KUMO_DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Encoding": "gzip, deflate, br",
    "Accept-Language": "en-US,en",
    "Content-Type": "application/json",
}
KUMO_LOCAL_HEADERS: dict[str, str] = {
    "Accept": "application/json, text/plain, */*",
    "Content-Type": "application/json",
}

# seconds
KUMO_TOKEN_TTL: float = 1200.0
KUMO_TOKEN_FALLBACK_DELAY: float = 10.0
KUMO_API_TIMEOUT: float = _env_float("KUMO_API_TIMEOUT", 10.0)
KUMO_LOCAL_TIMEOUT: float = _env_float("KUMO_LOCAL_TIMEOUT", 5.0)
KUMO_ARP_TIMEOUT: float = _env_float("KUMO_ARP_TIMEOUT", 3.0)
KUMO_POLL_INTERVAL: float = _env_float("KUMO_POLL_INTERVAL", 20.0)
KUMO_RETRY_BASE_DELAY: float = _env_float("KUMO_RETRY_BASE_DELAY", 0.5)
KUMO_MAX_REDISCOVERIES: int = _env_int("KUMO_MAX_REDISCOVERIES", 1)

KUMO_CONFIG_DIR: Path = Path(os.environ.get("KUMO_CONFIG_DIR", "~/.kumo")).expanduser()
KUMO_CREDENTIALS_PATH: Path = KUMO_CONFIG_DIR / "credentials.yaml"

KUMO_DEBUG = os.environ.get("KUMO_DEBUG", "0").casefold() in YES_ANSWER

# Logging: "json", "human" or "both"
KUMO_LOG_FORMAT: str = os.environ.get("KUMO_LOG_FORMAT", "human").casefold()
_json_file = os.environ.get("KUMO_LOG_JSON_FILE")
KUMO_LOG_JSON_FILE: str | None = _json_file if _json_file else None
KUMO_LOG_HUMAN_OUTPUT: str = os.environ.get("KUMO_LOG_HUMAN_OUTPUT", "stderr")

KUMO_PERF_TRACKING = os.environ.get("KUMO_PERF_TRACKING", "0").casefold() in YES_ANSWER
KUMO_PERF_THRESHOLD_MS: int = _env_int("KUMO_PERF_THRESHOLD_MS", 1500)
