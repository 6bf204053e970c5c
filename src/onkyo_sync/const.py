import os

from onkyo_sync import __version__

__all__ = [
    "EISCP_PORT",
    "ONKYO_CATALOG_PATH",
    "ONKYO_COMMAND_TIMEOUT",
    "ONKYO_CONFIG_FILE_PATH",
    "ONKYO_CONNECT_TIMEOUT",
    "ONKYO_DEBUG",
    "ONKYO_LOG_FORMAT",
    "ONKYO_LOG_HUMAN_OUTPUT",
    "ONKYO_LOG_JSON_FILE",
    "ONKYO_METRICS_PORT",
    "ONKYO_RAW",
    "ONKYO_RECONNECT_BASE_DELAY",
    "ONKYO_RECONNECT_MAX_DELAY",
    "ONKYO_VERSION",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
ONKYO_VERSION: str = __version__

# eISCP listens on a fixed TCP port on every networked Onkyo/Integra/Pioneer unit
EISCP_PORT = 60128


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


ONKYO_RAW = os.environ.get("ONKYO_RAW_DEBUG", "0").casefold() in YES_ANSWER
ONKYO_DEBUG = os.environ.get("ONKYO_DEBUG", "0").casefold() in YES_ANSWER

ONKYO_CONNECT_TIMEOUT: float = _env_float("ONKYO_CONNECT_TIMEOUT", 5.0)
ONKYO_COMMAND_TIMEOUT: float = _env_float("ONKYO_COMMAND_TIMEOUT", 3.0)
ONKYO_RECONNECT_BASE_DELAY: float = _env_float("ONKYO_RECONNECT_BASE_DELAY", 0.5)
ONKYO_RECONNECT_MAX_DELAY: float = _env_float("ONKYO_RECONNECT_MAX_DELAY", 5.0)

_catalog_path = os.environ.get("ONKYO_CATALOG_PATH")
ONKYO_CATALOG_PATH: str | None = _catalog_path if _catalog_path else None
ONKYO_CONFIG_FILE_PATH: str = os.environ.get("ONKYO_CONFIG_FILE", "~/.config/onkyo-sync/devices.yaml")

_metrics_port = os.environ.get("ONKYO_METRICS_PORT", "")
ONKYO_METRICS_PORT: int | None = int(_metrics_port) if _metrics_port.isdigit() else None

# Logging Configuration
ONKYO_LOG_FORMAT: str = os.environ.get("ONKYO_LOG_FORMAT", "human")  # "json", "human", or "both"
_json_file = os.environ.get("ONKYO_LOG_JSON_FILE")
ONKYO_LOG_JSON_FILE: str | None = _json_file if _json_file else None
ONKYO_LOG_HUMAN_OUTPUT: str = os.environ.get("ONKYO_LOG_HUMAN_OUTPUT", "stderr")  # "stdout", "stderr", or file path
