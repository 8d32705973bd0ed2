import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

# Configure logger
logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

SERVER_NAME = "truelist"
SERVER_VERSION = "0.1.0"

DEFAULT_BASE_URL = "https://api.truelist.io"
DEFAULT_TIMEOUT = 30.0
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_MS = 600
TRANSPORTS = ("stdio", "http")


class ConfigurationError(Exception):
    """Raised when the process environment cannot produce usable settings"""


@dataclass(frozen=True)
class Settings:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"


def configure_logging(level: str):
    """Apply the configured level once settings are loaded"""
    logging.getLogger().setLevel(level)


def _read_number(environ: Mapping[str, str], name: str, default, cast, minimum):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from environment variables"""
    if environ is None:
        environ = os.environ

    api_key = (environ.get("TRUELIST_API_KEY") or "").strip()
    if not api_key:
        raise ConfigurationError("TRUELIST_API_KEY environment variable is required")

    log_level = (environ.get("LOG_LEVEL") or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got {log_level!r}")

    transport = (environ.get("TRUELIST_TRANSPORT") or "stdio").strip().lower()
    if transport not in TRANSPORTS:
        raise ConfigurationError(
            f"TRUELIST_TRANSPORT must be one of {', '.join(TRANSPORTS)}, got {transport!r}"
        )

    return Settings(
        api_key=api_key,
        base_url=(environ.get("TRUELIST_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        timeout=_read_number(environ, "TRUELIST_TIMEOUT", DEFAULT_TIMEOUT, float, 0.1),
        batch_size=_read_number(environ, "TRUELIST_BATCH_SIZE", DEFAULT_BATCH_SIZE, int, 1),
        batch_delay_ms=_read_number(
            environ, "TRUELIST_BATCH_DELAY_MS", DEFAULT_BATCH_DELAY_MS, int, 0
        ),
        transport=transport,
        host=(environ.get("TRUELIST_HOST") or "127.0.0.1").strip(),
        port=_read_number(environ, "TRUELIST_PORT", 8000, int, 1),
        log_level=log_level,
    )
