from dataclasses import dataclass, field
import logging
import os
import re
from urllib.parse import urlencode

from dotenv import load_dotenv

from bulkcaller.errors import ConfigError


load_dotenv()

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
DEFAULT_TIMEOUT_SECONDS = 30.0

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    file_path: str = ""
    url: str = ""
    method: str = "POST"
    body_template: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    concurrency: int = 10
    delay_seconds: float = 0.0
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    output_dir: str | None = None
    print_responses: bool = False

    def validate(self) -> None:
        if not self.file_path:
            raise ConfigError("file path is required")
        if not self.url:
            raise ConfigError("URL is required")
        if not self.body_template:
            raise ConfigError("body template is required")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_retries < 0:
            raise ConfigError(f"max retries cannot be negative, got {self.max_retries}")
        if self.delay_seconds < 0:
            raise ConfigError(f"delay cannot be negative, got {self.delay_seconds}")
        if self.retry_backoff_seconds < 0:
            raise ConfigError(f"retry backoff cannot be negative, got {self.retry_backoff_seconds}")

    def request_url(self) -> str:
        if not self.query_params:
            return self.url
        sep = "&" if "?" in self.url else "?"
        return self.url + sep + urlencode(self.query_params)


def get_settings() -> Settings:
    output_dir = os.getenv("BULKCALLER_OUTPUT_DIR", "").strip()
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        method=os.getenv("BULKCALLER_METHOD", "POST").upper(),
        concurrency=_int_env("BULKCALLER_CONCURRENCY", 10),
        delay_seconds=_int_env("BULKCALLER_DELAY_MS", 0) / 1000.0,
        timeout_seconds=parse_duration(os.getenv("BULKCALLER_TIMEOUT", "30s")),
        max_retries=_int_env("BULKCALLER_MAX_RETRIES", 3),
        retry_backoff_seconds=_float_env("RETRY_BACKOFF_SECONDS", 1.0),
        output_dir=output_dir or None,
    )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def parse_key_value(text: str, sep: str) -> dict[str, str]:
    """Parse ``"a:1,b:2"`` style lists; items without ``sep`` are ignored."""
    result: dict[str, str] = {}
    if not text:
        return result
    for pair in text.split(","):
        key, found, value = pair.strip().partition(sep)
        if not found:
            continue
        result[key.strip()] = value.strip()
    return result


def parse_duration(text: str) -> float:
    match = _DURATION_RE.match(text or "")
    seconds = 0.0
    if match:
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]
    if seconds <= 0:
        logger.warning("invalid timeout %r, falling back to %ss", text, DEFAULT_TIMEOUT_SECONDS)
        return DEFAULT_TIMEOUT_SECONDS
    return seconds
