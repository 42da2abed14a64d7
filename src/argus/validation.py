from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from argus.config import SecurityConfig, parse_duration

VALID_LOG_LEVELS = ("info", "warn", "error", "mixed")


@dataclass(frozen=True)
class ValidationConfig:
    """Limits and defaults for query parameters of the load-generation endpoints."""

    max_test_duration: float = 10 * 60.0
    max_concurrency: int = 50
    max_count: int = 100000
    default_timeout: float = 30.0
    default_concurrency: int = 10
    default_count: int = 1000

    # PUBLIC_INTERFACE
    @classmethod
    def from_security(cls, security: SecurityConfig) -> "ValidationConfig":
        """Build validation limits from the configured security limits."""
        return cls(
            max_test_duration=security.max_test_duration,
            max_concurrency=security.max_concurrency,
            max_count=security.max_count,
        )


DEFAULT_VALIDATION = ValidationConfig()


def _parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


# PUBLIC_INTERFACE
def validate_duration(raw: Optional[str], cfg: ValidationConfig = DEFAULT_VALIDATION) -> float:
    """Parse a duration parameter in seconds; invalid or non-positive -> default, above max -> max."""
    if not raw:
        return cfg.default_timeout
    try:
        value = parse_duration(raw)
    except ValueError:
        return cfg.default_timeout
    if value <= 0:
        return cfg.default_timeout
    return min(value, cfg.max_test_duration)


# PUBLIC_INTERFACE
def validate_concurrency(raw: Optional[str], cfg: ValidationConfig = DEFAULT_VALIDATION) -> int:
    """Parse a worker count; invalid or non-positive -> default, above max -> max."""
    value = _parse_int(raw)
    if value is None or value <= 0:
        return cfg.default_concurrency
    return min(value, cfg.max_concurrency)


# PUBLIC_INTERFACE
def validate_count(raw: Optional[str], cfg: ValidationConfig = DEFAULT_VALIDATION) -> int:
    """Parse an item count; invalid or non-positive -> default, above max -> max."""
    value = _parse_int(raw)
    if value is None or value <= 0:
        return cfg.default_count
    return min(value, cfg.max_count)


# PUBLIC_INTERFACE
def validate_positive_int(raw: Optional[str], default: int, max_value: int = 0) -> int:
    """Parse a positive int; invalid or non-positive -> default. max_value of 0 disables the cap."""
    value = _parse_int(raw)
    if value is None or value <= 0:
        return default
    if max_value > 0 and value > max_value:
        return max_value
    return value


# PUBLIC_INTERFACE
def validate_log_level(raw: Optional[str]) -> str:
    """Return one of info/warn/error/mixed; anything else becomes 'mixed'."""
    if raw in VALID_LOG_LEVELS:
        return str(raw)
    return "mixed"


# PUBLIC_INTERFACE
def validate_string_from_list(raw: Optional[str], allowed: Iterable[str], default: str) -> str:
    """Return raw when it is one of the allowed values, otherwise default."""
    if raw and raw in set(allowed):
        return raw
    return default
