from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

SERVICE_NAME = "argus"
DEFAULT_PORT = 3001
DEFAULT_VERSION = "v0.0.1-dev"

# Default ports for the LGTM services Argus talks to.
SERVICE_PORTS: Dict[str, int] = {
    "prometheus": 9090,
    "grafana": 3000,
    "loki": 3100,
    "tempo": 3200,
    "alertmanager": 9093,
    "otel-collector": 8888,
}

DEFAULT_PROMETHEUS_RULE_DIRS: Tuple[str, ...] = (
    "/etc/prometheus/rules/",
    "/opt/prometheus/rules/",
    "/usr/local/etc/prometheus/rules/",
    "/prometheus/rules/",
)

_PACKAGE_DIR = Path(__file__).resolve().parent

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


# PUBLIC_INTERFACE
def parse_duration(raw: str) -> float:
    """
    Parse a duration string such as '500ms', '30s', '1m' or '1h30m' into seconds.

    Raises ValueError when the string is empty or not a valid duration.
    """
    text = (raw or "").strip()
    if not text:
        raise ValueError("empty duration")
    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0
    pos = 0
    total = 0.0
    for m in _DURATION_RE.finditer(text):
        if m.start() != pos:
            raise ValueError(f"invalid duration {raw!r}")
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration {raw!r}")
    return sign * total


# PUBLIC_INTERFACE
def format_duration(seconds: float) -> str:
    """Render seconds in compact duration notation: '30s', '1m0s', '1h30m0s', '500ms'."""
    if seconds == 0:
        return "0s"
    if seconds < 1:
        ms = seconds * 1000
        return f"{ms:g}ms"
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    secs_txt = f"{secs:.9f}".rstrip("0").rstrip(".")
    if hours:
        return f"{int(hours)}h{int(minutes)}m{secs_txt}s"
    if minutes:
        return f"{int(minutes)}m{secs_txt}s"
    return f"{secs_txt}s"


def _env_int(name: str, default: int) -> int:
    """Parse an int env var with a default."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return int(default)


def _env_bool(name: str, default: bool = False) -> bool:
    """Parse a bool env var (true/false/1/0/yes/no/on/off)."""
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    val = raw.strip().lower()
    if val in ("1", "true", "yes", "y", "on"):
        return True
    if val in ("0", "false", "no", "n", "off"):
        return False
    return bool(default)


def _env_duration(name: str, default: float) -> float:
    """Parse a duration env var ('30s', '10m'); fall back to default seconds."""
    raw = os.getenv(name)
    if not raw:
        return float(default)
    try:
        value = parse_duration(raw)
    except ValueError:
        logger.warning("Ignoring invalid duration %s=%r", name, raw)
        return float(default)
    return value if value > 0 else float(default)


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class SecurityConfig:
    """Request limits, timeouts and header policies applied by the middleware chain."""

    rate_limit_rpm: int = 1000
    request_timeout: float = 30.0
    long_request_timeout: float = 15 * 60.0
    read_timeout: float = 15.0
    write_timeout: float = 30.0
    idle_timeout: float = 60.0
    shutdown_timeout: float = 30.0
    max_test_duration: float = 10 * 60.0
    max_concurrency: int = 50
    max_count: int = 100000
    max_header_bytes: int = 1 << 20
    enable_cors: bool = True
    allowed_origins: Tuple[str, ...] = ("*",)
    allowed_methods: Tuple[str, ...] = ("GET", "POST", "OPTIONS")
    allowed_headers: Tuple[str, ...] = ("Content-Type", "X-Request-ID", "X-User-ID", "X-Session-ID")
    enable_security_headers: bool = True


@dataclass(frozen=True)
class TracingConfig:
    """Synthetic tracing settings."""

    service_name: str = SERVICE_NAME
    collector_endpoint: str = "http://localhost:14268/api/traces"
    sampling_rate: float = 1.0


@dataclass(frozen=True)
class ArgusConfig:
    """Runtime configuration loaded from env and the optional VERSION file."""

    name: str
    version: str
    environment: str
    port: int
    api_base_url: str
    service_urls: Dict[str, str]
    security: SecurityConfig
    tracing: TracingConfig

    # Alert manager evaluation loop
    alert_eval_interval_sec: int = 30
    alert_evaluation_enabled: bool = True

    # Self-monitoring sampler feeding the argus_cpu/memory gauges
    resource_sample_interval_sec: int = 5

    # Bundled files and the places the rules file is written/copied to.
    alert_rules_path: Path = _PACKAGE_DIR / "configs" / "argus-alert-rules.yml"
    dashboard_path: Path = _PACKAGE_DIR / "configs" / "argus-test-dashboard.json"
    static_dir: Path = _PACKAGE_DIR / "static"
    rules_output_dir: str = "/tmp/prometheus-rules"
    prometheus_rule_dirs: Tuple[str, ...] = field(default=DEFAULT_PROMETHEUS_RULE_DIRS)

    # PUBLIC_INTERFACE
    def service_url(self, service: str) -> str:
        """Return the configured base URL for an LGTM service (empty string when unknown)."""
        return self.service_urls.get(service, "")

    # PUBLIC_INTERFACE
    def validate(self) -> None:
        """Reject configurations that would make the limits meaningless."""
        if not self.name:
            raise ValueError("service name cannot be empty")
        sec = self.security
        if sec.rate_limit_rpm <= 0:
            raise ValueError("rate limit must be positive")
        if sec.request_timeout <= 0:
            raise ValueError("request timeout must be positive")
        if sec.max_test_duration <= 0:
            raise ValueError("max test duration must be positive")
        if sec.max_concurrency <= 0:
            raise ValueError("max concurrency must be positive")
        if sec.max_count <= 0:
            raise ValueError("max count must be positive")


def _resolve_version(version_file: Optional[Path] = None) -> str:
    env_version = os.getenv("SERVICE_VERSION")
    if env_version:
        return env_version
    candidate = version_file or Path(os.getenv("ARGUS_VERSION_FILE", "VERSION"))
    if candidate.exists():
        text = candidate.read_text(encoding="utf-8").strip()
        if text:
            return text if text.startswith("v") else "v" + text
    return DEFAULT_VERSION


def _resolve_environment() -> str:
    return os.getenv("ARGUS_ENVIRONMENT") or os.getenv("ENVIRONMENT") or "development"


def _resolve_api_base_url(port: int) -> str:
    server_ip = os.getenv("SERVER_IP")
    if server_ip:
        return f"http://{server_ip}:{port}"
    return f"http://argus:{port}"


# PUBLIC_INTERFACE
def default_service_url(service: str, environment: str) -> str:
    """Environment-aware default URL: localhost in development, docker host names elsewhere."""
    port = SERVICE_PORTS.get(service)
    if port is None:
        return ""
    host = "localhost" if environment == "development" else service
    return f"http://{host}:{port}"


def _resolve_service_urls(environment: str) -> Dict[str, str]:
    urls: Dict[str, str] = {}
    for service in SERVICE_PORTS:
        env_key = service.upper().replace("-", "_") + "_URL"
        url = os.getenv("ARGUS_" + env_key) or os.getenv(env_key) or default_service_url(service, environment)
        urls[service] = url.rstrip("/")
    return urls


def _load_security() -> SecurityConfig:
    defaults = SecurityConfig()
    return SecurityConfig(
        rate_limit_rpm=_env_int("ARGUS_RATE_LIMIT_RPM", defaults.rate_limit_rpm),
        request_timeout=_env_duration("ARGUS_REQUEST_TIMEOUT", defaults.request_timeout),
        long_request_timeout=_env_duration("ARGUS_LONG_REQUEST_TIMEOUT", defaults.long_request_timeout),
        read_timeout=_env_duration("ARGUS_READ_TIMEOUT", defaults.read_timeout),
        write_timeout=_env_duration("ARGUS_WRITE_TIMEOUT", defaults.write_timeout),
        idle_timeout=_env_duration("ARGUS_IDLE_TIMEOUT", defaults.idle_timeout),
        shutdown_timeout=_env_duration("ARGUS_SHUTDOWN_TIMEOUT", defaults.shutdown_timeout),
        max_test_duration=_env_duration("ARGUS_MAX_TEST_DURATION", defaults.max_test_duration),
        max_concurrency=_env_int("ARGUS_MAX_CONCURRENCY", defaults.max_concurrency),
        max_count=_env_int("ARGUS_MAX_COUNT", defaults.max_count),
        max_header_bytes=_env_int("ARGUS_MAX_HEADER_BYTES", defaults.max_header_bytes),
        enable_cors=_env_bool("ARGUS_ENABLE_CORS", defaults.enable_cors),
        allowed_origins=_env_list("ARGUS_CORS_ALLOW_ORIGINS", defaults.allowed_origins),
        enable_security_headers=_env_bool("ARGUS_ENABLE_SECURITY_HEADERS", defaults.enable_security_headers),
    )


# PUBLIC_INTERFACE
def load_config() -> ArgusConfig:
    """Load ArgusConfig from env vars, falling back to defaults on missing or invalid values."""
    environment = _resolve_environment()
    port = _env_int("ARGUS_PORT", DEFAULT_PORT)

    tracing = TracingConfig(
        collector_endpoint=os.getenv("ARGUS_TRACING_ENDPOINT", TracingConfig.collector_endpoint),
    )

    config = ArgusConfig(
        name=SERVICE_NAME,
        version=_resolve_version(),
        environment=environment,
        port=port,
        api_base_url=_resolve_api_base_url(port),
        service_urls=_resolve_service_urls(environment),
        security=_load_security(),
        tracing=tracing,
        alert_eval_interval_sec=max(1, _env_int("ARGUS_ALERT_EVAL_INTERVAL_SEC", 30)),
        alert_evaluation_enabled=_env_bool("ARGUS_ALERT_EVALUATION_ENABLED", True),
        resource_sample_interval_sec=max(1, _env_int("ARGUS_RESOURCE_SAMPLE_INTERVAL_SEC", 5)),
        rules_output_dir=os.getenv("ARGUS_RULES_DIR", "/tmp/prometheus-rules"),
        prometheus_rule_dirs=_env_list("ARGUS_PROMETHEUS_RULE_DIRS", DEFAULT_PROMETHEUS_RULE_DIRS),
    )
    config.validate()

    logger.info(
        "Loaded config environment=%s version=%s api_base_url=%s",
        config.environment,
        config.version,
        config.api_base_url,
    )
    return config
