from __future__ import annotations

import dataclasses

import pytest

from argus.config import (
    ArgusConfig,
    SecurityConfig,
    TracingConfig,
    default_service_url,
    format_duration,
    load_config,
    parse_duration,
)
from argus.validation import (
    ValidationConfig,
    validate_concurrency,
    validate_count,
    validate_duration,
    validate_log_level,
    validate_positive_int,
    validate_string_from_list,
)


@pytest.mark.parametrize(
    "raw,expected",
    [("500ms", 0.5), ("30s", 30.0), ("1m", 60.0), ("1h30m", 5400.0), ("1.5s", 1.5), ("0", 0.0)],
)
def test_parse_duration_accepts_go_style_durations(raw: str, expected: float):
    assert parse_duration(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "abc", "10", "5x", "s10"])
def test_parse_duration_rejects_garbage(raw: str):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_format_duration_matches_go_rendering():
    assert format_duration(30) == "30s"
    assert format_duration(60) == "1m0s"
    assert format_duration(5400) == "1h30m0s"
    assert format_duration(0.5) == "500ms"
    assert format_duration(0) == "0s"


def test_load_config_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in ("ARGUS_PORT", "ARGUS_ENVIRONMENT", "ENVIRONMENT", "SERVICE_VERSION", "SERVER_IP", "ARGUS_RATE_LIMIT_RPM"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ARGUS_VERSION_FILE", "/nonexistent/VERSION")

    config = load_config()
    assert config.name == "argus"
    assert config.port == 3001
    assert config.environment == "development"
    assert config.version == "v0.0.1-dev"
    assert config.api_base_url == "http://argus:3001"
    assert config.service_url("grafana") == "http://localhost:3000"
    assert config.service_url("prometheus") == "http://localhost:9090"
    assert config.service_url("nope") == ""
    assert config.security.rate_limit_rpm == 1000


def test_load_config_reads_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    version_file = tmp_path / "VERSION"
    version_file.write_text("1.2.3\n", encoding="utf-8")
    monkeypatch.delenv("SERVICE_VERSION", raising=False)
    monkeypatch.setenv("ARGUS_VERSION_FILE", str(version_file))
    monkeypatch.setenv("ARGUS_ENVIRONMENT", "production")
    monkeypatch.setenv("ARGUS_PORT", "8080")
    monkeypatch.setenv("SERVER_IP", "10.0.0.5")
    monkeypatch.setenv("ARGUS_LOKI_URL", "http://logs.internal:3100/")
    monkeypatch.setenv("ARGUS_MAX_TEST_DURATION", "2m")
    monkeypatch.setenv("ARGUS_RATE_LIMIT_RPM", "not-a-number")

    config = load_config()
    assert config.version == "v1.2.3"
    assert config.port == 8080
    assert config.api_base_url == "http://10.0.0.5:8080"
    assert config.service_url("loki") == "http://logs.internal:3100"
    assert config.service_url("tempo") == "http://tempo:3200"
    assert config.security.max_test_duration == 120.0
    assert config.security.rate_limit_rpm == 1000


def test_default_service_url_depends_on_environment():
    assert default_service_url("tempo", "development") == "http://localhost:3200"
    assert default_service_url("tempo", "staging") == "http://tempo:3200"
    assert default_service_url("unknown", "development") == ""


def test_config_validate_rejects_non_positive_limits():
    config = ArgusConfig(
        name="argus",
        version="v1",
        environment="development",
        port=3001,
        api_base_url="http://argus:3001",
        service_urls={},
        security=SecurityConfig(),
        tracing=TracingConfig(),
    )
    config.validate()
    with pytest.raises(ValueError):
        dataclasses.replace(config, security=SecurityConfig(max_concurrency=0)).validate()
    with pytest.raises(ValueError):
        dataclasses.replace(config, name="").validate()


def test_validate_duration_defaults_and_clamps():
    cfg = ValidationConfig(max_test_duration=60.0)
    assert validate_duration(None, cfg) == 30.0
    assert validate_duration("bogus", cfg) == 30.0
    assert validate_duration("-5s", cfg) == 30.0
    assert validate_duration("10s", cfg) == 10.0
    assert validate_duration("2h", cfg) == 60.0


def test_validate_concurrency_and_count():
    cfg = ValidationConfig(max_concurrency=50, max_count=100)
    assert validate_concurrency("", cfg) == 10
    assert validate_concurrency("0", cfg) == 10
    assert validate_concurrency("7", cfg) == 7
    assert validate_concurrency("500", cfg) == 50
    assert validate_count("x", cfg) == 1000
    assert validate_count("1000000", cfg) == 100


def test_validate_positive_int_and_choices():
    assert validate_positive_int(None, 5) == 5
    assert validate_positive_int("-1", 5) == 5
    assert validate_positive_int("3000", 5, 1024) == 1024
    assert validate_positive_int("3000", 5) == 3000
    assert validate_log_level("warn") == "warn"
    assert validate_log_level("fatal") == "mixed"
    assert validate_log_level(None) == "mixed"
    assert validate_string_from_list("b", ["a", "b"], "a") == "b"
    assert validate_string_from_list("z", ["a", "b"], "a") == "a"


def test_validation_config_follows_security_limits():
    cfg = ValidationConfig.from_security(SecurityConfig(max_test_duration=90.0, max_concurrency=4, max_count=10))
    assert (cfg.max_test_duration, cfg.max_concurrency, cfg.max_count) == (90.0, 4, 10)
