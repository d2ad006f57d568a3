from dataclasses import replace

import pytest

from bulkcaller.config import Settings, get_settings, parse_duration, parse_key_value
from bulkcaller.errors import ConfigError


def test_defaults_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BULKCALLER_METHOD",
        "BULKCALLER_CONCURRENCY",
        "BULKCALLER_DELAY_MS",
        "BULKCALLER_TIMEOUT",
        "BULKCALLER_MAX_RETRIES",
        "RETRY_BACKOFF_SECONDS",
        "BULKCALLER_OUTPUT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.method == "POST"
    assert settings.concurrency == 10
    assert settings.timeout_seconds == 30.0
    assert settings.max_retries == 3
    assert settings.retry_backoff_seconds == 1.0
    assert settings.delay_seconds == 0.0
    assert settings.output_dir is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BULKCALLER_METHOD", "put")
    monkeypatch.setenv("BULKCALLER_CONCURRENCY", "4")
    monkeypatch.setenv("BULKCALLER_DELAY_MS", "250")
    monkeypatch.setenv("BULKCALLER_TIMEOUT", "500ms")
    monkeypatch.setenv("BULKCALLER_OUTPUT_DIR", "/tmp/out")

    settings = get_settings()

    assert settings.method == "PUT"
    assert settings.concurrency == 4
    assert settings.delay_seconds == 0.25
    assert settings.timeout_seconds == 0.5
    assert settings.output_dir == "/tmp/out"


def test_non_integer_environment_value_is_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BULKCALLER_CONCURRENCY", "many")

    with pytest.raises(ConfigError):
        get_settings()


def test_parse_key_value() -> None:
    assert parse_key_value("Content-Type:application/json, Accept:*/*", ":") == {
        "Content-Type": "application/json",
        "Accept": "*/*",
    }
    assert parse_key_value("key1=value1,key2=value2", "=") == {"key1": "value1", "key2": "value2"}
    assert parse_key_value("Authorization:Bearer a:b", ":") == {"Authorization": "Bearer a:b"}
    assert parse_key_value("broken,ok=1", "=") == {"ok": "1"}
    assert parse_key_value("", ":") == {}


@pytest.mark.parametrize(
    ("text", "seconds"),
    [("30s", 30.0), ("500ms", 0.5), ("2m", 120.0), ("1h", 3600.0), ("15", 15.0), ("nonsense", 30.0), ("0s", 30.0)],
)
def test_parse_duration(text: str, seconds: float) -> None:
    assert parse_duration(text) == seconds


def test_validate_requires_file_url_and_body(test_settings: Settings) -> None:
    test_settings.validate()

    for field_name, message in (("file_path", "file path"), ("url", "URL"), ("body_template", "body template")):
        with pytest.raises(ConfigError, match=message):
            replace(test_settings, **{field_name: ""}).validate()


def test_validate_rejects_bad_numbers(test_settings: Settings) -> None:
    with pytest.raises(ConfigError):
        replace(test_settings, concurrency=0).validate()
    with pytest.raises(ConfigError):
        replace(test_settings, max_retries=-1).validate()
    with pytest.raises(ConfigError):
        replace(test_settings, delay_seconds=-0.1).validate()


def test_request_url_appends_query(test_settings: Settings) -> None:
    assert test_settings.request_url() == "http://example.test/api"
    assert replace(test_settings, query_params={"page": "1", "q": "a b"}).request_url() == (
        "http://example.test/api?page=1&q=a+b"
    )
    assert replace(test_settings, url="http://example.test/api?x=1", query_params={"y": "2"}).request_url() == (
        "http://example.test/api?x=1&y=2"
    )


def test_validate_rejects_negative_retry_backoff(test_settings: Settings) -> None:
    with pytest.raises(ConfigError, match="retry backoff"):
        replace(test_settings, retry_backoff_seconds=-1).validate()

    replace(test_settings, retry_backoff_seconds=0).validate()


def test_non_numeric_retry_backoff_is_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RETRY_BACKOFF_SECONDS", "abc")

    with pytest.raises(ConfigError, match="RETRY_BACKOFF_SECONDS"):
        get_settings()


def test_fractional_retry_backoff_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RETRY_BACKOFF_SECONDS", "0.25")

    assert get_settings().retry_backoff_seconds == 0.25
