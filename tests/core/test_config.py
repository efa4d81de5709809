from __future__ import annotations

import pytest

from progress_service.core.config import AppEnv, Settings, load_settings

_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "CERTIFICATE_ISSUANCE",
    "LAB_PASS_THRESHOLD",
    "STORE_RETRY_ATTEMPTS",
    "STORE_RETRY_BACKOFF_MS",
    "JWT_PUBLIC_KEY_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


# ---- valid values ----


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.certificate_issuance == "inline"
    assert settings.lab_pass_threshold == 75.0
    assert settings.store_retry_attempts == 3
    assert settings.jwt_public_key_file is None


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("LOG_JSON", "true")
    monkeypatch.setenv("CERTIFICATE_ISSUANCE", "queued")
    monkeypatch.setenv("LAB_PASS_THRESHOLD", "60.5")
    monkeypatch.setenv("STORE_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("JWT_PUBLIC_KEY_FILE", "/run/secrets/jwt.pub")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "error"
    assert settings.log_json is True
    assert settings.certificate_issuance == "queued"
    assert settings.lab_pass_threshold == 60.5
    assert settings.store_retry_attempts == 5
    assert settings.jwt_public_key_file == "/run/secrets/jwt.pub"


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("CERTIFICATE_ISSUANCE", "  Queued ")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.certificate_issuance == "queued"


def test_negative_backoff_clamped_to_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_RETRY_BACKOFF_MS", "-10")
    assert load_settings().store_retry_backoff_ms == 0


# ---- invalid values ----


@pytest.mark.parametrize(
    "name,value,message",
    [
        ("APP_ENV", "staging", "APP_ENV must be"),
        ("LOG_LEVEL", "verbose", "LOG_LEVEL must be"),
        ("CERTIFICATE_ISSUANCE", "later", "CERTIFICATE_ISSUANCE must be"),
        ("LAB_PASS_THRESHOLD", "B+", "LAB_PASS_THRESHOLD must be a number"),
        ("LAB_PASS_THRESHOLD", "101", "LAB_PASS_THRESHOLD must be within"),
        ("STORE_RETRY_ATTEMPTS", "0", "STORE_RETRY_ATTEMPTS must be at least 1"),
        ("STORE_RETRY_ATTEMPTS", "three", "STORE_RETRY_ATTEMPTS must be an integer"),
        ("PORT", "http", "PORT must be an integer"),
    ],
)
def test_load_settings_rejects(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=message):
        load_settings()


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )


@pytest.mark.parametrize("app_env", ["dev", "test", "prod"])
def test_settings_env_flags(app_env: AppEnv) -> None:
    s = _make_settings(app_env)
    assert (s.is_dev, s.is_test, s.is_prod) == (
        app_env == "dev",
        app_env == "test",
        app_env == "prod",
    )


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.lab_pass_threshold = 0  # type: ignore[misc]
