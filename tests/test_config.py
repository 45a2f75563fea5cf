"""Environment-driven settings and the error payload shape."""

import pytest
from pydantic import ValidationError

from config import Settings, get_settings, reset_settings_cache
from errors import InvalidInput, NetworkFailure, NormalizationFailure, ScraperError


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


def test_defaults(monkeypatch):
    for name in ("PORT", "REDIRECT_TIMEOUT_SEC", "MAX_REDIRECT_HOPS", "AMAZON_MAX_REDIRECT_HOPS", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.port == 3001
    assert settings.redirect_timeout_sec == 10
    assert settings.max_redirect_hops == 5
    assert settings.amazon_max_redirect_hops == 3
    assert settings.cors_origins == ["*"]


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = reset_settings_cache()

    assert settings.port == 8080
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.log_level == "DEBUG"
    assert get_settings() is settings


@pytest.mark.parametrize("name, value", [("REDIRECT_TIMEOUT_SEC", "0"), ("FETCH_MAX_REDIRECTS", "-1")])
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings()


class TestErrors:
    def test_payload(self):
        err = NormalizationFailure("URL inválida", details={"original_url": "x"})
        assert err.status_code == 400
        assert err.to_payload() == {
            "error": True,
            "message": "URL inválida",
            "suggestion": "Verifique o link e tente novamente",
            "original_url": "x",
        }

    def test_hierarchy(self):
        assert issubclass(InvalidInput, ScraperError)
        assert NetworkFailure("x").status_code == 500
        assert not NetworkFailure("x").timeout
        assert str(InvalidInput("missing")) == "missing"
