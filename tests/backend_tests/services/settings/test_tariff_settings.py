import logging

import pytest
from pydantic import ValidationError

from backend.services import logging_config
from backend.services.settings.tariff_settings import DEFAULT_MAX_TIERS_PER_SCOPE, TariffSettings


def test_default_values():
    s = TariffSettings()
    assert s.api_base_url == "http://localhost:8000"
    assert s.request_timeout == 30
    assert s.max_tiers_per_scope == DEFAULT_MAX_TIERS_PER_SCOPE == 4
    assert s.log_level == "INFO"


def test_from_env(monkeypatch):
    monkeypatch.setenv("TARIFF_API_BASE_URL", "http://tariffs:8080")
    monkeypatch.setenv("TARIFF_REQUEST_TIMEOUT", "5")
    monkeypatch.setenv("TARIFF_MAX_TIERS_PER_SCOPE", "6")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    s = TariffSettings.from_env()

    assert s.api_base_url == "http://tariffs:8080"
    assert s.request_timeout == 5
    assert s.max_tiers_per_scope == 6
    assert s.log_level == "DEBUG"


def test_from_env_ignores_empty_values(monkeypatch):
    monkeypatch.setenv("TARIFF_REQUEST_TIMEOUT", "")
    assert TariffSettings.from_env().request_timeout == 30


@pytest.mark.parametrize("field, value", [
    ("request_timeout", 0),
    ("max_tiers_per_scope", 0),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        TariffSettings(**{field: value})


def test_configure_logging_runs_once(monkeypatch):
    calls = []
    monkeypatch.setattr(logging_config, "_LOGGING_CONFIGURED", False)
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    logging_config.configure_logging(TariffSettings(log_level="debug"))
    logging_config.configure_logging(TariffSettings(log_level="error"))

    assert len(calls) == 1
    assert calls[0]["level"] == logging.DEBUG
