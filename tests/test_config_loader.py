from datetime import timedelta

import pytest
from pydantic import ValidationError

from quotepay.contracts import Urgency
from quotepay.utils.config_loader import load_settlement_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "QUOTEPAY_API_URL",
        "QUOTEPAY_API_TIMEOUT",
        "QUOTEPAY_POLL_INTERVAL_MS",
        "QUOTEPAY_INTEGRATIONS_MODE",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests.
    monkeypatch.setattr("quotepay.utils.config_loader.load_dotenv", lambda: False)


def test_loads_yaml(tmp_path):
    path = tmp_path / "settlement.yml"
    path.write_text(
        "integrations_mode: real\n"
        "api:\n"
        "  base_url: https://backend.test/api\n"
        "  retry_attempts: 5\n"
        "polling:\n"
        "  interval_ms: 2500\n"
        "quotes:\n"
        "  validity_days: 7\n",
        encoding="utf-8",
    )

    config = load_settlement_config(path)

    assert config.integrations_mode == "real"
    assert config.api.base_url == "https://backend.test/api"
    assert config.api.retry_attempts == 5
    assert config.api.timeout_seconds == 10.0
    assert config.polling.interval_ms == 2500
    assert config.quotes.validity == timedelta(days=7)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")

    config = load_settlement_config(path)

    assert config.integrations_mode == "mock"
    assert config.polling.interval_ms == 10_000
    assert config.quotes.validity_days == 30


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "settlement.yml"
    path.write_text("api:\n  base_url: https://file.test\npolling:\n  interval_ms: 2500\n", encoding="utf-8")
    monkeypatch.setenv("QUOTEPAY_API_URL", "https://env.test")
    monkeypatch.setenv("QUOTEPAY_API_TIMEOUT", "4.5")
    monkeypatch.setenv("QUOTEPAY_POLL_INTERVAL_MS", "500")
    monkeypatch.setenv("QUOTEPAY_INTEGRATIONS_MODE", "REAL")

    config = load_settlement_config(path)

    assert config.api.base_url == "https://env.test"
    assert config.api.timeout_seconds == 4.5
    assert config.polling.interval_ms == 500
    assert config.integrations_mode == "real"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settlement_config(tmp_path / "nope.yml")


def test_invalid_values_fail_validation(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("polling:\n  interval_ms: 0\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_settlement_config(path)


def test_default_file_and_thresholds():
    config = load_settlement_config()
    quote = config.expiration.quote_thresholds()
    payment = config.expiration.payment_thresholds()

    assert quote.high == timedelta(days=1) and quote.medium == timedelta(days=3)
    assert payment.high == timedelta(hours=1) and payment.medium == timedelta(hours=3)
    assert Urgency.HIGH.value == "high"
