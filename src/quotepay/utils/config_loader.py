"""
Configuration loader for the settlement core
"""

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from quotepay.settlement.expiration import UrgencyThresholds

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "settlement_config.yml"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "QUOTEPAY_API_URL": ("api", "base_url"),
    "QUOTEPAY_API_TIMEOUT": ("api", "timeout_seconds"),
    "QUOTEPAY_POLL_INTERVAL_MS": ("polling", "interval_ms"),
    "QUOTEPAY_INTEGRATIONS_MODE": (None, "integrations_mode"),
}


class ApiConfig(BaseModel):
    """Quoting backend REST settings"""

    base_url: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0)
    amount_exponent: int = Field(default=0, ge=0, le=4)


class PollingConfig(BaseModel):
    """Reconciliation poller settings"""

    interval_ms: int = Field(default=10_000, ge=1)


class ExpirationConfig(BaseModel):
    """Urgency thresholds for quotes (hours) and payments (minutes)"""

    quote_high_hours: float = Field(default=24, gt=0)
    quote_medium_hours: float = Field(default=72, gt=0)
    payment_high_minutes: float = Field(default=60, gt=0)
    payment_medium_minutes: float = Field(default=180, gt=0)

    def quote_thresholds(self) -> UrgencyThresholds:
        return UrgencyThresholds(
            high=timedelta(hours=self.quote_high_hours),
            medium=timedelta(hours=self.quote_medium_hours),
        )

    def payment_thresholds(self) -> UrgencyThresholds:
        return UrgencyThresholds(
            high=timedelta(minutes=self.payment_high_minutes),
            medium=timedelta(minutes=self.payment_medium_minutes),
        )


class QuoteConfig(BaseModel):
    """Quote lifecycle settings"""

    validity_days: int = Field(default=30, ge=1)

    @property
    def validity(self) -> timedelta:
        return timedelta(days=self.validity_days)


class SettlementConfig(BaseModel):
    """Complete settlement configuration"""

    integrations_mode: Literal["mock", "real"] = "mock"
    mock_payment_ttl_minutes: int = Field(default=30, ge=1)
    api: ApiConfig = Field(default_factory=ApiConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    expiration: ExpirationConfig = Field(default_factory=ExpirationConfig)
    quotes: QuoteConfig = Field(default_factory=QuoteConfig)


def load_settlement_config(config_path: Optional[Path] = None) -> SettlementConfig:
    """
    Load and validate settlement configuration from YAML plus environment

    Args:
        config_path: Path to config file. Defaults to config/settlement_config.yml;
            when the default file is absent, built-in defaults are used.

    Returns:
        Validated SettlementConfig object

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValidationError: If config doesn't match schema
    """
    load_dotenv()

    config_data: Dict[str, Any] = {}
    if config_path is None:
        if DEFAULT_CONFIG_PATH.exists():
            config_data = _read_yaml(DEFAULT_CONFIG_PATH)
        else:
            logger.info("No settlement config at %s, using defaults", DEFAULT_CONFIG_PATH)
    else:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        config_data = _read_yaml(config_path)

    _apply_env_overrides(config_data)

    try:
        config = SettlementConfig(**config_data)
        logger.info("Loaded settlement config (mode=%s)", config.integrations_mode)
        return config
    except ValidationError as e:
        logger.error("Settlement config validation failed: %s", e)
        raise


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def _apply_env_overrides(config_data: Dict[str, Any]) -> None:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or not value.strip():
            continue
        value = value.strip()
        if section is None:
            config_data[key] = value.lower() if key == "integrations_mode" else value
        else:
            target = config_data.get(section)
            if not isinstance(target, dict):
                target = {}
                config_data[section] = target
            target[key] = value
        logger.debug("Config override from %s", env_name)
