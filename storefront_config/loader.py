"""
Configuration Loader (``storefront_config.loader``).

Responsibility
--------------
Reads a YAML configuration set and parses it into the frozen
``storefront_config.schema`` dataclasses.  Runtime callers go through
``storefront_config.get_active_config()``; the loader is exposed for tests
and tooling.

Invariants enforced
-------------------
* Unknown keys are rejected, so a misspelled setting fails loudly instead
  of silently falling back to a default.
* Money settings are parsed into ``Decimal`` from their string form.
* ``compute_checksum`` is deterministic for a given set of settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, wrong type or out-of-range value  -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from storefront_config.schema import DatabaseConfig, StorefrontConfig


class ConfigError(ValueError):
    """A configuration file is structurally or semantically invalid."""


_TOP_LEVEL_KEYS = {
    "config_id",
    "version",
    "database",
    "currency",
    "payment_method",
    "shipping_fee",
    "low_stock_threshold",
    "history_limit",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _reject_unknown(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigError(f"Unknown keys in {section}: {', '.join(unknown)}")


def _positive_int(name: str, value: Any, allow_zero: bool = False) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{name} must be {'>= 0' if allow_zero else '> 0'}, got {value}")
    return value


def parse_money(name: str, value: Any) -> Decimal:
    """Parse a non-negative amount from its YAML string or number form."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an amount, got {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ConfigError(f"{name} must be an amount, got {value!r}") from None
    if not amount.is_finite() or amount < 0:
        raise ConfigError(f"{name} must be a non-negative amount, got {value!r}")
    return amount.quantize(Decimal("0.01"))


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse the ``database`` section."""
    if not isinstance(data, dict):
        raise ConfigError("database must be a mapping")
    _reject_unknown("database", data, {f.name for f in fields(DatabaseConfig)})

    defaults = DatabaseConfig()
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ConfigError("database.url must be a non-empty string")

    lock_timeout = data.get("lock_timeout", defaults.lock_timeout)
    if isinstance(lock_timeout, bool) or not isinstance(lock_timeout, (int, float)) or lock_timeout <= 0:
        raise ConfigError(f"database.lock_timeout must be a positive number, got {lock_timeout!r}")

    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=_positive_int("database.pool_size", data.get("pool_size", defaults.pool_size)),
        max_overflow=_positive_int(
            "database.max_overflow",
            data.get("max_overflow", defaults.max_overflow),
            allow_zero=True,
        ),
        pool_timeout=_positive_int(
            "database.pool_timeout", data.get("pool_timeout", defaults.pool_timeout)
        ),
        lock_timeout=float(lock_timeout),
    )


def parse_config(data: dict[str, Any], database_url: str | None = None) -> StorefrontConfig:
    """
    Parse a full configuration set.

    Args:
        data: Mapping loaded from YAML.
        database_url: Overrides ``database.url`` when given.

    Raises:
        ConfigError: on unknown keys or invalid values.
    """
    _reject_unknown("configuration", data, _TOP_LEVEL_KEYS)

    if "config_id" not in data:
        raise ConfigError("config_id is required")

    database = parse_database(data.get("database") or {})
    if database_url:
        database = replace(database, url=database_url)

    currency = data.get("currency", "USD")
    if not isinstance(currency, str) or len(currency) != 3:
        raise ConfigError(f"currency must be a 3-letter code, got {currency!r}")

    payment_method = data.get("payment_method", "Cash on Delivery")
    if not isinstance(payment_method, str) or not payment_method:
        raise ConfigError("payment_method must be a non-empty string")

    config = StorefrontConfig(
        config_id=str(data["config_id"]),
        version=_positive_int("version", data.get("version", 1)),
        database=database,
        currency=currency.upper(),
        payment_method=payment_method,
        shipping_fee=parse_money("shipping_fee", data.get("shipping_fee", "0")),
        low_stock_threshold=_positive_int(
            "low_stock_threshold", data.get("low_stock_threshold", 10), allow_zero=True
        ),
        history_limit=_positive_int("history_limit", data.get("history_limit", 100)),
    )
    return replace(config, checksum=compute_checksum(config))


def compute_checksum(config: StorefrontConfig) -> str:
    """SHA-256 over the business settings (the database url is excluded)."""
    material = {
        "config_id": config.config_id,
        "version": config.version,
        "currency": config.currency,
        "payment_method": config.payment_method,
        "shipping_fee": str(config.shipping_fee),
        "low_stock_threshold": config.low_stock_threshold,
        "history_limit": config.history_limit,
    }
    canonical = json.dumps(material, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()
