"""
Configuration Schema (``storefront_config.schema``).

Frozen dataclasses describing a storefront configuration set.  Instances are
produced by ``storefront_config.loader`` and handed out by
``storefront_config.get_active_config()``; nothing mutates them afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection and pool settings for the storage handle."""

    url: str = "sqlite:///storefront.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    # Seconds a SQLite writer waits for the database lock
    lock_timeout: float = 30.0


@dataclass(frozen=True)
class StorefrontConfig:
    """
    Runtime settings of the storefront kernel.

    Attributes:
        config_id: Name of the configuration set.
        version: Version of the configuration set.
        database: Storage handle settings.
        currency: ISO currency code of all prices.
        payment_method: Label stored on every order.
        shipping_fee: Flat fee added to every order total.
        low_stock_threshold: Stock strictly below this is flagged low.
        history_limit: Maximum ledger entries returned by a history listing.
        checksum: SHA-256 over the loaded settings.
    """

    config_id: str
    version: int
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    currency: str = "USD"
    payment_method: str = "Cash on Delivery"
    shipping_fee: Decimal = Decimal("0")
    low_stock_threshold: int = 10
    history_limit: int = 100
    checksum: str = ""
