"""
storefront_config -- single public entrypoint for storefront configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    It loads a YAML configuration set (``sets/default.yaml`` unless
    ``STOREFRONT_CONFIG`` names another file), applies the ``DATABASE_URL``
    override, and returns a frozen ``StorefrontConfig``.

Architecture position:
    Configuration -- sits beside ``storefront_kernel`` and below
    ``storefront_services``.  The kernel never imports from this package;
    the gateway passes the values it needs into the kernel services.

Failure modes:
    - ``FileNotFoundError`` -- the selected configuration file is missing.
    - ``ConfigError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful call logs ``config_loaded`` with config id, version and
    checksum, tying runtime behavior to a specific configuration file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from storefront_config.loader import ConfigError, load_yaml_file, parse_config
from storefront_config.schema import DatabaseConfig, StorefrontConfig
from storefront_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_ENV_VAR = "STOREFRONT_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> StorefrontConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Explicit YAML file.  Defaults to ``$STOREFRONT_CONFIG``,
            then to the bundled ``sets/default.yaml``.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Frozen StorefrontConfig.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigError: If the file fails validation.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get(CONFIG_ENV_VAR) or _DEFAULT_CONFIG_FILE)

    config = parse_config(
        load_yaml_file(path),
        database_url=env.get(DATABASE_URL_ENV_VAR) or None,
    )

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "StorefrontConfig",
    "get_active_config",
]
