"""
inventory_config -- single entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` is the only way runtime code obtains
    settings.  It reads a YAML file (the packaged ``defaults.yaml`` unless a
    path is given), applies the ``INVENTORY_DATABASE_URL`` override, and
    emits an ``INVENTORY_CONFIG_TRACE`` log record with the checksum of the
    document in force.

Architecture position:
    Sits beside ``inventory_kernel``; the kernel never imports from here.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from inventory_config.loader import compute_checksum, load_yaml_file, parse_settings
from inventory_config.schema import DatabaseSettings, InventorySettings, LoggingSettings

_logger = logging.getLogger("inventory_kernel.config")

DEFAULT_SETTINGS_FILE = Path(__file__).parent / "defaults.yaml"

DATABASE_URL_ENV = "INVENTORY_DATABASE_URL"


def get_active_settings(path: Path | None = None) -> InventorySettings:
    """
    Load and validate the active settings.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        KeyError / ValueError: if the document is incomplete or invalid.
    """
    source = path or DEFAULT_SETTINGS_FILE
    data = load_yaml_file(source)

    override = os.environ.get(DATABASE_URL_ENV)
    if override:
        data = {**data, "database": {**(data.get("database") or {}), "url": override}}

    settings = parse_settings(data, source=str(source))

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "source": settings.source,
            "checksum": settings.checksum,
            "database_dialect": settings.database.url.split(":", 1)[0],
            "transfer_keys": sorted(settings.transfers),
        },
    )
    return settings


__all__ = [
    "DATABASE_URL_ENV",
    "DEFAULT_SETTINGS_FILE",
    "DatabaseSettings",
    "InventorySettings",
    "LoggingSettings",
    "compute_checksum",
    "get_active_settings",
    "load_yaml_file",
    "parse_settings",
]
