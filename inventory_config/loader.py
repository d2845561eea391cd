"""
Settings Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``inventory_config.schema``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from inventory_config.schema import DatabaseSettings, InventorySettings, LoggingSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    """Parse the ``database`` section; ``url`` is required."""
    return DatabaseSettings(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        pool_recycle=int(data.get("pool_recycle", 1800)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")).upper())


def parse_settings(data: dict[str, Any], source: str = "") -> InventorySettings:
    """
    Parse a full settings document.

    Preconditions:
        - ``data`` contains a ``database`` mapping with ``url``.
    Postconditions:
        - Returns frozen settings whose checksum identifies ``data``.
    """
    return InventorySettings(
        database=parse_database(data["database"]),
        logging=parse_logging(data.get("logging") or {}),
        transfers=MappingProxyType(dict(data.get("transfers") or {})),
        checksum=compute_checksum(data),
        source=source,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
