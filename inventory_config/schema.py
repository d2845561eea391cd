"""
Settings schema (``inventory_config.schema``).

Frozen dataclasses produced by ``inventory_config.loader`` from YAML.
Transfer policy is kept as a plain mapping here and parsed by the transfers
module's own ``TransferConfig.from_dict`` so that config never imports
module code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")


@dataclass(frozen=True)
class LoggingSettings:
    """Log level for the ``inventory_kernel`` logger hierarchy."""

    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"logging.level is not a log level: {self.level!r}")


@dataclass(frozen=True)
class InventorySettings:
    """Complete runtime settings."""

    database: DatabaseSettings
    logging: LoggingSettings
    transfers: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    checksum: str = ""
    source: str = ""
