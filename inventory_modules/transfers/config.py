"""
Transfer Configuration Schema.

Policy switches for the transfer workflow with their defaults.  Values come
from the ``transfers`` section of the active settings
(``inventory_config.get_active_settings()``).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Self

from inventory_kernel.logging_config import get_logger

logger = get_logger("modules.transfers.config")


class ReversalPolicy(str, Enum):
    """What happens to an item after a cancel-receipt return."""

    # received = 0, remaining_receiving = issued, item back to "issued"
    REOPEN = "reopen"
    # item becomes closed_partially_received; counters kept, nothing left to receive
    CLOSE = "close"


@dataclass
class TransferConfig:
    """
    Configuration schema for the transfers module.

        config = TransferConfig(
            reversal_policy=ReversalPolicy.CLOSE,
            **settings.transfers,
        )
    """

    # Reference numbers: <prefix>-YYYY-MM-DD-NNNN, returns RET-<reference>
    reference_prefix: str = "SR"
    return_reference_prefix: str = "RET"
    sequence_width: int = 4

    reversal_policy: ReversalPolicy = ReversalPolicy.REOPEN

    # Legacy ceiling requested - received for items "fulfilled" with nothing
    # issued.  Off: the ceiling is always issued - received.
    allow_zero_issue_fulfilled_receipt: bool = False

    # Listings
    default_page_size: int = 10
    max_page_size: int = 100

    def __post_init__(self):
        if isinstance(self.reversal_policy, str) and not isinstance(
            self.reversal_policy, ReversalPolicy
        ):
            try:
                self.reversal_policy = ReversalPolicy(self.reversal_policy)
            except ValueError:
                raise ValueError(
                    f"reversal_policy must be one of "
                    f"{[p.value for p in ReversalPolicy]}, got '{self.reversal_policy}'"
                )

        if not self.reference_prefix or not self.reference_prefix.isalnum():
            raise ValueError(
                f"reference_prefix must be non-empty and alphanumeric, got '{self.reference_prefix}'"
            )
        if not self.return_reference_prefix or not self.return_reference_prefix.isalnum():
            raise ValueError("return_reference_prefix must be non-empty and alphanumeric")
        if self.reference_prefix == self.return_reference_prefix:
            raise ValueError("reference_prefix and return_reference_prefix must differ")
        if not 1 <= self.sequence_width <= 9:
            raise ValueError("sequence_width must be between 1 and 9")
        if self.default_page_size <= 0:
            raise ValueError("default_page_size must be positive")
        if self.max_page_size < self.default_page_size:
            raise ValueError("max_page_size cannot be smaller than default_page_size")

        logger.info(
            "transfer_config_initialized",
            extra={
                "reference_prefix": self.reference_prefix,
                "reversal_policy": self.reversal_policy.value,
                "allow_zero_issue_fulfilled_receipt": self.allow_zero_issue_fulfilled_receipt,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the default policy."""
        logger.info("transfer_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a mapping (e.g. the settings ``transfers`` section)."""
        logger.info(
            "transfer_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**dict(data))
