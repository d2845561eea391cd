"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.balance_selector import BalanceSelector

__all__ = ["BalanceSelector"]
