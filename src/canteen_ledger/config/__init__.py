"""Configuration module for Canteen Ledger."""

from canteen_ledger.config.categories import (
    ExpenseCategory,
    ExpenseSubcategory,
    get_category,
    load_expense_categories,
)
from canteen_ledger.config.logging import configure_logging, get_logger
from canteen_ledger.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "ExpenseCategory",
    "ExpenseSubcategory",
    "get_category",
    "load_expense_categories",
]
