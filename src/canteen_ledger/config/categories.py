"""Expense category catalog loader."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]


@dataclass(frozen=True)
class ExpenseSubcategory:
    """A subcategory inside an expense category."""

    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class ExpenseCategory:
    """Top-level expense category with its subcategories."""

    id: str
    name: str
    icon: str = ""
    subcategories: tuple[ExpenseSubcategory, ...] = field(default_factory=tuple)

    def get_subcategory(self, subcategory_id: str) -> ExpenseSubcategory | None:
        for sub in self.subcategories:
            if sub.id == subcategory_id:
                return sub
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "subcategories": [
                {"id": s.id, "name": s.name, "description": s.description}
                for s in self.subcategories
            ],
        }


def _parse_subcategory(cat_id: str, idx: int, item: Any) -> ExpenseSubcategory:
    if not isinstance(item, dict):
        raise ValueError(f"categories[{cat_id}].subcategories[{idx}] must be a mapping")
    sub_id = item.get("id")
    name = item.get("name")
    if not sub_id or not name:
        raise ValueError(f"categories[{cat_id}].subcategories[{idx}] missing id or name")
    return ExpenseSubcategory(
        id=str(sub_id),
        name=str(name),
        description=str(item.get("description") or ""),
    )


def parse_categories(data: Any) -> list[ExpenseCategory]:
    """Build the catalog from parsed YAML data."""
    if data is None:
        return []

    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = data.get("categories") or []
    else:
        raise ValueError("categories.yaml must be a list or mapping with 'categories'")

    if not isinstance(items, list):
        raise ValueError("categories must be a list")

    results: list[ExpenseCategory] = []
    seen: set[str] = set()
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"categories[{idx}] must be a mapping")
        cat_id = item.get("id")
        name = item.get("name")
        if not cat_id or not name:
            raise ValueError(f"categories[{idx}] missing id or name")
        cat_id = str(cat_id)
        if cat_id in seen:
            raise ValueError(f"duplicate category id {cat_id!r}")
        seen.add(cat_id)

        raw_subs = item.get("subcategories") or []
        if not isinstance(raw_subs, list):
            raise ValueError(f"categories[{cat_id}].subcategories must be a list")

        results.append(
            ExpenseCategory(
                id=cat_id,
                name=str(name),
                icon=str(item.get("icon") or ""),
                subcategories=tuple(
                    _parse_subcategory(cat_id, sub_idx, sub)
                    for sub_idx, sub in enumerate(raw_subs)
                ),
            )
        )

    return results


@lru_cache
def load_expense_categories() -> tuple[ExpenseCategory, ...]:
    """Load the bundled expense category catalog from YAML."""
    path = Path(__file__).resolve().parent / "categories.yaml"
    if not path.exists():
        return ()
    return tuple(parse_categories(yaml.safe_load(path.read_text(encoding="utf-8"))))


def get_category(category_id: str) -> ExpenseCategory | None:
    for category in load_expense_categories():
        if category.id == category_id:
            return category
    return None


def category_ids() -> frozenset[str]:
    return frozenset(c.id for c in load_expense_categories())
