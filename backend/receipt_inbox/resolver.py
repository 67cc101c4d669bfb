from __future__ import annotations

from collections.abc import Sequence

from .errors import CategoryNotFound
from .models import CategoryModel
from .receipts import ReceiptStore


def match_category(categories: Sequence[CategoryModel], name: str | None) -> CategoryModel | None:
    """Case-insensitive equality on trimmed names; inactive categories never match."""
    if not name:
        return None
    wanted = name.strip().casefold()
    for category in categories:
        if category.is_active and category.name.strip().casefold() == wanted:
            return category
    return None


def resolve_category(
    store: ReceiptStore,
    account_id: str,
    name: str | None,
    categories: Sequence[CategoryModel] | None = None,
) -> CategoryModel:
    if categories is None:
        categories = store.list_categories(account_id)
    category = match_category(categories, name)
    if category is None:
        valid = [c.name for c in categories if c.is_active]
        raise CategoryNotFound(name, valid)
    return category
