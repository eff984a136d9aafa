"""Management of the shared category set."""

from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path

from ..core.errors import CategoryNotFoundError, InvariantError
from ..core.interfaces import CategoryRepository
from ..core.models import Category

LOGGER = logging.getLogger(__name__)


class CategoryService:
    """CRUD operations over categories shared by every owner."""

    def __init__(self, categories: CategoryRepository) -> None:
        self._categories = categories

    def list_categories(self) -> list[Category]:
        return self._categories.find_all()

    def get_category(self, category_id: str) -> Category:
        category = self._categories.find_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")
        return category

    def create_category(self, name: str, description: str = "") -> Category:
        """Create a category; the name must not be blank."""
        cleaned = name.strip()
        if not cleaned:
            raise InvariantError("Category name must not be empty")
        category = self._categories.create(
            Category(name=cleaned, description=description.strip())
        )
        LOGGER.info("Created category %s (%s)", category.name, category.id)
        return category

    def update_category(
        self,
        category_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Category:
        """Apply non-empty field changes to an existing category."""
        category = self.get_category(category_id)
        if name and name.strip():
            category.name = name.strip()
        if description and description.strip():
            category.description = description.strip()
        self._categories.update(category)
        LOGGER.info("Updated category %s", category.id)
        return category

    def delete_category(self, category_id: str) -> None:
        category = self.get_category(category_id)
        self._categories.delete(category.id)
        LOGGER.info("Deleted category %s", category.id)

    def seed_defaults(self, source: Path | str | None = None) -> list[Category]:
        """Create categories from a JSON file, skipping names that already exist.

        Without ``source`` the bundled default set is used. The file holds a
        list of ``{"name": ..., "description": ...}`` objects.
        """
        entries = _load_entries(source)
        existing = {category.name.lower() for category in self._categories.find_all()}
        created: list[Category] = []
        for entry in entries:
            name = str(entry.get("name", "")).strip()
            if not name or name.lower() in existing:
                continue
            created.append(self.create_category(name, str(entry.get("description", ""))))
            existing.add(name.lower())
        LOGGER.info("Seeded %d categories", len(created))
        return created


def _load_entries(source: Path | str | None) -> list[dict[str, object]]:
    if source is None:
        raw = (
            resources.files("inbox_sweeper")
            .joinpath("data/categories.json")
            .read_text(encoding="utf-8")
        )
    else:
        raw = Path(source).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, list):
        raise InvariantError("Category seed file must contain a JSON list")
    return [entry for entry in data if isinstance(entry, dict)]


__all__ = ["CategoryService"]
