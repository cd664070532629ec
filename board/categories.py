"""
board/categories.py -- Category administration.

Who may call what is decided by the API layer (Admin for create/delete,
category managers for update). This module only enforces data rules:
unique slugs, and no deleting a board that still holds live posts.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from board.models import Category
from board.store import BoardStore

logger = logging.getLogger("forum.categories")

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def is_valid_slug(url_slug: str) -> bool:
    return bool(_SLUG_RE.match(url_slug))


class CategoryService:
    def __init__(self, store: BoardStore) -> None:
        self.store = store

    def list_active(self) -> list[Category]:
        return self.store.list_categories(active_only=True)

    def list_all(self) -> list[Category]:
        return self.store.list_categories(active_only=False)

    def get(self, category_id: int) -> Category | None:
        return self.store.get_category(category_id)

    def get_by_slug(self, url_slug: str) -> Category | None:
        return self.store.get_category_by_slug(url_slug)

    def create(
        self,
        name: str,
        url_slug: str,
        description: str = "",
        display_order: int = 0,
        is_public: bool = True,
        require_auth: bool = False,
    ) -> Category | None:
        """Create a board. Returns None if the slug is already taken.

        Raises ValueError for a slug that is not lowercase-words-with-hyphens.
        """
        if not is_valid_slug(url_slug):
            raise ValueError(f"Invalid url slug: {url_slug!r}")
        category = Category(
            name=name,
            url_slug=url_slug,
            description=description,
            display_order=display_order,
            is_public=is_public,
            require_auth=require_auth,
        )
        try:
            category.id = self.store.create_category(category)
        except IntegrityError:
            return None
        logger.info("Created category %r (id=%d)", url_slug, category.id)
        return self.store.get_category(category.id)

    def update(self, category_id: int, **fields) -> bool:
        """Apply the given field changes. False if missing or the new slug is taken."""
        if "url_slug" in fields and not is_valid_slug(fields["url_slug"]):
            raise ValueError(f"Invalid url slug: {fields['url_slug']!r}")
        try:
            updated = self.store.update_category(category_id, **fields)
        except IntegrityError:
            return False
        if updated:
            logger.info("Updated category %d: %s", category_id, ", ".join(sorted(fields)))
        return updated

    def delete(self, category_id: int) -> bool:
        deleted = self.store.delete_category(category_id)
        if deleted:
            logger.info("Deleted category %d", category_id)
        return deleted
