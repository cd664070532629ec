"""
tests/test_categories.py -- Category administration data rules.
"""

from __future__ import annotations

import pytest

from board.categories import CategoryService, is_valid_slug
from board.models import AccessTier, OwnedBy, Post


@pytest.fixture
def categories(board_store) -> CategoryService:
    return CategoryService(board_store)


@pytest.mark.parametrize(
    "slug,valid",
    [("free", True), ("q-and-a", True), ("board2", True), ("Free", False), ("-free", False), ("a--b", False), ("", False)],
)
def test_is_valid_slug(slug: str, valid: bool) -> None:
    assert is_valid_slug(slug) is valid


class TestCreate:
    def test_create_and_lookup_by_slug(self, categories) -> None:
        created = categories.create("Questions", "questions", description="Ask away", display_order=2)
        assert created.id is not None
        assert categories.get_by_slug("questions").name == "Questions"

    def test_duplicate_slug_returns_none(self, categories) -> None:
        categories.create("Free", "free")
        assert categories.create("Free again", "free") is None

    def test_bad_slug_raises(self, categories) -> None:
        with pytest.raises(ValueError):
            categories.create("Bad", "Bad Slug")

    def test_seed_defaults_only_once(self, board_store, categories) -> None:
        assert board_store.seed_default_categories() == 3
        assert board_store.seed_default_categories() == 0
        assert [c.url_slug for c in categories.list_active()] == ["free", "questions", "info"]


class TestUpdate:
    def test_deactivate_hides_from_active_listing(self, categories) -> None:
        board = categories.create("Old", "old")
        assert categories.update(board.id, is_active=False) is True
        assert categories.list_active() == []
        assert [c.url_slug for c in categories.list_all()] == ["old"]
        assert categories.get_by_slug("old") is None

    def test_slug_conflict_returns_false(self, categories) -> None:
        categories.create("Free", "free")
        other = categories.create("Other", "other")
        assert categories.update(other.id, url_slug="free") is False

    def test_missing_category_returns_false(self, categories) -> None:
        assert categories.update(4242, name="Ghost") is False


class TestDelete:
    def test_delete_refused_while_posts_live(self, categories, board_store, make_user) -> None:
        alice = make_user("alice")
        board = categories.create("Free", "free")
        post_id = board_store.create_post(
            Post(category_id=board.id, author=OwnedBy(alice.user_id), title="t", content="c", author_nickname="Alice")
        )
        assert categories.delete(board.id) is False
        board_store.update_post_if(post_id, OwnedBy(alice.user_id), is_deleted=1)
        assert categories.delete(board.id) is True
        assert categories.get(board.id) is None

    def test_delete_removes_grants(self, categories, board_store, make_user) -> None:
        alice = make_user("alice")
        board = categories.create("Staff", "staff", is_public=False)
        board_store.upsert_grant(board.id, AccessTier.READ, user_id=alice.user_id)
        assert categories.delete(board.id) is True
        assert board_store.list_grants(board.id) == []
