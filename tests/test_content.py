"""
tests/test_content.py -- Post and comment authorization.

Covers:
  - anonymous items: only the creation password unlocks update/delete
  - owned items: only the owner, or an Admin, regardless of passwords
  - the admin_bypass_anonymous policy flag, on and off
  - compare-and-set writes leave a deleted post untouched
  - vote-once per user and per IP
  - comment replies must stay within one post
  - attachments obey the upload policy and the ownership rule
"""

from __future__ import annotations

import pytest

from auth.models import RoleName
from auth.tokens import hash_password
from board.access import CallerStanding
from board.content import CommentService, OwnershipPolicy, PostService
from board.models import AccessTier, Anonymous, Category, OwnedBy

ANON_PASSWORD = "P@ssw0rd1"


@pytest.fixture
def board(board_store) -> Category:
    category = Category(name="Free", url_slug="free")
    category.id = board_store.create_category(category)
    return category


@pytest.fixture
def anon_post(posts, board):
    return posts.create(board.id, None, "Hello", "First!", nickname="guest", password=ANON_PASSWORD)


class TestOwnershipPolicy:
    def test_owned_item_only_owner(self) -> None:
        policy = OwnershipPolicy()
        author = OwnedBy(user_id=1)
        assert policy.authorize(author, CallerStanding(user_id=1)) is True
        assert policy.authorize(author, CallerStanding(user_id=2), password="anything") is False
        assert policy.authorize(author, CallerStanding()) is False

    def test_admin_bypass_flag(self) -> None:
        hashed = Anonymous(password_hash=hash_password("s3cret!A"))
        admin = CallerStanding(user_id=9, is_admin=True)
        assert OwnershipPolicy(admin_bypass_anonymous=True).authorize(hashed, admin) is True
        assert OwnershipPolicy(admin_bypass_anonymous=False).authorize(hashed, admin) is False
        assert OwnershipPolicy(admin_bypass_anonymous=False).authorize(hashed, admin, "s3cret!A") is True
        # Owned items: Admin bypasses either way.
        assert OwnershipPolicy(admin_bypass_anonymous=False).authorize(OwnedBy(1), admin) is True

    def test_blank_password_never_matches(self) -> None:
        author = Anonymous(password_hash=hash_password("   "))
        policy = OwnershipPolicy()
        assert policy.authorize(author, CallerStanding(), "   ") is False
        assert policy.authorize(author, CallerStanding(), "") is False
        assert policy.authorize(author, CallerStanding(), None) is False


class TestCreate:
    @pytest.mark.parametrize("password", [None, "", "   ", "\t\n"])
    def test_anonymous_post_requires_password(self, posts, board, password) -> None:
        with pytest.raises(ValueError):
            posts.create(board.id, None, "Hi", "body", password=password)

    def test_unwritable_board_denies_before_validating_input(self, posts, board_store) -> None:
        private = Category(name="Staff", url_slug="staff", is_public=False)
        private.id = board_store.create_category(private)
        assert posts.create(private.id, None, "Hi", "body") is None
        assert posts.create(private.id, None, "", "") is None

    def test_anonymous_post_stores_hash_not_password(self, anon_post) -> None:
        assert isinstance(anon_post.author, Anonymous)
        assert anon_post.author.password_hash != ANON_PASSWORD
        assert anon_post.author_nickname == "guest"

    def test_authenticated_post_ignores_password(self, posts, board, make_user) -> None:
        alice = make_user("alice")
        post = posts.create(board.id, alice, "Hi", "body", nickname="ignored", password="ignored")
        assert post.author == OwnedBy(user_id=alice.user_id)
        assert post.author_nickname == "Alice"

    def test_create_denied_without_write_access(self, posts, board_store, make_user) -> None:
        private = Category(name="Staff", url_slug="staff", is_public=False)
        private.id = board_store.create_category(private)
        assert posts.create(private.id, make_user("alice"), "Hi", "body") is None

    def test_empty_title_rejected(self, posts, board, make_user) -> None:
        with pytest.raises(ValueError):
            posts.create(board.id, make_user("alice"), "   ", "body")


class TestAnonymousUpdate:
    def test_correct_password_updates(self, posts, anon_post) -> None:
        assert posts.update(anon_post.id, None, password=ANON_PASSWORD, title="Edited") is True
        assert posts.get(anon_post.id, None, count_view=False).title == "Edited"

    def test_wrong_or_missing_password_denied(self, posts, anon_post) -> None:
        assert posts.update(anon_post.id, None, password="wrong", title="x") is False
        assert posts.update(anon_post.id, None, password=None, title="x") is False
        assert posts.get(anon_post.id, None, count_view=False).title == "Hello"

    def test_logged_in_non_admin_still_needs_password(self, posts, anon_post, make_user) -> None:
        alice = make_user("alice")
        assert posts.update(anon_post.id, alice, title="x") is False
        assert posts.update(anon_post.id, alice, password=ANON_PASSWORD, title="x") is True

    def test_admin_bypasses_by_default(self, posts, anon_post, make_user) -> None:
        boss = make_user("boss", RoleName.ADMIN)
        assert posts.delete(anon_post.id, boss) is True

    def test_admin_needs_password_when_bypass_disabled(self, board_store, access, anon_post, make_user) -> None:
        strict = PostService(board_store, access, OwnershipPolicy(admin_bypass_anonymous=False))
        boss = make_user("boss", RoleName.ADMIN)
        assert strict.delete(anon_post.id, boss) is False
        assert strict.delete(anon_post.id, boss, password=ANON_PASSWORD) is True


class TestOwnedUpdate:
    def test_owner_and_admin_only(self, posts, board, make_user) -> None:
        alice, bob = make_user("alice"), make_user("bob")
        post = posts.create(board.id, alice, "Mine", "body")
        assert posts.update(post.id, bob, password="whatever", content="hijack") is False
        assert posts.update(post.id, None, password="whatever", content="hijack") is False
        assert posts.update(post.id, alice, content="edited") is True
        assert posts.update(post.id, make_user("boss", RoleName.ADMIN), content="moderated") is True
        assert posts.get(post.id, None, count_view=False).content == "moderated"

    def test_delete_is_soft(self, posts, board, make_user, board_store) -> None:
        alice = make_user("alice")
        post = posts.create(board.id, alice, "Mine", "body")
        assert posts.delete(post.id, alice) is True
        assert posts.get(post.id, alice) is None
        assert board_store.get_post(post.id, include_deleted=True).is_deleted is True

    def test_second_delete_returns_false(self, posts, board, make_user) -> None:
        alice = make_user("alice")
        post = posts.create(board.id, alice, "Mine", "body")
        posts.delete(post.id, alice)
        assert posts.delete(post.id, alice) is False


class TestCompareAndSet:
    def test_write_with_stale_authorship_is_noop(self, board_store, anon_post) -> None:
        assert board_store.update_post_if(anon_post.id, OwnedBy(user_id=1), title="x") is False
        assert board_store.update_post_if(anon_post.id, Anonymous("not-the-hash"), title="x") is False

    def test_write_on_deleted_post_is_noop(self, board_store, anon_post) -> None:
        assert board_store.update_post_if(anon_post.id, anon_post.author, is_deleted=1) is True
        assert board_store.update_post_if(anon_post.id, anon_post.author, title="revived?") is False


class TestListAndView:
    def test_pinned_first_then_newest(self, posts, board, make_user) -> None:
        boss = make_user("boss", RoleName.ADMIN)
        first = posts.create(board.id, boss, "first", "x")
        second = posts.create(board.id, boss, "second", "x")
        third = posts.create(board.id, boss, "third", "x")
        assert posts.set_pinned(first.id, boss, True) is True
        page, total = posts.list_by_category(board.id, None)
        assert total == 3
        assert [p.id for p in page] == [first.id, third.id, second.id]

    def test_search_and_paging(self, posts, board, make_user) -> None:
        alice = make_user("alice")
        for i in range(5):
            posts.create(board.id, alice, f"apple {i}" if i % 2 == 0 else f"pear {i}", "x")
        page, total = posts.list_by_category(board.id, None, page=1, page_size=2, search="apple")
        assert total == 3
        assert len(page) == 2

    def test_list_denied_on_private_board(self, posts, board_store) -> None:
        private = Category(name="Staff", url_slug="staff", is_public=False)
        private.id = board_store.create_category(private)
        assert posts.list_by_category(private.id, None) is None

    def test_get_counts_views(self, posts, anon_post) -> None:
        posts.get(anon_post.id, None)
        viewed = posts.get(anon_post.id, None)
        assert viewed.view_count == 2

    def test_pin_requires_manage(self, posts, anon_post, make_user, access, board) -> None:
        alice = make_user("alice")
        assert posts.set_pinned(anon_post.id, alice, True) is False
        access.grant_access(board.id, AccessTier.MANAGE, user_id=alice.user_id)
        assert posts.set_pinned(anon_post.id, alice, True) is True

    def test_total_count_excludes_deleted(self, posts, anon_post, board, make_user) -> None:
        alice = make_user("alice")
        posts.create(board.id, alice, "t", "c")
        posts.delete(anon_post.id, None, password=ANON_PASSWORD)
        assert posts.total_count() == 1


class TestVoting:
    def test_user_votes_once_per_post(self, posts, board, make_user) -> None:
        alice = make_user("alice")
        p42 = posts.create(board.id, alice, "42", "x")
        p43 = posts.create(board.id, alice, "43", "x")
        assert posts.vote(p42.id, alice, "10.0.0.1").accepted is True
        second = posts.vote(p42.id, alice, "10.0.0.2")
        assert second.accepted is False
        assert second.reason
        assert posts.vote(p43.id, alice, "10.0.0.1").accepted is True
        assert posts.get(p42.id, None, count_view=False).vote_count == 1

    def test_anonymous_votes_once_per_ip(self, posts, anon_post) -> None:
        assert posts.vote(anon_post.id, None, "10.0.0.1").accepted is True
        assert posts.vote(anon_post.id, None, "10.0.0.1").accepted is False
        assert posts.vote(anon_post.id, None, "10.0.0.2").accepted is True

    def test_user_vote_independent_of_ip_channel(self, posts, anon_post, make_user) -> None:
        assert posts.vote(anon_post.id, None, "10.0.0.1").accepted is True
        assert posts.vote(anon_post.id, make_user("alice"), "10.0.0.1").accepted is True

    def test_vote_on_missing_post_rejected(self, posts) -> None:
        assert posts.vote(4242, None, "10.0.0.1").accepted is False


class TestComments:
    def test_anonymous_comment_password_rule(self, comments: CommentService, anon_post) -> None:
        comment = comments.create(anon_post.id, None, "nice", nickname="g", password="c0mment!")
        assert comments.update(comment.id, None, "edited", password="wrong") is False
        assert comments.update(comment.id, None, "edited", password="c0mment!") is True
        assert comments.delete(comment.id, None, password="c0mment!") is True
        assert comments.list_for_post(anon_post.id, None) == []

    @pytest.mark.parametrize("password", [None, "", "   "])
    def test_anonymous_comment_requires_password(self, comments, anon_post, password) -> None:
        with pytest.raises(ValueError):
            comments.create(anon_post.id, None, "nice", password=password)

    def test_unwritable_board_denies_before_validation(self, comments, posts, board_store, make_user) -> None:
        private = Category(name="Staff", url_slug="staff", is_public=False)
        private.id = board_store.create_category(private)
        hidden = posts.create(private.id, make_user("boss", RoleName.ADMIN), "Hi", "body")
        assert comments.create(hidden.id, None, "nice") is None
        assert comments.create(hidden.id, None, "   ") is None

    def test_visible_post_respects_read_access(self, comments, posts, board_store, anon_post, make_user) -> None:
        private = Category(name="Staff", url_slug="staff", is_public=False)
        private.id = board_store.create_category(private)
        hidden = posts.create(private.id, make_user("boss", RoleName.ADMIN), "Hi", "body")
        assert comments.visible_post(anon_post.id, None).id == anon_post.id
        assert comments.visible_post(hidden.id, None) is None
        assert comments.visible_post(hidden.id, make_user("alice")) is None
        assert comments.visible_post(4242, None) is None

    def test_reply_must_belong_to_same_post(self, comments, posts, board, anon_post, make_user) -> None:
        alice = make_user("alice")
        other = posts.create(board.id, alice, "other", "x")
        parent = comments.create(anon_post.id, alice, "parent")
        reply = comments.create(anon_post.id, alice, "reply", parent_comment_id=parent.id)
        assert reply.parent_comment_id == parent.id
        with pytest.raises(ValueError):
            comments.create(other.id, alice, "cross-post", parent_comment_id=parent.id)

    def test_reply_to_deleted_comment_rejected(self, comments, anon_post, make_user) -> None:
        alice = make_user("alice")
        parent = comments.create(anon_post.id, alice, "parent")
        comments.delete(parent.id, alice)
        with pytest.raises(ValueError):
            comments.create(anon_post.id, alice, "late reply", parent_comment_id=parent.id)

    def test_owned_comment_owner_or_admin(self, comments, anon_post, make_user) -> None:
        alice, bob = make_user("alice"), make_user("bob")
        comment = comments.create(anon_post.id, alice, "mine")
        assert comments.update(comment.id, bob, "hijack") is False
        assert comments.update(comment.id, make_user("boss", RoleName.ADMIN), "moderated") is True

    def test_comments_listed_oldest_first(self, comments, anon_post, make_user) -> None:
        alice = make_user("alice")
        first = comments.create(anon_post.id, alice, "one")
        second = comments.create(anon_post.id, alice, "two")
        assert [c.id for c in comments.list_for_post(anon_post.id, None)] == [first.id, second.id]


class TestAttachments:
    def test_owner_can_attach_image(self, posts, board, make_user, tmp_path) -> None:
        alice = make_user("alice")
        post = posts.create(board.id, alice, "pics", "x")
        attachment = posts.add_attachment(post.id, alice, None, "Cat.PNG", "image/png", b"\x89PNG data")
        assert attachment is not None
        assert attachment.stored_file_name.startswith(f"posts/{post.id}/")
        assert attachment.stored_file_name.endswith(".png")
        assert (tmp_path / "uploads" / attachment.stored_file_name).read_bytes() == b"\x89PNG data"
        assert [a.id for a in posts.get(post.id, None, count_view=False).attachments] == [attachment.id]

    def test_stranger_cannot_attach(self, posts, board, make_user) -> None:
        post = posts.create(board.id, make_user("alice"), "pics", "x")
        assert posts.add_attachment(post.id, make_user("bob"), None, "a.png", "image/png", b"x") is None

    def test_anonymous_post_needs_password_to_attach(self, posts, anon_post) -> None:
        assert posts.add_attachment(anon_post.id, None, "wrong", "a.png", "image/png", b"x") is None
        assert posts.add_attachment(anon_post.id, None, ANON_PASSWORD, "a.png", "image/png", b"x") is not None

    def test_disallowed_extension_raises(self, posts, anon_post) -> None:
        with pytest.raises(ValueError):
            posts.add_attachment(anon_post.id, None, ANON_PASSWORD, "run.exe", "application/octet-stream", b"MZ")
