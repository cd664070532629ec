"""
board/content.py -- Posts and comments: who may create, change and delete them.

Creation is gated by the category's write access (board/access.py).
Update and delete are gated by the item's authorship:

  OwnedBy(uid)      only that user, or an Admin. A supplied password is
                    ignored.
  Anonymous(hash)   whoever re-supplies the password it was created with.

Whether an Admin may also skip the password on anonymous items is the
OwnershipPolicy flag admin_bypass_anonymous (Settings.admin_bypass_anonymous_content).
With the flag on, Admin is checked first for every item.

Every mutation writes through a compare-and-set in BoardStore: the UPDATE
repeats the authorship that was authorized and is_deleted = 0, so a post
deleted or changed between check and write is left untouched and the call
reports False.

Denials and misses are returned as None / False. ValueError is raised for
bad input: an anonymous item without a password, an empty body, a reply to
a comment from another post.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.models import Identity
from auth.tokens import hash_password, verify_password
from board.access import CallerStanding, CategoryAccessService
from board.models import Anonymous, Attachment, Authorship, Comment, OwnedBy, Post
from board.store import BoardStore
from board.uploads import LocalBlobStore, UploadPolicy

logger = logging.getLogger("forum.content")

ANONYMOUS_NICKNAME = "Anonymous"
MAX_PAGE_SIZE = 100


class OwnershipPolicy:
    def __init__(self, admin_bypass_anonymous: bool = True) -> None:
        self.admin_bypass_anonymous = admin_bypass_anonymous

    def authorize(self, author: Authorship, caller: CallerStanding, password: str | None = None) -> bool:
        if caller.is_admin and (isinstance(author, OwnedBy) or self.admin_bypass_anonymous):
            return True
        if isinstance(author, OwnedBy):
            return caller.user_id is not None and caller.user_id == author.user_id
        if _is_blank(password):
            return False
        return verify_password(password, author.password_hash)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _new_author(caller: Identity | None, password: str | None) -> Authorship:
    if caller is not None:
        return OwnedBy(user_id=caller.user_id)
    if _is_blank(password):
        raise ValueError("A password is required to post without logging in")
    return Anonymous(password_hash=hash_password(password))


def _nickname(caller: Identity | None, nickname: str | None) -> str:
    if caller is not None:
        return caller.display_name or caller.username
    return (nickname or "").strip() or ANONYMOUS_NICKNAME


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"{field_name} must not be empty")
    return value


@dataclass(frozen=True)
class VoteResult:
    accepted: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostService:
    def __init__(
        self,
        store: BoardStore,
        access: CategoryAccessService,
        policy: OwnershipPolicy,
        blobs: LocalBlobStore | None = None,
        uploads: UploadPolicy | None = None,
    ) -> None:
        self.store = store
        self.access = access
        self.policy = policy
        self.blobs = blobs
        self.uploads = uploads or UploadPolicy()

    def list_by_category(
        self,
        category_id: int,
        caller: Identity | None,
        page: int = 1,
        page_size: int = 20,
        search: str | None = None,
    ) -> tuple[list[Post], int] | None:
        """One page of live posts, pinned first then newest. None when the caller may not read."""
        if not self.access.can_access(category_id, caller):
            return None
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
        return self.store.list_posts(
            category_id,
            offset=(page - 1) * page_size,
            limit=page_size,
            search=(search or "").strip() or None,
        )

    def get(self, post_id: int, caller: Identity | None, count_view: bool = True) -> Post | None:
        post = self.store.get_post(post_id)
        if post is None or not self.access.can_access(post.category_id, caller):
            return None
        if count_view:
            self.store.increment_view_count(post_id)
            post.view_count += 1
        return post

    def create(
        self,
        category_id: int,
        caller: Identity | None,
        title: str,
        content: str,
        nickname: str | None = None,
        password: str | None = None,
    ) -> Post | None:
        """Create a post. Returns None when the caller may not write to the category."""
        if not self.access.can_write(category_id, caller):
            return None
        _require_text(title, "title")
        _require_text(content, "content")
        author = _new_author(caller, password)
        post = Post(
            category_id=category_id,
            author=author,
            title=title.strip(),
            content=content,
            author_nickname=_nickname(caller, nickname),
        )
        post.id = self.store.create_post(post)
        logger.info("Post %d created in category %d by %s", post.id, category_id, _describe(caller))
        return self.store.get_post(post.id)

    def update(
        self,
        post_id: int,
        caller: Identity | None,
        password: str | None = None,
        title: str | None = None,
        content: str | None = None,
    ) -> bool:
        changes = {}
        if title is not None:
            changes["title"] = _require_text(title, "title").strip()
        if content is not None:
            changes["content"] = _require_text(content, "content")
        post = self.store.get_post(post_id)
        if post is None or not self.policy.authorize(post.author, self.access.standing(caller), password):
            return False
        if not changes:
            return True
        return self.store.update_post_if(post_id, post.author, **changes)

    def delete(self, post_id: int, caller: Identity | None, password: str | None = None) -> bool:
        """Soft-delete. The row stays with is_deleted = 1."""
        post = self.store.get_post(post_id)
        if post is None or not self.policy.authorize(post.author, self.access.standing(caller), password):
            return False
        deleted = self.store.update_post_if(post_id, post.author, is_deleted=1)
        if deleted:
            logger.info("Post %d deleted by %s", post_id, _describe(caller))
        return deleted

    def vote(self, post_id: int, caller: Identity | None, client_ip: str | None = None) -> VoteResult:
        """Add one vote. Keyed by user when logged in, otherwise by client IP."""
        post = self.store.get_post(post_id)
        if post is None or not self.access.can_access(post.category_id, caller):
            return VoteResult(accepted=False, reason="Post not found.")
        if caller is None and not client_ip:
            return VoteResult(accepted=False, reason="Unable to identify voter.")
        user_id = caller.user_id if caller is not None else None
        if not self.store.add_vote(post_id, user_id=user_id, ip_address=client_ip):
            return VoteResult(accepted=False, reason="You have already voted on this post.")
        return VoteResult(accepted=True)

    def set_pinned(self, post_id: int, caller: Identity | None, pinned: bool) -> bool:
        post = self.store.get_post(post_id)
        if post is None or not self.access.can_manage(post.category_id, caller):
            return False
        changed = self.store.set_pinned(post_id, pinned)
        if changed:
            logger.info("Post %d %s by %s", post_id, "pinned" if pinned else "unpinned", _describe(caller))
        return changed

    def add_attachment(
        self,
        post_id: int,
        caller: Identity | None,
        password: str | None,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> Attachment | None:
        """Store a file on a post. Same ownership rule as update.

        Returns None on denial or a missing post. Raises ValueError when the
        file fails the upload policy.
        """
        if self.blobs is None:
            raise RuntimeError("No blob store configured for attachments")
        post = self.store.get_post(post_id)
        if post is None or not self.policy.authorize(post.author, self.access.standing(caller), password):
            return None
        check = self.uploads.classify(filename, len(data))
        if not check.ok:
            raise ValueError(check.error)
        stored_name = self.blobs.save(post_id, filename, data)
        attachment = Attachment(
            post_id=post_id,
            original_file_name=filename,
            stored_file_name=stored_name,
            content_type=content_type or "application/octet-stream",
            file_size=len(data),
        )
        attachment.id = self.store.add_attachment_if(attachment, post.author)
        if attachment.id is None:
            self.blobs.delete(stored_name)
            return None
        logger.info("Attachment %d (%s, %d bytes) added to post %d", attachment.id, check.kind, len(data), post_id)
        return next(a for a in self.store.list_attachments(post_id) if a.id == attachment.id)

    def total_count(self) -> int:
        return self.store.count_posts()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentService:
    def __init__(self, store: BoardStore, access: CategoryAccessService, policy: OwnershipPolicy) -> None:
        self.store = store
        self.access = access
        self.policy = policy

    def visible_post(self, post_id: int, caller: Identity | None) -> Post | None:
        """The live post, if the caller may read its category."""
        post = self.store.get_post(post_id)
        if post is None or not self.access.can_access(post.category_id, caller):
            return None
        return post

    def list_for_post(self, post_id: int, caller: Identity | None) -> list[Comment] | None:
        if self.visible_post(post_id, caller) is None:
            return None
        return self.store.list_comments(post_id)

    def get(self, comment_id: int, caller: Identity | None) -> Comment | None:
        comment = self.store.get_comment(comment_id)
        if comment is None or self.visible_post(comment.post_id, caller) is None:
            return None
        return comment

    def create(
        self,
        post_id: int,
        caller: Identity | None,
        content: str,
        nickname: str | None = None,
        password: str | None = None,
        parent_comment_id: int | None = None,
    ) -> Comment | None:
        """Add a comment or reply. None when the post is missing or the caller may not write."""
        post = self.store.get_post(post_id)
        if post is None or not self.access.can_write(post.category_id, caller):
            return None
        _require_text(content, "content")
        author = _new_author(caller, password)
        if parent_comment_id is not None:
            parent = self.store.get_comment(parent_comment_id)
            if parent is None or parent.post_id != post_id:
                raise ValueError("Parent comment does not belong to this post")
        comment = Comment(
            post_id=post_id,
            author=author,
            content=content,
            author_nickname=_nickname(caller, nickname),
            parent_comment_id=parent_comment_id,
        )
        comment.id = self.store.create_comment(comment)
        return self.store.get_comment(comment.id)

    def update(
        self,
        comment_id: int,
        caller: Identity | None,
        content: str,
        password: str | None = None,
    ) -> bool:
        _require_text(content, "content")
        comment = self.store.get_comment(comment_id)
        if comment is None or not self.policy.authorize(comment.author, self.access.standing(caller), password):
            return False
        return self.store.update_comment_if(comment_id, comment.author, content=content)

    def delete(self, comment_id: int, caller: Identity | None, password: str | None = None) -> bool:
        comment = self.store.get_comment(comment_id)
        if comment is None or not self.policy.authorize(comment.author, self.access.standing(caller), password):
            return False
        deleted = self.store.update_comment_if(comment_id, comment.author, is_deleted=1)
        if deleted:
            logger.info("Comment %d deleted by %s", comment_id, _describe(caller))
        return deleted


def _describe(caller: Identity | None) -> str:
    return f"user {caller.username!r}" if caller is not None else "anonymous"
