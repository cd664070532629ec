"""
board/models.py -- Domain dataclasses for boards, grants and content.

These are pure data containers. Access decisions live in board/access.py,
ownership checks in board/content.py, persistence in board/store.py.

Authorship is a tagged variant rather than two nullable fields: a post or
comment is either OwnedBy(user_id) or Anonymous(password_hash), never both
and never neither. The store maps it onto the user_id / author_password
columns and a CHECK constraint holds the same line in the database.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Union


class AccessTier(IntEnum):
    """Grant level on a category. Ordinal: Manage implies Write implies Read."""

    READ = 1
    WRITE = 2
    MANAGE = 3


@dataclass(frozen=True)
class OwnedBy:
    user_id: int


@dataclass(frozen=True)
class Anonymous:
    password_hash: str


Authorship = Union[OwnedBy, Anonymous]


@dataclass
class Category:
    """A board.

    is_public + require_auth combine into four tiers:
      public, no auth     -- anyone reads and writes
      public, auth        -- any logged-in user reads and writes
      private (either)    -- only Admins and explicit grants

    id is None before the record is written to the database.
    """

    name: str
    url_slug: str
    description: str = ""
    display_order: int = 0
    is_active: bool = True
    is_public: bool = True
    require_auth: bool = False
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class CategoryAccess:
    """A grant: one user or one role, a tier, one category."""

    category_id: int
    tier: AccessTier
    user_id: Optional[int] = None
    role_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Attachment:
    post_id: int
    original_file_name: str
    stored_file_name: str
    content_type: str
    file_size: int
    id: Optional[int] = None
    uploaded_at: str = ""


@dataclass
class Post:
    category_id: int
    author: Authorship
    title: str
    content: str
    author_nickname: str
    id: Optional[int] = None
    view_count: int = 0
    vote_count: int = 0
    created_at: str = ""
    updated_at: Optional[str] = None
    is_deleted: bool = False
    is_pinned: bool = False
    pinned_at: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)

    @property
    def user_id(self) -> Optional[int]:
        return self.author.user_id if isinstance(self.author, OwnedBy) else None


@dataclass
class Comment:
    post_id: int
    author: Authorship
    content: str
    author_nickname: str
    parent_comment_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: Optional[str] = None
    is_deleted: bool = False

    @property
    def user_id(self) -> Optional[int]:
        return self.author.user_id if isinstance(self.author, OwnedBy) else None


@dataclass
class PostVote:
    """One vote. Exactly one channel is set: user_id when logged in, ip_address otherwise."""

    post_id: int
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    vote_value: int = 1
    id: Optional[int] = None
    created_at: str = ""
