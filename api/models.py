"""
API request and response models for the forum REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
board/models.py, which own the internal domain representation. Route handlers
map between the two.

Nothing here ever carries a password hash. Anonymous authorship is exposed
only as is_anonymous=True.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity, User
from board.models import Anonymous, Attachment, Category, CategoryAccess, Comment, Post

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]{3,50}$"
SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

# bcrypt ignores everything past 72 bytes; reject longer input instead.
_MAX_PASSWORD = 72


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = {}


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD)


class LoginResponse(BaseModel):
    username: str
    display_name: str
    roles: list[str]


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(pattern=USERNAME_PATTERN)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(max_length=_MAX_PASSWORD)
    display_name: str = Field(min_length=1, max_length=50)


class MeResponse(BaseModel):
    user_id: int
    username: str
    email: str
    display_name: str
    roles: list[str]

    @classmethod
    def from_identity(cls, identity: Identity) -> "MeResponse":
        return cls(
            user_id=identity.user_id,
            username=identity.username,
            email=identity.email,
            display_name=identity.display_name,
            roles=list(identity.roles),
        )


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    display_name: str
    is_active: bool
    roles: list[str]
    created_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            is_active=user.is_active,
            roles=list(user.roles),
            created_at=user.created_at or "",
            last_login=user.last_login,
        )


class UserPatch(BaseModel):
    is_active: Optional[bool] = None
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=50)


class RoleResponse(BaseModel):
    id: int
    name: str
    description: str


# ---------------------------------------------------------------------------
# Categories and grants
# ---------------------------------------------------------------------------


class TierEnum(str, Enum):
    read = "read"
    write = "write"
    manage = "manage"


class CategoryCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    url_slug: str = Field(max_length=100, pattern=SLUG_PATTERN)
    description: str = Field(default="", max_length=500)
    display_order: int = 0
    is_public: bool = True
    require_auth: bool = False


class CategoryPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    url_slug: Optional[str] = Field(default=None, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)
    display_order: Optional[int] = None
    is_active: Optional[bool] = None
    is_public: Optional[bool] = None
    require_auth: Optional[bool] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    url_slug: str
    description: str
    display_order: int
    is_active: bool
    is_public: bool
    require_auth: bool

    @classmethod
    def from_category(cls, category: Category) -> "CategoryResponse":
        return cls(
            id=category.id,
            name=category.name,
            url_slug=category.url_slug,
            description=category.description,
            display_order=category.display_order,
            is_active=category.is_active,
            is_public=category.is_public,
            require_auth=category.require_auth,
        )


class GrantRequest(BaseModel):
    """Exactly one of user_id / role_id. Checked by the access service."""

    tier: TierEnum
    user_id: Optional[int] = None
    role_id: Optional[int] = None


class GrantResponse(BaseModel):
    id: int
    category_id: int
    tier: TierEnum
    user_id: Optional[int] = None
    role_id: Optional[int] = None
    created_at: str

    @classmethod
    def from_grant(cls, grant: CategoryAccess) -> "GrantResponse":
        return cls(
            id=grant.id,
            category_id=grant.category_id,
            tier=TierEnum(grant.tier.name.lower()),
            user_id=grant.user_id,
            role_id=grant.role_id,
            created_at=grant.created_at,
        )


# ---------------------------------------------------------------------------
# Posts, comments, attachments
# ---------------------------------------------------------------------------


class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    nickname: Optional[str] = Field(default=None, max_length=50)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)


class PostPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)


class PasswordBody(BaseModel):
    """Body for deletes. password is only consulted for anonymous items."""

    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)


class PinRequest(BaseModel):
    pinned: bool = True


class AttachmentResponse(BaseModel):
    id: int
    original_file_name: str
    stored_file_name: str
    content_type: str
    file_size: int
    uploaded_at: str

    @classmethod
    def from_attachment(cls, attachment: Attachment) -> "AttachmentResponse":
        return cls(
            id=attachment.id,
            original_file_name=attachment.original_file_name,
            stored_file_name=attachment.stored_file_name,
            content_type=attachment.content_type,
            file_size=attachment.file_size,
            uploaded_at=attachment.uploaded_at,
        )


class PostSummary(BaseModel):
    id: int
    category_id: int
    title: str
    author_nickname: str
    user_id: Optional[int] = None
    is_anonymous: bool
    view_count: int
    vote_count: int
    is_pinned: bool
    created_at: str

    @classmethod
    def from_post(cls, post: Post) -> "PostSummary":
        return cls(
            id=post.id,
            category_id=post.category_id,
            title=post.title,
            author_nickname=post.author_nickname,
            user_id=post.user_id,
            is_anonymous=isinstance(post.author, Anonymous),
            view_count=post.view_count,
            vote_count=post.vote_count,
            is_pinned=post.is_pinned,
            created_at=post.created_at,
        )


class PostResponse(PostSummary):
    content: str
    updated_at: Optional[str] = None
    attachments: list[AttachmentResponse] = []

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        summary = PostSummary.from_post(post)
        return cls(
            **summary.model_dump(),
            content=post.content,
            updated_at=post.updated_at,
            attachments=[AttachmentResponse.from_attachment(a) for a in post.attachments],
        )


class PostListResponse(BaseModel):
    items: list[PostSummary]
    total: int
    page: int
    page_size: int


class VoteResponse(BaseModel):
    accepted: bool
    reason: Optional[str] = None


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    nickname: Optional[str] = Field(default=None, max_length=50)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)
    parent_comment_id: Optional[int] = None


class CommentPatch(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    parent_comment_id: Optional[int] = None
    author_nickname: str
    user_id: Optional[int] = None
    is_anonymous: bool
    content: str
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            parent_comment_id=comment.parent_comment_id,
            author_nickname=comment.author_nickname,
            user_id=comment.user_id,
            is_anonymous=isinstance(comment.author, Anonymous),
            content=comment.content,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )
