"""
board/store.py -- SQLAlchemy-backed persistence layer for boards and content.

Uses SQLAlchemy Core (not ORM) so the dataclasses in board/models.py stay the
authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. BoardStore is the repository; the _row_to_*
functions are the mappers. Services never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Uniqueness with NULLs:
  SQLite and PostgreSQL treat two NULLs as distinct in a UNIQUE constraint, so
  "one grant per (category, user)" and "one vote per (post, user)" are partial
  unique indexes filtered on the non-NULL column. The per-IP vote channel has
  only a plain index; add_vote() checks it inside the insert transaction.

Compare-and-set writes:
  update_post_if() / update_comment_if() repeat the authorship that was
  authorized in the UPDATE's WHERE clause together with is_deleted = 0. If
  the row changed between the permission check and the write, the UPDATE
  matches nothing and the caller sees False.

Usage:
    store = BoardStore()                               # SQLite default
    store = BoardStore("postgresql://user:pw@host/db") # PostgreSQL
    cat_id = store.create_category(Category(name="Free", url_slug="free"))
    store.upsert_grant(cat_id, AccessTier.WRITE, role_id=3)
    post_id = store.create_post(post)
    store.close()
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.store import make_engine
from board.models import (
    AccessTier,
    Anonymous,
    Attachment,
    Authorship,
    Category,
    CategoryAccess,
    Comment,
    OwnedBy,
    Post,
)

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'forum.db'}"

_DEFAULT_CATEGORIES: tuple[tuple[str, str, str, int], ...] = (
    ("Free Board", "free", "Talk about anything.", 1),
    ("Questions", "questions", "Ask questions and get answers.", 2),
    ("Information", "info", "Share useful information.", 3),
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("url_slug", String(100), nullable=False, unique=True),
    Column("description", String(500), nullable=False, server_default=""),
    Column("display_order", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("is_public", Integer, nullable=False, server_default="1"),
    Column("require_auth", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Index("ix_categories_display_order", "display_order"),
)

_access = Table(
    "category_access",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("category_id", Integer, nullable=False),
    Column("user_id", Integer),
    Column("role_id", Integer),
    Column("tier", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    CheckConstraint("(user_id IS NULL) <> (role_id IS NULL)", name="ck_category_access_one_target"),
    Index("ix_category_access_category", "category_id"),
    Index(
        "uq_category_access_user",
        "category_id",
        "user_id",
        unique=True,
        sqlite_where=text("user_id IS NOT NULL"),
        postgresql_where=text("user_id IS NOT NULL"),
    ),
    Index(
        "uq_category_access_role",
        "category_id",
        "role_id",
        unique=True,
        sqlite_where=text("role_id IS NOT NULL"),
        postgresql_where=text("role_id IS NOT NULL"),
    ),
)

_posts = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("category_id", Integer, nullable=False),
    Column("user_id", Integer),  # NULL for anonymous posts
    Column("author_password", Text),  # bcrypt hash, anonymous posts only
    Column("title", String(200), nullable=False),
    Column("content", Text, nullable=False),
    Column("author_nickname", String(50), nullable=False),
    Column("view_count", Integer, nullable=False, server_default="0"),
    Column("vote_count", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
    Column("is_deleted", Integer, nullable=False, server_default="0"),
    Column("is_pinned", Integer, nullable=False, server_default="0"),
    Column("pinned_at", String(32)),
    CheckConstraint("(user_id IS NULL) <> (author_password IS NULL)", name="ck_posts_one_author"),
    Index("ix_posts_category", "category_id"),
    Index("ix_posts_user", "user_id"),
    Index("ix_posts_created_at", "created_at"),
)

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False),
    Column("parent_comment_id", Integer),
    Column("user_id", Integer),
    Column("author_password", Text),
    Column("content", Text, nullable=False),
    Column("author_nickname", String(50), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
    Column("is_deleted", Integer, nullable=False, server_default="0"),
    CheckConstraint("(user_id IS NULL) <> (author_password IS NULL)", name="ck_comments_one_author"),
    Index("ix_comments_post", "post_id"),
    Index("ix_comments_parent", "parent_comment_id"),
)

_votes = Table(
    "post_votes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False),
    Column("user_id", Integer),
    Column("ip_address", String(45)),
    Column("vote_value", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Index(
        "uq_post_votes_user",
        "post_id",
        "user_id",
        unique=True,
        sqlite_where=text("user_id IS NOT NULL"),
        postgresql_where=text("user_id IS NOT NULL"),
    ),
    Index("ix_post_votes_ip", "post_id", "ip_address"),
)

_attachments = Table(
    "attachments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False),
    Column("original_file_name", String(255), nullable=False),
    Column("stored_file_name", String(255), nullable=False),
    Column("content_type", String(100), nullable=False),
    Column("file_size", Integer, nullable=False),
    Column("uploaded_at", String(32), nullable=False),
    Index("ix_attachments_post", "post_id"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _author_values(author: Authorship) -> dict:
    if isinstance(author, OwnedBy):
        return {"user_id": author.user_id, "author_password": None}
    return {"user_id": None, "author_password": author.password_hash}


def _author_clause(table: Table, author: Authorship):
    """WHERE fragment matching exactly the given authorship."""
    if isinstance(author, OwnedBy):
        return (table.c.user_id == author.user_id) & table.c.author_password.is_(None)
    return table.c.user_id.is_(None) & (table.c.author_password == author.password_hash)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BoardStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def seed_default_categories(self) -> int:
        """Create the three public starter boards on an empty database.

        Returns the number of categories inserted (0 when any category exists).
        """
        with self.engine.begin() as conn:
            if conn.execute(select(func.count()).select_from(_categories)).scalar():
                return 0
            now = _now_iso()
            for name, slug, description, order in _DEFAULT_CATEGORIES:
                conn.execute(
                    _categories.insert().values(
                        name=name,
                        url_slug=slug,
                        description=description,
                        display_order=order,
                        is_active=1,
                        is_public=1,
                        require_auth=0,
                        created_at=now,
                    )
                )
        return len(_DEFAULT_CATEGORIES)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, category: Category) -> int:
        """Insert a category and return its id. Raises IntegrityError on a duplicate url_slug."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _categories.insert().values(
                    name=category.name,
                    url_slug=category.url_slug,
                    description=category.description or "",
                    display_order=category.display_order,
                    is_active=1 if category.is_active else 0,
                    is_public=1 if category.is_public else 0,
                    require_auth=1 if category.require_auth else 0,
                    created_at=_now_iso(),
                )
            )
        return result.inserted_primary_key[0]

    def get_category(self, category_id: int) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.id == category_id)).fetchone()
        return _row_to_category(row) if row is not None else None

    def get_category_by_slug(self, url_slug: str) -> Optional[Category]:
        """Active category by slug. Inactive boards are invisible by slug."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _categories.select().where((_categories.c.url_slug == url_slug) & (_categories.c.is_active == 1))
            ).fetchone()
        return _row_to_category(row) if row is not None else None

    def list_categories(self, active_only: bool = True) -> list[Category]:
        query = _categories.select().order_by(_categories.c.display_order, _categories.c.id)
        if active_only:
            query = query.where(_categories.c.is_active == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_category(r) for r in rows]

    def update_category(self, category_id: int, **fields) -> bool:
        """Update mutable fields. Booleans are converted to 0/1 here.

        Raises IntegrityError if url_slug collides with another category.
        """
        for flag in ("is_active", "is_public", "require_auth"):
            if flag in fields:
                fields[flag] = 1 if fields[flag] else 0
        if not fields:
            return self.get_category(category_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(_categories.update().where(_categories.c.id == category_id).values(**fields))
        return result.rowcount > 0

    def delete_category(self, category_id: int) -> bool:
        """Delete a category and its grants. Refused (False) while it holds live posts."""
        with self.engine.begin() as conn:
            live = conn.execute(
                select(_posts.c.id)
                .where((_posts.c.category_id == category_id) & (_posts.c.is_deleted == 0))
                .limit(1)
            ).fetchone()
            if live is not None:
                return False
            result = conn.execute(_categories.delete().where(_categories.c.id == category_id))
            if result.rowcount == 0:
                return False
            conn.execute(_access.delete().where(_access.c.category_id == category_id))
        return True

    def get_category_with_grants(self, category_id: int) -> Optional[tuple[Category, list[CategoryAccess]]]:
        """One category and all of its grants, in a single joined query."""
        query = _category_grants_query().where(_categories.c.id == category_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        grouped = _group_category_grants(rows)
        return grouped[0] if grouped else None

    def list_categories_with_grants(self, active_only: bool = True) -> list[tuple[Category, list[CategoryAccess]]]:
        """Every category with its grants in display order, in a single joined query."""
        query = _category_grants_query()
        if active_only:
            query = query.where(_categories.c.is_active == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return _group_category_grants(rows)

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def list_grants(self, category_id: int) -> list[CategoryAccess]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _access.select().where(_access.c.category_id == category_id).order_by(_access.c.id)
            ).fetchall()
        return [_row_to_grant(r) for r in rows]

    def upsert_grant(
        self,
        category_id: int,
        tier: AccessTier,
        user_id: Optional[int] = None,
        role_id: Optional[int] = None,
    ) -> None:
        """Insert a grant, or change the tier of the existing one for the same target."""
        target = _grant_target_clause(category_id, user_id, role_id)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_access.update().where(target).values(tier=int(tier)))
                if result.rowcount == 0:
                    conn.execute(
                        _access.insert().values(
                            category_id=category_id,
                            user_id=user_id,
                            role_id=role_id,
                            tier=int(tier),
                            created_at=_now_iso(),
                        )
                    )
        except IntegrityError:
            # A concurrent grant for the same target inserted first; ours becomes an update.
            with self.engine.begin() as conn:
                conn.execute(_access.update().where(target).values(tier=int(tier)))

    def delete_grant(self, category_id: int, user_id: Optional[int] = None, role_id: Optional[int] = None) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_access.delete().where(_grant_target_clause(category_id, user_id, role_id)))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def create_post(self, post: Post) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _posts.insert().values(
                    category_id=post.category_id,
                    title=post.title,
                    content=post.content,
                    author_nickname=post.author_nickname,
                    created_at=_now_iso(),
                    **_author_values(post.author),
                )
            )
        return result.inserted_primary_key[0]

    def get_post(self, post_id: int, include_deleted: bool = False) -> Optional[Post]:
        """Return a post with its attachments, or None. Soft-deleted posts are hidden by default."""
        query = _posts.select().where(_posts.c.id == post_id)
        if not include_deleted:
            query = query.where(_posts.c.is_deleted == 0)
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
            if row is None:
                return None
            post = _row_to_post(row)
            post.attachments = [
                _row_to_attachment(r)
                for r in conn.execute(
                    _attachments.select().where(_attachments.c.post_id == post_id).order_by(_attachments.c.id)
                ).fetchall()
            ]
        return post

    def list_posts(
        self,
        category_id: int,
        offset: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
    ) -> tuple[list[Post], int]:
        """Live posts of a category, pinned first then newest. Returns (page, total)."""
        condition = (_posts.c.category_id == category_id) & (_posts.c.is_deleted == 0)
        if search:
            condition = condition & or_(
                _posts.c.title.contains(search, autoescape=True),
                _posts.c.content.contains(search, autoescape=True),
            )
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_posts).where(condition)).scalar() or 0
            rows = conn.execute(
                _posts.select()
                .where(condition)
                .order_by(
                    _posts.c.is_pinned.desc(),
                    _posts.c.pinned_at.desc(),
                    _posts.c.created_at.desc(),
                    _posts.c.id.desc(),
                )
                .offset(offset)
                .limit(limit)
            ).fetchall()
        return [_row_to_post(r) for r in rows], total

    def count_posts(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_posts).where(_posts.c.is_deleted == 0)).scalar() or 0

    def increment_view_count(self, post_id: int) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                _posts.update()
                .where((_posts.c.id == post_id) & (_posts.c.is_deleted == 0))
                .values(view_count=_posts.c.view_count + 1)
            )

    def update_post_if(self, post_id: int, author: Authorship, **values) -> bool:
        """Compare-and-set update: applies only if the post is live and still has `author`."""
        values.setdefault("updated_at", _now_iso())
        with self.engine.begin() as conn:
            result = conn.execute(
                _posts.update()
                .where((_posts.c.id == post_id) & (_posts.c.is_deleted == 0) & _author_clause(_posts, author))
                .values(**values)
            )
        return result.rowcount > 0

    def set_pinned(self, post_id: int, pinned: bool) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _posts.update()
                .where((_posts.c.id == post_id) & (_posts.c.is_deleted == 0))
                .values(is_pinned=1 if pinned else 0, pinned_at=_now_iso() if pinned else None)
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_comment(self, comment: Comment) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _comments.insert().values(
                    post_id=comment.post_id,
                    parent_comment_id=comment.parent_comment_id,
                    content=comment.content,
                    author_nickname=comment.author_nickname,
                    created_at=_now_iso(),
                    **_author_values(comment.author),
                )
            )
        return result.inserted_primary_key[0]

    def get_comment(self, comment_id: int, include_deleted: bool = False) -> Optional[Comment]:
        query = _comments.select().where(_comments.c.id == comment_id)
        if not include_deleted:
            query = query.where(_comments.c.is_deleted == 0)
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, post_id: int) -> list[Comment]:
        """Live comments of a post, oldest first. Callers build the reply tree from parent_comment_id."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _comments.select()
                .where((_comments.c.post_id == post_id) & (_comments.c.is_deleted == 0))
                .order_by(_comments.c.created_at, _comments.c.id)
            ).fetchall()
        return [_row_to_comment(r) for r in rows]

    def update_comment_if(self, comment_id: int, author: Authorship, **values) -> bool:
        """Compare-and-set update, same contract as update_post_if()."""
        values.setdefault("updated_at", _now_iso())
        with self.engine.begin() as conn:
            result = conn.execute(
                _comments.update()
                .where(
                    (_comments.c.id == comment_id) & (_comments.c.is_deleted == 0) & _author_clause(_comments, author)
                )
                .values(**values)
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def has_vote(self, post_id: int, user_id: Optional[int] = None, ip_address: Optional[str] = None) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(_vote_exists_query(post_id, user_id, ip_address)).fetchone() is not None

    def add_vote(self, post_id: int, user_id: Optional[int] = None, ip_address: Optional[str] = None) -> bool:
        """Record one vote and bump the post's vote_count, in one transaction.

        Exactly one of user_id / ip_address is used as the channel: user_id when
        given, otherwise ip_address. Returns False if that channel already voted
        on this post (by the existence check or by the partial unique index).
        """
        if user_id is not None:
            ip_address = None
        try:
            with self.engine.begin() as conn:
                if conn.execute(_vote_exists_query(post_id, user_id, ip_address)).fetchone() is not None:
                    return False
                conn.execute(
                    _votes.insert().values(
                        post_id=post_id,
                        user_id=user_id,
                        ip_address=ip_address,
                        vote_value=1,
                        created_at=_now_iso(),
                    )
                )
                conn.execute(
                    _posts.update().where(_posts.c.id == post_id).values(vote_count=_posts.c.vote_count + 1)
                )
        except IntegrityError:
            return False
        return True

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_attachment_if(self, attachment: Attachment, author: Authorship) -> Optional[int]:
        """Insert an attachment row only if its post is live and still has `author`.

        The post is touched with a compare-and-set UPDATE first, in the same
        transaction, so the insert never lands on a post whose authorship
        changed since it was authorized. Returns the new id, or None.
        """
        with self.engine.begin() as conn:
            touched = conn.execute(
                _posts.update()
                .where(
                    (_posts.c.id == attachment.post_id)
                    & (_posts.c.is_deleted == 0)
                    & _author_clause(_posts, author)
                )
                .values(updated_at=_now_iso())
            )
            if touched.rowcount == 0:
                return None
            result = conn.execute(
                _attachments.insert().values(
                    post_id=attachment.post_id,
                    original_file_name=attachment.original_file_name,
                    stored_file_name=attachment.stored_file_name,
                    content_type=attachment.content_type,
                    file_size=attachment.file_size,
                    uploaded_at=_now_iso(),
                )
            )
        return result.inserted_primary_key[0]

    def list_attachments(self, post_id: int) -> list[Attachment]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _attachments.select().where(_attachments.c.post_id == post_id).order_by(_attachments.c.id)
            ).fetchall()
        return [_row_to_attachment(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Query builders
# ---------------------------------------------------------------------------


def _grant_target_clause(category_id: int, user_id: Optional[int], role_id: Optional[int]):
    clause = _access.c.category_id == category_id
    clause = clause & (_access.c.user_id.is_(None) if user_id is None else _access.c.user_id == user_id)
    clause = clause & (_access.c.role_id.is_(None) if role_id is None else _access.c.role_id == role_id)
    return clause


def _vote_exists_query(post_id: int, user_id: Optional[int], ip_address: Optional[str]):
    query = select(_votes.c.id).where(_votes.c.post_id == post_id)
    if user_id is not None:
        query = query.where(_votes.c.user_id == user_id)
    else:
        query = query.where(_votes.c.user_id.is_(None) & (_votes.c.ip_address == ip_address))
    return query.limit(1)


def _category_grants_query():
    return (
        select(
            _categories,
            _access.c.id.label("grant_id"),
            _access.c.user_id.label("grant_user_id"),
            _access.c.role_id.label("grant_role_id"),
            _access.c.tier.label("grant_tier"),
            _access.c.created_at.label("grant_created_at"),
        )
        .select_from(_categories.outerjoin(_access, _access.c.category_id == _categories.c.id))
        .order_by(_categories.c.display_order, _categories.c.id, _access.c.id)
    )


def _group_category_grants(rows) -> list[tuple[Category, list[CategoryAccess]]]:
    """Fold joined (category, grant) rows into per-category lists, keeping row order."""
    grouped: dict[int, tuple[Category, list[CategoryAccess]]] = {}
    for row in rows:
        if row.id not in grouped:
            grouped[row.id] = (_row_to_category(row), [])
        if row.grant_id is not None:
            grouped[row.id][1].append(
                CategoryAccess(
                    id=row.grant_id,
                    category_id=row.id,
                    user_id=row.grant_user_id,
                    role_id=row.grant_role_id,
                    tier=AccessTier(row.grant_tier),
                    created_at=row.grant_created_at,
                )
            )
    return list(grouped.values())


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_author(row) -> Authorship:
    if row.user_id is not None:
        return OwnedBy(user_id=row.user_id)
    if row.author_password:
        return Anonymous(password_hash=row.author_password)
    raise ValueError(f"row {row.id} has neither an owner nor an author password")


def _row_to_category(row) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        url_slug=row.url_slug,
        description=row.description or "",
        display_order=row.display_order,
        is_active=bool(row.is_active),
        is_public=bool(row.is_public),
        require_auth=bool(row.require_auth),
        created_at=row.created_at,
    )


def _row_to_grant(row) -> CategoryAccess:
    return CategoryAccess(
        id=row.id,
        category_id=row.category_id,
        user_id=row.user_id,
        role_id=row.role_id,
        tier=AccessTier(row.tier),
        created_at=row.created_at,
    )


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        category_id=row.category_id,
        author=_row_to_author(row),
        title=row.title,
        content=row.content,
        author_nickname=row.author_nickname,
        view_count=row.view_count,
        vote_count=row.vote_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_deleted=bool(row.is_deleted),
        is_pinned=bool(row.is_pinned),
        pinned_at=row.pinned_at,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        post_id=row.post_id,
        parent_comment_id=row.parent_comment_id,
        author=_row_to_author(row),
        content=row.content,
        author_nickname=row.author_nickname,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_deleted=bool(row.is_deleted),
    )


def _row_to_attachment(row) -> Attachment:
    return Attachment(
        id=row.id,
        post_id=row.post_id,
        original_file_name=row.original_file_name,
        stored_file_name=row.stored_file_name,
        content_type=row.content_type,
        file_size=row.file_size,
        uploaded_at=row.uploaded_at,
    )
