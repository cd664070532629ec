"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as board/store.py).
UserStore is the repository; _row_to_user / _row_to_role are the mappers.
Services and routes never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  hashed_password is selected only by the lookups the login path needs;
  the mapper carries it into the User dataclass but API models never
  expose it.

Roles are seeded with fixed ids on every startup (idempotent). The role set
is closed: there is no create_role().

Layer rule: no imports from api/, board/, or cache/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import SEEDED_ROLES, Role, User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'forum.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("display_name", String(100), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
    Column("last_login", String(32)),
    Column("is_active", Integer, nullable=False, server_default="1"),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(50), nullable=False, unique=True),
    Column("description", String(200), nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
)

# Composite primary key: at most one row per (user, role).
_user_roles = Table(
    "user_roles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite tweaks every store in this app uses."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        path = db_url.removeprefix("sqlite:///")
        if path and not path.startswith((":memory:", "file:")):
            Path(path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User, Role and UserRole entities (the credential store).

    Usage:
        store = UserStore()
        uid = store.create_user(User(...), role_names=["User"])
        user = store.get_active_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)
        self._seed_roles()

    def _seed_roles(self) -> None:
        """Insert the fixed role set if any of it is missing. Safe on every startup."""
        with self.engine.begin() as conn:
            existing = set(conn.execute(select(_roles.c.id)).scalars())
            for role_id, name, description in SEEDED_ROLES:
                if role_id not in existing:
                    conn.execute(
                        _roles.insert().values(id=role_id, name=name, description=description, created_at=_now_iso())
                    )

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User, role_names: tuple[str, ...] | list[str] = ()) -> int:
        """Insert a user plus its role assignments in one transaction.

        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists. Callers treat that as "duplicate" -- it is how a concurrent
        registration that slipped past the existence check shows up.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    display_name=user.display_name,
                    created_at=now,
                    is_active=1 if user.is_active else 0,
                )
            )
            user_id = result.inserted_primary_key[0]
            if role_names:
                role_ids = conn.execute(select(_roles.c.id).where(_roles.c.name.in_(list(role_names)))).scalars()
                for role_id in role_ids:
                    conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role_id, assigned_at=now))
        return user_id

    def exists_username_or_email(self, username: str, email: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.id).where(or_(_users.c.username == username, _users.c.email == email)).limit(1)
            ).fetchone()
        return row is not None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_active_by_username(self, username: str) -> User | None:
        """Login lookup: active account by username, with role names joined."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.username == username) & (_users.c.is_active == 1))
            ).fetchone()
            if row is None:
                return None
            user = _row_to_user(row)
            user.roles = _role_names(conn, user.id)
        return user

    def get_with_roles(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return None
            user = _row_to_user(row)
            user.roles = _role_names(conn, user.id)
        return user

    def list_users(self, search: str | None = None, offset: int = 0, limit: int | None = None) -> list[User]:
        """Return users newest first, with role names joined.

        search matches username, email or display name, case-insensitively.
        """
        query = _users.select().order_by(_users.c.created_at.desc(), _users.c.id.desc())
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(_users.c.username).like(pattern),
                    func.lower(_users.c.email).like(pattern),
                    func.lower(_users.c.display_name).like(pattern),
                )
            )
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        with self.engine.connect() as conn:
            users = [_row_to_user(r) for r in conn.execute(query).fetchall()]
            if users:
                names_by_user: dict[int, list[str]] = {u.id: [] for u in users}
                rows = conn.execute(
                    select(_user_roles.c.user_id, _roles.c.name)
                    .join(_roles, _roles.c.id == _user_roles.c.role_id)
                    .where(_user_roles.c.user_id.in_(list(names_by_user)))
                    .order_by(_roles.c.id)
                ).fetchall()
                for r in rows:
                    names_by_user[r.user_id].append(r.name)
                for u in users:
                    u.roles = names_by_user[u.id]
        return users

    def count_users(self, active_only: bool = False) -> int:
        query = select(func.count()).select_from(_users)
        if active_only:
            query = query.where(_users.c.is_active == 1)
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, display_name, is_active, hashed_password.
        is_active must be passed as bool; this method converts to int for SQLite.

        Returns True if a row was updated, False if user_id was not found.
        """
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> None:
        with self.engine.begin() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def list_roles(self) -> list[Role]:
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    def get_role_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def get_role_by_id(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def get_roles(self, user_id: int) -> list[Role]:
        """Return the roles assigned to a user, in one joined query."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_roles)
                .join(_user_roles, _user_roles.c.role_id == _roles.c.id)
                .where(_user_roles.c.user_id == user_id)
                .order_by(_roles.c.id)
            ).fetchall()
        return [_row_to_role(r) for r in rows]

    def has_role(self, user_id: int, role_name: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_user_roles.c.user_id)
                .join(_roles, _roles.c.id == _user_roles.c.role_id)
                .where((_user_roles.c.user_id == user_id) & (_roles.c.name == role_name))
                .limit(1)
            ).fetchone()
        return row is not None

    def assign_role(self, user_id: int, role_id: int) -> bool:
        """Add a (user, role) row. Returns False if it already exists or the role is unknown."""
        try:
            with self.engine.begin() as conn:
                if conn.execute(select(_roles.c.id).where(_roles.c.id == role_id)).fetchone() is None:
                    return False
                exists = conn.execute(
                    select(_user_roles.c.user_id).where(
                        (_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id)
                    )
                ).fetchone()
                if exists is not None:
                    return False
                conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role_id, assigned_at=_now_iso()))
        except IntegrityError:
            # Lost a race with a concurrent assignment of the same pair.
            return False
        return True

    def remove_role(self, user_id: int, role_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _user_roles.delete().where((_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id))
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _role_names(conn, user_id: int) -> list[str]:
    return list(
        conn.execute(
            select(_roles.c.name)
            .join(_user_roles, _user_roles.c.role_id == _roles.c.id)
            .where(_user_roles.c.user_id == user_id)
            .order_by(_roles.c.id)
        ).scalars()
    )


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        display_name=row.display_name,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
        is_active=bool(row.is_active),
    )


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
    )
