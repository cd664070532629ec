"""
tests/conftest.py -- Shared test fixtures for the forum tests.

This module provides:
  - memory_url(): a unique named shared-memory SQLite URL
  - user_store / board_store: isolated stores on one in-memory database
  - make_user: creates an account with the given roles, returns its Identity
  - access / posts / comments: services over those stores
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode and accepts the TestClient host.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, wire_services
from auth.models import Identity, RoleName, User
from auth.store import UserStore
from auth.tokens import create_session_token, hash_password
from board.access import CategoryAccessService
from board.content import CommentService, OwnershipPolicy, PostService
from board.store import BoardStore
from board.uploads import LocalBlobStore
from cache.store import MemoryCache
from core.config import get_settings

PASSWORD = "Passw0rd!"

# bcrypt is deliberately slow; hash the shared fixture password once.
_PASSWORD_HASH = hash_password(PASSWORD)


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def create_account(store: UserStore, username: str, roles: tuple[str, ...] = (RoleName.USER,)) -> Identity:
    user = User(
        username=username,
        email=f"{username}@example.com",
        display_name=username.title(),
        hashed_password=_PASSWORD_HASH,
    )
    user.id = store.create_user(user, role_names=list(roles))
    user.roles = list(roles)
    return Identity.from_user(user)


# ---------------------------------------------------------------------------
# Store and service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    return memory_url("forum")


@pytest.fixture
def user_store(db_url: str) -> Generator[UserStore, None, None]:
    store = UserStore(db_url)
    yield store
    store.close()


@pytest.fixture
def board_store(db_url: str) -> Generator[BoardStore, None, None]:
    store = BoardStore(db_url)
    yield store
    store.close()


@pytest.fixture
def make_user(user_store: UserStore) -> Callable[..., Identity]:
    def _make(username: str, *roles: str) -> Identity:
        return create_account(user_store, username, roles or (RoleName.USER,))

    return _make


@pytest.fixture
def access(user_store: UserStore, board_store: BoardStore) -> CategoryAccessService:
    return CategoryAccessService(user_store, board_store)


@pytest.fixture
def posts(board_store: BoardStore, access: CategoryAccessService, tmp_path) -> PostService:
    return PostService(board_store, access, OwnershipPolicy(), blobs=LocalBlobStore(tmp_path / "uploads"))


@pytest.fixture
def comments(board_store: BoardStore, access: CategoryAccessService) -> CommentService:
    return CommentService(board_store, access, OwnershipPolicy())


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    user_store: UserStore
    board_store: BoardStore
    admin: Identity
    member: Identity

    def auth(self, identity: Identity) -> dict[str, str]:
        """Authorization header for `identity` with a fresh one-hour token."""
        return {"Authorization": f"Bearer {create_session_token(identity, expire_seconds=3600)}"}


def _patch_lifespan(user_store: UserStore, board_store: BoardStore, upload_dir):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test stores into app.state so TestClient routes see
    isolated in-memory databases rather than the production ones.
    """
    settings = get_settings().model_copy(update={"upload_dir": upload_dir})

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, settings, user_store, board_store, MemoryCache())
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for integration tests.

    One client per test module. An Admin ("testadmin") and a plain member
    ("member") exist before the client starts, both with password PASSWORD.
    Default categories are seeded.
    """
    url = memory_url("api")
    user_store = UserStore(url)
    board_store = BoardStore(url)
    board_store.seed_default_categories()
    admin = create_account(user_store, "testadmin", (RoleName.ADMIN, RoleName.USER))
    member = create_account(user_store, "member")

    app.router.lifespan_context = _patch_lifespan(user_store, board_store, tmp_path_factory.mktemp("uploads"))
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, user_store, board_store, admin, member)

    board_store.close()
    user_store.close()
