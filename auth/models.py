"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; these only own the shape.

Identity is the one exception that carries a few helpers: it is the decoded
session credential, and the role checks on it read claims only (no store
round trip).

Layer rule: no imports from api/, board/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class RoleName:
    """Names of the seeded roles. The role set is fixed."""

    ADMIN = "Admin"
    SUB_ADMIN = "SubAdmin"
    USER = "User"


# Seeded with fixed primary keys so grants and assignments can reference them
# without a lookup.
SEEDED_ROLES: tuple[tuple[int, str, str], ...] = (
    (1, RoleName.ADMIN, "Administrator - full access"),
    (2, RoleName.SUB_ADMIN, "Sub-administrator - limited management"),
    (3, RoleName.USER, "Regular user"),
)


@dataclass
class User:
    """A forum account.

    hashed_password is a bcrypt hash and never leaves the service layer.
    Accounts are deactivated (is_active=False) rather than deleted so their
    posts and comments keep a valid owner.

    roles is only populated by store methods that join user_roles; plain
    lookups leave it empty.
    """

    username: str
    email: str
    display_name: str
    hashed_password: str = ""
    id: int | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None
    roles: list[str] = field(default_factory=list)


@dataclass
class Role:
    id: int
    name: str
    description: str = ""
    created_at: str | None = None


@dataclass
class UserRole:
    user_id: int
    role_id: int
    assigned_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as carried by the signed session credential.

    Passed explicitly into every role, access and content operation. roles
    reflects the assignments at login time and may be stale until the user
    logs in again.
    """

    user_id: int
    username: str
    email: str = ""
    display_name: str = ""
    roles: tuple[str, ...] = ()

    def is_in_role(self, role_name: str) -> bool:
        return role_name in self.roles

    @property
    def is_admin(self) -> bool:
        return RoleName.ADMIN in self.roles

    @property
    def is_sub_admin_or_higher(self) -> bool:
        return RoleName.ADMIN in self.roles or RoleName.SUB_ADMIN in self.roles

    @classmethod
    def from_user(cls, user: User) -> Identity:
        return cls(
            user_id=user.id,
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            roles=tuple(user.roles),
        )
