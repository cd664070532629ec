"""
board/access.py -- Per-category read / write / manage decisions.

The decision itself is pure: decide_read(), decide_write() and decide_manage()
take a Category, its grants and the caller's standing (user id, role ids,
admin flag) and touch nothing else. CategoryAccessService only loads those
inputs, so can_access() and accessible_categories() run the exact same rule.

Read precedence, first match wins:
  1. missing or inactive category        -> deny
  2. public, no auth required            -> allow
  3. auth required, caller anonymous     -> deny
  4. caller is Admin                     -> allow
  5. public, auth required, logged in    -> allow
  6. private: a grant names the user or one of the user's roles

Caller roles are always read from the store, never from session claims, so
a revoked role stops working on the next request rather than the next login.

There is no lock between a check here and the write that follows it in the
content layer. A grant revoked in between does not stop that one write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.models import Identity, RoleName
from auth.store import UserStore
from board.models import AccessTier, Category, CategoryAccess
from board.store import BoardStore

logger = logging.getLogger("forum.access")


@dataclass(frozen=True)
class CallerStanding:
    """What access decisions need to know about the caller."""

    user_id: int | None = None
    role_ids: frozenset[int] = frozenset()
    is_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = CallerStanding()


# ---------------------------------------------------------------------------
# Pure decisions
# ---------------------------------------------------------------------------


def _grant_applies(grant: CategoryAccess, caller: CallerStanding, min_tier: AccessTier) -> bool:
    if grant.tier < min_tier:
        return False
    if grant.user_id is not None:
        return grant.user_id == caller.user_id
    return grant.role_id in caller.role_ids


def _has_grant(grants: list[CategoryAccess], caller: CallerStanding, min_tier: AccessTier) -> bool:
    if not caller.is_authenticated:
        return False
    return any(_grant_applies(g, caller, min_tier) for g in grants)


def decide_read(category: Category | None, grants: list[CategoryAccess], caller: CallerStanding) -> bool:
    if category is None or not category.is_active:
        return False
    if category.is_public and not category.require_auth:
        return True
    if category.require_auth and not caller.is_authenticated:
        return False
    if caller.is_admin:
        return True
    if category.is_public and category.require_auth and caller.is_authenticated:
        return True
    return _has_grant(grants, caller, AccessTier.READ)


def decide_write(category: Category | None, grants: list[CategoryAccess], caller: CallerStanding) -> bool:
    if not decide_read(category, grants, caller):
        return False
    if caller.is_admin or category.is_public:
        return True
    return _has_grant(grants, caller, AccessTier.WRITE)


def decide_manage(category: Category | None, grants: list[CategoryAccess], caller: CallerStanding) -> bool:
    """Admin or a Manage grant. Deliberately skips the read precondition."""
    if category is None:
        return False
    if caller.is_admin:
        return True
    return _has_grant(grants, caller, AccessTier.MANAGE)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class CategoryAccessService:
    def __init__(self, users: UserStore, boards: BoardStore) -> None:
        self.users = users
        self.boards = boards

    def standing(self, caller: Identity | None) -> CallerStanding:
        """Resolve the caller's current roles with one store query."""
        if caller is None:
            return ANONYMOUS
        roles = self.users.get_roles(caller.user_id)
        return CallerStanding(
            user_id=caller.user_id,
            role_ids=frozenset(r.id for r in roles),
            is_admin=any(r.name == RoleName.ADMIN for r in roles),
        )

    def _load(self, category_id: int) -> tuple[Category | None, list[CategoryAccess]]:
        loaded = self.boards.get_category_with_grants(category_id)
        if loaded is None:
            return None, []
        return loaded

    def can_access(self, category_id: int, caller: Identity | None) -> bool:
        category, grants = self._load(category_id)
        return decide_read(category, grants, self.standing(caller))

    def can_write(self, category_id: int, caller: Identity | None) -> bool:
        category, grants = self._load(category_id)
        return decide_write(category, grants, self.standing(caller))

    def can_manage(self, category_id: int, caller: Identity | None) -> bool:
        category, grants = self._load(category_id)
        return decide_manage(category, grants, self.standing(caller))

    def accessible_categories(self, caller: Identity | None) -> list[Category]:
        """Active categories the caller may read, in display order.

        Two queries at most: the caller's roles, then every active category
        joined with its grants.
        """
        standing = self.standing(caller)
        return [
            category
            for category, grants in self.boards.list_categories_with_grants(active_only=True)
            if decide_read(category, grants, standing)
        ]

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def grant_access(
        self,
        category_id: int,
        tier: AccessTier,
        user_id: int | None = None,
        role_id: int | None = None,
    ) -> bool:
        """Grant `tier` to exactly one user or one role. Re-granting changes the tier in place.

        Returns False if the category, the user or the role does not exist.
        Raises ValueError unless exactly one of user_id / role_id is given.
        """
        if (user_id is None) == (role_id is None):
            raise ValueError("Exactly one of user_id or role_id must be provided")
        if self.boards.get_category(category_id) is None:
            return False
        if user_id is not None and self.users.get_by_id(user_id) is None:
            return False
        if role_id is not None and self.users.get_role_by_id(role_id) is None:
            return False
        self.boards.upsert_grant(category_id, AccessTier(tier), user_id=user_id, role_id=role_id)
        logger.info(
            "Granted %s on category %d to %s",
            AccessTier(tier).name,
            category_id,
            f"user {user_id}" if user_id is not None else f"role {role_id}",
        )
        return True

    def revoke_access(self, category_id: int, user_id: int | None = None, role_id: int | None = None) -> bool:
        if (user_id is None) == (role_id is None):
            raise ValueError("Exactly one of user_id or role_id must be provided")
        revoked = self.boards.delete_grant(category_id, user_id=user_id, role_id=role_id)
        if revoked:
            logger.info(
                "Revoked access on category %d from %s",
                category_id,
                f"user {user_id}" if user_id is not None else f"role {role_id}",
            )
        return revoked

    def list_grants(self, category_id: int) -> list[CategoryAccess]:
        return self.boards.list_grants(category_id)
