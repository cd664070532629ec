"""
auth/roles.py -- Role membership queries and assignment.

Two flavours of "does the caller have role X":
  has_role(user_id, name)       -- asks the store. Always current.
  is_in_role(identity, name)    -- reads the session claims. No store round
                                   trip, but stale until the user logs in
                                   again after an assignment changes.

can_manage_user() always reads the store for both sides, because it gates
account changes.
"""

from __future__ import annotations

import logging

from auth.models import Identity, Role, RoleName
from auth.store import UserStore

logger = logging.getLogger("forum.auth")

_PRIVILEGED = {RoleName.ADMIN, RoleName.SUB_ADMIN}


class RoleService:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def roles_of(self, user_id: int) -> list[Role]:
        return self.store.get_roles(user_id)

    def list_roles(self) -> list[Role]:
        return self.store.list_roles()

    def has_role(self, user_id: int, role_name: str) -> bool:
        return self.store.has_role(user_id, role_name)

    def is_in_role(self, identity: Identity | None, role_name: str) -> bool:
        return identity is not None and identity.is_in_role(role_name)

    def is_admin(self, identity: Identity | None) -> bool:
        return self.is_in_role(identity, RoleName.ADMIN)

    def is_sub_admin_or_higher(self, identity: Identity | None) -> bool:
        return self.is_in_role(identity, RoleName.ADMIN) or self.is_in_role(identity, RoleName.SUB_ADMIN)

    def assign_role(self, user_id: int, role_id: int) -> bool:
        """Returns False if the user already holds the role."""
        assigned = self.store.assign_role(user_id, role_id)
        if assigned:
            logger.info("Assigned role %d to user %d", role_id, user_id)
        return assigned

    def remove_role(self, user_id: int, role_id: int) -> bool:
        """Returns False if the user did not hold the role."""
        removed = self.store.remove_role(user_id, role_id)
        if removed:
            logger.info("Removed role %d from user %d", role_id, user_id)
        return removed

    def can_manage_user(self, identity: Identity | None, target_user_id: int) -> bool:
        """Admin manages anyone; SubAdmin manages only non-privileged users."""
        if identity is None:
            return False
        caller_roles = {r.name for r in self.store.get_roles(identity.user_id)}
        if RoleName.ADMIN in caller_roles:
            return True
        if RoleName.SUB_ADMIN in caller_roles:
            target_roles = {r.name for r in self.store.get_roles(target_user_id)}
            return not (target_roles & _PRIVILEGED)
        return False
