#!/usr/bin/env python3
"""
Forum administration CLI.

Usage:
  python main.py init-db
  python main.py create-admin --username admin --email admin@example.com
  python main.py grant free --role User --tier write
  python main.py grant staff --user alice --tier manage
  python main.py list-users
  python main.py list-users --search ali

The database location comes from DATABASE_URL (see core/config.py).
create-admin prompts for the password when --password is not given.
"""

import argparse
import getpass
import sys

from auth import password_policy
from auth.rate_limit import LoginRateLimiter
from auth.service import AuthService
from auth.store import UserStore
from board.access import CategoryAccessService
from board.models import AccessTier
from board.store import BoardStore
from cache.store import MemoryCache
from core.config import get_settings

_TIERS = {"read": AccessTier.READ, "write": AccessTier.WRITE, "manage": AccessTier.MANAGE}


def _open_stores() -> tuple[UserStore, BoardStore]:
    url = get_settings().database_url
    return UserStore(url), BoardStore(url)


def cmd_init_db(args: argparse.Namespace) -> int:
    users, boards = _open_stores()
    try:
        seeded = boards.seed_default_categories()
        print(f"Database ready. {len(users.list_roles())} role(s), {seeded} new default categor(ies).")
    finally:
        boards.close()
        users.close()
    return 0


def cmd_create_admin(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    ok, message = password_policy.validate(password)
    if not ok:
        print(f"  [!] {message}")
        for rule, passed in password_policy.checklist(password):
            print(f"      {'x' if passed else ' '} {rule}")
        return 1
    users, boards = _open_stores()
    try:
        service = AuthService(users, LoginRateLimiter(MemoryCache()))
        user = service.bootstrap_admin(args.username, args.email, password, args.display_name or args.username)
        if user is None:
            print(f"  [!] User '{args.username}' already exists.")
            return 1
        print(f"Admin '{user.username}' created (id={user.id}).")
    finally:
        boards.close()
        users.close()
    return 0


def cmd_grant(args: argparse.Namespace) -> int:
    if bool(args.user) == bool(args.role):
        print("  [!] Give exactly one of --user or --role.")
        return 2
    users, boards = _open_stores()
    try:
        category = boards.get_category_by_slug(args.category)
        if category is None:
            print(f"  [!] No active category '{args.category}'.")
            return 1
        user_id = role_id = None
        if args.user:
            user = users.get_by_username(args.user)
            if user is None:
                print(f"  [!] No user '{args.user}'.")
                return 1
            user_id = user.id
        else:
            role = users.get_role_by_name(args.role)
            if role is None:
                print(f"  [!] No role '{args.role}'.")
                return 1
            role_id = role.id
        access = CategoryAccessService(users, boards)
        access.grant_access(category.id, _TIERS[args.tier], user_id=user_id, role_id=role_id)
        print(f"Granted {args.tier} on '{category.url_slug}' to {args.user or args.role}.")
    finally:
        boards.close()
        users.close()
    return 0


def cmd_list_users(args: argparse.Namespace) -> int:
    users, boards = _open_stores()
    try:
        rows = users.list_users(search=args.search)
        if not rows:
            print("No users.")
            return 0
        print(f"{'ID':>5}  {'USERNAME':<20} {'ACTIVE':<7} ROLES")
        print("─" * 50)
        for user in rows:
            print(f"{user.id:>5}  {user.username:<20} {'yes' if user.is_active else 'no':<7} {', '.join(user.roles)}")
    finally:
        boards.close()
        users.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Forum administration.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create the schema, seed roles and default categories")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("create-admin", help="Create an account holding the Admin role")
    p.add_argument("--username", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--display-name", dest="display_name", default=None)
    p.add_argument("--password", default=None, help="Prompted for when omitted")
    p.set_defaults(func=cmd_create_admin)

    p = sub.add_parser("grant", help="Grant a user or role access to a category")
    p.add_argument("category", help="Category url slug")
    p.add_argument("--user", default=None, help="Username to grant to")
    p.add_argument("--role", default=None, help="Role name to grant to (Admin, SubAdmin, User)")
    p.add_argument("--tier", choices=sorted(_TIERS), default="read")
    p.set_defaults(func=cmd_grant)

    p = sub.add_parser("list-users", help="List accounts and their roles")
    p.add_argument("--search", default=None)
    p.set_defaults(func=cmd_list_users)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
