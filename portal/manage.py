"""
Administer the admin allow-list.

Admins are identified by the identity provider's user id (the ``sub`` of
their access token). Only admins can create, edit or delete milestones.

Examples:
  portal-admin grant 3f6c1a52-8a0e-4e43-9d41-0b1f6f1b9c2e
  portal-admin revoke 3f6c1a52-8a0e-4e43-9d41-0b1f6f1b9c2e
  portal-admin check 3f6c1a52-8a0e-4e43-9d41-0b1f6f1b9c2e

Exit codes:
  0 = success
  1 = user was not an admin (revoke/check)
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from .crud.milestones import grant_admin, is_admin, revoke_admin
from .db.session import Base, SessionLocal, engine
from .models import milestone as _milestone  # noqa: F401


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Manage milestone portal administrators.")
    p.add_argument("action", choices=["grant", "revoke", "check"], help="What to do with the user.")
    p.add_argument("user_id", help="Identity provider user id.")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.action == "grant":
            grant_admin(db, args.user_id)
            print(f"granted admin to {args.user_id}")
            return 0
        if args.action == "revoke":
            if revoke_admin(db, args.user_id):
                print(f"revoked admin from {args.user_id}")
                return 0
            print(f"{args.user_id} is not an admin", file=sys.stderr)
            return 1
        admin = is_admin(db, args.user_id)
        print("admin" if admin else "not admin")
        return 0 if admin else 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
