#!/usr/bin/env python3
"""
Grant (or revoke) admin rights by email.

The console only trusts the stored user document, so the first admin has to
be set here.

Usage:
    python3 admin_bootstrap.py <email> [--revoke]
"""

import re
import sys
from datetime import datetime

from database import db


def set_admin(database, email: str, is_admin: bool = True) -> bool:
    """Match the email case-insensitively. Returns False when no user has it."""
    result = database.users.update_one(
        {"email": {"$regex": f"^{re.escape(email.strip())}$", "$options": "i"}},
        {"$set": {
            "isAdmin": is_admin,
            "role": "admin" if is_admin else "user",
            "updatedAt": datetime.utcnow(),
        }},
    )
    return result.matched_count > 0


def main():
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        print("Usage: python3 admin_bootstrap.py <email> [--revoke]")
        sys.exit(1)

    email = args[0]
    grant = "--revoke" not in sys.argv
    if not set_admin(db, email, grant):
        print(f"✗ No user with email {email}. The user must sign up first.")
        sys.exit(1)
    print(f"✓ {email} is {'now an admin' if grant else 'no longer an admin'}")


if __name__ == "__main__":
    main()
