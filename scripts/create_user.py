#!/usr/bin/env python3
"""
User Bootstrap Script
Creates a user (optionally an administrator) and prints an access token.

Usage:
    python scripts/create_user.py --username dm_alice --email alice@example.com
    python scripts/create_user.py --username admin --email admin@example.com --admin
"""

import argparse
import os
import re
import sys
import uuid

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.database import SessionLocal, init_db
from app.core.security import create_access_token
from app.models.user import User, UserRole

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def main():
    parser = argparse.ArgumentParser(description="Create an NPC Forge user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--admin", action="store_true", help="Give the user the admin role")
    args = parser.parse_args()

    if not USERNAME_RE.match(args.username):
        parser.error("username must be 3-30 letters, digits, '_' or '-'")
    if not EMAIL_RE.match(args.email):
        parser.error("email is not valid")

    init_db()
    db = SessionLocal()
    try:
        existing = db.query(User).filter(
            (User.username == args.username) | (User.email == args.email.lower())
        ).first()
        if existing:
            print(f"User already exists: {existing.id} ({existing.username})")
            user = existing
        else:
            user = User(
                id=f"usr_{uuid.uuid4().hex[:12]}",
                username=args.username,
                email=args.email.lower(),
                role=UserRole.ADMIN if args.admin else UserRole.USER,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            print(f"Created user {user.id} ({user.username}, role={user.role})")

        print(f"Access token:\n{create_access_token(user.id, user.role)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
