#!/usr/bin/env python3
"""Create (or reuse) a user and print a bearer token for local development.

Usage:
  python scripts/issue_token.py alice@example.com --role customer
  python scripts/issue_token.py agent@example.com --role agent --name "Agent A" --minutes 120
"""

import argparse
import os
import sys

# Add project root so we can import courierdesk modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courierdesk.database import SessionLocal  # noqa: E402
from courierdesk.dependencies import create_access_token  # noqa: E402
from courierdesk.lifecycle import ROLES  # noqa: E402
from courierdesk.models import User  # noqa: E402
from courierdesk.startup import run_startup_migrations  # noqa: E402


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--role", choices=ROLES, default="customer")
    parser.add_argument("--name", default="")
    parser.add_argument("--minutes", type=int, default=None)
    args = parser.parse_args(argv)

    run_startup_migrations()
    db = SessionLocal()
    try:
        user = db.query(User).filter_by(email=args.email).first()
        if not user:
            user = User(email=args.email, name=args.name or args.email.split("@")[0], role=args.role)
            db.add(user)
            db.commit()
            print(f"Created {args.role} {user.email} ({user.id})", file=sys.stderr)
        elif user.role != args.role:
            print(f"Existing user {user.email} has role {user.role}; token issued for that role", file=sys.stderr)
        print(create_access_token(user.id, args.minutes))
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
