"""Create an admin account for the strata portal.

Run: `python -m strata.manage_create_admin --username admin --email admin@example.com --password Changeme123`
"""

import argparse
import sys

from .config import SessionLocal, init_db
from .constants import Role
from .core.errors import ValidationError
from .services import users as users_service


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args(argv)

    init_db()
    with SessionLocal() as db:
        try:
            user = users_service.create_user(
                db,
                username=args.username,
                email=args.email,
                password=args.password,
                role=Role.ADMIN,
            )
        except ValidationError as exc:
            print(f"Could not create admin: {exc.message}", file=sys.stderr)
            return 1
    print(f"Created admin user {user.username} with id {user.id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
