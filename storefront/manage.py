"""
Management commands
- promote: set the role of an existing user (registration only creates ordinary users)

Usage:
  python -m storefront.manage promote --email admin@example.com [--role admin]
"""
import argparse
import logging
import sys
from typing import Optional, Sequence

from . import config, crud, models
from .db import SessionLocal, dispose_engine, init_engine
from .errors import NotFoundError

logger = logging.getLogger(__name__)


def promote(database_url: str, email: str, role: models.Role = models.Role.admin) -> models.User:
    init_engine(database_url)
    try:
        with SessionLocal() as db:
            return crud.update_user_role(db, email, role)
    finally:
        dispose_engine()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="storefront.manage")
    parser.add_argument("--db", default=None, help="SQLAlchemy database URL (defaults to DATABASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)
    p = sub.add_parser("promote", help="change a user's role")
    p.add_argument("--email", required=True)
    p.add_argument("--role", choices=[r.value for r in models.Role], default=models.Role.admin.value)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    database_url = args.db or config.get_settings().database_url
    try:
        user = promote(database_url, args.email, models.Role(args.role))
    except NotFoundError:
        logger.error("No user registered with email %s", args.email)
        return 1
    print(f"{user.email} is now {user.role.value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
