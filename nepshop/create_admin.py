"""Create the initial admin account: ``nepshop-create-admin``."""

import argparse
import logging
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

from nepshop.config import configure_logging
from nepshop.database import SessionLocal, init_db
from nepshop.models import Role, User
from nepshop.security import get_password_hash

logger = logging.getLogger(__name__)


def create_admin(db, name, email, phone, password):
    """Insert an admin user unless one already exists; return (user, created)."""
    existing = db.query(User).filter((User.role == Role.ADMIN) | (User.email == email)).first()
    if existing:
        return existing, False
    user = User(name=name, email=email, phone=phone, password_hash=get_password_hash(password), role=Role.ADMIN)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, True


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create the Nep-Shop admin account")
    parser.add_argument("--name", default=os.getenv("ADMIN_NAME", "Admin"))
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL", "admin@nepshop.com"))
    parser.add_argument("--phone", default=os.getenv("ADMIN_PHONE", "9800000000"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD", "admin123"))
    args = parser.parse_args(argv)

    configure_logging()
    db = SessionLocal()
    try:
        init_db()
        user, created = create_admin(db, args.name, args.email, args.phone, args.password)
    except SQLAlchemyError:
        logger.exception("Could not create admin user")
        return 1
    finally:
        db.close()

    if created:
        logger.info("Admin user created: %s (%s)", user.email, user.phone)
        logger.warning("Change the default admin password after first login")
    else:
        logger.info("Admin user already exists: %s (%s)", user.name, user.email)
    return 0


if __name__ == "__main__":
    sys.exit(main())
