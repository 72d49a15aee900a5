from __future__ import annotations

import logging
import os

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.infra.db import engine
from app.infra.models import Base, UserORM, UserRole
from app.services.security import hash_password

logger = logging.getLogger(__name__)


def ensure_admin(db: Session) -> None:
    """
    Crée un administrateur s'il n'existe pas.
    Variables d'environnement: ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME
    """
    email = os.getenv("ADMIN_EMAIL", "admin@admin.com").strip().lower()
    password = os.getenv("ADMIN_PASSWORD", "admin123").strip()
    name = os.getenv("ADMIN_NAME", "Admin").strip()

    if not email or not password:
        logger.warning("admin env vars invalid; skipping admin creation")
        return

    existing = db.query(UserORM).filter(UserORM.email == email).first()
    if existing:
        return

    db.add(
        UserORM(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=UserRole.ADMIN,
        )
    )
    try:
        db.commit()
        logger.info("admin user created (%s)", email)
    except IntegrityError:
        # deux instances qui démarrent en même temps
        db.rollback()
        logger.info("admin user already exists")


def main():
    Base.metadata.create_all(bind=engine)
    logger.info("tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
