from __future__ import annotations

import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.services.errors import PersistenceError

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    # base en mémoire: une seule connexion partagée, sinon chaque session voit une base vide
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


DATABASE_URL = settings.DATABASE_URL

engine = create_engine(DATABASE_URL, future=True, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    class_=Session,
)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def commit_or_raise(db: Session) -> None:
    """
    Commit explicite pour les écritures sensibles (paiements).
    En cas d'échec la transaction est annulée et rien n'est modifié.
    """
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning("concurrent write rejected: %s", e)
        raise PersistenceError(
            "L'échéance a été modifiée entre-temps. Rechargez la liste.", conflict=True
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("commit failed: %s", e.__class__.__name__)
        raise PersistenceError("Erreur lors de l'enregistrement. Réessayez.") from e
