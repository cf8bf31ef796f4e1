"""FastAPI dependency injection: database sessions and service factories."""
from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.admin.deletion import DeletionService
from app.admin.queries import AdminQueryService
from app.db.session import get_session_factory
from app.notification.builder import NotificationBuilder
from app.subjects.reconciler import SubjectReconciler


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_reconciler(db: Session = Depends(get_db)) -> SubjectReconciler:
    return SubjectReconciler(db)


def get_notification_builder(db: Session = Depends(get_db)) -> NotificationBuilder:
    return NotificationBuilder(db)


def get_admin_queries(db: Session = Depends(get_db)) -> AdminQueryService:
    return AdminQueryService(db)


def get_deletion_service(db: Session = Depends(get_db)) -> DeletionService:
    return DeletionService(db)
