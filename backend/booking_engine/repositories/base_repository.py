# backend/booking_engine/repositories/base_repository.py
"""
Base Repository Pattern for the booking engine.

Repositories own every query against one model. They never commit on their
own: callers group work with ``transaction()``. Storage failures surface as
PersistenceError so the service layer can retry them; constraint violations
are re-raised as IntegrityError for the caller to interpret.
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import PersistenceError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Common data access for one SQLAlchemy model.

    Attributes:
        db: SQLAlchemy session (managed by the caller)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit on success, roll back on any failure."""
        try:
            yield self.db
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.logger.error("Repository transaction failed: %s", exc)
            self.db.rollback()
            raise PersistenceError(
                f"Transaction on {self.model.__name__} failed", operation="transaction"
            ) from exc
        except Exception:
            self.db.rollback()
            raise

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise PersistenceError(
                f"Failed to retrieve {self.model.__name__}", operation="get_by_id"
            ) from e

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit; the flush assigns defaults and surfaces
        constraint violations early.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.warning("Integrity error creating %s: %s", self.model.__name__, exc)
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise PersistenceError(
                f"Failed to create {self.model.__name__}", operation="create"
            ) from e

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding one by criteria: {str(e)}")
            raise PersistenceError("Failed to find record", operation="find_one_by") from e

    def flush(self) -> None:
        try:
            self.db.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error flushing {self.model.__name__}: {str(e)}")
            raise PersistenceError("Failed to flush changes", operation="flush") from e
