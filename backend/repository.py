"""
Repository port over a SQLAlchemy session.

All reads and writes of entity state go through a Repository so that the
commit/rollback handling and the translation of persistence failures into
API errors live in one place. Nothing here caches entities across requests;
a repository is as short-lived as the session it wraps.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from errors import Conflict, NotFound

logger = logging.getLogger(__name__)


class Repository:
    """Find/save/remove access to one mapped model."""

    def __init__(self, db: Session, model: type, label: Optional[str] = None):
        self.db = db
        self.model = model
        self.label = label or model.__name__

    def get(self, entity_id: Any) -> Optional[Any]:
        return self.db.get(self.model, entity_id)

    def get_or_404(self, entity_id: Any) -> Any:
        entity = self.get(entity_id)
        if entity is None:
            logger.info(f"{self.label} {entity_id} not found")
            raise NotFound(f"{self.label} not found")
        return entity

    def query(self, *criteria, **filters):
        query = self.db.query(self.model)
        if criteria:
            query = query.filter(*criteria)
        if filters:
            query = query.filter_by(**filters)
        return query

    def find_one(self, *criteria, **filters) -> Optional[Any]:
        return self.query(*criteria, **filters).first()

    def find(self, *criteria, order_by=None, **filters) -> List[Any]:
        query = self.query(*criteria, **filters)
        if order_by is not None:
            query = query.order_by(order_by)
        return query.all()

    def count(self, *criteria, **filters) -> int:
        return self.query(*criteria, **filters).count()

    def add(self, entity: Any) -> Any:
        """Stage an entity in the current unit of work without committing."""
        self.db.add(entity)
        return entity

    def save(self, entity: Any) -> Any:
        """
        Persist an entity and commit.

        Raises:
            Conflict: if a unique constraint is violated or the row was
                modified concurrently (optimistic version check failed)
        """
        self.db.add(entity)
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.info(f"Concurrent modification detected while saving {self.label}")
            raise Conflict(f"{self.label} was modified by another request. Reload and try again.")
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"Integrity error while saving {self.label}: {e.orig}")
            raise Conflict(f"{self.label} conflicts with an existing record")
        self.db.refresh(entity)
        return entity

    def remove(self, entity: Any) -> None:
        self.db.delete(entity)
        self.db.commit()
