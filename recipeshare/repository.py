"""Generic repository pattern for type-safe database operations.

This module provides a Generic Repository[T] for SQLModel rows. Repositories
never commit: they run inside the unit of work opened by
``DatabaseManager.run``, which owns the transaction boundary. ``add`` flushes
immediately so a unique-constraint conflict surfaces at the point of insert.

Example:
    >>> from recipeshare.repository import Repository
    >>> from recipeshare.models import RatingRow
    >>>
    >>> ratings = Repository[RatingRow](session, RatingRow)
    >>> mine = ratings.first_by(user_id="u1", recipe_id="r1")
    >>> total = ratings.count_by(recipe_id="r1")
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Generic repository implementation for SQLModel rows.

    Type Parameter:
        T: SQLModel row type (RecipeRow, RatingRow, FollowRow, ...)

    Args:
        session: Session of the current unit of work
        model: SQLModel class
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def _filtered(self, filters: dict[str, Any]) -> Any:
        stmt = select(self.model)
        for key, value in filters.items():
            if not hasattr(self.model, key):
                raise AttributeError(f"{self.model.__name__} has no column {key!r}")
            stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    def get(self, entity_id: Any) -> T | None:
        """Get row by primary key.

        Args:
            entity_id: Primary key value, or a tuple for composite keys

        Returns:
            Row instance or None if not found
        """
        return self.session.get(self.model, entity_id)

    def add(self, entity: T) -> T:
        """Stage a new or modified row and flush it.

        Args:
            entity: Row to insert or update

        Returns:
            The same row, now holding database defaults

        Raises:
            IntegrityError: If a constraint rejects the row
        """
        self.session.add(entity)
        self.session.flush()
        return entity

    def delete(self, entity: T) -> None:
        """Delete a row and flush."""
        self.session.delete(entity)
        self.session.flush()

    def first_by(self, **filters: Any) -> T | None:
        """Return the first row matching equality filters, or None.

        Example:
            >>> favorite = favorites.first_by(user_id="u1", recipe_id="r1")
        """
        return self.session.exec(self._filtered(filters)).first()

    def find_by(
        self,
        order_by: Any = None,
        limit: int | None = None,
        **filters: Any,
    ) -> Sequence[T]:
        """Find rows matching equality filters.

        Args:
            order_by: Optional SQLAlchemy ordering expression
            limit: Optional maximum number of rows
            **filters: Column equality filters (column=value)

        Returns:
            Sequence of matching rows

        Example:
            >>> latest = notifications.find_by(
            ...     order_by=NotificationRow.created_at.desc(),
            ...     limit=20,
            ...     user_id="u1",
            ... )
        """
        stmt = self._filtered(filters)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.exec(stmt).all()

    def count_by(self, **filters: Any) -> int:
        """Count rows matching equality filters."""
        stmt = select(func.count()).select_from(self.model)
        for key, value in filters.items():
            stmt = stmt.where(getattr(self.model, key) == value)
        return self.session.exec(stmt).one()

    def exists_by(self, **filters: Any) -> bool:
        """Check if any row matches equality filters."""
        return self.first_by(**filters) is not None


__all__ = ["Repository"]
