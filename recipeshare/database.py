"""Database management for RecipeShare.

This module provides SQLite database management with:
- Engine creation with WAL mode and enforced foreign keys
- Request-scoped units of work (one transaction per engine call)
- Conflict retry for inserts that race a concurrent writer
- Index creation for the hot read paths

Example:
    >>> from recipeshare.database import DatabaseManager
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>> with db.session_scope() as session:
    ...     session.add(UserRow(id="u1", name="Ada"))
    >>> db.close()
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import event, func, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from recipeshare.config import settings
from recipeshare.logging import logger
from recipeshare.metrics import database_conflicts_total
from recipeshare.models import (
    CommentRow,
    FavoriteRow,
    FollowRow,
    NotificationRow,
    ProfileRow,
    RatingRow,
    RecipeRow,
    RecipeVersionRow,
    UserRow,
)

R = TypeVar("R")

TABLES: dict[str, type[SQLModel]] = {
    "users": UserRow,
    "profiles": ProfileRow,
    "recipes": RecipeRow,
    "recipe_versions": RecipeVersionRow,
    "ratings": RatingRow,
    "comments": CommentRow,
    "favorites": FavoriteRow,
    "follows": FollowRow,
    "notifications": NotificationRow,
}


def _enable_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON;")
    cursor.close()


# =============================================================================
# Database Manager
# =============================================================================


class DatabaseManager:
    """Manages the SQLite document store.

    Each engine operation runs inside :meth:`run`, which opens a fresh
    session, commits on success and rolls back on any exception. An
    ``IntegrityError`` (a unique-constraint conflict with a concurrent
    writer) rolls the whole unit back and re-runs it once against fresh
    reads.

    Args:
        database_path: Path to SQLite database file, or ``":memory:"``
            (defaults to settings.database_path)

    Example:
        >>> db = DatabaseManager(Path(":memory:"))
        >>> db.initialize()
        >>> total = db.run(lambda session: len(session.exec(select(UserRow)).all()))
        >>> db.close()
    """

    def __init__(self, database_path: Path | None = None):
        self.database_path = database_path or settings.database_path
        self.engine: Engine | None = None

    @property
    def is_memory(self) -> bool:
        """Check if this manager points at an in-memory database."""
        return str(self.database_path) == ":memory:"

    def initialize(self) -> None:
        """Initialize database engine and create tables.

        This method:
        1. Creates the database file's directory if needed
        2. Creates all tables from SQLModel metadata
        3. Enables WAL mode and tunes PRAGMA settings
        4. Creates indexes for common queries
        """
        if self.is_memory:
            # One shared connection, otherwise every session sees an empty database
            self.engine = create_engine(
                "sqlite://",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(
                f"sqlite:///{self.database_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )

        event.listen(self.engine, "connect", _enable_sqlite_pragmas)

        SQLModel.metadata.create_all(self.engine)

        if not self.is_memory:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode = WAL;")
                conn.exec_driver_sql("PRAGMA synchronous = NORMAL;")
                conn.exec_driver_sql("PRAGMA temp_store = MEMORY;")
                conn.commit()

        self.create_indexes()

        logger.info(f"✅ Database initialized at {self.database_path}")

    def create_indexes(self) -> None:
        """Create composite indexes for the listing queries.

        Indexes created:
        - Notifications per recipient, newest first
        - Approved recipes, newest first
        - Comments per recipe, newest first
        - Follows by follower (following side is covered by the model)
        """
        if self.engine is None:
            raise RuntimeError("Database not initialized")

        statements = [
            "CREATE INDEX IF NOT EXISTS idx_notification_user_created "
            "ON notificationrow(user_id, created_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_recipe_approved_created "
            "ON reciperow(is_approved, created_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_comment_recipe_created "
            "ON commentrow(recipe_id, created_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_follow_follower "
            "ON followrow(follower_id)",
            "CREATE INDEX IF NOT EXISTS idx_favorite_user "
            "ON favoriterow(user_id)",
        ]

        with self.engine.connect() as conn:
            for statement in statements:
                conn.execute(text(statement))
            conn.commit()

        logger.debug("✅ Database indexes created")

    def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    # =========================================================================
    # Units of Work
    # =========================================================================

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Open a session that commits on success and rolls back on error.

        Yields:
            Session bound to this database. Rows stay usable after the
            block exits (attributes are not expired on commit).
        """
        if self.engine is None:
            raise RuntimeError("Database not initialized")

        session = Session(self.engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def run(self, work: Callable[[Session], R], conflict_retries: int = 1) -> R:
        """Run ``work`` as one atomic unit, retrying on write conflicts.

        Args:
            work: Callable receiving the session; its return value is returned
            conflict_retries: How many times to re-run after an IntegrityError

        Returns:
            Whatever ``work`` returned

        Raises:
            IntegrityError: If the conflict persists after all retries
        """
        attempt = 0
        while True:
            try:
                with self.session_scope() as session:
                    return work(session)
            except IntegrityError as exc:
                database_conflicts_total.inc()
                if attempt >= conflict_retries:
                    logger.error(f"❌ Write conflict not resolved: {exc.orig}")
                    raise
                attempt += 1
                logger.warning(
                    f"⚠️ Write conflict, retrying unit of work ({attempt}/{conflict_retries})"
                )

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_table_counts(self) -> dict[str, int]:
        """Count rows per table.

        Returns:
            Mapping of table label to row count
        """
        with self.session_scope() as session:
            return {
                label: session.exec(select(func.count()).select_from(model)).one()
                for label, model in TABLES.items()
            }


__all__ = ["DatabaseManager", "TABLES"]
