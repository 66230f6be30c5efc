"""Aggregate and toggle engine: the request-scoped facade over the domain.

Each public method is one operation. It:
1. Binds request_id, user_id and operation into the logging context
2. Opens a tracing span and times the call
3. Authenticates the caller where required and runs cheap input checks
4. Runs the mutation as one unit of work (commit or full rollback)
5. Counts the outcome in Prometheus metrics

Authenticated operations also refresh the caller's user mirror row inside the
same unit of work so that foreign keys to the caller always hold.

Example:
    >>> from recipeshare.engine import RecipeShareEngine
    >>> from recipeshare.identity import Identity
    >>>
    >>> engine = RecipeShareEngine()
    >>> ada = Identity(user_id="u1", name="Ada")
    >>> engine.ensure_profile(ada)
    >>> engine.submit_rating(ada, recipe_id, 5)
"""

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from opentelemetry.trace.span import Span
from sqlmodel import Session

from recipeshare import comments, notifications, profiles, ratings, recipes, social
from recipeshare.ai import AsyncLLMClient
from recipeshare.ai import generate_recipe_suggestions as _generate_suggestions
from recipeshare.database import DatabaseManager
from recipeshare.exceptions import NotFound, RecipeShareError
from recipeshare.identity import Identity, require_user
from recipeshare.interfaces import IBlobStore, ILLMClient
from recipeshare.logging import clear_request_context, logger, set_request_context
from recipeshare.metrics import (
    engine_operation_duration_seconds,
    engine_operations_total,
    errors_total,
)
from recipeshare.models import RecipeRow, UserRow
from recipeshare.repository import Repository
from recipeshare.schemas import ProfileUpdate, RecipeDraft, RecipeSuggestion
from recipeshare.storage import LocalBlobStore
from recipeshare.telemetry import get_tracer, traced
from recipeshare.types import (
    CommentView,
    NotificationView,
    ProfileView,
    RecipeView,
    UserProfileView,
)
from recipeshare.utils import new_id

R = TypeVar("R")

tracer = get_tracer(__name__)


class RecipeShareEngine:
    """Entry point for every RecipeShare operation.

    Args:
        db: Database manager (defaults to one on settings.database_path,
            initialized on construction if needed)
        blob_store: Image store (defaults to LocalBlobStore)
        llm_client: Text generation client (defaults to AsyncLLMClient,
            created on first use)
    """

    def __init__(
        self,
        db: DatabaseManager | None = None,
        blob_store: IBlobStore | None = None,
        llm_client: ILLMClient | None = None,
    ):
        self.db = db or DatabaseManager()
        if self.db.engine is None:
            self.db.initialize()
        self.blob_store = blob_store or LocalBlobStore()
        self._llm_client = llm_client

    # =========================================================================
    # Plumbing
    # =========================================================================

    @contextmanager
    def _operation(
        self,
        name: str,
        identity: Identity | None = None,
        **attributes: Any,
    ) -> Iterator[Span]:
        set_request_context(
            request_id=new_id()[:12],
            user_id=identity.user_id if identity else None,
            operation=name,
        )
        start_time = time.perf_counter()
        status = "success"
        try:
            with traced(tracer, f"engine.{name}", attributes) as span:
                yield span
        except RecipeShareError as exc:
            status = type(exc).__name__
            errors_total.labels(error_type=status, component="engine").inc()
            logger.warning(f"⚠️ {name} rejected: {exc.message}")
            raise
        except Exception as exc:
            status = "error"
            errors_total.labels(error_type=type(exc).__name__, component="engine").inc()
            logger.error(f"❌ {name} failed: {exc}")
            raise
        finally:
            engine_operations_total.labels(operation=name, status=status).inc()
            engine_operation_duration_seconds.labels(operation=name).observe(
                time.perf_counter() - start_time
            )
            clear_request_context()

    def _run_as(self, identity: Identity, work: Callable[[Session], R]) -> R:
        def unit(session: Session) -> R:
            profiles.upsert_user(session, identity)
            return work(session)

        return self.db.run(unit)

    def _recipe_views(self, session: Session, rows: list[RecipeRow]) -> list[RecipeView]:
        return [recipes.recipe_view(session, row, self.blob_store) for row in rows]

    # =========================================================================
    # Profiles
    # =========================================================================

    def ensure_profile(self, identity: Identity | None) -> str:
        """Return the caller's profile ID, creating the profile on first login."""
        with self._operation("ensure_profile", identity):
            require_user(identity)
            return self.db.run(lambda s: profiles.ensure_profile(s, identity))

    def update_profile(self, identity: Identity | None, update: ProfileUpdate) -> None:
        """Apply a partial profile update for the caller."""
        with self._operation("update_profile", identity, fields=sorted(update.changes())):
            user_id = require_user(identity)
            self._run_as(identity, lambda s: profiles.update_profile(s, user_id, update))

    def get_current_profile(self, identity: Identity | None) -> ProfileView | None:
        """Caller's own profile, None when anonymous or not created yet."""
        with self._operation("get_current_profile", identity):
            if identity is None:
                return None

            def work(session: Session) -> ProfileView | None:
                profile = profiles.get_profile(session, identity.user_id)
                return profiles.profile_view(profile, self.blob_store) if profile else None

            return self.db.run(work)

    def get_user_profile(self, user_id: str) -> UserProfileView | None:
        """Public profile page: profile, approved recipes and follow counts."""
        with self._operation("get_user_profile", target_user_id=user_id):

            def work(session: Session) -> UserProfileView | None:
                user = Repository(session, UserRow).get(user_id)
                if user is None:
                    return None
                profile = profiles.get_profile(session, user_id)
                authored = recipes.list_author_recipes(session, user_id)
                return {
                    "user_id": user.id,
                    "name": user.name,
                    "profile": profiles.profile_view(profile, self.blob_store) if profile else None,
                    "recipes": self._recipe_views(session, authored),
                    "follower_count": social.follower_count(session, user_id),
                    "following_count": social.following_count(session, user_id),
                }

            return self.db.run(work)

    def grant_admin(self, user_id: str, value: bool = True) -> None:
        """Operator action: grant or revoke admin rights on a profile."""
        with self._operation("grant_admin", target_user_id=user_id):
            self.db.run(lambda s: profiles.set_admin(s, user_id, value))
            logger.info(f"🔑 Admin rights for {user_id} set to {value}")

    # =========================================================================
    # Recipes
    # =========================================================================

    def create_recipe(
        self,
        identity: Identity | None,
        draft: RecipeDraft,
        original_recipe_id: str | None = None,
    ) -> str:
        """Create a recipe authored by the caller and return its ID."""
        with self._operation("create_recipe", identity, original_recipe_id=original_recipe_id):
            author_id = require_user(identity, "to create recipe")
            return self._run_as(
                identity,
                lambda s: recipes.create_recipe(s, author_id, draft, original_recipe_id).id,
            )

    def edit_recipe(self, identity: Identity | None, recipe_id: str, draft: RecipeDraft) -> str:
        """Replace a recipe's fields as its author or an admin."""
        with self._operation("edit_recipe", identity, recipe_id=recipe_id):
            editor_id = require_user(identity, "to edit recipe")
            return self._run_as(
                identity, lambda s: recipes.edit_recipe(s, recipe_id, editor_id, draft).id
            )

    def approve_recipe(self, identity: Identity | None, recipe_id: str) -> None:
        with self._operation("approve_recipe", identity, recipe_id=recipe_id):
            admin_id = require_user(identity, "to approve recipe")
            self._run_as(identity, lambda s: recipes.approve_recipe(s, recipe_id, admin_id))

    def get_recipe(
        self,
        recipe_id: str,
        identity: Identity | None = None,
    ) -> RecipeView | None:
        """Recipe view, with ``is_favorite`` when the caller is known."""
        with self._operation("get_recipe", identity, recipe_id=recipe_id):
            viewer_id = identity.user_id if identity else None

            def work(session: Session) -> RecipeView | None:
                row = recipes.get_recipe(session, recipe_id, viewer_id)
                if row is None:
                    return None
                view = recipes.recipe_view(session, row, self.blob_store)
                if viewer_id is not None:
                    view["is_favorite"] = social.is_favorite(session, recipe_id, viewer_id)
                return view

            return self.db.run(work)

    def list_recipes(
        self,
        limit: int | None = None,
        cuisine: str | None = None,
        search: str | None = None,
    ) -> list[RecipeView]:
        """Approved recipes, newest first, optionally filtered."""
        with self._operation("list_recipes", cuisine=cuisine, search=search):
            return self.db.run(
                lambda s: self._recipe_views(
                    s, recipes.list_recipes(s, limit=limit, cuisine=cuisine, search=search)
                )
            )

    def recipe_history(self, recipe_id: str) -> list[dict[str, Any]]:
        """All recorded versions of a recipe, oldest first.

        Raises:
            NotFound: If the recipe does not exist
        """
        with self._operation("recipe_history", recipe_id=recipe_id):

            def work(session: Session) -> list[dict[str, Any]]:
                if Repository(session, RecipeRow).get(recipe_id) is None:
                    raise NotFound("Recipe not found")
                return [row.model_dump() for row in recipes.list_versions(session, recipe_id)]

            return self.db.run(work)

    def upload_image(self, identity: Identity | None, data: bytes, content_type: str) -> str:
        """Store an image and return its blob reference."""
        with self._operation("upload_image", identity, content_type=content_type, size=len(data)):
            require_user(identity, "to upload images")
            return self.blob_store.store(data, content_type)

    # =========================================================================
    # Ratings
    # =========================================================================

    def submit_rating(self, identity: Identity | None, recipe_id: str, rating: int) -> None:
        """Insert or overwrite the caller's rating and recompute the aggregate."""
        with self._operation("submit_rating", identity, recipe_id=recipe_id, rating=rating):
            user_id = require_user(identity, "to rate recipe")
            ratings.validate_rating(rating)
            self._run_as(identity, lambda s: ratings.submit_rating(s, recipe_id, user_id, rating))

    def recompute_rating_aggregate(self, recipe_id: str) -> tuple[float, int]:
        """Rebuild a recipe's rating aggregate from its rating rows.

        Returns:
            Tuple of (average_rating, total_ratings)

        Raises:
            NotFound: If the recipe does not exist
        """
        with self._operation("recompute_rating_aggregate", recipe_id=recipe_id):

            def work(session: Session) -> tuple[float, int]:
                recipe = Repository(session, RecipeRow).get(recipe_id)
                if recipe is None:
                    raise NotFound("Recipe not found")
                ratings.recompute_rating_aggregate(session, recipe)
                return recipe.average_rating, recipe.total_ratings

            return self.db.run(work)

    def get_user_rating(self, identity: Identity | None, recipe_id: str) -> int | None:
        with self._operation("get_user_rating", identity, recipe_id=recipe_id):
            if identity is None:
                return None
            return self.db.run(lambda s: ratings.get_user_rating(s, recipe_id, identity.user_id))

    # =========================================================================
    # Favorites & Follows
    # =========================================================================

    def toggle_favorite(self, identity: Identity | None, recipe_id: str) -> bool:
        """Flip the caller's favorite of a recipe; returns the new state."""
        with self._operation("toggle_favorite", identity, recipe_id=recipe_id) as span:
            user_id = require_user(identity, "to favorite recipe")
            state = self._run_as(identity, lambda s: social.toggle_favorite(s, recipe_id, user_id))
            span.set_attribute("favorited", state)
            return state

    def is_favorite(self, identity: Identity | None, recipe_id: str) -> bool:
        with self._operation("is_favorite", identity, recipe_id=recipe_id):
            if identity is None:
                return False
            return self.db.run(lambda s: social.is_favorite(s, recipe_id, identity.user_id))

    def list_favorites(self, identity: Identity | None) -> list[RecipeView]:
        """Recipes the caller favorited, most recent first."""
        with self._operation("list_favorites", identity):
            user_id = require_user(identity)
            return self.db.run(
                lambda s: self._recipe_views(s, social.list_favorites(s, user_id))
            )

    def toggle_follow(self, identity: Identity | None, target_user_id: str) -> bool:
        """Flip whether the caller follows ``target_user_id``; returns the new state."""
        with self._operation("toggle_follow", identity, target_user_id=target_user_id) as span:
            follower_id = require_user(identity, "to follow users")
            social.check_not_self(follower_id, target_user_id)
            state = self._run_as(
                identity, lambda s: social.toggle_follow(s, follower_id, target_user_id)
            )
            span.set_attribute("following", state)
            return state

    def is_following(self, identity: Identity | None, target_user_id: str) -> bool:
        with self._operation("is_following", identity, target_user_id=target_user_id):
            if identity is None:
                return False
            return self.db.run(
                lambda s: social.is_following(s, identity.user_id, target_user_id)
            )

    # =========================================================================
    # Comments
    # =========================================================================

    def add_comment(
        self,
        identity: Identity | None,
        recipe_id: str,
        content: str,
        parent_comment_id: str | None = None,
    ) -> str:
        """Post a comment as the caller and return its ID."""
        with self._operation("add_comment", identity, recipe_id=recipe_id):
            user_id = require_user(identity, "to comment")
            return self._run_as(
                identity,
                lambda s: comments.add_comment(s, recipe_id, user_id, content, parent_comment_id),
            )

    def list_comments(self, recipe_id: str) -> list[CommentView]:
        with self._operation("list_comments", recipe_id=recipe_id):
            return self.db.run(lambda s: comments.list_comments(s, recipe_id))

    # =========================================================================
    # Notifications
    # =========================================================================

    def list_notifications(self, identity: Identity | None) -> list[NotificationView]:
        """Caller's newest notifications; empty for anonymous callers."""
        with self._operation("list_notifications", identity):
            if identity is None:
                return []
            return self.db.run(lambda s: notifications.list_notifications(s, identity.user_id))

    def unread_count(self, identity: Identity | None) -> int:
        with self._operation("unread_count", identity):
            if identity is None:
                return 0
            return self.db.run(lambda s: notifications.unread_count(s, identity.user_id))

    def mark_read(self, identity: Identity | None, notification_id: str) -> None:
        """Mark one of the caller's notifications as read."""
        with self._operation("mark_read", identity, notification_id=notification_id):
            user_id = require_user(identity)
            self.db.run(lambda s: notifications.mark_read(s, notification_id, user_id))

    # =========================================================================
    # AI Suggestions
    # =========================================================================

    @property
    def llm_client(self) -> ILLMClient:
        if self._llm_client is None:
            self._llm_client = AsyncLLMClient()
        return self._llm_client

    async def generate_recipe_suggestions(
        self,
        identity: Identity | None,
        ingredients: str,
    ) -> list[RecipeSuggestion]:
        """Ask the LLM for recipe ideas using the given ingredients.

        Raises:
            Unauthenticated: If the caller is anonymous
            ValidationFailed: If no ingredients were given
            UpstreamFailure: If the LLM call failed or its answer was unusable
        """
        with self._operation("generate_recipe_suggestions", identity) as span:
            require_user(identity, "to generate recipes")
            suggestions = await _generate_suggestions(self.llm_client, ingredients)
            span.set_attribute("suggestions", len(suggestions))
            return suggestions

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self) -> None:
        """Release the LLM client's connections."""
        if self._llm_client is not None:
            await self._llm_client.close()
            self._llm_client = None

    def close(self) -> None:
        self.db.close()


__all__ = ["RecipeShareEngine"]
