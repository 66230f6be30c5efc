"""RecipeShare - social recipe-sharing backend.

This package implements the consistency core of a recipe-sharing service:
rating aggregates recomputed from source rows, favorite and follow toggles,
notification fan-out with recipient-only acknowledgment, and lazy profile
creation, all on a SQLite document store. AI recipe suggestions come from an
external LLM text API.

Example:
    >>> from recipeshare import Identity, RecipeShareEngine
    >>>
    >>> engine = RecipeShareEngine()
    >>> alice = Identity(user_id="alice", name="Alice")
    >>> engine.ensure_profile(alice)
    >>> engine.toggle_favorite(alice, recipe_id)
    True
"""

__version__ = "0.1.0"

from recipeshare.config import settings
from recipeshare.database import DatabaseManager
from recipeshare.engine import RecipeShareEngine
from recipeshare.exceptions import (
    Forbidden,
    NotFound,
    RecipeShareError,
    Unauthenticated,
    UpstreamFailure,
    ValidationFailed,
)
from recipeshare.identity import Identity
from recipeshare.models import (
    CommentRow,
    FavoriteRow,
    FollowRow,
    NotificationRow,
    NotificationType,
    ProfileRow,
    RatingRow,
    RecipeRow,
    UserRow,
)
from recipeshare.schemas import ProfileUpdate, RecipeDraft, RecipeSuggestion

__all__ = [
    # Main components
    "RecipeShareEngine",
    "DatabaseManager",
    "Identity",
    # Configuration
    "settings",
    # Errors
    "RecipeShareError",
    "Unauthenticated",
    "ValidationFailed",
    "NotFound",
    "Forbidden",
    "UpstreamFailure",
    # Pydantic models
    "RecipeDraft",
    "ProfileUpdate",
    "RecipeSuggestion",
    # SQLModel tables
    "UserRow",
    "ProfileRow",
    "RecipeRow",
    "RatingRow",
    "CommentRow",
    "FavoriteRow",
    "FollowRow",
    "NotificationRow",
    "NotificationType",
]
