"""Rating upsert and aggregate maintenance.

A recipe's ``average_rating`` and ``total_ratings`` are always recomputed
from every rating row of the recipe, never adjusted incrementally, so a
lost update or an overwrite can never leave them drifting.
"""

from sqlmodel import Session

from recipeshare.exceptions import NotFound, ValidationFailed
from recipeshare.logging import logger
from recipeshare.models import NotificationType, RatingRow, RecipeRow
from recipeshare.notifications import notify
from recipeshare.repository import Repository
from recipeshare.utils import mean

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating: object) -> int:
    """Return ``rating`` if it is an integer star count, else raise.

    Booleans are rejected even though ``bool`` subclasses ``int``.

    Raises:
        ValidationFailed: If the value is not an integer in [1, 5]
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationFailed("Rating must be a whole number")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationFailed(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating


def recompute_rating_aggregate(session: Session, recipe: RecipeRow) -> RecipeRow:
    """Set the recipe's average and count from all of its rating rows."""
    values = [row.rating for row in Repository(session, RatingRow).find_by(recipe_id=recipe.id)]
    recipe.average_rating = mean(values)
    recipe.total_ratings = len(values)
    return Repository(session, RecipeRow).add(recipe)


def submit_rating(session: Session, recipe_id: str, user_id: str, rating: int) -> None:
    """Insert or overwrite the user's rating and refresh the aggregate.

    The recipe author is notified unless they rated their own recipe.

    Raises:
        ValidationFailed: If the rating is out of range (checked before any read)
        NotFound: If the recipe does not exist
    """
    stars = validate_rating(rating)

    recipe = Repository(session, RecipeRow).get(recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")

    ratings = Repository(session, RatingRow)
    existing = ratings.first_by(user_id=user_id, recipe_id=recipe_id)
    if existing is not None:
        existing.rating = stars
        ratings.add(existing)
    else:
        ratings.add(RatingRow(recipe_id=recipe_id, user_id=user_id, rating=stars))

    recompute_rating_aggregate(session, recipe)
    logger.debug(
        f"Recipe {recipe_id} now {recipe.average_rating:.2f} over {recipe.total_ratings} rating(s)"
    )

    notify(
        session,
        recipient_id=recipe.author_id,
        actor_id=user_id,
        type=NotificationType.RATING,
        message=f'Someone rated your recipe "{recipe.title}"',
        related_recipe_id=recipe_id,
    )


def get_user_rating(session: Session, recipe_id: str, user_id: str) -> int | None:
    """Return the user's current rating of a recipe, if any."""
    row = Repository(session, RatingRow).first_by(user_id=user_id, recipe_id=recipe_id)
    return row.rating if row is not None else None


__all__ = [
    "MIN_RATING",
    "MAX_RATING",
    "validate_rating",
    "submit_rating",
    "recompute_rating_aggregate",
    "get_user_rating",
]
