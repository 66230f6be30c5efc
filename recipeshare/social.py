"""Favorite and follow toggles.

Both relations are membership sets: the row's presence is the state. A toggle
deletes the row when present and inserts it when absent, inside the caller's
unit of work. The composite primary key rejects a duplicate insert from a
concurrent toggle; the unit of work is then re-run against the new state.
"""

from sqlmodel import Session

from recipeshare.exceptions import NotFound, ValidationFailed
from recipeshare.logging import logger
from recipeshare.models import FavoriteRow, FollowRow, NotificationType, RecipeRow, UserRow
from recipeshare.notifications import notify
from recipeshare.repository import Repository

# =============================================================================
# Favorites
# =============================================================================


def toggle_favorite(session: Session, recipe_id: str, user_id: str) -> bool:
    """Flip the user's favorite of a recipe.

    Returns:
        True if the recipe is now favorited, False if it was removed

    Raises:
        NotFound: If the recipe does not exist
    """
    if Repository(session, RecipeRow).get(recipe_id) is None:
        raise NotFound("Recipe not found")

    favorites = Repository(session, FavoriteRow)
    existing = favorites.get((user_id, recipe_id))
    if existing is not None:
        favorites.delete(existing)
        logger.debug(f"{user_id} unfavorited {recipe_id}")
        return False

    favorites.add(FavoriteRow(user_id=user_id, recipe_id=recipe_id))
    logger.debug(f"{user_id} favorited {recipe_id}")
    return True


def is_favorite(session: Session, recipe_id: str, user_id: str) -> bool:
    return Repository(session, FavoriteRow).get((user_id, recipe_id)) is not None


def list_favorites(session: Session, user_id: str) -> list[RecipeRow]:
    """Recipes the user favorited, most recently favorited first."""
    rows = Repository(session, FavoriteRow).find_by(
        order_by=FavoriteRow.created_at.desc(),
        user_id=user_id,
    )
    recipes = Repository(session, RecipeRow)
    return [recipe for row in rows if (recipe := recipes.get(row.recipe_id)) is not None]


# =============================================================================
# Follows
# =============================================================================


def check_not_self(follower_id: str, target_user_id: str) -> None:
    if follower_id == target_user_id:
        raise ValidationFailed("Cannot follow yourself")


def toggle_follow(session: Session, follower_id: str, target_user_id: str) -> bool:
    """Flip whether ``follower_id`` follows ``target_user_id``.

    A new follow notifies the target; an unfollow notifies nobody.

    Returns:
        True if now following, False if the follow was removed

    Raises:
        ValidationFailed: If a user tries to follow themselves
        NotFound: If the target user does not exist
    """
    check_not_self(follower_id, target_user_id)

    if Repository(session, UserRow).get(target_user_id) is None:
        raise NotFound("User not found")

    follows = Repository(session, FollowRow)
    existing = follows.get((follower_id, target_user_id))
    if existing is not None:
        follows.delete(existing)
        logger.debug(f"{follower_id} unfollowed {target_user_id}")
        return False

    follows.add(FollowRow(follower_id=follower_id, following_id=target_user_id))
    notify(
        session,
        recipient_id=target_user_id,
        actor_id=follower_id,
        type=NotificationType.FOLLOW,
        message="Someone started following you",
    )
    logger.debug(f"{follower_id} followed {target_user_id}")
    return True


def is_following(session: Session, follower_id: str, target_user_id: str) -> bool:
    return Repository(session, FollowRow).get((follower_id, target_user_id)) is not None


def follower_count(session: Session, user_id: str) -> int:
    """Number of users following ``user_id``, counted on read."""
    return Repository(session, FollowRow).count_by(following_id=user_id)


def following_count(session: Session, user_id: str) -> int:
    """Number of users ``user_id`` follows, counted on read."""
    return Repository(session, FollowRow).count_by(follower_id=user_id)


__all__ = [
    "toggle_favorite",
    "is_favorite",
    "list_favorites",
    "check_not_self",
    "toggle_follow",
    "is_following",
    "follower_count",
    "following_count",
]
