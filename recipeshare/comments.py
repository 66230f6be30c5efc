"""Comment creation with author notification."""

from sqlmodel import Session

from recipeshare.exceptions import NotFound, ValidationFailed
from recipeshare.models import CommentRow, NotificationType, RecipeRow
from recipeshare.notifications import notify
from recipeshare.profiles import ANONYMOUS_USERNAME, username_for
from recipeshare.repository import Repository
from recipeshare.types import CommentView


def add_comment(
    session: Session,
    recipe_id: str,
    user_id: str,
    content: str,
    parent_comment_id: str | None = None,
) -> str:
    """Store a comment and notify the recipe author.

    ``parent_comment_id`` is stored as given; replies to deleted or unknown
    comments are allowed.

    Returns:
        The new comment ID

    Raises:
        ValidationFailed: If the content is blank
        NotFound: If the recipe does not exist
    """
    text = content.strip()
    if not text:
        raise ValidationFailed("Comment cannot be empty")

    recipe = Repository(session, RecipeRow).get(recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")

    comment = Repository(session, CommentRow).add(
        CommentRow(
            recipe_id=recipe_id,
            user_id=user_id,
            content=text,
            parent_comment_id=parent_comment_id,
        )
    )

    notify(
        session,
        recipient_id=recipe.author_id,
        actor_id=user_id,
        type=NotificationType.COMMENT,
        message=f'Someone commented on your recipe "{recipe.title}"',
        related_recipe_id=recipe_id,
    )
    return comment.id


def list_comments(session: Session, recipe_id: str) -> list[CommentView]:
    """Comments on a recipe, newest first, with author usernames."""
    rows = Repository(session, CommentRow).find_by(
        order_by=CommentRow.created_at.desc(),
        recipe_id=recipe_id,
    )
    usernames: dict[str, str] = {}
    views: list[CommentView] = []
    for row in rows:
        if row.user_id not in usernames:
            usernames[row.user_id] = username_for(session, row.user_id) or ANONYMOUS_USERNAME
        views.append(
            {
                "id": row.id,
                "recipe_id": row.recipe_id,
                "user_id": row.user_id,
                "username": usernames[row.user_id],
                "content": row.content,
                "parent_comment_id": row.parent_comment_id,
                "created_at": row.created_at,
            }
        )
    return views


__all__ = ["add_comment", "list_comments"]
