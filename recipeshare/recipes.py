"""Recipe authoring, versioning, approval and listings.

Every create and edit appends an immutable RecipeVersionRow snapshot, so the
full edit history of a recipe can be reconstructed. Rating aggregates are
never touched here.
"""

from sqlalchemy import func
from sqlmodel import Session, select

from recipeshare.config import settings
from recipeshare.exceptions import Forbidden, NotFound
from recipeshare.interfaces import IBlobStore
from recipeshare.logging import logger
from recipeshare.models import NotificationType, RecipeRow, RecipeVersionRow
from recipeshare.notifications import notify
from recipeshare.profiles import is_admin, username_for
from recipeshare.repository import Repository
from recipeshare.schemas import RecipeDraft
from recipeshare.types import RecipeView

# =============================================================================
# Writes
# =============================================================================


def _snapshot(session: Session, recipe: RecipeRow, editor_id: str) -> RecipeVersionRow:
    return Repository(session, RecipeVersionRow).add(
        RecipeVersionRow(
            recipe_id=recipe.id,
            version=recipe.version,
            title=recipe.title,
            description=recipe.description,
            ingredients=list(recipe.ingredients),
            steps=list(recipe.steps),
            image_refs=list(recipe.image_refs),
            cuisine=recipe.cuisine,
            tags=list(recipe.tags),
            prep_time=recipe.prep_time,
            servings=recipe.servings,
            edited_by=editor_id,
        )
    )


def create_recipe(
    session: Session,
    author_id: str,
    draft: RecipeDraft,
    original_recipe_id: str | None = None,
) -> RecipeRow:
    """Insert a recipe at version 1 with empty rating aggregates.

    Args:
        session: Session of the current unit of work
        author_id: Authoring user
        draft: Validated recipe fields
        original_recipe_id: Recipe this one was adapted from, if any

    Raises:
        NotFound: If ``original_recipe_id`` does not exist
    """
    recipes = Repository(session, RecipeRow)
    if original_recipe_id is not None and recipes.get(original_recipe_id) is None:
        raise NotFound("Original recipe not found")

    recipe = recipes.add(
        RecipeRow(
            **draft.model_dump(),
            author_id=author_id,
            is_approved=settings.auto_approve_recipes,
            original_recipe_id=original_recipe_id,
        )
    )
    _snapshot(session, recipe, author_id)
    logger.info(f"🍲 Recipe {recipe.title!r} created by {author_id}")
    return recipe


def edit_recipe(session: Session, recipe_id: str, editor_id: str, draft: RecipeDraft) -> RecipeRow:
    """Replace a recipe's editable fields and record the new version.

    Raises:
        NotFound: If the recipe does not exist
        Forbidden: If the editor is neither the author nor an admin
    """
    recipes = Repository(session, RecipeRow)
    recipe = recipes.get(recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    if recipe.author_id != editor_id and not is_admin(session, editor_id):
        raise Forbidden("Not authorized")

    for field, value in draft.model_dump().items():
        setattr(recipe, field, value)
    recipe.version += 1
    recipes.add(recipe)
    _snapshot(session, recipe, editor_id)
    logger.info(f"✏️ Recipe {recipe_id} edited to version {recipe.version}")
    return recipe


def approve_recipe(session: Session, recipe_id: str, admin_id: str) -> bool:
    """Publish a pending recipe.

    Returns:
        True if the recipe was approved now, False if it already was

    Raises:
        Forbidden: If the caller is not an admin
        NotFound: If the recipe does not exist
    """
    if not is_admin(session, admin_id):
        raise Forbidden("Admin access required")

    recipes = Repository(session, RecipeRow)
    recipe = recipes.get(recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    if recipe.is_approved:
        return False

    recipe.is_approved = True
    recipes.add(recipe)
    notify(
        session,
        recipient_id=recipe.author_id,
        actor_id=admin_id,
        type=NotificationType.RECIPE_APPROVED,
        message=f'Your recipe "{recipe.title}" was approved',
        related_recipe_id=recipe_id,
    )
    return True


# =============================================================================
# Reads
# =============================================================================


def recipe_view(
    session: Session,
    recipe: RecipeRow,
    blob_store: IBlobStore | None = None,
) -> RecipeView:
    """Render a recipe with its author's username and resolvable image URLs."""
    image_urls: list[str] = []
    if blob_store is not None:
        image_urls = [url for ref in recipe.image_refs if (url := blob_store.get_url(ref))]
    return {
        "id": recipe.id,
        "title": recipe.title,
        "description": recipe.description,
        "ingredients": list(recipe.ingredients),
        "steps": list(recipe.steps),
        "image_refs": list(recipe.image_refs),
        "image_urls": image_urls,
        "cuisine": recipe.cuisine,
        "tags": list(recipe.tags),
        "prep_time": recipe.prep_time,
        "servings": recipe.servings,
        "author_id": recipe.author_id,
        "author_username": username_for(session, recipe.author_id),
        "is_approved": recipe.is_approved,
        "average_rating": recipe.average_rating,
        "total_ratings": recipe.total_ratings,
        "version": recipe.version,
        "original_recipe_id": recipe.original_recipe_id,
        "created_at": recipe.created_at,
    }


def can_view(session: Session, recipe: RecipeRow, viewer_id: str | None) -> bool:
    """Approved recipes are public; pending ones only to their author and admins."""
    if recipe.is_approved:
        return True
    if viewer_id is None:
        return False
    return recipe.author_id == viewer_id or is_admin(session, viewer_id)


def get_recipe(session: Session, recipe_id: str, viewer_id: str | None = None) -> RecipeRow | None:
    """Return the recipe if it exists and the viewer may see it."""
    recipe = Repository(session, RecipeRow).get(recipe_id)
    if recipe is None or not can_view(session, recipe, viewer_id):
        return None
    return recipe


def list_recipes(
    session: Session,
    limit: int | None = None,
    cuisine: str | None = None,
    search: str | None = None,
) -> list[RecipeRow]:
    """List approved recipes, newest first.

    Args:
        session: Session of the current unit of work
        limit: Maximum rows (defaults to settings.recipe_page_size)
        cuisine: Exact cuisine filter
        search: Case-insensitive substring of the title
    """
    stmt = select(RecipeRow).where(RecipeRow.is_approved == True)  # noqa: E712
    if cuisine:
        stmt = stmt.where(RecipeRow.cuisine == cuisine)
    if search and search.strip():
        stmt = stmt.where(func.lower(RecipeRow.title).contains(search.strip().lower()))
    stmt = stmt.order_by(RecipeRow.created_at.desc()).limit(limit or settings.recipe_page_size)
    return list(session.exec(stmt).all())


def list_author_recipes(session: Session, author_id: str) -> list[RecipeRow]:
    """Every approved recipe by one author, newest first."""
    return list(
        Repository(session, RecipeRow).find_by(
            order_by=RecipeRow.created_at.desc(),
            author_id=author_id,
            is_approved=True,
        )
    )


def list_versions(session: Session, recipe_id: str) -> list[RecipeVersionRow]:
    return list(
        Repository(session, RecipeVersionRow).find_by(
            order_by=RecipeVersionRow.version.asc(),
            recipe_id=recipe_id,
        )
    )


__all__ = [
    "create_recipe",
    "edit_recipe",
    "approve_recipe",
    "recipe_view",
    "can_view",
    "get_recipe",
    "list_recipes",
    "list_author_recipes",
    "list_versions",
]
