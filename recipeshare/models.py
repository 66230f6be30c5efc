"""Persistence models for RecipeShare.

This module defines the SQLModel tables backing the document store.

Models are organized into three sections:
1. Enumerations shared by rows and views
2. SQLModel tables for entities
3. Join tables for membership (favorites, follows)

Uniqueness invariants (one rating per user and recipe, one profile per user,
one favorite/follow per pair) are declared as table constraints so that the
storage layer, not just the application, rejects duplicates.
"""

from enum import StrEnum
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from recipeshare.utils import new_id, utc_now_iso

# =============================================================================
# Section 1: Enumerations
# =============================================================================


class NotificationType(StrEnum):
    """Kinds of fan-out notifications."""

    COMMENT = "comment"
    RATING = "rating"
    FOLLOW = "follow"
    RECIPE_APPROVED = "recipe_approved"


# =============================================================================
# Section 2: Entity Tables
# =============================================================================


class UserRow(SQLModel, table=True):
    """Local mirror of an identity-provider account.

    Attributes:
        id: User ID issued by the identity provider (primary key)
        name: Display name, if the provider supplies one
        email: Email address, if the provider supplies one
        created_at: ISO8601 UTC timestamp of first sighting
    """

    id: str = Field(primary_key=True)
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, index=True)
    created_at: str = Field(default_factory=utc_now_iso)


class ProfileRow(SQLModel, table=True):
    """Public profile of a user.

    Attributes:
        id: Profile ID (primary key)
        user_id: FK to UserRow.id, unique
        username: Public handle, unique
        bio: Free-text biography
        avatar_ref: Blob store reference of the avatar image
        is_admin: May approve recipes and edit any recipe
        created_at: ISO8601 UTC creation timestamp
    """

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_profile_user"),
        UniqueConstraint("username", name="uq_profile_username"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="userrow.id")
    username: str
    bio: Optional[str] = None
    avatar_ref: Optional[str] = None
    is_admin: bool = False
    created_at: str = Field(default_factory=utc_now_iso)


class RecipeRow(SQLModel, table=True):
    """A published or pending recipe.

    Attributes:
        id: Recipe ID (primary key)
        title: Recipe title
        description: Optional longer description
        ingredients: Ingredient lines
        steps: Preparation steps in order
        image_refs: Blob store references of recipe images
        cuisine: Cuisine label (indexed)
        tags: Normalized tags
        prep_time: Preparation time in minutes, positive
        servings: Number of servings, positive
        author_id: FK to UserRow.id (indexed)
        is_approved: Visible in public listings when true (indexed)
        average_rating: Mean of all ratings, derived
        total_ratings: Number of ratings, derived
        version: Current edit version, starting at 1
        original_recipe_id: Recipe this one was derived from, if any
        created_at: ISO8601 UTC creation timestamp (indexed)
    """

    __table_args__ = (
        CheckConstraint("prep_time > 0", name="ck_recipe_prep_time_positive"),
        CheckConstraint("servings > 0", name="ck_recipe_servings_positive"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: Optional[str] = None
    ingredients: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    steps: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    image_refs: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    cuisine: str = Field(index=True)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    prep_time: int
    servings: int
    author_id: str = Field(foreign_key="userrow.id", index=True)
    is_approved: bool = Field(default=False, index=True)
    average_rating: float = 0.0
    total_ratings: int = 0
    version: int = 1
    original_recipe_id: Optional[str] = Field(default=None, foreign_key="reciperow.id")
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class RecipeVersionRow(SQLModel, table=True):
    """Immutable snapshot of a recipe's editable fields.

    Attributes:
        id: Snapshot ID (primary key)
        recipe_id: FK to RecipeRow.id (indexed)
        version: Version number this snapshot captures
        edited_by: FK to UserRow.id of the editor
    """

    __table_args__ = (
        UniqueConstraint("recipe_id", "version", name="uq_recipe_version"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    recipe_id: str = Field(foreign_key="reciperow.id", index=True)
    version: int
    title: str
    description: Optional[str] = None
    ingredients: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    steps: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    image_refs: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    cuisine: str
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    prep_time: int
    servings: int
    edited_by: str = Field(foreign_key="userrow.id")
    created_at: str = Field(default_factory=utc_now_iso)


class RatingRow(SQLModel, table=True):
    """A user's star rating of a recipe; one per user and recipe.

    Attributes:
        id: Rating ID (primary key)
        recipe_id: FK to RecipeRow.id (indexed)
        user_id: FK to UserRow.id of the rater
        rating: Stars, 1 to 5
    """

    __table_args__ = (
        UniqueConstraint("user_id", "recipe_id", name="uq_rating_user_recipe"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_rating_range"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    recipe_id: str = Field(foreign_key="reciperow.id", index=True)
    user_id: str = Field(foreign_key="userrow.id")
    rating: int
    created_at: str = Field(default_factory=utc_now_iso)


class CommentRow(SQLModel, table=True):
    """Comment on a recipe, optionally replying to another comment.

    Attributes:
        id: Comment ID (primary key)
        recipe_id: FK to RecipeRow.id (indexed)
        user_id: FK to UserRow.id (comment author)
        content: Trimmed comment text
        parent_comment_id: Comment being replied to; not checked for existence
        created_at: ISO8601 UTC creation timestamp (indexed)
    """

    id: str = Field(default_factory=new_id, primary_key=True)
    recipe_id: str = Field(foreign_key="reciperow.id", index=True)
    user_id: str = Field(foreign_key="userrow.id")
    content: str
    parent_comment_id: Optional[str] = Field(default=None, index=True)
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class NotificationRow(SQLModel, table=True):
    """Notification delivered to a recipient as a side effect of another action.

    Attributes:
        id: Notification ID (primary key)
        user_id: Recipient, FK to UserRow.id (indexed)
        type: One of NotificationType
        message: Human-readable text
        is_read: Flipped to true by the recipient only
        related_recipe_id: Recipe the notification is about
        related_user_id: User who triggered the notification
        created_at: ISO8601 UTC creation timestamp (indexed)
    """

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="userrow.id", index=True)
    type: str
    message: str
    is_read: bool = False
    related_recipe_id: Optional[str] = None
    related_user_id: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso, index=True)


# =============================================================================
# Section 3: Membership Tables
# =============================================================================


class FavoriteRow(SQLModel, table=True):
    """User favorites recipe. Presence of the row means favorited."""

    user_id: str = Field(primary_key=True, foreign_key="userrow.id")
    recipe_id: str = Field(primary_key=True, foreign_key="reciperow.id", index=True)
    created_at: str = Field(default_factory=utc_now_iso)


class FollowRow(SQLModel, table=True):
    """Follower follows following. Self-follows are rejected by a check."""

    __table_args__ = (
        CheckConstraint("follower_id <> following_id", name="ck_follow_not_self"),
    )

    follower_id: str = Field(primary_key=True, foreign_key="userrow.id")
    following_id: str = Field(primary_key=True, foreign_key="userrow.id", index=True)
    created_at: str = Field(default_factory=utc_now_iso)


__all__ = [
    "NotificationType",
    "UserRow",
    "ProfileRow",
    "RecipeRow",
    "RecipeVersionRow",
    "RatingRow",
    "CommentRow",
    "NotificationRow",
    "FavoriteRow",
    "FollowRow",
]
