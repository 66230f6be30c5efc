"""Type definitions for RecipeShare read views.

This module provides TypedDict definitions for the plain-dict views returned
by the read operations, so callers get IDE autocomplete and type checking
without depending on the persistence models.

Reference:
    - PEP 589 TypedDict: https://peps.python.org/pep-0589/

Example:
    >>> from recipeshare.types import NotificationView
    >>> note: NotificationView = {
    ...     "id": "9f1c...",
    ...     "type": "follow",
    ...     "message": "Someone started following you",
    ...     "is_read": False,
    ...     "related_recipe_id": None,
    ...     "related_user_id": "u2",
    ...     "created_at": "2024-01-01T00:00:00.000000Z",
    ... }
"""

from typing import NotRequired, Required, TypedDict


# =============================================================================
# Social Views
# =============================================================================


class NotificationView(TypedDict):
    """Notification as shown to its recipient."""

    id: str
    type: str
    message: str
    is_read: bool
    related_recipe_id: str | None
    related_user_id: str | None
    created_at: str


class CommentView(TypedDict):
    """Comment with the author's username attached.

    Attributes:
        username: Author's username, "Anonymous" when no profile exists
    """

    id: str
    recipe_id: str
    user_id: str
    username: str
    content: str
    parent_comment_id: str | None
    created_at: str


# =============================================================================
# Recipe Views
# =============================================================================


class RecipeView(TypedDict, total=False):
    """Recipe with resolved image URLs and author username.

    Attributes:
        image_urls: URLs for image_refs that still resolve in the blob store
        author_username: Author's username, None when no profile exists
        is_favorite: Whether the caller favorited it (only when a caller is known)
    """

    id: Required[str]
    title: Required[str]
    description: Required[str | None]
    ingredients: Required[list[str]]
    steps: Required[list[str]]
    image_refs: Required[list[str]]
    image_urls: Required[list[str]]
    cuisine: Required[str]
    tags: Required[list[str]]
    prep_time: Required[int]
    servings: Required[int]
    author_id: Required[str]
    author_username: Required[str | None]
    is_approved: Required[bool]
    average_rating: Required[float]
    total_ratings: Required[int]
    version: Required[int]
    original_recipe_id: Required[str | None]
    created_at: Required[str]
    is_favorite: NotRequired[bool]


# =============================================================================
# Profile Views
# =============================================================================


class ProfileView(TypedDict):
    """Stored profile fields plus the resolved avatar URL."""

    id: str
    user_id: str
    username: str
    bio: str | None
    avatar_ref: str | None
    avatar_url: str | None
    is_admin: bool


class UserProfileView(TypedDict):
    """Public profile page of a user.

    Attributes:
        user_id: User ID
        name: Display name from the identity provider
        profile: Profile fields, None if the user never logged in
        recipes: Approved recipes authored by the user, newest first
        follower_count: Number of users following this user
        following_count: Number of users this user follows
    """

    user_id: str
    name: str | None
    profile: ProfileView | None
    recipes: list[RecipeView]
    follower_count: int
    following_count: int


__all__ = [
    "NotificationView",
    "CommentView",
    "RecipeView",
    "ProfileView",
    "UserProfileView",
]
