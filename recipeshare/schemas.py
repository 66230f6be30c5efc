"""Pydantic models for data crossing the transport boundary.

These validate shape and simple field constraints before any engine
operation runs. Semantic invariants (rating range, self-follow, ownership)
are still enforced by the engine itself.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recipeshare.utils import ensure_list, normalize_tags


def _clean_lines(lines: list[str]) -> list[str]:
    return [line.strip() for line in lines if line and line.strip()]


class RecipeDraft(BaseModel):
    """Editable fields of a recipe, used for both creation and edits.

    Attributes:
        title: Recipe title
        description: Optional longer description
        ingredients: Ingredient lines, at least one
        steps: Preparation steps, at least one
        image_refs: Blob store references previously returned by an upload
        cuisine: Cuisine label
        tags: Free-form tags, normalized to lowercase
        prep_time: Preparation time in minutes
        servings: Number of servings
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    ingredients: list[str]
    steps: list[str]
    image_refs: list[str] = Field(default_factory=list)
    cuisine: str = Field(..., min_length=1, max_length=80)
    tags: list[str] = Field(default_factory=list)
    prep_time: int = Field(..., gt=0, description="Minutes")
    servings: int = Field(..., gt=0)

    @field_validator("ingredients", "steps")
    @classmethod
    def _require_lines(cls, v: list[str]) -> list[str]:
        cleaned = _clean_lines(v)
        if not cleaned:
            raise ValueError("at least one non-empty entry is required")
        return cleaned

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: list[str]) -> list[str]:
        return normalize_tags(v)


class ProfileUpdate(BaseModel):
    """Partial update of a profile.

    Only fields explicitly supplied are applied; omitted fields keep their
    stored value. ``bio`` and ``avatar_ref`` may be supplied as ``None`` to
    clear them, ``username`` may not.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    username: Optional[str] = Field(None, min_length=1, max_length=64)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_ref: Optional[str] = None

    @model_validator(mode="after")
    def _username_not_cleared(self) -> "ProfileUpdate":
        if "username" in self.model_fields_set and self.username is None:
            raise ValueError("username cannot be cleared")
        return self

    def changes(self) -> dict[str, Optional[str]]:
        """Return only the supplied fields."""
        return self.model_dump(exclude_unset=True)


class RecipeSuggestion(BaseModel):
    """One recipe idea returned by the LLM.

    Field aliases follow the camelCase keys the model is asked to produce.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = ""
    ingredients: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    prep_time: int = Field(0, ge=0, alias="prepTime")
    servings: int = Field(0, ge=0)
    cuisine: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("ingredients", "steps", "tags", mode="before")
    @classmethod
    def _coerce_list(cls, v: object) -> list[object]:
        return ensure_list(v)

    def to_draft(self) -> RecipeDraft:
        """Convert into a draft that can be saved as a recipe.

        Raises:
            pydantic.ValidationError: If the suggestion lacks required fields
        """
        return RecipeDraft(
            title=self.title,
            description=self.description or None,
            ingredients=self.ingredients,
            steps=self.steps,
            cuisine=self.cuisine,
            tags=self.tags,
            prep_time=self.prep_time,
            servings=self.servings,
        )


__all__ = ["RecipeDraft", "ProfileUpdate", "RecipeSuggestion"]
