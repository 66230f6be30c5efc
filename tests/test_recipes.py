"""Tests for recipe authoring, versioning, approval and listings."""

import pytest
from pydantic import ValidationError

from recipeshare.exceptions import Forbidden, NotFound, Unauthenticated
from recipeshare.schemas import RecipeDraft


@pytest.fixture
def moderated(monkeypatch):
    """New recipes wait for approval."""
    from recipeshare.recipes import settings

    monkeypatch.setattr(settings, "auto_approve_recipes", False)


class TestCreateRecipe:
    """Tests for RecipeShareEngine.create_recipe."""

    def test_starts_with_empty_aggregate(self, engine, recipe_id):
        view = engine.get_recipe(recipe_id)

        assert view["average_rating"] == 0.0
        assert view["total_ratings"] == 0
        assert view["version"] == 1
        assert view["is_approved"] is True
        assert view["author_username"] == "Alice"
        assert view["tags"] == ["soup", "quick"]

    def test_records_initial_version(self, engine, recipe_id):
        history = engine.recipe_history(recipe_id)

        assert [h["version"] for h in history] == [1]
        assert history[0]["edited_by"] == "alice"

    def test_requires_login(self, engine, draft):
        with pytest.raises(Unauthenticated):
            engine.create_recipe(None, draft)

    def test_adapted_recipe_links_original(self, engine, bob, draft, recipe_id):
        copy_id = engine.create_recipe(bob, draft, original_recipe_id=recipe_id)

        assert engine.get_recipe(copy_id)["original_recipe_id"] == recipe_id

    def test_unknown_original(self, engine, bob, draft):
        with pytest.raises(NotFound):
            engine.create_recipe(bob, draft, original_recipe_id="missing")

    def test_image_urls_resolved(self, engine, alice, draft):
        ref = engine.upload_image(alice, b"GIF89a", "image/gif")
        recipe_id = engine.create_recipe(
            alice, draft.model_copy(update={"image_refs": [ref, "0" * 32 + ".png"]})
        )

        view = engine.get_recipe(recipe_id)
        assert view["image_urls"] == [f"https://cdn.test/img/{ref}"]


class TestRecipeDraft:
    """Tests for draft validation at the boundary."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "   "},
            {"cuisine": ""},
            {"prep_time": 0},
            {"servings": -1},
            {"ingredients": []},
            {"steps": ["", "  "]},
        ],
    )
    def test_rejects_invalid_drafts(self, draft, overrides):
        with pytest.raises(ValidationError):
            RecipeDraft(**{**draft.model_dump(), **overrides})

    def test_strips_blank_lines(self, draft):
        cleaned = RecipeDraft(**{**draft.model_dump(), "steps": [" Boil ", "", "Serve"]})

        assert cleaned.steps == ["Boil", "Serve"]


class TestEditRecipe:
    """Tests for edits with history."""

    def test_author_edit_bumps_version(self, engine, alice, draft, recipe_id):
        engine.edit_recipe(alice, recipe_id, draft.model_copy(update={"title": "Roast Tomato Soup"}))

        view = engine.get_recipe(recipe_id)
        assert view["title"] == "Roast Tomato Soup"
        assert view["version"] == 2
        assert [h["title"] for h in engine.recipe_history(recipe_id)] == [
            "Tomato Soup",
            "Roast Tomato Soup",
        ]

    def test_edit_keeps_rating_aggregate(self, engine, alice, bob, draft, recipe_id):
        engine.submit_rating(bob, recipe_id, 4)
        engine.edit_recipe(alice, recipe_id, draft)

        view = engine.get_recipe(recipe_id)
        assert view["average_rating"] == 4.0
        assert view["total_ratings"] == 1

    def test_stranger_forbidden(self, engine, bob, draft, recipe_id):
        with pytest.raises(Forbidden):
            engine.edit_recipe(bob, recipe_id, draft)

        assert engine.get_recipe(recipe_id)["version"] == 1

    def test_admin_may_edit(self, engine, bob, draft, recipe_id):
        engine.ensure_profile(bob)
        engine.grant_admin("bob")

        engine.edit_recipe(bob, recipe_id, draft)

        assert engine.recipe_history(recipe_id)[-1]["edited_by"] == "bob"

    def test_unknown_recipe(self, engine, alice, draft):
        with pytest.raises(NotFound):
            engine.edit_recipe(alice, "missing", draft)


class TestApproveRecipe:
    """Tests for admin approval."""

    def test_pending_recipe_hidden_until_approved(self, engine, alice, bob, draft, moderated):
        engine.ensure_profile(bob)
        engine.grant_admin("bob")
        recipe_id = engine.create_recipe(alice, draft)

        assert engine.get_recipe(recipe_id) is None
        assert engine.get_recipe(recipe_id, alice) is not None
        assert engine.list_recipes() == []

        engine.approve_recipe(bob, recipe_id)

        assert engine.get_recipe(recipe_id)["is_approved"] is True
        notes = engine.list_notifications(alice)
        assert [n["type"] for n in notes] == ["recipe_approved"]

    def test_approving_twice_notifies_once(self, engine, alice, bob, draft, moderated):
        engine.ensure_profile(bob)
        engine.grant_admin("bob")
        recipe_id = engine.create_recipe(alice, draft)

        engine.approve_recipe(bob, recipe_id)
        engine.approve_recipe(bob, recipe_id)

        assert len(engine.list_notifications(alice)) == 1

    def test_non_admin_forbidden(self, engine, bob, recipe_id):
        with pytest.raises(Forbidden, match="Admin access required"):
            engine.approve_recipe(bob, recipe_id)


class TestListRecipes:
    """Tests for public listings."""

    def test_newest_first_with_filters(self, engine, alice, draft, recipe_id):
        engine.create_recipe(alice, draft.model_copy(update={"title": "Pad Thai", "cuisine": "Thai"}))
        engine.create_recipe(alice, draft.model_copy(update={"title": "Tom Yum Soup", "cuisine": "Thai"}))

        assert [r["title"] for r in engine.list_recipes()] == [
            "Tom Yum Soup",
            "Pad Thai",
            "Tomato Soup",
        ]
        assert [r["title"] for r in engine.list_recipes(cuisine="Thai")] == [
            "Tom Yum Soup",
            "Pad Thai",
        ]
        assert [r["title"] for r in engine.list_recipes(search="SOUP")] == [
            "Tom Yum Soup",
            "Tomato Soup",
        ]
        assert len(engine.list_recipes(limit=1)) == 1
