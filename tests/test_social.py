"""Tests for favorite and follow toggles."""

import pytest

from recipeshare.exceptions import NotFound, Unauthenticated, ValidationFailed
from recipeshare.identity import Identity
from recipeshare.models import FavoriteRow, FollowRow
from recipeshare.repository import Repository


class TestToggleFavorite:
    """Tests for RecipeShareEngine.toggle_favorite."""

    def test_toggle_twice_restores_state(self, engine, db, recipe_id, bob):
        assert engine.toggle_favorite(bob, recipe_id) is True
        assert engine.is_favorite(bob, recipe_id) is True

        assert engine.toggle_favorite(bob, recipe_id) is False
        assert engine.is_favorite(bob, recipe_id) is False
        assert db.get_table_counts()["favorites"] == 0

    def test_no_notification(self, engine, alice, bob, recipe_id):
        engine.toggle_favorite(bob, recipe_id)

        assert engine.list_notifications(alice) == []

    def test_unknown_recipe(self, engine, db, bob):
        with pytest.raises(NotFound):
            engine.toggle_favorite(bob, "missing")

        assert db.get_table_counts()["favorites"] == 0

    def test_requires_login(self, engine, recipe_id):
        with pytest.raises(Unauthenticated):
            engine.toggle_favorite(None, recipe_id)

    def test_recipe_view_reports_favorite(self, engine, recipe_id, bob):
        engine.toggle_favorite(bob, recipe_id)

        assert engine.get_recipe(recipe_id, bob)["is_favorite"] is True
        assert "is_favorite" not in engine.get_recipe(recipe_id)

    def test_list_favorites(self, engine, alice, bob, draft, recipe_id):
        second = engine.create_recipe(alice, draft.model_copy(update={"title": "Gazpacho"}))
        engine.toggle_favorite(bob, recipe_id)
        engine.toggle_favorite(bob, second)

        titles = [view["title"] for view in engine.list_favorites(bob)]
        assert sorted(titles) == ["Gazpacho", "Tomato Soup"]

    def test_anonymous_is_never_favorite(self, engine, recipe_id):
        assert engine.is_favorite(None, recipe_id) is False


class TestToggleFollow:
    """Tests for RecipeShareEngine.toggle_follow."""

    def test_follow_then_unfollow(self, engine, users, alice, bob):
        assert engine.toggle_follow(bob, "alice") is True
        assert engine.is_following(bob, "alice") is True

        assert engine.toggle_follow(bob, "alice") is False
        assert engine.is_following(bob, "alice") is False

    def test_follow_notifies_once(self, engine, users, alice, bob):
        engine.toggle_follow(bob, "alice")
        engine.toggle_follow(bob, "alice")

        notes = engine.list_notifications(alice)
        assert [n["type"] for n in notes] == ["follow"]
        assert notes[0]["message"] == "Someone started following you"
        assert notes[0]["related_user_id"] == "bob"
        assert notes[0]["related_recipe_id"] is None

    def test_self_follow_rejected(self, engine, db, users, alice):
        counts_before = db.get_table_counts()

        with pytest.raises(ValidationFailed, match="Cannot follow yourself"):
            engine.toggle_follow(alice, "alice")

        assert db.get_table_counts() == counts_before

    def test_self_follow_rejected_for_unknown_user(self, engine, db):
        """Self-follow is rejected before the caller's row is written."""
        stranger = Identity(user_id="stranger")
        with pytest.raises(ValidationFailed):
            engine.toggle_follow(stranger, "stranger")

        assert db.get_table_counts()["users"] == 0

    def test_unknown_target(self, engine, bob):
        with pytest.raises(NotFound, match="User not found"):
            engine.toggle_follow(bob, "nobody")

    def test_counts_are_derived(self, engine, users, alice, bob, carol):
        engine.toggle_follow(bob, "alice")
        engine.toggle_follow(carol, "alice")
        engine.toggle_follow(alice, "carol")

        profile = engine.get_user_profile("alice")
        assert profile["follower_count"] == 2
        assert profile["following_count"] == 1

        engine.toggle_follow(bob, "alice")
        assert engine.get_user_profile("alice")["follower_count"] == 1

    def test_requires_login(self, engine, users):
        with pytest.raises(Unauthenticated):
            engine.toggle_follow(None, "alice")


def _racing_repository(model, competitor, db):
    """Repository whose first lookup of ``model`` lets ``competitor`` commit first."""
    raced: list[bool] = []

    class RacingRepository(Repository):
        def get(self, entity_id):
            found = super().get(entity_id)
            if self.model is model and not raced:
                raced.append(True)
                with db.session_scope() as other:
                    other.add(competitor())
            return found

    return RacingRepository


class TestConcurrentToggles:
    """A toggle that loses an insert race re-runs against the committed row."""

    def test_favorite(self, file_engine, file_db, file_recipe_id, bob, monkeypatch):
        import recipeshare.social as social

        monkeypatch.setattr(
            social,
            "Repository",
            _racing_repository(
                FavoriteRow,
                lambda: FavoriteRow(user_id="bob", recipe_id=file_recipe_id),
                file_db,
            ),
        )

        state = file_engine.toggle_favorite(bob, file_recipe_id)

        assert state is False
        assert file_engine.is_favorite(bob, file_recipe_id) is False
        assert file_db.get_table_counts()["favorites"] == 0

    def test_follow(self, file_engine, file_db, file_recipe_id, bob, monkeypatch):
        import recipeshare.social as social

        monkeypatch.setattr(
            social,
            "Repository",
            _racing_repository(
                FollowRow,
                lambda: FollowRow(follower_id="bob", following_id="alice"),
                file_db,
            ),
        )

        state = file_engine.toggle_follow(bob, "alice")

        assert state is False
        assert file_engine.is_following(bob, "alice") is False
        assert file_db.get_table_counts()["follows"] == 0
