"""Tests for table-level invariants of the persistence models."""

import pytest
from sqlalchemy.exc import IntegrityError

from recipeshare.models import (
    FavoriteRow,
    FollowRow,
    NotificationType,
    ProfileRow,
    RatingRow,
    RecipeRow,
    UserRow,
)


def _seed(session) -> RecipeRow:
    session.add(UserRow(id="u1", name="Ada"))
    session.add(UserRow(id="u2", name="Grace"))
    session.flush()
    recipe = RecipeRow(
        title="Bread",
        ingredients=["flour", "water"],
        steps=["Knead", "Bake"],
        cuisine="French",
        prep_time=90,
        servings=8,
        author_id="u1",
    )
    session.add(recipe)
    session.flush()
    return recipe


def test_row_defaults(db):
    with db.session_scope() as session:
        recipe = _seed(session)

    assert len(recipe.id) == 32
    assert recipe.version == 1
    assert recipe.average_rating == 0.0
    assert recipe.total_ratings == 0
    assert recipe.is_approved is False
    assert recipe.created_at.endswith("Z")


def test_json_columns_round_trip(db):
    with db.session_scope() as session:
        recipe_id = _seed(session).id

    with db.session_scope() as session:
        stored = session.get(RecipeRow, recipe_id)
        assert stored.ingredients == ["flour", "water"]
        assert stored.tags == []


def test_notification_types():
    assert {t.value for t in NotificationType} == {
        "comment",
        "rating",
        "follow",
        "recipe_approved",
    }


class TestConstraints:
    """Invariants the store enforces on its own."""

    def test_rating_out_of_range(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                recipe = _seed(session)
                session.add(RatingRow(recipe_id=recipe.id, user_id="u2", rating=6))
                session.flush()

    def test_one_rating_per_user_and_recipe(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                recipe = _seed(session)
                session.add(RatingRow(recipe_id=recipe.id, user_id="u2", rating=4))
                session.flush()
                session.add(RatingRow(recipe_id=recipe.id, user_id="u2", rating=2))
                session.flush()

    def test_self_follow(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                _seed(session)
                session.add(FollowRow(follower_id="u1", following_id="u1"))
                session.flush()

    def test_duplicate_favorite(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                recipe = _seed(session)
                session.add(FavoriteRow(user_id="u2", recipe_id=recipe.id))
                session.flush()
                session.expunge_all()
                session.add(FavoriteRow(user_id="u2", recipe_id=recipe.id))
                session.flush()

    def test_one_profile_per_user(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                _seed(session)
                session.add(ProfileRow(user_id="u1", username="ada"))
                session.flush()
                session.add(ProfileRow(user_id="u1", username="ada-2"))
                session.flush()

    def test_unique_username(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                _seed(session)
                session.add(ProfileRow(user_id="u1", username="chef"))
                session.flush()
                session.add(ProfileRow(user_id="u2", username="chef"))
                session.flush()

    def test_positive_servings(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                _seed(session)
                session.add(
                    RecipeRow(
                        title="Air",
                        cuisine="None",
                        prep_time=1,
                        servings=0,
                        author_id="u1",
                    )
                )
                session.flush()

    def test_foreign_keys_enforced(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                session.add(FollowRow(follower_id="ghost", following_id="phantom"))
                session.flush()

    def test_failed_unit_leaves_nothing(self, db):
        with pytest.raises(IntegrityError):
            with db.session_scope() as session:
                _seed(session)
                session.add(FollowRow(follower_id="u1", following_id="u1"))
                session.flush()

        assert db.get_table_counts()["users"] == 0
