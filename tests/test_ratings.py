"""Tests for rating upsert and aggregate maintenance."""

import pytest
from sqlmodel import select

from recipeshare.exceptions import NotFound, Unauthenticated, ValidationFailed
from recipeshare.metrics import registry
from recipeshare.models import NotificationRow, RatingRow, RecipeRow
from recipeshare.ratings import validate_rating
from recipeshare.repository import Repository


class TestValidateRating:
    """Tests for the star range check."""

    @pytest.mark.parametrize("value", [1, 3, 5])
    def test_accepts_whole_stars(self, value):
        assert validate_rating(value) == value

    @pytest.mark.parametrize("value", [0, 6, -1, 100])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValidationFailed, match="between 1 and 5"):
            validate_rating(value)

    @pytest.mark.parametrize("value", [True, 4.5, "4", None])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValidationFailed):
            validate_rating(value)


class TestSubmitRating:
    """Tests for RecipeShareEngine.submit_rating."""

    def test_worked_example(self, engine, recipe_id, bob, carol):
        """5 then 3 averages to 4; bob overwriting with 1 gives 2 over 2."""
        engine.submit_rating(bob, recipe_id, 5)
        engine.submit_rating(carol, recipe_id, 3)

        view = engine.get_recipe(recipe_id)
        assert view["average_rating"] == 4.0
        assert view["total_ratings"] == 2

        engine.submit_rating(bob, recipe_id, 1)

        view = engine.get_recipe(recipe_id)
        assert view["average_rating"] == 2.0
        assert view["total_ratings"] == 2

    def test_one_row_per_user_and_recipe(self, engine, db, recipe_id, bob):
        for stars in (2, 4, 5, 1):
            engine.submit_rating(bob, recipe_id, stars)

        with db.session_scope() as session:
            rows = session.exec(select(RatingRow).where(RatingRow.recipe_id == recipe_id)).all()

        assert len(rows) == 1
        assert rows[0].rating == 1
        assert engine.get_user_rating(bob, recipe_id) == 1

    def test_aggregate_matches_rows(self, engine, db, recipe_id, bob, carol, alice):
        engine.submit_rating(bob, recipe_id, 5)
        engine.submit_rating(carol, recipe_id, 2)
        engine.submit_rating(alice, recipe_id, 4)

        with db.session_scope() as session:
            values = [
                r.rating
                for r in session.exec(select(RatingRow).where(RatingRow.recipe_id == recipe_id))
            ]
            recipe = session.get(RecipeRow, recipe_id)

        assert recipe.total_ratings == len(values) == 3
        assert recipe.average_rating == pytest.approx(sum(values) / len(values))

    def test_out_of_range_writes_nothing(self, engine, db, recipe_id, bob):
        with pytest.raises(ValidationFailed):
            engine.submit_rating(bob, recipe_id, 6)

        counts = db.get_table_counts()
        assert counts["ratings"] == 0
        assert counts["notifications"] == 0
        # Validation runs before the caller's user row is even mirrored
        assert engine.get_user_profile("bob") is None

    def test_unknown_recipe(self, engine, db, bob):
        with pytest.raises(NotFound, match="Recipe not found"):
            engine.submit_rating(bob, "missing", 4)

        assert db.get_table_counts()["ratings"] == 0

    def test_requires_login(self, engine, recipe_id):
        with pytest.raises(Unauthenticated, match="Must be logged in"):
            engine.submit_rating(None, recipe_id, 4)

    def test_notifies_author(self, engine, alice, bob, recipe_id):
        engine.submit_rating(bob, recipe_id, 5)

        notes = engine.list_notifications(alice)
        assert len(notes) == 1
        assert notes[0]["type"] == "rating"
        assert notes[0]["message"] == 'Someone rated your recipe "Tomato Soup"'
        assert notes[0]["related_recipe_id"] == recipe_id
        assert notes[0]["related_user_id"] == "bob"

    def test_author_rating_own_recipe_is_silent(self, engine, db, alice, recipe_id):
        engine.submit_rating(alice, recipe_id, 5)

        assert engine.list_notifications(alice) == []
        assert engine.get_recipe(recipe_id)["total_ratings"] == 1


class TestRecomputeAggregate:
    """Tests for repairing a drifted aggregate."""

    def test_repairs_drift(self, engine, db, recipe_id, bob, carol):
        engine.submit_rating(bob, recipe_id, 4)
        engine.submit_rating(carol, recipe_id, 2)

        def corrupt(session):
            recipe = session.get(RecipeRow, recipe_id)
            recipe.average_rating = 0.5
            recipe.total_ratings = 99
            session.add(recipe)

        db.run(corrupt)

        assert engine.recompute_rating_aggregate(recipe_id) == (3.0, 2)
        assert engine.get_recipe(recipe_id)["total_ratings"] == 2

    def test_empty_recipe_is_zero(self, engine, recipe_id):
        assert engine.recompute_rating_aggregate(recipe_id) == (0.0, 0)

    def test_unknown_recipe(self, engine):
        with pytest.raises(NotFound):
            engine.recompute_rating_aggregate("missing")


def test_rating_notification_rows_have_recipient(engine, db, recipe_id, bob):
    engine.submit_rating(bob, recipe_id, 3)

    with db.session_scope() as session:
        note = session.exec(select(NotificationRow)).one()

    assert note.user_id == "alice"
    assert note.is_read is False


def test_concurrent_first_rating_keeps_one_row(
    file_engine, file_db, file_recipe_id, bob, monkeypatch
):
    """A rating inserted by a parallel request is overwritten, not duplicated."""
    import recipeshare.ratings as ratings

    raced: list[bool] = []

    class RacingRepository(Repository):
        def first_by(self, **filters):
            found = super().first_by(**filters)
            if self.model is RatingRow and not raced:
                raced.append(True)
                # The same user's other request commits after our existence check
                with file_db.session_scope() as other:
                    other.add(RatingRow(recipe_id=file_recipe_id, user_id="bob", rating=2))
            return found

    monkeypatch.setattr(ratings, "Repository", RacingRepository)
    conflicts_before = registry.get_sample_value("database_conflicts_total") or 0.0

    file_engine.submit_rating(bob, file_recipe_id, 5)

    with file_db.session_scope() as session:
        rows = session.exec(select(RatingRow).where(RatingRow.recipe_id == file_recipe_id)).all()

    assert [row.rating for row in rows] == [5]
    view = file_engine.get_recipe(file_recipe_id)
    assert view["average_rating"] == 5.0
    assert view["total_ratings"] == 1
    assert registry.get_sample_value("database_conflicts_total") == conflicts_before + 1
