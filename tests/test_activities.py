"""
Tests for activity CRUD and the record-completion pipeline
(completion -> daily score -> streaks).
"""
from datetime import timedelta

import pytest

from app.core.errors import (
    ActivityAlreadyCompletedError,
    ActivityNotFoundError,
    ValidationFailedError,
)
from app.models.activity import Pillar
from app.models.activity_completion import ActivityCompletion, Source
from app.models.daily_score import DailyScore
from app.services import daily_scores
from app.services.activities import (
    archive_activity,
    create_activity,
    list_activities,
    record_completion,
    update_activity,
)
from app.services.daily_scores import recompute_daily_score


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

class TestCreateActivity:
    def test_defaults(self, db, user_id):
        a = create_activity(db, user_id, name="  Read  ", pillar="MIND", sub_category="reading")
        assert a.name == "Read"
        assert a.sub_category == "READING"
        assert a.points == 25
        assert a.pillar == Pillar.MIND
        assert a.archived is False

    def test_custom_sub_category_allowed(self, db, user_id):
        a = create_activity(db, user_id, name="Sauna", pillar="BODY", sub_category="heat")
        assert a.sub_category == "HEAT"

    def test_blank_name_rejected(self, db, user_id):
        with pytest.raises(ValidationFailedError) as exc_info:
            create_activity(db, user_id, name="   ", pillar="BODY", sub_category="TRAINING")
        assert exc_info.value.details["field"] == "name"

    def test_non_positive_points_rejected(self, db, user_id):
        with pytest.raises(ValidationFailedError):
            create_activity(db, user_id, name="Run", pillar="BODY", sub_category="TRAINING", points=0)

    def test_time_cue_needs_hh_mm(self, db, user_id):
        with pytest.raises(ValidationFailedError) as exc_info:
            create_activity(
                db, user_id, name="Run", pillar="BODY", sub_category="TRAINING",
                cue_type="TIME", cue_value="7am",
            )
        assert exc_info.value.details["field"] == "cue_value"

        a = create_activity(
            db, user_id, name="Run", pillar="BODY", sub_category="TRAINING",
            cue_type="TIME", cue_value="07:00",
        )
        assert a.cue_value == "07:00"


class TestUpdateAndArchive:
    def test_partial_update_ignores_unknown_fields(self, db, user_id, make_activity):
        a = make_activity(points=25)
        updated = update_activity(db, user_id, a.id, {"points": 40, "user_id": "someone-else"})
        assert updated.points == 40
        assert updated.user_id == user_id

    def test_clearing_cue_type_clears_value(self, db, user_id):
        a = create_activity(
            db, user_id, name="Journal", pillar="MIND", sub_category="JOURNALING",
            cue_type="LOCATION", cue_value="Desk",
        )
        updated = update_activity(db, user_id, a.id, {"cue_type": None})
        assert updated.cue_type is None
        assert updated.cue_value is None

    def test_archived_activities_are_hidden(self, db, user_id, make_activity):
        a = make_activity()
        archive_activity(db, user_id, a.id)
        assert list_activities(db, user_id) == []
        assert [x.id for x in list_activities(db, user_id, include_archived=True)] == [a.id]

    def test_other_users_activity_is_not_found(self, db, make_activity):
        a = make_activity()
        with pytest.raises(ActivityNotFoundError):
            update_activity(db, "intruder", a.id, {"points": 10})


# ---------------------------------------------------------------------------
# record_completion
# ---------------------------------------------------------------------------

class TestRecordCompletion:
    def test_points_accumulate_into_daily_score(self, db, user_id, clock, make_activity):
        run = make_activity(name="Run", points=60)
        lift = make_activity(name="Lift", points=50)

        record_completion(db, user_id, run.id, clock)
        outcome = record_completion(db, user_id, lift.id, clock)

        score = outcome.daily_score
        assert outcome.day == clock.today()
        assert score.body_points == 110
        assert score.body_score == 100
        assert score.body_complete is True
        assert score.mind_points == 0
        assert float(score.balance_index) == 50.0

    def test_body_streak_starts_on_first_complete_day(self, db, user_id, clock, make_activity):
        a = make_activity(points=100)
        outcome = record_completion(db, user_id, a.id, clock)
        assert outcome.streaks["BODY"].after.current == 1
        assert outcome.streaks["MIND"].after.current == 0
        assert outcome.overall_increased is False

    def test_overall_streak_continues_from_yesterday(self, db, user_id, clock, make_activity):
        body = make_activity(name="Run", points=100)
        mind = make_activity(name="Meditate", pillar=Pillar.MIND, points=100,
                             sub_category="MEDITATION")
        yesterday = clock.advance(days=-1)

        record_completion(db, user_id, body.id, yesterday)
        record_completion(db, user_id, mind.id, yesterday)
        record_completion(db, user_id, body.id, clock)
        outcome = record_completion(db, user_id, mind.id, clock)

        assert outcome.overall_increased is True
        assert outcome.overall_streak == 2
        assert outcome.streaks["BODY"].after.current == 2

    def test_point_override(self, db, user_id, clock, make_activity):
        a = make_activity(points=25)
        outcome = record_completion(db, user_id, a.id, clock, points=70, details={"km": 8})
        assert outcome.completion.points_earned == 70
        assert outcome.completion.details == '{"km": 8}'
        assert outcome.completion.source == Source.MANUAL

    def test_negative_override_rejected(self, db, user_id, clock, make_activity):
        a = make_activity()
        with pytest.raises(ValidationFailedError):
            record_completion(db, user_id, a.id, clock, points=-5)

    def test_habit_twice_in_one_day_conflicts(self, db, user_id, clock, make_activity):
        a = make_activity(is_habit=True)
        record_completion(db, user_id, a.id, clock)
        with pytest.raises(ActivityAlreadyCompletedError):
            record_completion(db, user_id, a.id, clock.advance(hours=2))
        assert db.query(ActivityCompletion).filter_by(activity_id=a.id).count() == 1

    def test_habit_again_next_day_is_fine(self, db, user_id, clock, make_activity):
        a = make_activity(is_habit=True)
        record_completion(db, user_id, a.id, clock.advance(days=-1))
        record_completion(db, user_id, a.id, clock)
        assert db.query(ActivityCompletion).filter_by(activity_id=a.id).count() == 2

    def test_non_habit_can_repeat(self, db, user_id, clock, make_activity):
        a = make_activity(points=30)
        record_completion(db, user_id, a.id, clock)
        outcome = record_completion(db, user_id, a.id, clock)
        assert outcome.daily_score.body_points == 60

    def test_archived_activity_cannot_be_completed(self, db, user_id, clock, make_activity):
        a = make_activity()
        archive_activity(db, user_id, a.id)
        with pytest.raises(ActivityNotFoundError):
            record_completion(db, user_id, a.id, clock)

    def test_future_completion_rejected(self, db, user_id, clock, make_activity):
        a = make_activity()
        with pytest.raises(ValidationFailedError) as exc_info:
            record_completion(db, user_id, a.id, clock, completed_at=clock.now() + timedelta(days=1))
        assert exc_info.value.details["field"] == "completed_at"

    def test_backdated_completion_lands_on_its_own_day(self, db, user_id, clock, make_activity):
        a = make_activity(points=40)
        outcome = record_completion(
            db, user_id, a.id, clock, completed_at=clock.now() - timedelta(days=2),
        )
        assert outcome.day == clock.today() - timedelta(days=2)
        assert outcome.daily_score.body_points == 40

    def test_archiving_removes_points_on_recompute(self, db, user_id, clock, make_activity):
        a = make_activity(points=40)
        record_completion(db, user_id, a.id, clock)
        archive_activity(db, user_id, a.id)
        score = recompute_daily_score(db, user_id, clock.today(), clock)
        assert score.body_points == 0


class TestRecomputeDailyScore:
    def test_row_inserted_by_another_writer_is_updated(
        self, db, user_id, clock, make_activity, monkeypatch,
    ):
        a = make_activity(points=40)
        record_completion(db, user_id, a.id, clock)
        db.query(DailyScore).filter_by(user_id=user_id).update({"body_points": 0})
        db.commit()

        real_score_row = daily_scores._score_row
        misses = [None]

        # Miss the row once, as a writer that read before the other committed.
        def score_row(session, uid, day):
            if misses:
                return misses.pop()
            return real_score_row(session, uid, day)

        monkeypatch.setattr(daily_scores, "_score_row", score_row)
        score = recompute_daily_score(db, user_id, clock.today(), clock)

        assert score.body_points == 40
        assert db.query(DailyScore).filter_by(user_id=user_id).count() == 1

    def test_simultaneous_recomputes_keep_one_row(self, db, user_id, clock, make_activity, race):
        a = make_activity(points=40)
        db.add(ActivityCompletion(
            activity_id=a.id, user_id=user_id, completed_at=clock.now(), points_earned=40,
        ))
        db.commit()

        results, errors = race(
            lambda session: recompute_daily_score(session, user_id, clock.today(), clock).body_points,
        )

        assert errors == []
        assert results == [40, 40]
        assert db.query(DailyScore).filter_by(user_id=user_id).count() == 1
