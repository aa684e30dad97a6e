"""
Tests for habit stacks: bonus arithmetic, the write-once claim, streak
scanning and execute.
"""
from datetime import timedelta

import pytest

from app.core.errors import StackNotFoundError, ValidationFailedError
from app.models.activity import Pillar
from app.models.activity_completion import ActivityCompletion
from app.models.habit_stack import HabitStack, StackCompletion
from app.services import habit_stacks
from app.services.activities import archive_activity, record_completion
from app.services.habit_stacks import (
    bonus_multiplier,
    bonus_points,
    complete_stack,
    create_stack,
    current_stack_streak,
    delete_stack,
    execute_stack,
    is_stack_completed,
    stack_status,
    update_stack,
)


@pytest.fixture()
def members(make_activity):
    run = make_activity(name="Run", points=60)
    read = make_activity(name="Read", pillar=Pillar.MIND, points=40, sub_category="READING")
    return run, read


@pytest.fixture()
def stack(db, user_id, members):
    return create_stack(
        db, user_id, name="Morning routine", activity_ids=[m.id for m in members],
    )


def _claim(db, stack, day, streak_day=1):
    db.add(StackCompletion(
        stack_id=stack.id,
        user_id=stack.user_id,
        completed_on=day,
        bonus_points_earned=stack.completion_bonus,
        streak_day=streak_day,
    ))
    db.commit()


# ---------------------------------------------------------------------------
# Bonus arithmetic
# ---------------------------------------------------------------------------

class TestBonus:
    @pytest.mark.parametrize("streak_day,expected", [
        (1, 20),
        (2, 21),
        (10, 29),
        (11, 30),
        (60, 30),
    ])
    def test_default_bonus_by_streak_day(self, streak_day, expected):
        assert bonus_points(20, streak_day) == expected

    def test_rounds_half_up(self):
        # 10 * 1.05 = 10.5
        assert bonus_points(10, 2) == 11

    def test_zero_bonus_stays_zero(self):
        assert bonus_points(0, 30) == 0

    def test_streak_day_starts_at_one(self):
        with pytest.raises(ValueError):
            bonus_multiplier(0)


# ---------------------------------------------------------------------------
# CRUD validation
# ---------------------------------------------------------------------------

class TestCreateStack:
    def test_needs_two_activities(self, db, user_id, members):
        with pytest.raises(ValidationFailedError) as exc_info:
            create_stack(db, user_id, name="Solo", activity_ids=[members[0].id])
        assert exc_info.value.details["field"] == "activity_ids"

    def test_members_must_be_distinct(self, db, user_id, members):
        run = members[0]
        with pytest.raises(ValidationFailedError):
            create_stack(db, user_id, name="Twice", activity_ids=[run.id, run.id])

    def test_members_must_belong_to_user(self, db, user_id, members, make_activity):
        foreign = make_activity(name="Theirs", owner="someone-else")
        with pytest.raises(ValidationFailedError):
            create_stack(db, user_id, name="Mixed", activity_ids=[members[0].id, foreign.id])

    def test_archived_member_rejected(self, db, user_id, members):
        archive_activity(db, user_id, members[1].id)
        with pytest.raises(ValidationFailedError):
            create_stack(db, user_id, name="Stale", activity_ids=[m.id for m in members])

    def test_bonus_range(self, db, user_id, members):
        with pytest.raises(ValidationFailedError) as exc_info:
            create_stack(
                db, user_id, name="Greedy", activity_ids=[m.id for m in members],
                completion_bonus=101,
            )
        assert exc_info.value.details["field"] == "completion_bonus"

    def test_keeps_member_order(self, db, user_id, members):
        ids = [members[1].id, members[0].id]
        s = create_stack(db, user_id, name="Evening", activity_ids=ids)
        assert s.activity_ids == ids
        assert s.completion_bonus == 20

    def test_update_can_deactivate(self, db, user_id, stack):
        updated = update_stack(db, user_id, stack.id, {"is_active": False, "name": " Renamed "})
        assert updated.is_active is False
        assert updated.name == "Renamed"


# ---------------------------------------------------------------------------
# Claim
# ---------------------------------------------------------------------------

class TestCompleteStack:
    def test_first_claim(self, db, stack, clock):
        result = complete_stack(db, stack, clock.today())
        assert result.created is True
        assert result.streak_day == 1
        assert result.bonus_points == 20

    def test_claim_is_write_once_per_day(self, db, stack, clock):
        first = complete_stack(db, stack, clock.today())
        second = complete_stack(db, stack, clock.today())
        assert second.created is False
        assert second.completion.id == first.completion.id
        assert db.query(StackCompletion).filter_by(stack_id=stack.id).count() == 1

    def test_tenth_consecutive_day(self, db, stack, clock):
        today = clock.today()
        for i in range(1, 10):
            _claim(db, stack, today - timedelta(days=i))
        result = complete_stack(db, stack, today)
        assert result.streak_day == 10
        assert result.bonus_points == 29

    def test_missed_day_resets_streak(self, db, stack, clock):
        today = clock.today()
        _claim(db, stack, today - timedelta(days=2))
        result = complete_stack(db, stack, today)
        assert result.streak_day == 1
        assert result.bonus_points == 20

    def test_current_streak_includes_claimed_today(self, db, stack, clock):
        today = clock.today()
        _claim(db, stack, today - timedelta(days=1))
        assert current_stack_streak(db, stack.id, today) == 1
        complete_stack(db, stack, today)
        assert current_stack_streak(db, stack.id, today) == 2

    def test_losing_insert_returns_winner(self, db, stack, clock, monkeypatch):
        _claim(db, stack, clock.today())
        real_claim_for = habit_stacks._claim_for
        misses = [None]

        # Miss the row once, as a writer that read before the winner committed.
        def claim_for(session, stack_id, day):
            if misses:
                return misses.pop()
            return real_claim_for(session, stack_id, day)

        monkeypatch.setattr(habit_stacks, "_claim_for", claim_for)
        result = complete_stack(db, stack, clock.today())

        assert result.created is False
        assert result.bonus_points == 20
        assert db.query(StackCompletion).filter_by(stack_id=stack.id).count() == 1

    def test_simultaneous_claims_share_one_row(self, db, stack, clock, race):
        stack_id, today = stack.id, clock.today()
        db.commit()  # end the read snapshot so the count below sees both writers

        def claim(session):
            result = complete_stack(session, session.get(HabitStack, stack_id), today)
            return result.completion.id, result.created

        results, errors = race(claim)

        assert errors == []
        assert len({claim_id for claim_id, _ in results}) == 1
        assert sorted(created for _, created in results) == [False, True]
        assert db.query(StackCompletion).filter_by(stack_id=stack_id).count() == 1


# ---------------------------------------------------------------------------
# Read-only detection
# ---------------------------------------------------------------------------

class TestStackStatus:
    def test_status_never_claims(self, db, user_id, stack, members, clock):
        for m in members:
            record_completion(db, user_id, m.id, clock)

        assert is_stack_completed(db, stack, clock.today(), clock) is True
        st = stack_status(db, stack, clock.today(), clock)
        assert st.is_completed is True
        assert st.bonus_claimed is False
        assert st.next_bonus_points == 20
        assert db.query(StackCompletion).filter_by(stack_id=stack.id).count() == 0

    def test_partial_progress(self, db, user_id, stack, members, clock):
        record_completion(db, user_id, members[0].id, clock)
        st = stack_status(db, stack, clock.today(), clock)
        assert st.completed_activity_ids == [members[0].id]
        assert st.is_completed is False


# ---------------------------------------------------------------------------
# Execute
# ---------------------------------------------------------------------------

class TestExecuteStack:
    def test_completes_members_and_claims_bonus(self, db, user_id, stack, clock):
        ex = execute_stack(db, user_id, stack.id, clock)
        assert len(ex.new_completions) == 2
        assert ex.already_completed == 0
        assert ex.points_earned == 100
        assert ex.bonus.bonus_points == 20
        assert ex.total_points == 120
        # The bonus is not part of the pillar totals.
        assert ex.daily_score.body_points == 60
        assert ex.daily_score.mind_points == 40
        details = {c.details for c in ex.new_completions}
        assert details == {"Completed as part of stack: Morning routine"}

    def test_skips_members_already_done(self, db, user_id, stack, members, clock):
        record_completion(db, user_id, members[0].id, clock)
        ex = execute_stack(db, user_id, stack.id, clock)
        assert ex.already_completed == 1
        assert [c.activity_id for c in ex.new_completions] == [members[1].id]

    def test_executing_twice_is_idempotent(self, db, user_id, stack, clock):
        first = execute_stack(db, user_id, stack.id, clock)
        second = execute_stack(db, user_id, stack.id, clock)
        assert second.new_completions == []
        assert second.already_completed == 2
        assert second.bonus.created is False
        assert second.bonus.bonus_points == first.bonus.bonus_points
        assert db.query(StackCompletion).filter_by(stack_id=stack.id).count() == 1
        member_ids = list(stack.activity_ids)
        assert db.query(ActivityCompletion).filter(
            ActivityCompletion.activity_id.in_(member_ids)
        ).count() == 2

    def test_inactive_stack_not_found(self, db, user_id, stack, clock):
        update_stack(db, user_id, stack.id, {"is_active": False})
        with pytest.raises(StackNotFoundError):
            execute_stack(db, user_id, stack.id, clock)

    def test_all_members_archived(self, db, user_id, stack, members, clock):
        for m in members:
            archive_activity(db, user_id, m.id)
        with pytest.raises(StackNotFoundError) as exc_info:
            execute_stack(db, user_id, stack.id, clock)
        assert "no valid activities" in exc_info.value.message

    def test_other_user_cannot_execute(self, db, stack, clock):
        with pytest.raises(StackNotFoundError):
            execute_stack(db, "intruder", stack.id, clock)

    def test_delete_removes_claims(self, db, user_id, stack, clock):
        execute_stack(db, user_id, stack.id, clock)
        stack_id = stack.id
        delete_stack(db, user_id, stack_id)
        assert db.query(StackCompletion).filter_by(stack_id=stack_id).count() == 0
