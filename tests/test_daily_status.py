"""
Tests for the daily status aggregator and its wearable snapshot.
"""
import pytest

from app.core.errors import WearableAPIError, WearableTimeoutError
from app.models.activity import Pillar
from app.models.streak import Streak
from app.schemas.whoop import WhoopCycle, WhoopRecovery, WhoopSleep, WhoopWorkout
from app.services.activities import record_completion
from app.services.daily_status import (
    fetch_wearable_snapshot,
    get_daily_status,
    recovery_recommendation,
    recovery_zone,
)
from app.services.habit_stacks import create_stack, execute_stack
from app.services.quotes import DEFAULT_QUOTE


@pytest.fixture()
def wearable(fake_whoop):
    fake_whoop.cycle = WhoopCycle.model_validate({"id": 9, "score": {"strain": 8.4}})
    fake_whoop.cycle_recovery_record = WhoopRecovery.model_validate({
        "cycle_id": 9,
        "score": {"recovery_score": 72, "hrv_rmssd_milli": 61.5, "resting_heart_rate": 50},
    })
    fake_whoop.sleep_records = [WhoopSleep.model_validate({
        "id": "s-1",
        "start": "2026-03-09T23:00:00Z",
        "end": "2026-03-10T06:30:00Z",
        "score": {
            "stage_summary": {
                "total_in_bed_time_milli": 27_000_000,
                "total_rem_sleep_time_milli": 5_400_000,
                "total_slow_wave_sleep_time_milli": 3_600_000,
            },
            "sleep_efficiency_percentage": 91.4,
            "sleep_performance_percentage": 87.6,
        },
    })]
    fake_whoop.workout_records = [
        WhoopWorkout.model_validate({
            "id": "w-today",
            "start": "2026-03-10T12:00:00Z",
            "end": "2026-03-10T12:40:00Z",
            "sport_id": 44,
            "score": {"strain": 9.26, "kilojoule": 1046.0},
        }),
        WhoopWorkout.model_validate({
            "id": "w-yesterday",
            "start": "2026-03-09T12:00:00Z",
            "end": "2026-03-09T13:00:00Z",
            "sport_id": 0,
            "score": {"strain": 14.0, "kilojoule": 3000.0},
        }),
    ]
    return fake_whoop


class TestRecoveryZone:
    @pytest.mark.parametrize("score,zone", [
        (100, "green"), (67, "green"), (66, "yellow"), (34, "yellow"), (33, "red"), (0, "red"),
    ])
    def test_zones(self, score, zone):
        assert recovery_zone(score) == zone

    def test_unknown(self):
        assert recovery_zone(None) is None
        assert recovery_recommendation(None) is None

    def test_recommendation_text(self):
        assert "rest" in recovery_recommendation("red").lower()


class TestWearableSnapshot:
    def test_full_snapshot(self, wearable, clock):
        snap = fetch_wearable_snapshot(wearable, clock)

        assert snap.recovery.score == 72
        assert snap.recovery.zone == "green"
        assert snap.recovery.hrv == 61.5
        assert snap.sleep.hours == 7.5
        assert snap.sleep.efficiency == 91
        assert snap.sleep.rem_hours == 1.5
        assert snap.sleep.performance == 88
        assert [w.name for w in snap.training.workouts] == ["Weightlifting"]
        assert snap.training.strain == 9.3
        assert snap.training.calories == 250

    def test_one_failure_blanks_only_its_part(self, wearable, clock):
        wearable.failures["latest_cycle"] = WearableTimeoutError("/developer/v2/cycle", 5.0)
        snap = fetch_wearable_snapshot(wearable, clock)
        assert snap.recovery is None
        assert snap.sleep is not None
        assert snap.training is not None

    def test_all_failures(self, fake_whoop, clock):
        for name in ("latest_cycle", "latest_sleep", "recent_workouts"):
            fake_whoop.failures[name] = WearableAPIError("down")
        snap = fetch_wearable_snapshot(fake_whoop, clock)
        assert (snap.recovery, snap.sleep, snap.training) == (None, None, None)


class TestDailyStatus:
    def test_pillar_progress(self, db, user_id, clock, make_activity):
        run = make_activity(name="Run", points=60)
        read = make_activity(name="Read", pillar=Pillar.MIND, points=40, sub_category="READING")
        record_completion(db, user_id, run.id, clock)
        record_completion(db, user_id, read.id, clock)

        status = get_daily_status(db, user_id, clock.today(), clock)

        assert status.body.points == 60
        assert status.body.points_remaining == 40
        assert status.body.progress == 60.0
        assert status.body.completed is False
        assert [a.name for a in status.body.activities] == ["Run"]
        assert status.mind.points == 40
        assert float(status.balance_index) == 50.0
        assert status.overall_complete is False
        assert status.recommendations == (
            "40 more Body points to complete today.",
            "60 more Mind points to complete today.",
        )

    def test_complete_day(self, db, user_id, clock, make_activity):
        body = make_activity(name="Run", points=100)
        mind = make_activity(name="Meditate", pillar=Pillar.MIND, points=120,
                             sub_category="MEDITATION")
        record_completion(db, user_id, body.id, clock)
        record_completion(db, user_id, mind.id, clock)

        status = get_daily_status(db, user_id, clock.today(), clock)
        assert status.overall_complete is True
        assert status.mind.score == 100
        assert status.streaks["OVERALL"].current == 1
        assert status.streaks["OVERALL"].at_risk is False
        assert status.recommendations == ()

    def test_stack_bonus_is_reported_separately(self, db, user_id, clock, make_activity):
        a = make_activity(name="Run", points=30)
        b = make_activity(name="Stretch", points=20)
        stack = create_stack(db, user_id, name="Routine", activity_ids=[a.id, b.id])
        execute_stack(db, user_id, stack.id, clock)

        status = get_daily_status(db, user_id, clock.today(), clock)
        assert status.stack_bonus_points == 20
        assert status.body.points == 50

    def test_is_read_only(self, db, user_id, clock):
        status = get_daily_status(db, user_id, clock.today(), clock)
        assert status.streaks["BODY"].current == 0
        assert status.quote == DEFAULT_QUOTE
        assert db.query(Streak).filter_by(user_id=user_id).count() == 0

    def test_wearable_recommendation_comes_first(self, db, user_id, clock, wearable):
        snap = fetch_wearable_snapshot(wearable, clock)
        status = get_daily_status(db, user_id, clock.today(), clock, wearable=snap)
        assert status.recommendations[0] == recovery_recommendation("green")
