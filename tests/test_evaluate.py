from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from sub4.errors import PersistenceError
from sub4.evaluate import evaluate, round_seconds
from sub4.models import Achievement, ProcessedActivity

from conftest import generate_stream, run_activity


def add_achievement(db, member, milestone, time_seconds, season=2025, activity_id=1):
    db.add(Achievement(
        member_id=member.id,
        milestone=milestone,
        season=season,
        strava_activity_id=activity_id,
        achieved_at=datetime(season, 2, 1, tzinfo=timezone.utc),
        time_seconds=time_seconds,
        distance=1000,
    ))
    db.commit()


def rows(db, member):
    return db.query(Achievement).filter_by(member_id=member.id).order_by(Achievement.id).all()


def test_unlocks_every_milestone_beaten(db, make_member):
    m = make_member()
    result = evaluate(db, m.id, run_activity(), generate_stream(10000, 230))

    assert [a.milestone for a in result.new_achievements] == ["1km", "2km", "5km", "7.5km", "10km"]
    assert result.new_improvements == []
    assert result.season == 2025
    saved = rows(db, m)
    assert len(saved) == 5
    assert saved[0].time_seconds == 230
    assert saved[0].previous_time_seconds is None
    assert saved[0].strava_activity_id == 555
    assert saved[-1].time_seconds == 2300


def test_too_slow_unlocks_nothing(db, make_member):
    m = make_member()
    result = evaluate(db, m.id, run_activity(), generate_stream(10000, 300))
    assert result.new_achievements == []
    assert result.summary() is None
    assert rows(db, m) == []


def test_exactly_on_target_pace_counts(db, make_member):
    m = make_member()
    result = evaluate(db, m.id, run_activity(), generate_stream(1000, 240))
    assert [a.milestone for a in result.new_achievements] == ["1km"]


def test_short_run_only_evaluates_reachable_milestones(db, make_member):
    m = make_member()
    result = evaluate(db, m.id, run_activity(), generate_stream(2500, 200))
    assert [a.milestone for a in result.new_achievements] == ["1km", "2km"]


def test_improvement_records_previous_best(db, make_member):
    m = make_member()
    add_achievement(db, m, "1km", 238)

    result = evaluate(db, m.id, run_activity(), generate_stream(1500, 230))

    assert result.new_achievements == []
    assert len(result.new_improvements) == 1
    imp = result.new_improvements[0]
    assert imp.milestone == "1km"
    assert imp.previous_time_seconds == 238
    assert imp.time_seconds == pytest.approx(230)
    saved = rows(db, m)
    assert len(saved) == 2
    assert saved[-1].time_seconds == 230
    assert saved[-1].previous_time_seconds == 238


@pytest.mark.parametrize("pace", [238, 239, 250])
def test_equal_or_slower_is_not_an_improvement(db, make_member, pace):
    m = make_member()
    add_achievement(db, m, "1km", 238)
    result = evaluate(db, m.id, run_activity(), generate_stream(1500, pace))
    assert result.new_improvements == []
    assert len(rows(db, m)) == 1


def test_improvement_compares_rounded_time(db, make_member):
    m = make_member()
    add_achievement(db, m, "1km", 238)
    # 237.6s rounds to 238: no improvement
    result = evaluate(db, m.id, run_activity(), generate_stream(1500, 237.6))
    assert result.new_improvements == []
    # 237.4s rounds to 237: improvement
    result = evaluate(db, m.id, run_activity(activity_id=556), generate_stream(1500, 237.4))
    assert [i.milestone for i in result.new_improvements] == ["1km"]


def test_improvement_need_not_beat_target_pace(db, make_member):
    m = make_member()
    # compared against the current best only, never the target pace
    add_achievement(db, m, "1km", 260)
    result = evaluate(db, m.id, run_activity(), generate_stream(1500, 250))
    assert [i.milestone for i in result.new_improvements] == ["1km"]


def test_uses_best_of_multiple_rows(db, make_member):
    m = make_member()
    add_achievement(db, m, "1km", 238)
    add_achievement(db, m, "1km", 230)

    assert evaluate(db, m.id, run_activity(), generate_stream(1500, 232)).new_improvements == []
    result = evaluate(db, m.id, run_activity(activity_id=556), generate_stream(1500, 228))
    assert result.new_improvements[0].previous_time_seconds == 230


def test_new_achievement_and_improvement_in_one_run(db, make_member):
    m = make_member()
    add_achievement(db, m, "1km", 238)

    result = evaluate(db, m.id, run_activity(), generate_stream(5000, 230))

    assert [a.milestone for a in result.new_achievements] == ["2km", "5km"]
    assert [i.milestone for i in result.new_improvements] == ["1km"]
    assert result.summary() == "Unlocked: 2km, 5km; Improved: 1km"


def test_achievements_are_scoped_to_the_season(db, make_member):
    m = make_member()
    add_achievement(db, m, "1km", 220, season=2024)

    # same pace in 2025 is a fresh achievement, not a (non-)improvement
    result = evaluate(db, m.id, run_activity(), generate_stream(1500, 230))
    assert [a.milestone for a in result.new_achievements] == ["1km"]
    assert rows(db, m)[-1].season == 2025


def test_season_boundary_in_club_timezone(db, make_member):
    m = make_member()
    # 2024-12-31 15:00 UTC is already 2025-01-01 01:00 in Brisbane
    result = evaluate(db, m.id, run_activity(start="2024-12-31T15:00:00Z"), generate_stream(1500, 230))
    assert result.season == 2025


def test_upserts_processed_activity(db, make_member):
    m = make_member()
    evaluate(db, m.id, run_activity(distance=1500.0, moving_time=360), generate_stream(1500, 230))
    evaluate(db, m.id, run_activity(distance=1500.0, moving_time=360), generate_stream(1500, 230))

    projections = db.query(ProcessedActivity).all()
    assert len(projections) == 1
    p = projections[0]
    assert p.strava_activity_id == 555
    assert p.pace_seconds_per_km == 240
    # second pass found nothing new
    assert p.milestones_unlocked is None


def test_processed_activity_failure_is_swallowed(db, make_member, monkeypatch):
    m = make_member()
    real_execute = db.execute

    def failing_execute(stmt, *args, **kwargs):
        if getattr(stmt, "table", None) is not None and stmt.table.name == "processed_activities":
            raise OperationalError("upsert", {}, Exception("disk full"))
        return real_execute(stmt, *args, **kwargs)

    monkeypatch.setattr(db, "execute", failing_execute)
    result = evaluate(db, m.id, run_activity(), generate_stream(1500, 230))

    assert [a.milestone for a in result.new_achievements] == ["1km"]
    assert db.query(ProcessedActivity).count() == 0


def test_read_failure_is_fatal(db, make_member, monkeypatch):
    m = make_member()

    def failing_execute(*args, **kwargs):
        raise OperationalError("select", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "execute", failing_execute)
    with pytest.raises(PersistenceError):
        evaluate(db, m.id, run_activity(), generate_stream(1500, 230))


def test_insert_failure_is_fatal_and_inserts_nothing(db, make_member, monkeypatch):
    m = make_member()

    def failing_commit():
        raise OperationalError("insert", {}, Exception("constraint"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(PersistenceError):
        evaluate(db, m.id, run_activity(), generate_stream(5000, 230))
    monkeypatch.undo()
    assert rows(db, m) == []


@pytest.mark.parametrize("value,expected", [(237.5, 238), (237.49, 237), (0.5, 1), (240.0, 240)])
def test_round_seconds_is_half_up(value, expected):
    assert round_seconds(value) == expected
