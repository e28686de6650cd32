import logging
import math
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .best_effort import find_all_best_efforts
from .db import upsert_insert
from .errors import PersistenceError
from .milestones import MILESTONES, beats_milestone
from .models import Achievement, ProcessedActivity
from .schemas import ActivityStreams, StravaActivity
from .utils_time import season_for, utcnow

logger = logging.getLogger(__name__)

@dataclass
class MilestoneResult:
    milestone: str
    time_seconds: float
    distance_meters: float
    previous_time_seconds: int | None = None

@dataclass
class EvaluationResult:
    season: int
    new_achievements: list[MilestoneResult] = field(default_factory=list)
    new_improvements: list[MilestoneResult] = field(default_factory=list)

    @property
    def unlocked_keys(self) -> list[str]:
        return [r.milestone for r in self.new_achievements + self.new_improvements]

    def summary(self) -> str | None:
        parts = []
        if self.new_achievements:
            parts.append("Unlocked: " + ", ".join(a.milestone for a in self.new_achievements))
        if self.new_improvements:
            parts.append("Improved: " + ", ".join(i.milestone for i in self.new_improvements))
        return "; ".join(parts) or None

def round_seconds(t: float) -> int:
    # half-up, so 237.5 -> 238 regardless of banker's rounding
    return int(math.floor(t + 0.5))

def current_bests(db: Session, member_id: int, season: int) -> dict[str, int]:
    """Best (minimum) time per milestone for the member's season."""
    try:
        rows = db.execute(
            select(Achievement.milestone, func.min(Achievement.time_seconds))
            .where(Achievement.member_id == member_id, Achievement.season == season)
            .group_by(Achievement.milestone)
        ).all()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Failed to fetch existing achievements: {e}") from e
    return {milestone: best for milestone, best in rows}

def evaluate(db: Session, member_id: int, activity: StravaActivity, streams: ActivityStreams) -> EvaluationResult:
    season = season_for(activity.start_date)
    bests = current_bests(db, member_id, season)
    result = EvaluationResult(season=season)

    efforts = find_all_best_efforts(
        streams.time, streams.distance, [m.distance_meters for m in MILESTONES.values()]
    )
    for key, m in MILESTONES.items():
        effort = efforts[m.distance_meters]
        if effort is None:
            continue
        previous = bests.get(key)
        if previous is None:
            if beats_milestone(key, effort.time_seconds):
                result.new_achievements.append(
                    MilestoneResult(key, effort.time_seconds, effort.distance_meters))
        elif round_seconds(effort.time_seconds) < previous:
            result.new_improvements.append(
                MilestoneResult(key, effort.time_seconds, effort.distance_meters, previous))

    rows = [
        Achievement(
            member_id=member_id,
            milestone=r.milestone,
            season=season,
            strava_activity_id=activity.id,
            achieved_at=activity.start_date,
            time_seconds=round_seconds(r.time_seconds),
            distance=r.distance_meters,
            previous_time_seconds=r.previous_time_seconds,
        )
        for r in result.new_achievements + result.new_improvements
    ]
    if rows:
        # all or nothing: a partial insert would corrupt the current bests
        try:
            db.add_all(rows)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to insert achievements: {e}") from e

    upsert_processed_activity(db, member_id, activity, result.unlocked_keys)
    return result

def upsert_processed_activity(db: Session, member_id: int, activity: StravaActivity, unlocked: list[str]) -> None:
    """Visibility-only "last synced run" projection. Failures are logged, never raised."""
    pace = activity.moving_time / activity.distance * 1000 if activity.distance > 0 else 0
    values = {
        "member_id": member_id,
        "strava_activity_id": activity.id,
        "activity_name": activity.name,
        "activity_date": activity.start_date,
        "distance_meters": activity.distance,
        "moving_time_seconds": activity.moving_time,
        "pace_seconds_per_km": round_seconds(pace),
        "milestones_unlocked": ",".join(unlocked) or None,
        "processed_at": utcnow(),
    }
    stmt = upsert_insert(db, ProcessedActivity).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["strava_activity_id"],
        set_={k: v for k, v in values.items() if k != "strava_activity_id"},
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to upsert processed activity %s: %s", activity.id, e)
