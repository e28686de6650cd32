"""
Queue worker: drains `webhook_queue` in small batches on a fixed schedule.

Per item: pending -> processing -> completed | pending (retry) | failed.

Items are handled one at a time, oldest first. Moving a row to `processing`
(and bumping `attempts`) is committed before any Strava call, so a crash
mid-item leaves it visibly `processing` until the stale reaper picks it up.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .classify import is_run
from .config import settings
from .errors import InvalidInput, NotAuthorized, NotFound, RateLimited
from .evaluate import evaluate
from .models import Member, QueueItem, QueueStatus
from .strava import fetch_activity, fetch_activity_streams
from .tokens import get_valid_token
from .utils_time import as_utc, utcnow

logger = logging.getLogger(__name__)

# retrying cannot fix these; the item fails on the first occurrence
NON_RETRYABLE = (NotFound, NotAuthorized, InvalidInput)

@dataclass
class RunSummary:
    processed: int = 0
    failed: int = 0
    rate_limited: int = 0
    reaped: int = 0

def reap_stale(db: Session) -> int:
    """Release items left in `processing` by a crashed run. Attempts are untouched."""
    cutoff = utcnow() - timedelta(minutes=settings.PROCESSING_STALE_MINUTES)
    stale = (
        db.query(QueueItem)
        .filter(QueueItem.status == QueueStatus.PROCESSING, QueueItem.started_at < cutoff)
        .all()
    )
    for item in stale:
        item.status = QueueStatus.FAILED if item.attempts >= item.max_attempts else QueueStatus.PENDING
        item.error_message = f"Reaped: stuck in processing for over {settings.PROCESSING_STALE_MINUTES} minutes"
        logger.warning("Reaped stale queue item %s -> %s", item.id, item.status)
    db.commit()
    return len(stale)

def fetch_pending(db: Session, limit: int) -> list[QueueItem]:
    return (
        db.query(QueueItem)
        .filter(QueueItem.status == QueueStatus.PENDING)
        .order_by(QueueItem.created_at, QueueItem.id)
        .limit(limit)
        .all()
    )

async def process_queue(db: Session, batch_size: int | None = None) -> RunSummary:
    """
    One scheduled run. Per-item failures only change queue status; an
    exception escapes only if the queue itself cannot be read.
    """
    summary = RunSummary()
    summary.reaped = reap_stale(db)
    items = fetch_pending(db, batch_size or settings.QUEUE_BATCH_SIZE)

    for item in items:
        try:
            outcome = await process_item(db, item)
        except SQLAlchemyError:
            # status bookkeeping itself failed; the reaper will release the row
            db.rollback()
            logger.exception("Could not record outcome for queue item %s", item.id)
            summary.failed += 1
            continue
        if outcome == QueueStatus.COMPLETED:
            summary.processed += 1
        elif outcome == "rate_limited":
            summary.rate_limited += 1
        else:
            summary.failed += 1

    logger.info(
        "Queue run: processed=%s failed=%s rate_limited=%s reaped=%s",
        summary.processed, summary.failed, summary.rate_limited, summary.reaped,
    )
    return summary

async def process_item(db: Session, item: QueueItem) -> str:
    """
    Run one queue item through token -> activity -> streams -> evaluation.
    Returns the outcome: a QueueStatus value or "rate_limited".
    """
    item.status = QueueStatus.PROCESSING
    item.attempts += 1
    item.started_at = utcnow()
    db.commit()

    try:
        note = await _handle(db, item)
    except RateLimited as e:
        db.rollback()
        # throttling is not a processing defect: give the attempt back
        item.status = QueueStatus.PENDING
        item.attempts -= 1
        item.error_message = f"Rate limited: {e}"
        db.commit()
        logger.warning("Queue item %s rate limited (reset_at=%s)", item.id, e.reset_at)
        return "rate_limited"
    except Exception as e:
        db.rollback()
        item.error_message = str(e) or type(e).__name__
        if isinstance(e, NON_RETRYABLE) or item.attempts >= item.max_attempts:
            item.status = QueueStatus.FAILED
            logger.error("Queue item %s failed permanently after %s attempts: %s",
                         item.id, item.attempts, item.error_message)
        else:
            item.status = QueueStatus.PENDING
            logger.warning("Queue item %s failed (attempt %s/%s), will retry: %s",
                           item.id, item.attempts, item.max_attempts, item.error_message)
        db.commit()
        return item.status

    item.status = QueueStatus.COMPLETED
    item.processed_at = utcnow()
    item.error_message = note
    db.commit()
    return item.status

async def _handle(db: Session, item: QueueItem) -> str | None:
    member = db.query(Member).filter_by(strava_athlete_id=item.strava_athlete_id).first()
    if not member:
        raise NotFound(f"Member not found for athlete {item.strava_athlete_id}")

    token = await get_valid_token(db, member.id)
    activity = await fetch_activity(item.strava_activity_id, token)

    # legitimate skips complete the item, they never count as failures
    if not is_run(activity.sport_type, activity.type):
        return "Skipped: not a run activity"
    if as_utc(activity.start_date) < as_utc(member.joined_at):
        return "Skipped: activity before join date"

    streams = await fetch_activity_streams(item.strava_activity_id, token)
    result = evaluate(db, member.id, activity, streams)
    return result.summary()
