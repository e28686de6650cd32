import logging

from sqlalchemy.orm import Session

from .config import settings
from .db import upsert_insert
from .models import Member, QueueItem, QueueStatus
from .schemas import WebhookEvent
from .utils_time import utcnow

logger = logging.getLogger(__name__)

def enqueue_event(db: Session, event: WebhookEvent) -> bool:
    """
    Queue an activity-create event for the worker.

    Anything other than a create of an activity by a registered member is
    ignored. The insert is keyed on the activity id and silently skips
    duplicates, since Strava delivers at least once. Returns True only when a
    new queue row was written.
    """
    if event.object_type != "activity" or event.aspect_type != "create":
        logger.debug("Ignoring %s %s event for %s", event.object_type, event.aspect_type, event.object_id)
        return False

    member = db.query(Member).filter_by(strava_athlete_id=event.owner_id).first()
    if not member:
        logger.debug("Ignoring activity %s from unregistered athlete %s", event.object_id, event.owner_id)
        return False

    stmt = upsert_insert(db, QueueItem).values(
        strava_activity_id=event.object_id,
        strava_athlete_id=event.owner_id,
        event_type=event.aspect_type,
        status=QueueStatus.PENDING,
        attempts=0,
        max_attempts=settings.QUEUE_MAX_ATTEMPTS,
        created_at=utcnow(),
    ).on_conflict_do_nothing(index_elements=["strava_activity_id"])
    res = db.execute(stmt)
    db.commit()

    queued = res.rowcount == 1
    if queued:
        logger.info("Queued activity %s for athlete %s", event.object_id, event.owner_id)
    else:
        logger.info("Activity %s already queued", event.object_id)
    return queued
