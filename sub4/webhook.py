import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .config import settings
from .db import get_session
from .ingest import enqueue_event
from .schemas import WebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")

@router.get("")
async def verify_strava(
    mode: str | None = Query(None, alias="hub.mode"),
    challenge: str | None = Query(None, alias="hub.challenge"),
    verify_token: str | None = Query(None, alias="hub.verify_token"),
):
    if mode != "subscribe" or verify_token != settings.STRAVA_VERIFY_TOKEN:
        return JSONResponse(status_code=403, content={"error": "Forbidden"})
    # Strava expects this exact key back
    return {"hub.challenge": challenge}

@router.post("")
async def receive_event(request: Request, db: Session = Depends(get_session)):
    # Always 200: any error response makes Strava retry the delivery
    try:
        event = WebhookEvent.model_validate(await request.json())
        enqueue_event(db, event)
    except ValueError as e:
        # bad JSON or a pydantic ValidationError
        logger.warning("Ignoring malformed webhook payload: %s", e)
    except Exception:
        db.rollback()
        logger.exception("Webhook event could not be queued")
    return {"received": True}
