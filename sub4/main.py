import logging

from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .db import engine, get_session
from . import models
from .errors import ApiError
from .models import Member
from .security import require_cron
from .strava import authorize_url, exchange_code
from .tokens import store_tokens
from .utils_time import utcnow
from .webhook import router as webhook_router
from .worker import process_queue

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Sub4 Milestones API")
app.include_router(webhook_router)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

@app.get("/health")
def health(db: Session = Depends(get_session)):
    timestamp = utcnow().isoformat()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "timestamp": timestamp, "database": "error", "error": str(e)},
        )
    return {"status": "healthy", "timestamp": timestamp, "database": "connected"}

@app.get("/cron/process-queue")
async def cron_process_queue(
    _: None = Depends(require_cron),
    db: Session = Depends(get_session),
):
    try:
        summary = await process_queue(db)
    except SQLAlchemyError:
        logger.exception("Queue processing failed")
        return JSONResponse(status_code=500, content={"error": "Queue processing failed"})
    return {"processed": summary.processed, "failed": summary.failed}

@app.get("/auth/strava/start")
async def auth_start():
    return RedirectResponse(authorize_url())

@app.get("/auth/strava/callback")
async def auth_cb(
    code: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_session),
):
    if error:
        logger.warning("Strava OAuth error: %s", error)
        raise HTTPException(status_code=400, detail="auth_denied")
    if not code:
        raise HTTPException(status_code=400, detail="missing_code")

    try:
        token = await exchange_code(code)
    except ApiError as e:
        logger.error("Strava code exchange failed with status %s", e.status_code)
        raise HTTPException(status_code=502, detail="auth_failed")
    if token.athlete is None:
        raise HTTPException(status_code=502, detail="auth_failed")

    athlete = token.athlete
    m = db.query(Member).filter_by(strava_athlete_id=athlete.id).first()
    if not m:
        # joined_at defaults on first insert only
        m = Member(strava_athlete_id=athlete.id)
    m.name = athlete.display_name
    m.profile_photo_url = athlete.profile or athlete.profile_medium
    store_tokens(m, token)

    db.add(m)
    db.commit()
    logger.info("Strava connected for athlete %s (member %s)", athlete.id, m.id)
    return {"ok": True, "member_id": m.id}
