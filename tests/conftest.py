"""
Pytest configuration and fixtures.

Settings are read at import time, so the environment is populated before any
sub4 module is imported. Every test gets a freshly created SQLite schema.
"""
import base64
import os
import tempfile
from datetime import datetime, timedelta, timezone

_tmp = tempfile.mkdtemp(prefix="sub4-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp}/test.db"
os.environ["STRAVA_CLIENT_ID"] = "12345"
os.environ["STRAVA_CLIENT_SECRET"] = "test-client-secret"
os.environ["STRAVA_VERIFY_TOKEN"] = "test-verify-token"
os.environ["STRAVA_REDIRECT_URI"] = "http://testserver/auth/strava/callback"
os.environ["TOKEN_ENCRYPTION_KEY"] = base64.b64encode(b"0123456789abcdef0123456789abcdef").decode()
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["CHALLENGE_TZ"] = "Australia/Brisbane"

import pytest

from sub4.db import SessionLocal, engine
from sub4.encryption import encrypt_token
from sub4.models import Base, Member, QueueItem
from sub4.schemas import ActivityStreams, StravaActivity


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_member(db):
    def _make(athlete_id=1001, name="Alice Runner", expires_in=timedelta(hours=6),
              joined_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
              access_token="access-alice", refresh_token="refresh-alice"):
        m = Member(
            strava_athlete_id=athlete_id,
            name=name,
            strava_access_token=encrypt_token(access_token) if access_token else None,
            strava_refresh_token=encrypt_token(refresh_token) if refresh_token else None,
            token_expires_at=datetime.now(timezone.utc) + expires_in if expires_in is not None else None,
            joined_at=joined_at,
        )
        db.add(m)
        db.commit()
        db.refresh(m)
        return m
    return _make


@pytest.fixture
def make_queue_item(db):
    def _make(activity_id=555, athlete_id=1001, attempts=0, max_attempts=3,
              status="pending", created_at=None, started_at=None):
        item = QueueItem(
            strava_activity_id=activity_id,
            strava_athlete_id=athlete_id,
            event_type="create",
            status=status,
            attempts=attempts,
            max_attempts=max_attempts,
            started_at=started_at,
        )
        if created_at is not None:
            item.created_at = created_at
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    return _make


def generate_stream(total_meters, pace_s_per_km, step_meters=10):
    """Uniform-pace stream sampled every `step_meters`."""
    n = int(total_meters // step_meters) + 1
    distance = [i * step_meters for i in range(n)]
    time = [i * step_meters * pace_s_per_km / 1000 for i in range(n)]
    return ActivityStreams(time=time, distance=distance)


def variable_stream(sections, step_meters=10):
    """Stream built from (meters, pace_s_per_km) sections run back to back."""
    time, distance = [0.0], [0.0]
    for meters, pace in sections:
        end = distance[-1] + meters
        while distance[-1] < end:
            d = min(distance[-1] + step_meters, end)
            time.append(time[-1] + (d - distance[-1]) * pace / 1000)
            distance.append(d)
    return ActivityStreams(time=time, distance=distance)


def run_activity(activity_id=555, start="2025-03-15T06:00:00Z", sport_type="Run", **kw):
    data = {
        "id": activity_id,
        "name": "Morning Run",
        "type": sport_type,
        "sport_type": sport_type,
        "start_date": start,
        "distance": 10000.0,
        "moving_time": 2400,
        "elapsed_time": 2460,
    }
    data.update(kw)
    return StravaActivity.model_validate(data)
