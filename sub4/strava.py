import logging
from urllib.parse import urlencode

import httpx
from .config import settings
from .errors import ApiError, RateLimited
from .schemas import ActivityStreams, StravaActivity, TokenResponse

logger = logging.getLogger(__name__)

BASE = "https://www.strava.com/api/v3"
TOKEN_URL = "https://www.strava.com/oauth/token"
AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"

# tests swap this for an httpx.MockTransport
transport: httpx.AsyncBaseTransport | None = None

def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.STRAVA_HTTP_TIMEOUT, transport=transport)

def _check(r: httpx.Response, what: str) -> None:
    if r.status_code == 429:
        reset = r.headers.get("X-RateLimit-Reset")
        logger.warning("Strava rate limit hit while trying to %s (usage=%s)",
                       what, r.headers.get("X-RateLimit-Usage"))
        raise RateLimited(
            f"Rate limit exceeded while trying to {what}",
            reset_at=int(reset) if reset and reset.isdigit() else None,
        )
    if not r.is_success:
        raise ApiError(f"Failed to {what}: {r.text}", r.status_code, r.text)

def _auth(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}

def authorize_url() -> str:
    params = {
        "client_id": settings.STRAVA_CLIENT_ID,
        "redirect_uri": settings.STRAVA_REDIRECT_URI,
        "response_type": "code",
        "approval_prompt": "auto",
        "scope": "activity:read_all",
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"

async def exchange_code(code: str) -> TokenResponse:
    async with _client() as c:
        r = await c.post(TOKEN_URL, data={
            "client_id": settings.STRAVA_CLIENT_ID,
            "client_secret": settings.STRAVA_CLIENT_SECRET,
            "code": code,
            "grant_type": "authorization_code",
        })
        _check(r, "exchange code")
        return TokenResponse.model_validate(r.json())

async def refresh_token(refresh_token: str) -> TokenResponse:
    async with _client() as c:
        r = await c.post(TOKEN_URL, data={
            "client_id": settings.STRAVA_CLIENT_ID,
            "client_secret": settings.STRAVA_CLIENT_SECRET,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
        _check(r, "refresh token")
        return TokenResponse.model_validate(r.json())

async def fetch_activity(activity_id: int, access_token: str) -> StravaActivity:
    async with _client() as c:
        r = await c.get(f"{BASE}/activities/{activity_id}", headers=_auth(access_token))
        _check(r, "fetch activity")
        return StravaActivity.model_validate(r.json())

async def fetch_activity_streams(activity_id: int, access_token: str) -> ActivityStreams:
    async with _client() as c:
        r = await c.get(
            f"{BASE}/activities/{activity_id}/streams",
            headers=_auth(access_token),
            params={"keys": "time,distance", "key_by_type": "true"},
        )
        _check(r, "fetch activity streams")
        data = r.json()
        time = (data.get("time") or {}).get("data") or []
        distance = (data.get("distance") or {}).get("data") or []
        # manual activities come back without a distance stream
        if not time or not distance:
            return ActivityStreams()
        return ActivityStreams(time=time, distance=distance)

async def list_activities(access_token: str, after_ts: int, before_ts: int) -> list[StravaActivity]:
    async with _client() as c:
        r = await c.get(
            f"{BASE}/athlete/activities",
            headers=_auth(access_token),
            params={"after": after_ts, "before": before_ts, "per_page": 200},
        )
        _check(r, "list activities")
        return [StravaActivity.model_validate(a) for a in r.json()]
