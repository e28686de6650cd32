from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

class WebhookEvent(BaseModel):
    # Strava sends {object_type, object_id, aspect_type, updates, owner_id, ...}
    model_config = ConfigDict(extra="ignore")

    object_type: Literal["activity", "athlete"]
    object_id: int
    aspect_type: Literal["create", "update", "delete"]
    owner_id: int
    subscription_id: int | None = None
    event_time: int | None = None
    updates: dict[str, Any] | None = None

class StravaAthlete(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    firstname: str | None = None
    lastname: str | None = None
    username: str | None = None
    profile: str | None = None
    profile_medium: str | None = None

    @property
    def display_name(self) -> str:
        full = f"{(self.firstname or '').strip()} {(self.lastname or '').strip()}".strip()
        return full or self.username or f"Strava #{self.id}"

class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str
    expires_at: int  # unix seconds
    athlete: StravaAthlete | None = None

class StravaActivity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    type: str | None = None
    sport_type: str | None = None
    start_date: datetime
    start_date_local: datetime | None = None
    distance: float = 0.0  # meters
    moving_time: int = 0  # seconds
    elapsed_time: int = 0

class ActivityStreams(BaseModel):
    time: list[float] = Field(default_factory=list)
    distance: list[float] = Field(default_factory=list)
