# sub4/models.py
from datetime import datetime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import (
    String, Integer, BigInteger, DateTime, Float, Text,
    ForeignKey, UniqueConstraint, Index
)
from .utils_time import utcnow

class Base(DeclarativeBase):
    pass

class QueueStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

class Member(Base):
    __tablename__ = "members"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    profile_photo_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    strava_athlete_id: Mapped[int] = mapped_column(BigInteger, unique=True)
    # encrypted at rest, see encryption.py
    strava_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    strava_refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_deauthorized(self) -> bool:
        return not (self.strava_access_token and self.strava_refresh_token and self.token_expires_at)

class QueueItem(Base):
    __tablename__ = "webhook_queue"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    strava_activity_id: Mapped[int] = mapped_column(BigInteger, unique=True)
    strava_athlete_id: Mapped[int] = mapped_column(BigInteger)
    event_type: Mapped[str] = mapped_column(String(32))

    status: Mapped[str] = mapped_column(String(16), default=QueueStatus.PENDING)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_webhook_queue_status_created", "status", "created_at"),
    )

class Achievement(Base):
    __tablename__ = "achievements"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), index=True)
    milestone: Mapped[str] = mapped_column(String(16))
    season: Mapped[int] = mapped_column(Integer)
    strava_activity_id: Mapped[int] = mapped_column(BigInteger)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    time_seconds: Mapped[int] = mapped_column(Integer)
    distance: Mapped[float] = mapped_column(Float)
    previous_time_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_achievements_member_season", "member_id", "season"),
    )

class ProcessedActivity(Base):
    __tablename__ = "processed_activities"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), index=True)
    strava_activity_id: Mapped[int] = mapped_column(BigInteger)
    activity_name: Mapped[str] = mapped_column(String(255))
    activity_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    distance_meters: Mapped[float] = mapped_column(Float)
    moving_time_seconds: Mapped[int] = mapped_column(Integer)
    pace_seconds_per_km: Mapped[int] = mapped_column(Integer)
    milestones_unlocked: Mapped[str | None] = mapped_column(String(64), nullable=True)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("strava_activity_id", name="uq_processed_activity"),
    )
