"""
EPG (Electronic Program Guide) data models.
"""
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from typing import Optional


class Program(BaseModel):
    """TV program from EPG data."""
    channel_id: str
    title: str
    description: Optional[str] = None
    start: datetime
    stop: datetime
    category: Optional[str] = None
    icon: Optional[str] = None

    @field_validator("start", "stop")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def is_live(self, now: Optional[datetime] = None) -> bool:
        """Check if program is airing at the given instant."""
        now = now or datetime.now(timezone.utc)
        return self.start <= now < self.stop


class EPGChannel(BaseModel):
    """Channel info from EPG data."""
    id: str
    display_name: Optional[str] = None
    icon: Optional[str] = None


class EPGImport(BaseModel):
    """Already-parsed EPG payload accepted by the admin import endpoint."""
    channels: list[EPGChannel] = Field(default_factory=list)
    programs: list[Program] = Field(default_factory=list)
