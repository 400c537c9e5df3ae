"""
Channel and stream source data models.
Channel records arrive already normalized from the playlist generator.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional


CHANNEL_ID_PREFIX = "tv|"


class StreamUrl(BaseModel):
    """One declared stream URL of a channel."""
    url: str
    name: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("headers", mode="before")
    @classmethod
    def _missing_headers(cls, value):
        return {} if value is None else value


class Channel(BaseModel):
    """Live TV channel as stored in the channel cache."""
    id: str
    name: str
    genre: list[str] = Field(default_factory=list)
    poster: Optional[str] = None
    background: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    stream_urls: list[StreamUrl] = Field(default_factory=list)
    tvg_id: Optional[str] = None
    tvg_chno: Optional[str] = None

    @field_validator("genre", mode="before")
    @classmethod
    def _wrap_single_genre(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value else []
        return value

    @field_validator("tvg_chno", mode="before")
    @classmethod
    def _chno_as_text(cls, value):
        if value is None or value == "":
            return None
        return str(value)

    @property
    def key(self) -> str:
        """Channel id without the addon type prefix."""
        return self.id.split("|", 1)[1] if "|" in self.id else self.id

    @property
    def missing_artwork(self) -> bool:
        return not (self.poster and self.background and self.logo)


class ChannelImport(BaseModel):
    """Channel snapshot accepted by the admin import endpoint."""
    channels: list[Channel] = Field(default_factory=list)
