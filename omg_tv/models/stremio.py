"""
Addon protocol models.
Field names follow the client's JSON keys (camelCase).
"""
from pydantic import BaseModel, Field
from typing import Optional


class StreamBehaviorHints(BaseModel):
    """Playback hints attached to a stream."""
    notWebReady: bool = False
    bingeGroup: Optional[str] = "tv"


class MetaBehaviorHints(BaseModel):
    """Display hints attached to a meta item."""
    isLive: bool = True


class CatalogEntry(BaseModel):
    """Catalog item (meta preview) for one channel."""
    id: str
    type: str = "tv"
    name: str
    poster: Optional[str] = None
    background: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    genre: list[str] = Field(default_factory=list)
    posterShape: str = "square"
    releaseInfo: str = "LIVE"
    behaviorHints: MetaBehaviorHints = Field(default_factory=MetaBehaviorHints)


class StreamDescriptor(BaseModel):
    """One playable route for a channel."""
    name: str
    title: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    behaviorHints: StreamBehaviorHints = Field(default_factory=StreamBehaviorHints)
    meta: Optional[CatalogEntry] = None


class ResolvedStream(BaseModel):
    """Stream candidate returned by the resolver script."""
    name: str
    title: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)

    def to_descriptor(self) -> StreamDescriptor:
        return StreamDescriptor(
            name=self.name,
            title=self.title,
            url=self.url,
            headers=dict(self.headers),
        )


class StreamDetails(BaseModel):
    """Input of the stream proxy for a single stream."""
    name: str
    original_name: Optional[str] = None
    url: str
    headers: dict[str, str] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.original_name or self.name


class CatalogPage(BaseModel):
    """Catalog endpoint response."""
    metas: list[CatalogEntry] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)


class ManifestCatalog(BaseModel):
    """Catalog definition in manifest."""
    type: str = "tv"
    id: str
    name: str
    extra: list[dict] = Field(default_factory=list)


class Manifest(BaseModel):
    """Addon manifest."""
    id: str
    version: str
    name: str
    description: str
    resources: list[str] = ["catalog", "stream", "meta"]
    types: list[str] = ["tv"]
    idPrefixes: list[str] = ["tv"]
    catalogs: list[ManifestCatalog]
    behaviorHints: dict = Field(default_factory=dict)
