"""
Addon manifest builder.
"""
from typing import Optional

from omg_tv.config import Settings, get_settings
from omg_tv.models.channel import CHANNEL_ID_PREFIX
from omg_tv.models.stremio import Manifest, ManifestCatalog


def build_manifest(genres: list[str], configuration_url: Optional[str] = None,
                   settings: Optional[Settings] = None) -> Manifest:
    """Manifest advertising one catalog filtered by the current genres."""
    settings = settings or get_settings()
    catalog = ManifestCatalog(
        id=settings.catalog_id,
        name=settings.catalog_name,
        extra=[
            {"name": "genre", "isRequired": False, "options": list(genres)},
            {"name": "search", "isRequired": False},
            {"name": "skip", "isRequired": False},
        ],
    )
    return Manifest(
        id=settings.addon_id,
        version=settings.app_version,
        name=settings.addon_name,
        description=settings.addon_description,
        idPrefixes=[CHANNEL_ID_PREFIX.rstrip("|")],
        catalogs=[catalog],
        behaviorHints={
            "configurable": True,
            "configurationURL": configuration_url,
            "reloadRequired": True,
        },
    )
