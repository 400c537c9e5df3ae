"""
Configuration management for the OMG TV addon backend.
Uses pydantic-settings for environment variable loading.
"""
import sys
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    app_name: str = "OMG TV"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 10000

    # CORS Configuration
    # Addon clients (desktop, mobile, TV) do not send a stable origin
    cors_origins: list[str] = ["*"]

    # Rate Limiting
    rate_limit_per_minute: int = 100
    admin_rate_limit_per_minute: int = 5

    # Addon manifest
    addon_id: str = "org.omg.tv"
    addon_name: str = "OMG TV"
    addon_description: str = "Live TV channels with EPG, resolver and proxy support"
    catalog_id: str = "omg_tv"
    catalog_name: str = "OMG TV"

    # Catalog presentation
    default_language: str = "Italiana"
    default_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    catalog_page_size: int = 100
    placeholder_image_base: str = "https://dummyimage.com/500x500/590b8a/ffffff.jpg"
    placeholder_video_url: str = (
        "https://static.vecteezy.com/system/resources/previews/001/803/236/mp4/"
        "no-signal-bad-tv-free-video.mp4"
    )

    # EPG
    epg_upcoming_limit: int = 2
    epg_timezone: str = "UTC"

    # Database
    database_path: str = "data/omg_tv.db"

    # Admin API key for protected endpoints
    admin_api_key: str = "dev-admin-key"

    # External scripts
    python_executable: str = sys.executable
    resolver_script_path: str = "data/resolver_script.py"
    resolver_timeout: float = 30.0
    resolver_cache_ttl: int = 300  # 5 minutes
    generator_script_path: str = "data/generator_script.py"
    generator_output_path: str = "data/generated_channels.json"
    generator_timeout: float = 300.0
    download_timeout: float = 30.0

    # Stream proxy
    proxy_health_check: bool = True
    proxy_check_timeout: float = 5.0
    proxy_health_ttl: int = 60

    # Reserved channel key that triggers playlist regeneration
    regenerate_channel_id: str = "rigeneraplaylistpython"

    # Pydantic V2 configuration
    model_config = SettingsConfigDict(env_prefix="OMG_", env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
