"""
Per-request addon configuration.
Decoded from the base64 path segment or the query string of addon URLs.
"""
import base64
import binascii
import logging
from typing import Optional
from urllib.parse import parse_qsl, urlencode

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

logger = logging.getLogger(__name__)


class UserConfig(BaseModel):
    """Options a user picked on the configuration page."""
    model_config = ConfigDict(extra="ignore")

    m3u: Optional[str] = None
    epg: Optional[str] = None
    epg_enabled: bool = False
    language: Optional[str] = None
    proxy: Optional[str] = None
    proxy_pwd: Optional[str] = None
    force_proxy: bool = False
    resolver_enabled: bool = False
    resolver_script: Optional[str] = None
    resolver_update_interval: Optional[str] = None
    python_script_url: Optional[str] = None
    python_update_interval: Optional[str] = None

    @field_validator("epg_enabled", "force_proxy", "resolver_enabled", mode="before")
    @classmethod
    def _parse_flag(cls, value):
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)

    @field_validator(
        "m3u", "epg", "language", "proxy", "proxy_pwd", "resolver_script",
        "resolver_update_interval", "python_script_url", "python_update_interval",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def proxy_configured(self) -> bool:
        return bool(self.proxy and self.proxy_pwd)

    @property
    def resolver_active(self) -> bool:
        return bool(self.resolver_enabled and self.resolver_script)

    @classmethod
    def from_params(cls, params: dict) -> "UserConfig":
        """Build from a flat mapping, falling back to defaults on bad input."""
        try:
            return cls.model_validate(dict(params))
        except ValidationError as e:
            logger.warning(f"Invalid user configuration, using defaults: {e}")
            return cls()

    @classmethod
    def decode(cls, encoded: str) -> "UserConfig":
        """Decode a base64 encoded query string."""
        padded = encoded + "=" * (-len(encoded) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.replace("+", "-").replace("/", "_"))
            query = raw.decode("utf-8")
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Could not decode user configuration: {e}")
            return cls()
        return cls.from_params(dict(parse_qsl(query)))

    def encode(self) -> str:
        """Inverse of decode, used to build configuration URLs."""
        params = {}
        for key, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, bool):
                if not value:
                    continue
                value = "true"
            params[key] = value
        return base64.b64encode(urlencode(params).encode("utf-8")).decode("ascii")
