"""
Display helpers shared by the catalog and stream paths.
Pure functions: channel name cleanup, EPG id normalization, language tags.
"""
import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo

# Event timestamps embedded in channel names, e.g. "12/05/24 - 20:45 (CET)"
TIMESTAMP_PATTERN = re.compile(r'\d{2}/\d{2}/\d{2}\s*-\s*\d{2}:\d{2}\s*\(CET\)')
LEADING_YEAR_PATTERN = re.compile(r'^20\d{2}\s+')
DISALLOWED_CHARS_PATTERN = re.compile(r'[^a-zA-Z0-9\s-]')
WHITESPACE_PATTERN = re.compile(r'\s+')
# " - " separator, or a dangling " -" left behind by a removed timestamp
SEPARATOR_PATTERN = re.compile(r'\s-(?:\s|$)')
NON_ID_CHARS_PATTERN = re.compile(r'[^\w.]', re.ASCII)

ELLIPSIS = "..."
MAX_IMAGE_NAME_LENGTH = 30
TRUNCATED_NAME_LENGTH = 27
# Shorter names ending in "..." carry user punctuation, not our truncation marker
MIN_TRUNCATED_BODY_LENGTH = 20
EMPTY_NAME = "No Name"


def normalize_id(value: Optional[str]) -> str:
    """Normalize an EPG linkage id for lookups."""
    if not value:
        return ""
    return NON_ID_CHARS_PATTERN.sub("", value.lower()).strip()


def _truncate_words(text: str, limit: int) -> str:
    """Longest whole-word prefix of text that fits in limit characters."""
    result = ""
    for word in text.split(" "):
        candidate = f"{result} {word}" if result else word
        if len(candidate) > limit:
            break
        result = candidate
    # A single oversized first word is cut hard
    return result or text[:limit]


def clean_name_for_image(name: Optional[str]) -> str:
    """
    Reduce a channel name to a short label for placeholder artwork.

    Removes event timestamps, a leading year and punctuation, keeps the
    part before the first " - " and shortens long names on a word boundary.
    """
    cleaned = TIMESTAMP_PATTERN.sub("", name or "").strip()
    cleaned = LEADING_YEAR_PATTERN.sub("", cleaned)

    if _is_truncation_result(cleaned):
        return cleaned

    cleaned = _strip_name(cleaned)
    if len(cleaned) > MAX_IMAGE_NAME_LENGTH:
        cleaned = _truncate_words(cleaned, TRUNCATED_NAME_LENGTH) + ELLIPSIS

    return cleaned or EMPTY_NAME


def _strip_name(text: str) -> str:
    text = DISALLOWED_CHARS_PATTERN.sub("", text)
    text = WHITESPACE_PATTERN.sub(" ", text).strip()
    return SEPARATOR_PATTERN.split(text, maxsplit=1)[0].strip()


def _is_truncation_result(text: str) -> bool:
    """True for a previous output of the word truncation, kept as is."""
    if not text.endswith(ELLIPSIS):
        return False
    body = text[:-len(ELLIPSIS)]
    return (
        MIN_TRUNCATED_BODY_LENGTH <= len(body) <= TRUNCATED_NAME_LENGTH
        and _strip_name(body) == body
    )


def placeholder_image_url(name: Optional[str], base_url: str) -> str:
    """Generated artwork URL carrying the cleaned channel name."""
    return f"{base_url}&text={quote_plus(clean_name_for_image(name))}"


def language_tag(language: Optional[str], default_language: str) -> str:
    """Three letter uppercase tag, e.g. 'Italiana' -> 'ITA'."""
    return (language or default_language)[:3].upper()


def format_time(value: datetime, tz_name: str = "UTC") -> str:
    """Render a program boundary as HH:MM in the configured timezone."""
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return value.astimezone(tz).strftime("%H:%M")
