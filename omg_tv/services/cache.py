"""
SQLite-based persistence for the channel snapshot and EPG data.
The in-memory channel cache is loaded from here at startup.
"""
import aiosqlite
import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from omg_tv.config import get_settings
from omg_tv.models.channel import Channel
from omg_tv.models.epg import EPGChannel, Program
from omg_tv.services.display import normalize_id

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _to_db_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _from_db_time(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class CacheService:
    """Async SQLite store for channels and EPG programs."""

    def __init__(self, db_path: Optional[str] = None):
        settings = get_settings()
        self.db_path = db_path or settings.database_path
        self._ensure_directory()

    def _ensure_directory(self):
        """Create data directory if it doesn't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    async def initialize(self):
        """Create database tables if they don't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            # Channel snapshot, position keeps playlist order
            await db.execute("""
                CREATE TABLE IF NOT EXISTS channels (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    tvg_id TEXT,
                    data TEXT NOT NULL
                )
            """)

            # EPG channel definitions (icons)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS epg_channels (
                    id TEXT PRIMARY KEY,
                    display_name TEXT,
                    icon TEXT
                )
            """)

            # EPG programs table
            await db.execute("""
                CREATE TABLE IF NOT EXISTS programs (
                    id TEXT PRIMARY KEY,
                    channel_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    start_time TIMESTAMP NOT NULL,
                    stop_time TIMESTAMP NOT NULL,
                    category TEXT,
                    icon TEXT
                )
            """)

            await db.execute("CREATE INDEX IF NOT EXISTS idx_channels_position ON channels(position)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_programs_channel ON programs(channel_id)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_programs_time ON programs(start_time, stop_time)")

            await db.commit()

    # Channel methods
    async def replace_channels(self, channels: list[Channel]):
        """Replace the stored channel snapshot in one transaction."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM channels")
            await db.executemany(
                """INSERT OR REPLACE INTO channels (id, position, name, tvg_id, data)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (ch.id, position, ch.name, ch.tvg_id, ch.model_dump_json())
                    for position, ch in enumerate(channels)
                ]
            )
            await db.commit()
        logger.info(f"Stored channel snapshot with {len(channels)} channels")

    async def get_all_channels(self) -> list[Channel]:
        """Get the stored snapshot in playlist order."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT data FROM channels ORDER BY position")
            rows = await cursor.fetchall()
            return [Channel.model_validate_json(row[0]) for row in rows]

    # EPG methods
    async def store_epg_channels(self, channels: list[EPGChannel]):
        """Upsert EPG channel definitions keyed by normalized id."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany(
                """INSERT OR REPLACE INTO epg_channels (id, display_name, icon)
                   VALUES (?, ?, ?)""",
                [(normalize_id(ch.id), ch.display_name, ch.icon) for ch in channels if normalize_id(ch.id)]
            )
            await db.commit()

    async def store_epg_programs(self, programs: list[Program]):
        """Store EPG programs (upsert on channel/start/title)."""
        rows = []
        for program in programs:
            channel_id = normalize_id(program.channel_id)
            if not channel_id:
                continue
            start = _to_db_time(program.start)
            program_id = hashlib.md5(
                f"{channel_id}{start}{program.title}".encode()
            ).hexdigest()[:16]
            rows.append((
                program_id,
                channel_id,
                program.title,
                program.description,
                start,
                _to_db_time(program.stop),
                program.category,
                program.icon,
            ))

        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany(
                """INSERT OR REPLACE INTO programs
                   (id, channel_id, title, description, start_time, stop_time, category, icon)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                rows
            )
            await db.commit()
        return len(rows)

    def _row_to_program(self, row) -> Program:
        return Program(
            channel_id=row["channel_id"],
            title=row["title"],
            description=row["description"],
            start=_from_db_time(row["start_time"]),
            stop=_from_db_time(row["stop_time"]),
            category=row["category"],
            icon=row["icon"],
        )

    async def get_current_program(self, channel_id: str, now: datetime) -> Optional[Program]:
        """Get the program airing on a channel at the given instant."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            ts = _to_db_time(now)
            cursor = await db.execute("""
                SELECT * FROM programs
                WHERE channel_id = ? AND start_time <= ? AND stop_time > ?
                ORDER BY start_time DESC
                LIMIT 1
            """, (channel_id, ts, ts))
            row = await cursor.fetchone()
            return self._row_to_program(row) if row else None

    async def get_upcoming_programs(self, channel_id: str, now: datetime, limit: int = 2) -> list[Program]:
        """Get programs starting after the given instant."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("""
                SELECT * FROM programs
                WHERE channel_id = ? AND start_time > ?
                ORDER BY start_time ASC
                LIMIT ?
            """, (channel_id, _to_db_time(now), limit))
            rows = await cursor.fetchall()
            return [self._row_to_program(row) for row in rows]

    async def get_epg_icon(self, channel_id: str) -> Optional[str]:
        """Get the icon of an EPG channel."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT icon FROM epg_channels WHERE id = ?",
                (channel_id,)
            )
            row = await cursor.fetchone()
            return row[0] if row and row[0] else None

    async def prune_programs(self, before: datetime) -> int:
        """Delete programs that ended before the given instant."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM programs WHERE stop_time < ?",
                (_to_db_time(before),)
            )
            await db.commit()
            return cursor.rowcount

    async def get_epg_stats(self) -> dict:
        """Get EPG statistics."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM programs")
            programs = (await cursor.fetchone())[0]
            cursor = await db.execute("SELECT COUNT(DISTINCT channel_id) FROM programs")
            channels = (await cursor.fetchone())[0]
            return {"programs": programs, "channels": channels}

    async def clear_epg(self):
        """Clear all EPG data."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM programs")
            await db.execute("DELETE FROM epg_channels")
            await db.commit()


# Singleton
_cache_service: Optional[CacheService] = None


async def get_cache() -> CacheService:
    """Get or create cache service singleton."""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
        await _cache_service.initialize()
    return _cache_service
