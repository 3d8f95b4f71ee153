"""Data models for the Reddit feeds control panel."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import DateTime
from sqlalchemy import Index
from sqlalchemy import String
from sqlalchemy import Uuid
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column

from reddit_feeds.shared.database import Base


class SubredditWatchItem(BaseModel):
    """One subreddit-to-channel binding owned by a guild.

    Stored as JSON in Redis. ``id`` is only unique inside the owning
    guild's list, so the Redis key space is addressed by guild and
    subreddit rather than by id alone.
    """

    id: int
    subreddit: str
    channel: str = ""
    guild: str

    @property
    def index_field(self) -> str:
        """Field name of this item inside the per-subreddit index hash."""
        return f"{self.guild}:{self.id}"


class CPLogEntry(Base):
    """Control panel audit log entry.

    Append-only record of an administrative action performed through
    the control panel, attributed to the acting user and guild.
    """

    __tablename__ = "cp_log_entries"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        doc="Unique log entry identifier"
    )
    guild_id: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Discord guild snowflake ID the action applied to"
    )
    user_id: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Discord user snowflake ID of the actor"
    )
    username: Mapped[str] = mapped_column(
        String,
        nullable=False,
        doc="Username of the actor at time of the action"
    )
    action: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        doc="Human readable description of the action"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        doc="When the action was recorded"
    )

    __table_args__ = (
        Index("ix_cp_log_entries_guild_created", "guild_id", "created_at"),
    )
