"""Login session model backing the session cookie."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from emdr.db.base import Base


class LoginSession(Base):
    """Server-side session row. The cookie token references it by id."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the session is past its expiry date."""
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        # SQLite drops tzinfo on round trip
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now
