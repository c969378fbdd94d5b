"""SQLAlchemy ORM model for short URL records.

Data Model Layout
=================
::
    urls table
    ├─ short_url (VARCHAR(16) PRIMARY KEY)
    ├─ long_url (TEXT NOT NULL)
    ├─ click_count (BIGINT DEFAULT 0)
    └─ created_at (TIMESTAMPTZ, DEFAULT NOW())

The column is named ``short_url`` to match the existing table; the mapped
attribute is ``short_code``.

Key Behaviours
===============
- short_url is the primary key, so inserts of an existing code conflict
  and are turned into no-ops by the store.
- click_count only ever grows, through a single UPDATE ... + 1 statement.
- created_at is set by the database at insertion and never updated.
- Rows are never deleted by this service.

Classes:
    ShortURL:  Mapping from a short code to its long URL with click count.
"""

import datetime

from sqlalchemy import BigInteger, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortlink.codec import MAX_ALIAS_LENGTH
from shortlink.database import Base

__all__ = ["ShortURL"]


class ShortURL(Base):
    __tablename__ = "urls"

    short_code: Mapped[str] = mapped_column("short_url", String(MAX_ALIAS_LENGTH), primary_key=True)
    long_url: Mapped[str] = mapped_column(Text, nullable=False)
    click_count: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ShortURL(short_code='{self.short_code}', click_count={self.click_count})>"
