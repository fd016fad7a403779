"""
AssetHub Backend — Share Grant SQLAlchemy Models
=================================================

What:  ORM models for `folder_shares` and `note_shares`.
Why:   A grant gives one user read or write access to one asset.

Table Design Rationale:
    - Composite primary key (asset, grantee): at most one grant per pair,
      re-sharing is an upsert that overwrites the level.
    - shared_by records who issued the grant (always the owner today).
    - grantee index serves the list-shared-with queries.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from assethub.database import Base


ACCESS_READ = "read"
ACCESS_WRITE = "write"


class FolderShare(Base):
    __tablename__ = "folder_shares"

    folder_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("folders.id", ondelete="CASCADE"), primary_key=True
    )
    shared_with_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    access_level: Mapped[str] = mapped_column(String(10), nullable=False)
    shared_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint("access_level IN ('read', 'write')", name="ck_folder_shares_level"),
        Index("idx_folder_shares_user", "shared_with_user_id"),
    )


class NoteShare(Base):
    __tablename__ = "note_shares"

    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True
    )
    shared_with_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    access_level: Mapped[str] = mapped_column(String(10), nullable=False)
    shared_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint("access_level IN ('read', 'write')", name="ck_note_shares_level"),
        Index("idx_note_shares_user", "shared_with_user_id"),
    )
