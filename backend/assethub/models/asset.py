"""
AssetHub Backend — Folder and Note SQLAlchemy Models
=====================================================

What:  ORM models for the two shareable asset kinds.
Why:   Folders group notes; both are owned by exactly one user.

Table Design Rationale:
    - owner_id is NOT NULL: ownership is exclusive and never absent.
    - A note's owner may differ from its folder's owner (a write-grantee on
      the folder can create notes inside it).
    - notes.folder_id cascades on delete, so dropping a folder drops its notes.
    - owner_id indexes serve the list-by-owner queries.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from assethub.database import Base


class Folder(Base):
    __tablename__ = "folders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (Index("idx_folders_owner", "owner_id"),)

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )
    folder_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("folders.id", ondelete="CASCADE"),
        nullable=False,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_notes_owner", "owner_id"),
        Index("idx_notes_folder", "folder_id"),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title}', folder_id={self.folder_id})>"
