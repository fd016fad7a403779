"""
AssetHub Backend — User SQLAlchemy Model
=========================================

What:  ORM model representing the `users` table.
Why:   Users own assets, receive grants and belong to teams.
Who:   Read by the Store (role lookups, grantee checks, owner names).

The role is global and static: `manager` users may create teams and be
appointed team managers, `member` users may not. Credentials live with the
external auth provider, so no password column exists here.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from assethub.database import Base


ROLE_MANAGER = "manager"
ROLE_MEMBER = "member"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Values: 'manager' | 'member'
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ROLE_MEMBER,
        server_default=text("'member'"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (CheckConstraint("role IN ('manager', 'member')", name="ck_users_role"),)

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"
