"""
AssetHub Backend — SQLAlchemy Store Implementation
===================================================

What:  Async SQLAlchemy implementation of the Store repositories.
Why:   PostgreSQL (asyncpg) is the system of record; SQLite (aiosqlite) runs
       the same code in tests.
How:   Every repository shares the request's AsyncSession. Driver errors are
       translated into DatabaseError at this boundary so services only ever
       see the application taxonomy.

Concurrency:
    No application-level locks. Uniqueness of grants and team rows is enforced
    by primary keys; grant upserts use the dialect's native ON CONFLICT so two
    concurrent shares of the same pair converge on the last writer.
"""

import functools
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assethub.exceptions import DatabaseError
from assethub.models import (
    Folder,
    FolderShare,
    Note,
    NoteShare,
    Team,
    TeamManager,
    TeamMember,
    User,
)
from assethub.schemas.common import AssetType
from assethub.schemas.share import ShareGrantResponse
from assethub.store.base import (
    FolderRepository,
    NoteRepository,
    ShareRepository,
    Store,
    TeamRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


def translate_errors(func):
    """Wrap a repository coroutine so SQLAlchemy failures surface as DatabaseError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error("Store operation %s failed: %s", func.__qualname__, e, exc_info=True)
            raise DatabaseError(
                context={"operation": func.__qualname__, "error_type": type(e).__name__},
            ) from e

    return wrapper


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Repository:
    def __init__(self, session: AsyncSession):
        self.session = session


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════

class SqlUserRepository(_Repository, UserRepository):

    @translate_errors
    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    @translate_errors
    async def get_many(self, user_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, User]:
        if not user_ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(set(user_ids))))
        return {user.id: user for user in result.scalars().all()}

    @translate_errors
    async def create(self, username: str, email: str, role: str) -> User:
        user = User(username=username, email=email, role=role)
        self.session.add(user)
        await self.session.flush()
        return user


# ══════════════════════════════════════════════════════════════════════════
# Teams
# ══════════════════════════════════════════════════════════════════════════

class SqlTeamRepository(_Repository, TeamRepository):

    @translate_errors
    async def get(self, team_id: uuid.UUID) -> Optional[Team]:
        return await self.session.get(Team, team_id)

    @translate_errors
    async def create(self, name: str, created_by: uuid.UUID) -> Team:
        team = Team(name=name, created_by=created_by)
        self.session.add(team)
        await self.session.flush()
        return team

    @translate_errors
    async def add_manager(self, team_id: uuid.UUID, user_id: uuid.UUID) -> None:
        self.session.add(TeamManager(team_id=team_id, user_id=user_id))
        await self.session.flush()

    @translate_errors
    async def remove_manager(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            delete(TeamManager).where(
                TeamManager.team_id == team_id, TeamManager.user_id == user_id
            )
        )
        return result.rowcount > 0

    @translate_errors
    async def add_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> None:
        self.session.add(TeamMember(team_id=team_id, user_id=user_id))
        await self.session.flush()

    @translate_errors
    async def remove_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            delete(TeamMember).where(
                TeamMember.team_id == team_id, TeamMember.user_id == user_id
            )
        )
        return result.rowcount > 0

    @translate_errors
    async def list_managers(self, team_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.session.execute(
            select(TeamManager.user_id)
            .where(TeamManager.team_id == team_id)
            .order_by(TeamManager.added_at, TeamManager.user_id)
        )
        return list(result.scalars().all())

    @translate_errors
    async def list_members(self, team_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.session.execute(
            select(TeamMember.user_id)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.added_at, TeamMember.user_id)
        )
        return list(result.scalars().all())

    @translate_errors
    async def is_team_manager(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(
                exists().where(TeamManager.team_id == team_id, TeamManager.user_id == user_id)
            )
        )
        return bool(result.scalar())

    @translate_errors
    async def is_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(
                exists().where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
            )
        )
        return bool(result.scalar())

    @translate_errors
    async def list_user_teams(self, user_id: uuid.UUID) -> List[Team]:
        managed = select(TeamManager.team_id).where(TeamManager.user_id == user_id)
        joined = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        result = await self.session.execute(
            select(Team)
            .where(or_(Team.id.in_(managed), Team.id.in_(joined)))
            .order_by(Team.created_at, Team.id)
        )
        return list(result.scalars().all())

    @translate_errors
    async def list_managed_team_ids(self, user_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.session.execute(
            select(TeamManager.team_id).where(TeamManager.user_id == user_id)
        )
        return list(result.scalars().all())


# ══════════════════════════════════════════════════════════════════════════
# Folders
# ══════════════════════════════════════════════════════════════════════════

class SqlFolderRepository(_Repository, FolderRepository):

    @translate_errors
    async def get(self, folder_id: uuid.UUID) -> Optional[Folder]:
        return await self.session.get(Folder, folder_id)

    @translate_errors
    async def create(self, name: str, description: str, owner_id: uuid.UUID) -> Folder:
        folder = Folder(name=name, description=description, owner_id=owner_id)
        self.session.add(folder)
        await self.session.flush()
        return folder

    @translate_errors
    async def update(
        self, folder_id: uuid.UUID, name: str, description: str
    ) -> Optional[Folder]:
        folder = await self.session.get(Folder, folder_id)
        if folder is None:
            return None
        folder.name = name
        folder.description = description
        folder.updated_at = _utcnow()
        await self.session.flush()
        return folder

    @translate_errors
    async def delete(self, folder_id: uuid.UUID) -> List[uuid.UUID]:
        # Explicit cascade: SQLite only honours ON DELETE with a pragma
        result = await self.session.execute(select(Note.id).where(Note.folder_id == folder_id))
        note_ids = list(result.scalars().all())
        if note_ids:
            await self.session.execute(delete(NoteShare).where(NoteShare.note_id.in_(note_ids)))
            await self.session.execute(delete(Note).where(Note.id.in_(note_ids)))
        await self.session.execute(delete(FolderShare).where(FolderShare.folder_id == folder_id))
        await self.session.execute(delete(Folder).where(Folder.id == folder_id))
        return note_ids

    @translate_errors
    async def check_ownership(self, folder_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(exists().where(Folder.id == folder_id, Folder.owner_id == user_id))
        )
        return bool(result.scalar())

    @translate_errors
    async def list_by_owner(self, owner_id: uuid.UUID) -> List[Folder]:
        result = await self.session.execute(
            select(Folder).where(Folder.owner_id == owner_id).order_by(Folder.created_at)
        )
        return list(result.scalars().all())

    @translate_errors
    async def list_shared_with(self, user_id: uuid.UUID) -> List[Tuple[Folder, str]]:
        result = await self.session.execute(
            select(Folder, FolderShare.access_level)
            .join(FolderShare, FolderShare.folder_id == Folder.id)
            .where(FolderShare.shared_with_user_id == user_id)
            .order_by(Folder.created_at)
        )
        return [(folder, level) for folder, level in result.all()]


# ══════════════════════════════════════════════════════════════════════════
# Notes
# ══════════════════════════════════════════════════════════════════════════

class SqlNoteRepository(_Repository, NoteRepository):

    @translate_errors
    async def get(self, note_id: uuid.UUID) -> Optional[Note]:
        return await self.session.get(Note, note_id)

    @translate_errors
    async def create(
        self, title: str, body: str, folder_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Note:
        note = Note(title=title, body=body, folder_id=folder_id, owner_id=owner_id)
        self.session.add(note)
        await self.session.flush()
        return note

    @translate_errors
    async def update(self, note_id: uuid.UUID, title: str, body: str) -> Optional[Note]:
        note = await self.session.get(Note, note_id)
        if note is None:
            return None
        note.title = title
        note.body = body
        note.updated_at = _utcnow()
        await self.session.flush()
        return note

    @translate_errors
    async def delete(self, note_id: uuid.UUID) -> bool:
        await self.session.execute(delete(NoteShare).where(NoteShare.note_id == note_id))
        result = await self.session.execute(delete(Note).where(Note.id == note_id))
        return result.rowcount > 0

    @translate_errors
    async def check_ownership(self, note_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(exists().where(Note.id == note_id, Note.owner_id == user_id))
        )
        return bool(result.scalar())

    @translate_errors
    async def list_by_folder(self, folder_id: uuid.UUID) -> List[Note]:
        result = await self.session.execute(
            select(Note).where(Note.folder_id == folder_id).order_by(Note.created_at)
        )
        return list(result.scalars().all())

    @translate_errors
    async def list_by_owner(self, owner_id: uuid.UUID) -> List[Note]:
        result = await self.session.execute(
            select(Note).where(Note.owner_id == owner_id).order_by(Note.created_at)
        )
        return list(result.scalars().all())

    @translate_errors
    async def list_shared_with(self, user_id: uuid.UUID) -> List[Tuple[Note, str]]:
        result = await self.session.execute(
            select(Note, NoteShare.access_level)
            .join(NoteShare, NoteShare.note_id == Note.id)
            .where(NoteShare.shared_with_user_id == user_id)
            .order_by(Note.created_at)
        )
        return [(note, level) for note, level in result.all()]


# ══════════════════════════════════════════════════════════════════════════
# Share grants
# ══════════════════════════════════════════════════════════════════════════

class SqlShareRepository(_Repository, ShareRepository):

    @staticmethod
    def _model(asset_type: AssetType):
        if asset_type is AssetType.FOLDER:
            return FolderShare, FolderShare.folder_id, "folder_id"
        return NoteShare, NoteShare.note_id, "note_id"

    @staticmethod
    def _to_response(asset_type: AssetType, row) -> ShareGrantResponse:
        asset_id = row.folder_id if asset_type is AssetType.FOLDER else row.note_id
        return ShareGrantResponse(
            asset_id=asset_id,
            asset_type=asset_type.value,
            shared_with_user_id=row.shared_with_user_id,
            access_level=row.access_level,
            shared_by=row.shared_by,
            created_at=row.created_at,
        )

    async def _fetch(self, asset_type: AssetType, asset_id: uuid.UUID, user_id: uuid.UUID):
        model, asset_col, _ = self._model(asset_type)
        result = await self.session.execute(
            select(model)
            .where(asset_col == asset_id, model.shared_with_user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @translate_errors
    async def upsert(
        self,
        asset_type: AssetType,
        asset_id: uuid.UUID,
        user_id: uuid.UUID,
        access_level: str,
        shared_by: uuid.UUID,
    ) -> ShareGrantResponse:
        model, _, asset_key = self._model(asset_type)
        values = {
            asset_key: asset_id,
            "shared_with_user_id": user_id,
            "access_level": access_level,
            "shared_by": shared_by,
            "created_at": _utcnow(),
        }
        dialect = self.session.bind.dialect.name
        if dialect in ("postgresql", "sqlite"):
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert_fn(model).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[asset_key, "shared_with_user_id"],
                set_={
                    "access_level": stmt.excluded.access_level,
                    "shared_by": stmt.excluded.shared_by,
                },
            )
            await self.session.execute(stmt)
        else:
            await self.session.merge(model(**values))
            await self.session.flush()

        row = await self._fetch(asset_type, asset_id, user_id)
        return self._to_response(asset_type, row)

    @translate_errors
    async def remove(
        self, asset_type: AssetType, asset_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        model, asset_col, _ = self._model(asset_type)
        result = await self.session.execute(
            delete(model).where(asset_col == asset_id, model.shared_with_user_id == user_id)
        )
        return result.rowcount > 0

    @translate_errors
    async def check_access(
        self, asset_type: AssetType, asset_id: uuid.UUID, user_id: uuid.UUID
    ) -> str:
        model, asset_col, _ = self._model(asset_type)
        result = await self.session.execute(
            select(model.access_level).where(
                asset_col == asset_id, model.shared_with_user_id == user_id
            )
        )
        return result.scalar_one_or_none() or ""

    @translate_errors
    async def get_acl(self, asset_type: AssetType, asset_id: uuid.UUID) -> Dict[str, str]:
        model, asset_col, _ = self._model(asset_type)
        result = await self.session.execute(
            select(model.shared_with_user_id, model.access_level).where(asset_col == asset_id)
        )
        return {str(user_id): level for user_id, level in result.all()}

    @translate_errors
    async def list_grants(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> List[ShareGrantResponse]:
        model, asset_col, _ = self._model(asset_type)
        result = await self.session.execute(
            select(model).where(asset_col == asset_id).order_by(model.created_at)
        )
        return [self._to_response(asset_type, row) for row in result.scalars().all()]


# ══════════════════════════════════════════════════════════════════════════
# Unit of work
# ══════════════════════════════════════════════════════════════════════════

class SqlAlchemyStore(Store):
    """Store bound to one AsyncSession (one request, one transaction)."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = SqlUserRepository(session)
        self.teams = SqlTeamRepository(session)
        self.folders = SqlFolderRepository(session)
        self.notes = SqlNoteRepository(session)
        self.shares = SqlShareRepository(session)

    @translate_errors
    async def commit(self) -> None:
        await self.session.commit()

    @translate_errors
    async def rollback(self) -> None:
        await self.session.rollback()
