"""
AssetHub Backend — Store Repository Interfaces
===============================================

What:  Abstract capability set for the authoritative relational store.
Why:   Services and the AccessResolver depend only on these interfaces, so
       the SQLAlchemy implementation can be swapped or mocked in tests.
How:   One repository per entity plus the specialized predicates the
       authorization logic needs (check_ownership, check_access,
       is_team_manager, is_team_member, list-by-owner, list-shared-with).

Contract:
    - "Not found" is reported as None / False / empty, never as an exception.
    - Any other failure raises DatabaseError.
    - Repositories never commit on their own; the service calls
      Store.commit() once a whole mutation is in place.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from assethub.models import Folder, Note, Team, User
from assethub.schemas.common import AssetType
from assethub.schemas.share import ShareGrantResponse


class UserRepository(ABC):

    @abstractmethod
    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        ...

    @abstractmethod
    async def get_many(self, user_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, User]:
        """Returns only the users that exist, keyed by id."""
        ...

    @abstractmethod
    async def create(self, username: str, email: str, role: str) -> User:
        ...


class TeamRepository(ABC):

    @abstractmethod
    async def get(self, team_id: uuid.UUID) -> Optional[Team]:
        ...

    @abstractmethod
    async def create(self, name: str, created_by: uuid.UUID) -> Team:
        ...

    @abstractmethod
    async def add_manager(self, team_id: uuid.UUID, user_id: uuid.UUID) -> None:
        ...

    @abstractmethod
    async def remove_manager(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def add_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> None:
        ...

    @abstractmethod
    async def remove_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def list_managers(self, team_id: uuid.UUID) -> List[uuid.UUID]:
        ...

    @abstractmethod
    async def list_members(self, team_id: uuid.UUID) -> List[uuid.UUID]:
        ...

    @abstractmethod
    async def is_team_manager(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def is_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def list_user_teams(self, user_id: uuid.UUID) -> List[Team]:
        """Teams the user manages or belongs to, each listed once."""
        ...

    @abstractmethod
    async def list_managed_team_ids(self, user_id: uuid.UUID) -> List[uuid.UUID]:
        ...


class FolderRepository(ABC):

    @abstractmethod
    async def get(self, folder_id: uuid.UUID) -> Optional[Folder]:
        ...

    @abstractmethod
    async def create(self, name: str, description: str, owner_id: uuid.UUID) -> Folder:
        ...

    @abstractmethod
    async def update(
        self, folder_id: uuid.UUID, name: str, description: str
    ) -> Optional[Folder]:
        ...

    @abstractmethod
    async def delete(self, folder_id: uuid.UUID) -> List[uuid.UUID]:
        """
        Delete a folder together with its notes and every grant on either.

        Returns the ids of the notes removed by the cascade.
        """
        ...

    @abstractmethod
    async def check_ownership(self, folder_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def list_by_owner(self, owner_id: uuid.UUID) -> List[Folder]:
        ...

    @abstractmethod
    async def list_shared_with(self, user_id: uuid.UUID) -> List[Tuple[Folder, str]]:
        """Folders shared with the user, paired with the grant level."""
        ...


class NoteRepository(ABC):

    @abstractmethod
    async def get(self, note_id: uuid.UUID) -> Optional[Note]:
        ...

    @abstractmethod
    async def create(
        self, title: str, body: str, folder_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Note:
        ...

    @abstractmethod
    async def update(self, note_id: uuid.UUID, title: str, body: str) -> Optional[Note]:
        ...

    @abstractmethod
    async def delete(self, note_id: uuid.UUID) -> bool:
        """Delete a note and every grant on it."""
        ...

    @abstractmethod
    async def check_ownership(self, note_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def list_by_folder(self, folder_id: uuid.UUID) -> List[Note]:
        ...

    @abstractmethod
    async def list_by_owner(self, owner_id: uuid.UUID) -> List[Note]:
        ...

    @abstractmethod
    async def list_shared_with(self, user_id: uuid.UUID) -> List[Tuple[Note, str]]:
        ...


class ShareRepository(ABC):

    @abstractmethod
    async def upsert(
        self,
        asset_type: AssetType,
        asset_id: uuid.UUID,
        user_id: uuid.UUID,
        access_level: str,
        shared_by: uuid.UUID,
    ) -> ShareGrantResponse:
        """Create the grant, or overwrite the level of the existing one."""
        ...

    @abstractmethod
    async def remove(
        self, asset_type: AssetType, asset_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        ...

    @abstractmethod
    async def check_access(
        self, asset_type: AssetType, asset_id: uuid.UUID, user_id: uuid.UUID
    ) -> str:
        """The granted level, or "" when the user holds no grant."""
        ...

    @abstractmethod
    async def get_acl(self, asset_type: AssetType, asset_id: uuid.UUID) -> Dict[str, str]:
        """Every grant on the asset as {grantee id (str): level}."""
        ...

    @abstractmethod
    async def list_grants(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> List[ShareGrantResponse]:
        ...


class Store(ABC):
    """
    One unit of work against the authoritative store.

    A Store is bound to a single transaction; routes obtain one per request.
    """

    users: UserRepository
    teams: TeamRepository
    folders: FolderRepository
    notes: NoteRepository
    shares: ShareRepository

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
