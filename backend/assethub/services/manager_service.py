"""
AssetHub Backend — Manager Oversight Service
=============================================

What:  Lets team managers see what their people own and can access.

Authorization (failures are AccessDenied, never NotFound):
    get_team_assets(team) → caller has the global manager role
                            AND manages that team
    get_user_assets(user) → caller has the global manager role
                            AND manages a team the user is a member of
                            (co-managers are not overseen)

Result rows:
    One AssetInfo per (team member, asset) pair: every asset the member owns
    (access_level "") plus every asset shared with them directly (the grant
    level). The same asset may therefore appear once per member that holds it.
"""

import logging
import uuid
from typing import Dict, List

from assethub.exceptions import AccessDeniedError
from assethub.models import User
from assethub.schemas.asset import AssetInfo
from assethub.schemas.common import AssetType, Identity
from assethub.store.base import Store

logger = logging.getLogger(__name__)


class ManagerService:

    @staticmethod
    def _require_manager_role(identity: Identity) -> None:
        if not identity.is_manager:
            raise AccessDeniedError(message="Only managers can view team assets")

    async def _collect(self, store: Store, user_id: uuid.UUID) -> List[AssetInfo]:
        owned_folders = await store.folders.list_by_owner(user_id)
        owned_notes = await store.notes.list_by_owner(user_id)
        shared_folders = await store.folders.list_shared_with(user_id)
        shared_notes = await store.notes.list_shared_with(user_id)

        owner_ids = {f.owner_id for f, _ in shared_folders} | {n.owner_id for n, _ in shared_notes}
        owner_ids.add(user_id)
        owners: Dict[uuid.UUID, User] = await store.users.get_many(list(owner_ids))

        def owner_name(owner_id: uuid.UUID) -> str:
            owner = owners.get(owner_id)
            return owner.username if owner is not None else ""

        rows: List[AssetInfo] = []
        for folder, level in [(f, "") for f in owned_folders] + shared_folders:
            rows.append(
                AssetInfo(
                    asset_type=AssetType.FOLDER.value,
                    asset_id=folder.id,
                    name=folder.name,
                    owner_id=folder.owner_id,
                    owner_name=owner_name(folder.owner_id),
                    access_level=level,
                    held_by=user_id,
                    created_at=folder.created_at,
                )
            )
        for note, level in [(n, "") for n in owned_notes] + shared_notes:
            rows.append(
                AssetInfo(
                    asset_type=AssetType.NOTE.value,
                    asset_id=note.id,
                    name=note.title,
                    owner_id=note.owner_id,
                    owner_name=owner_name(note.owner_id),
                    access_level=level,
                    held_by=user_id,
                    created_at=note.created_at,
                )
            )
        return rows

    async def get_team_assets(
        self, store: Store, identity: Identity, team_id: uuid.UUID
    ) -> List[AssetInfo]:
        """
        Assets owned by or shared with every member of the team.

        Raises:
            AccessDeniedError: caller is not a manager of this team. An
                unknown team is reported the same way.
        """
        self._require_manager_role(identity)
        if not await store.teams.is_team_manager(team_id, identity.user_id):
            raise AccessDeniedError(
                message="You are not a manager of this team", context={"team_id": str(team_id)}
            )

        rows: List[AssetInfo] = []
        for member_id in await store.teams.list_members(team_id):
            rows.extend(await self._collect(store, member_id))
        logger.info("Manager %s listed %d assets of team %s", identity.user_id, len(rows), team_id)
        return rows

    async def get_user_assets(
        self, store: Store, identity: Identity, user_id: uuid.UUID
    ) -> List[AssetInfo]:
        """
        Assets owned by or shared with one user the caller oversees.

        Raises:
            AccessDeniedError: the user is a member of none of the caller's teams.
        """
        self._require_manager_role(identity)

        for team_id in await store.teams.list_managed_team_ids(identity.user_id):
            if await store.teams.is_team_member(team_id, user_id):
                return await self._collect(store, user_id)

        raise AccessDeniedError(
            message="This user is not a member of any team you manage", context={"user_id": str(user_id)}
        )
