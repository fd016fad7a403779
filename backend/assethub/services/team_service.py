"""
AssetHub Backend — Team Service
================================

What:  Team creation and membership management.

Role rules:
    - Only users with the global `manager` role create teams; the creator
      becomes a team manager and can never be removed as one.
    - Team-manager assignment (at creation or later) requires the global
      `manager` role. A global `member` is rejected with ValidationError.
    - Managers and members are disjoint: promoting a member removes the
      member row; demoting a manager does not re-add them as a member.
    - Any team manager may add or remove members and managers.

Cache:
    TEAM_CREATED seeds the team-members list; additions are applied by the
    invalidator from events. Removals also drop the cached list right away.
"""

import logging
import uuid
from typing import Dict, List

from assethub.cache.base import CacheService, invalidate_quietly
from assethub.events.emitter import EventEmitter
from assethub.events.types import EventType, TeamCreatedEvent, TeamMembershipEvent
from assethub.exceptions import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from assethub.models import Team, User
from assethub.schemas.common import Identity
from assethub.schemas.team import TeamCreate, TeamResponse
from assethub.services.access import AccessResolver
from assethub.store.base import Store

logger = logging.getLogger(__name__)


class TeamService:

    def __init__(self, resolver: AccessResolver, emitter: EventEmitter, cache: CacheService):
        self.resolver = resolver
        self.emitter = emitter
        self.cache = cache

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _response(self, store: Store, team: Team) -> TeamResponse:
        return TeamResponse(
            id=team.id,
            name=team.name,
            created_by=team.created_by,
            managers=await store.teams.list_managers(team.id),
            members=await store.teams.list_members(team.id),
            created_at=team.created_at,
        )

    async def _get_team(self, store: Store, team_id: uuid.UUID) -> Team:
        team = await store.teams.get(team_id)
        if team is None:
            raise NotFoundError(resource="Team", resource_id=str(team_id))
        return team

    async def _require_team_manager(
        self, store: Store, identity: Identity, team_id: uuid.UUID
    ) -> Team:
        team = await self._get_team(store, team_id)
        if not await store.teams.is_team_manager(team_id, identity.user_id):
            raise AccessDeniedError(
                message="Only managers of this team can change its membership",
                context={"team_id": str(team_id)},
            )
        return team

    async def _get_user(self, store: Store, user_id: uuid.UUID) -> User:
        user = await store.users.get(user_id)
        if user is None:
            raise NotFoundError(resource="User", resource_id=str(user_id))
        return user

    @staticmethod
    def _require_manager_role(user: User, field: str) -> None:
        if not user.is_manager:
            raise ValidationError(
                message=f"User {user.username} does not have the manager role",
                field=field,
                context={"user_id": str(user.id)},
            )

    def _emit_membership(
        self,
        event_type: EventType,
        team_id: uuid.UUID,
        identity: Identity,
        user: User,
    ) -> None:
        self.emitter.emit(
            TeamMembershipEvent(
                event_type=event_type,
                team_id=team_id,
                performed_by=identity.user_id,
                target_user_id=user.id,
                user_name=user.username,
            )
        )

    # ── Operations ────────────────────────────────────────────────────────

    async def create_team(self, store: Store, identity: Identity, data: TeamCreate) -> TeamResponse:
        """
        Create a team managed by the caller.

        A user listed both as manager and member ends up a manager only.

        Raises:
            ValidationError: empty name, or a listed manager lacks the role.
            AccessDeniedError: caller lacks the global manager role.
            NotFoundError: a listed user does not exist.
        """
        name = data.name.strip()
        if not name:
            raise ValidationError(message="Team name is required", field="name")
        if not identity.is_manager:
            raise AccessDeniedError(message="Only managers can create teams")

        managers: List[uuid.UUID] = [identity.user_id]
        for user_id in data.managers:
            if user_id not in managers:
                managers.append(user_id)
        members: List[uuid.UUID] = []
        for user_id in data.members:
            if user_id not in managers and user_id not in members:
                members.append(user_id)

        users: Dict[uuid.UUID, User] = await store.users.get_many([*managers, *members])
        for user_id in [*managers, *members]:
            if user_id not in users:
                raise NotFoundError(resource="User", resource_id=str(user_id))
        for user_id in managers[1:]:
            self._require_manager_role(users[user_id], field="managers")

        team = await store.teams.create(name=name, created_by=identity.user_id)
        for user_id in managers:
            await store.teams.add_manager(team.id, user_id)
        for user_id in members:
            await store.teams.add_member(team.id, user_id)
        await store.commit()
        logger.info(
            "Team %s created by %s (%d managers, %d members)",
            team.id,
            identity.user_id,
            len(managers),
            len(members),
        )

        self.emitter.emit(
            TeamCreatedEvent(
                event_type=EventType.TEAM_CREATED,
                team_id=team.id,
                performed_by=identity.user_id,
                team_name=team.name,
                managers=managers,
                members=members,
            )
        )
        return TeamResponse(
            id=team.id,
            name=team.name,
            created_by=team.created_by,
            managers=managers,
            members=members,
            created_at=team.created_at,
        )

    async def get_team(self, store: Store, identity: Identity, team_id: uuid.UUID) -> TeamResponse:
        """Visible to the team's managers and members only."""
        team = await self._get_team(store, team_id)
        if not await self.resolver.is_in_team(store, team_id, identity.user_id):
            raise AccessDeniedError(
                message="You are not part of this team", context={"team_id": str(team_id)}
            )
        return await self._response(store, team)

    async def list_teams(self, store: Store, identity: Identity) -> List[TeamResponse]:
        return [await self._response(store, t) for t in await store.teams.list_user_teams(identity.user_id)]

    async def add_member(
        self, store: Store, identity: Identity, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamResponse:
        team = await self._require_team_manager(store, identity, team_id)
        user = await self._get_user(store, user_id)
        if await store.teams.is_team_manager(team_id, user_id):
            raise ConflictError(message="User is already a manager of this team")
        if await store.teams.is_team_member(team_id, user_id):
            raise ConflictError(message="User is already a member of this team")

        await store.teams.add_member(team_id, user_id)
        await store.commit()
        logger.info("User %s added to team %s", user_id, team_id)

        self._emit_membership(EventType.MEMBER_ADDED, team_id, identity, user)
        return await self._response(store, team)

    async def remove_member(
        self, store: Store, identity: Identity, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamResponse:
        team = await self._require_team_manager(store, identity, team_id)
        user = await self._get_user(store, user_id)
        if not await store.teams.remove_member(team_id, user_id):
            raise NotFoundError(resource="TeamMember", resource_id=str(user_id))
        await store.commit()
        logger.info("User %s removed from team %s", user_id, team_id)

        await invalidate_quietly(
            self.cache.invalidate_team_members(team_id), f"members of team {team_id}"
        )
        self._emit_membership(EventType.MEMBER_REMOVED, team_id, identity, user)
        return await self._response(store, team)

    async def add_manager(
        self, store: Store, identity: Identity, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamResponse:
        """Promote or appoint a team manager. A current member is moved, not duplicated."""
        team = await self._require_team_manager(store, identity, team_id)
        user = await self._get_user(store, user_id)
        self._require_manager_role(user, field="user_id")
        if await store.teams.is_team_manager(team_id, user_id):
            raise ConflictError(message="User is already a manager of this team")

        promoted = await store.teams.remove_member(team_id, user_id)
        await store.teams.add_manager(team_id, user_id)
        await store.commit()
        logger.info(
            "User %s %s manager of team %s", user_id, "promoted to" if promoted else "made", team_id
        )

        self._emit_membership(EventType.MANAGER_ADDED, team_id, identity, user)
        return await self._response(store, team)

    async def remove_manager(
        self, store: Store, identity: Identity, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamResponse:
        team = await self._require_team_manager(store, identity, team_id)
        if user_id == team.created_by:
            raise ValidationError(
                message="The team creator cannot be removed as manager", field="user_id"
            )
        user = await self._get_user(store, user_id)
        if not await store.teams.remove_manager(team_id, user_id):
            raise NotFoundError(resource="TeamManager", resource_id=str(user_id))
        await store.commit()
        logger.info("User %s is no longer a manager of team %s", user_id, team_id)

        await invalidate_quietly(
            self.cache.invalidate_team_members(team_id), f"members of team {team_id}"
        )
        self._emit_membership(EventType.MANAGER_REMOVED, team_id, identity, user)
        return await self._response(store, team)
