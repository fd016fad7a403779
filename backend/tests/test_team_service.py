"""
AssetHub Backend — Team Service Tests
======================================

What we test:
    ✅ Only global managers create teams; listed managers need the role
    ✅ A user listed as both manager and member becomes a manager
    ✅ Membership changes need a team manager; duplicates conflict
    ✅ Promotion moves a member instead of duplicating them
    ✅ The creator cannot be removed; removals drop the cached member list
"""

import json
import uuid

import pytest

from assethub.exceptions import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from assethub.schemas.team import TeamCreate

from conftest import identity_of, settle


@pytest.fixture
def people(make_user):
    async def create():
        return (
            await make_user("boss", "manager"),
            await make_user("lead", "manager"),
            await make_user("alice"),
            await make_user("bob"),
        )

    return create


class TestCreateTeam:

    @pytest.mark.asyncio
    async def test_creator_becomes_manager(self, container, store, people, test_settings):
        boss, lead, alice, bob = await people()

        team = await container.teams.create_team(
            store,
            identity_of(boss),
            TeamCreate(name="Core", managers=[lead.id], members=[alice.id, bob.id]),
        )
        await settle(container)

        assert team.managers == [boss.id, lead.id]
        assert team.members == [alice.id, bob.id]
        assert team.created_by == boss.id
        event = json.loads(container.bus.events(test_settings.team_topic)[-1])
        assert event["eventType"] == "TEAM_CREATED"
        assert event["teamName"] == "Core"
        # The invalidator seeded the member cache from the event
        assert set(await container.cache.get_team_members(team.id)) == {
            boss.id, lead.id, alice.id, bob.id
        }

    @pytest.mark.asyncio
    async def test_member_role_cannot_create(self, container, store, people):
        _, _, alice, _ = await people()

        with pytest.raises(AccessDeniedError):
            await container.teams.create_team(store, identity_of(alice), TeamCreate(name="Core"))

    @pytest.mark.asyncio
    async def test_manager_slot_requires_manager_role(self, container, store, people):
        boss, _, alice, _ = await people()

        with pytest.raises(ValidationError) as exc_info:
            await container.teams.create_team(
                store, identity_of(boss), TeamCreate(name="Core", managers=[alice.id])
            )
        assert exc_info.value.field == "managers"

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_found(self, container, store, people):
        boss, *_ = await people()

        with pytest.raises(NotFoundError):
            await container.teams.create_team(
                store, identity_of(boss), TeamCreate(name="Core", members=[uuid.uuid4()])
            )

    @pytest.mark.asyncio
    async def test_manager_and_member_collapses_to_manager(self, container, store, people):
        boss, lead, alice, _ = await people()

        team = await container.teams.create_team(
            store,
            identity_of(boss),
            TeamCreate(name="Core", managers=[lead.id], members=[lead.id, alice.id, alice.id]),
        )

        assert team.managers == [boss.id, lead.id]
        assert team.members == [alice.id]


class TestMembership:

    async def _team(self, container, store, boss, members=()):
        return await container.teams.create_team(
            store, identity_of(boss), TeamCreate(name="Core", members=list(members))
        )

    @pytest.mark.asyncio
    async def test_add_and_remove_member(self, container, store, people, test_settings):
        boss, _, alice, bob = await people()
        team = await self._team(container, store, boss, [alice.id])

        added = await container.teams.add_member(store, identity_of(boss), team.id, bob.id)
        assert added.members == [alice.id, bob.id]

        removed = await container.teams.remove_member(store, identity_of(boss), team.id, alice.id)
        assert removed.members == [bob.id]

        await settle(container)
        types = [json.loads(p)["eventType"] for p in container.bus.events(test_settings.team_topic)]
        assert types == ["TEAM_CREATED", "MEMBER_ADDED", "MEMBER_REMOVED"]

    @pytest.mark.asyncio
    async def test_removed_member_loses_visibility_immediately(self, container, store, people):
        boss, _, alice, _ = await people()
        team = await self._team(container, store, boss, [alice.id])
        await settle(container)
        assert (await container.teams.get_team(store, identity_of(alice), team.id)).id == team.id

        await container.teams.remove_member(store, identity_of(boss), team.id, alice.id)

        with pytest.raises(AccessDeniedError):
            await container.teams.get_team(store, identity_of(alice), team.id)

    @pytest.mark.asyncio
    async def test_duplicates_conflict(self, container, store, people):
        boss, _, alice, _ = await people()
        team = await self._team(container, store, boss, [alice.id])

        with pytest.raises(ConflictError):
            await container.teams.add_member(store, identity_of(boss), team.id, alice.id)
        with pytest.raises(ConflictError):
            await container.teams.add_member(store, identity_of(boss), team.id, boss.id)

    @pytest.mark.asyncio
    async def test_only_team_managers_change_membership(self, container, store, people):
        boss, lead, alice, bob = await people()
        team = await self._team(container, store, boss, [alice.id])

        # lead has the global role but does not manage this team
        with pytest.raises(AccessDeniedError):
            await container.teams.add_member(store, identity_of(lead), team.id, bob.id)
        with pytest.raises(AccessDeniedError):
            await container.teams.remove_member(store, identity_of(alice), team.id, alice.id)

    @pytest.mark.asyncio
    async def test_unknown_team_or_user(self, container, store, people):
        boss, _, alice, _ = await people()
        team = await self._team(container, store, boss)

        with pytest.raises(NotFoundError):
            await container.teams.add_member(store, identity_of(boss), uuid.uuid4(), alice.id)
        with pytest.raises(NotFoundError):
            await container.teams.add_member(store, identity_of(boss), team.id, uuid.uuid4())
        with pytest.raises(NotFoundError) as exc_info:
            await container.teams.remove_member(store, identity_of(boss), team.id, alice.id)
        assert exc_info.value.resource == "TeamMember"


class TestManagers:

    @pytest.mark.asyncio
    async def test_promotion_moves_member(self, container, store, people):
        boss, lead, _, _ = await people()
        team = await container.teams.create_team(
            store, identity_of(boss), TeamCreate(name="Core", members=[lead.id])
        )

        promoted = await container.teams.add_manager(store, identity_of(boss), team.id, lead.id)

        assert promoted.managers == [boss.id, lead.id]
        assert promoted.members == []

    @pytest.mark.asyncio
    async def test_member_role_cannot_be_manager(self, container, store, people):
        boss, _, alice, _ = await people()
        team = await container.teams.create_team(store, identity_of(boss), TeamCreate(name="Core"))

        with pytest.raises(ValidationError):
            await container.teams.add_manager(store, identity_of(boss), team.id, alice.id)

    @pytest.mark.asyncio
    async def test_creator_cannot_be_removed(self, container, store, people):
        boss, lead, _, _ = await people()
        team = await container.teams.create_team(
            store, identity_of(boss), TeamCreate(name="Core", managers=[lead.id])
        )

        with pytest.raises(ValidationError):
            await container.teams.remove_manager(store, identity_of(lead), team.id, boss.id)

        demoted = await container.teams.remove_manager(store, identity_of(boss), team.id, lead.id)
        assert demoted.managers == [boss.id]

        with pytest.raises(NotFoundError) as exc_info:
            await container.teams.remove_manager(store, identity_of(boss), team.id, lead.id)
        assert exc_info.value.resource == "TeamManager"

    @pytest.mark.asyncio
    async def test_list_teams_for_member(self, container, store, people):
        boss, _, alice, bob = await people()
        core = await container.teams.create_team(
            store, identity_of(boss), TeamCreate(name="Core", members=[alice.id])
        )
        await container.teams.create_team(
            store, identity_of(boss), TeamCreate(name="Other", members=[bob.id])
        )

        teams = await container.teams.list_teams(store, identity_of(alice))
        assert [t.id for t in teams] == [core.id]
        assert len(await container.teams.list_teams(store, identity_of(boss))) == 2
