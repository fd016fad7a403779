"""
AssetHub Backend — Team Routes
===============================

What:  /api/v1/teams endpoints: create, list, view, membership changes.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends

from assethub.container import ServiceContainer
from assethub.routes.deps import get_container, get_identity, get_store
from assethub.schemas.common import ErrorResponse, Identity
from assethub.schemas.team import TeamCreate, TeamResponse, TeamUserRequest
from assethub.store.base import Store

router = APIRouter(prefix="/api/v1/teams", tags=["Teams"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    403: {"description": "Not allowed to manage this team", "model": ErrorResponse},
    404: {"description": "Team or user not found", "model": ErrorResponse},
    409: {"description": "Already in the team", "model": ErrorResponse},
}


@router.post("", response_model=TeamResponse, status_code=201, responses=_ERRORS)
async def create_team(
    data: TeamCreate,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> TeamResponse:
    return await container.teams.create_team(store, identity, data)


@router.get("", response_model=List[TeamResponse], summary="Teams the caller manages or belongs to")
async def list_teams(
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[TeamResponse]:
    return await container.teams.list_teams(store, identity)


@router.get("/{team_id}", response_model=TeamResponse, responses=_ERRORS)
async def get_team(
    team_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> TeamResponse:
    return await container.teams.get_team(store, identity, team_id)


@router.post("/{team_id}/members", response_model=TeamResponse, responses=_ERRORS)
async def add_member(
    team_id: uuid.UUID,
    request: TeamUserRequest,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> TeamResponse:
    return await container.teams.add_member(store, identity, team_id, request.user_id)


@router.delete("/{team_id}/members/{user_id}", response_model=TeamResponse, responses=_ERRORS)
async def remove_member(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> TeamResponse:
    return await container.teams.remove_member(store, identity, team_id, user_id)


@router.post("/{team_id}/managers", response_model=TeamResponse, responses=_ERRORS)
async def add_manager(
    team_id: uuid.UUID,
    request: TeamUserRequest,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> TeamResponse:
    return await container.teams.add_manager(store, identity, team_id, request.user_id)


@router.delete("/{team_id}/managers/{user_id}", response_model=TeamResponse, responses=_ERRORS)
async def remove_manager(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> TeamResponse:
    return await container.teams.remove_manager(store, identity, team_id, user_id)
