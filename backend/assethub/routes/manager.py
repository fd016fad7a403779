"""
AssetHub Backend — Manager Oversight Routes
============================================

What:  Read-only views for team managers over their people's assets.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends

from assethub.container import ServiceContainer
from assethub.routes.deps import get_container, get_identity, get_store
from assethub.schemas.asset import AssetInfo
from assethub.schemas.common import ErrorResponse, Identity
from assethub.store.base import Store

router = APIRouter(prefix="/api/v1", tags=["Manager"])

_ERRORS = {403: {"description": "Not a manager of this team or user", "model": ErrorResponse}}


@router.get("/teams/{team_id}/assets", response_model=List[AssetInfo], responses=_ERRORS)
async def get_team_assets(
    team_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[AssetInfo]:
    return await container.managers.get_team_assets(store, identity, team_id)


@router.get("/users/{user_id}/assets", response_model=List[AssetInfo], responses=_ERRORS)
async def get_user_assets(
    user_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[AssetInfo]:
    return await container.managers.get_user_assets(store, identity, user_id)
