"""
AssetHub Backend — Note Routes
===============================

What:  /api/v1/notes endpoints. Notes are created under their folder
       (POST /api/v1/folders/{id}/notes); everything else lives here.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends

from assethub.container import ServiceContainer
from assethub.routes.deps import get_container, get_identity, get_store
from assethub.schemas.asset import NoteResponse, NoteUpdate
from assethub.schemas.common import AssetType, ErrorResponse, Identity, MessageResponse
from assethub.schemas.share import ShareGrantResponse, ShareRequest
from assethub.store.base import Store

router = APIRouter(prefix="/api/v1/notes", tags=["Notes"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    403: {"description": "Insufficient access", "model": ErrorResponse},
    404: {"description": "Note not found", "model": ErrorResponse},
}


@router.get("", response_model=List[NoteResponse], summary="Notes owned by or shared with the caller")
async def list_notes(
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[NoteResponse]:
    return await container.notes.list_notes(store, identity)


@router.get("/{note_id}", response_model=NoteResponse, responses=_ERRORS)
async def get_note(
    note_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> NoteResponse:
    return await container.notes.get_note(store, identity, note_id)


@router.put("/{note_id}", response_model=NoteResponse, responses=_ERRORS)
async def update_note(
    note_id: uuid.UUID,
    data: NoteUpdate,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> NoteResponse:
    return await container.notes.update_note(store, identity, note_id, data)


@router.delete("/{note_id}", response_model=MessageResponse, responses=_ERRORS)
async def delete_note(
    note_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> MessageResponse:
    await container.notes.delete_note(store, identity, note_id)
    return MessageResponse(message="Note deleted")


@router.post("/{note_id}/share", response_model=ShareGrantResponse, responses=_ERRORS)
async def share_note(
    note_id: uuid.UUID,
    request: ShareRequest,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> ShareGrantResponse:
    return await container.shares.share(store, identity, AssetType.NOTE, note_id, request)


@router.delete("/{note_id}/share/{user_id}", response_model=MessageResponse, responses=_ERRORS)
async def unshare_note(
    note_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> MessageResponse:
    await container.shares.unshare(store, identity, AssetType.NOTE, note_id, user_id)
    return MessageResponse(message="Note unshared")


@router.get("/{note_id}/shares", response_model=List[ShareGrantResponse], responses=_ERRORS)
async def list_note_shares(
    note_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[ShareGrantResponse]:
    return await container.shares.list_shares(store, identity, AssetType.NOTE, note_id)
