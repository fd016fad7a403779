"""
AssetHub Backend — Folder Routes
=================================

What:  /api/v1/folders endpoints: CRUD, notes inside a folder, sharing.
How:   Each handler resolves the caller and the request's Store, then
       delegates to a service. No business rules live here.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends

from assethub.container import ServiceContainer
from assethub.routes.deps import get_container, get_identity, get_store
from assethub.schemas.asset import (
    FolderCreate,
    FolderResponse,
    FolderUpdate,
    NoteCreate,
    NoteResponse,
)
from assethub.schemas.common import AssetType, ErrorResponse, Identity, MessageResponse
from assethub.schemas.share import ShareGrantResponse, ShareRequest
from assethub.store.base import Store

router = APIRouter(prefix="/api/v1/folders", tags=["Folders"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    403: {"description": "Insufficient access", "model": ErrorResponse},
    404: {"description": "Folder not found", "model": ErrorResponse},
}


@router.post("", response_model=FolderResponse, status_code=201, responses=_ERRORS)
async def create_folder(
    data: FolderCreate,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> FolderResponse:
    return await container.folders.create_folder(store, identity, data)


@router.get("", response_model=List[FolderResponse], summary="Folders owned by or shared with the caller")
async def list_folders(
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[FolderResponse]:
    return await container.folders.list_folders(store, identity)


@router.get("/{folder_id}", response_model=FolderResponse, responses=_ERRORS)
async def get_folder(
    folder_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> FolderResponse:
    return await container.folders.get_folder(store, identity, folder_id)


@router.put("/{folder_id}", response_model=FolderResponse, responses=_ERRORS)
async def update_folder(
    folder_id: uuid.UUID,
    data: FolderUpdate,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> FolderResponse:
    return await container.folders.update_folder(store, identity, folder_id, data)


@router.delete("/{folder_id}", response_model=MessageResponse, responses=_ERRORS)
async def delete_folder(
    folder_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> MessageResponse:
    await container.folders.delete_folder(store, identity, folder_id)
    return MessageResponse(message="Folder deleted")


# ── Notes inside a folder ─────────────────────────────────────────────────

@router.post("/{folder_id}/notes", response_model=NoteResponse, status_code=201, responses=_ERRORS)
async def create_note(
    folder_id: uuid.UUID,
    data: NoteCreate,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> NoteResponse:
    return await container.notes.create_note(store, identity, folder_id, data)


@router.get("/{folder_id}/notes", response_model=List[NoteResponse], responses=_ERRORS)
async def list_folder_notes(
    folder_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[NoteResponse]:
    return await container.folders.list_notes(store, identity, folder_id)


# ── Sharing ───────────────────────────────────────────────────────────────

@router.post("/{folder_id}/share", response_model=ShareGrantResponse, responses=_ERRORS)
async def share_folder(
    folder_id: uuid.UUID,
    request: ShareRequest,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> ShareGrantResponse:
    return await container.shares.share(store, identity, AssetType.FOLDER, folder_id, request)


@router.delete("/{folder_id}/share/{user_id}", response_model=MessageResponse, responses=_ERRORS)
async def unshare_folder(
    folder_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> MessageResponse:
    await container.shares.unshare(store, identity, AssetType.FOLDER, folder_id, user_id)
    return MessageResponse(message="Folder unshared")


@router.get("/{folder_id}/shares", response_model=List[ShareGrantResponse], responses=_ERRORS)
async def list_folder_shares(
    folder_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_store),
    container: ServiceContainer = Depends(get_container),
) -> List[ShareGrantResponse]:
    return await container.shares.list_shares(store, identity, AssetType.FOLDER, folder_id)
