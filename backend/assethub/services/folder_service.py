"""
AssetHub Backend — Folder Service
==================================

What:  Folder lifecycle: create, read, update, delete, list.
Why:   Keeps ordering rules (authorize → mutate → commit → cache → emit) in
       one place, independent of HTTP.
How:   Stateless apart from its collaborators; every call receives the
       request's Store.

Mutation Flow:
    ┌───────────┐   ┌─────────┐   ┌─────────┐   ┌───────────────┐   ┌───────┐
    │ Validate  │──▶│Authorize│──▶│  Store  │──▶│ Cache (write- │──▶│ Emit  │
    │  input    │   │(Resolver)│  │ +commit │   │ through / inv)│   │ event │
    └───────────┘   └─────────┘   └─────────┘   └───────────────┘   └───────┘

    Validation and authorization failures happen before the Store is touched.
    Cache and event failures after the commit are logged, never raised.
"""

import logging
import uuid
from typing import Dict, List

from assethub.cache.base import CacheService, invalidate_quietly
from assethub.events.emitter import EventEmitter
from assethub.events.types import (
    AssetCreatedEvent,
    AssetDeletedEvent,
    AssetUpdatedEvent,
    EventType,
)
from assethub.exceptions import NotFoundError, ValidationError
from assethub.schemas.asset import FolderCreate, FolderResponse, FolderUpdate, NoteResponse
from assethub.schemas.common import AssetType, Identity
from assethub.services.access import AccessResolver, Operation
from assethub.store.base import Store

logger = logging.getLogger(__name__)


class FolderService:

    def __init__(self, resolver: AccessResolver, emitter: EventEmitter, cache: CacheService):
        self.resolver = resolver
        self.emitter = emitter
        self.cache = cache

    async def create_folder(
        self, store: Store, identity: Identity, data: FolderCreate
    ) -> FolderResponse:
        """
        Create a folder owned by the caller.

        Raises:
            ValidationError: empty name.
            DatabaseError: Store failure.
        """
        name = data.name.strip()
        if not name:
            raise ValidationError(message="Folder name is required", field="name")

        folder = await store.folders.create(
            name=name, description=data.description, owner_id=identity.user_id
        )
        await store.commit()
        snapshot = FolderResponse.model_validate(folder)
        logger.info("Folder %s created by %s", snapshot.id, identity.user_id)

        await self.resolver.remember(AssetType.FOLDER, snapshot)
        self.emitter.emit(
            AssetCreatedEvent(
                event_type=EventType.FOLDER_CREATED,
                asset_type=AssetType.FOLDER,
                asset_id=snapshot.id,
                owner_id=snapshot.owner_id,
                action_by=identity.user_id,
                name=snapshot.name,
                description=snapshot.description,
            )
        )
        return snapshot

    async def get_folder(
        self, store: Store, identity: Identity, folder_id: uuid.UUID
    ) -> FolderResponse:
        snapshot, _ = await self.resolver.authorize(
            store, identity, AssetType.FOLDER, folder_id, Operation.READ
        )
        return snapshot

    async def update_folder(
        self, store: Store, identity: Identity, folder_id: uuid.UUID, data: FolderUpdate
    ) -> FolderResponse:
        """
        Rename / re-describe a folder. Requires write access.

        An update that changes nothing returns the current folder and emits
        no event.
        """
        name = data.name.strip()
        if not name:
            raise ValidationError(message="Folder name is required", field="name")

        current, _ = await self.resolver.authorize(
            store, identity, AssetType.FOLDER, folder_id, Operation.WRITE
        )

        changes: List[str] = []
        if name != current.name:
            changes.append("name")
        if data.description != current.description:
            changes.append("description")
        if not changes:
            return current

        folder = await store.folders.update(folder_id, name=name, description=data.description)
        if folder is None:
            raise NotFoundError(resource="Folder", resource_id=str(folder_id))
        await store.commit()
        snapshot = FolderResponse.model_validate(folder)

        await self.resolver.remember(AssetType.FOLDER, snapshot)
        self.emitter.emit(
            AssetUpdatedEvent(
                event_type=EventType.FOLDER_UPDATED,
                asset_type=AssetType.FOLDER,
                asset_id=snapshot.id,
                owner_id=snapshot.owner_id,
                action_by=identity.user_id,
                name=snapshot.name,
                description=snapshot.description,
                changes=changes,
            )
        )
        return snapshot

    async def delete_folder(self, store: Store, identity: Identity, folder_id: uuid.UUID) -> None:
        """
        Delete a folder, its notes and every grant on them. Owner only.

        Emits FOLDER_DELETED plus one NOTE_DELETED per removed note, and drops
        their cache entries right away so no stale snapshot or ACL outlives
        the rows.
        """
        folder, _ = await self.resolver.authorize(
            store, identity, AssetType.FOLDER, folder_id, Operation.OWN
        )
        notes = await store.notes.list_by_folder(folder_id)
        await store.folders.delete(folder_id)
        await store.commit()
        logger.info("Folder %s deleted with %d notes", folder_id, len(notes))

        await invalidate_quietly(
            self.cache.invalidate_asset_metadata(AssetType.FOLDER, folder_id), f"folder {folder_id}"
        )
        await invalidate_quietly(self.cache.invalidate_asset_acl(folder_id), f"ACL of {folder_id}")
        for note in notes:
            await invalidate_quietly(
                self.cache.invalidate_asset_metadata(AssetType.NOTE, note.id), f"note {note.id}"
            )
            await invalidate_quietly(self.cache.invalidate_asset_acl(note.id), f"ACL of {note.id}")

        self.emitter.emit(
            AssetDeletedEvent(
                event_type=EventType.FOLDER_DELETED,
                asset_type=AssetType.FOLDER,
                asset_id=folder_id,
                owner_id=folder.owner_id,
                action_by=identity.user_id,
                name=folder.name,
            )
        )
        for note in notes:
            self.emitter.emit(
                AssetDeletedEvent(
                    event_type=EventType.NOTE_DELETED,
                    asset_type=AssetType.NOTE,
                    asset_id=note.id,
                    owner_id=note.owner_id,
                    action_by=identity.user_id,
                    name=note.title,
                )
            )

    async def list_folders(self, store: Store, identity: Identity) -> List[FolderResponse]:
        """Folders the caller owns followed by folders shared with them."""
        found: Dict[uuid.UUID, FolderResponse] = {}
        for folder in await store.folders.list_by_owner(identity.user_id):
            found[folder.id] = FolderResponse.model_validate(folder)
        for folder, _ in await store.folders.list_shared_with(identity.user_id):
            found.setdefault(folder.id, FolderResponse.model_validate(folder))
        return list(found.values())

    async def list_notes(
        self, store: Store, identity: Identity, folder_id: uuid.UUID
    ) -> List[NoteResponse]:
        """Notes inside a folder. Requires read access on the folder."""
        await self.resolver.authorize(store, identity, AssetType.FOLDER, folder_id, Operation.READ)
        return [NoteResponse.model_validate(n) for n in await store.notes.list_by_folder(folder_id)]
