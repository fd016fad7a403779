"""
AssetHub Backend — Note Service
================================

What:  Note lifecycle: create inside a folder, read, update, delete, list.
How:   Same flow as FolderService (validate → authorize → Store → cache →
       emit). Notes publish the same family of events as folders.

Who may do what:
    create  → folder owner, or a write grantee on the folder
    read    → owner, note grantee, or folder grantee (read or write)
    update  → owner, note write grantee, or folder write grantee
    delete  → owner only
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
from assethub.schemas.asset import NoteCreate, NoteResponse, NoteUpdate
from assethub.schemas.common import AssetType, Identity
from assethub.services.access import AccessResolver, Operation
from assethub.store.base import Store

logger = logging.getLogger(__name__)


class NoteService:

    def __init__(self, resolver: AccessResolver, emitter: EventEmitter, cache: CacheService):
        self.resolver = resolver
        self.emitter = emitter
        self.cache = cache

    async def create_note(
        self, store: Store, identity: Identity, folder_id: uuid.UUID, data: NoteCreate
    ) -> NoteResponse:
        """
        Create a note owned by the caller inside `folder_id`.

        Raises:
            ValidationError: empty title.
            NotFoundError: unknown folder.
            AccessDeniedError: caller cannot write to the folder.
        """
        title = data.title.strip()
        if not title:
            raise ValidationError(message="Note title is required", field="title")

        await self.resolver.authorize(store, identity, AssetType.FOLDER, folder_id, Operation.WRITE)

        note = await store.notes.create(
            title=title, body=data.body, folder_id=folder_id, owner_id=identity.user_id
        )
        await store.commit()
        snapshot = NoteResponse.model_validate(note)
        logger.info("Note %s created in folder %s by %s", snapshot.id, folder_id, identity.user_id)

        await self.resolver.remember(AssetType.NOTE, snapshot)
        self.emitter.emit(
            AssetCreatedEvent(
                event_type=EventType.NOTE_CREATED,
                asset_type=AssetType.NOTE,
                asset_id=snapshot.id,
                owner_id=snapshot.owner_id,
                action_by=identity.user_id,
                name=snapshot.title,
                folder_id=folder_id,
            )
        )
        return snapshot

    async def get_note(self, store: Store, identity: Identity, note_id: uuid.UUID) -> NoteResponse:
        snapshot, _ = await self.resolver.authorize(
            store, identity, AssetType.NOTE, note_id, Operation.READ
        )
        return snapshot

    async def update_note(
        self, store: Store, identity: Identity, note_id: uuid.UUID, data: NoteUpdate
    ) -> NoteResponse:
        title = data.title.strip()
        if not title:
            raise ValidationError(message="Note title is required", field="title")

        current, _ = await self.resolver.authorize(
            store, identity, AssetType.NOTE, note_id, Operation.WRITE
        )

        changes: List[str] = []
        if title != current.title:
            changes.append("title")
        if data.body != current.body:
            changes.append("body")
        if not changes:
            return current

        note = await store.notes.update(note_id, title=title, body=data.body)
        if note is None:
            raise NotFoundError(resource="Note", resource_id=str(note_id))
        await store.commit()
        snapshot = NoteResponse.model_validate(note)

        await self.resolver.remember(AssetType.NOTE, snapshot)
        self.emitter.emit(
            AssetUpdatedEvent(
                event_type=EventType.NOTE_UPDATED,
                asset_type=AssetType.NOTE,
                asset_id=snapshot.id,
                owner_id=snapshot.owner_id,
                action_by=identity.user_id,
                name=snapshot.title,
                changes=changes,
            )
        )
        return snapshot

    async def delete_note(self, store: Store, identity: Identity, note_id: uuid.UUID) -> None:
        note, _ = await self.resolver.authorize(
            store, identity, AssetType.NOTE, note_id, Operation.OWN
        )
        await store.notes.delete(note_id)
        await store.commit()
        logger.info("Note %s deleted by %s", note_id, identity.user_id)

        await invalidate_quietly(
            self.cache.invalidate_asset_metadata(AssetType.NOTE, note_id), f"note {note_id}"
        )
        await invalidate_quietly(self.cache.invalidate_asset_acl(note_id), f"ACL of {note_id}")
        self.emitter.emit(
            AssetDeletedEvent(
                event_type=EventType.NOTE_DELETED,
                asset_type=AssetType.NOTE,
                asset_id=note_id,
                owner_id=note.owner_id,
                action_by=identity.user_id,
                name=note.title,
            )
        )

    async def list_notes(self, store: Store, identity: Identity) -> List[NoteResponse]:
        """Notes the caller owns followed by notes shared with them directly."""
        found: Dict[uuid.UUID, NoteResponse] = {}
        for note in await store.notes.list_by_owner(identity.user_id):
            found[note.id] = NoteResponse.model_validate(note)
        for note, _ in await store.notes.list_shared_with(identity.user_id):
            found.setdefault(note.id, NoteResponse.model_validate(note))
        return list(found.values())
