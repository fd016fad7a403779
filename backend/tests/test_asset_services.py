"""
AssetHub Backend — Folder and Note Service Tests
=================================================

What:  FolderService / NoteService against a real SQLite Store, the
       in-memory cache and the in-memory event bus.

What we test:
    ✅ Create validates input, writes the snapshot through, emits *_CREATED
    ✅ Update diffs fields; a no-op update emits nothing
    ✅ Permissions: read grant can read but not write; write grant is not owner
    ✅ Folder delete cascades to notes and grants, one event per asset
    ✅ Listings merge owned and shared assets without duplicates
"""

import json
import uuid

import pytest

from assethub.exceptions import AccessDeniedError, NotFoundError, ValidationError
from assethub.schemas.asset import FolderCreate, FolderUpdate, NoteCreate, NoteUpdate
from assethub.schemas.common import AssetType
from assethub.schemas.share import ShareRequest

from conftest import identity_of, settle


def _event_types(container, topic: str):
    return [json.loads(p)["eventType"] for p in container.bus.events(topic)]


class TestFolderLifecycle:

    @pytest.mark.asyncio
    async def test_create_folder(self, container, store, make_user, test_settings):
        alice = await make_user("alice")

        folder = await container.folders.create_folder(
            store, identity_of(alice), FolderCreate(name="  Budget  ", description="2024")
        )
        await settle(container)

        assert folder.name == "Budget"
        assert folder.owner_id == alice.id
        cached = await container.cache.get_asset_metadata(AssetType.FOLDER, folder.id)
        assert cached["name"] == "Budget"
        assert _event_types(container, test_settings.asset_topic) == ["FOLDER_CREATED"]

    @pytest.mark.asyncio
    async def test_blank_name_rejected_before_store(self, container, store, make_user):
        alice = await make_user("alice")

        with pytest.raises(ValidationError):
            await container.folders.create_folder(store, identity_of(alice), FolderCreate(name="   "))
        assert await store.folders.list_by_owner(alice.id) == []

    @pytest.mark.asyncio
    async def test_update_reports_changed_fields(self, container, store, make_user, test_settings):
        alice = await make_user("alice")
        folder = await container.folders.create_folder(
            store, identity_of(alice), FolderCreate(name="Budget", description="old")
        )

        updated = await container.folders.update_folder(
            store, identity_of(alice), folder.id, FolderUpdate(name="Budget", description="new")
        )
        await settle(container)

        assert updated.description == "new"
        payloads = [json.loads(p) for p in container.bus.events(test_settings.asset_topic)]
        assert payloads[-1]["eventType"] == "FOLDER_UPDATED"
        assert payloads[-1]["changes"] == ["description"]

    @pytest.mark.asyncio
    async def test_noop_update_emits_nothing(self, container, store, make_user, test_settings):
        alice = await make_user("alice")
        folder = await container.folders.create_folder(
            store, identity_of(alice), FolderCreate(name="Budget")
        )

        result = await container.folders.update_folder(
            store, identity_of(alice), folder.id, FolderUpdate(name="Budget")
        )
        await settle(container)

        assert result.id == folder.id
        assert _event_types(container, test_settings.asset_topic) == ["FOLDER_CREATED"]

    @pytest.mark.asyncio
    async def test_read_grant_cannot_update(self, container, store, make_user):
        alice, bob = await make_user("alice"), await make_user("bob")
        folder = await container.folders.create_folder(
            store, identity_of(alice), FolderCreate(name="Budget")
        )
        await container.shares.share(
            store, identity_of(alice), AssetType.FOLDER, folder.id,
            ShareRequest(user_id=bob.id, access_level="read"),
        )

        assert (await container.folders.get_folder(store, identity_of(bob), folder.id)).id == folder.id
        with pytest.raises(AccessDeniedError):
            await container.folders.update_folder(
                store, identity_of(bob), folder.id, FolderUpdate(name="Mine now")
            )

    @pytest.mark.asyncio
    async def test_write_grant_can_update_but_not_delete(self, container, store, make_user):
        alice, bob = await make_user("alice"), await make_user("bob")
        folder = await container.folders.create_folder(
            store, identity_of(alice), FolderCreate(name="Budget")
        )
        await container.shares.share(
            store, identity_of(alice), AssetType.FOLDER, folder.id,
            ShareRequest(user_id=bob.id, access_level="write"),
        )

        updated = await container.folders.update_folder(
            store, identity_of(bob), folder.id, FolderUpdate(name="Budget v2")
        )
        assert updated.name == "Budget v2"
        assert updated.owner_id == alice.id

        with pytest.raises(AccessDeniedError) as exc_info:
            await container.folders.delete_folder(store, identity_of(bob), folder.id)
        assert exc_info.value.unrelated is False

    @pytest.mark.asyncio
    async def test_unknown_folder_is_not_found(self, container, store, make_user):
        alice = await make_user("alice")

        with pytest.raises(NotFoundError):
            await container.folders.get_folder(store, identity_of(alice), uuid.uuid4())


class TestFolderDelete:

    @pytest.mark.asyncio
    async def test_delete_cascades_to_notes_and_grants(
        self, container, store, make_user, test_settings
    ):
        alice, bob = await make_user("alice"), await make_user("bob")
        owner = identity_of(alice)
        folder = await container.folders.create_folder(store, owner, FolderCreate(name="Budget"))
        n1 = await container.notes.create_note(store, owner, folder.id, NoteCreate(title="N1"))
        n2 = await container.notes.create_note(store, owner, folder.id, NoteCreate(title="N2"))
        await container.shares.share(
            store, owner, AssetType.NOTE, n1.id, ShareRequest(user_id=bob.id, access_level="read")
        )
        await container.shares.share(
            store, owner, AssetType.FOLDER, folder.id, ShareRequest(user_id=bob.id, access_level="read")
        )

        await container.folders.delete_folder(store, owner, folder.id)
        await settle(container)

        assert await store.folders.get(folder.id) is None
        assert await store.notes.get(n1.id) is None
        assert await store.notes.get(n2.id) is None
        assert await store.notes.list_shared_with(bob.id) == []
        assert await store.folders.list_shared_with(bob.id) == []

        for asset_type, asset_id in (
            (AssetType.FOLDER, folder.id),
            (AssetType.NOTE, n1.id),
            (AssetType.NOTE, n2.id),
        ):
            assert await container.cache.get_asset_metadata(asset_type, asset_id) is None
            assert await container.cache.get_asset_acl(asset_id) is None

        deleted = _event_types(container, test_settings.asset_topic)[-3:]
        assert deleted == ["FOLDER_DELETED", "NOTE_DELETED", "NOTE_DELETED"]

        with pytest.raises(NotFoundError):
            await container.notes.get_note(store, identity_of(bob), n1.id)


class TestNotes:

    @pytest.mark.asyncio
    async def test_create_requires_folder_write(self, container, store, make_user):
        alice, bob = await make_user("alice"), await make_user("bob")
        folder = await container.folders.create_folder(
            store, identity_of(alice), FolderCreate(name="Budget")
        )

        with pytest.raises(AccessDeniedError) as exc_info:
            await container.notes.create_note(store, identity_of(bob), folder.id, NoteCreate(title="x"))
        assert exc_info.value.unrelated is True

        await container.shares.share(
            store, identity_of(alice), AssetType.FOLDER, folder.id,
            ShareRequest(user_id=bob.id, access_level="write"),
        )
        note = await container.notes.create_note(
            store, identity_of(bob), folder.id, NoteCreate(title="Bob's note")
        )
        assert note.owner_id == bob.id
        assert note.folder_id == folder.id

    @pytest.mark.asyncio
    async def test_create_in_unknown_folder(self, container, store, make_user):
        alice = await make_user("alice")

        with pytest.raises(NotFoundError):
            await container.notes.create_note(
                store, identity_of(alice), uuid.uuid4(), NoteCreate(title="x")
            )

    @pytest.mark.asyncio
    async def test_folder_grant_reaches_notes(self, container, store, make_user):
        alice, bob = await make_user("alice"), await make_user("bob")
        owner = identity_of(alice)
        folder = await container.folders.create_folder(store, owner, FolderCreate(name="Budget"))
        note = await container.notes.create_note(store, owner, folder.id, NoteCreate(title="Q3"))
        await container.shares.share(
            store, owner, AssetType.FOLDER, folder.id, ShareRequest(user_id=bob.id, access_level="write")
        )

        updated = await container.notes.update_note(
            store, identity_of(bob), note.id, NoteUpdate(title="Q3", body="numbers")
        )
        assert updated.body == "numbers"

        with pytest.raises(AccessDeniedError):
            await container.notes.delete_note(store, identity_of(bob), note.id)

    @pytest.mark.asyncio
    async def test_delete_note(self, container, store, make_user, test_settings):
        alice = await make_user("alice")
        owner = identity_of(alice)
        folder = await container.folders.create_folder(store, owner, FolderCreate(name="Budget"))
        note = await container.notes.create_note(store, owner, folder.id, NoteCreate(title="Q3"))

        await container.notes.delete_note(store, owner, note.id)
        await settle(container)

        assert await store.notes.get(note.id) is None
        assert await container.cache.get_asset_metadata(AssetType.NOTE, note.id) is None
        assert _event_types(container, test_settings.asset_topic)[-1] == "NOTE_DELETED"
        assert await store.folders.get(folder.id) is not None

    @pytest.mark.asyncio
    async def test_note_update_diff(self, container, store, make_user, test_settings):
        alice = await make_user("alice")
        owner = identity_of(alice)
        folder = await container.folders.create_folder(store, owner, FolderCreate(name="Budget"))
        note = await container.notes.create_note(store, owner, folder.id, NoteCreate(title="Q3"))

        await container.notes.update_note(store, owner, note.id, NoteUpdate(title="Q4"))
        await settle(container)

        last = json.loads(container.bus.events(test_settings.asset_topic)[-1])
        assert last["eventType"] == "NOTE_UPDATED"
        assert last["changes"] == ["title"]


class TestListings:

    @pytest.mark.asyncio
    async def test_list_folders_owned_then_shared(self, container, store, make_user):
        alice, bob = await make_user("alice"), await make_user("bob")
        mine = await container.folders.create_folder(store, identity_of(bob), FolderCreate(name="Mine"))
        theirs = await container.folders.create_folder(
            store, identity_of(alice), FolderCreate(name="Theirs")
        )
        await container.shares.share(
            store, identity_of(alice), AssetType.FOLDER, theirs.id,
            ShareRequest(user_id=bob.id, access_level="read"),
        )

        listed = await container.folders.list_folders(store, identity_of(bob))
        assert [f.id for f in listed] == [mine.id, theirs.id]

    @pytest.mark.asyncio
    async def test_list_notes_in_folder_requires_read(self, container, store, make_user):
        alice, bob = await make_user("alice"), await make_user("bob")
        owner = identity_of(alice)
        folder = await container.folders.create_folder(store, owner, FolderCreate(name="Budget"))
        await container.notes.create_note(store, owner, folder.id, NoteCreate(title="Q3"))

        assert len(await container.folders.list_notes(store, owner, folder.id)) == 1
        with pytest.raises(AccessDeniedError):
            await container.folders.list_notes(store, identity_of(bob), folder.id)

    @pytest.mark.asyncio
    async def test_list_notes_includes_direct_shares(self, container, store, make_user):
        alice, bob = await make_user("alice"), await make_user("bob")
        owner = identity_of(alice)
        folder = await container.folders.create_folder(store, owner, FolderCreate(name="Budget"))
        note = await container.notes.create_note(store, owner, folder.id, NoteCreate(title="Q3"))
        await container.shares.share(
            store, owner, AssetType.NOTE, note.id, ShareRequest(user_id=bob.id, access_level="read")
        )

        listed = await container.notes.list_notes(store, identity_of(bob))
        assert [n.id for n in listed] == [note.id]
