"""Tests for Document change tracking and persistence."""

import asyncio
from datetime import datetime, timezone

import pytest

import quire
from quire import BatchType, Document, Field, File, SubCollection
from quire.store import SERVER_TIMESTAMP, NotFoundError, Timestamp, connect


class Counter(Document):
    name = Field()
    count = Field()


class Note(Document):
    text = Field()


class Profile(Document):
    name = Field()
    avatar = Field()
    notes = Field()


class Item(Document):
    _model_name_ = "item"
    _version_ = 2

    title = Field()


@pytest.fixture(autouse=True)
def store():
    """Fresh in-memory store as the default for each test."""
    with quire.using(connect("memory://")) as store:
        yield store
    store.close()


class TestConstruction:
    """Tests for identity and lifecycle flags at construction."""

    def test_new_document(self):
        counter = Counter()
        assert counter.saved is False
        assert len(counter.id) == 20
        assert counter.version == 1
        assert counter.model_name == "counter"
        assert counter.path == f"version/1/counter/{counter.id}"
        assert counter.dirty_fields == {}

    def test_explicit_id(self):
        assert Counter("abc").path == "version/1/counter/abc"
        assert Counter("abc").reference.path == "version/1/counter/abc"

    def test_from_data(self):
        counter = Counter("abc", {"name": "x", "other": 1})
        assert counter.saved is True
        assert counter.name == "x"
        assert counter.count is None
        assert counter.dirty_fields == {}
        assert counter.is_dirty is False

    def test_model_name_and_version_overrides(self):
        item = Item("i1")
        assert item.path == "version/2/item/i1"
        assert Item.get_path() == "version/2/item"

    def test_trigger_path(self):
        assert Counter.get_trigger_path() == "/version/{version}/counter/{id}"

    def test_collection_reference(self, store):
        assert Counter.collection_reference().path == "version/1/counter"
        assert Counter.collection_reference(store).path == "version/1/counter"

    def test_explicit_store(self):
        other = connect("memory://")
        assert Counter(store=other).store is other

    def test_reattach(self):
        note = Note("n1")
        note.reattach("version/1/profile/p1/notes")
        assert note.path == "version/1/profile/p1/notes/n1"


class TestFieldTracking:
    """Tests for set_field / current_value."""

    def test_set_field_records_dirty_value(self):
        counter = Counter()
        counter.set_field("name", "x")
        assert counter.current_value("name") == "x"
        assert counter.dirty_fields == {"name": "x"}

    def test_file_records_descriptor(self):
        profile = Profile()
        avatar = File(name="me.png", mime_type="image/png", url="https://example.com/me.png")
        profile.avatar = avatar

        assert profile.avatar is avatar
        assert profile.dirty_fields == {
            "avatar": {"mimeType": "image/png", "name": "me.png", "url": "https://example.com/me.png"}
        }

    def test_relation_is_attached_not_dirty(self):
        profile = Profile("p1")
        note = Note("n1")
        profile.notes = SubCollection([note])

        assert profile.dirty_fields == {}
        assert profile.notes.path == "version/1/profile/p1/notes"
        assert profile.notes.parent is profile
        assert profile.notes.key == "notes"
        assert note.path == "version/1/profile/p1/notes/n1"

    def test_timestamps_decode_to_datetime(self):
        counter = Counter("c", {"name": Timestamp(0)})
        assert counter.name == datetime(1970, 1, 1, tzinfo=timezone.utc)


class TestBodies:
    """Tests for snapshot_body and persistable_body."""

    def test_new_document_body(self):
        counter = Counter()
        counter.set_field("name", "x")
        counter.set_field("count", 1)

        assert counter.persistable_body() == {
            "name": "x",
            "count": 1,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }

    def test_saved_document_body(self):
        counter = Counter("c", {"name": "x"})
        assert counter.persistable_body() == {"name": "x", "updatedAt": SERVER_TIMESTAMP}

    def test_existing_timestamps_kept_for_unsaved(self):
        created = datetime(2020, 1, 1, tzinfo=timezone.utc)
        counter = Counter()
        counter.created_at = created

        body = counter.persistable_body()
        assert body["createdAt"] == created
        assert body["updatedAt"] is SERVER_TIMESTAMP

    def test_absent_values_excluded(self):
        counter = Counter()
        counter.name = None
        counter.count = float("nan")
        assert counter.snapshot_body() == {}

    def test_falsy_values_kept(self):
        counter = Counter()
        counter.name = ""
        counter.count = 0
        assert counter.snapshot_body() == {"name": "", "count": 0}

    def test_relations_excluded(self):
        profile = Profile()
        profile.name = "alice"
        profile.notes = SubCollection([Note()])

        body = profile.snapshot_body()
        assert body == {"name": "alice"}
        assert "notes" not in profile.persistable_body()

    def test_file_in_body(self):
        profile = Profile()
        profile.avatar = File(name="a", mime_type="text/plain", url="u")
        assert profile.snapshot_body()["avatar"] == {"mimeType": "text/plain", "name": "a", "url": "u"}


class TestHydrate:
    """Tests for hydrate()."""

    def test_hydrate_clears_dirty_and_marks_saved(self):
        counter = Counter()
        counter.name = "local"
        counter.count = 5

        counter.hydrate({"name": "remote", "count": None, "createdAt": Timestamp(10), "updatedAt": Timestamp(20)})

        assert counter.name == "remote"
        assert counter.count == 5  # absent values are skipped
        assert counter.dirty_fields == {}
        assert counter.saved is True
        assert counter.created_at == datetime(1970, 1, 1, 0, 0, 10, tzinfo=timezone.utc)
        assert counter.updated_at == datetime(1970, 1, 1, 0, 0, 20, tzinfo=timezone.utc)

    def test_hydrate_updates_existing_file(self):
        profile = Profile()
        avatar = File(name="old")
        profile.avatar = avatar

        profile.hydrate({"avatar": {"name": "new", "mimeType": "image/png", "url": "u"}})

        assert profile.avatar is avatar
        assert avatar.name == "new"
        assert avatar.key == "avatar"

    def test_hydrate_ignores_unknown_keys(self):
        counter = Counter()
        counter.hydrate({"unknown": 1})
        assert counter.snapshot_body() == {}


class TestPersistence:
    """Tests for save/update/delete/fetch against a store."""

    def test_save_and_get(self):
        async def run():
            counter = Counter()
            counter.name = "x"
            counter.count = 1
            await counter.save()
            return counter, await Counter.get(counter.id)

        counter, loaded = asyncio.run(run())
        assert counter.saved is True
        assert counter.dirty_fields == {}
        assert loaded.name == "x"
        assert loaded.count == 1
        assert loaded.saved is True
        assert isinstance(loaded.created_at, datetime)
        assert loaded.created_at == loaded.updated_at

    def test_get_missing(self):
        assert asyncio.run(Counter.get("nope")) is None

    def test_update_composes_partial_write(self):
        async def run():
            counter = Counter()
            counter.name = "x"
            counter.count = 1
            await counter.save()
            counter.count = 2
            return counter.pack(BatchType.UPDATE)

        batch = asyncio.run(run())
        assert len(batch) == 1
        write = batch.writes[0]
        assert write.kind == "update"
        assert write.data == {"count": 2, "updatedAt": SERVER_TIMESTAMP}

    def test_update_writes_only_changes(self, store):
        async def run():
            counter = Counter()
            counter.name = "x"
            counter.count = 1
            await counter.save()

            # Someone else renames it meanwhile
            await store.document(counter.path).update({"name": "renamed"})

            counter.count = 2
            await counter.update()
            return await Counter.get(counter.id), counter

        loaded, counter = asyncio.run(run())
        assert loaded.name == "renamed"
        assert loaded.count == 2
        assert counter.dirty_fields == {}

    def test_save_keeps_created_at(self, store):
        async def run():
            counter = Counter()
            counter.name = "x"
            await counter.save()
            first = await store.get(counter.path)
            counter.name = "y"
            await counter.save()
            second = await store.get(counter.path)
            return first.to_dict(), second.to_dict()

        first, second = asyncio.run(run())
        assert second["createdAt"] == first["createdAt"]
        assert second["name"] == "y"

    def test_failed_update_keeps_state(self):
        counter = Counter()
        counter.name = "x"

        with pytest.raises(NotFoundError):
            asyncio.run(counter.update())

        assert counter.saved is False
        assert counter.dirty_fields == {"name": "x"}

        # Retry with save succeeds with the same pending values
        asyncio.run(counter.save())
        assert counter.saved is True
        assert asyncio.run(Counter.get(counter.id)).name == "x"

    def test_delete(self, store):
        async def run():
            counter = Counter()
            counter.name = "x"
            await counter.save()
            await counter.delete()
            return counter, await store.get(counter.path)

        counter, snapshot = asyncio.run(run())
        assert snapshot.exists is False
        assert counter.saved is False

    def test_delete_does_not_cascade(self, store):
        async def run():
            profile = Profile()
            note = Note()
            note.text = "keep me"
            profile.notes = SubCollection([note])
            await profile.save()
            await profile.delete()
            return await store.get(profile.path), await store.get(note.path)

        profile_snapshot, note_snapshot = asyncio.run(run())
        assert profile_snapshot.exists is False
        assert note_snapshot.exists is True

    def test_fetch(self):
        async def run():
            counter = Counter()
            counter.count = 1
            await counter.save()

            other = Counter(counter.id)
            other.count = 7
            await other.update()

            await counter.fetch()
            return counter

        counter = asyncio.run(run())
        assert counter.count == 7
        assert counter.dirty_fields == {}

    def test_fetch_missing_leaves_state(self):
        counter = Counter()
        counter.name = "x"

        asyncio.run(counter.fetch())

        assert counter.saved is False
        assert counter.name == "x"
        assert counter.dirty_fields == {"name": "x"}

    def test_fetch_through_transaction(self, store):
        async def run():
            counter = Counter()
            counter.count = 3
            await counter.save()

            fresh = Counter(counter.id)
            async with store.transaction() as tx:
                await fresh.fetch(tx)
            return fresh

        fresh = asyncio.run(run())
        assert fresh.count == 3
        assert fresh.saved is True
