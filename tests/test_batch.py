"""Tests for batch composition over document graphs."""

import asyncio

import pytest

import quire
from quire import BatchType, Document, Field, ReferenceCollection, SubCollection, compose, finalize
from quire.batch import new_token
from quire.store import SERVER_TIMESTAMP, MemoryBackend, Store, StoreError, connect


class Node(Document):
    name = Field()
    children = Field()
    others = Field()


class FailingBackend(MemoryBackend):
    """Memory backend whose commits always fail."""

    async def commit(self, writes):
        raise StoreError("commit refused")


@pytest.fixture(autouse=True)
def store():
    with quire.using(connect("memory://")) as store:
        yield store
    store.close()


def paths(batch):
    return [write.path for write in batch.writes]


class TestCompose:
    """Tests for compose()."""

    def test_save_root_only(self):
        node = Node("a")
        node.name = "x"

        batch = compose(node, BatchType.SAVE)

        assert len(batch) == 1
        write = batch.writes[0]
        assert write.kind == "set"
        assert write.merge is True
        assert write.path == "version/1/node/a"
        assert write.data == {"name": "x", "createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP}

    def test_extends_given_batch(self, store):
        batch = store.batch()
        assert compose(Node(), BatchType.SAVE, write_batch=batch) is batch
        assert len(batch) == 1

    def test_same_token_packs_once(self, store):
        node = Node()
        token = new_token()

        batch = compose(node, BatchType.SAVE, token)
        compose(node, BatchType.SAVE, token, batch)
        assert len(batch) == 1

        # A batch of its own, same operation: nothing left to write
        assert len(compose(node, BatchType.SAVE, token)) == 0

    def test_new_token_packs_again(self):
        node = Node()
        compose(node, BatchType.SAVE)
        assert len(compose(node, BatchType.SAVE)) == 1

    def test_nested_paths(self):
        a, b, c = Node("a"), Node("b"), Node("c")
        b.children = SubCollection([c])
        a.children = SubCollection([b])

        batch = compose(a, BatchType.SAVE)

        assert paths(batch) == [
            "version/1/node/a",
            "version/1/node/a/children/b",
            "version/1/node/a/children/b/children/c",
        ]
        assert c.path == "version/1/node/a/children/b/children/c"

    def test_update_is_partial_and_creates_new_children(self):
        async def run():
            parent = Node("p")
            parent.name = "x"
            old = Node("old")
            old.name = "kept"
            parent.children = SubCollection([old])
            await parent.save()

            parent.name = "y"
            new = Node("new")
            new.name = "fresh"
            parent.children.insert(new)
            return compose(parent, BatchType.UPDATE)

        batch = asyncio.run(run())
        writes = {write.path: write for write in batch.writes}

        root = writes["version/1/node/p"]
        assert root.kind == "update"
        assert root.data == {"name": "y", "updatedAt": SERVER_TIMESTAMP}

        old = writes["version/1/node/p/children/old"]
        assert old.kind == "update"
        assert old.data == {"updatedAt": SERVER_TIMESTAMP}

        new = writes["version/1/node/p/children/new"]
        assert new.kind == "set"
        assert new.data == {"name": "fresh", "createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP}

    def test_delete_is_root_only(self):
        a, b = Node("a"), Node("b")
        a.children = SubCollection([b])
        a.others = ReferenceCollection(Node, [Node("c")])

        batch = compose(a, BatchType.DELETE)

        assert len(batch) == 1
        assert batch.writes[0].kind == "delete"
        assert batch.writes[0].path == "version/1/node/a"

    def test_document_in_two_relations_written_once(self):
        parent, shared = Node("p"), Node("s")
        parent.children = SubCollection([shared])
        parent.others = SubCollection([shared])

        batch = compose(parent, BatchType.SAVE)

        assert len(batch) == 2
        assert paths(batch).count(shared.path) == 1

    def test_owned_cycle_terminates(self):
        a, b = Node("a"), Node("b")
        a.children = SubCollection([b])
        b.children = SubCollection([a])

        # Owning a root document moves it under its new owner
        assert a.path == "version/1/node/a/children/b/children/a"

        batch = compose(a, BatchType.SAVE)

        assert paths(batch) == [
            "version/1/node/a/children/b/children/a",
            "version/1/node/a/children/b/children/a/children/b",
        ]

    def test_reference_cycle_terminates(self):
        a, b = Node("a"), Node("b")
        a.others = ReferenceCollection(Node, [b])
        b.others = ReferenceCollection(Node, [a])

        batch = compose(a, BatchType.SAVE)

        assert paths(batch) == ["version/1/node/a", "version/1/node/a/others/b"]


class TestFinalize:
    """Tests for finalize()."""

    def test_marks_graph_saved(self):
        a, b = Node("a"), Node("b")
        b.name = "child"
        a.children = SubCollection([b])

        finalize(a, BatchType.SAVE)

        assert a.saved and b.saved
        assert b.dirty_fields == {}

    def test_same_token_is_noop(self):
        node = Node()
        token = new_token()
        finalize(node, BatchType.SAVE, token)

        node.name = "later"
        finalize(node, BatchType.SAVE, token)
        assert node.dirty_fields == {"name": "later"}

    def test_delete_unmarks_root_only(self):
        a, b = Node("a"), Node("b")
        a.children = SubCollection([b])
        finalize(a, BatchType.SAVE)

        finalize(a, BatchType.DELETE)

        assert a.saved is False
        assert b.saved is True

    def test_save_commits_whole_graph(self, store):
        async def run():
            a, b = Node("a"), Node("b")
            a.children = SubCollection([b])
            await a.save()
            return await store.get(a.path), await store.get(b.path), b

        root, child, b = asyncio.run(run())
        assert root.exists and child.exists
        assert b.saved is True


class TestFailedCommit:
    """A failed commit leaves the graph as it was."""

    def test_state_untouched(self):
        backend = FailingBackend()
        backend.connect()
        store = Store(backend)

        parent = Node("p", store=store)
        parent.name = "x"
        child = Node("c", store=store)
        child.name = "y"
        parent.children = SubCollection([child])

        with pytest.raises(StoreError):
            asyncio.run(parent.save())

        assert parent.saved is False
        assert child.saved is False
        assert parent.dirty_fields == {"name": "x"}
        assert child.dirty_fields == {"name": "y"}
        assert backend.paths() == []
