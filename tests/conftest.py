"""Shared fixtures: an in-memory Firestore stand-in and seeded properties."""

import copy

import pytest

import expenses
import members
import recurring_expenses


class FakeDocumentSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentReference:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    @property
    def id(self):
        return self._path[-1]

    def collection(self, name):
        return FakeCollectionReference(self._store, self._path + (name,))

    def set(self, data):
        self._store.docs[self._path] = copy.deepcopy(data)

    def get(self):
        return FakeDocumentSnapshot(self, copy.deepcopy(self._store.docs.get(self._path)))

    def delete(self):
        self._store.docs.pop(self._path, None)


class FakeCollectionReference:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    def document(self, doc_id):
        return FakeDocumentReference(self._store, self._path + (doc_id,))

    def stream(self):
        depth = len(self._path) + 1
        return [
            FakeDocumentSnapshot(FakeDocumentReference(self._store, path), copy.deepcopy(data))
            for path, data in sorted(self._store.docs.items())
            if len(path) == depth and path[:-1] == self._path
        ]


class FakeWriteBatch:
    def __init__(self):
        self._ops = []

    def set(self, reference, data):
        self._ops.append(lambda: reference.set(data))

    def delete(self, reference):
        self._ops.append(reference.delete)

    def commit(self):
        for op in self._ops:
            op()
        self._ops = []


class FakeFirestore:
    """Just enough of google.cloud.firestore.Client for the store modules."""

    def __init__(self):
        self.docs = {}

    def collection(self, name):
        return FakeCollectionReference(self, (name,))

    def batch(self):
        return FakeWriteBatch()

    def paths_under(self, *prefix):
        return sorted(path for path in self.docs if path[:len(prefix)] == prefix)


STORE_MODULES = (members, expenses, recurring_expenses)


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeFirestore()
    for module in STORE_MODULES:
        monkeypatch.setattr(module, "get_db", lambda: db)
    return db


@pytest.fixture
def no_db(monkeypatch):
    for module in STORE_MODULES:
        monkeypatch.setattr(module, "get_db", lambda: None)


@pytest.fixture
def property_id(fake_db):
    """A property with three members: alice, bob and carol."""
    members.add_member("P1", "alice", "Alice")
    members.add_member("P1", "bob", "Bob")
    members.add_member("P1", "carol", "Carol")
    return "P1"


@pytest.fixture
def client(fake_db):
    from fastapi.testclient import TestClient

    from main import app

    return TestClient(app)
