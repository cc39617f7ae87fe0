import copy
import itertools
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient
from google.cloud.firestore import ArrayUnion

from accessory_admin.app import app
from accessory_admin.auth.session_tokens import AdminSession, require_admin
from accessory_admin.core import repositories
from accessory_admin.core.db import get_db

_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
    "array-contains": lambda a, b: b in (a or []),
}


class FakeSnapshot:
    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db: "FakeFirestore", collection: str, doc_id: str):
        self.db = db
        self.collection = collection
        self.id = doc_id

    def _docs(self):
        return self.db.data.setdefault(self.collection, {})

    async def get(self, transaction=None):
        self.db.check(self.collection)
        data = copy.deepcopy(self._docs().get(self.id))
        if transaction is not None:
            transaction.reads[(self.collection, self.id)] = copy.deepcopy(data)
            self.db.after_transactional_read(self)
        return FakeSnapshot(self.id, data)

    async def set(self, data, merge=False):
        if merge and self.id in self._docs():
            merge_into(self._docs()[self.id], data)
        else:
            self._docs()[self.id] = copy.deepcopy(data)

    async def update(self, data):
        apply_update(self._docs()[self.id], data)

    async def delete(self):
        self._docs().pop(self.id, None)


def apply_update(doc: Dict[str, Any], data: Dict[str, Any]):
    for key, value in data.items():
        if isinstance(value, ArrayUnion):
            current = list(doc.get(key) or [])
            current.extend(v for v in value.values if v not in current)
            doc[key] = current
        else:
            doc[key] = copy.deepcopy(value)


def merge_into(doc: Dict[str, Any], data: Dict[str, Any]):
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(doc.get(key), dict):
            merge_into(doc[key], value)
        else:
            doc[key] = copy.deepcopy(value)


class FakeQuery:
    def __init__(self, db, name, filters=(), orders=(), limit=None):
        self.db = db
        self.name = name
        self.filters = filters
        self.orders = orders
        self._limit = limit

    def where(self, filter):
        return FakeQuery(self.db, self.name, self.filters + (filter,), self.orders, self._limit)

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self.db, self.name, self.filters, self.orders + ((field, direction),), self._limit)

    def limit(self, count):
        return FakeQuery(self.db, self.name, self.filters, self.orders, count)

    async def stream(self):
        self.db.check(self.name)
        rows = list(self.db.data.get(self.name, {}).items())
        for f in self.filters:
            rows = [
                (i, d) for i, d in rows
                if f.field_path in d and _OPS[f.op_string](d[f.field_path], f.value)
            ]
        for field, direction in reversed(self.orders):
            rows = [(i, d) for i, d in rows if field in d]
            rows.sort(key=lambda r: r[1][field], reverse=direction == "DESCENDING")
        if self._limit:
            rows = rows[: self._limit]
        for doc_id, doc in rows:
            yield FakeSnapshot(doc_id, doc)


class FakeCollection(FakeQuery):
    def document(self, doc_id: str):
        return FakeDocument(self.db, self.name, doc_id)

    async def add(self, data):
        self.db.check(self.name)
        doc_id = f"{self.name}-{next(self.db.ids)}"
        self.db.data.setdefault(self.name, {})[doc_id] = copy.deepcopy(data)
        return None, FakeDocument(self.db, self.name, doc_id)


class FakeBatch:
    def __init__(self):
        self.ops = []

    def update(self, ref, data):
        self.ops.append((ref, data))

    async def commit(self):
        for ref, data in self.ops:
            await ref.update(data)


class FakeTransaction:
    """Optimistic: commit fails when a document read inside it changed since."""

    def __init__(self, db):
        self.db = db
        self.reads = {}
        self.writes = []

    def update(self, ref, data):
        self.writes.append((ref, data))

    def commit(self) -> bool:
        for (collection, doc_id), seen in self.reads.items():
            if self.db.data.get(collection, {}).get(doc_id) != seen:
                return False
        for ref, data in self.writes:
            apply_update(ref._docs()[ref.id], data)
        return True


def run_transactional(fn):
    """In-memory counterpart of async_transactional: rerun on conflict."""

    async def run(transaction, *args, **kwargs):
        for _ in range(5):
            transaction.reads, transaction.writes = {}, []
            result = await fn(transaction, *args, **kwargs)
            if transaction.commit():
                return result
        raise RuntimeError("transaction contention")

    return run


class FakeFirestore:
    """In-memory stand-in for the async Firestore client."""

    def __init__(self):
        self.data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.failing = set()
        self.ids = itertools.count(1)
        self.read_hooks = []

    def check(self, name: str):
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    def collection(self, name: str):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch()

    def transaction(self):
        return FakeTransaction(self)

    def after_transactional_read(self, ref):
        # lets a test slip a concurrent write in between read and commit
        while self.read_hooks:
            self.read_hooks.pop(0)(ref)

    def seed(self, collection: str, doc_id: str, **fields):
        self.data.setdefault(collection, {})[doc_id] = fields
        return fields

    def doc(self, collection: str, doc_id: str) -> Dict[str, Any]:
        return self.data[collection][doc_id]


@pytest.fixture(autouse=True)
def in_memory_transactions(monkeypatch):
    monkeypatch.setattr(repositories, "async_transactional", run_transactional)


def at(year, month, day, hour=12):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def admin_session():
    return AdminSession(uid="admin-1", email="admin@example.com", profile={"role": "admin"})


@pytest.fixture
def client(fake_db, admin_session):
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[require_admin] = lambda: admin_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(fake_db):
    """Client that goes through the real admin check."""
    app.dependency_overrides[get_db] = lambda: fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()
