import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from disaster_monitor.config import Settings
from disaster_monitor.exceptions import AuthenticationError
from disaster_monitor.main import create_app
from disaster_monitor.realtime import ConnectionManager
from disaster_monitor.schemas.auth import AuthenticatedUser
from disaster_monitor.services.gemini_service import GeminiService


_MISSING = object()


def _lookup(doc: Dict[str, Any], path: str) -> Any:
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _matches(doc: Dict[str, Any], field: str, op: str, expected: Any) -> bool:
    value = _lookup(doc, field)
    if value is _MISSING:
        return False
    if op == "==":
        return value == expected
    if op == "in":
        return value in expected
    if value is None:
        return False
    if op == "<":
        return value < expected
    if op == "<=":
        return value <= expected
    if op == ">":
        return value > expected
    if op == ">=":
        return value >= expected
    raise ValueError(f"Unsupported operator {op}")


class FakeStore:
    """In-memory stand-in for DocumentStore."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._ids = itertools.count(1)

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(name, {})

    def docs(self, collection: str) -> List[Dict[str, Any]]:
        return [{"id": k, **v} for k, v in self._collection(collection).items()]

    def new_id(self, collection: str) -> str:
        return f"{collection}-{next(self._ids)}"

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = self.new_id(collection)
        self._collection(collection)[doc_id] = dict(data)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collection(collection).get(doc_id)
        return None if doc is None else {"id": doc_id, **doc}

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        docs = self._collection(collection)
        docs[doc_id] = {**docs.get(doc_id, {}), **data} if merge else dict(data)

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> bool:
        docs = self._collection(collection)
        if doc_id not in docs:
            return False
        docs[doc_id].update(data)
        return True

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collection(collection).pop(doc_id, None)

    async def query(
        self,
        collection: str,
        filters: Sequence = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        results = [
            doc for doc in self.docs(collection)
            if all(_matches(doc, field, op, value) for field, op, value in filters)
        ]
        if order_by:
            results = [doc for doc in results if _lookup(doc, order_by) is not _MISSING]
            results.sort(key=lambda doc: _lookup(doc, order_by), reverse=descending)
        if limit:
            results = results[:limit]
        return results

    async def add_many(self, collection: str, documents: Sequence[Dict[str, Any]]) -> List[str]:
        return [await self.add(collection, data) for data in documents]

    async def update_many(self, collection: str, updates: Dict[str, Dict[str, Any]]) -> int:
        for doc_id, data in updates.items():
            await self.update(collection, doc_id, data)
        return len(updates)

    async def delete_many(self, collection: str, doc_ids: Sequence[str]) -> int:
        for doc_id in doc_ids:
            await self.delete(collection, doc_id)
        return len(doc_ids)


class FakeVerifier:
    """Accepts tokens of the form ``token-<uid>``."""

    def __init__(self):
        self.deleted: List[str] = []

    async def verify(self, token: str) -> AuthenticatedUser:
        if not token.startswith("token-"):
            raise AuthenticationError("bad token")
        uid = token[len("token-"):]
        return AuthenticatedUser(uid=uid, email=f"{uid}@example.com", name=uid.title())

    async def delete_user(self, uid: str) -> None:
        self.deleted.append(uid)


def _auth_headers(uid: str = "alice") -> Dict[str, str]:
    return {"Authorization": f"Bearer token-{uid}"}


@pytest.fixture
def auth_headers():
    """Bearer header factory; the uid is embedded in the token."""
    return _auth_headers


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jobs_enabled=False,
        weather_api_key="test-key",
        gemini_api_key=None,
        rate_limit_requests=1000,
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def user():
    return AuthenticatedUser(uid="alice", email="alice@example.com")


@pytest.fixture
def now():
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app(settings, store):
    application = create_app(settings)
    application.state.store = store
    application.state.ai = GeminiService(None)
    application.state.connections = ConnectionManager()
    application.state.token_verifier = FakeVerifier()
    return application


@pytest.fixture
def client(app):
    return TestClient(app)
