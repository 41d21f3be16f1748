"""
Document store configuration and access.

Firestore is reached through a single ``DocumentStore`` built at startup and
handed to services, instead of module-level client handles.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import firebase_admin
from firebase_admin import credentials, firestore_async
from google.api_core.exceptions import NotFound
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from disaster_monitor.config import Settings

logger = logging.getLogger(__name__)

# Firestore rejects batches with more writes than this
BATCH_LIMIT = 500

Filter = Tuple[str, str, Any]


def _service_account_from_env(settings: Settings) -> Optional[Dict[str, str]]:
    if not (settings.firebase_project_id and settings.firebase_private_key):
        return None
    client_email = settings.firebase_client_email or ""
    return {
        "type": "service_account",
        "project_id": settings.firebase_project_id,
        "private_key_id": settings.firebase_private_key_id or "",
        "private_key": settings.firebase_private_key.replace("\\n", "\n"),
        "client_email": client_email,
        "client_id": settings.firebase_client_id or "",
        "auth_uri": "https://accounts.google.com/o/oauth2/auth",
        "token_uri": "https://oauth2.googleapis.com/token",
        "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
        "client_x509_cert_url": (
            "https://www.googleapis.com/robot/v1/metadata/x509/"
            + client_email.replace("@", "%40")
        ),
    }


def init_firebase(settings: Settings) -> firebase_admin.App:
    """Initialise (or reuse) the Firebase Admin app."""
    if firebase_admin._apps:
        return firebase_admin.get_app()

    service_account = _service_account_from_env(settings)
    if service_account is not None:
        cred = credentials.Certificate(service_account)
        project_id = settings.firebase_project_id
    else:
        cred = credentials.Certificate(settings.firebase_credentials_path)
        project_id = cred.project_id

    if not project_id:
        raise ValueError("Firebase project_id is required. Check the Firebase configuration.")

    app = firebase_admin.initialize_app(cred, {"projectId": project_id})
    logger.info(f"Firebase Admin SDK initialised for project {project_id}")
    return app


def _chunks(items: Sequence[Any], size: int = BATCH_LIMIT) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class DocumentStore:
    """Thin async wrapper over a Firestore client.

    Documents come back as plain dicts with the document id under ``"id"``.
    Filters are ``(field_path, op, value)`` tuples; dotted paths address
    nested fields.
    """

    def __init__(self, client: firestore.AsyncClient):
        self.client = client

    @classmethod
    def from_app(cls, app: firebase_admin.App) -> "DocumentStore":
        return cls(firestore_async.client(app))

    def new_id(self, collection: str) -> str:
        return self.client.collection(collection).document().id

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        _, ref = await self.client.collection(collection).add(data)
        return ref.id

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return {"id": snapshot.id, **snapshot.to_dict()}

    async def set(
        self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False
    ) -> None:
        await self.client.collection(collection).document(doc_id).set(data, merge=merge)

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> bool:
        """Patch fields on an existing document. Returns False if it does not exist."""
        try:
            await self.client.collection(collection).document(doc_id).update(data)
        except NotFound:
            return False
        return True

    async def delete(self, collection: str, doc_id: str) -> None:
        await self.client.collection(collection).document(doc_id).delete()

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self.client.collection(collection)
        for field, op, value in filters:
            query = query.where(filter=FieldFilter(field, op, value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit:
            query = query.limit(limit)

        return [
            {"id": snapshot.id, **snapshot.to_dict()}
            async for snapshot in query.stream()
        ]

    async def add_many(self, collection: str, documents: Sequence[Dict[str, Any]]) -> List[str]:
        """Write documents with generated ids in batches. Not atomic across batches."""
        ids: List[str] = []
        for chunk in _chunks(documents):
            batch = self.client.batch()
            for data in chunk:
                ref = self.client.collection(collection).document()
                batch.set(ref, data)
                ids.append(ref.id)
            await batch.commit()
        return ids

    async def update_many(self, collection: str, updates: Dict[str, Dict[str, Any]]) -> int:
        items = list(updates.items())
        for chunk in _chunks(items):
            batch = self.client.batch()
            for doc_id, data in chunk:
                batch.update(self.client.collection(collection).document(doc_id), data)
            await batch.commit()
        return len(items)

    async def delete_many(self, collection: str, doc_ids: Sequence[str]) -> int:
        for chunk in _chunks(list(doc_ids)):
            batch = self.client.batch()
            for doc_id in chunk:
                batch.delete(self.client.collection(collection).document(doc_id))
            await batch.commit()
        return len(doc_ids)
