"""In-process document store, used for tests and local experiments."""

import copy
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator

from waitlist.storage.store import (
    KEY_FIELDS,
    USERS,
    Document,
    DocumentStore,
    key_field,
)

# Column defaults mirrored from the SQL models
_DEFAULTS: dict[str, Document] = {
    USERS: {"referral_count": 0, "referred_by": None},
}


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store.

    A single re-entrant lock serializes every call, so ``transaction()``
    holds it for the whole block and restores a snapshot on error.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, Document]] = {name: {} for name in KEY_FIELDS}
        self._lock = threading.RLock()

    def _docs(self, collection: str) -> dict[str, Document]:
        key_field(collection)
        return self._collections[collection]

    def _new_document(self, collection: str, key: str, fields: Document) -> Document:
        document = {key_field(collection): key, "created_at": datetime.utcnow()}
        document.update(_DEFAULTS.get(collection, {}))
        document.update(fields)
        return document

    def get(self, collection: str, key: str) -> Document | None:
        with self._lock:
            document = self._docs(collection).get(key)
            return dict(document) if document is not None else None

    def query(self, collection: str, field: str, value: Any, limit: int = 1) -> list[Document]:
        with self._lock:
            matches = [dict(d) for d in self._docs(collection).values() if d.get(field) == value]
            return matches[:limit]

    def set(self, collection: str, key: str, fields: Document) -> None:
        with self._lock:
            docs = self._docs(collection)
            if key in docs:
                docs[key].update(fields)
            else:
                docs[key] = self._new_document(collection, key, fields)

    def update(self, collection: str, key: str, fields: Document) -> bool:
        with self._lock:
            document = self._docs(collection).get(key)
            if document is None:
                return False
            document.update(fields)
            return True

    def delete(self, collection: str, key: str) -> bool:
        with self._lock:
            return self._docs(collection).pop(key, None) is not None

    def increment(self, collection: str, key: str, field: str, delta: int = 1) -> bool:
        with self._lock:
            document = self._docs(collection).get(key)
            if document is None:
                return False
            document[field] = (document.get(field) or 0) + delta
            return True

    def create_if_absent(self, collection: str, key: str, fields: Document) -> bool:
        with self._lock:
            docs = self._docs(collection)
            if key in docs:
                return False
            docs[key] = self._new_document(collection, key, fields)
            return True

    def top(self, collection: str, field: str, limit: int) -> list[Document]:
        with self._lock:
            ordered = sorted(
                self._docs(collection).values(),
                key=lambda d: (-(d.get(field) or 0), d["created_at"]),
            )
            return [dict(d) for d in ordered[:limit]]

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._docs(collection))

    @contextmanager
    def transaction(self) -> Generator[DocumentStore, None, None]:
        with self._lock:
            snapshot = copy.deepcopy(self._collections)
            try:
                yield self
            except BaseException:
                self._collections = snapshot
                raise
