"""Document store interface.

Documents are plain dicts addressed by ``(collection, key)``. The key is
also present in the returned document under the collection's key field.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any

USERS = "verified_users"
PENDING_REFERRALS = "pending_referrals"
REFERRAL_CODES = "referral_codes"

# Field holding the document key, per collection
KEY_FIELDS = {
    USERS: "email",
    PENDING_REFERRALS: "email",
    REFERRAL_CODES: "code",
}

Document = dict[str, Any]


class DocumentStore(ABC):
    """Key-addressed, collection-organized document store."""

    def setup(self) -> None:
        """Prepare backing structures (tables, indexes). No-op by default."""

    @abstractmethod
    def get(self, collection: str, key: str) -> Document | None:
        """Fetch one document by key."""

    @abstractmethod
    def query(self, collection: str, field: str, value: Any, limit: int = 1) -> list[Document]:
        """Return up to ``limit`` documents where ``field == value``."""

    @abstractmethod
    def set(self, collection: str, key: str, fields: Document) -> None:
        """Create the document or merge ``fields`` into the existing one."""

    @abstractmethod
    def update(self, collection: str, key: str, fields: Document) -> bool:
        """Merge ``fields`` into an existing document.

        Never creates one; returns False if the document does not exist.
        """

    @abstractmethod
    def delete(self, collection: str, key: str) -> bool:
        """Delete a document. Returns True if it existed."""

    @abstractmethod
    def increment(self, collection: str, key: str, field: str, delta: int = 1) -> bool:
        """Atomically add ``delta`` to a numeric field.

        Returns False if the document does not exist.
        """

    @abstractmethod
    def create_if_absent(self, collection: str, key: str, fields: Document) -> bool:
        """Atomically create a document unless one already exists under ``key``.

        Returns True if this call created it.
        """

    @abstractmethod
    def top(self, collection: str, field: str, limit: int) -> list[Document]:
        """Documents ordered by ``field`` descending, ties by oldest ``created_at``."""

    @abstractmethod
    def count(self, collection: str) -> int:
        """Number of documents in a collection."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager["DocumentStore"]:
        """Context manager yielding a store whose writes commit together.

        An exception inside the block discards every write made through it.
        """


def key_field(collection: str) -> str:
    try:
        return KEY_FIELDS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None
