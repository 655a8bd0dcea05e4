"""
In-memory document store adapter - Implements DocumentStore protocol.

Same revision-token semantics as the PostgreSQL adapter, kept in process
memory. Used for local development (STORE_BACKEND=memory) and tests.

A single lock guards every call, so each store operation is atomic with
respect to the others. Bodies are deep-copied on the way in and out; a
caller can never mutate stored state without going through update().
"""

import copy
import threading
from typing import Any

from src.adapters.repository.postgres import next_revision
from src.domain.exceptions import DocumentConflict
from src.domain.ports import BulkItemResult, ReadResult, StoredDocument


class InMemoryDocumentStore:
    """
    Implements DocumentStore protocol with dictionaries.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, tuple[str, dict[str, Any]]]] = {}
        self._lock = threading.Lock()

    def create(self, key: str, body: dict[str, Any], collection: str) -> str:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if key in docs:
                raise DocumentConflict(key, collection)
            rev = next_revision()
            docs[key] = (rev, copy.deepcopy(body))
            return rev

    def create_bulk(
        self, documents: list[tuple[str, dict[str, Any]]], collection: str
    ) -> list[BulkItemResult]:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            results = []
            for key, body in documents:
                if key in docs:
                    results.append(
                        BulkItemResult(
                            key=key, ok=False, error="conflict", reason="Document update conflict."
                        )
                    )
                    continue
                rev = next_revision()
                docs[key] = (rev, copy.deepcopy(body))
                results.append(BulkItemResult(key=key, ok=True, rev=rev))
            return results

    def read_safe(self, key: str, collection: str) -> ReadResult:
        with self._lock:
            entry = self._collections.get(collection, {}).get(key)
            if entry is None:
                return ReadResult(status=404, message="not_found")
            rev, body = entry
            return ReadResult(
                status=200, document=StoredDocument(key=key, rev=rev, body=copy.deepcopy(body))
            )

    def update(self, key: str, rev: str, body: dict[str, Any], collection: str) -> str:
        with self._lock:
            docs = self._collections.get(collection, {})
            entry = docs.get(key)
            if entry is None or entry[0] != rev:
                raise DocumentConflict(key, collection)
            new_rev = next_revision(rev)
            docs[key] = (new_rev, copy.deepcopy(body))
            return new_rev

    def delete(self, key: str, rev: str, collection: str) -> None:
        with self._lock:
            docs = self._collections.get(collection, {})
            entry = docs.get(key)
            if entry is None or entry[0] != rev:
                raise DocumentConflict(key, collection)
            del docs[key]

    def query(
        self, selector: dict[str, Any], limit: int, collection: str
    ) -> list[StoredDocument]:
        """Documents whose top-level fields equal every selector value, ordered by key."""
        with self._lock:
            docs = self._collections.get(collection, {})
            matches = []
            for key in sorted(docs):
                rev, body = docs[key]
                if all(body.get(field) == value for field, value in selector.items()):
                    matches.append(StoredDocument(key=key, rev=rev, body=copy.deepcopy(body)))
                    if len(matches) >= limit:
                        break
            return matches

    def count(self, collection: str) -> int:
        """Number of documents in a collection."""
        with self._lock:
            return len(self._collections.get(collection, {}))
