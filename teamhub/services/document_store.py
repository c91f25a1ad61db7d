# teamhub/services/document_store.py

from __future__ import annotations

import copy
import json
import logging
import os
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Filter = Dict[str, Any]
Sort = Sequence[Tuple[str, int]]

# ============================================================================
# DOCUMENT STORE
# ============================================================================

class DocumentStore:
    """
    Collection-oriented document store with optional JSON-file persistence.

    This is the boundary the messaging core talks to: create, find_by_id,
    find_many(filter, sort, limit), update_by_id, delete_by_id and
    count_documents. Documents are plain dicts keyed by "id". Callers always
    get deep copies, so state read before an await is a snapshot and has to
    be re-read afterwards.

    Filters are equality matches on top-level fields, plus the operators
    "$ne", "$in" and "$or".

    Storage Format (STORE_PATH):
        {
            "messages": {
                "3f2a...": {"id": "3f2a...", "text": "hi", "sender": "u1", ...}
            },
            "users": {...}
        }

    With no path configured the store lives in memory only (tests, local dev).
    """

    def __init__(self, path: str = "") -> None:
        self.path = path
        self.collections: Dict[str, Dict[str, Document]] = {}
        if self.path:
            self.load()

    def load(self) -> None:
        """Load collections from the JSON file, starting empty if it is missing."""
        if not os.path.exists(self.path):
            logger.info("No store file at %s, starting empty", self.path)
            return
        with open(self.path, "r", encoding="utf-8") as f:
            self.collections = json.load(f)
        total = sum(len(docs) for docs in self.collections.values())
        logger.info("✓ Loaded %d documents from %s", total, self.path)

    def save(self) -> None:
        """Persist every collection to the JSON file (no-op when in memory)."""
        if not self.path:
            return
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.collections, f, indent=2)

    def _collection(self, name: str) -> Dict[str, Document]:
        return self.collections.setdefault(name, {})

    def _commit(self, name: str, docs: Dict[str, Document]) -> None:
        """
        Swap in the next version of a collection and persist it.

        If the file write fails the previous version is put back, so a failed
        write never shows up in later reads.
        """
        previous = self.collections.get(name)
        self.collections[name] = docs
        try:
            self.save()
        except Exception:
            if previous is None:
                self.collections.pop(name, None)
            else:
                self.collections[name] = previous
            raise

    async def create(self, collection: str, document: Document) -> Document:
        doc = copy.deepcopy(document)
        doc.setdefault("id", uuid.uuid4().hex)
        docs = dict(self.collections.get(collection, {}))
        docs[doc["id"]] = doc
        self._commit(collection, docs)
        return copy.deepcopy(doc)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_one(self, collection: str, filter: Filter) -> Optional[Document]:
        found = await self.find_many(collection, filter, limit=1)
        return found[0] if found else None

    async def find_many(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """
        Query a collection.

        Args:
            filter: Field conditions, see class docstring
            sort: [(field, 1 | -1), ...] like a Mongo sort. Ties keep
                  insertion order in the direction of the first key.
            limit: Max number of documents returned after sorting
        """
        positioned = [
            (pos, doc)
            for pos, doc in enumerate(self._collection(collection).values())
            if _matches(doc, filter or {})
        ]

        if sort:
            if sort[0][1] < 0:
                positioned.reverse()
            for field, direction in reversed(list(sort)):
                positioned.sort(key=lambda item: _sort_key(item[1].get(field)), reverse=direction < 0)

        docs = [doc for _, doc in positioned]
        if limit is not None:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def update_by_id(self, collection: str, doc_id: str, changes: Document) -> Optional[Document]:
        """Apply a partial update. Returns the updated document, None if it no longer exists."""
        current = self._collection(collection).get(doc_id)
        if current is None:
            return None
        doc = {**current, **copy.deepcopy(changes), "id": doc_id}
        docs = dict(self._collection(collection))
        docs[doc_id] = doc
        self._commit(collection, docs)
        return copy.deepcopy(doc)

    async def delete_by_id(self, collection: str, doc_id: str) -> bool:
        if doc_id not in self._collection(collection):
            return False
        docs = dict(self._collection(collection))
        del docs[doc_id]
        self._commit(collection, docs)
        return True

    async def count_documents(self, collection: str, filter: Optional[Filter] = None) -> int:
        return sum(1 for doc in self._collection(collection).values() if _matches(doc, filter or {}))


def _sort_key(value: Any) -> Tuple[int, Any]:
    # None sorts before everything else
    return (0, "") if value is None else (1, value)


def _matches(doc: Document, filter: Filter) -> bool:
    for key, condition in filter.items():
        if key == "$or":
            if not any(_matches(doc, branch) for branch in condition):
                return False
            continue

        value = doc.get(key)
        if isinstance(condition, dict):
            for op, operand in condition.items():
                if op == "$ne":
                    if value == operand:
                        return False
                elif op == "$in":
                    if value not in operand:
                        return False
                else:
                    raise ValueError(f"Unsupported filter operator: {op}")
        elif value != condition:
            return False
    return True
