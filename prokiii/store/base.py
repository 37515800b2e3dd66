import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from uuid import uuid4

from prokiii.core.exceptions import StoreError

Document = Dict[str, Any]

_MISSING = object()


def new_document_id() -> str:
    return uuid4().hex


def matches_filter(document: Document, filter: Document) -> bool:
    """
    Mongo-style matching for the subset of queries the services issue.

    A plain value matches by equality, or by containment when the stored field is
    a list. ``{"$in": [...]}`` and ``{"$size": n}`` are the only operators.
    """
    for field, condition in filter.items():
        value = document.get(field, _MISSING)
        if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
            for operator, operand in condition.items():
                if operator == "$in":
                    if isinstance(value, list):
                        matched = any(item in operand for item in value)
                    else:
                        matched = value in operand
                elif operator == "$size":
                    matched = isinstance(value, list) and len(value) == operand
                else:
                    raise StoreError(f"Unsupported filter operator {operator}", operation="find")
                if not matched:
                    return False
        elif isinstance(value, list) and not isinstance(condition, list):
            if condition not in value:
                return False
        elif value is _MISSING or value != condition:
            return False
    return True


def apply_update(document: Document, update: Document) -> Document:
    """Applies ``$set``, ``$addToSet`` and ``$pull`` in place and returns the document."""
    if not update:
        raise StoreError("Empty update document", operation="update")
    for operator, fields in update.items():
        if operator == "$set":
            for field, value in fields.items():
                document[field] = value
        elif operator == "$addToSet":
            for field, value in fields.items():
                current = list(document.get(field) or [])
                if value not in current:
                    current.append(value)
                document[field] = current
        elif operator == "$pull":
            for field, value in fields.items():
                document[field] = [item for item in document.get(field) or [] if item != value]
        else:
            raise StoreError(f"Unsupported update operator {operator}", operation="update")
    return document


def _seed_from_filter(filter: Document) -> Document:
    # Equality fields of an upsert filter become fields of the inserted document.
    return {
        field: value
        for field, value in filter.items()
        if not (isinstance(value, dict) and any(key.startswith("$") for key in value))
    }


class DocumentStore(ABC):
    """Async document-persistence interface consumed by the services."""

    @abstractmethod
    async def find_one(self, collection: str, filter: Document) -> Optional[Document]:
        ...

    @abstractmethod
    async def find_many(self, collection: str, filter: Optional[Document] = None) -> List[Document]:
        ...

    @abstractmethod
    async def insert_one(self, collection: str, document: Document) -> str:
        ...

    @abstractmethod
    async def update_one(self, collection: str, filter: Document, update: Document) -> int:
        ...

    @abstractmethod
    async def delete_one(self, collection: str, filter: Document) -> int:
        ...

    @abstractmethod
    async def find_one_and_update(
        self, collection: str, filter: Document, update: Document, upsert: bool = False
    ) -> Optional[Document]:
        ...

    @abstractmethod
    async def pull_and_prune(self, collection: str, filter: Document, field: str, value: Any) -> Optional[Document]:
        """
        Pulls ``value`` from the list ``field`` of the first matching document and
        deletes that document if the list is left empty, as one operation.

        Returns the document as it is after the pull (with an empty list when it
        was deleted), or None if nothing matched.
        """
        ...


class CollectionStore(DocumentStore):
    """
    Implements the query and update semantics over whole-collection load/save hooks.

    Every operation holds one lock from load to save, so each single-document
    operation is atomic with respect to any other operation on the same store.
    The locked sections contain no awaits: a cancelled caller either sees the
    operation fully applied or not at all. Cancellation can only land while
    waiting for the lock.
    """

    def __init__(self):
        self._lock = asyncio.Lock()

    @abstractmethod
    def _load(self, collection: str) -> List[Document]:
        ...

    @abstractmethod
    def _save(self, collection: str, documents: List[Document]) -> None:
        ...

    async def find_one(self, collection: str, filter: Document) -> Optional[Document]:
        async with self._lock:
            for document in self._load(collection):
                if matches_filter(document, filter):
                    return copy.deepcopy(document)
        return None

    async def find_many(self, collection: str, filter: Optional[Document] = None) -> List[Document]:
        async with self._lock:
            return [
                copy.deepcopy(document)
                for document in self._load(collection)
                if matches_filter(document, filter or {})
            ]

    async def insert_one(self, collection: str, document: Document) -> str:
        async with self._lock:
            documents = self._load(collection)
            new_document = copy.deepcopy(document)
            new_document.setdefault("id", new_document_id())
            if any(existing.get("id") == new_document["id"] for existing in documents):
                raise StoreError(f"Duplicate id {new_document['id']} in {collection}", operation="insert")
            documents.append(new_document)
            self._save(collection, documents)
            return new_document["id"]

    async def update_one(self, collection: str, filter: Document, update: Document) -> int:
        async with self._lock:
            documents = self._load(collection)
            for index, document in enumerate(documents):
                if matches_filter(document, filter):
                    documents[index] = apply_update(copy.deepcopy(document), update)
                    self._save(collection, documents)
                    return 1
        return 0

    async def delete_one(self, collection: str, filter: Document) -> int:
        async with self._lock:
            documents = self._load(collection)
            for index, document in enumerate(documents):
                if matches_filter(document, filter):
                    del documents[index]
                    self._save(collection, documents)
                    return 1
        return 0

    async def find_one_and_update(
        self, collection: str, filter: Document, update: Document, upsert: bool = False
    ) -> Optional[Document]:
        """Returns the document as it is after the update, or None if nothing matched and ``upsert`` is off."""
        async with self._lock:
            documents = self._load(collection)
            for index, document in enumerate(documents):
                if matches_filter(document, filter):
                    updated = apply_update(copy.deepcopy(document), update)
                    documents[index] = updated
                    self._save(collection, documents)
                    return copy.deepcopy(updated)
            if not upsert:
                return None
            created = apply_update(_seed_from_filter(filter), update)
            created.setdefault("id", new_document_id())
            documents.append(created)
            self._save(collection, documents)
            return copy.deepcopy(created)

    async def pull_and_prune(self, collection: str, filter: Document, field: str, value: Any) -> Optional[Document]:
        async with self._lock:
            documents = self._load(collection)
            for index, document in enumerate(documents):
                if matches_filter(document, filter):
                    updated = apply_update(copy.deepcopy(document), {"$pull": {field: value}})
                    if updated.get(field):
                        documents[index] = updated
                    else:
                        del documents[index]
                    self._save(collection, documents)
                    return copy.deepcopy(updated)
        return None
