from .base import DocumentStore, CollectionStore, Document, matches_filter, apply_update, new_document_id
from .json_store import JsonDocumentStore
from .memory_store import InMemoryDocumentStore

EVENTS = "events"
PARTICIPANTS = "participants"
USERS = "users"


def build_store(data_dir: str) -> DocumentStore:
    if data_dir:
        return JsonDocumentStore(data_dir)
    return InMemoryDocumentStore()
