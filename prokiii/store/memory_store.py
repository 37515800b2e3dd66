import copy
from typing import Dict, List

from prokiii.store.base import CollectionStore, Document


class InMemoryDocumentStore(CollectionStore):
    """Process-local store with the same semantics as the JSON store."""

    def __init__(self):
        super().__init__()
        self._collections: Dict[str, List[Document]] = {}

    def _load(self, collection: str) -> List[Document]:
        return copy.deepcopy(self._collections.get(collection, []))

    def _save(self, collection: str, documents: List[Document]) -> None:
        self._collections[collection] = copy.deepcopy(documents)
