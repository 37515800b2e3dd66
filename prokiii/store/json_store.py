import json
import logging
import os
from typing import List

from prokiii.core.exceptions import StoreError
from prokiii.store.base import CollectionStore, Document

logger = logging.getLogger(__name__)


class JsonDocumentStore(CollectionStore):
    """
    Keeps each collection as a JSON array in ``<data_dir>/<collection>.json``.

    File reads and writes run inline on the event loop while the store lock is
    held. A caller's timeout therefore bounds the wait for the lock, not a read
    or write already in progress; that one always completes.
    """

    def __init__(self, data_dir: str):
        super().__init__()
        self.data_dir = data_dir
        os.makedirs(self.data_dir, exist_ok=True)

    def _path(self, collection: str) -> str:
        return os.path.join(self.data_dir, f"{collection}.json")

    def _load(self, collection: str) -> List[Document]:
        path = self._path(collection)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r") as f:
                content = f.read()
        except OSError as e:
            raise StoreError(f"Could not read {path}: {e}", operation="load") from e
        if not content:
            return []
        try:
            documents = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error("Collection file %s is not valid JSON", path)
            raise StoreError(f"Could not decode JSON from {path}", operation="load") from e
        if not isinstance(documents, list):
            raise StoreError(f"{path} does not hold a JSON array", operation="load")
        return documents

    def _save(self, collection: str, documents: List[Document]) -> None:
        path = self._path(collection)
        tmp_path = f"{path}.tmp"
        try:
            with open(tmp_path, "w") as f:
                json.dump(documents, f, indent=4, default=str)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreError(f"Could not write {path}: {e}", operation="save") from e
