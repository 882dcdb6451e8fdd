import logging
import threading
import numpy as np
import faiss
from typing import Dict, Iterable, List, Optional
from app.core.identifiers import AppId
from app.core.interfaces import ItemPredicate, ItemRecord, Neighbor, VectorStoreInterface
from app.core.vectors import VectorDimension, normalize
from app.schemas.item import ItemMetadata

logger = logging.getLogger(__name__)

class FaissVectorStore(VectorStoreInterface):
    """In-process FAISS inner-product index over unit-length item vectors.

    Inner product of unit vectors is cosine similarity, so the reported
    distance is ``1 - score`` clamped to [0, 2]. Metadata predicates are
    applied after the search, widening ``k`` until enough items pass.
    """

    def __init__(self, dimension: VectorDimension):
        self._dimension = dimension
        self.index = faiss.IndexIDMap(faiss.IndexFlatIP(dimension.size))
        self._metadata: Dict[int, ItemMetadata] = {}
        self._lock = threading.RLock()
        logger.info(f"Created FAISS index with dimension {dimension.size}")

    @property
    def dimension(self) -> int:
        return self._dimension.size

    def __len__(self) -> int:
        return int(self.index.ntotal)

    def _prepare(self, vector, context: str) -> np.ndarray:
        array = normalize(self._dimension.validate(vector, context))
        return array.astype(np.float32).reshape(1, -1)

    def store(self, app_id: AppId, vector: np.ndarray, metadata: ItemMetadata) -> None:
        key = int(app_id)
        row = self._prepare(vector, f"item {key} embedding")
        with self._lock:
            if key in self._metadata:
                self.index.remove_ids(np.array([key], dtype=np.int64))
            self.index.add_with_ids(row, np.array([key], dtype=np.int64))
            self._metadata[key] = metadata

    def hydrate(self, records: Iterable[ItemRecord]) -> int:
        """Bulk-load items, typically from the item_embeddings table at startup"""
        count = 0
        for record in records:
            self.store(record.app_id, record.vector, record.metadata)
            count += 1
        logger.info(f"Vector store hydrated with {count} items (total {len(self)})")
        return count

    def remove(self, app_id: AppId) -> bool:
        key = int(app_id)
        with self._lock:
            if key not in self._metadata:
                return False
            self.index.remove_ids(np.array([key], dtype=np.int64))
            del self._metadata[key]
            return True

    def get_metadata(self, app_id: AppId) -> Optional[ItemMetadata]:
        return self._metadata.get(int(app_id))

    def query(self, vector: np.ndarray, limit: int, predicate: Optional[ItemPredicate] = None) -> List[Neighbor]:
        query = self._prepare(vector, "query vector")
        if limit <= 0:
            return []
        with self._lock:
            total = len(self)
            if total == 0:
                return []
            k = min(total, limit if predicate is None else limit * 2)
            while True:
                scores, ids = self.index.search(query, k)
                neighbors = []
                for score, key in zip(scores[0], ids[0]):
                    if key < 0:
                        continue
                    app_id = AppId(int(key))
                    if predicate is not None and not predicate(app_id, self._metadata[int(key)]):
                        continue
                    distance = float(min(2.0, max(0.0, 1.0 - float(score))))
                    neighbors.append(Neighbor(app_id, distance))
                if len(neighbors) >= limit or k >= total:
                    break
                k = min(total, k * 2)
        neighbors.sort(key=lambda n: (n.distance, int(n.app_id)))
        return neighbors[:limit]
