import logging
from typing import Dict, Iterable, Iterator, List, Optional
import numpy as np
from sqlalchemy.orm import Session
from app.repositories.base_repository import BaseRepository
from app.models.item_embedding import ItemEmbedding
from app.core.identifiers import AppId
from app.core.interfaces import EmbeddingRepositoryInterface, ItemRecord
from app.core.vectors import VectorDimension, to_list
from app.schemas.item import ItemMetadata

logger = logging.getLogger(__name__)

_IN_CLAUSE_CHUNK = 500

class EmbeddingRepository(BaseRepository[ItemEmbedding], EmbeddingRepositoryInterface):
    """item_embeddings table access"""
    
    def __init__(self, db: Session, dimension: VectorDimension):
        super().__init__(ItemEmbedding, db)
        self.dimension = dimension
    
    def get_item(self, app_id: AppId) -> Optional[ItemRecord]:
        row = self.get(int(app_id))
        return self._to_record(row) if row else None
    
    def get_items(self, app_ids: Iterable[AppId]) -> Dict[AppId, ItemRecord]:
        ids = sorted({int(a) for a in app_ids})
        records: Dict[AppId, ItemRecord] = {}
        for start in range(0, len(ids), _IN_CLAUSE_CHUNK):
            chunk = ids[start:start + _IN_CLAUSE_CHUNK]
            rows = self.db.query(ItemEmbedding).filter(ItemEmbedding.app_id.in_(chunk)).all()
            for row in rows:
                record = self._to_record(row)
                records[record.app_id] = record
        return records
    
    def upsert_item(self, record: ItemRecord) -> ItemRecord:
        """Insert or wholesale-replace one item"""
        vector = self.dimension.validate(record.vector, f"item {int(record.app_id)} embedding")
        metadata = record.metadata
        fields = {
            "name": metadata.name,
            "metadata_version": metadata.schema_version,
            "item_metadata": metadata.model_dump(mode="json"),
            "review_score": metadata.review_score,
            "review_count": metadata.review_count,
            "release_year": metadata.release_year,
            "is_free": metadata.is_free,
            "embedding_vector": to_list(vector),
            "dimension": self.dimension.size,
        }
        existing = self.get(int(record.app_id))
        if existing:
            self.update(existing, fields)
        else:
            self.create({"app_id": int(record.app_id), **fields})
        return ItemRecord(app_id=AppId(record.app_id), vector=vector, metadata=metadata)
    
    def iter_items(self, batch_size: int = 500) -> Iterator[ItemRecord]:
        """Every stored item in app id order, paged by key"""
        last_id = -1
        while True:
            rows = (
                self.db.query(ItemEmbedding)
                .filter(ItemEmbedding.app_id > last_id)
                .order_by(ItemEmbedding.app_id)
                .limit(batch_size)
                .all()
            )
            if not rows:
                return
            for row in rows:
                yield self._to_record(row)
            last_id = rows[-1].app_id
    
    def stored_dimensions(self) -> List[int]:
        rows = self.db.query(ItemEmbedding.dimension).distinct().all()
        return sorted(int(r[0]) for r in rows)
    
    @staticmethod
    def _to_record(row: ItemEmbedding) -> ItemRecord:
        # Metadata was validated when it was ingested
        return ItemRecord(
            app_id=AppId(row.app_id),
            vector=np.asarray(row.embedding_vector, dtype=np.float64),
            metadata=ItemMetadata.model_construct(**row.item_metadata),
        )
