import logging
import numpy as np
from typing import Any, Dict, Optional, Union
from pydantic import ValidationError
from app.core.exceptions import InvalidItemMetadataException, VectorDimensionError
from app.core.identifiers import AppId
from app.core.interfaces import (
    EmbeddingProviderInterface, EmbeddingRepositoryInterface, ItemRecord, VectorStoreInterface
)
from app.core.vectors import VectorDimension, normalize
from app.schemas.item import ItemMetadata
from app.services.embedding_service import build_item_text

logger = logging.getLogger(__name__)

class CatalogService:
    """Ingestion boundary: metadata schema and vector dimensionality are enforced here, never at read time"""

    def __init__(self, embedding_repo: EmbeddingRepositoryInterface,
                 vector_store: VectorStoreInterface,
                 embedding_provider: Optional[EmbeddingProviderInterface],
                 dimension: VectorDimension):
        self.embedding_repo = embedding_repo
        self.vector_store = vector_store
        self.embedding_provider = embedding_provider
        self.dimension = dimension

    def ingest_item(self, app_id, metadata: Union[ItemMetadata, Dict[str, Any]],
                    vector: Optional[np.ndarray] = None) -> ItemRecord:
        app_id = AppId.parse(app_id)
        if not isinstance(metadata, ItemMetadata):
            try:
                metadata = ItemMetadata.model_validate(metadata)
            except ValidationError as e:
                raise InvalidItemMetadataException(f"Invalid metadata for app {app_id}: {e.errors()[0]['msg']}")

        if vector is None:
            if self.embedding_provider is None:
                raise InvalidItemMetadataException(f"No vector supplied for app {app_id} and no embedding provider")
            vector = self.embedding_provider.embed(build_item_text(metadata))
        vector = self.dimension.validate(vector, f"item {app_id} embedding")
        if not np.any(vector):
            raise InvalidItemMetadataException(f"Zero embedding for app {app_id}")

        record = self.embedding_repo.upsert_item(ItemRecord(app_id=app_id, vector=normalize(vector), metadata=metadata))
        self.vector_store.store(record.app_id, record.vector, record.metadata)
        logger.info(f"Ingested app {app_id} ({metadata.name})")
        return record

    def verify_dimension(self) -> None:
        """Startup check: provider, configuration, index and stored rows must agree"""
        expected = self.dimension.size
        if self.embedding_provider is not None and self.embedding_provider.dimension != expected:
            raise VectorDimensionError(expected, self.embedding_provider.dimension, "embedding provider output")
        if self.vector_store.dimension != expected:
            raise VectorDimensionError(expected, self.vector_store.dimension, "vector store index")
        for stored in self.embedding_repo.stored_dimensions():
            if stored != expected:
                raise VectorDimensionError(expected, stored, "stored item embeddings")
        logger.info(f"Vector dimension verified: {expected}")
