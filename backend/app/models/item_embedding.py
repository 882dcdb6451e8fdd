from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from app.db import Base

class ItemEmbedding(Base):
    """Catalog item embedding, replaced wholesale on re-ingestion"""
    __tablename__ = "item_embeddings"

    app_id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False)

    # Validated ItemMetadata payload
    metadata_version = Column(Integer, nullable=False, default=1)
    item_metadata = Column(JSON, nullable=False)

    # Denormalized filter columns
    review_score = Column(Integer)
    review_count = Column(Integer)
    release_year = Column(Integer)
    is_free = Column(Boolean, default=False)

    # Unit-length embedding (384 dimensions for all-MiniLM-L6-v2)
    embedding_vector = Column(JSON, nullable=False)
    dimension = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
