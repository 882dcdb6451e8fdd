from fastapi import APIRouter
from app.core.config import get_settings
from app.dependencies import get_vector_store

router = APIRouter(tags=["health"])

@router.get("/health")
def health_check():
    """Liveness plus the size of the in-process vector index"""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "embedding_dim": settings.EMBEDDING_DIM,
        "indexed_items": len(get_vector_store())
    }
