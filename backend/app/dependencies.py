from typing import Optional
from fastapi import Depends
from sqlalchemy.orm import Session
from app.db import get_db
from app.core.cache import CacheService
from app.core.config import get_settings
from app.core.steam_client import SteamClient, SteamConfig
from app.core.vectors import VectorDimension
from app.repositories import EmbeddingRepository, FeedbackRepository, PreferenceRepository, UserProfileRepository
from app.services.catalog_service import CatalogService
from app.services.embedding_service import SentenceTransformerEmbeddingProvider
from app.services.entitlement_service import EntitlementService
from app.services.feedback_service import FeedbackService
from app.services.library_sync_service import LibrarySyncService
from app.services.preference_vector_service import PreferenceVectorService
from app.services.recommendation_service import RecommendationService
from app.services.refinement_service import RefinementService
from app.services.vector_store import FaissVectorStore

# ============================================================================
# PROCESS-WIDE SINGLETONS
# ============================================================================

_vector_store: Optional[FaissVectorStore] = None
_embedding_provider: Optional[SentenceTransformerEmbeddingProvider] = None
_cache: Optional[CacheService] = None

def get_dimension() -> VectorDimension:
    return VectorDimension(get_settings().EMBEDDING_DIM)

def get_vector_store() -> FaissVectorStore:
    global _vector_store
    if _vector_store is None:
        _vector_store = FaissVectorStore(get_dimension())
    return _vector_store

def get_embedding_provider() -> SentenceTransformerEmbeddingProvider:
    global _embedding_provider
    if _embedding_provider is None:
        _embedding_provider = SentenceTransformerEmbeddingProvider()
    return _embedding_provider

def get_cache() -> CacheService:
    global _cache
    if _cache is None:
        _cache = CacheService()
    return _cache

def get_library_provider() -> SteamClient:
    settings = get_settings()
    return SteamClient(SteamConfig(
        api_key=settings.STEAM_API_KEY or "",
        base_url=settings.STEAM_API_BASE_URL,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS
    ))

# ============================================================================
# PER-REQUEST SERVICES
# ============================================================================

def get_preference_service(db: Session = Depends(get_db)) -> PreferenceVectorService:
    return PreferenceVectorService(PreferenceRepository(db), EmbeddingRepository(db, get_dimension()), get_dimension())

def get_feedback_service(db: Session = Depends(get_db)) -> FeedbackService:
    dimension = get_dimension()
    return FeedbackService(
        feedback_repo=FeedbackRepository(db),
        preference_repo=PreferenceRepository(db),
        embedding_repo=EmbeddingRepository(db, dimension),
        entitlement=EntitlementService(UserProfileRepository(db)),
        dimension=dimension
    )

def get_recommendation_service(db: Session = Depends(get_db),
                               feedback_service: FeedbackService = Depends(get_feedback_service)) -> RecommendationService:
    dimension = get_dimension()
    return RecommendationService(
        vector_store=get_vector_store(),
        preference_repo=PreferenceRepository(db),
        embedding_repo=EmbeddingRepository(db, dimension),
        feedback_service=feedback_service,
        embedding_provider=get_embedding_provider(),
        entitlement=EntitlementService(UserProfileRepository(db)),
        dimension=dimension,
        cache=get_cache()
    )

def get_refinement_service(recommendation_service: RecommendationService = Depends(get_recommendation_service)) -> RefinementService:
    return RefinementService(recommendation_service)

def get_library_sync_service(db: Session = Depends(get_db),
                             preference_service: PreferenceVectorService = Depends(get_preference_service)) -> LibrarySyncService:
    return LibrarySyncService(
        library_provider=get_library_provider(),
        preference_repo=PreferenceRepository(db),
        embedding_repo=EmbeddingRepository(db, get_dimension()),
        preference_service=preference_service,
        profile_repo=UserProfileRepository(db)
    )

def build_catalog_service(db: Session) -> CatalogService:
    """Used at startup and by ingestion scripts, outside request scope"""
    return CatalogService(
        embedding_repo=EmbeddingRepository(db, get_dimension()),
        vector_store=get_vector_store(),
        embedding_provider=get_embedding_provider(),
        dimension=get_dimension()
    )
