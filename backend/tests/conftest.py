import pytest

from app.core.cache import CacheService
from app.core.config import Settings
from app.core.vectors import VectorDimension
from app.services.feedback_service import FeedbackService
from app.services.preference_vector_service import PreferenceVectorService
from app.services.recommendation_service import RecommendationService
from app.services.refinement_service import RefinementService
from app.services.vector_store import FaissVectorStore
from tests.fakes import (
    DIM, Clock, FakeEmbedder, FakeEntitlement, FakeRedis, InMemoryEmbeddingRepository,
    InMemoryFeedbackRepository, InMemoryPreferenceRepository
)

PREMIUM_USER = "premium-user"
FREE_USER = "free-user"

@pytest.fixture
def settings():
    return Settings(
        EMBEDDING_DIM=DIM,
        QUERY_TIMEOUT_SECONDS=1.0,
        CANDIDATE_POOL_SIZE=50,
        DAILY_PICK_MIN_REVIEW_SCORE=70,
        DAILY_PICK_MIN_REVIEW_COUNT=100,
        FEEDBACK_DELETE_REVERSES_NUDGE=False,
    )

@pytest.fixture
def dimension():
    return VectorDimension(DIM)

@pytest.fixture
def clock():
    return Clock()

@pytest.fixture
def embedding_repo():
    return InMemoryEmbeddingRepository()

@pytest.fixture
def preference_repo():
    return InMemoryPreferenceRepository()

@pytest.fixture
def feedback_repo():
    return InMemoryFeedbackRepository()

@pytest.fixture
def entitlement():
    return FakeEntitlement(PREMIUM_USER)

@pytest.fixture
def embedder():
    return FakeEmbedder()

@pytest.fixture
def fake_redis():
    return FakeRedis()

@pytest.fixture
def cache(fake_redis):
    return CacheService(client=fake_redis)

@pytest.fixture
def store(dimension):
    return FaissVectorStore(dimension)

@pytest.fixture
def catalog(embedding_repo, store):
    """add(app_id, vector, **metadata): put one item in both the repository and the index"""
    def add(app_id, vector, **metadata):
        record = embedding_repo.add(app_id, vector, **metadata)
        store.store(record.app_id, record.vector, record.metadata)
        return record
    return add

@pytest.fixture
def preference_service(preference_repo, embedding_repo, dimension, settings, clock):
    return PreferenceVectorService(preference_repo, embedding_repo, dimension, settings=settings, clock=clock)

@pytest.fixture
def feedback_service(feedback_repo, preference_repo, embedding_repo, entitlement, dimension, settings, clock):
    return FeedbackService(
        feedback_repo=feedback_repo,
        preference_repo=preference_repo,
        embedding_repo=embedding_repo,
        entitlement=entitlement,
        dimension=dimension,
        settings=settings,
        clock=clock,
    )

@pytest.fixture
def recommendation_service(store, preference_repo, embedding_repo, feedback_service, embedder,
                           entitlement, dimension, cache, settings, clock):
    return RecommendationService(
        vector_store=store,
        preference_repo=preference_repo,
        embedding_repo=embedding_repo,
        feedback_service=feedback_service,
        embedding_provider=embedder,
        entitlement=entitlement,
        dimension=dimension,
        cache=cache,
        settings=settings,
        clock=clock,
    )

@pytest.fixture
def refinement_service(recommendation_service, settings):
    return RefinementService(recommendation_service, settings)
