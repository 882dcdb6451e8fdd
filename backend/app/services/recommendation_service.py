import hashlib
import logging
import numpy as np
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Set, Tuple
from sklearn.metrics.pairwise import cosine_similarity
from app.core.cache import CacheService
from app.core.config import Settings, get_settings
from app.core.enums import RecommendationSource
from app.core.exceptions import (
    InsufficientDataException, ItemNotFoundException, PreferenceVectorMissingException,
    PremiumRequiredException, VectorDimensionError, VectorStoreException
)
from app.core.identifiers import AppId
from app.core.interfaces import (
    EmbeddingProviderInterface, EmbeddingRepositoryInterface, EntitlementGateInterface,
    DailyPickRecord, ItemPredicate, Neighbor, PreferenceRepositoryInterface, PreferenceVectorRecord,
    VectorStoreInterface
)
from app.core.timeutil import next_utc_midnight, utcnow
from app.core.vectors import VectorDimension, similarity_from_distance
from app.schemas.item import ItemMetadata, ItemSummary
from app.schemas.recommendation import (
    DailyPick, MoodPresetInfo, MoodRecommendationRequest, RecommendationFilters,
    RecommendationItem, RecommendationList, RecommendationRequest, UnplayedGem
)
from app.services.feedback_service import FeedbackService, blend_vectors
from app.services.mood_presets import get_mood_preset, list_mood_presets
from app.services.ranking import build_predicate, clamp_limit, rerank_by_popularity, to_candidates

logger = logging.getLogger(__name__)

DAILY_PICK_CACHE_PREFIX = "daily_pick"

def daily_seed(user_id: str, day: date) -> int:
    """Stable per-(user, UTC day) seed: first 8 bytes of SHA-256"""
    digest = hashlib.sha256(f"{user_id}-{day.isoformat()}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")

def unplayed_reason(similarity: float, playtime_minutes: int) -> str:
    match = f"{round(similarity * 100)}% match"
    if playtime_minutes <= 0:
        return f"{match} - You've never launched this!"
    if playtime_minutes < 30:
        return f"{match} - Only tried for {playtime_minutes} minutes"
    if playtime_minutes < 60:
        return f"{match} - Played less than an hour"
    return f"{match} - Only {playtime_minutes / 60:.1f}h played"

class RecommendationService:
    """Similarity-ranked retrieval with popularity re-ranking and exclusions"""

    # Shared by all instances; store queries are bounded by QUERY_TIMEOUT_SECONDS
    _executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="vector-query")

    def __init__(self, vector_store: VectorStoreInterface,
                 preference_repo: PreferenceRepositoryInterface,
                 embedding_repo: EmbeddingRepositoryInterface,
                 feedback_service: FeedbackService,
                 embedding_provider: EmbeddingProviderInterface,
                 entitlement: EntitlementGateInterface,
                 dimension: VectorDimension,
                 cache: Optional[CacheService] = None,
                 settings: Optional[Settings] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.vector_store = vector_store
        self.preference_repo = preference_repo
        self.embedding_repo = embedding_repo
        self.feedback_service = feedback_service
        self.embedding_provider = embedding_provider
        self.entitlement = entitlement
        self.dimension = dimension
        self.cache = cache
        self.settings = settings or get_settings()
        self.clock = clock

    # ============================================================================
    # CORE RANKING
    # ============================================================================

    def _query_store(self, vector: np.ndarray, limit: int, predicate: Optional[ItemPredicate]) -> List[Neighbor]:
        """Nearest-neighbor query under a timeout, retried once"""
        vector = self.dimension.validate(vector, "query vector")
        last_error: Optional[Exception] = None
        for attempt in (1, 2):
            future = self._executor.submit(self.vector_store.query, vector, limit, predicate)
            try:
                return future.result(timeout=self.settings.QUERY_TIMEOUT_SECONDS)
            except VectorDimensionError:
                raise
            except FutureTimeoutError as e:
                future.cancel()
                last_error = e
                logger.warning(f"Vector store query timed out (attempt {attempt})")
            except Exception as e:
                last_error = e
                logger.warning(f"Vector store query failed (attempt {attempt}): {str(e)}")
        logger.error(f"Vector store query failed after retry: {last_error!r}")
        raise VectorStoreException("Similarity search failed, please try again")

    def rank(self, vector: np.ndarray, limit: Optional[int], filters: RecommendationFilters,
             excluded: Iterable[int], source: RecommendationSource) -> RecommendationList:
        limit = clamp_limit(limit, self.settings.DEFAULT_RESULT_LIMIT, self.settings.MAX_RESULT_LIMIT)
        pool_size = max(limit, self.settings.CANDIDATE_POOL_SIZE)
        neighbors = self._query_store(vector, pool_size, build_predicate(filters, excluded))
        candidates = to_candidates(neighbors, self.vector_store.get_metadata)
        ranked = rerank_by_popularity(candidates, filters.popularity_score)[:limit]

        items = [
            RecommendationItem(
                app_id=c.app_id,
                rank=position,
                similarity=round(c.similarity, 6),
                distance=round(c.distance, 6),
                item=ItemSummary.from_metadata(c.metadata),
            )
            for position, c in enumerate(ranked, start=1)
        ]
        return RecommendationList(
            source=source,
            items=items,
            total=len(items),
            popularity_score=filters.popularity_score,
        )

    def _require_preference(self, user_id: str) -> PreferenceVectorRecord:
        record = self.preference_repo.get_preference_vector(user_id)
        if record is None:
            raise PreferenceVectorMissingException()
        return record

    def _excluded_for(self, user_id: Optional[str], exclude_owned: bool) -> Set[int]:
        if not user_id:
            return set()
        excluded = {int(a) for a in self.feedback_service.excluded_app_ids(user_id)}
        if exclude_owned:
            excluded.update(int(a) for a in self.preference_repo.owned_app_ids(user_id))
        return excluded

    # ============================================================================
    # MODES
    # ============================================================================

    def recommend_for_user(self, user_id: str, request: RecommendationRequest) -> RecommendationList:
        """Personalized list from the preference vector, blended with the learned vector when present"""
        preference = self._require_preference(user_id)
        learned = None
        if request.use_learned_vector:
            record = self.feedback_service.get_learned_vector(user_id)
            learned = record.vector if record else None
        vector, source = blend_vectors(
            preference.vector, learned,
            self.settings.BLEND_PREFERENCE_WEIGHT, self.settings.BLEND_LEARNED_WEIGHT
        )
        excluded = self._excluded_for(user_id, request.exclude_owned)
        return self.rank(vector, request.limit, request.filters, excluded, source)

    def similar_items(self, app_id, limit: Optional[int] = None,
                      filters: Optional[RecommendationFilters] = None,
                      user_id: Optional[str] = None, exclude_owned: bool = False) -> RecommendationList:
        app_id = AppId.parse(app_id)
        item = self.embedding_repo.get_item(app_id)
        if item is None:
            raise ItemNotFoundException(f"App {app_id} not found")
        excluded = self._excluded_for(user_id, exclude_owned)
        excluded.add(int(app_id))
        return self.rank(item.vector, limit, filters or RecommendationFilters(), excluded, RecommendationSource.ITEM)

    def search_by_text(self, user_id: str, query_text: str, limit: Optional[int] = None,
                       filters: Optional[RecommendationFilters] = None,
                       exclude_owned: bool = False) -> RecommendationList:
        """Semantic search over a fresh text embedding (premium)"""
        if not self.entitlement.is_entitled(user_id):
            raise PremiumRequiredException("AI search requires a premium subscription")
        vector = self.dimension.validate(self.embedding_provider.embed(query_text), "text query embedding")
        excluded = self._excluded_for(user_id, exclude_owned)
        logger.info(f"Text search for user {user_id}: '{query_text[:80]}'")
        return self.rank(vector, limit, filters or RecommendationFilters(), excluded, RecommendationSource.TEXT_QUERY)

    def unplayed_gems(self, user_id: str, limit: Optional[int] = None,
                      max_playtime_minutes: Optional[int] = None,
                      min_similarity: Optional[float] = None) -> List[UnplayedGem]:
        """Owned but barely played items that sit close to the user's taste"""
        preference = self._require_preference(user_id)
        ceiling = max_playtime_minutes if max_playtime_minutes is not None else self.settings.UNPLAYED_MAX_PLAYTIME_MINUTES
        floor = min_similarity if min_similarity is not None else self.settings.UNPLAYED_MIN_SIMILARITY
        limit = clamp_limit(limit, self.settings.UNPLAYED_DEFAULT_LIMIT, self.settings.MAX_RESULT_LIMIT)

        excluded = {int(a) for a in self.feedback_service.excluded_app_ids(user_id)}
        signals = [
            s for s in self.preference_repo.get_signals(user_id)
            if s.playtime_minutes < ceiling and int(s.app_id) not in excluded
        ]
        items = self.embedding_repo.get_items(s.app_id for s in signals)
        signals = [s for s in signals if s.app_id in items]
        if not signals:
            return []

        matrix = np.vstack([
            self.dimension.validate(items[s.app_id].vector, f"item {int(s.app_id)} embedding") for s in signals
        ])
        cosines = cosine_similarity(preference.vector.reshape(1, -1), matrix)[0]

        gems = []
        for signal, cos in zip(signals, cosines):
            similarity = similarity_from_distance(1.0 - float(cos))
            if similarity < floor:
                continue
            gems.append(UnplayedGem(
                app_id=signal.app_id,
                similarity=round(similarity, 6),
                playtime_minutes=signal.playtime_minutes,
                reason=unplayed_reason(similarity, signal.playtime_minutes),
                item=ItemSummary.from_metadata(items[signal.app_id].metadata),
            ))
        gems.sort(key=lambda g: (-g.similarity, int(g.app_id)))
        return gems[:limit]

    def daily_pick(self, user_id: str) -> DailyPick:
        """One stable pick per user per UTC day.

        The first request of the day chooses from the top candidates with the
        (user, day) seed and stores the choice; later requests that day return the
        stored pick whatever happened to the vectors in between. A new choice is
        made only when the stored item itself became excluded (hidden, marked
        not_interested or now owned) or left the catalog.
        """
        now = self.clock()
        today = now.date()
        refreshes_at = next_utc_midnight(now)
        seconds_left = max(1, int((refreshes_at - now).total_seconds()))
        cache_key = f"{DAILY_PICK_CACHE_PREFIX}:{user_id}:{today.isoformat()}"
        excluded = self._excluded_for(user_id, exclude_owned=True)

        if self.cache is not None:
            cached = self.cache.get_json(cache_key)
            if cached:
                pick = DailyPick.model_validate(cached)
                if int(pick.app_id) not in excluded:
                    return pick.model_copy(update={"seconds_until_refresh": seconds_left})

        preference = self._require_preference(user_id)
        stored = self.preference_repo.get_daily_pick(user_id, today)
        metadata = self.vector_store.get_metadata(stored.app_id) if stored else None
        if stored is not None and metadata is not None and int(stored.app_id) not in excluded:
            record = stored
        else:
            if stored is not None:
                logger.info(f"Daily pick app {stored.app_id} for user {user_id} is no longer eligible, choosing again")
            record, metadata = self._choose_daily_pick(user_id, today, preference, excluded)
            self.preference_repo.save_daily_pick(record)
            logger.info(f"Daily pick for user {user_id} on {today}: app {record.app_id}")

        pick = DailyPick(
            app_id=record.app_id,
            pick_date=today,
            refreshes_at=refreshes_at,
            seconds_until_refresh=seconds_left,
            similarity=record.similarity,
            pool_size=record.pool_size,
            item=ItemSummary.from_metadata(metadata),
        )
        if self.cache is not None:
            self.cache.set_json(cache_key, pick.model_dump(mode="json"), seconds_left)
        return pick

    def _choose_daily_pick(self, user_id: str, today: date, preference: PreferenceVectorRecord,
                           excluded: Set[int]) -> Tuple[DailyPickRecord, ItemMetadata]:
        filters = RecommendationFilters(
            min_review_score=self.settings.DAILY_PICK_MIN_REVIEW_SCORE,
            min_review_count=self.settings.DAILY_PICK_MIN_REVIEW_COUNT,
        )
        neighbors = self._query_store(
            preference.vector, self.settings.DAILY_PICK_POOL_SIZE, build_predicate(filters, excluded)
        )
        pool = to_candidates(neighbors, self.vector_store.get_metadata)
        if not pool:
            raise InsufficientDataException("No candidates available for a daily pick yet")

        choice = pool[daily_seed(user_id, today) % len(pool)]
        record = DailyPickRecord(
            user_id=user_id,
            pick_date=today,
            app_id=choice.app_id,
            similarity=round(choice.similarity, 6),
            pool_size=len(pool),
        )
        return record, choice.metadata

    def list_moods(self) -> List[MoodPresetInfo]:
        return list_mood_presets()

    def recommend_for_mood(self, user_id: str, mood_id: str, request: MoodRecommendationRequest) -> RecommendationList:
        preset = get_mood_preset(mood_id)
        filters = preset.to_filters(self.clock().date()).merged_with(request.filters)
        return self.recommend_for_user(user_id, RecommendationRequest(
            limit=request.limit,
            filters=filters,
            exclude_owned=request.exclude_owned,
        ))
