import logging
import threading
import weakref
import numpy as np
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple, Union
from app.core.config import Settings, get_settings
from app.core.enums import FeedbackLabel, RecommendationSource
from app.core.exceptions import (
    FeedbackNotFoundException, InvalidFeedbackLabelException, ItemNotFoundException,
    PreferenceVectorMissingException, PremiumRequiredException
)
from app.core.identifiers import AppId
from app.core.interfaces import (
    EmbeddingRepositoryInterface, EntitlementGateInterface,
    FeedbackEvent, FeedbackRepositoryInterface, LearnedVectorRecord, PreferenceRepositoryInterface
)
from app.core.timeutil import utcnow
from app.core.vectors import VectorDimension, normalize
from app.schemas.feedback import (
    FeedbackEntry, FeedbackHistory, HiddenItemEntry, HiddenItemList, HiddenItemState, LearnedVectorState
)
from app.schemas.item import ItemSummary

logger = logging.getLogger(__name__)

def apply_nudge(vector: np.ndarray, item_vector: np.ndarray, label: FeedbackLabel) -> np.ndarray:
    """renormalize(vector + magnitude * unit(item))"""
    return normalize(vector + label.magnitude * normalize(item_vector))

def blend_vectors(preference: np.ndarray, learned: Optional[np.ndarray],
                  preference_weight: float, learned_weight: float) -> Tuple[np.ndarray, RecommendationSource]:
    """Query vector for personalized retrieval"""
    if learned is None:
        return preference, RecommendationSource.PREFERENCE
    blended = preference_weight * normalize(preference) + learned_weight * normalize(learned)
    return normalize(blended), RecommendationSource.BLENDED

class FeedbackService:
    """Online learner: like/dislike events adjust a per-user learned vector.

    The learned vector is never compounded blindly. Every mutation recomputes
    it as a fold over the user's applied events (first-submission order) starting
    from the preference-vector snapshot taken when it was first seeded, so
    re-submitting a label for the same item leaves the vector unchanged. A reset
    that keeps history marks the existing events unapplied; only feedback given
    afterwards moves the freshly seeded vector.
    """

    # Entries disappear once no request holds the user's lock
    _locks = weakref.WeakValueDictionary()
    _locks_guard = threading.Lock()

    def __init__(self, feedback_repo: FeedbackRepositoryInterface,
                 preference_repo: PreferenceRepositoryInterface,
                 embedding_repo: EmbeddingRepositoryInterface,
                 entitlement: EntitlementGateInterface,
                 dimension: VectorDimension,
                 settings: Optional[Settings] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.feedback_repo = feedback_repo
        self.preference_repo = preference_repo
        self.embedding_repo = embedding_repo
        self.entitlement = entitlement
        self.dimension = dimension
        self.settings = settings or get_settings()
        self.clock = clock

    @classmethod
    def _user_lock(cls, user_id: str) -> threading.Lock:
        with cls._locks_guard:
            lock = cls._locks.get(user_id)
            if lock is None:
                lock = cls._locks[user_id] = threading.Lock()
            return lock

    @staticmethod
    def parse_label(label: Union[str, FeedbackLabel]) -> FeedbackLabel:
        try:
            return FeedbackLabel.parse(label)
        except ValueError as e:
            raise InvalidFeedbackLabelException(str(e))

    # ============================================================================
    # MUTATIONS
    # ============================================================================

    def submit_feedback(self, user_id: str, app_id, label: Union[str, FeedbackLabel]) -> LearnedVectorState:
        label = self.parse_label(label)
        if not self.entitlement.is_entitled(user_id):
            raise PremiumRequiredException("Feedback learning requires a premium subscription")
        app_id = AppId.parse(app_id)
        if self.embedding_repo.get_item(app_id) is None:
            raise ItemNotFoundException(f"App {app_id} not found")

        with self._user_lock(user_id), self.feedback_repo.user_transaction(user_id):
            now = self.clock()
            self.feedback_repo.upsert_event(user_id, app_id, label, now)
            record = self._recompute(user_id, now)
            likes, dislikes = self._refresh_counts(user_id)

        logger.info(f"Feedback '{label.value}' on app {app_id} applied for user {user_id}")
        return LearnedVectorState(
            app_id=app_id,
            label=label,
            has_learned_vector=True,
            likes_count=likes,
            dislikes_count=dislikes,
            updated_at=record.updated_at,
        )

    def delete_feedback(self, user_id: str, app_id) -> LearnedVectorState:
        app_id = AppId.parse(app_id)
        with self._user_lock(user_id), self.feedback_repo.user_transaction(user_id):
            if not self.feedback_repo.delete_event(user_id, app_id):
                raise FeedbackNotFoundException(f"No feedback for app {app_id}")
            record = self.feedback_repo.get_learned_vector(user_id)
            if record is not None and self.settings.FEEDBACK_DELETE_REVERSES_NUDGE:
                record = self._recompute(user_id, self.clock())
            likes, dislikes = self._refresh_counts(user_id)

        logger.info(f"Feedback on app {app_id} deleted for user {user_id}")
        return LearnedVectorState(
            app_id=app_id,
            has_learned_vector=record is not None,
            likes_count=likes,
            dislikes_count=dislikes,
            updated_at=record.updated_at if record else None,
        )

    def reset_learned_vector(self, user_id: str, clear_history: bool = False) -> LearnedVectorState:
        with self._user_lock(user_id), self.feedback_repo.user_transaction(user_id):
            self.feedback_repo.clear_learned_vector(user_id)
            if clear_history:
                deleted = self.feedback_repo.delete_all_events(user_id)
                logger.info(f"Deleted {deleted} feedback events for user {user_id}")
            else:
                kept = self.feedback_repo.mark_events_unapplied(user_id)
                logger.info(f"Kept {kept} feedback events for user {user_id} outside the learned vector")
            likes, dislikes = self._refresh_counts(user_id)

        logger.info(f"Learned vector reset for user {user_id}")
        return LearnedVectorState(has_learned_vector=False, likes_count=likes, dislikes_count=dislikes)

    def _recompute(self, user_id: str, now: datetime) -> LearnedVectorRecord:
        """Rebuild the learned vector from its seed and the events applied since the last reset"""
        existing = self.feedback_repo.get_learned_vector(user_id)
        if existing is not None:
            seed = self.dimension.validate(existing.seed_vector, "learned vector seed")
        else:
            preference = self.preference_repo.get_preference_vector(user_id)
            if preference is None:
                raise PreferenceVectorMissingException()
            seed = self.dimension.validate(preference.vector, "preference vector").copy()
            logger.info(f"Seeding learned vector for user {user_id} from preference vector")

        events = [e for e in self.feedback_repo.list_events_in_submission_order(user_id) if e.applied]
        vector = self.fold(seed, events)
        record = LearnedVectorRecord(user_id=user_id, vector=vector, seed_vector=seed, updated_at=now)
        self.feedback_repo.save_learned_vector(record)
        return record

    def fold(self, seed: np.ndarray, events: Sequence[FeedbackEvent]) -> np.ndarray:
        items = self.embedding_repo.get_items(e.app_id for e in events)
        vector = np.array(seed, dtype=np.float64)
        for event in events:
            item = items.get(event.app_id)
            if item is None:
                logger.warning(f"Feedback on app {event.app_id} skipped: no embedding")
                continue
            item_vector = self.dimension.validate(item.vector, f"item {int(event.app_id)} embedding")
            vector = apply_nudge(vector, item_vector, event.label)
        return self.dimension.validate(vector, "learned vector")

    def _refresh_counts(self, user_id: str) -> Tuple[int, int]:
        events = self.feedback_repo.list_events_in_submission_order(user_id)
        likes = sum(1 for e in events if e.label.is_positive)
        dislikes = len(events) - likes
        self.feedback_repo.set_feedback_counts(user_id, likes, dislikes)
        return likes, dislikes

    # ============================================================================
    # READS
    # ============================================================================

    def get_user_feedback(self, user_id: str, limit: Optional[int] = None) -> FeedbackHistory:
        events = self.feedback_repo.list_events(user_id, limit or self.settings.FEEDBACK_HISTORY_LIMIT)
        items = self.embedding_repo.get_items(e.app_id for e in events)
        likes, dislikes = self.feedback_repo.get_feedback_counts(user_id)

        history = FeedbackHistory(likes_count=likes, dislikes_count=dislikes)
        for event in events:
            item = items.get(event.app_id)
            entry = FeedbackEntry(
                app_id=event.app_id,
                label=event.label,
                created_at=event.created_at,
                updated_at=event.updated_at,
                item=ItemSummary.from_metadata(item.metadata) if item else None,
            )
            (history.positive if event.label.is_positive else history.negative).append(entry)
        return history

    def get_learned_vector(self, user_id: str) -> Optional[LearnedVectorRecord]:
        return self.feedback_repo.get_learned_vector(user_id)

    def excluded_app_ids(self, user_id: str) -> List[AppId]:
        """Items marked not_interested or hidden never reappear in recommendations"""
        excluded = self.feedback_repo.app_ids_with_label(user_id, FeedbackLabel.NOT_INTERESTED)
        excluded.extend(h.app_id for h in self.feedback_repo.list_hidden(user_id))
        return excluded

    # ============================================================================
    # HIDDEN ITEMS
    # ============================================================================

    def hide_item(self, user_id: str, app_id) -> HiddenItemState:
        """Exclude an item from results without touching the learned vector (not premium-gated)"""
        app_id = AppId.parse(app_id)
        if self.embedding_repo.get_item(app_id) is None:
            raise ItemNotFoundException(f"App {app_id} not found")
        hidden = self.feedback_repo.hide_item(user_id, app_id, self.clock())
        logger.info(f"App {app_id} hidden for user {user_id}")
        return HiddenItemState(app_id=app_id, hidden=True, hidden_at=hidden.hidden_at)

    def unhide_item(self, user_id: str, app_id) -> HiddenItemState:
        app_id = AppId.parse(app_id)
        if self.feedback_repo.unhide_item(user_id, app_id):
            logger.info(f"App {app_id} unhidden for user {user_id}")
        return HiddenItemState(app_id=app_id, hidden=False)

    def list_hidden(self, user_id: str) -> HiddenItemList:
        hidden = self.feedback_repo.list_hidden(user_id)
        items = self.embedding_repo.get_items(h.app_id for h in hidden)
        entries = [
            HiddenItemEntry(
                app_id=h.app_id,
                hidden_at=h.hidden_at,
                item=ItemSummary.from_metadata(items[h.app_id].metadata) if h.app_id in items else None,
            )
            for h in hidden
        ]
        return HiddenItemList(items=entries, total=len(entries))
