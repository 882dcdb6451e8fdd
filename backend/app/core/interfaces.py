from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, ContextManager, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from app.core.enums import FeedbackLabel
from app.core.identifiers import AppId
from app.schemas.item import ItemMetadata

# ============================================================================
# RECORDS CROSSING THE STORAGE BOUNDARY
# ============================================================================

@dataclass
class ItemRecord:
    """One catalog item and its unit-length embedding"""
    app_id: AppId
    vector: np.ndarray
    metadata: ItemMetadata

@dataclass
class OwnedItemSignal:
    """A (user, item) consumption signal produced by library sync"""
    user_id: str
    app_id: AppId
    playtime_minutes: int
    last_played: Optional[datetime] = None
    achievements_earned: Optional[int] = None
    achievements_total: Optional[int] = None
    genres: List[str] = field(default_factory=list)

    @property
    def playtime_hours(self) -> float:
        return self.playtime_minutes / 60.0

@dataclass
class PreferenceVectorRecord:
    user_id: str
    vector: np.ndarray
    last_updated: datetime
    items_analyzed: int
    total_playtime_hours: float = 0.0

@dataclass
class LearnedVectorRecord:
    """Learned vector plus the preference-vector snapshot it was seeded from"""
    user_id: str
    vector: np.ndarray
    seed_vector: np.ndarray
    updated_at: datetime

@dataclass
class FeedbackEvent:
    user_id: str
    app_id: AppId
    label: FeedbackLabel
    created_at: datetime
    updated_at: datetime
    applied: bool = True  # folded into the current learned vector

@dataclass
class HiddenItem:
    """Item the user hid from results; carries no learning signal"""
    user_id: str
    app_id: AppId
    hidden_at: datetime

@dataclass
class DailyPickRecord:
    """The item chosen for one user on one UTC day"""
    user_id: str
    pick_date: date
    app_id: AppId
    similarity: float
    pool_size: int

class Neighbor(NamedTuple):
    app_id: AppId
    distance: float

@dataclass
class OwnedGame:
    """Raw library entry returned by the upstream provider"""
    app_id: AppId
    playtime_minutes: int
    playtime_recent_minutes: Optional[int] = None
    last_played: Optional[datetime] = None

@dataclass
class AchievementStats:
    earned: int
    total: int

ItemPredicate = Callable[[AppId, ItemMetadata], bool]

# ============================================================================
# EXTERNAL COLLABORATORS
# ============================================================================

class EmbeddingProviderInterface(ABC):
    """Text -> fixed-length vector"""

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        pass

class VectorStoreInterface(ABC):
    """Key -> vector storage with nearest-neighbor query and metadata filtering"""

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    @abstractmethod
    def store(self, app_id: AppId, vector: np.ndarray, metadata: ItemMetadata) -> None:
        pass

    @abstractmethod
    def remove(self, app_id: AppId) -> bool:
        pass

    @abstractmethod
    def query(self, vector: np.ndarray, limit: int, predicate: Optional[ItemPredicate] = None) -> List[Neighbor]:
        """Return up to ``limit`` (id, distance) pairs ordered by ascending distance"""
        pass

    @abstractmethod
    def get_metadata(self, app_id: AppId) -> Optional[ItemMetadata]:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

class EntitlementGateInterface(ABC):
    """Boolean entitlement check consulted before premium operations"""

    @abstractmethod
    def is_entitled(self, user_id: str) -> bool:
        pass

class LibraryProviderInterface(ABC):
    """Upstream source of a user's owned games"""

    @abstractmethod
    def get_owned_games(self, steam_id: str) -> List[OwnedGame]:
        pass

    @abstractmethod
    def get_achievements(self, steam_id: str, app_id: AppId) -> Optional[AchievementStats]:
        pass

# ============================================================================
# REPOSITORIES
# ============================================================================

class EmbeddingRepositoryInterface(ABC):

    @abstractmethod
    def get_item(self, app_id: AppId) -> Optional[ItemRecord]:
        pass

    @abstractmethod
    def get_items(self, app_ids: Iterable[AppId]) -> Dict[AppId, ItemRecord]:
        pass

    @abstractmethod
    def upsert_item(self, record: ItemRecord) -> ItemRecord:
        pass

    @abstractmethod
    def iter_items(self, batch_size: int = 500) -> Iterator[ItemRecord]:
        pass

    @abstractmethod
    def stored_dimensions(self) -> List[int]:
        """Distinct vector lengths currently stored"""
        pass

class PreferenceRepositoryInterface(ABC):

    def transaction(self) -> ContextManager[None]:
        """Commit every write made inside the block together, or none of them"""
        return _null_transaction()

    @abstractmethod
    def get_signals(self, user_id: str) -> List[OwnedItemSignal]:
        pass

    @abstractmethod
    def replace_signals(self, user_id: str, signals: Sequence[OwnedItemSignal]) -> None:
        """Make ``signals`` the user's complete signal set"""
        pass

    @abstractmethod
    def delete_signals(self, user_id: str) -> int:
        pass

    @abstractmethod
    def owned_app_ids(self, user_id: str) -> List[AppId]:
        pass

    @abstractmethod
    def get_preference_vector(self, user_id: str) -> Optional[PreferenceVectorRecord]:
        pass

    @abstractmethod
    def save_preference_vector(self, record: PreferenceVectorRecord) -> None:
        """Replace the stored vector in a single transaction"""
        pass

    @abstractmethod
    def clear_preference_vector(self, user_id: str) -> None:
        pass

    @abstractmethod
    def get_daily_pick(self, user_id: str, pick_date: date) -> Optional[DailyPickRecord]:
        pass

    @abstractmethod
    def save_daily_pick(self, record: DailyPickRecord) -> None:
        """Replace the user's stored pick"""
        pass

class FeedbackRepositoryInterface(ABC):

    def user_transaction(self, user_id: str) -> ContextManager[None]:
        """Serialize a read-modify-write of one user's feedback state"""
        return _null_transaction()

    @abstractmethod
    def upsert_event(self, user_id: str, app_id: AppId, label: FeedbackLabel, now: datetime) -> FeedbackEvent:
        """Insert, or replace the label of the event keeping its creation time.

        An event left out of the learned vector by a reset is applied again
        and restarts its creation time at ``now``.
        """
        pass

    @abstractmethod
    def mark_events_unapplied(self, user_id: str) -> int:
        """Keep the history but leave every current event out of future folds"""
        pass

    @abstractmethod
    def delete_event(self, user_id: str, app_id: AppId) -> bool:
        pass

    @abstractmethod
    def delete_all_events(self, user_id: str) -> int:
        pass

    @abstractmethod
    def list_events(self, user_id: str, limit: Optional[int] = None) -> List[FeedbackEvent]:
        """Most recently updated first"""
        pass

    @abstractmethod
    def list_events_in_submission_order(self, user_id: str) -> List[FeedbackEvent]:
        """Ordered by (created_at, app_id)"""
        pass

    @abstractmethod
    def app_ids_with_label(self, user_id: str, label: FeedbackLabel) -> List[AppId]:
        pass

    @abstractmethod
    def hide_item(self, user_id: str, app_id: AppId, now: datetime) -> HiddenItem:
        pass

    @abstractmethod
    def unhide_item(self, user_id: str, app_id: AppId) -> bool:
        pass

    @abstractmethod
    def list_hidden(self, user_id: str) -> List[HiddenItem]:
        """Most recently hidden first"""
        pass

    @abstractmethod
    def get_learned_vector(self, user_id: str) -> Optional[LearnedVectorRecord]:
        pass

    @abstractmethod
    def save_learned_vector(self, record: LearnedVectorRecord) -> None:
        pass

    @abstractmethod
    def clear_learned_vector(self, user_id: str) -> None:
        pass

    @abstractmethod
    def get_feedback_counts(self, user_id: str) -> Tuple[int, int]:
        """(likes, dislikes)"""
        pass

    @abstractmethod
    def set_feedback_counts(self, user_id: str, likes: int, dislikes: int) -> None:
        pass


@contextmanager
def _null_transaction():
    yield
