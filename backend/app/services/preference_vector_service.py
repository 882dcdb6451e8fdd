import logging
import math
import numpy as np
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence
from app.core.config import Settings, get_settings
from app.core.exceptions import InsufficientDataException
from app.core.identifiers import AppId
from app.core.interfaces import (
    EmbeddingRepositoryInterface, ItemRecord, OwnedItemSignal,
    PreferenceRepositoryInterface, PreferenceVectorRecord
)
from app.core.timeutil import as_utc, utcnow
from app.core.vectors import VectorDimension
from app.schemas.library import BuildOptions, PlaytimeStats, PreferenceVectorSummary

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30.0

# Tags that mark a series or shared universe; matched as case-insensitive substrings
FRANCHISE_TAGS = (
    "Warhammer", "Total War", "Call of Duty", "Assassin's Creed", "Grand Theft Auto",
    "The Elder Scrolls", "Fallout", "Battlefield", "Far Cry", "Civilization",
    "Dark Souls", "Souls-like", "Pokemon", "Final Fantasy", "LEGO", "Star Wars",
    "Marvel", "DC Comics", "Harry Potter", "Lord of the Rings", "Witcher",
    "Dragon Age", "Mass Effect", "Borderlands", "Metro", "Resident Evil",
    "Silent Hill", "Persona", "Kingdom Hearts",
)

@dataclass(frozen=True)
class WeightingConfig:
    min_playtime_hours: float = 0.5
    recency_half_life_months: float = 24.0
    recency_floor: float = 0.2
    max_items: int = 200
    enable_genre_diversification: bool = True
    enable_quality_weighting: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, options: Optional[BuildOptions] = None,
                      enable_quality_weighting: bool = False) -> "WeightingConfig":
        options = options or BuildOptions()
        return cls(
            min_playtime_hours=_pick(options.min_playtime_hours, settings.MIN_PLAYTIME_HOURS),
            recency_half_life_months=_pick(options.recency_half_life_months, settings.RECENCY_HALF_LIFE_MONTHS),
            recency_floor=settings.RECENCY_FLOOR,
            max_items=_pick(options.max_items, settings.MAX_ITEMS_IN_PROFILE),
            enable_genre_diversification=_pick(options.enable_genre_diversification, settings.ENABLE_GENRE_DIVERSIFICATION),
            enable_quality_weighting=enable_quality_weighting,
        )

def _pick(value, default):
    return default if value is None else value

# ============================================================================
# WEIGHTS
# ============================================================================

def playtime_weight(hours: float) -> float:
    """Sub-linear in playtime so a 1000h game cannot swamp the average"""
    return math.log1p(max(0.0, hours))

def recency_weight(last_played: Optional[datetime], now: datetime,
                   half_life_months: float = 24.0, floor: float = 0.2) -> float:
    if last_played is None:
        return 1.0
    elapsed_days = max(0.0, (as_utc(now) - as_utc(last_played)).total_seconds() / 86400.0)
    months = elapsed_days / DAYS_PER_MONTH
    return max(floor, 0.5 ** (months / half_life_months))

def quality_weight(hours: float, avg_completion_hours: Optional[float] = None,
                   achievements_earned: Optional[int] = None,
                   achievements_total: Optional[int] = None) -> float:
    """Multiplier in [0.63, 1.56] from completion and achievement ratios"""
    weight = 1.0
    if avg_completion_hours and avg_completion_hours > 0:
        completion = hours / avg_completion_hours
        if completion > 0.8:
            weight *= 1.3
        elif completion < 0.2:
            weight *= 0.7
    if achievements_earned is not None and achievements_total:
        ratio = achievements_earned / achievements_total
        if ratio > 0.5:
            weight *= 1.2
        elif ratio < 0.1 and hours > 10:
            weight *= 0.9
    return weight

def _franchises(tags: Sequence[str]) -> List[str]:
    lowered = [t.lower() for t in tags]
    return [f for f in FRANCHISE_TAGS if any(f.lower() in t for t in lowered)]

def diversity_multipliers(items: Sequence["_WeightedItem"]) -> Dict[int, float]:
    """1/sqrt(primary-genre count) x 1/sqrt(largest matching franchise count)"""
    genre_counts = Counter(item.primary_genre for item in items)
    franchise_counts: Counter = Counter()
    for item in items:
        franchise_counts.update(item.franchises)

    multipliers = {}
    for item in items:
        multiplier = 1.0 / math.sqrt(genre_counts[item.primary_genre])
        if item.franchises:
            multiplier /= math.sqrt(max(franchise_counts[f] for f in item.franchises))
        multipliers[int(item.app_id)] = multiplier
    return multipliers

# ============================================================================
# BUILDER
# ============================================================================

@dataclass
class _WeightedItem:
    app_id: AppId
    vector: np.ndarray
    weight: float
    primary_genre: str
    franchises: List[str] = field(default_factory=list)

@dataclass
class PreferenceBuildResult:
    user_id: str
    vector: np.ndarray
    items_analyzed: int
    items_skipped_missing_embedding: int
    items_below_threshold: int
    total_weight: float
    total_playtime_hours: float
    stats: PlaytimeStats
    last_updated: datetime

    def summary(self) -> PreferenceVectorSummary:
        return PreferenceVectorSummary(
            items_analyzed=self.items_analyzed,
            items_skipped_missing_embedding=self.items_skipped_missing_embedding,
            items_below_threshold=self.items_below_threshold,
            total_weight=self.total_weight,
            total_playtime_hours=self.total_playtime_hours,
            last_updated=self.last_updated,
            stats=self.stats,
        )

class PreferenceVectorService:
    """Full-recompute aggregation of owned-item signals into one preference vector"""

    def __init__(self, preference_repo: PreferenceRepositoryInterface,
                 embedding_repo: EmbeddingRepositoryInterface,
                 dimension: VectorDimension,
                 settings: Optional[Settings] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.preference_repo = preference_repo
        self.embedding_repo = embedding_repo
        self.dimension = dimension
        self.settings = settings or get_settings()
        self.clock = clock

    def rebuild(self, user_id: str, options: Optional[BuildOptions] = None,
                enable_quality_weighting: bool = False) -> PreferenceBuildResult:
        """Recompute from the stored signals and replace the stored vector.

        On InsufficientDataException nothing is written and the prior vector stays.
        """
        config = WeightingConfig.from_settings(self.settings, options, enable_quality_weighting)
        signals = self.preference_repo.get_signals(user_id)
        result = self.compute(user_id, signals, config, self.clock())
        self._save(result)
        return result

    def _save(self, result: PreferenceBuildResult) -> None:
        user_id = result.user_id
        self.preference_repo.save_preference_vector(PreferenceVectorRecord(
            user_id=user_id,
            vector=result.vector,
            last_updated=result.last_updated,
            items_analyzed=result.items_analyzed,
            total_playtime_hours=result.total_playtime_hours,
        ))
        logger.info(
            f"Preference vector replaced for user {user_id}: {result.items_analyzed} items, "
            f"{result.items_skipped_missing_embedding} missing embeddings, "
            f"{result.items_below_threshold} below threshold"
        )

    def replace_and_rebuild(self, user_id: str, signals: Sequence[OwnedItemSignal],
                            options: Optional[BuildOptions] = None,
                            enable_quality_weighting: bool = False) -> PreferenceBuildResult:
        """Library sync entry point: build from the fresh signals before writing anything"""
        config = WeightingConfig.from_settings(self.settings, options, enable_quality_weighting)
        result = self.compute(user_id, signals, config, self.clock())
        with self.preference_repo.transaction():
            self.preference_repo.replace_signals(user_id, signals)
            self._save(result)
        return result

    def get(self, user_id: str) -> Optional[PreferenceVectorRecord]:
        return self.preference_repo.get_preference_vector(user_id)

    def compute(self, user_id: str, signals: Sequence[OwnedItemSignal],
                config: WeightingConfig, now: datetime) -> PreferenceBuildResult:
        """Pure aggregation; identical input gives a bit-identical vector"""
        ordered = sorted(signals, key=lambda s: int(s.app_id))
        total_playtime_hours = sum(s.playtime_hours for s in ordered)

        eligible = [s for s in ordered if s.playtime_hours >= config.min_playtime_hours]
        below_threshold = len(ordered) - len(eligible)

        records = self.embedding_repo.get_items(s.app_id for s in eligible)
        weighted: List[_WeightedItem] = []
        missing = 0
        for signal in eligible:
            record = records.get(signal.app_id)
            if record is None:
                missing += 1
                logger.info(f"Skipping app {signal.app_id} for user {user_id}: no embedding")
                continue
            weight = self._weight(signal, record, config, now)
            if weight <= 0:
                continue
            vector = self.dimension.validate(record.vector, f"item {int(record.app_id)} embedding")
            genres = signal.genres or list(record.metadata.genres)
            weighted.append(_WeightedItem(
                app_id=signal.app_id,
                vector=vector,
                weight=weight,
                primary_genre=genres[0] if genres else "Unknown",
                franchises=_franchises(record.metadata.tags),
            ))

        if not weighted:
            raise InsufficientDataException(
                f"No played items contributed weight ({below_threshold} below "
                f"{config.min_playtime_hours}h, {missing} without embeddings). "
                "Lower the playtime threshold or sync more items."
            )

        if len(weighted) > config.max_items:
            weighted.sort(key=lambda w: (-w.weight, int(w.app_id)))
            weighted = sorted(weighted[:config.max_items], key=lambda w: int(w.app_id))

        if config.enable_genre_diversification:
            multipliers = diversity_multipliers(weighted)
            for item in weighted:
                item.weight *= multipliers[int(item.app_id)]

        accumulator = np.zeros(self.dimension.size, dtype=np.float64)
        total_weight = 0.0
        for item in weighted:
            accumulator += item.weight * item.vector
            total_weight += item.weight
        vector = accumulator / total_weight

        hours = [s.playtime_hours for s in eligible if s.app_id in records]
        stats = PlaytimeStats(
            min_hours=round(min(hours), 2),
            max_hours=round(max(hours), 2),
            avg_hours=round(sum(hours) / len(hours), 2),
        )
        return PreferenceBuildResult(
            user_id=user_id,
            vector=self.dimension.validate(vector, "preference vector"),
            items_analyzed=len(weighted),
            items_skipped_missing_embedding=missing,
            items_below_threshold=below_threshold,
            total_weight=total_weight,
            total_playtime_hours=round(total_playtime_hours, 2),
            stats=stats,
            last_updated=now,
        )

    @staticmethod
    def _weight(signal: OwnedItemSignal, record: ItemRecord, config: WeightingConfig, now: datetime) -> float:
        hours = signal.playtime_hours
        weight = playtime_weight(hours) * recency_weight(
            signal.last_played, now, config.recency_half_life_months, config.recency_floor
        )
        if config.enable_quality_weighting:
            weight *= quality_weight(
                hours,
                record.metadata.avg_completion_hours,
                signal.achievements_earned,
                signal.achievements_total,
            )
        return weight
