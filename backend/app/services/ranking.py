"""Filtering and popularity re-ranking for similarity-ordered candidates.

Popularity re-ranking is filter-then-sort around the median review count of
the candidate pool:

* ``popularity_score < 50``: keep ``review_count < median * (1 + (50 - p) / 50)``,
  least reviewed first.
* ``popularity_score > 50``: keep ``review_count >= median * ((p - 50) / 50)``,
  most reviewed first.
* ``popularity_score == 50``: similarity order is returned untouched.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set
import numpy as np
from app.core.identifiers import AppId
from app.core.interfaces import ItemPredicate, Neighbor
from app.core.vectors import similarity_from_distance
from app.schemas.item import ItemMetadata
from app.schemas.recommendation import NEUTRAL_POPULARITY, RecommendationFilters

@dataclass
class Candidate:
    app_id: AppId
    distance: float
    metadata: ItemMetadata

    @property
    def similarity(self) -> float:
        return similarity_from_distance(self.distance)

    @property
    def review_count(self) -> int:
        return self.metadata.review_count or 0

def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    if limit is None:
        limit = default
    return max(1, min(int(limit), maximum))

def _lowered(values: Iterable[str]) -> Set[str]:
    return {v.strip().lower() for v in values if v and v.strip()}

def matches_filters(metadata: ItemMetadata, filters: RecommendationFilters) -> bool:
    """True when the item passes every configured metadata filter"""
    if filters.min_review_score is not None and (metadata.review_score or 0) < filters.min_review_score:
        return False
    review_count = metadata.review_count or 0
    if filters.min_review_count is not None and review_count < filters.min_review_count:
        return False
    if filters.max_review_count is not None and review_count > filters.max_review_count:
        return False
    if filters.is_free and not metadata.is_free:
        return False
    if filters.release_year_min is not None or filters.release_year_max is not None:
        if metadata.release_year is None:
            return False
        if filters.release_year_min is not None and metadata.release_year < filters.release_year_min:
            return False
        if filters.release_year_max is not None and metadata.release_year > filters.release_year_max:
            return False
    if filters.genres and not (_lowered(filters.genres) & _lowered(metadata.genres)):
        return False
    if filters.tags and not (_lowered(filters.tags) & _lowered(metadata.tags)):
        return False
    return True

def build_predicate(filters: RecommendationFilters, excluded: Iterable[int] = ()) -> ItemPredicate:
    excluded_ids = {int(a) for a in excluded}

    def predicate(app_id: AppId, metadata: ItemMetadata) -> bool:
        return int(app_id) not in excluded_ids and matches_filters(metadata, filters)

    return predicate

def popularity_threshold(median: float, popularity_score: int) -> Optional[float]:
    if popularity_score < NEUTRAL_POPULARITY:
        return median * (1 + (NEUTRAL_POPULARITY - popularity_score) / 50)
    if popularity_score > NEUTRAL_POPULARITY:
        return median * ((popularity_score - NEUTRAL_POPULARITY) / 50)
    return None

def rerank_by_popularity(candidates: List[Candidate], popularity_score: int) -> List[Candidate]:
    """Apply the popularity filter-then-sort to a similarity-ordered pool"""
    if popularity_score == NEUTRAL_POPULARITY or not candidates:
        return list(candidates)
    median = float(np.median([c.review_count for c in candidates]))
    threshold = popularity_threshold(median, popularity_score)
    if popularity_score < NEUTRAL_POPULARITY:
        kept = [c for c in candidates if c.review_count < threshold]
        return sorted(kept, key=lambda c: (c.review_count, c.distance, int(c.app_id)))
    kept = [c for c in candidates if c.review_count >= threshold]
    return sorted(kept, key=lambda c: (-c.review_count, c.distance, int(c.app_id)))

def to_candidates(neighbors: Iterable[Neighbor], lookup) -> List[Candidate]:
    """Attach metadata via ``lookup(app_id)``; ids without metadata are dropped"""
    candidates = []
    for neighbor in neighbors:
        metadata = lookup(neighbor.app_id)
        if metadata is not None:
            candidates.append(Candidate(neighbor.app_id, neighbor.distance, metadata))
    candidates.sort(key=lambda c: (c.distance, int(c.app_id)))
    return candidates
