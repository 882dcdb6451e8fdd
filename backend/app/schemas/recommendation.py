from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime

from app.core.enums import RecommendationSource
from app.core.identifiers import AppIdField
from app.schemas.item import ItemSummary

NEUTRAL_POPULARITY = 50

# Filter contract shared by every retrieval mode
class RecommendationFilters(BaseModel):
    """Metadata filters and popularity bias applied to a similarity query"""
    min_review_score: Optional[int] = Field(None, ge=0, le=100)
    min_review_count: Optional[int] = Field(None, ge=0)
    max_review_count: Optional[int] = Field(None, ge=0)
    is_free: Optional[bool] = Field(None, description="True keeps only free items")
    release_year_min: Optional[int] = Field(None, ge=1970, le=2100)
    release_year_max: Optional[int] = Field(None, ge=1970, le=2100)
    genres: List[str] = Field(default_factory=list, description="Keep items with any of these genres")
    tags: List[str] = Field(default_factory=list, description="Keep items with any of these tags")
    popularity_score: int = Field(NEUTRAL_POPULARITY, ge=0, le=100, description="0 = hidden gems, 50 = neutral, 100 = popular")

    @model_validator(mode="after")
    def check_bounds(self) -> "RecommendationFilters":
        if (self.release_year_min is not None and self.release_year_max is not None
                and self.release_year_min > self.release_year_max):
            raise ValueError("release_year_min must not exceed release_year_max")
        if (self.min_review_count is not None and self.max_review_count is not None
                and self.min_review_count > self.max_review_count):
            raise ValueError("min_review_count must not exceed max_review_count")
        return self

    def merged_with(self, overrides: "RecommendationFilters") -> "RecommendationFilters":
        """Return a copy where every field explicitly set on ``overrides`` wins"""
        data = self.model_dump()
        data.update(overrides.model_dump(exclude_unset=True))
        return RecommendationFilters(**data)

# Request Schemas
class RecommendationRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, description="Result count, clamped to the server maximum")
    filters: RecommendationFilters = Field(default_factory=RecommendationFilters)
    exclude_owned: bool = True
    use_learned_vector: bool = Field(True, description="Blend in the feedback-learned vector when present")

class MoodRecommendationRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1)
    filters: RecommendationFilters = Field(default_factory=RecommendationFilters)
    exclude_owned: bool = True

# Response Schemas
class RecommendationItem(BaseModel):
    app_id: AppIdField
    rank: int
    similarity: float = Field(..., description="1 - distance / 2")
    distance: float
    item: ItemSummary
    reason: Optional[str] = None

class RecommendationList(BaseModel):
    source: RecommendationSource
    items: List[RecommendationItem]
    total: int
    popularity_score: int = NEUTRAL_POPULARITY

class UnplayedGem(BaseModel):
    app_id: AppIdField
    similarity: float
    playtime_minutes: int
    reason: str
    item: ItemSummary

class DailyPick(BaseModel):
    app_id: AppIdField
    pick_date: date
    refreshes_at: datetime
    seconds_until_refresh: int
    similarity: float
    pool_size: int
    item: ItemSummary

class MoodPresetInfo(BaseModel):
    id: str
    name: str
    description: str
    emoji: str
