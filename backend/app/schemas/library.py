from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class BuildOptions(BaseModel):
    """Per-call overrides for the preference vector builder"""
    min_playtime_hours: Optional[float] = Field(None, ge=0)
    recency_half_life_months: Optional[float] = Field(None, gt=0)
    enable_genre_diversification: Optional[bool] = None
    max_items: Optional[int] = Field(None, ge=1)

class LibrarySyncRequest(BaseModel):
    steam_id: str = Field(..., min_length=1, description="64-bit Steam account id")
    fetch_achievements: bool = Field(False, description="Fetch per-title achievements for quality weighting")
    options: BuildOptions = Field(default_factory=BuildOptions)

class PlaytimeStats(BaseModel):
    min_hours: float = 0.0
    max_hours: float = 0.0
    avg_hours: float = 0.0

class PreferenceVectorSummary(BaseModel):
    """What a rebuild produced; the vector itself is never returned"""
    items_analyzed: int
    items_skipped_missing_embedding: int = 0
    items_below_threshold: int = 0
    total_weight: float
    total_playtime_hours: float
    last_updated: datetime
    stats: PlaytimeStats = Field(default_factory=PlaytimeStats)

class LibrarySyncResult(BaseModel):
    games_fetched: int
    games_stored: int
    games_not_in_catalog: int = 0
    achievements_fetched: int = 0
    achievement_failures: int = 0
    preference_vector: Optional[PreferenceVectorSummary] = None
