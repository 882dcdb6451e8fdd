from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple
from app.core.exceptions import MoodNotFoundException
from app.schemas.recommendation import NEUTRAL_POPULARITY, MoodPresetInfo, RecommendationFilters

@dataclass(frozen=True)
class MoodPreset:
    """Named filter bundle compiled down to RecommendationFilters"""
    id: str
    name: str
    description: str
    emoji: str
    genres: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    min_review_score: Optional[int] = None
    max_review_count: Optional[int] = None
    popularity_score: int = NEUTRAL_POPULARITY
    released_within_years: Optional[int] = None  # relative to the current year

    def to_filters(self, today: date) -> RecommendationFilters:
        filters = {
            "genres": list(self.genres),
            "tags": list(self.tags),
            "popularity_score": self.popularity_score,
        }
        if self.min_review_score is not None:
            filters["min_review_score"] = self.min_review_score
        if self.max_review_count is not None:
            filters["max_review_count"] = self.max_review_count
        if self.released_within_years is not None:
            filters["release_year_min"] = today.year - self.released_within_years
        return RecommendationFilters(**filters)

    def info(self) -> MoodPresetInfo:
        return MoodPresetInfo(id=self.id, name=self.name, description=self.description, emoji=self.emoji)

MOOD_PRESETS: Dict[str, MoodPreset] = {
    preset.id: preset for preset in (
        MoodPreset("chill", "Chill & Relaxing", "Low-stress, cozy games", "🌿",
                   tags=("Relaxing", "Casual", "Cozy", "Peaceful"), min_review_score=80),
        MoodPreset("action", "Intense Action", "Fast-paced adrenaline", "💥",
                   genres=("Action",), tags=("Fast-Paced", "Action", "Shooter", "Combat"), min_review_score=75),
        MoodPreset("story", "Deep Story", "Rich narrative experiences", "📖",
                   tags=("Story Rich", "Narrative", "Choices Matter", "Atmospheric"), min_review_score=85),
        MoodPreset("quick", "Quick Session", "Games for 30 mins or less", "⚡",
                   tags=("Short", "Casual", "Arcade", "Pick Up And Play"), min_review_score=70),
        MoodPreset("coop", "Play Together", "Co-op & multiplayer fun", "👥",
                   tags=("Co-op", "Multiplayer", "Local Co-Op", "Online Co-Op"), min_review_score=75),
        MoodPreset("challenge", "Challenge Me", "Difficult but rewarding", "🏆",
                   tags=("Difficult", "Souls-like", "Challenging", "Hardcore"), min_review_score=80),
        MoodPreset("hidden", "Hidden Gem", "Under-the-radar quality", "💎",
                   popularity_score=15, max_review_count=3000, min_review_score=85),
        MoodPreset("new", "Something New", "Recent releases", "✨",
                   released_within_years=1, min_review_score=75),
    )
}

def get_mood_preset(mood_id: str) -> MoodPreset:
    preset = MOOD_PRESETS.get(mood_id.lower())
    if preset is None:
        raise MoodNotFoundException(f"Unknown mood '{mood_id}'. Available: {', '.join(MOOD_PRESETS)}")
    return preset

def list_mood_presets() -> List[MoodPresetInfo]:
    return [preset.info() for preset in MOOD_PRESETS.values()]
