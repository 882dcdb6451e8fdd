from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

ITEM_METADATA_SCHEMA_VERSION = 1

class ItemMetadata(BaseModel):
    """Versioned catalog metadata, validated once when an item is ingested"""
    schema_version: int = Field(ITEM_METADATA_SCHEMA_VERSION, description="Metadata schema version")
    name: str = Field(..., min_length=1)
    genres: List[str] = Field(default_factory=list, description="Genre tags, primary genre first")
    tags: List[str] = Field(default_factory=list, description="Free-text user tags")
    categories: List[str] = Field(default_factory=list)
    developers: List[str] = Field(default_factory=list)
    short_description: Optional[str] = None
    header_image: Optional[str] = None
    review_score: Optional[int] = Field(None, ge=0, le=100, description="Positive review percentage")
    review_count: Optional[int] = Field(None, ge=0)
    release_year: Optional[int] = Field(None, ge=1970, le=2100)
    is_free: bool = False
    avg_completion_hours: Optional[float] = Field(None, gt=0)

    @field_validator("schema_version")
    @classmethod
    def check_schema_version(cls, value: int) -> int:
        if value != ITEM_METADATA_SCHEMA_VERSION:
            raise ValueError(f"Unsupported item metadata schema version: {value}")
        return value

    @field_validator("genres", "tags", "categories", "developers")
    @classmethod
    def strip_blank_entries(cls, values: List[str]) -> List[str]:
        return [v.strip() for v in values if v and v.strip()]

    @property
    def primary_genre(self) -> str:
        return self.genres[0] if self.genres else "Unknown"

class ItemSummary(BaseModel):
    """Display fields denormalized onto recommendation and feedback entries"""
    name: str
    header_image: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    review_score: Optional[int] = None
    review_count: Optional[int] = None
    release_year: Optional[int] = None
    is_free: bool = False

    @classmethod
    def from_metadata(cls, metadata: ItemMetadata) -> "ItemSummary":
        return cls(
            name=metadata.name,
            header_image=metadata.header_image,
            genres=list(metadata.genres),
            review_score=metadata.review_score,
            review_count=metadata.review_count,
            release_year=metadata.release_year,
            is_free=metadata.is_free,
        )
