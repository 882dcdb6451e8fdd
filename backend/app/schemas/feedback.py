from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.core.enums import FeedbackLabel
from app.core.identifiers import AppIdField
from app.schemas.item import ItemSummary

class FeedbackCreate(BaseModel):
    """Submit or replace the feedback label for one item"""
    app_id: AppIdField
    label: str = Field(..., description="love | like | dislike | not_interested")

class FeedbackResetRequest(BaseModel):
    clear_history: bool = Field(False, description="Also delete every stored feedback event")

class FeedbackEntry(BaseModel):
    app_id: AppIdField
    label: FeedbackLabel
    created_at: datetime
    updated_at: datetime
    item: Optional[ItemSummary] = None

class FeedbackHistory(BaseModel):
    """Active feedback, most recent first, split by polarity"""
    positive: List[FeedbackEntry] = Field(default_factory=list)
    negative: List[FeedbackEntry] = Field(default_factory=list)
    likes_count: int = 0
    dislikes_count: int = 0

class LearnedVectorState(BaseModel):
    """Outcome of a feedback mutation"""
    app_id: Optional[AppIdField] = None
    label: Optional[FeedbackLabel] = None
    has_learned_vector: bool
    likes_count: int = 0
    dislikes_count: int = 0
    updated_at: Optional[datetime] = None

class HiddenItemEntry(BaseModel):
    app_id: AppIdField
    hidden_at: datetime
    item: Optional[ItemSummary] = None

class HiddenItemList(BaseModel):
    """Hidden items, most recently hidden first"""
    items: List[HiddenItemEntry] = Field(default_factory=list)
    total: int = 0

class HiddenItemState(BaseModel):
    app_id: AppIdField
    hidden: bool
    hidden_at: Optional[datetime] = None
