from pydantic import BaseModel, Field
from typing import Optional, List

from app.schemas.recommendation import RecommendationFilters, RecommendationList

DEFAULT_MAX_ROUNDS = 3

class ConversationContext(BaseModel):
    """Round-scoped refinement state, round-tripped by the client"""
    original_query: str = Field(..., min_length=1)
    refinements: List[str] = Field(default_factory=list)
    round: int = Field(0, ge=0)

class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    limit: Optional[int] = Field(None, ge=1)
    filters: RecommendationFilters = Field(default_factory=RecommendationFilters)
    exclude_owned: bool = False

class RefineRequest(BaseModel):
    context: ConversationContext
    selections: List[str] = Field(default_factory=list, description="Chosen answers for this round")
    limit: Optional[int] = Field(None, ge=1)
    filters: RecommendationFilters = Field(default_factory=RecommendationFilters)
    exclude_owned: bool = False

class FollowUpQuestion(BaseModel):
    id: str
    question: str
    options: List[str]

class SearchResult(BaseModel):
    query_text: str
    context: ConversationContext
    max_rounds: int = DEFAULT_MAX_ROUNDS
    can_refine: bool
    follow_up_questions: List[FollowUpQuestion] = Field(default_factory=list)
    results: RecommendationList
