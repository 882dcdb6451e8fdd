import logging
from typing import List, Optional, Sequence
from app.core.config import Settings, get_settings
from app.core.exceptions import RefinementLimitException
from app.schemas.recommendation import RecommendationFilters
from app.schemas.search import ConversationContext, FollowUpQuestion, RefineRequest, SearchRequest, SearchResult
from app.services.recommendation_service import RecommendationService

logger = logging.getLogger(__name__)

QUERY_SEPARATOR = " | "

# Clarifying questions offered between rounds, most useful first
QUESTION_BANK = (
    FollowUpQuestion(id="mood", question="What mood are you in?", options=["Relaxing", "Challenging", "Either"]),
    FollowUpQuestion(id="group", question="Solo or with friends?", options=["Solo", "Multiplayer", "Either"]),
    FollowUpQuestion(id="session", question="Long sessions or quick plays?", options=["Long", "Short", "Either"]),
    FollowUpQuestion(id="genre", question="What genre interests you most?", options=["Action", "RPG", "Strategy", "Indie"]),
    FollowUpQuestion(id="focus", question="Prefer story or gameplay?", options=["Story", "Gameplay", "Both"]),
)
MAX_FOLLOW_UP_QUESTIONS = 3
# Answers shared by several questions do not mark any one of them answered
_NEUTRAL_ANSWERS = {"either", "both"}

def refine_context(context: ConversationContext, selections: Sequence[str], max_rounds: int) -> ConversationContext:
    """Append this round's answers (joined) and advance the round counter"""
    answers = [s.strip() for s in selections if s and s.strip()]
    if not answers:
        return context
    if context.round >= max_rounds:
        raise RefinementLimitException()
    return ConversationContext(
        original_query=context.original_query,
        refinements=[*context.refinements, ", ".join(answers)],
        round=context.round + 1,
    )

def query_text(context: ConversationContext) -> str:
    """Original text plus accumulated refinements"""
    return QUERY_SEPARATOR.join([context.original_query.strip(), *context.refinements])

def follow_up_questions(context: ConversationContext, max_rounds: int) -> List[FollowUpQuestion]:
    if context.round >= max_rounds:
        return []
    answered = {
        part.strip().lower()
        for refinement in context.refinements
        for part in refinement.split(",")
    }
    questions = [
        q for q in QUESTION_BANK
        if not any(
            option.lower() in answered and option.lower() not in _NEUTRAL_ANSWERS
            for option in q.options
        )
    ]
    return questions[:MAX_FOLLOW_UP_QUESTIONS]

class RefinementService:
    """Multi-round narrowing of a free-text search"""

    def __init__(self, recommendation_service: RecommendationService, settings: Optional[Settings] = None):
        self.recommendation_service = recommendation_service
        self.settings = settings or get_settings()

    @property
    def max_rounds(self) -> int:
        return self.settings.REFINEMENT_MAX_ROUNDS

    def search(self, user_id: str, request: SearchRequest) -> SearchResult:
        context = ConversationContext(original_query=request.query.strip())
        return self._run(user_id, context, request.limit, request.filters, request.exclude_owned)

    def refine(self, user_id: str, request: RefineRequest) -> SearchResult:
        context = refine_context(request.context, request.selections, self.max_rounds)
        logger.info(f"Refinement round {context.round}/{self.max_rounds} for user {user_id}")
        return self._run(user_id, context, request.limit, request.filters, request.exclude_owned)

    def _run(self, user_id: str, context: ConversationContext, limit: Optional[int],
             filters: RecommendationFilters, exclude_owned: bool) -> SearchResult:
        text = query_text(context)
        results = self.recommendation_service.search_by_text(user_id, text, limit, filters, exclude_owned)
        questions = follow_up_questions(context, self.max_rounds)
        return SearchResult(
            query_text=text,
            context=context,
            max_rounds=self.max_rounds,
            can_refine=context.round < self.max_rounds,
            follow_up_questions=questions,
            results=results,
        )
