from fastapi import APIRouter, Depends, Query
from typing import Optional
from app.core.auth import get_current_user
from app.core.identifiers import AppId
from app.dependencies import get_recommendation_service
from app.routers.errors import bad_request, handle_exception
from app.schemas.recommendation import MoodRecommendationRequest, RecommendationRequest
from app.services.recommendation_service import RecommendationService

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

# ============================================================================
# KİŞİSEL ÖNERİLER
# ============================================================================

@router.post("")
def get_recommendations(
    request: RecommendationRequest,
    current_user_id: str = Depends(get_current_user),
    recommendation_service: RecommendationService = Depends(get_recommendation_service)
):
    """
    Tercih vektörüne göre öneriler
    - Öğrenilmiş vektör varsa 60/40 karışım kullanılır
    - popularity_score 50 saf benzerlik sırasıdır
    """
    try:
        result = recommendation_service.recommend_for_user(current_user_id, request)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.get("/similar/{app_id}")
def get_similar_items(
    app_id: str,
    limit: Optional[int] = Query(None, ge=1, description="Sonuç sayısı"),
    exclude_owned: bool = Query(False, description="Sahip olunan oyunları çıkar"),
    current_user_id: str = Depends(get_current_user),
    recommendation_service: RecommendationService = Depends(get_recommendation_service)
):
    """Bir oyuna benzeyen oyunlar"""
    try:
        parsed = AppId.parse(app_id)
    except ValueError as e:
        raise bad_request(str(e))
    try:
        result = recommendation_service.similar_items(
            parsed, limit, user_id=current_user_id, exclude_owned=exclude_owned
        )
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.get("/unplayed-gems")
def get_unplayed_gems(
    limit: Optional[int] = Query(None, ge=1),
    max_playtime_minutes: Optional[int] = Query(None, ge=0, description="Bu süreden az oynanmış oyunlar"),
    min_similarity: Optional[float] = Query(None, ge=0.0, le=1.0),
    current_user_id: str = Depends(get_current_user),
    recommendation_service: RecommendationService = Depends(get_recommendation_service)
):
    """Kütüphanede olup neredeyse hiç oynanmamış, zevke yakın oyunlar"""
    try:
        gems = recommendation_service.unplayed_gems(current_user_id, limit, max_playtime_minutes, min_similarity)
        return {"success": True, "data": {"gems": gems, "total": len(gems)}}
    except Exception as e:
        raise handle_exception(e)

@router.get("/daily-pick")
def get_daily_pick(
    current_user_id: str = Depends(get_current_user),
    recommendation_service: RecommendationService = Depends(get_recommendation_service)
):
    """Günün oyunu: aynı gün içinde sabit, UTC gece yarısı yenilenir"""
    try:
        result = recommendation_service.daily_pick(current_user_id)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

# ============================================================================
# RUH HALİ (MOOD) ÖNERİLERİ
# ============================================================================

@router.get("/moods")
def list_moods(
    recommendation_service: RecommendationService = Depends(get_recommendation_service)
):
    try:
        return {"success": True, "data": recommendation_service.list_moods()}
    except Exception as e:
        raise handle_exception(e)

@router.post("/moods/{mood_id}")
def get_mood_recommendations(
    mood_id: str,
    request: Optional[MoodRecommendationRequest] = None,
    current_user_id: str = Depends(get_current_user),
    recommendation_service: RecommendationService = Depends(get_recommendation_service)
):
    """Hazır filtre setiyle öneriler; istekte verilen filtreler preset'in üzerine yazılır"""
    try:
        result = recommendation_service.recommend_for_mood(
            current_user_id, mood_id, request or MoodRecommendationRequest()
        )
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)
