from fastapi import APIRouter, Depends, Query
from typing import Optional
from app.core.auth import get_current_user
from app.core.identifiers import AppId
from app.dependencies import get_feedback_service
from app.routers.errors import bad_request, handle_exception
from app.schemas.feedback import FeedbackCreate, FeedbackResetRequest
from app.services.feedback_service import FeedbackService

router = APIRouter(prefix="/feedback", tags=["feedback"])

@router.post("")
def submit_feedback(
    feedback_data: FeedbackCreate,
    current_user_id: str = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service)
):
    """
    Bir oyuna geri bildirim ver (premium)
    - love / like öğrenilmiş vektörü oyuna yaklaştırır
    - dislike / not_interested uzaklaştırır
    - Aynı oyuna tekrar gönderim etiketi değiştirir, iki kez uygulanmaz
    """
    try:
        result = feedback_service.submit_feedback(current_user_id, feedback_data.app_id, feedback_data.label)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.get("")
def get_feedback_history(
    limit: Optional[int] = Query(None, ge=1, le=500),
    current_user_id: str = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service)
):
    try:
        result = feedback_service.get_user_feedback(current_user_id, limit)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

# ============================================================================
# HIDDEN GAMES
# ============================================================================

@router.get("/hidden")
def list_hidden_games(
    current_user_id: str = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service)
):
    """Gizlenen oyunlar, en son gizlenen önce"""
    try:
        result = feedback_service.list_hidden(current_user_id)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.put("/hidden/{app_id}")
def hide_game(
    app_id: str,
    current_user_id: str = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service)
):
    """
    Oyunu tüm önerilerden gizle
    - Öğrenilmiş vektörü etkilemez, premium gerekmez
    """
    try:
        parsed = AppId.parse(app_id)
    except ValueError as e:
        raise bad_request(str(e))
    try:
        result = feedback_service.hide_item(current_user_id, parsed)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.delete("/hidden/{app_id}")
def unhide_game(
    app_id: str,
    current_user_id: str = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service)
):
    try:
        parsed = AppId.parse(app_id)
    except ValueError as e:
        raise bad_request(str(e))
    try:
        result = feedback_service.unhide_item(current_user_id, parsed)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.delete("/{app_id}")
def delete_feedback(
    app_id: str,
    current_user_id: str = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service)
):
    try:
        parsed = AppId.parse(app_id)
    except ValueError as e:
        raise bad_request(str(e))
    try:
        result = feedback_service.delete_feedback(current_user_id, parsed)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.post("/reset")
def reset_learned_vector(
    reset_data: Optional[FeedbackResetRequest] = None,
    current_user_id: str = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service)
):
    """Öğrenilmiş vektörü sıfırla; clear_history ile geçmiş de silinir"""
    try:
        clear_history = reset_data.clear_history if reset_data else False
        result = feedback_service.reset_learned_vector(current_user_id, clear_history)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)
