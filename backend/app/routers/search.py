from fastapi import APIRouter, Depends
from app.core.auth import get_current_user
from app.dependencies import get_refinement_service
from app.routers.errors import handle_exception
from app.schemas.search import RefineRequest, SearchRequest
from app.services.refinement_service import RefinementService

router = APIRouter(prefix="/search", tags=["search"])

@router.post("")
def search_games(
    search_data: SearchRequest,
    current_user_id: str = Depends(get_current_user),
    refinement_service: RefinementService = Depends(get_refinement_service)
):
    """
    Serbest metinle oyun arama (premium)
    - Sonuçlarla birlikte takip soruları döner
    - Dönen context /search/refine çağrısına aynen geri gönderilir
    """
    try:
        result = refinement_service.search(current_user_id, search_data)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.post("/refine")
def refine_search(
    refine_data: RefineRequest,
    current_user_id: str = Depends(get_current_user),
    refinement_service: RefinementService = Depends(get_refinement_service)
):
    """Seçilen cevaplarla aramayı daralt; en fazla REFINEMENT_MAX_ROUNDS tur"""
    try:
        result = refinement_service.refine(current_user_id, refine_data)
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)
