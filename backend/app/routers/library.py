from fastapi import APIRouter, Depends
from typing import Optional
from app.core.auth import get_current_user
from app.dependencies import get_library_sync_service, get_preference_service
from app.routers.errors import handle_exception
from app.schemas.library import BuildOptions, LibrarySyncRequest
from app.services.library_sync_service import LibrarySyncService
from app.services.preference_vector_service import PreferenceVectorService

router = APIRouter(prefix="/library", tags=["library"])

@router.post("/sync")
def sync_library(
    sync_data: LibrarySyncRequest,
    current_user_id: str = Depends(get_current_user),
    sync_service: LibrarySyncService = Depends(get_library_sync_service)
):
    """
    Kütüphaneyi Steam'den çek, sinyalleri kaydet ve tercih vektörünü yeniden oluştur
    - Achievement verisi opsiyonel (kalite ağırlığı için)
    - Başarısız olursa önceki vektör korunur
    """
    try:
        result = sync_service.sync_library(
            current_user_id,
            sync_data.steam_id,
            fetch_achievements=sync_data.fetch_achievements,
            options=sync_data.options
        )
        return {"success": True, "data": result}
    except Exception as e:
        raise handle_exception(e)

@router.delete("")
def unlink_library(
    current_user_id: str = Depends(get_current_user),
    sync_service: LibrarySyncService = Depends(get_library_sync_service)
):
    """Steam bağlantısını kaldır: sinyaller ve tercih vektörü silinir, öğrenilmiş vektör kalır"""
    try:
        deleted = sync_service.unlink_library(current_user_id)
        return {"success": True, "data": {"signals_deleted": deleted}}
    except Exception as e:
        raise handle_exception(e)

@router.post("/rebuild")
def rebuild_preference_vector(
    options: Optional[BuildOptions] = None,
    current_user_id: str = Depends(get_current_user),
    preference_service: PreferenceVectorService = Depends(get_preference_service)
):
    """Kayıtlı sinyallerden tercih vektörünü yeniden hesapla (sync sonrası tetiklenir)"""
    try:
        result = preference_service.rebuild(current_user_id, options)
        return {"success": True, "data": result.summary()}
    except Exception as e:
        raise handle_exception(e)
