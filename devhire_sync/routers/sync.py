from fastapi import APIRouter

from devhire_sync.models.schemas import ReconciliationReport, SyncStatus
from devhire_sync.core.errors import SyncError, http_error
from devhire_sync.core.sync_manager import get_reconciler

router = APIRouter(prefix="/sync", tags=["Sync"])

@router.post("/reconcile", response_model=ReconciliationReport)
async def reconcile_now():
    """Run a pass immediately, or join the one already in flight."""
    try:
        return await get_reconciler().reconcile_once()
    except SyncError as e:
        raise http_error(e)

@router.get("/status", response_model=SyncStatus)
def sync_status():
    return get_reconciler().status()
