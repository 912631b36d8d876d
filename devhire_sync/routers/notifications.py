from fastapi import APIRouter, HTTPException, status
from typing import Dict, List

from devhire_sync.models.schemas import Notification
from devhire_sync.core.sync_manager import get_dispatcher

router = APIRouter(prefix="/notifications", tags=["Notifications"])

@router.get("", response_model=List[Notification])
def list_notifications(unread_only: bool = False):
    return get_dispatcher().notifications(unread_only=unread_only)

@router.get("/unread-count", response_model=Dict[str, int])
def unread_count():
    return {"unreadCount": get_dispatcher().unread_count()}

@router.put("/read-all", response_model=Dict[str, int])
def mark_all_read():
    return {"updated": get_dispatcher().mark_all_read()}

@router.put("/{notification_id}/read", response_model=Notification)
def mark_read(notification_id: int):
    try:
        return get_dispatcher().mark_read(notification_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(notification_id: int):
    try:
        get_dispatcher().delete(notification_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
