from fastapi import APIRouter, Depends, status
from typing import Optional

from devhire_sync.models.schemas import FeeBreakdown, FeePreviewRequest, Withdrawal, WithdrawalCreate, WithdrawalProcess
from devhire_sync.core.errors import SyncError, http_error
from devhire_sync.core.security import oauth2_scheme
from devhire_sync.core.sync_manager import get_workflow_service

router = APIRouter(prefix="/withdrawals", tags=["Withdrawals"])

@router.post("/preview", response_model=FeeBreakdown)
def preview_withdrawal(preview_in: FeePreviewRequest):
    """Fee and net payout the developer will see before confirming."""
    service = get_workflow_service()
    try:
        return service.preview_withdrawal(preview_in.amount)
    except SyncError as e:
        raise http_error(e)

@router.post("", response_model=Withdrawal, status_code=status.HTTP_201_CREATED)
def request_withdrawal(withdrawal_in: WithdrawalCreate, token: str = Depends(oauth2_scheme)):
    service = get_workflow_service(token)
    try:
        return service.request_withdrawal(withdrawal_in.amount, withdrawal_in.payment_method)
    except SyncError as e:
        raise http_error(e)

@router.put("/{withdrawal_id}/process", response_model=Withdrawal)
def process_withdrawal(withdrawal_id: int, process_in: Optional[WithdrawalProcess] = None,
                       token: str = Depends(oauth2_scheme)):
    # Admin only; the backend enforces the role
    service = get_workflow_service(token)
    try:
        earning_id = process_in.earning_id if process_in is not None else None
        return service.process_withdrawal(withdrawal_id, earning_id)
    except SyncError as e:
        raise http_error(e)
