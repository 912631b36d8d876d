from fastapi import APIRouter, Depends, status

from devhire_sync.models.schemas import Proposal, ProposalCreate, StatusUpdate
from devhire_sync.core.errors import SyncError, http_error
from devhire_sync.core.security import oauth2_scheme
from devhire_sync.core.sync_manager import get_workflow_service

router = APIRouter(prefix="/proposals", tags=["Proposals"])

@router.post("", response_model=Proposal, status_code=status.HTTP_201_CREATED)
def submit_proposal(proposal_in: ProposalCreate, token: str = Depends(oauth2_scheme)):
    service = get_workflow_service(token)
    try:
        return service.submit_proposal(proposal_in)
    except SyncError as e:
        raise http_error(e)

@router.put("/{proposal_id}/status", response_model=Proposal)
def update_proposal_status(proposal_id: int, update: StatusUpdate, token: str = Depends(oauth2_scheme)):
    """Client accepts or rejects a pending proposal."""
    service = get_workflow_service(token)
    try:
        return service.update_proposal_status(proposal_id, update.status)
    except SyncError as e:
        raise http_error(e)

@router.put("/{proposal_id}/complete", response_model=Proposal)
def complete_proposal(proposal_id: int, token: str = Depends(oauth2_scheme)):
    service = get_workflow_service(token)
    try:
        return service.complete_proposal(proposal_id)
    except SyncError as e:
        raise http_error(e)

@router.delete("/{proposal_id}", response_model=Proposal)
def withdraw_proposal(proposal_id: int, token: str = Depends(oauth2_scheme)):
    service = get_workflow_service(token)
    try:
        return service.withdraw_proposal(proposal_id)
    except SyncError as e:
        raise http_error(e)
