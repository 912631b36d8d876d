from fastapi import APIRouter, Depends, status

from devhire_sync.models.schemas import JobRequest, HireRequestCreate, StatusUpdate
from devhire_sync.core.errors import SyncError, http_error
from devhire_sync.core.security import oauth2_scheme
from devhire_sync.core.sync_manager import get_workflow_service

router = APIRouter(prefix="/job-requests", tags=["Job Requests"])

@router.post("", response_model=JobRequest, status_code=status.HTTP_201_CREATED)
def hire_developer(hire_in: HireRequestCreate, token: str = Depends(oauth2_scheme)):
    service = get_workflow_service(token)
    try:
        return service.hire_developer(hire_in)
    except SyncError as e:
        raise http_error(e)

@router.put("/{job_request_id}/status", response_model=JobRequest)
def respond_to_job_request(job_request_id: int, update: StatusUpdate, token: str = Depends(oauth2_scheme)):
    # Developer's accept/decline; anything else is rejected before reaching the backend
    service = get_workflow_service(token)
    try:
        return service.respond_to_job_request(job_request_id, update.status)
    except SyncError as e:
        raise http_error(e)
