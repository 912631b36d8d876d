import logging
from typing import Any, Dict, List, Optional, Tuple

import requests
from pydantic import BaseModel as PydanticBaseModel

from devhire_sync.core.config import get_settings
from devhire_sync.core.errors import NetworkError, ServerRejection
from devhire_sync.core.security import build_auth_headers
from devhire_sync.models.schemas import EntityType

logger = logging.getLogger(__name__)

# Job requests are polled once per status so declined requests converge too
POLLED_JOB_REQUEST_STATUSES = ("pending", "accepted", "declined")

class BackendClient:
    """
    REST client for the DevHire Galaxy backend.

    Every call either returns decoded JSON or raises NetworkError (backend
    unreachable) / ServerRejection (backend answered 4xx/5xx).
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                 payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=build_auth_headers(self.token),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise NetworkError(f"Could not reach backend at {url}: {e}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error(f"{method} {url} rejected with {response.status_code}: {detail}")
            raise ServerRejection(response.status_code, detail)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise ServerRejection(response.status_code, f"Malformed JSON from {url}") from None

    # Job requests

    def list_job_requests(self, status: Optional[str] = None,
                          pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        params = {"status": status} if status else None
        data = self._request("GET", "/job-requests", params=params)
        return _as_models(_unwrap_list(data, "jobRequests"), pydantic_model)

    def create_job_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap_one(self._request("POST", "/job-requests", payload=data), "jobRequest")

    def update_job_request_status(self, job_request_id: int, status: str) -> Dict[str, Any]:
        data = self._request("PUT", f"/job-requests/{job_request_id}", payload={"status": status})
        return _unwrap_one(data, "jobRequest")

    # Proposals

    def list_proposals(self, status: Optional[str] = None,
                       pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        params = {"status": status} if status else None
        data = self._request("GET", "/proposals", params=params)
        return _as_models(_unwrap_list(data, "proposals"), pydantic_model)

    def create_proposal(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap_one(self._request("POST", "/proposals", payload=data), "proposal")

    def update_proposal_status(self, proposal_id: int, status: str) -> Dict[str, Any]:
        data = self._request("PUT", f"/proposals/{proposal_id}/status", payload={"status": status})
        return _unwrap_one(data, "proposal")

    def complete_proposal(self, proposal_id: int) -> Dict[str, Any]:
        return _unwrap_one(self._request("PUT", f"/proposals/{proposal_id}/complete"), "proposal")

    def withdraw_proposal(self, proposal_id: int) -> Optional[Dict[str, Any]]:
        data = self._request("DELETE", f"/proposals/{proposal_id}")
        return _unwrap_one(data, "proposal") if data else None

    # Withdrawals and admin earnings

    def list_withdrawals(self, status: Optional[str] = None,
                         pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        params = {"status": status} if status else None
        data = self._request("GET", "/withdrawals", params=params)
        return _as_models(_unwrap_list(data, "withdrawals"), pydantic_model)

    def create_withdrawal(self, amount: Any, payment_method: str) -> Dict[str, Any]:
        payload = {"amount": str(amount), "paymentMethod": payment_method}
        return _unwrap_one(self._request("POST", "/withdrawals", payload=payload), "withdrawal")

    def list_earnings(self, status: Optional[str] = None, withdrawal_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Admin earnings rows; each points at its withdrawal through withdrawalId."""
        params = {}
        if status:
            params["status"] = status
        if withdrawal_id is not None:
            params["withdrawalId"] = withdrawal_id
        data = self._request("GET", "/earnings", params=params or None)
        return _unwrap_list(data, "earnings")

    def update_earning_status(self, earning_id: int, status: str) -> Dict[str, Any]:
        data = self._request("PUT", f"/earnings/{earning_id}/status", payload={"status": status})
        return _unwrap_one(data, "earning")

    def fetch_snapshot(self) -> List[Tuple[EntityType, Dict[str, Any]]]:
        """
        One authoritative view of every entity the current user can see,
        in server order: job requests, then proposals, then withdrawals.
        """
        snapshot: List[Tuple[EntityType, Dict[str, Any]]] = []
        for status in POLLED_JOB_REQUEST_STATUSES:
            snapshot.extend((EntityType.JOB_REQUEST, item) for item in self.list_job_requests(status=status))
        snapshot.extend((EntityType.PROPOSAL, item) for item in self.list_proposals())
        snapshot.extend((EntityType.WITHDRAWAL, item) for item in self.list_withdrawals())
        return snapshot

def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "Unknown error"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)

def _unwrap_list(data: Any, key: str) -> List[Dict[str, Any]]:
    """Accepts a bare JSON array or an object like {"proposals": [...]}."""
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise ServerRejection(200, f"Expected a list of {key}, got {type(data).__name__}")
    return data

def _unwrap_one(data: Any, key: str) -> Dict[str, Any]:
    if isinstance(data, dict) and isinstance(data.get(key), dict):
        return data[key]
    if not isinstance(data, dict):
        raise ServerRejection(200, f"Expected a {key} object, got {type(data).__name__}")
    return data

def _as_models(items: List[Dict[str, Any]], pydantic_model: Optional[type[PydanticBaseModel]]) -> List[Any]:
    if pydantic_model is None:
        return items
    return [pydantic_model.model_validate(item) for item in items]

def get_backend_client(token: Optional[str] = None) -> BackendClient:
    """Client configured from settings; token defaults to the service token."""
    settings = get_settings()
    return BackendClient(
        base_url=settings.api_base_url,
        token=token if token is not None else settings.api_token,
        timeout=settings.request_timeout,
    )
