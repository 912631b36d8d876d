from typing import Optional, Any
from fastapi import HTTPException, status


class SyncError(Exception):
    """Base class for every error raised by the sync layer."""


class InvalidTransition(SyncError):
    """A status change that the entity's transition table does not allow.

    Local and non-fatal: the ledger is left unchanged.
    """

    def __init__(self, entity_type: Any, entity_id: Any, from_status: Optional[str], to_status: Any):
        self.entity_type = getattr(entity_type, "value", entity_type)
        self.entity_id = entity_id
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        super().__init__(
            f"Invalid {self.entity_type} transition for {self.entity_id}: "
            f"{self.from_status!r} -> {self.to_status!r}"
        )


class InvalidAmount(SyncError):
    """Monetary input rejected before any network call."""

    def __init__(self, amount: Any, reason: str = "amount must be a positive number"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class DuplicateHireRequest(SyncError):
    """The client already has an open hire request with this developer."""

    def __init__(self, client_id: Any, developer_id: Any):
        self.client_id = client_id
        self.developer_id = developer_id
        super().__init__(f"Client {client_id} already has an open job request with developer {developer_id}")


class EarningNotFound(SyncError):
    """No admin earning record could be matched to a withdrawal."""

    def __init__(self, withdrawal_id: Any):
        self.withdrawal_id = withdrawal_id
        super().__init__(f"No admin earning record found for withdrawal {withdrawal_id}")


class NetworkError(SyncError):
    """The backend could not be reached. Retryable."""


class ServerRejection(SyncError):
    """The backend answered a call with a 4xx/5xx status."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Backend rejected request ({status_code}): {detail}")


def http_error(error: SyncError) -> HTTPException:
    """Translate a sync-layer error into the response the UI should see."""
    if isinstance(error, (InvalidTransition, DuplicateHireRequest)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, EarningNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, InvalidAmount):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, ServerRejection):
        code = error.status_code if error.status_code >= 400 else status.HTTP_502_BAD_GATEWAY
        return HTTPException(status_code=code, detail=error.detail)
    if isinstance(error, NetworkError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
