import logging
import threading
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from devhire_sync.core.errors import DuplicateHireRequest, EarningNotFound, InvalidTransition
from devhire_sync.db.backend_client import BackendClient
from devhire_sync.models.schemas import (
    EntityType, FeeBreakdown, HireRequestCreate, JobRequest, JobRequestStatus, PaymentMethod,
    Proposal, ProposalCreate, ProposalStatus, Withdrawal, WithdrawalStatus, WITHDRAWAL_FEE_RATE,
)
from devhire_sync.services.fees import compute_fee
from devhire_sync.services.status_ledger import StatusLedger

logger = logging.getLogger(__name__)

# A service is built per request, so hire locks live at module level
_hire_locks: Dict[Tuple[int, int], threading.Lock] = {}
_hire_locks_guard = threading.Lock()


def _hire_lock(client_id: int, developer_id: int) -> threading.Lock:
    with _hire_locks_guard:
        return _hire_locks.setdefault((client_id, developer_id), threading.Lock())


class WorkflowService:
    """
    Mutations initiated by the UI.

    Nothing here is optimistic: the ledger only changes after the backend
    confirms, and a ServerRejection leaves it untouched. Moves the ledger
    already knows to be illegal fail before any network call.
    """

    def __init__(self, client: BackendClient, ledger: StatusLedger, fee_rate: Any = WITHDRAWAL_FEE_RATE):
        self.client = client
        self.ledger = ledger
        self.fee_rate = Decimal(str(fee_rate))

    def _precheck(self, entity_type: EntityType, entity_id: int, status: Any):
        """Validate against the ledger when the entity is tracked; otherwise the backend decides."""
        if self.ledger.find(entity_type, entity_id) is None:
            return None
        return self.ledger.check(entity_type, entity_id, status)

    def _confirm(self, model, data: Dict[str, Any], fallback_id: int, fallback_status: Any):
        """Record the backend's view of an entity after a successful mutation."""
        payload = dict(data or {})
        payload.setdefault("id", fallback_id)
        payload.setdefault("status", getattr(fallback_status, "value", fallback_status))
        existing = self.ledger.get_entity(model.entity_type, payload["id"])
        if existing is not None:
            merged = existing.model_dump(by_alias=True)
            merged.update(payload)
            payload = merged
        entity = model.model_validate(payload)
        self.ledger.record(entity)
        return entity

    # Job requests

    def hire_developer(self, request: HireRequestCreate) -> JobRequest:
        # Check and create under one lock so concurrent requests cannot both pass the check
        with _hire_lock(request.client_id, request.developer_id):
            if self.ledger.has_open_hire(request.client_id, request.developer_id):
                raise DuplicateHireRequest(request.client_id, request.developer_id)
            data = self.client.create_job_request(request.model_dump(mode="json", by_alias=True, exclude_none=True))
            return self._record_hire(request, data)

    def _record_hire(self, request: HireRequestCreate, data: Dict[str, Any]) -> JobRequest:
        payload = {
            "clientId": request.client_id,
            "developerId": request.developer_id,
            "title": request.title,
            "budget": request.budget,
            **data,
        }
        payload.setdefault("status", JobRequestStatus.PENDING.value)
        job_request = JobRequest.model_validate(payload)
        self.ledger.record(job_request)
        logger.info(f"Job request {job_request.id} sent to developer {job_request.developer_id}")
        return job_request

    def respond_to_job_request(self, job_request_id: int, status: str) -> JobRequest:
        target = self._parse_choice(EntityType.JOB_REQUEST, job_request_id, status,
                                    (JobRequestStatus.ACCEPTED, JobRequestStatus.DECLINED))
        self._precheck(EntityType.JOB_REQUEST, job_request_id, target)
        data = self.client.update_job_request_status(job_request_id, target.value)
        return self._confirm(JobRequest, data, job_request_id, target)

    # Proposals

    def submit_proposal(self, proposal: ProposalCreate) -> Proposal:
        data = self.client.create_proposal(proposal.model_dump(mode="json", by_alias=True, exclude_none=True))
        payload = {**proposal.model_dump(by_alias=True), **data}
        payload.setdefault("status", ProposalStatus.PENDING.value)
        created = Proposal.model_validate(payload)
        self.ledger.record(created)
        return created

    def update_proposal_status(self, proposal_id: int, status: str) -> Proposal:
        target = self._parse_choice(EntityType.PROPOSAL, proposal_id, status,
                                    (ProposalStatus.ACCEPTED, ProposalStatus.REJECTED))
        self._precheck(EntityType.PROPOSAL, proposal_id, target)
        data = self.client.update_proposal_status(proposal_id, target.value)
        return self._confirm(Proposal, data, proposal_id, target)

    def withdraw_proposal(self, proposal_id: int) -> Proposal:
        self._precheck(EntityType.PROPOSAL, proposal_id, ProposalStatus.WITHDRAWN)
        data = self.client.withdraw_proposal(proposal_id)
        # The backend answers a withdrawal with a bare message
        if not data or "id" not in data:
            data = {"status": ProposalStatus.WITHDRAWN.value}
        return self._confirm(Proposal, data, proposal_id, ProposalStatus.WITHDRAWN)

    def complete_proposal(self, proposal_id: int) -> Proposal:
        self._precheck(EntityType.PROPOSAL, proposal_id, ProposalStatus.COMPLETED)
        data = self.client.complete_proposal(proposal_id)
        return self._confirm(Proposal, data, proposal_id, ProposalStatus.COMPLETED)

    # Withdrawals

    def preview_withdrawal(self, amount: Any) -> FeeBreakdown:
        return compute_fee(amount, self.fee_rate)

    def request_withdrawal(self, amount: Any, payment_method: Any) -> Withdrawal:
        # Raises InvalidAmount before anything reaches the backend
        breakdown = compute_fee(amount, self.fee_rate)
        method = PaymentMethod(payment_method)
        data = self.client.create_withdrawal(breakdown.amount, method.value)

        payload = dict(data)
        payload.setdefault("status", WithdrawalStatus.PENDING.value)
        payload.setdefault("paymentMethod", method.value)
        withdrawal = Withdrawal.model_validate({
            **payload,
            "requestedAmount": breakdown.amount,
            "feeRate": breakdown.fee_rate,
        })
        if withdrawal.fee_amount != breakdown.fee_amount:
            # The backend's figure is the one the admin will retain
            logger.warning(
                f"Withdrawal {withdrawal.id}: backend fee {withdrawal.fee_amount} "
                f"differs from local {breakdown.fee_amount}"
            )
        withdrawal.net_amount = withdrawal.requested_amount - withdrawal.fee_amount
        self.ledger.record(withdrawal)
        return withdrawal

    def process_withdrawal(self, withdrawal_id: int, earning_id: Optional[int] = None) -> Withdrawal:
        """
        Admin action: mark the withdrawal's admin earning record processed.

        Raises:
            EarningNotFound: no earning record points at this withdrawal.
        """
        self._precheck(EntityType.WITHDRAWAL, withdrawal_id, WithdrawalStatus.PROCESSED)
        earning_id = self._resolve_earning_id(withdrawal_id, earning_id)
        self.client.update_earning_status(earning_id, WithdrawalStatus.PROCESSED.value)
        # The earnings endpoint returns the earning record, not the withdrawal
        data = {"status": WithdrawalStatus.PROCESSED.value, "earningId": earning_id}
        return self._confirm(Withdrawal, data, withdrawal_id, WithdrawalStatus.PROCESSED)

    def _resolve_earning_id(self, withdrawal_id: int, earning_id: Optional[int]) -> int:
        if earning_id is not None:
            return earning_id
        existing = self.ledger.get_entity(EntityType.WITHDRAWAL, withdrawal_id)
        if existing is not None and existing.earning_id is not None:
            return existing.earning_id
        for earning in self.client.list_earnings(status="pending", withdrawal_id=withdrawal_id):
            linked = earning.get("withdrawalId")
            if linked is None and isinstance(earning.get("withdrawal"), dict):
                linked = earning["withdrawal"].get("id")
            if linked is not None and int(linked) == withdrawal_id and earning.get("id") is not None:
                return int(earning["id"])
        raise EarningNotFound(withdrawal_id)

    def _parse_choice(self, entity_type: EntityType, entity_id: int, status: str, allowed):
        """Restrict a UI-supplied status to the targets this action may request."""
        for choice in allowed:
            if status == choice.value:
                return choice
        raise InvalidTransition(entity_type, entity_id, self.ledger.find(entity_type, entity_id), status)
