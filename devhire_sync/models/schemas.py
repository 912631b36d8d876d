from typing import Optional, List, Dict, Any, ClassVar
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, model_validator
from pydantic.alias_generators import to_camel

WITHDRAWAL_FEE_RATE = Decimal("0.10") # Admin fee retained on every withdrawal

class EntityType(str, Enum):
    JOB_REQUEST = "job_request"
    PROPOSAL = "proposal"
    WITHDRAWAL = "withdrawal"

class JobRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

class ProposalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"

class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"

class PaymentMethod(str, Enum):
    BANK = "bank"
    PAYPAL = "paypal"
    STRIPE = "stripe"

class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

class CamelModel(BaseModel):
    """Accepts the backend's camelCase keys as well as snake_case field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class JobRequest(CamelModel):
    entity_type: ClassVar[EntityType] = EntityType.JOB_REQUEST

    id: int
    client_id: Optional[int] = None
    developer_id: Optional[int] = None
    title: Optional[str] = None
    budget: Optional[Decimal] = None
    status: JobRequestStatus = JobRequestStatus.PENDING
    created_at: Optional[datetime] = None

class Proposal(CamelModel):
    entity_type: ClassVar[EntityType] = EntityType.PROPOSAL

    id: int
    job_id: Optional[int] = None
    developer_id: Optional[int] = None
    cover_letter: Optional[str] = None
    proposed_budget: Optional[Decimal] = None
    proposed_timeline: Optional[str] = None # e.g. "2 weeks"
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: Optional[datetime] = None

class Withdrawal(CamelModel):
    entity_type: ClassVar[EntityType] = EntityType.WITHDRAWAL

    id: int
    developer_id: Optional[int] = None
    # The backend reports the gross amount as "amount" and the fee as "adminFee"
    requested_amount: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("requestedAmount", "requested_amount", "originalAmount", "amount"),
        serialization_alias="requestedAmount",
    )
    payment_method: Optional[PaymentMethod] = None
    fee_rate: Decimal = WITHDRAWAL_FEE_RATE
    fee_amount: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("feeAmount", "fee_amount", "adminFee"),
        serialization_alias="feeAmount",
    )
    net_amount: Optional[Decimal] = None
    earning_id: Optional[int] = None # AdminEarnings record the admin marks as processed
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def fill_fee_split(self):
        """Poll rows only carry the gross amount; derive fee and net so they always sum to it."""
        if self.requested_amount is None or self.requested_amount <= 0:
            return self
        if self.fee_amount is None:
            from devhire_sync.services.fees import compute_fee
            breakdown = compute_fee(self.requested_amount, self.fee_rate)
            self.requested_amount = breakdown.amount
            self.fee_amount = breakdown.fee_amount
            self.net_amount = breakdown.net_amount
        elif self.net_amount is None:
            self.net_amount = self.requested_amount - self.fee_amount
        return self

ENTITY_MODELS: Dict[EntityType, type] = {
    EntityType.JOB_REQUEST: JobRequest,
    EntityType.PROPOSAL: Proposal,
    EntityType.WITHDRAWAL: Withdrawal,
}

def parse_entity(entity_type: EntityType, payload: Dict[str, Any]) -> CamelModel:
    """Build the tagged model for a raw backend payload."""
    return ENTITY_MODELS[entity_type].model_validate(payload)

class FeeBreakdown(CamelModel):
    amount: Decimal
    fee_rate: Decimal
    fee_amount: Decimal
    net_amount: Decimal

class Transition(CamelModel):
    entity_type: EntityType
    entity_id: int
    from_status: Optional[str] = None # None when the entity is first seen
    to_status: str
    occurred_at: datetime

class Notification(CamelModel):
    id: int
    entity_type: EntityType
    entity_id: int
    status: str
    title: str
    message: str
    severity: Severity
    is_read: bool = False
    created_at: datetime

class ReconciliationReport(CamelModel):
    started_at: datetime
    finished_at: datetime
    fetched: int = 0
    applied: List[Transition] = []
    unchanged: int = 0

class SyncStatus(CamelModel):
    running: bool
    interval_ms: int
    in_flight: bool
    passes: int
    skipped_ticks: int
    last_report: Optional[ReconciliationReport] = None
    last_error: Optional[str] = None

class LedgerEntry(CamelModel):
    entity_type: EntityType
    entity_id: int
    status: str
    entity: Optional[Dict[str, Any]] = None

# Request bodies accepted from the UI layer

class HireRequestCreate(CamelModel):
    developer_id: int
    client_id: int
    title: str
    description: Optional[str] = None
    budget: Decimal
    message: Optional[str] = None

class StatusUpdate(CamelModel):
    status: str # Validated against the entity's transition table, not here

class ProposalCreate(CamelModel):
    job_id: int
    cover_letter: str
    proposed_budget: Decimal
    proposed_timeline: Optional[str] = None

class FeePreviewRequest(CamelModel):
    amount: Any # Validated by compute_fee so bad input maps to InvalidAmount

class WithdrawalCreate(FeePreviewRequest):
    payment_method: PaymentMethod

class WithdrawalProcess(CamelModel):
    earning_id: Optional[int] = None # Looked up from the admin earnings listing when omitted
