"""Per-entity lifecycle tables.

Every entity starts pending and ends in exactly one terminal branch.
Proposals are the only type with an intermediate non-terminal state
(accepted -> completed).
"""
import enum
from typing import Dict, FrozenSet, Optional, Type, Any

from devhire_sync.models.schemas import EntityType, JobRequestStatus, ProposalStatus, WithdrawalStatus
from devhire_sync.core.errors import InvalidTransition

STATUS_ENUMS: Dict[EntityType, Type[enum.Enum]] = {
    EntityType.JOB_REQUEST: JobRequestStatus,
    EntityType.PROPOSAL: ProposalStatus,
    EntityType.WITHDRAWAL: WithdrawalStatus,
}

TRANSITIONS: Dict[EntityType, Dict[Any, FrozenSet[Any]]] = {
    EntityType.JOB_REQUEST: {
        JobRequestStatus.PENDING: frozenset({JobRequestStatus.ACCEPTED, JobRequestStatus.DECLINED}),
        JobRequestStatus.ACCEPTED: frozenset(),
        JobRequestStatus.DECLINED: frozenset(),
    },
    EntityType.PROPOSAL: {
        ProposalStatus.PENDING: frozenset({
            ProposalStatus.ACCEPTED,
            ProposalStatus.REJECTED,
            ProposalStatus.WITHDRAWN,
        }),
        ProposalStatus.ACCEPTED: frozenset({ProposalStatus.COMPLETED}),
        ProposalStatus.REJECTED: frozenset(),
        ProposalStatus.COMPLETED: frozenset(),
        ProposalStatus.WITHDRAWN: frozenset(),
    },
    EntityType.WITHDRAWAL: {
        WithdrawalStatus.PENDING: frozenset({WithdrawalStatus.PROCESSED}),
        WithdrawalStatus.PROCESSED: frozenset(),
    },
}

TERMINAL: Dict[EntityType, FrozenSet[Any]] = {
    entity_type: frozenset(status for status, targets in table.items() if not targets)
    for entity_type, table in TRANSITIONS.items()
}

# Statuses that keep a client from hiring the same developer again
OPEN_HIRE_STATUSES = frozenset({JobRequestStatus.PENDING, JobRequestStatus.ACCEPTED})


def parse_status(entity_type: EntityType, raw: Any, entity_id: Any = None,
                 current: Optional[enum.Enum] = None) -> enum.Enum:
    """Coerce a raw status string into the entity's enum.

    Unknown values raise InvalidTransition so that a bad server payload is
    detected instead of cached.
    """
    status_enum = STATUS_ENUMS[entity_type]
    if isinstance(raw, status_enum):
        return raw
    try:
        return status_enum(raw)
    except ValueError:
        raise InvalidTransition(entity_type, entity_id, current, raw) from None


def is_terminal(entity_type: EntityType, status: enum.Enum) -> bool:
    return status in TERMINAL[entity_type]


def can_transition(entity_type: EntityType, current: enum.Enum, target: enum.Enum) -> bool:
    """True when target is reachable from current in one step, or equals it."""
    if current == target:
        return True
    return target in TRANSITIONS[entity_type][current]
