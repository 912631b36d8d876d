import enum
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple, Any

from devhire_sync.models.schemas import CamelModel, EntityType, LedgerEntry, Transition
from devhire_sync.core.errors import InvalidTransition
from devhire_sync.services.transitions import OPEN_HIRE_STATUSES, can_transition, parse_status

logger = logging.getLogger(__name__)

EntityKey = Tuple[EntityType, int]
Subscriber = Callable[[Transition], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StatusLedger:
    """
    Local cache of entity lifecycle statuses.

    The backend stays the source of truth; the ledger only accepts changes
    its transition tables allow and tells subscribers about each one.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utc_now
        self._statuses: Dict[EntityKey, enum.Enum] = {}
        self._entities: Dict[EntityKey, CamelModel] = {}
        self._subscribers: List[Subscriber] = []
        # FastAPI runs sync endpoints in a threadpool
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._statuses)

    def __contains__(self, key: Tuple[Any, int]) -> bool:
        entity_type, entity_id = key
        return self.find(entity_type, entity_id) is not None

    def find(self, entity_type: Any, entity_id: int) -> Optional[enum.Enum]:
        with self._lock:
            return self._statuses.get((EntityType(entity_type), entity_id))

    def get(self, entity_type: Any, entity_id: int) -> enum.Enum:
        status = self.find(entity_type, entity_id)
        if status is None:
            raise KeyError(f"{EntityType(entity_type).value} {entity_id} is not tracked")
        return status

    def get_entity(self, entity_type: Any, entity_id: int) -> Optional[CamelModel]:
        with self._lock:
            return self._entities.get((EntityType(entity_type), entity_id))

    def check(self, entity_type: Any, entity_id: int, new_status: Any) -> enum.Enum:
        """Validate a change without applying it. Returns the parsed target status."""
        entity_type = EntityType(entity_type)
        with self._lock:
            current = self._statuses.get((entity_type, entity_id))
        target = parse_status(entity_type, new_status, entity_id, current)
        if current is not None and not can_transition(entity_type, current, target):
            raise InvalidTransition(entity_type, entity_id, current, target)
        return target

    def apply(self, entity_type: Any, entity_id: int, new_status: Any,
              entity: Optional[CamelModel] = None) -> enum.Enum:
        """
        Move an entity to new_status.

        Re-applying the current status succeeds without notifying anyone.
        An untracked entity is recorded at the reported status.

        Raises:
            InvalidTransition: the move is not in the transition table, or
                new_status is not a known status for the entity type.
        """
        target, _ = self._apply(entity_type, entity_id, new_status, entity)
        return target

    def apply_transition(self, entity_type: Any, entity_id: int, new_status: Any,
                         entity: Optional[CamelModel] = None) -> Optional[Transition]:
        """Like apply, but returns the Transition delivered to subscribers, or None if unchanged."""
        _, transition = self._apply(entity_type, entity_id, new_status, entity)
        return transition

    def _apply(self, entity_type: Any, entity_id: int, new_status: Any,
               entity: Optional[CamelModel]) -> Tuple[enum.Enum, Optional[Transition]]:
        entity_type = EntityType(entity_type)
        key = (entity_type, entity_id)
        with self._lock:
            current = self._statuses.get(key)
            target = parse_status(entity_type, new_status, entity_id, current)
            if current is not None and not can_transition(entity_type, current, target):
                raise InvalidTransition(entity_type, entity_id, current, target)
            if entity is not None:
                self._entities[key] = entity
            if current == target:
                return target, None
            self._statuses[key] = target
            transition = Transition(
                entity_type=entity_type,
                entity_id=entity_id,
                from_status=current.value if current is not None else None,
                to_status=target.value,
                occurred_at=self._clock(),
            )
            subscribers = list(self._subscribers)

        logger.info(f"{entity_type.value} {entity_id}: {transition.from_status} -> {transition.to_status}")
        for callback in subscribers:
            try:
                callback(transition)
            except Exception:
                logger.exception(f"Ledger subscriber {callback!r} failed on {entity_type.value} {entity_id}")
        return target, transition

    def record(self, entity: CamelModel) -> enum.Enum:
        """Apply a full entity record as returned by the backend."""
        return self.apply(entity.entity_type, entity.id, entity.status, entity=entity)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def entries(self, entity_type: Any = None, status: Any = None) -> List[LedgerEntry]:
        if entity_type is not None:
            entity_type = EntityType(entity_type)
        with self._lock:
            items = list(self._statuses.items())
            entities = dict(self._entities)
        results = []
        for (item_type, item_id), item_status in items:
            if entity_type is not None and item_type != entity_type:
                continue
            if status is not None and item_status.value != getattr(status, "value", status):
                continue
            record = entities.get((item_type, item_id))
            results.append(LedgerEntry(
                entity_type=item_type,
                entity_id=item_id,
                status=item_status.value,
                entity=record.model_dump(mode="json", by_alias=True) if record is not None else None,
            ))
        return results

    def snapshot(self) -> Dict[EntityKey, enum.Enum]:
        with self._lock:
            return dict(self._statuses)

    def has_open_hire(self, client_id: int, developer_id: int) -> bool:
        """True while a pending or accepted job request links this client and developer."""
        with self._lock:
            for (item_type, item_id), item_status in self._statuses.items():
                if item_type != EntityType.JOB_REQUEST or item_status not in OPEN_HIRE_STATUSES:
                    continue
                record = self._entities.get((item_type, item_id))
                if record is None:
                    continue
                if record.client_id == client_id and record.developer_id == developer_id:
                    return True
        return False
