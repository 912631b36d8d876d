import itertools
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from devhire_sync.models.schemas import EntityType, Notification, Severity, Transition
from devhire_sync.services.status_ledger import StatusLedger, utc_now

logger = logging.getLogger(__name__)

Listener = Callable[[Notification], None]

# (entity type, target status) -> (title, message template, severity)
TEMPLATES: Dict[Tuple[EntityType, str], Tuple[str, str, Severity]] = {
    (EntityType.JOB_REQUEST, "accepted"): (
        "Job Request Accepted",
        "Job request #{entity_id} has been accepted and a project has been created.",
        Severity.SUCCESS,
    ),
    (EntityType.JOB_REQUEST, "declined"): (
        "Job Request Declined",
        "Job request #{entity_id} has been declined. The budget has been refunded to your balance.",
        Severity.WARNING,
    ),
    (EntityType.PROPOSAL, "accepted"): (
        "Proposal Accepted",
        "Your proposal #{entity_id} has been accepted!",
        Severity.SUCCESS,
    ),
    (EntityType.PROPOSAL, "rejected"): (
        "Proposal Rejected",
        "Your proposal #{entity_id} has been rejected.",
        Severity.WARNING,
    ),
    (EntityType.PROPOSAL, "withdrawn"): (
        "Proposal Withdrawn",
        "Proposal #{entity_id} has been withdrawn.",
        Severity.INFO,
    ),
    (EntityType.PROPOSAL, "completed"): (
        "Project Completed",
        "The project for proposal #{entity_id} has been marked as completed.",
        Severity.SUCCESS,
    ),
    (EntityType.WITHDRAWAL, "processed"): (
        "Withdrawal Processed",
        "Withdrawal #{entity_id} has been processed and sent to your payment method.",
        Severity.SUCCESS,
    ),
}


class NotificationDispatcher:
    """
    Turns ledger transitions into user-facing notifications.

    Each (entity type, entity id, target status) notifies at most once, so
    duplicate poll responses never re-notify.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utc_now
        self._delivered: Set[Tuple[EntityType, int, str]] = set()
        self._inbox: List[Notification] = []
        self._listeners: List[Listener] = []
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def attach(self, ledger: StatusLedger) -> Callable[[], None]:
        return ledger.subscribe(self.on_transition)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def on_transition(self, transition: Transition) -> Optional[Notification]:
        # First sighting of an entity is not a status change
        if transition.from_status is None:
            return None
        template = TEMPLATES.get((transition.entity_type, transition.to_status))
        if template is None:
            return None

        key = (transition.entity_type, transition.entity_id, transition.to_status)
        with self._lock:
            if key in self._delivered:
                logger.debug(f"Already notified {key}")
                return None
            self._delivered.add(key)
            title, message, severity = template
            notification = Notification(
                id=next(self._ids),
                entity_type=transition.entity_type,
                entity_id=transition.entity_id,
                status=transition.to_status,
                title=title,
                message=message.format(entity_id=transition.entity_id),
                severity=severity,
                created_at=self._clock(),
            )
            self._inbox.append(notification)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(notification)
            except Exception:
                logger.exception(f"Notification listener {listener!r} failed on notification {notification.id}")
        return notification

    def notifications(self, unread_only: bool = False) -> List[Notification]:
        """Newest first."""
        with self._lock:
            items = [n for n in self._inbox if not (unread_only and n.is_read)]
        return list(reversed(items))

    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._inbox if not n.is_read)

    def mark_read(self, notification_id: int) -> Notification:
        with self._lock:
            for notification in self._inbox:
                if notification.id == notification_id:
                    notification.is_read = True
                    return notification
        raise KeyError(f"Notification {notification_id} not found")

    def mark_all_read(self) -> int:
        with self._lock:
            unread = [n for n in self._inbox if not n.is_read]
            for notification in unread:
                notification.is_read = True
        return len(unread)

    def delete(self, notification_id: int) -> None:
        """Remove a notification and forget its dedup key, so the set only tracks what the inbox holds."""
        with self._lock:
            for index, notification in enumerate(self._inbox):
                if notification.id == notification_id:
                    del self._inbox[index]
                    self._delivered.discard((notification.entity_type, notification.entity_id, notification.status))
                    return
        raise KeyError(f"Notification {notification_id} not found")
