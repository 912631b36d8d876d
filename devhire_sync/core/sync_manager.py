import logging
from typing import Optional

from devhire_sync.core.config import get_settings
from devhire_sync.db.backend_client import get_backend_client
from devhire_sync.services.notifications import NotificationDispatcher
from devhire_sync.services.reconciler import PollingReconciler, snapshot_fetcher
from devhire_sync.services.status_ledger import StatusLedger
from devhire_sync.services.workflows import WorkflowService

logger = logging.getLogger(__name__)

class SyncManager:
    """
    Owns the process-wide ledger, notification dispatcher and reconciler.
    """
    _instance = None
    _ledger: Optional[StatusLedger] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(SyncManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._ledger is None:
            self.initialize()

    def initialize(self):
        """Build a fresh ledger with the dispatcher subscribed to it"""
        settings = get_settings()
        self._ledger = StatusLedger()
        self.dispatcher = NotificationDispatcher()
        self.dispatcher.attach(self._ledger)
        self.reconciler = PollingReconciler(
            fetch=snapshot_fetcher(get_backend_client()),
            ledger=self._ledger,
            interval_ms=settings.poll_interval_ms,
        )
        logger.info(f"Sync state initialized against {settings.api_base_url}")

    @property
    def ledger(self) -> StatusLedger:
        return self._ledger

    @classmethod
    def reset(cls):
        """Drop the shared instance; the next SyncManager() starts empty."""
        if cls._instance is not None and cls._instance._ledger is not None:
            cls._instance.reconciler.stop()
        cls._instance = None
        cls._ledger = None

def get_ledger() -> StatusLedger:
    return SyncManager().ledger

def get_dispatcher() -> NotificationDispatcher:
    return SyncManager().dispatcher

def get_reconciler() -> PollingReconciler:
    return SyncManager().reconciler

def get_workflow_service(token: Optional[str] = None) -> WorkflowService:
    """Workflow service acting with the caller's backend token"""
    return WorkflowService(
        client=get_backend_client(token),
        ledger=get_ledger(),
        fee_rate=get_settings().withdrawal_fee_rate,
    )
