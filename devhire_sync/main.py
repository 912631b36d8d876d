from contextlib import asynccontextmanager
from fastapi import FastAPI
import uvicorn

from devhire_sync.core.config import get_settings, configure_logging
from devhire_sync.core.sync_manager import get_reconciler
from devhire_sync.routers import job_requests as job_requests_router
from devhire_sync.routers import proposals as proposals_router
from devhire_sync.routers import withdrawals as withdrawals_router
from devhire_sync.routers import ledger as ledger_router
from devhire_sync.routers import notifications as notifications_router
from devhire_sync.routers import sync as sync_router

@asynccontextmanager
async def lifespan(app: FastAPI):
    reconciler = get_reconciler()
    if get_settings().autostart_polling:
        reconciler.start()
    yield
    reconciler.stop()
    await reconciler.drain()

app = FastAPI(title="DevHire Galaxy Sync", lifespan=lifespan)

app.include_router(job_requests_router.router)
app.include_router(proposals_router.router)
app.include_router(withdrawals_router.router)
app.include_router(ledger_router.router)
app.include_router(notifications_router.router)
app.include_router(sync_router.router)

@app.get("/")
async def root():
    return {"message": "DevHire Galaxy workflow sync service"}

def main():
    """Run the sync service with uvicorn."""
    configure_logging()
    uvicorn.run(
        "devhire_sync.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=get_settings().log_level.lower()
    )

if __name__ == "__main__":
    main()
