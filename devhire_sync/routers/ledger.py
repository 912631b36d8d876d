from fastapi import APIRouter, HTTPException, Query, status
from typing import List, Optional

from devhire_sync.models.schemas import EntityType, LedgerEntry
from devhire_sync.core.sync_manager import get_ledger

router = APIRouter(prefix="/ledger", tags=["Ledger"])

@router.get("", response_model=List[LedgerEntry])
def list_entries(status_filter: Optional[str] = Query(None, alias="status")):
    return get_ledger().entries(status=status_filter)

@router.get("/{entity_type}", response_model=List[LedgerEntry])
def list_entries_by_type(entity_type: EntityType, status_filter: Optional[str] = Query(None, alias="status")):
    return get_ledger().entries(entity_type, status=status_filter)

@router.get("/{entity_type}/{entity_id}", response_model=LedgerEntry)
def get_entry(entity_type: EntityType, entity_id: int):
    ledger = get_ledger()
    current = ledger.find(entity_type, entity_id)
    if current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity_type.value} {entity_id} is not tracked")
    entity = ledger.get_entity(entity_type, entity_id)
    return LedgerEntry(
        entity_type=entity_type,
        entity_id=entity_id,
        status=current.value,
        entity=entity.model_dump(mode="json", by_alias=True) if entity is not None else None,
    )
