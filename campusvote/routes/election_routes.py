from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends

from campusvote.dependencies import get_current_principal, get_now, get_storage, require_admin
from campusvote.models.election_model import (
    ElectionCreate,
    ElectionStatus,
    ElectionSummary,
    ElectionUpdate,
)
from campusvote.security import Principal
from campusvote.services import elections as election_service
from campusvote.storage_mongo import MongoStorage

router = APIRouter(prefix="/election", tags=["Election"])


@router.post("/create", status_code=201)
def create_election(
    election: ElectionCreate,
    storage: MongoStorage = Depends(get_storage),
    now: datetime = Depends(get_now),
    _admin: Principal = Depends(require_admin),
):
    created = election_service.create_election(storage, election)
    return {
        "message": "Election created successfully!",
        "election_id": created.id,
        "election": election_service.summarize(created, now),
    }


@router.get("/all", response_model=List[ElectionSummary])
def get_all_elections(
    status: Optional[ElectionStatus] = None,
    storage: MongoStorage = Depends(get_storage),
    now: datetime = Depends(get_now),
    _principal: Principal = Depends(get_current_principal),
):
    """All elections, newest start first, optionally filtered by status."""
    elections = election_service.list_elections(storage, status=status, now=now)
    return [election_service.summarize(e, now) for e in elections]


@router.get("/{election_id}", response_model=ElectionSummary)
def get_election(
    election_id: str,
    storage: MongoStorage = Depends(get_storage),
    now: datetime = Depends(get_now),
    _principal: Principal = Depends(get_current_principal),
):
    return election_service.summarize(election_service.get_election(storage, election_id), now)


@router.patch("/{election_id}", response_model=ElectionSummary)
def update_election(
    election_id: str,
    changes: ElectionUpdate,
    storage: MongoStorage = Depends(get_storage),
    now: datetime = Depends(get_now),
    _admin: Principal = Depends(require_admin),
):
    updated = election_service.update_election(storage, election_id, changes)
    return election_service.summarize(updated, now)


@router.delete("/{election_id}")
def delete_election(
    election_id: str,
    storage: MongoStorage = Depends(get_storage),
    _admin: Principal = Depends(require_admin),
):
    election_service.delete_election(storage, election_id)
    return {"message": "Election deleted successfully!", "election_id": election_id}
