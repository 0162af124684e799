from typing import List, Optional

from fastapi import APIRouter, Depends

from campusvote.dependencies import get_current_principal, get_storage, require_admin
from campusvote.models.election_model import Candidate, CandidateCreate, CandidateUpdate
from campusvote.security import Principal
from campusvote.services import elections as election_service
from campusvote.storage_mongo import MongoStorage

router = APIRouter(prefix="/candidate", tags=["Candidate"])


@router.post("/create", status_code=201)
def create_candidate(
    candidate: CandidateCreate,
    storage: MongoStorage = Depends(get_storage),
    _admin: Principal = Depends(require_admin),
):
    created = election_service.create_candidate(storage, candidate)
    return {
        "message": "Candidate created successfully!",
        "candidate_id": created.id,
        "candidate": created,
    }


@router.get("/all", response_model=List[Candidate])
def get_all_candidates(
    election_id: Optional[str] = None,
    storage: MongoStorage = Depends(get_storage),
    _principal: Principal = Depends(get_current_principal),
):
    return election_service.list_candidates(storage, election_id)


@router.get("/{candidate_id}", response_model=Candidate)
def get_candidate(
    candidate_id: str,
    storage: MongoStorage = Depends(get_storage),
    _principal: Principal = Depends(get_current_principal),
):
    return election_service.get_candidate(storage, candidate_id)


@router.patch("/{candidate_id}", response_model=Candidate)
def update_candidate(
    candidate_id: str,
    changes: CandidateUpdate,
    storage: MongoStorage = Depends(get_storage),
    _admin: Principal = Depends(require_admin),
):
    return election_service.update_candidate(storage, candidate_id, changes)


@router.delete("/{candidate_id}")
def delete_candidate(
    candidate_id: str,
    storage: MongoStorage = Depends(get_storage),
    _admin: Principal = Depends(require_admin),
):
    election_service.delete_candidate(storage, candidate_id)
    return {"message": "Candidate deleted successfully!", "candidate_id": candidate_id}
