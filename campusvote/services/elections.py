"""Election and candidate administration, plus dashboard views."""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from campusvote.config import DASHBOARD_SECTION_SIZE
from campusvote.date_utils import ensure_utc, time_left, utcnow
from campusvote.exceptions import Conflict, NotFound, ValidationFailed
from campusvote.media import save_base64_image
from campusvote.models.election_model import (
    AdminDashboard,
    Candidate,
    CandidateBase,
    CandidateCreate,
    CandidateUpdate,
    DashboardStats,
    Election,
    ElectionCreate,
    ElectionStatus,
    ElectionSummary,
    ElectionUpdate,
    StudentDashboard,
)
from campusvote.security import Principal
from campusvote.storage_mongo import MongoStorage

logger = logging.getLogger(__name__)


def _validation_message(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'election'}: {e['msg']}" for e in error.errors()
    )


# --- Elections ---


def create_election(storage: MongoStorage, data: ElectionCreate) -> Election:
    election = storage.insert_election(data.model_dump())
    logger.info(f"Election {election.id} created: {election.title}")
    return election


def get_election(storage: MongoStorage, election_id: str) -> Election:
    election = storage.get_election(election_id)
    if election is None:
        raise NotFound("Election not found.", {"election_id": election_id})
    return election


def list_elections(storage: MongoStorage, status: Optional[ElectionStatus] = None, now: Optional[datetime] = None) -> List[Election]:
    elections = storage.list_elections()
    if status is None:
        return elections
    now = ensure_utc(now or utcnow())
    return [e for e in elections if e.status_at(now) is status]


def update_election(storage: MongoStorage, election_id: str, changes: ElectionUpdate) -> Election:
    current = get_election(storage, election_id)
    merged = current.model_dump(exclude={"id"})
    merged.update(changes.model_dump(exclude_unset=True, exclude_none=True))
    try:
        validated = ElectionCreate(**merged)
    except ValidationError as e:
        raise ValidationFailed(_validation_message(e), {"election_id": election_id}) from e

    updated = storage.update_election(election_id, validated.model_dump())
    if updated is None:
        raise NotFound("Election not found.", {"election_id": election_id})
    logger.info(f"Election {election_id} updated")
    return updated


def delete_election(storage: MongoStorage, election_id: str) -> None:
    get_election(storage, election_id)
    ballots = storage.count_ballots(election_id=election_id)
    if ballots:
        raise Conflict(
            "Cannot delete an election that already has ballots.",
            {"election_id": election_id, "ballots": ballots},
        )
    removed = storage.delete_candidates_for_election(election_id)
    storage.delete_election(election_id)
    logger.info(f"Election {election_id} deleted with {removed} candidates")


# --- Candidates ---


def create_candidate(storage: MongoStorage, data: CandidateCreate, upload_dir: Optional[str] = None) -> Candidate:
    get_election(storage, data.election_id)

    fields = data.model_dump(exclude={"photo_base64"})
    fields["image_refs"] = []
    if data.photo_base64:
        fields["image_refs"].append(
            save_base64_image(data.photo_base64, prefix="candidate", upload_dir=upload_dir)
        )

    candidate = storage.insert_candidate(fields)
    logger.info(f"Candidate {candidate.id} added to election {candidate.election_id}")
    return candidate


def get_candidate(storage: MongoStorage, candidate_id: str) -> Candidate:
    candidate = storage.get_candidate(candidate_id)
    if candidate is None:
        raise NotFound("Candidate not found.", {"candidate_id": candidate_id})
    return candidate


def list_candidates(storage: MongoStorage, election_id: Optional[str] = None) -> List[Candidate]:
    return storage.list_candidates(election_id)


def update_candidate(
    storage: MongoStorage, candidate_id: str, changes: CandidateUpdate, upload_dir: Optional[str] = None
) -> Candidate:
    current = get_candidate(storage, candidate_id)
    updates = changes.model_dump(exclude_unset=True, exclude={"photo_base64"})

    new_election = updates.get("election_id")
    if new_election and new_election != current.election_id:
        get_election(storage, new_election)
        if storage.count_ballots(candidate_id=candidate_id):
            raise Conflict(
                "Cannot move a candidate that already has ballots.", {"candidate_id": candidate_id}
            )

    merged = current.model_dump(exclude={"id", "image_refs"})
    merged.update({k: v for k, v in updates.items() if v is not None or k == "position"})
    try:
        validated = CandidateBase(**merged)
    except ValidationError as e:
        raise ValidationFailed(_validation_message(e), {"candidate_id": candidate_id}) from e

    fields = validated.model_dump()
    if changes.photo_base64:
        fields["image_refs"] = current.image_refs + [
            save_base64_image(changes.photo_base64, prefix="candidate", upload_dir=upload_dir)
        ]

    updated = storage.update_candidate(candidate_id, fields)
    if updated is None:
        raise NotFound("Candidate not found.", {"candidate_id": candidate_id})
    logger.info(f"Candidate {candidate_id} updated")
    return updated


def delete_candidate(storage: MongoStorage, candidate_id: str) -> None:
    get_candidate(storage, candidate_id)
    ballots = storage.count_ballots(candidate_id=candidate_id)
    if ballots:
        raise Conflict(
            "Cannot delete a candidate that already has ballots.",
            {"candidate_id": candidate_id, "ballots": ballots},
        )
    storage.delete_candidate(candidate_id)
    logger.info(f"Candidate {candidate_id} deleted")


# --- Dashboards ---


def summarize(election: Election, now: datetime, has_voted: Optional[bool] = None) -> ElectionSummary:
    status = election.status_at(now)
    target = election.start_date if status is ElectionStatus.UPCOMING else election.end_date
    return ElectionSummary(
        **election.model_dump(),
        status=status,
        time_left=time_left(target, now),
        has_voted=has_voted,
    )


def admin_dashboard(storage: MongoStorage, now: Optional[datetime] = None) -> AdminDashboard:
    now = ensure_utc(now or utcnow())
    elections = storage.list_elections()

    buckets = {status: [] for status in ElectionStatus}
    for election in elections:
        buckets[election.status_at(now)].append(election)

    active = sorted(buckets[ElectionStatus.ACTIVE], key=lambda e: e.start_date, reverse=True)
    upcoming = sorted(buckets[ElectionStatus.UPCOMING], key=lambda e: e.start_date)
    past = sorted(buckets[ElectionStatus.PAST], key=lambda e: e.end_date, reverse=True)

    return AdminDashboard(
        stats=DashboardStats(
            total_elections=storage.count_elections(),
            total_candidates=storage.count_candidates(),
            total_votes=storage.count_ballots(),
        ),
        active=[summarize(e, now) for e in active[:DASHBOARD_SECTION_SIZE]],
        upcoming=[summarize(e, now) for e in upcoming[:DASHBOARD_SECTION_SIZE]],
        past=[summarize(e, now) for e in past[:DASHBOARD_SECTION_SIZE]],
    )


def student_dashboard(storage: MongoStorage, principal: Principal, now: Optional[datetime] = None) -> StudentDashboard:
    now = ensure_utc(now or utcnow())
    elections = storage.list_elections()

    active = sorted(
        (e for e in elections if e.status_at(now) is ElectionStatus.ACTIVE),
        key=lambda e: e.start_date,
        reverse=True,
    )
    past = sorted(
        (e for e in elections if e.status_at(now) is ElectionStatus.PAST),
        key=lambda e: e.end_date,
        reverse=True,
    )

    return StudentDashboard(
        active=[
            summarize(e, now, has_voted=storage.find_ballot(principal.user_id, e.id) is not None)
            for e in active
        ],
        results_available=[summarize(e, now) for e in past],
    )
