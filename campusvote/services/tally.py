"""Tally engine: per-candidate counts and percentages for one election."""

import logging
from collections import Counter
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from campusvote.date_utils import ensure_utc, utcnow
from campusvote.exceptions import Forbidden, NotFound
from campusvote.models.election_model import Election, ElectionStatus
from campusvote.models.vote_model import CandidateResult, TallyResult
from campusvote.security import Principal
from campusvote.storage_mongo import MongoStorage

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")


def round_percentage(count: int, total: int) -> float:
    """100 * count / total rounded half-up to two places; 0 when total is 0."""
    if total <= 0:
        return 0.0
    share = Decimal(count) * 100 / Decimal(total)
    return float(share.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def compute_results(storage: MongoStorage, election_id: str) -> TallyResult:
    """Rank candidates by votes (ties: candidate id ascending).

    Recomputed from a fresh read on every call. ``total_votes`` is the number
    of ballots in the election; ballots naming a candidate outside the
    election's registry are reported as ``orphaned_votes``. Percentages are
    rounded independently and may not sum to exactly 100.
    """
    if storage.get_election(election_id) is None:
        raise NotFound("Election not found.", {"election_id": election_id})

    candidates = storage.list_candidates(election_id)
    ballots = storage.list_ballots(election_id)

    counts = Counter(ballot.candidate_id for ballot in ballots)
    total_votes = len(ballots)

    known_ids = {candidate.id for candidate in candidates}
    orphaned = sum(n for candidate_id, n in counts.items() if candidate_id not in known_ids)
    if orphaned:
        logger.warning(
            f"Election {election_id}: {orphaned} of {total_votes} ballots reference "
            f"candidates outside the election"
        )

    results = [
        CandidateResult(
            candidate_id=candidate.id,
            name=candidate.name,
            vote_count=counts.get(candidate.id, 0),
            percentage=round_percentage(counts.get(candidate.id, 0), total_votes),
        )
        for candidate in candidates
    ]
    results.sort(key=lambda r: (-r.vote_count, r.candidate_id))

    return TallyResult(
        election_id=election_id,
        candidates=results,
        total_votes=total_votes,
        orphaned_votes=orphaned,
    )


def ensure_results_visible(election: Election, principal: Principal, now: Optional[datetime] = None) -> None:
    """Admins see live results; students only once the election has ended."""
    if principal.is_admin:
        return
    now = ensure_utc(now or utcnow())
    if election.status_at(now) is not ElectionStatus.PAST:
        raise Forbidden(
            "Results are available once the election has ended.", {"election_id": election.id}
        )


def results_for(
    storage: MongoStorage, principal: Principal, election_id: str, now: Optional[datetime] = None
) -> TallyResult:
    election = storage.get_election(election_id)
    if election is None:
        raise NotFound("Election not found.", {"election_id": election_id})
    ensure_results_visible(election, principal, now)
    return compute_results(storage, election_id)
