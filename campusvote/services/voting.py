"""Vote submission: eligibility checks, then a ballot plus a feed entry."""

import logging
from datetime import datetime
from typing import Optional

from campusvote.date_utils import ensure_utc, utcnow
from campusvote.exceptions import (
    AlreadyVoted,
    CampusVoteError,
    ElectionNotActive,
    InvalidCandidate,
    NotFound,
)
from campusvote.models.vote_model import Ballot
from campusvote.security import Principal
from campusvote.services.feed import ActivityFeed
from campusvote.storage_mongo import MongoStorage

logger = logging.getLogger(__name__)


def cast_vote(
    storage: MongoStorage,
    feed: ActivityFeed,
    principal: Principal,
    election_id: str,
    candidate_id: str,
    now: Optional[datetime] = None,
) -> Ballot:
    """Record one ballot for ``principal`` in ``election_id``.

    Checks run in a fixed order: election exists, voting window open,
    candidate belongs to the election, no earlier ballot. The unique index
    on (student_id, election_id) is the authoritative duplicate guard; the
    lookup beforehand only gives the common case a clean error.

    The ballot insert is the durability boundary. If the feed write fails
    afterwards the vote still counts.
    """
    now = ensure_utc(now or utcnow())
    context = {"election_id": election_id, "student_id": principal.user_id}

    election = storage.get_election(election_id)
    if election is None:
        raise NotFound("Election not found.", context)

    if not election.is_active(now):
        raise ElectionNotActive(
            "This election is not currently active.",
            {**context, "status": election.status_at(now).value},
        )

    candidate = storage.get_candidate(candidate_id)
    if candidate is None or candidate.election_id != election.id:
        raise InvalidCandidate(
            "Candidate not found in this election.", {**context, "candidate_id": candidate_id}
        )

    if storage.find_ballot(principal.user_id, election.id) is not None:
        raise AlreadyVoted("You have already voted in this election.", context)

    ballot = storage.insert_ballot(
        {
            "election_id": election.id,
            "candidate_id": candidate.id,
            "student_id": principal.user_id,
            "voter_name": principal.voter_name,
            "cast_at": now,
        }
    )
    if ballot is None:
        # lost the race against a concurrent submission
        raise AlreadyVoted("You have already voted in this election.", context)

    logger.info(f"Ballot {ballot.id} cast in election {election.id} by student {principal.user_id}")

    try:
        feed.record(
            voter_name=ballot.voter_name,
            election_id=election.id,
            election_title=election.title,
            timestamp=ballot.cast_at,
        )
    except CampusVoteError as e:
        logger.warning(f"Ballot {ballot.id} recorded but activity feed entry failed: {e}")

    return ballot


def has_voted(storage: MongoStorage, principal: Principal, election_id: str) -> bool:
    if storage.get_election(election_id) is None:
        raise NotFound("Election not found.", {"election_id": election_id})
    return storage.find_ballot(principal.user_id, election_id) is not None
