from datetime import datetime

from fastapi import APIRouter, Depends

from campusvote.dependencies import get_current_principal, get_feed, get_now, get_storage
from campusvote.models.vote_model import TallyResult, VoteRequest
from campusvote.security import Principal
from campusvote.services import tally, voting
from campusvote.services.feed import ActivityFeed
from campusvote.storage_mongo import MongoStorage

vote_router = APIRouter(prefix="/vote", tags=["Vote"])


@vote_router.post("/cast", status_code=201)
def cast_vote(
    vote: VoteRequest,
    storage: MongoStorage = Depends(get_storage),
    feed: ActivityFeed = Depends(get_feed),
    now: datetime = Depends(get_now),
    principal: Principal = Depends(get_current_principal),
):
    """
    Casts the caller's vote. One ballot per student per election;
    AlreadyVoted and ElectionNotActive must not be retried.
    """
    ballot = voting.cast_vote(storage, feed, principal, vote.election_id, vote.candidate_id, now=now)
    return {
        "message": "Vote cast successfully!",
        "ballot_id": ballot.id,
        "election_id": ballot.election_id,
        "candidate_id": ballot.candidate_id,
        "cast_at": ballot.cast_at,
    }


@vote_router.get("/check/{election_id}")
def check_vote(
    election_id: str,
    storage: MongoStorage = Depends(get_storage),
    principal: Principal = Depends(get_current_principal),
):
    """Whether the caller has already voted in the election."""
    if voting.has_voted(storage, principal, election_id):
        return {"status": "already_voted", "election_id": election_id}
    return {"status": "not_voted", "election_id": election_id, "message": "Voter can proceed to vote."}


@vote_router.get("/results/{election_id}", response_model=TallyResult)
def get_results(
    election_id: str,
    storage: MongoStorage = Depends(get_storage),
    now: datetime = Depends(get_now),
    principal: Principal = Depends(get_current_principal),
):
    return tally.results_for(storage, principal, election_id, now=now)
