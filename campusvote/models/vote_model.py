from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from campusvote.date_utils import ensure_utc


class VoteRequest(BaseModel):
    election_id: str
    candidate_id: str


class Ballot(BaseModel):
    id: str
    election_id: str
    candidate_id: str
    student_id: str
    voter_name: str
    cast_at: datetime

    @field_validator("cast_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class FeedEntry(BaseModel):
    id: str
    voter_name: str
    election_id: Optional[str] = None
    election_title: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class FeedEntryOut(FeedEntry):
    relative_time: str


class CandidateResult(BaseModel):
    candidate_id: str
    name: str
    vote_count: int
    percentage: float


class TallyResult(BaseModel):
    election_id: str
    candidates: List[CandidateResult] = Field(default_factory=list)
    total_votes: int = 0
    # ballots whose candidate is not registered under this election
    orphaned_votes: int = 0
