from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from campusvote.date_utils import ensure_utc


class ElectionStatus(str, Enum):
    ACTIVE = "active"
    UPCOMING = "upcoming"
    PAST = "past"


def classify_election(start_date: datetime, end_date: datetime, now: datetime) -> ElectionStatus:
    """Single classification rule used by every dashboard. Both bounds are inclusive."""
    now = ensure_utc(now)
    if now < ensure_utc(start_date):
        return ElectionStatus.UPCOMING
    if now > ensure_utc(end_date):
        return ElectionStatus.PAST
    return ElectionStatus.ACTIVE


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class ElectionBase(BaseModel):
    title: str = Field(..., examples=["Student Council 2026"])
    description: str = Field(default="", examples=["Annual council election"])
    start_date: datetime
    end_date: datetime

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ElectionCreate(ElectionBase):
    pass


class ElectionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class Election(ElectionBase):
    id: str

    def status_at(self, now: datetime) -> ElectionStatus:
        return classify_election(self.start_date, self.end_date, now)

    def is_active(self, now: datetime) -> bool:
        return self.status_at(now) is ElectionStatus.ACTIVE


class ElectionSummary(Election):
    """Election as shown on dashboards."""
    status: ElectionStatus
    time_left: str
    has_voted: Optional[bool] = None


class CandidateBase(BaseModel):
    election_id: str
    name: str = Field(..., examples=["Jane Dela Cruz"])
    department: str = Field(..., examples=["College of Computer Studies"])
    position: Optional[str] = Field(default=None, examples=["President"])
    manifesto: str

    @field_validator("name", "department", "manifesto")
    @classmethod
    def required_text(cls, v: str) -> str:
        return _not_blank(v)


class CandidateCreate(CandidateBase):
    # raw base64 or a data URL (data:image/jpeg;base64,...)
    photo_base64: Optional[str] = None


class CandidateUpdate(BaseModel):
    election_id: Optional[str] = None
    name: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    manifesto: Optional[str] = None
    photo_base64: Optional[str] = None


class Candidate(CandidateBase):
    id: str
    image_refs: List[str] = Field(default_factory=list)


class DashboardStats(BaseModel):
    total_elections: int
    total_candidates: int
    total_votes: int


class AdminDashboard(BaseModel):
    stats: DashboardStats
    active: List[ElectionSummary] = Field(default_factory=list)
    upcoming: List[ElectionSummary] = Field(default_factory=list)
    past: List[ElectionSummary] = Field(default_factory=list)


class StudentDashboard(BaseModel):
    active: List[ElectionSummary] = Field(default_factory=list)
    # ended elections whose results students may view
    results_available: List[ElectionSummary] = Field(default_factory=list)
