"""
Shared fixtures: an in-memory MongoDB (mongomock), a fixed clock and a
seeded active election with three candidates.
"""

from datetime import datetime, timedelta, timezone

import mongomock
import pytest

from campusvote.models.election_model import CandidateCreate, ElectionCreate
from campusvote.security import Principal
from campusvote.services import elections as election_service
from campusvote.services.feed import ActivityFeed
from campusvote.storage_mongo import MongoStorage

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def make_election(storage, title="Student Council", start=None, end=None):
    return election_service.create_election(
        storage,
        ElectionCreate(
            title=title,
            description=f"{title} election",
            start_date=start or NOW - timedelta(days=1),
            end_date=end or NOW + timedelta(days=1),
        ),
    )


def make_candidate(storage, election_id, name, department="Engineering", position="President"):
    return election_service.create_candidate(
        storage,
        CandidateCreate(
            election_id=election_id,
            name=name,
            department=department,
            position=position,
            manifesto=f"{name} for a better campus",
        ),
    )


def add_ballot(storage, election_id, candidate_id, student_id, cast_at=NOW):
    return storage.insert_ballot(
        {
            "election_id": election_id,
            "candidate_id": candidate_id,
            "student_id": student_id,
            "voter_name": f"Voter {student_id}",
            "cast_at": cast_at,
        }
    )


@pytest.fixture
def storage():
    client = mongomock.MongoClient()
    return MongoStorage(client["campusvote_test"], client=client)


@pytest.fixture
def feed(storage):
    return ActivityFeed(storage)


@pytest.fixture
def election(storage):
    return make_election(storage)


@pytest.fixture
def candidates(storage, election):
    return {
        name: make_candidate(storage, election.id, name)
        for name in ("Alice", "Bob", "Carol")
    }


@pytest.fixture
def student():
    return Principal(user_id="s1", display_name="Student One")


@pytest.fixture
def admin():
    return Principal(user_id="admin-1", display_name="Registrar", is_admin=True)
