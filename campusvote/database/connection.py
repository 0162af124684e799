import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from campusvote.config import (
    BALLOTS_COLLECTION_NAME,
    CANDIDATES_COLLECTION_NAME,
    FEED_COLLECTION_NAME,
    MONGO_CONNECT_TIMEOUT_MS,
    MONGO_SERVER_SELECTION_TIMEOUT_MS,
    MONGO_URI,
)

logger = logging.getLogger(__name__)


def create_client(uri: str = MONGO_URI) -> MongoClient:
    return MongoClient(
        uri,
        tz_aware=True,
        connectTimeoutMS=MONGO_CONNECT_TIMEOUT_MS,
        serverSelectionTimeoutMS=MONGO_SERVER_SELECTION_TIMEOUT_MS,
    )


def ensure_indexes(db: Database) -> None:
    """Create the indexes the service relies on. Safe to call repeatedly."""
    ballots = db[BALLOTS_COLLECTION_NAME]
    # Storage-level guarantee of one ballot per (student, election)
    ballots.create_index(
        [("student_id", ASCENDING), ("election_id", ASCENDING)],
        unique=True,
        name="one_ballot_per_student",
    )
    ballots.create_index("election_id")
    ballots.create_index("candidate_id")

    db[CANDIDATES_COLLECTION_NAME].create_index("election_id")

    feed = db[FEED_COLLECTION_NAME]
    feed.create_index([("timestamp", DESCENDING)])
    feed.create_index([("election_id", ASCENDING), ("timestamp", DESCENDING)])
    logger.info(f"Indexes ensured on database {db.name}")
