# storage_mongo.py
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Type, TypeVar

import pymongo
from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ValidationError
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from campusvote.config import (
    BALLOTS_COLLECTION_NAME,
    CANDIDATES_COLLECTION_NAME,
    ELECTIONS_COLLECTION_NAME,
    FEED_COLLECTION_NAME,
    MONGO_DB_NAME,
    MONGO_URI,
    REQUEST_TIMEOUT_SECONDS,
)
from campusvote.database.connection import create_client, ensure_indexes
from campusvote.exceptions import DataIntegrityError, Unavailable
from campusvote.models.election_model import Candidate, Election
from campusvote.models.vote_model import Ballot, FeedEntry

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a public id; malformed ids simply match nothing."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class MongoStorage:
    """Typed access to the four collections backing the election service.

    Every call runs under ``pymongo.timeout`` and driver failures surface as
    ``Unavailable``. Documents are validated into pydantic records on read;
    malformed documents raise ``DataIntegrityError``.
    """

    def __init__(self, db: Database, client=None):
        self.client = client
        self.db = db
        self.elections = db[ELECTIONS_COLLECTION_NAME]
        self.candidates = db[CANDIDATES_COLLECTION_NAME]
        self.ballots = db[BALLOTS_COLLECTION_NAME]
        self.feed = db[FEED_COLLECTION_NAME]
        with self._guard("ensure_indexes"):
            ensure_indexes(db)

    @classmethod
    def connect(cls, uri: str = MONGO_URI, db_name: str = MONGO_DB_NAME) -> "MongoStorage":
        client = create_client(uri)
        try:
            client.admin.command("ping")
        except PyMongoError as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            client.close()
            raise Unavailable("Could not reach the database", operation="connect", original_error=e) from e
        logger.info(f"Connected to MongoDB, database: {db_name}")
        return cls(client[db_name], client=client)

    def close(self):
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")

    @contextmanager
    def _guard(self, operation: str):
        try:
            with pymongo.timeout(REQUEST_TIMEOUT_SECONDS):
                yield
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            logger.error(f"Storage operation {operation} failed: {e}")
            raise Unavailable("Storage temporarily unavailable", operation=operation, original_error=e) from e

    @staticmethod
    def _parse(model: Type[RecordT], doc: Dict[str, Any], collection: str) -> RecordT:
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed document {data['id']} in {collection}: {e}")
            raise DataIntegrityError(
                f"Malformed {collection} document", collection=collection, document_id=data["id"]
            ) from e

    def ping(self) -> None:
        with self._guard("ping"):
            self.db.command("ping")

    # --- Elections ---

    def insert_election(self, fields: Dict[str, Any]) -> Election:
        doc = dict(fields)
        with self._guard("insert_election"):
            result = self.elections.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._parse(Election, doc, ELECTIONS_COLLECTION_NAME)

    def get_election(self, election_id: str) -> Optional[Election]:
        oid = to_object_id(election_id)
        if oid is None:
            return None
        with self._guard("get_election"):
            doc = self.elections.find_one({"_id": oid})
        return self._parse(Election, doc, ELECTIONS_COLLECTION_NAME) if doc else None

    def list_elections(self) -> List[Election]:
        with self._guard("list_elections"):
            docs = list(self.elections.find().sort("start_date", DESCENDING))
        return [self._parse(Election, d, ELECTIONS_COLLECTION_NAME) for d in docs]

    def update_election(self, election_id: str, fields: Dict[str, Any]) -> Optional[Election]:
        oid = to_object_id(election_id)
        if oid is None:
            return None
        with self._guard("update_election"):
            doc = self.elections.find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        return self._parse(Election, doc, ELECTIONS_COLLECTION_NAME) if doc else None

    def delete_election(self, election_id: str) -> bool:
        oid = to_object_id(election_id)
        if oid is None:
            return False
        with self._guard("delete_election"):
            result = self.elections.delete_one({"_id": oid})
        return result.deleted_count > 0

    def count_elections(self) -> int:
        with self._guard("count_elections"):
            return self.elections.count_documents({})

    # --- Candidates ---

    def insert_candidate(self, fields: Dict[str, Any]) -> Candidate:
        doc = dict(fields)
        with self._guard("insert_candidate"):
            result = self.candidates.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._parse(Candidate, doc, CANDIDATES_COLLECTION_NAME)

    def get_candidate(self, candidate_id: str) -> Optional[Candidate]:
        oid = to_object_id(candidate_id)
        if oid is None:
            return None
        with self._guard("get_candidate"):
            doc = self.candidates.find_one({"_id": oid})
        return self._parse(Candidate, doc, CANDIDATES_COLLECTION_NAME) if doc else None

    def list_candidates(self, election_id: Optional[str] = None) -> List[Candidate]:
        query = {"election_id": election_id} if election_id is not None else {}
        with self._guard("list_candidates"):
            docs = list(self.candidates.find(query).sort("_id", ASCENDING))
        return [self._parse(Candidate, d, CANDIDATES_COLLECTION_NAME) for d in docs]

    def update_candidate(self, candidate_id: str, fields: Dict[str, Any]) -> Optional[Candidate]:
        oid = to_object_id(candidate_id)
        if oid is None:
            return None
        with self._guard("update_candidate"):
            doc = self.candidates.find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        return self._parse(Candidate, doc, CANDIDATES_COLLECTION_NAME) if doc else None

    def delete_candidate(self, candidate_id: str) -> bool:
        oid = to_object_id(candidate_id)
        if oid is None:
            return False
        with self._guard("delete_candidate"):
            result = self.candidates.delete_one({"_id": oid})
        return result.deleted_count > 0

    def delete_candidates_for_election(self, election_id: str) -> int:
        with self._guard("delete_candidates_for_election"):
            result = self.candidates.delete_many({"election_id": election_id})
        return result.deleted_count

    def count_candidates(self) -> int:
        with self._guard("count_candidates"):
            return self.candidates.count_documents({})

    # --- Ballots ---

    def insert_ballot(self, fields: Dict[str, Any]) -> Optional[Ballot]:
        """Insert a ballot; returns None if the student already has one for the election."""
        doc = dict(fields)
        try:
            with self._guard("insert_ballot"):
                result = self.ballots.insert_one(doc)
        except DuplicateKeyError:
            logger.warning(
                f"Ballot for student {fields.get('student_id')} in election "
                f"{fields.get('election_id')} already exists"
            )
            return None
        doc["_id"] = result.inserted_id
        return self._parse(Ballot, doc, BALLOTS_COLLECTION_NAME)

    def find_ballot(self, student_id: str, election_id: str) -> Optional[Ballot]:
        with self._guard("find_ballot"):
            doc = self.ballots.find_one({"student_id": student_id, "election_id": election_id})
        return self._parse(Ballot, doc, BALLOTS_COLLECTION_NAME) if doc else None

    def list_ballots(self, election_id: str) -> List[Ballot]:
        with self._guard("list_ballots"):
            docs = list(self.ballots.find({"election_id": election_id}))
        return [self._parse(Ballot, d, BALLOTS_COLLECTION_NAME) for d in docs]

    def count_ballots(
        self, election_id: Optional[str] = None, candidate_id: Optional[str] = None
    ) -> int:
        query = {}
        if election_id is not None:
            query["election_id"] = election_id
        if candidate_id is not None:
            query["candidate_id"] = candidate_id
        with self._guard("count_ballots"):
            return self.ballots.count_documents(query)

    # --- Activity feed ---

    def insert_feed_entry(self, fields: Dict[str, Any]) -> FeedEntry:
        doc = dict(fields)
        with self._guard("insert_feed_entry"):
            result = self.feed.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._parse(FeedEntry, doc, FEED_COLLECTION_NAME)

    def recent_feed_entries(self, election_id: Optional[str] = None, limit: int = 10) -> List[FeedEntry]:
        query = {"election_id": election_id} if election_id is not None else {}
        with self._guard("recent_feed_entries"):
            docs = list(
                self.feed.find(query)
                .sort([("timestamp", DESCENDING), ("_id", DESCENDING)])
                .limit(limit)
            )
        return [self._parse(FeedEntry, d, FEED_COLLECTION_NAME) for d in docs]
