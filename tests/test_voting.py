"""Tests for vote submission: eligibility order, duplicate prevention, feed coupling."""

import threading
from datetime import timedelta

import pytest

from campusvote.exceptions import (
    AlreadyVoted,
    ElectionNotActive,
    InvalidCandidate,
    NotFound,
    Unavailable,
)
from campusvote.security import Principal
from campusvote.services import voting

from tests.conftest import NOW, make_candidate, make_election


class TestCastVote:
    def test_records_ballot_and_feed_entry(self, storage, feed, election, candidates, student):
        ballot = voting.cast_vote(storage, feed, student, election.id, candidates["Alice"].id, now=NOW)

        assert ballot.student_id == "s1"
        assert ballot.candidate_id == candidates["Alice"].id
        assert ballot.voter_name == "Student One"
        assert ballot.cast_at == NOW
        assert storage.count_ballots(election_id=election.id) == 1

        entries = feed.recent()
        assert len(entries) == 1
        assert entries[0].voter_name == "Student One"
        assert entries[0].election_title == election.title
        assert entries[0].election_id == election.id
        assert entries[0].timestamp == ballot.cast_at

    def test_voter_name_falls_back_to_user_id(self, storage, feed, election, candidates):
        anonymous = Principal(user_id="s42")
        ballot = voting.cast_vote(storage, feed, anonymous, election.id, candidates["Bob"].id, now=NOW)
        assert ballot.voter_name == "s42"

    def test_unknown_election(self, storage, feed, candidates, student):
        with pytest.raises(NotFound):
            voting.cast_vote(storage, feed, student, "65f000000000000000000000", candidates["Alice"].id, now=NOW)

    def test_malformed_election_id_is_not_found(self, storage, feed, candidates, student):
        with pytest.raises(NotFound):
            voting.cast_vote(storage, feed, student, "not-an-id", candidates["Alice"].id, now=NOW)

    def test_future_election_is_not_active(self, storage, feed, student):
        upcoming = make_election(storage, "Upcoming", start=NOW + timedelta(days=1), end=NOW + timedelta(days=2))
        candidate = make_candidate(storage, upcoming.id, "Xavier")

        with pytest.raises(ElectionNotActive) as exc_info:
            voting.cast_vote(storage, feed, student, upcoming.id, candidate.id, now=NOW)

        assert exc_info.value.context["status"] == "upcoming"
        assert storage.count_ballots(election_id=upcoming.id) == 0
        assert feed.recent() == []

    def test_ended_election_is_not_active(self, storage, feed, student):
        ended = make_election(storage, "Ended", start=NOW - timedelta(days=3), end=NOW - timedelta(days=1))
        candidate = make_candidate(storage, ended.id, "Yolanda")

        with pytest.raises(ElectionNotActive):
            voting.cast_vote(storage, feed, student, ended.id, candidate.id, now=NOW)
        assert storage.count_ballots(election_id=ended.id) == 0

    def test_window_bounds_are_inclusive(self, storage, feed, election, candidates, student):
        voting.cast_vote(storage, feed, student, election.id, candidates["Alice"].id, now=election.start_date)
        other = Principal(user_id="s2", display_name="Student Two")
        voting.cast_vote(storage, feed, other, election.id, candidates["Bob"].id, now=election.end_date)
        assert storage.count_ballots(election_id=election.id) == 2

    def test_window_checked_before_candidate(self, storage, feed, student):
        upcoming = make_election(storage, "Upcoming", start=NOW + timedelta(hours=1), end=NOW + timedelta(days=1))
        with pytest.raises(ElectionNotActive):
            voting.cast_vote(storage, feed, student, upcoming.id, "65f000000000000000000000", now=NOW)

    def test_candidate_from_other_election(self, storage, feed, election, candidates, student):
        other = make_election(storage, "Sports Committee")
        outsider = make_candidate(storage, other.id, "Zed")

        with pytest.raises(InvalidCandidate):
            voting.cast_vote(storage, feed, student, election.id, outsider.id, now=NOW)
        assert storage.count_ballots() == 0

    def test_unknown_candidate(self, storage, feed, election, candidates, student):
        with pytest.raises(InvalidCandidate):
            voting.cast_vote(storage, feed, student, election.id, "65f000000000000000000000", now=NOW)

    def test_second_vote_is_rejected(self, storage, feed, election, candidates, student):
        voting.cast_vote(storage, feed, student, election.id, candidates["Alice"].id, now=NOW)

        with pytest.raises(AlreadyVoted) as exc_info:
            voting.cast_vote(storage, feed, student, election.id, candidates["Alice"].id, now=NOW)

        assert not exc_info.value.is_retryable
        assert storage.count_ballots(election_id=election.id) == 1
        assert len(feed.recent()) == 1

    def test_same_student_may_vote_in_other_elections(self, storage, feed, election, candidates, student):
        other = make_election(storage, "Sports Committee")
        other_candidate = make_candidate(storage, other.id, "Zed")

        voting.cast_vote(storage, feed, student, election.id, candidates["Alice"].id, now=NOW)
        voting.cast_vote(storage, feed, student, other.id, other_candidate.id, now=NOW)

        assert storage.count_ballots() == 2

    def test_stale_duplicate_check_is_caught_by_unique_index(
        self, storage, feed, election, candidates, student, monkeypatch
    ):
        # Both submissions see "no ballot yet", as two racing requests would
        monkeypatch.setattr(storage, "find_ballot", lambda student_id, election_id: None)

        voting.cast_vote(storage, feed, student, election.id, candidates["Alice"].id, now=NOW)
        with pytest.raises(AlreadyVoted):
            voting.cast_vote(storage, feed, student, election.id, candidates["Bob"].id, now=NOW)

        assert storage.count_ballots(election_id=election.id) == 1
        assert len(feed.recent()) == 1

    def test_concurrent_submissions_leave_one_ballot(
        self, storage, feed, election, candidates, student, monkeypatch
    ):
        # mongomock checks unique indexes and inserts in two steps; the server
        # does both atomically
        insert_lock = threading.Lock()
        insert_ballot = storage.insert_ballot

        def atomic_insert(fields):
            with insert_lock:
                return insert_ballot(fields)

        monkeypatch.setattr(storage, "insert_ballot", atomic_insert)

        submitters = 8
        barrier = threading.Barrier(submitters)
        outcomes = []
        choices = [candidates[name].id for name in ("Alice", "Bob", "Carol")]

        def submit(candidate_id):
            barrier.wait()
            try:
                voting.cast_vote(storage, feed, student, election.id, candidate_id, now=NOW)
                outcomes.append("cast")
            except AlreadyVoted:
                outcomes.append("already_voted")

        threads = [
            threading.Thread(target=submit, args=(choices[i % len(choices)],)) for i in range(submitters)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["already_voted"] * (submitters - 1) + ["cast"]
        assert storage.count_ballots(election_id=election.id) == 1
        assert len(feed.recent()) == 1

    def test_feed_failure_keeps_ballot(self, storage, feed, election, candidates, student, monkeypatch):
        def broken_insert(fields):
            raise Unavailable("feed down", operation="insert_feed_entry")

        monkeypatch.setattr(storage, "insert_feed_entry", broken_insert)

        ballot = voting.cast_vote(storage, feed, student, election.id, candidates["Carol"].id, now=NOW)

        assert ballot.candidate_id == candidates["Carol"].id
        assert storage.count_ballots(election_id=election.id) == 1


class TestHasVoted:
    def test_reflects_ballots(self, storage, feed, election, candidates, student):
        assert voting.has_voted(storage, student, election.id) is False
        voting.cast_vote(storage, feed, student, election.id, candidates["Alice"].id, now=NOW)
        assert voting.has_voted(storage, student, election.id) is True

    def test_unknown_election(self, storage, student):
        with pytest.raises(NotFound):
            voting.has_voted(storage, student, "65f000000000000000000000")
