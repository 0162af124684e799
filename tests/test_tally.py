"""Tests for the tally engine and results visibility."""

from datetime import timedelta

import pytest

from campusvote.exceptions import Forbidden, NotFound
from campusvote.services.tally import compute_results, results_for, round_percentage

from tests.conftest import NOW, add_ballot, make_candidate, make_election


def _cast(storage, election, candidate, count, prefix):
    for i in range(count):
        add_ballot(storage, election.id, candidate.id, f"{prefix}{i}")


class TestComputeResults:
    def test_three_one_zero(self, storage, election, candidates):
        _cast(storage, election, candidates["Alice"], 3, "a")
        _cast(storage, election, candidates["Bob"], 1, "b")

        result = compute_results(storage, election.id)

        assert result.total_votes == 4
        assert [(c.name, c.vote_count, c.percentage) for c in result.candidates] == [
            ("Alice", 3, 75.0),
            ("Bob", 1, 25.0),
            ("Carol", 0, 0.0),
        ]
        assert result.orphaned_votes == 0

    def test_is_idempotent(self, storage, election, candidates):
        _cast(storage, election, candidates["Bob"], 2, "b")
        _cast(storage, election, candidates["Carol"], 5, "c")

        assert compute_results(storage, election.id) == compute_results(storage, election.id)

    def test_counts_sum_to_total(self, storage, election, candidates):
        _cast(storage, election, candidates["Alice"], 4, "a")
        _cast(storage, election, candidates["Bob"], 7, "b")
        _cast(storage, election, candidates["Carol"], 2, "c")

        result = compute_results(storage, election.id)
        assert sum(c.vote_count for c in result.candidates) == result.total_votes == 13

    def test_no_ballots(self, storage, election, candidates):
        result = compute_results(storage, election.id)
        assert result.total_votes == 0
        assert all(c.vote_count == 0 and c.percentage == 0.0 for c in result.candidates)
        assert len(result.candidates) == 3

    def test_ties_ordered_by_candidate_id(self, storage, election, candidates):
        _cast(storage, election, candidates["Carol"], 2, "c")
        _cast(storage, election, candidates["Alice"], 2, "a")

        result = compute_results(storage, election.id)

        tied = result.candidates[:2]
        assert tied[0].candidate_id < tied[1].candidate_id
        assert {c.name for c in tied} == {"Alice", "Carol"}

    def test_thirds_are_not_redistributed(self, storage, election, candidates):
        for name in ("Alice", "Bob", "Carol"):
            _cast(storage, election, candidates[name], 1, name)

        result = compute_results(storage, election.id)
        assert [c.percentage for c in result.candidates] == [33.33, 33.33, 33.33]

    def test_ignores_other_elections(self, storage, election, candidates):
        other = make_election(storage, "Sports Committee")
        zed = make_candidate(storage, other.id, "Zed")
        _cast(storage, other, zed, 3, "z")
        _cast(storage, election, candidates["Alice"], 1, "a")

        result = compute_results(storage, election.id)
        assert result.total_votes == 1

    def test_orphaned_ballots_are_reported(self, storage, election, candidates):
        _cast(storage, election, candidates["Alice"], 2, "a")
        add_ballot(storage, election.id, "65f000000000000000000000", "ghost-voter")

        result = compute_results(storage, election.id)

        assert result.total_votes == 3
        assert result.orphaned_votes == 1
        assert result.candidates[0].percentage == 66.67

    def test_unknown_election(self, storage):
        with pytest.raises(NotFound):
            compute_results(storage, "65f000000000000000000000")


class TestRoundPercentage:
    def test_zero_total(self):
        assert round_percentage(0, 0) == 0.0

    def test_two_places(self):
        assert round_percentage(2, 3) == 66.67
        assert round_percentage(1, 8) == 12.5

    def test_rounds_half_up(self):
        # 0.125 -> 0.13
        assert round_percentage(1, 800) == 0.13


class TestResultsVisibility:
    def test_admin_sees_live_results(self, storage, election, candidates, admin):
        _cast(storage, election, candidates["Alice"], 1, "a")
        assert results_for(storage, admin, election.id, now=NOW).total_votes == 1

    def test_student_blocked_while_running(self, storage, election, candidates, student):
        with pytest.raises(Forbidden):
            results_for(storage, student, election.id, now=NOW)

    def test_student_sees_results_after_end(self, storage, election, candidates, student):
        after = election.end_date + timedelta(minutes=1)
        assert results_for(storage, student, election.id, now=after).election_id == election.id

    def test_unknown_election(self, storage, admin):
        with pytest.raises(NotFound):
            results_for(storage, admin, "65f000000000000000000000", now=NOW)
