"""
Tests for submission persistence.

Covers:
- Round trip of a submission and its answer rows
- All-or-nothing commits
- Listing order and filtering
- Cascade delete and manual-grade overrides
"""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
import pytest
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from grading.errors import PersistenceError
from grading.models import GradedAnswer, GradingOutcome, StudentInfo
from grading.store import AnswerRecord, SubmissionRecord, SubmissionStore


@pytest.fixture
def store(tmp_path):
    store = SubmissionStore(f"sqlite:///{tmp_path / 'grading.db'}")
    store.create_schema()
    return store


def student(student_id="S001"):
    return StudentInfo(first_name="Ada", last_name="Lovelace", student_id=student_id,
                       student_number="12", classroom="6A")


def outcome(*graded):
    return GradingOutcome(
        score=sum(g.points_earned for g in graded),
        total_points=sum(g.max_points for g in graded),
        graded_answers=tuple(graded),
    )


def graded(question_id, correct, points=1, value="x"):
    return GradedAnswer(question_id=question_id, answer_value=value, is_correct=correct,
                        points_earned=points if correct else 0, max_points=points)


class TestRecordSubmission:
    """Test writing a graded submission."""

    def test_round_trip(self, store):
        result = outcome(graded(2, False, 2, value=["a", "b"]), graded(1, True, 1, value="B"))

        submission_id = store.record_submission("midterm", student(), result)
        stored = store.get_submission(submission_id)

        assert stored["examSetId"] == "midterm"
        assert stored["studentName"] == "Ada Lovelace"
        assert stored["studentId"] == "S001"
        assert stored["classroom"] == "6A"
        assert stored["score"] == 1
        assert isinstance(stored["score"], int)
        assert stored["totalPoints"] == 3
        assert stored["percentage"] == 33
        assert stored["answerCount"] == 2
        # Answers come back ordered by question id
        assert [a["questionId"] for a in stored["answers"]] == [1, 2]
        assert stored["answers"][1]["answerValue"] == ["a", "b"]
        assert stored["answers"][1]["maxPoints"] == 2
        assert stored["answers"][1]["isManualGraded"] is False

    def test_empty_submission(self, store):
        submission_id = store.record_submission("midterm", student(), outcome())
        stored = store.get_submission(submission_id)
        assert stored["answers"] == []
        assert stored["percentage"] == 0

    def test_failed_answer_row_rolls_back_everything(self, store):
        # question_id is NOT NULL, so the second row fails inside the transaction
        bad = outcome(graded(1, True), graded(None, True))

        with pytest.raises(PersistenceError):
            store.record_submission("midterm", student(), bad)

        assert store.list_submissions() == []
        assert store.count_answers() == 0

    def test_unknown_submission(self, store):
        assert store.get_submission("missing") is None

    def test_concurrent_writes(self, store):
        ids = []
        errors = []

        def submit(n):
            try:
                ids.append(store.record_submission("midterm", student(f"S{n}"), outcome(graded(1, True))))
            except PersistenceError as e:
                errors.append(e)

        threads = [threading.Thread(target=submit, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(set(ids)) == 5
        assert store.count_answers() == 5


class TestListing:
    """Test listing submissions."""

    def test_newest_first_and_filter(self, store):
        base = datetime(2024, 5, 1, tzinfo=timezone.utc)
        times = iter([base, base + timedelta(minutes=1), base + timedelta(minutes=2)])

        with patch("grading.store._utcnow", side_effect=lambda: next(times)):
            first = store.record_submission("midterm", student(), outcome(graded(1, True)))
            other = store.record_submission("final", student(), outcome(graded(1, False)))
            last = store.record_submission("midterm", student(), outcome(graded(1, False)))

        assert [s["id"] for s in store.list_submissions()] == [last, other, first]
        assert all(isinstance(s["score"], int) for s in store.list_submissions())
        assert [s["id"] for s in store.list_submissions("midterm")] == [last, first]
        assert store.list_submissions("quiz") == []

    def test_count_answers_per_submission(self, store):
        submission_id = store.record_submission(
            "midterm", student(), outcome(graded(1, True), graded(2, True), graded(3, False))
        )
        store.record_submission("midterm", student(), outcome(graded(1, True)))

        assert store.count_answers(submission_id) == 3
        assert store.count_answers() == 4


class TestRecords:
    """Test ORM-level behaviour of the stored rows."""

    def test_deleting_submission_deletes_answers(self, store):
        submission_id = store.record_submission("midterm", student(), outcome(graded(1, True), graded(2, True)))

        with store.Session.begin() as session:
            session.delete(session.get(SubmissionRecord, submission_id))

        assert store.get_submission(submission_id) is None
        assert store.count_answers() == 0

    def test_manual_score_overrides_points(self, store):
        submission_id = store.record_submission("midterm", student(), outcome(graded(1, False, 4)))

        with store.Session.begin() as session:
            answer = session.query(AnswerRecord).filter_by(submission_id=submission_id).one()
            assert answer.effective_points == 0
            answer.manual_score = 2.5
            answer.is_manual_graded = True
            answer.graded_by = "grader1"

        stored = store.get_submission(submission_id)
        assert stored["answers"][0]["effectivePoints"] == 2.5
        assert stored["answers"][0]["isManualGraded"] is True
