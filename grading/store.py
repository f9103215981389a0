"""
Persistence of graded submissions.

A submission and all of its answer rows are written in one transaction:
either every row commits or none does. Rows are append-only per submission;
only the manual-grading fields are ever updated afterwards, by a separate
flow.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, relationship, selectinload, sessionmaker

from .errors import PersistenceError
from .models import GradingOutcome, StudentInfo, percentage

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionRecord(Base):
    """One graded exam submission, the aggregate root."""

    __tablename__ = "exam_submissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    exam_set_id = Column(String(100), nullable=False, index=True)
    student_name = Column(String(255), nullable=False)
    student_id = Column(String(100), nullable=False)
    student_number = Column(String(50), nullable=True)
    classroom = Column(String(50), nullable=True)
    score = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    answers = relationship(
        "AnswerRecord",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="AnswerRecord.question_id",
    )

    @property
    def percentage(self) -> int:
        return percentage(self.score, self.total_points)


class AnswerRecord(Base):
    """Per-question outcome within a submission."""

    __tablename__ = "student_answers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(
        String(36),
        ForeignKey("exam_submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(Integer, nullable=False)
    answer_value = Column(JSON, nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    points_earned = Column(Integer, nullable=False, default=0)
    # Copy of the question's points at grading time
    max_points = Column(Integer, nullable=False)

    # Set only by manual grading
    manual_score = Column(Float, nullable=True)
    is_manual_graded = Column(Boolean, nullable=False, default=False)
    graded_by = Column(String(100), nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    submission = relationship("SubmissionRecord", back_populates="answers")

    @property
    def effective_points(self) -> float:
        """Manual score when a grader has set one, otherwise the automatic points."""
        return self.manual_score if self.manual_score is not None else self.points_earned


def _answer_to_dict(answer: AnswerRecord) -> Dict[str, Any]:
    return {
        "id": answer.id,
        "questionId": answer.question_id,
        "answerValue": answer.answer_value,
        "isCorrect": answer.is_correct,
        "pointsEarned": answer.points_earned,
        "maxPoints": answer.max_points,
        "manualScore": answer.manual_score,
        "isManualGraded": answer.is_manual_graded,
        "effectivePoints": answer.effective_points,
    }


def _submission_summary(record: SubmissionRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "examSetId": record.exam_set_id,
        "studentName": record.student_name,
        "studentId": record.student_id,
        "studentNumber": record.student_number,
        "classroom": record.classroom,
        "score": record.score,
        "totalPoints": record.total_points,
        "percentage": record.percentage,
        "submittedAt": record.submitted_at.isoformat() if record.submitted_at else None,
        "answerCount": len(record.answers),
    }


class SubmissionStore:
    """Database access for graded submissions."""

    def __init__(self, database_url: str, echo: bool = False):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, echo=echo, connect_args=connect_args)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def record_submission(
        self,
        exam_set_id: str,
        student: StudentInfo,
        outcome: GradingOutcome,
    ) -> str:
        """
        Persist a submission and its graded answers atomically.

        Returns:
            The new submission id

        Raises:
            PersistenceError: If the transaction fails; nothing is committed
        """
        submission = SubmissionRecord(
            id=str(uuid.uuid4()),
            exam_set_id=exam_set_id,
            student_name=student.full_name,
            student_id=student.student_id,
            student_number=student.student_number,
            classroom=student.classroom,
            score=outcome.score,
            total_points=outcome.total_points,
            submitted_at=_utcnow(),
        )
        submission.answers = [
            AnswerRecord(
                question_id=graded.question_id,
                answer_value=graded.answer_value,
                is_correct=graded.is_correct,
                points_earned=graded.points_earned,
                max_points=graded.max_points,
            )
            for graded in outcome.graded_answers
        ]

        try:
            with self.Session.begin() as session:
                session.add(submission)
        except SQLAlchemyError as e:
            logger.error("PERSISTENCE_FAILED - exam set %s, student %s: %s",
                         exam_set_id, student.student_id, e, exc_info=True)
            raise PersistenceError("Failed to save submission") from e

        logger.info("SUBMISSION_COMMITTED - %s exam set %s score %s/%s (%d answers)",
                    submission.id, exam_set_id, outcome.score, outcome.total_points,
                    len(outcome.graded_answers))
        return submission.id

    def get_submission(self, submission_id: str) -> Optional[Dict[str, Any]]:
        """Return a submission with its answers ordered by question id, or None."""
        with self.Session() as session:
            record = session.get(
                SubmissionRecord,
                submission_id,
                options=[selectinload(SubmissionRecord.answers)],
            )
            if record is None:
                return None
            result = _submission_summary(record)
            result["answers"] = [_answer_to_dict(a) for a in record.answers]
            return result

    def list_submissions(self, exam_set_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return submission summaries, newest first."""
        with self.Session() as session:
            query = (
                select(SubmissionRecord)
                .options(selectinload(SubmissionRecord.answers))
                .order_by(SubmissionRecord.submitted_at.desc())
            )
            if exam_set_id is not None:
                query = query.where(SubmissionRecord.exam_set_id == exam_set_id)
            return [_submission_summary(r) for r in session.scalars(query)]

    def count_answers(self, submission_id: Optional[str] = None) -> int:
        """Number of stored answer rows, optionally for one submission."""
        with self.Session() as session:
            query = select(func.count()).select_from(AnswerRecord)
            if submission_id is not None:
                query = query.where(AnswerRecord.submission_id == submission_id)
            return session.scalar(query)
