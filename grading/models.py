"""
Data models for exam sets, submitted answers and grading results.

Provides type-safe structures for Question, ExamSet, Answer and the
immutable grading aggregate produced for one submission.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

AnswerValue = Union[str, List[str], None]


class QuestionType(Enum):
    """Closed set of gradable question types."""
    CHOICE = "CHOICE"
    SHORT = "SHORT"
    TRUE_FALSE = "TRUE_FALSE"
    CODEMSA = "CODEMSA"

    @staticmethod
    def from_raw(value: Any) -> Optional['QuestionType']:
        """Return the matching type, or None for anything unrecognized."""
        try:
            return QuestionType(value)
        except ValueError:
            return None


@dataclass
class Question:
    """A single question from an exam set's bank."""
    id: int
    exam_set_id: str
    type: Optional[QuestionType]  # None when the stored type is unrecognized
    type_name: str
    text: str
    points: int
    options: List[str] = field(default_factory=list)
    correct_answers: List[str] = field(default_factory=list)
    sub_questions: List[str] = field(default_factory=list)

    @staticmethod
    def from_dict(data: dict, exam_set_id: str) -> 'Question':
        """Create a Question object from a bank dictionary."""
        type_name = str(data.get('type', ''))
        return Question(
            id=int(data['id']),
            exam_set_id=exam_set_id,
            type=QuestionType.from_raw(type_name),
            type_name=type_name,
            text=data.get('text') or '',
            points=int(data.get('points', 1)),
            options=list(data.get('options') or []),
            correct_answers=[str(a) for a in data.get('correctAnswers') or []],
            sub_questions=[str(s) for s in data.get('subQuestions') or []],
        )


@dataclass
class ExamSet:
    """A named collection of questions."""
    id: str
    title: str
    questions: List[Question]
    is_active: bool = True

    @staticmethod
    def from_dict(data: dict) -> 'ExamSet':
        """Create an ExamSet from a bank dictionary; questions are ordered by id."""
        exam_set_id = str(data['id'])
        questions = [Question.from_dict(q, exam_set_id) for q in data.get('questions', [])]
        questions.sort(key=lambda q: q.id)
        return ExamSet(
            id=exam_set_id,
            title=data.get('title', ''),
            questions=questions,
            is_active=bool(data.get('isActive', True)),
        )

    def questions_by_id(self) -> Dict[int, Question]:
        """Return a dictionary mapping question IDs to Question objects."""
        return {q.id: q for q in self.questions}


def _coerce_question_id(raw_id: Any) -> Any:
    """Integers and digit strings become ints; anything else is returned as-is and never matches."""
    # Bools and floats pass through unchanged and are rejected at lookup
    if isinstance(raw_id, str):
        text = raw_id.strip()
        if text.isascii() and text.isdigit():
            return int(text)
    return raw_id


@dataclass
class Answer:
    """One submitted answer, ephemeral for the duration of a grading run."""
    question_id: Any
    value: AnswerValue = None

    @staticmethod
    def from_dict(data: dict) -> 'Answer':
        """Create an Answer from `{questionId, answer}`; non-integer ids never match a question."""
        return Answer(question_id=_coerce_question_id(data.get('questionId')), value=data.get('answer'))


@dataclass
class StudentInfo:
    """Identity fields recorded with a submission."""
    first_name: str
    last_name: str
    student_id: str
    student_number: Optional[str] = None
    classroom: Optional[str] = None

    @staticmethod
    def from_dict(data: dict) -> 'StudentInfo':
        return StudentInfo(
            first_name=data.get('firstName') or '',
            last_name=data.get('lastName') or '',
            student_id=str(data.get('studentId') or ''),
            student_number=data.get('studentNumber') or None,
            classroom=data.get('classroom') or None,
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Verdict:
    """Outcome of grading a single question."""
    is_correct: bool
    points_earned: int

    @staticmethod
    def incorrect() -> 'Verdict':
        return Verdict(is_correct=False, points_earned=0)


@dataclass(frozen=True)
class GradedAnswer:
    """The per-question outcome recorded for a submission."""
    question_id: int
    answer_value: AnswerValue
    is_correct: bool
    points_earned: int
    max_points: int


@dataclass(frozen=True)
class GradingOutcome:
    """Immutable aggregate of one graded submission."""
    score: int
    total_points: int
    graded_answers: Tuple[GradedAnswer, ...]

    @property
    def percentage(self) -> int:
        return percentage(self.score, self.total_points)


def percentage(score: float, total_points: float) -> int:
    """Rounded percentage, 0 when there are no points to earn."""
    if total_points <= 0:
        return 0
    # Half-up rounding, not Python's banker's rounding
    return int(100 * score / total_points + 0.5)


@dataclass
class GraderConfig:
    """
    Configuration for the grading engine.

    Attributes:
        timeout_sec: Wall-clock limit for one sandbox run
        max_output_bytes: Limit on captured stdout/stderr, per stream
        memory_limit_mb: Address-space limit for sandboxed code (POSIX only)
        language: The single language tag the sandbox accepts
        banks_dir: Directory containing exam set bank files
        bank_key_file: Fernet key file for encrypted banks
        bank_password: Password for salt-prefixed encrypted banks
        database_url: SQLAlchemy URL where submissions are persisted
        log_level: Logging level name
        log_dir: Directory for rotating log files, console only when None
    """
    timeout_sec: float
    max_output_bytes: int
    memory_limit_mb: int
    language: str
    banks_dir: str
    database_url: str
    log_level: str
    bank_key_file: Optional[str] = None
    bank_password: Optional[str] = None
    log_dir: Optional[str] = None

    @staticmethod
    def from_dict(data: dict) -> 'GraderConfig':
        """Create GraderConfig from dictionary."""
        return GraderConfig(
            timeout_sec=float(data.get('timeout_sec', 5.0)),
            max_output_bytes=int(data.get('max_output_bytes', 1024 * 1024)),
            memory_limit_mb=int(data.get('memory_limit_mb', 256)),
            language=data.get('language', 'python'),
            banks_dir=data.get('banks_dir', 'banks'),
            database_url=data.get('database_url', 'sqlite:///grading.db'),
            log_level=data.get('log_level', 'INFO'),
            bank_key_file=data.get('bank_key_file'),
            bank_password=data.get('bank_password'),
            log_dir=data.get('log_dir'),
        )

    def validate(self) -> Tuple[bool, str]:
        """
        Validate configuration consistency.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if self.timeout_sec <= 0:
            return False, f"timeout_sec must be positive, got {self.timeout_sec}"

        if self.max_output_bytes <= 0:
            return False, f"max_output_bytes must be positive, got {self.max_output_bytes}"

        if self.memory_limit_mb <= 0:
            return False, f"memory_limit_mb must be positive, got {self.memory_limit_mb}"

        if not self.language:
            return False, "language must not be empty"

        if self.bank_key_file and self.bank_password:
            return False, "Use either bank_key_file or bank_password, not both"

        return True, ""

    @staticmethod
    def default() -> 'GraderConfig':
        """Return default configuration."""
        return GraderConfig.from_dict({})
