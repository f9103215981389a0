"""
Grader module for per-question grading rules.

Provides the Grader class which dispatches each question to the rule for its
type and returns an all-or-nothing verdict. Grading is total: malformed or
missing answers and unrecognized question types are incorrect, never errors.
"""

import logging
from typing import Callable, Dict, Optional

from .equivalence import CodeEquivalenceGrader
from .models import AnswerValue, GraderConfig, Question, QuestionType, Verdict
from .normalizer import answers_match
from .sandbox import Executor, Sandbox

logger = logging.getLogger(__name__)


class Grader:
    """Handles per-question answer validation."""

    def __init__(self, config: Optional[GraderConfig] = None, executor: Optional[Executor] = None):
        """Initialize grader with one rule per question type and a sandbox executor."""
        self.config = config or GraderConfig.default()
        self.executor = executor or Sandbox(self.config)
        self.code_grader = CodeEquivalenceGrader(self.executor)
        self.rules: Dict[QuestionType, Callable[[Question, AnswerValue], bool]] = {
            QuestionType.CHOICE: self._single_literal,
            QuestionType.SHORT: self._single_literal,
            QuestionType.TRUE_FALSE: self._single_literal,
            QuestionType.CODEMSA: self._code_equivalence,
        }
        missing = [t.name for t in QuestionType if t not in self.rules]
        if missing:
            raise RuntimeError(f"No grading rule for question types: {', '.join(missing)}")

    # ===== RULES =====

    def _single_literal(self, question: Question, answer: AnswerValue) -> bool:
        """
        Single-valued rule for CHOICE, SHORT and TRUE_FALSE.

        The answer must be a string and equal the first correct answer after
        normalization.
        """
        if not isinstance(answer, str) or not question.correct_answers:
            return False
        return answers_match(answer, question.correct_answers[0])

    def _code_equivalence(self, question: Question, answer: AnswerValue) -> bool:
        """
        CODEMSA rule: an ordered list of sub-answers, one per placeholder.

        Shape mismatches fail before any sandbox is started.
        """
        if not isinstance(answer, list) or len(answer) != len(question.sub_questions):
            return False
        if len(question.correct_answers) != len(question.sub_questions):
            logger.warning(
                "BANK_INVALID - question %s has %d correct answers for %d placeholders",
                question.id, len(question.correct_answers), len(question.sub_questions)
            )
            return False
        return self.code_grader.check(question, answer).is_correct

    # ===== GRADING =====

    def grade(self, question: Question, answer: AnswerValue) -> Verdict:
        """
        Grade one answer against its question.

        Args:
            question: Question from the exam set's bank
            answer: Submitted value, a string, a list of strings or None

        Returns:
            Verdict with is_correct and points_earned (0 or question.points)
        """
        rule = self.rules.get(question.type) if question.type is not None else None
        if rule is None:
            logger.warning("UNKNOWN_TYPE - question %s has type '%s', graded incorrect",
                           question.id, question.type_name)
            return Verdict.incorrect()

        if rule(question, answer):
            return Verdict(is_correct=True, points_earned=question.points)
        return Verdict.incorrect()
