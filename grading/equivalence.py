"""
Code-equivalence grading for CODEMSA questions.

A code question is a template whose placeholder tokens the student fills in.
Grading first tries a cheap literal comparison of the sub-answers; only when
that fails are the student's and the reference program assembled and run
side by side, and their standard output compared.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .models import Question
from .normalizer import all_positions_match
from .sandbox import ExecutionResult, Executor

logger = logging.getLogger(__name__)


def substitute_placeholders(template: str, placeholders: Sequence[str], values: Sequence[str]) -> str:
    """
    Replace every occurrence of each placeholder token with its value.

    Tokens are substituted one at a time in template order with a plain
    replace-all. Nothing is escaped, so a value that itself contains a later
    token is rewritten again by that token's pass.
    """
    program = template
    for token, value in zip(placeholders, values):
        if not token:
            continue
        program = program.replace(token, value)
    return program


def build_programs(question: Question, sub_answers: Sequence[str]) -> Tuple[str, str]:
    """Return (student_program, reference_program) for a code question."""
    student_values = [a if isinstance(a, str) else '' for a in sub_answers]
    student = substitute_placeholders(question.text, question.sub_questions, student_values)
    reference = substitute_placeholders(question.text, question.sub_questions, question.correct_answers)
    return student, reference


@dataclass(frozen=True)
class EquivalenceResult:
    """Verdict of a code-equivalence check with diagnostics."""
    is_correct: bool
    phase: str  # "literal", "execution" or "shape"
    student_run: Optional[ExecutionResult] = None
    reference_run: Optional[ExecutionResult] = None


class CodeEquivalenceGrader:
    """Two-phase grader: literal sub-answer match, then execution comparison."""

    def __init__(self, executor: Executor):
        self.executor = executor

    def _run(self, program: str) -> ExecutionResult:
        try:
            return self.executor(program)
        except Exception as e:
            logger.error("SANDBOX_CRASH - executor raised: %s", e, exc_info=True)
            return ExecutionResult("runtime_error", "", f"Execution error: {e}")

    def check(self, question: Question, sub_answers: List[str]) -> EquivalenceResult:
        if len(sub_answers) != len(question.sub_questions):
            return EquivalenceResult(is_correct=False, phase="shape")

        if all_positions_match(sub_answers, question.correct_answers):
            return EquivalenceResult(is_correct=True, phase="literal")

        student_program, reference_program = build_programs(question, sub_answers)

        # Two independent sandboxes; wait for both before deciding
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="sandbox") as pool:
            student_future = pool.submit(self._run, student_program)
            reference_future = pool.submit(self._run, reference_program)
            student_run = student_future.result()
            reference_run = reference_future.result()

        is_correct = (
            student_run.succeeded
            and reference_run.succeeded
            and student_run.stdout.strip() == reference_run.stdout.strip()
        )

        if not reference_run.succeeded:
            logger.warning(
                "REFERENCE_FAILED - question %s reference program status=%s stderr=%s",
                question.id, reference_run.status, reference_run.stderr.strip()[:200]
            )
        logger.debug(
            "EQUIVALENCE - question %s student=%s reference=%s correct=%s",
            question.id, student_run.status, reference_run.status, is_correct
        )

        return EquivalenceResult(
            is_correct=is_correct,
            phase="execution",
            student_run=student_run,
            reference_run=reference_run,
        )
