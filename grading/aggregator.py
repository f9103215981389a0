"""
Submission aggregation: grade every answer against the exam set and fold the
verdicts into one immutable outcome.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from .grader import Grader
from .models import Answer, AnswerValue, ExamSet, GradedAnswer, GradingOutcome, Question

logger = logging.getLogger(__name__)


def _lookup(questions: dict, question_id) -> Optional[Question]:
    if isinstance(question_id, bool) or not isinstance(question_id, int):
        return None
    return questions.get(question_id)


def grade_answers(exam_set: ExamSet, answers: Iterable[Answer], grader: Grader) -> GradingOutcome:
    """
    Grade a submission's answers.

    Answers whose question id is not in the exam set are dropped with a
    warning and count toward neither score nor total points. Every other
    answer contributes its question's points to total_points whatever the
    verdict.
    """
    questions = exam_set.questions_by_id()
    graded: List[GradedAnswer] = []

    for answer in answers:
        question = _lookup(questions, answer.question_id)
        if question is None:
            logger.warning("UNKNOWN_QUESTION - exam set %s has no question %r, answer dropped",
                           exam_set.id, answer.question_id)
            continue

        verdict = grader.grade(question, answer.value)
        graded.append(GradedAnswer(
            question_id=question.id,
            answer_value=answer.value,
            is_correct=verdict.is_correct,
            points_earned=verdict.points_earned,
            max_points=question.points,
        ))

    return GradingOutcome(
        score=sum(g.points_earned for g in graded),
        total_points=sum(g.max_points for g in graded),
        graded_answers=tuple(graded),
    )


def answers_from_positional(exam_set: ExamSet, user_answers: Sequence[AnswerValue]) -> List[Answer]:
    """
    Map a positional answer list onto the exam set's questions ordered by id.

    Questions past the end of the list are paired with None (unanswered);
    extra trailing values have no question and are ignored.
    """
    return [
        Answer(question_id=question.id, value=user_answers[i] if i < len(user_answers) else None)
        for i, question in enumerate(exam_set.questions)
    ]
