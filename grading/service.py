"""
Grading entry points.

Turns request payloads into graded, persisted submissions and returns
`(body, status)` pairs that an outer HTTP layer can pass straight through.
Any failure before the commit leaves nothing persisted; the commit is the
last step.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .aggregator import answers_from_positional, grade_answers
from .bank import BankLoader
from .errors import ExamSetNotFound, GradingError, MalformedRequest, UnsupportedLanguage
from .grader import Grader
from .models import Answer, GraderConfig, StudentInfo
from .sandbox import Sandbox
from .store import SubmissionStore

logger = logging.getLogger(__name__)

Response = Tuple[Dict[str, Any], int]

INTERNAL_ERROR = "Internal Server Error"


def _parse_answers(items: Any) -> List[Answer]:
    if not isinstance(items, list):
        raise MalformedRequest("answersWithId must be a list")
    return [Answer.from_dict(item) if isinstance(item, dict) else Answer(question_id=None)
            for item in items]


class GradingService:
    """Grades submissions and serves the standalone code runner."""

    def __init__(
        self,
        config: GraderConfig,
        bank_loader: BankLoader,
        store: SubmissionStore,
        grader: Optional[Grader] = None
    ):
        self.config = config
        self.bank_loader = bank_loader
        self.store = store
        self.sandbox = Sandbox(config)
        self.grader = grader or Grader(config, executor=self.sandbox)

    @staticmethod
    def from_config(config: GraderConfig) -> 'GradingService':
        store = SubmissionStore(config.database_url)
        store.create_schema()
        return GradingService(config, BankLoader.from_config(config), store)

    def submit(self, payload: Dict[str, Any]) -> Response:
        """
        Grade and persist one exam submission.

        Request:
            {examSetId, studentInfo: {firstName, lastName, studentId,
            studentNumber?, classroom?}, answersWithId: [{questionId, answer}]}
            A positional `userAnswers` list is accepted in place of
            answersWithId.

        Returns:
            ({success, score, totalPoints, submissionId, percentage}, 200)
            or ({error}, status) with 400, 404 or 500
        """
        try:
            exam_set_id, student, raw_answers, positional = self._parse_submission(payload)
        except MalformedRequest as e:
            return {"error": str(e)}, 400

        try:
            exam_set = self.bank_loader.load(exam_set_id)
            if positional:
                answers = answers_from_positional(exam_set, raw_answers)
            else:
                answers = _parse_answers(raw_answers)
            outcome = grade_answers(exam_set, answers, self.grader)
            submission_id = self.store.record_submission(exam_set_id, student, outcome)
        except ExamSetNotFound as e:
            logger.info("EXAM_SET_NOT_FOUND - %s", e.exam_set_id)
            return {"error": "Exam set not found"}, 404
        except MalformedRequest as e:
            return {"error": str(e)}, 400
        except (GradingError, ValueError) as e:
            logger.error("SUBMIT_FAILED - exam set %s: %s", exam_set_id, e)
            return {"error": INTERNAL_ERROR}, 500
        except Exception:
            logger.exception("SUBMIT_FAILED - exam set %s: unexpected error", exam_set_id)
            return {"error": INTERNAL_ERROR}, 500

        return {
            "success": True,
            "score": outcome.score,
            "totalPoints": outcome.total_points,
            "submissionId": submission_id,
            "percentage": outcome.percentage,
        }, 200

    def _parse_submission(self, payload: Any):
        if not isinstance(payload, dict):
            raise MalformedRequest("Request body must be a JSON object")

        exam_set_id = payload.get('examSetId')
        student_data = payload.get('studentInfo')
        positional = 'answersWithId' not in payload and 'userAnswers' in payload
        raw_answers = payload.get('userAnswers') if positional else payload.get('answersWithId')

        if not exam_set_id or not student_data or raw_answers is None:
            raise MalformedRequest("Missing required fields: examSetId, studentInfo, or answersWithId")
        if not isinstance(student_data, dict):
            raise MalformedRequest("studentInfo must be an object")
        if positional and not isinstance(raw_answers, list):
            raise MalformedRequest("userAnswers must be a list")

        return str(exam_set_id), StudentInfo.from_dict(student_data), raw_answers, positional

    def run_code(self, payload: Dict[str, Any]) -> Response:
        """
        Run a snippet for manual "try my code" checks.

        Returns:
            ({success, stdout, stderr}, 200) or ({error}, 400 or 500)
        """
        code = payload.get('code') if isinstance(payload, dict) else None
        if not code or not isinstance(code, str):
            return {"error": "No code provided"}, 400

        language = payload.get('language') or self.config.language
        if language != self.config.language:
            return {"error": "Only Python is supported currently"}, 400

        try:
            result = self.sandbox.run(code, language=language)
        except UnsupportedLanguage:
            return {"error": "Only Python is supported currently"}, 400
        except Exception:
            logger.exception("RUN_CODE_FAILED - unexpected error")
            return {"error": INTERNAL_ERROR}, 500
        return result.to_dict(), 200

    def get_submission(self, submission_id: str) -> Response:
        submission = self.store.get_submission(submission_id)
        if submission is None:
            return {"error": "Submission not found"}, 404
        return submission, 200
