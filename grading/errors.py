"""
Exceptions raised by the grading engine.

Only failures that must reach the caller are modelled here. Malformed answers,
unknown question ids and sandbox failures are resolved locally as incorrect
verdicts and never raised.
"""


class GradingError(Exception):
    """Base class for grading engine errors."""


class ExamSetNotFound(GradingError):
    """The requested exam set has no question bank."""

    def __init__(self, exam_set_id: str):
        super().__init__(f"Exam set '{exam_set_id}' not found")
        self.exam_set_id = exam_set_id


class BankDecryptionError(GradingError):
    """An encrypted question bank could not be decrypted."""


class MalformedRequest(GradingError):
    """The submission envelope is missing required fields."""


class PersistenceError(GradingError):
    """The grading transaction failed and nothing was committed."""


class UnsupportedLanguage(GradingError):
    """The sandbox was asked to run a language it does not support."""

    def __init__(self, language: str):
        super().__init__(f"Unsupported language: {language}")
        self.language = language
