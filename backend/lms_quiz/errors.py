# Domain exceptions raised by the quiz services.
from typing import Optional


class QuizServiceError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


# Malformed input to an authoring or submission operation.
class ValidationError(QuizServiceError):
    status_code = 400


# Referenced quiz, course or submission does not exist.
class NotFoundError(QuizServiceError):
    status_code = 404


# A submitted answer points at a question the quiz does not contain.
class InvalidQuestionError(QuizServiceError):
    status_code = 400

    def __init__(self, question_id: str):
        super().__init__(f"invalid question id: {question_id}")
        self.question_id = question_id


# The text generator failed or returned an unusable payload.
class GenerationError(QuizServiceError):
    status_code = 502

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code


class ForbiddenError(QuizServiceError):
    status_code = 403


# Strict submit with unanswered questions; index is 0-based.
class IncompleteAnswersError(QuizServiceError):
    status_code = 422

    def __init__(self, index: int):
        super().__init__(f"please answer question {index + 1} before submitting")
        self.index = index


# Attempt session operation called from a state that does not allow it.
class SessionStateError(QuizServiceError):
    status_code = 409
