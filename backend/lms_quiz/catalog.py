# Quiz definition validation and projections.
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from lms_quiz.errors import ValidationError
from lms_quiz.models import Quiz
from lms_quiz.schemas import QuestionOut, QuizOut, QuizSummaryOut

OPTION_COUNT = 4
DEFAULT_TIMEOUT = 30


# Format datetimes as ISO-8601 strings with UTC fallback.
def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def _new_question_id() -> str:
    return uuid.uuid4().hex


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# Require non-empty title and description text.
def validate_quiz_text(title: Optional[str], description: Optional[str]) -> None:
    if title is not None and not title.strip():
        raise ValidationError("title is required")
    if description is not None and not description.strip():
        raise ValidationError("description is required")


# Validate one question and return its stored form.
def normalize_question(question: Any, position: int, question_id: str) -> Dict[str, Any]:
    label = f"question {position}"
    if not isinstance(question, dict):
        raise ValidationError(f"{label} must be an object")

    text = question.get("question")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"{label} must include question text")

    options = question.get("options")
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        raise ValidationError(f"{label} must include {OPTION_COUNT} options")
    if any(not isinstance(option, str) or not option.strip() for option in options):
        raise ValidationError(f"{label} options must be non-empty strings")

    correct_option = question.get("correct_option")
    if correct_option is None:
        raise ValidationError(f"{label} must include correct_option")
    if not _is_int(correct_option) or not 0 <= correct_option < len(options):
        raise ValidationError(
            f"{label} correct_option must be between 0 and {len(options) - 1}"
        )

    timeout = question.get("timeout", DEFAULT_TIMEOUT)
    if timeout is None:
        timeout = DEFAULT_TIMEOUT
    if not _is_int(timeout) or timeout <= 0:
        raise ValidationError(f"{label} timeout must be a positive integer")

    return {
        "id": question_id,
        "question": text.strip(),
        "options": [option.strip() for option in options],
        "correct_option": correct_option,
        "timeout": timeout,
    }


# Validate a question list, keeping caller-supplied sub-ids when they are unique.
def normalize_questions(questions: Any) -> List[Dict[str, Any]]:
    if not isinstance(questions, list) or not questions:
        raise ValidationError("questions must be a non-empty array")

    normalized: List[Dict[str, Any]] = []
    seen_ids = set()
    for position, question in enumerate(questions, start=1):
        supplied = question.get("id") if isinstance(question, dict) else None
        if isinstance(supplied, str) and supplied.strip() and supplied not in seen_ids:
            question_id = supplied.strip()
        else:
            question_id = _new_question_id()
        seen_ids.add(question_id)
        normalized.append(normalize_question(question, position, question_id))
    return normalized


# Map question sub-ids to their stored question.
def questions_by_id(quiz: Quiz) -> Dict[str, Dict[str, Any]]:
    return {question["id"]: question for question in quiz.questions or []}


def quiz_to_out(quiz: Quiz, include_answers: bool = True) -> QuizOut:
    questions = []
    for question in quiz.questions or []:
        questions.append(
            QuestionOut(
                id=question["id"],
                question=question["question"],
                options=list(question["options"]),
                correct_option=question["correct_option"] if include_answers else None,
                timeout=question.get("timeout", DEFAULT_TIMEOUT),
            )
        )
    return QuizOut(
        id=quiz.id,
        course_id=quiz.course_id,
        title=quiz.title,
        description=quiz.description,
        created_by=quiz.created_by,
        created_at=to_iso(quiz.created_at),
        updated_at=to_iso(quiz.updated_at),
        questions=questions,
    )


def quiz_to_summary(quiz: Quiz) -> QuizSummaryOut:
    return QuizSummaryOut(
        id=quiz.id,
        course_id=quiz.course_id,
        title=quiz.title,
        description=quiz.description,
        created_by=quiz.created_by,
        created_at=to_iso(quiz.created_at),
        updated_at=to_iso(quiz.updated_at),
        total_questions=len(quiz.questions or []),
    )
