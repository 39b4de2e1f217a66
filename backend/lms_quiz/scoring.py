# Submission scoring and persistence.
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lms_quiz.catalog import questions_by_id
from lms_quiz.config import get_max_time_taken
from lms_quiz.errors import InvalidQuestionError, ValidationError
from lms_quiz.models import Quiz, Submission
from lms_quiz.schemas import AnswerCreate

logger = logging.getLogger(__name__)

ActivityNotifier = Callable[[str], None]


# Correct only when the selection is a valid index equal to the answer key.
def is_correct_selection(question: Dict[str, Any], selected_option: Any) -> bool:
    if not isinstance(selected_option, int) or isinstance(selected_option, bool):
        return False
    if not 0 <= selected_option < len(question["options"]):
        return False
    return selected_option == question["correct_option"]


# Clamp client-reported seconds into [0, ceiling] and round to whole seconds.
def clamp_time_taken(value: Optional[float], ceiling: int) -> int:
    if value is None or not math.isfinite(value):
        return 0
    return int(round(min(max(value, 0.0), float(ceiling))))


def evaluate_answers(
    quiz: Quiz, answers: Sequence[AnswerCreate], max_time_taken: Optional[int] = None
) -> Tuple[List[Dict[str, Any]], int]:
    """Score answers against the quiz without touching the database.

    Returns the evaluated answer records and the count of correct answers.
    Raises InvalidQuestionError when an answer names a question the quiz
    lacks, so that nothing is scored against a mismatched quiz.
    """
    if not answers:
        raise ValidationError("answers must be a non-empty array")
    ceiling = max_time_taken if max_time_taken is not None else get_max_time_taken()
    index = questions_by_id(quiz)

    evaluated: List[Dict[str, Any]] = []
    seen = set()
    correct = 0
    for answer in answers:
        question = index.get(answer.question_id)
        if question is None:
            raise InvalidQuestionError(answer.question_id)
        if answer.question_id in seen:
            raise ValidationError(f"duplicate answer for question {answer.question_id}")
        seen.add(answer.question_id)

        is_correct = is_correct_selection(question, answer.selected_option)
        if is_correct:
            correct += 1
        evaluated.append(
            {
                "question_id": answer.question_id,
                "selected_option": answer.selected_option,
                "is_correct": is_correct,
                "time_taken": clamp_time_taken(answer.time_taken, ceiling),
            }
        )
    return evaluated, correct


# Score and persist a submission in one insert, then notify the streak tracker.
def score_submission(
    db: Session,
    quiz: Quiz,
    user_id: str,
    answers: Sequence[AnswerCreate],
    notify: Optional[ActivityNotifier] = None,
) -> Submission:
    evaluated, correct = evaluate_answers(quiz, answers)

    submission = Submission(
        user_id=user_id,
        quiz_id=quiz.id,
        course_id=quiz.course_id,
        quiz_title=quiz.title,
        answers=evaluated,
        score=correct,
        total_questions=len(evaluated),
        correct_answers=correct,
    )
    db.add(submission)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to persist submission for quiz %s", quiz.id)
        raise
    db.refresh(submission)
    logger.info(
        "Submission %s scored %d/%d for user %s",
        submission.id,
        submission.score,
        submission.total_questions,
        user_id,
    )

    if notify is not None:
        try:
            notify(user_id)
        except Exception:
            logger.exception("Activity notification failed for user %s", user_id)
    return submission
