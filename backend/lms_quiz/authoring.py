# Course lookup and quiz create/update/delete/read operations.
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lms_quiz.catalog import normalize_questions, validate_quiz_text
from lms_quiz.errors import NotFoundError, ValidationError
from lms_quiz.models import Course, Quiz

logger = logging.getLogger(__name__)


def create_course(db: Session, title: str, created_by: str) -> Course:
    cleaned = title.strip()
    if not cleaned:
        raise ValidationError("title is required")
    course = Course(title=cleaned, created_by=created_by)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def get_course(db: Session, course_id: str) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise NotFoundError("course not found")
    return course


def get_quiz(db: Session, quiz_id: str) -> Quiz:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise NotFoundError("quiz not found")
    return quiz


# Validate and persist a new quiz for an existing course.
def create_quiz(
    db: Session,
    course_id: str,
    title: str,
    description: str,
    questions: List[Dict[str, Any]],
    created_by: str,
) -> Quiz:
    validate_quiz_text(title or "", description or "")
    normalized = normalize_questions(questions)
    get_course(db, course_id)

    quiz = Quiz(
        course_id=course_id,
        title=title.strip(),
        description=description.strip(),
        questions=normalized,
        created_by=created_by,
    )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("Quiz %s created for course %s by %s", quiz.id, course_id, created_by)
    return quiz


# Replace any supplied field wholesale; last write wins.
def update_quiz(
    db: Session,
    quiz_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    questions: Optional[List[Dict[str, Any]]] = None,
) -> Quiz:
    quiz = get_quiz(db, quiz_id)
    validate_quiz_text(title, description)
    normalized = normalize_questions(questions) if questions is not None else None

    if title is not None:
        quiz.title = title.strip()
    if description is not None:
        quiz.description = description.strip()
    if normalized is not None:
        quiz.questions = normalized
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("Quiz %s updated", quiz.id)
    return quiz


# Delete a quiz; its submissions stay as historical records.
def delete_quiz(db: Session, quiz_id: str) -> None:
    quiz = get_quiz(db, quiz_id)
    db.delete(quiz)
    db.commit()
    logger.info("Quiz %s deleted", quiz_id)


# Quizzes for a course in creation order; an empty course yields an empty list.
def get_quizzes_by_course(db: Session, course_id: str) -> List[Quiz]:
    get_course(db, course_id)
    return (
        db.query(Quiz)
        .filter(Quiz.course_id == course_id)
        .order_by(Quiz.created_at.asc())
        .all()
    )
