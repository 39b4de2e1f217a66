import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

from lms_quiz.database import Base


def _uuid_str():
    return str(uuid.uuid4())


# Client-side timestamps keep microsecond ordering on every backend.
def _utcnow():
    return datetime.now(tz=timezone.utc)


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    title = Column(String(255), nullable=False)
    created_by = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    questions = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    created_by = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (Index("quizzes_course_created_idx", "course_id", "created_at"),)


# quiz_id/course_id are plain references: submissions outlive deleted quizzes.
class Submission(Base):
    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    user_id = Column(String(36), nullable=False)
    quiz_id = Column(String(36), nullable=False)
    course_id = Column(String(36), nullable=False)
    quiz_title = Column(String(255))
    answers = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    attempted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("score = correct_answers", name="submissions_score_check"),
        CheckConstraint(
            "score >= 0 AND score <= total_questions", name="submissions_score_range_check"
        ),
        Index("submissions_user_attempted_idx", "user_id", "attempted_at"),
        Index("submissions_quiz_attempted_idx", "quiz_id", "attempted_at"),
    )


class Streak(Base):
    __tablename__ = "streaks"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    user_id = Column(String(36), nullable=False)
    month = Column(String(7), nullable=False)
    streak_days = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (Index("streaks_user_month_idx", "user_id", "month", unique=True),)
