# FastAPI app, routes, and quiz lifecycle handlers.
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import logging
import re

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lms_quiz import authoring, reporting, streaks
from lms_quiz.catalog import quiz_to_out, quiz_to_summary, to_iso
from lms_quiz.config import get_cors_origins
from lms_quiz.database import Base, engine, get_db
from lms_quiz.errors import IncompleteAnswersError, QuizServiceError
from lms_quiz.logging_config import configure_logging
from lms_quiz.models import Course, Streak
from lms_quiz.policy import Identity, authorize, get_identity, require
from lms_quiz.quiz_generation import generate_quiz_questions
from lms_quiz.schemas import (
    CourseCreate,
    CourseOut,
    GeneratedQuestionsOut,
    QuizCreate,
    QuizGenerateCreate,
    QuizOut,
    QuizSummaryOut,
    QuizUpdate,
    StreakOut,
    SubmissionCreate,
    SubmissionOut,
    SubmissionPage,
    SubmissionStatsOut,
)
from lms_quiz.scoring import score_submission

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


# Configure logging and create database tables on app startup.
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="LMS Quiz API", lifespan=lifespan)
logger = logging.getLogger("lms_quiz")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Render domain errors with the same {"detail": ...} body as HTTPException.
@app.exception_handler(QuizServiceError)
async def quiz_service_error_handler(request: Request, exc: QuizServiceError):
    content = {"detail": exc.detail}
    if isinstance(exc, IncompleteAnswersError):
        content["index"] = exc.index
    return JSONResponse(status_code=exc.status_code, content=content)


def course_to_out(course: Course) -> CourseOut:
    return CourseOut(
        id=course.id,
        title=course.title,
        created_by=course.created_by,
        created_at=to_iso(course.created_at),
    )


def streak_to_out(streak: Streak, message: Optional[str] = None) -> StreakOut:
    return StreakOut(
        month=streak.month,
        streak_days=list(streak.streak_days or []),
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        message=message,
    )


def to_page(result) -> SubmissionPage:
    items, total, limit, offset = result
    return SubmissionPage(
        items=[reporting.submission_to_out(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )

# Register a course so quizzes can be attached to it.
@app.post("/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreate,
    identity: Identity = Depends(require("course:create")),
    db: Session = Depends(get_db),
):
    course = authoring.create_course(db, payload.title, identity.user_id)
    return course_to_out(course)


@app.get("/courses/{course_id}", response_model=CourseOut)
def get_course(
    course_id: str,
    identity: Identity = Depends(require("course:read")),
    db: Session = Depends(get_db),
):
    return course_to_out(authoring.get_course(db, course_id))

# List quiz summaries for a course in creation order.
@app.get("/courses/{course_id}/quizzes", response_model=List[QuizSummaryOut])
def list_course_quizzes(
    course_id: str,
    identity: Identity = Depends(require("quiz:list")),
    db: Session = Depends(get_db),
):
    quizzes = authoring.get_quizzes_by_course(db, course_id)
    return [quiz_to_summary(quiz) for quiz in quizzes]

# Validate and store a new quiz.
@app.post("/quizzes", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
def create_quiz(
    payload: QuizCreate,
    identity: Identity = Depends(require("quiz:create")),
    db: Session = Depends(get_db),
):
    quiz = authoring.create_quiz(
        db,
        course_id=payload.course_id,
        title=payload.title,
        description=payload.description,
        questions=payload.questions,
        created_by=identity.user_id,
    )
    return quiz_to_out(quiz)

# Draft questions with AI for an author to review; nothing is stored.
@app.post("/quizzes/generate", response_model=GeneratedQuestionsOut)
def generate_questions(
    payload: QuizGenerateCreate,
    identity: Identity = Depends(require("quiz:generate")),
):
    try:
        questions = generate_quiz_questions(payload.topic_description)
    except QuizServiceError:
        raise
    except Exception as exc:
        logger.exception("Quiz generation failed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"quiz generation failed, try again: {exc}",
        )
    return GeneratedQuestionsOut(questions=questions)

# Return a quiz; learners receive it without the answer key.
@app.get("/quizzes/{quiz_id}", response_model=QuizOut, response_model_exclude_none=True)
def get_quiz(
    quiz_id: str,
    identity: Identity = Depends(require("quiz:read")),
    db: Session = Depends(get_db),
):
    quiz = authoring.get_quiz(db, quiz_id)
    include_answers = authorize(identity, "quiz:read_answers").allowed
    return quiz_to_out(quiz, include_answers=include_answers)

# Replace the supplied quiz fields.
@app.put("/quizzes/{quiz_id}", response_model=QuizOut)
def update_quiz(
    quiz_id: str,
    payload: QuizUpdate,
    identity: Identity = Depends(require("quiz:update")),
    db: Session = Depends(get_db),
):
    quiz = authoring.update_quiz(
        db,
        quiz_id,
        title=payload.title,
        description=payload.description,
        questions=payload.questions,
    )
    return quiz_to_out(quiz)


@app.delete("/quizzes/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quiz(
    quiz_id: str,
    identity: Identity = Depends(require("quiz:delete")),
    db: Session = Depends(get_db),
):
    authoring.delete_quiz(db, quiz_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# Score an attempt and store it; the streak update runs after the response.
@app.post(
    "/quizzes/{quiz_id}/submissions",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_quiz(
    quiz_id: str,
    payload: SubmissionCreate,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require("quiz:submit")),
    db: Session = Depends(get_db),
):
    quiz = authoring.get_quiz(db, quiz_id)

    def notify(user_id: str) -> None:
        background_tasks.add_task(streaks.record_activity_safely, user_id)

    submission = score_submission(db, quiz, identity.user_id, payload.answers, notify=notify)
    return reporting.submission_to_out(submission)


@app.get("/quizzes/{quiz_id}/submissions", response_model=SubmissionPage)
def list_quiz_submissions(
    quiz_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(require("submission:list_quiz")),
    db: Session = Depends(get_db),
):
    return to_page(reporting.get_submissions_by_quiz(db, quiz_id, limit, offset))


@app.get("/submissions/user", response_model=SubmissionPage)
def list_user_submissions(
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(require("submission:list_own")),
    db: Session = Depends(get_db),
):
    return to_page(reporting.get_user_submissions(db, identity.user_id, limit, offset))

# Aggregate the caller's attempts: overall and per quiz.
@app.get("/submissions/user/stats", response_model=SubmissionStatsOut)
def user_submission_stats(
    identity: Identity = Depends(require("submission:list_own")),
    db: Session = Depends(get_db),
):
    submissions = reporting.get_all_user_submissions(db, identity.user_id)
    return reporting.summarize_submissions(submissions)


@app.get("/submissions/{submission_id}", response_model=SubmissionOut)
def get_submission(
    submission_id: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    submission = reporting.get_submission_by_id(db, submission_id, identity)
    return reporting.submission_to_out(submission)

# Return the caller's streak for a month (defaults to the current month).
@app.get("/streaks", response_model=StreakOut)
def get_streak(
    month: Optional[str] = Query(default=None),
    identity: Identity = Depends(require("streak:read_own")),
    db: Session = Depends(get_db),
):
    month = month or streaks.month_key(datetime.now(tz=timezone.utc).date())
    if not MONTH_PATTERN.match(month):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="month must use the YYYY-MM format",
        )
    streak = streaks.get_streak(db, identity.user_id, month)
    if streak is None:
        return StreakOut(
            month=month,
            streak_days=[],
            current_streak=0,
            longest_streak=0,
            message="no streak data found for this month",
        )
    return streak_to_out(streak)


@app.get("/streaks/history", response_model=List[StreakOut])
def get_streak_history(
    identity: Identity = Depends(require("streak:read_own")),
    db: Session = Depends(get_db),
):
    return [streak_to_out(streak) for streak in streaks.get_streak_history(db, identity.user_id)]
