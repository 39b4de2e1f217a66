# Submission retrieval and on-read aggregate statistics.
from collections import OrderedDict
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from lms_quiz.catalog import to_iso
from lms_quiz.config import MAX_PAGE_SIZE, get_page_size
from lms_quiz.errors import NotFoundError
from lms_quiz.models import Submission
from lms_quiz.policy import Identity, authorize
from lms_quiz.schemas import AnswerOut, QuizStatsOut, SubmissionOut, SubmissionStatsOut

TREND_LENGTH = 6


def submission_to_out(submission: Submission) -> SubmissionOut:
    return SubmissionOut(
        id=submission.id,
        user_id=submission.user_id,
        quiz_id=submission.quiz_id,
        course_id=submission.course_id,
        quiz_title=submission.quiz_title,
        answers=[AnswerOut(**answer) for answer in submission.answers],
        score=submission.score,
        total_questions=submission.total_questions,
        correct_answers=submission.correct_answers,
        attempted_at=to_iso(submission.attempted_at),
    )


def _page_bounds(limit: Optional[int], offset: Optional[int]) -> Tuple[int, int]:
    limit = get_page_size() if limit is None else min(max(limit, 1), MAX_PAGE_SIZE)
    return limit, max(offset or 0, 0)


def _paginate(query, limit: Optional[int], offset: Optional[int]):
    limit, offset = _page_bounds(limit, offset)
    total = query.count()
    items = (
        query.order_by(Submission.attempted_at.desc(), Submission.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total, limit, offset


# A user's submissions, newest first.
def get_user_submissions(
    db: Session, user_id: str, limit: Optional[int] = None, offset: Optional[int] = None
):
    query = db.query(Submission).filter(Submission.user_id == user_id)
    return _paginate(query, limit, offset)


# Every submission for a user, for on-read statistics.
def get_all_user_submissions(db: Session, user_id: str) -> List[Submission]:
    return db.query(Submission).filter(Submission.user_id == user_id).all()


# All submissions for one quiz, newest first; callers must hold an authoring role.
def get_submissions_by_quiz(
    db: Session, quiz_id: str, limit: Optional[int] = None, offset: Optional[int] = None
):
    query = db.query(Submission).filter(Submission.quiz_id == quiz_id)
    return _paginate(query, limit, offset)


# Fetch one submission; anyone but its owner or an authoring role gets not-found.
def get_submission_by_id(db: Session, submission_id: str, identity: Identity) -> Submission:
    submission = db.query(Submission).filter(Submission.id == submission_id).first()
    if not submission or not authorize(
        identity, "submission:read_any", owner_id=submission.user_id
    ).allowed:
        raise NotFoundError("submission not found")
    return submission


def _average(scores: List[int]) -> float:
    if not scores:
        return 0.0
    return round(sum(scores) / len(scores), 2)


def summarize_submissions(submissions: Iterable[Submission]) -> SubmissionStatsOut:
    """Aggregate attempt counts and scores over a set of submissions.

    Per-quiz groups are ordered by each quiz's latest attempt; each group's
    trend holds up to the last six scores, oldest first.
    """
    ordered = sorted(submissions, key=lambda s: s.attempted_at, reverse=True)
    groups: "OrderedDict[str, List[Submission]]" = OrderedDict()
    for submission in ordered:
        groups.setdefault(submission.quiz_id, []).append(submission)

    quizzes = []
    for quiz_id, items in groups.items():
        scores = [item.score for item in items]
        quizzes.append(
            QuizStatsOut(
                quiz_id=quiz_id,
                quiz_title=items[0].quiz_title,
                course_id=items[0].course_id,
                attempts=len(items),
                high_score=max(scores),
                average_score=_average(scores),
                last_attempt=to_iso(items[0].attempted_at),
                trend=list(reversed(scores[:TREND_LENGTH])),
            )
        )

    all_scores = [submission.score for submission in ordered]
    return SubmissionStatsOut(
        total_attempts=len(ordered),
        high_score=max(all_scores, default=0),
        average_score=_average(all_scores),
        quizzes=quizzes,
    )
