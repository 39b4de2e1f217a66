# Daily activity streaks, updated after each successful submission.
import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from lms_quiz import database
from lms_quiz.models import Streak

logger = logging.getLogger(__name__)


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def _find(db: Session, user_id: str, month: str) -> Optional[Streak]:
    return (
        db.query(Streak)
        .filter(Streak.user_id == user_id, Streak.month == month)
        .first()
    )


# Mark `today` active for the user, extending or resetting the current streak.
def record_activity(db: Session, user_id: str, today: Optional[date] = None) -> Streak:
    today = today or datetime.now(tz=timezone.utc).date()
    today_iso = today.isoformat()
    month = month_key(today)

    streak = _find(db, user_id, month)
    if streak is None:
        streak = Streak(
            user_id=user_id,
            month=month,
            streak_days=[],
            current_streak=0,
            longest_streak=0,
        )
        db.add(streak)

    if today_iso in streak.streak_days:
        return streak

    yesterday = today - timedelta(days=1)
    previous = streak if month_key(yesterday) == month else _find(db, user_id, month_key(yesterday))
    if previous is not None and yesterday.isoformat() in (previous.streak_days or []):
        current = previous.current_streak + 1
    else:
        current = 1

    streak.streak_days = list(streak.streak_days) + [today_iso]
    streak.current_streak = current
    streak.longest_streak = max(streak.longest_streak or 0, current)
    db.commit()
    db.refresh(streak)
    return streak


# Best-effort variant for use after scoring: uses its own session and never raises.
def record_activity_safely(user_id: str) -> None:
    db = database.SessionLocal()
    try:
        record_activity(db, user_id)
    except Exception:
        db.rollback()
        logger.exception("Error updating streak for user %s", user_id)
    finally:
        db.close()


def get_streak(db: Session, user_id: str, month: str) -> Optional[Streak]:
    return _find(db, user_id, month)


def get_streak_history(db: Session, user_id: str) -> List[Streak]:
    return (
        db.query(Streak)
        .filter(Streak.user_id == user_id)
        .order_by(Streak.month.desc())
        .all()
    )
