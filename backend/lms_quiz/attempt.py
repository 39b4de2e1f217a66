"""Attempt session state machine.

An attempt drives one user through a quiz a question at a time. It keeps two
separate clocks per question:

* a countdown (``time_remaining``) that only runs while the question is on
  screen and pauses when the user navigates away, and
* an elapsed total (``elapsed``) measured from a monotonic wall clock and
  accumulated across every visit, which is what gets reported as time taken.

When a question's countdown reaches zero it becomes EXPIRED: its selection is
locked, but navigation and submission stay available. The session is never
persisted; it is discarded on completion or abandonment.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Set

from lms_quiz.errors import IncompleteAnswersError, SessionStateError, ValidationError
from lms_quiz.schemas import AnswerCreate, QuizOut

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Scorer = Callable[[List[AnswerCreate]], Any]
QuizFetcher = Callable[[str], Awaitable[QuizOut]]

DEFAULT_AUTO_OPTION = 0


class SessionState(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


class QuestionState(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class SubmitMode(str, Enum):
    STRICT = "strict"
    AUTO = "auto"


class AsyncioCountdownTimer:
    """Repeating timer that calls back once per interval on the running loop."""

    def __init__(self, interval: float = 1.0):
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: Callable[[], None]) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run(callback))

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, callback: Callable[[], None]) -> None:
        while True:
            await asyncio.sleep(self.interval)
            callback()


class AttemptSession:
    """One user's in-flight pass through a quiz.

    ``timer`` is any object with ``start(callback)``/``stop()``; when omitted
    the caller is expected to drive ``tick()`` itself.
    """

    def __init__(self, quiz_id: str, clock: Clock = time.monotonic, timer=None):
        self.quiz_id = quiz_id
        self.state = SessionState.LOADING
        self.quiz: Optional[QuizOut] = None
        self.current_index = 0
        self.selections: List[Optional[int]] = []
        self.time_remaining: List[int] = []
        self.elapsed: List[float] = []
        self.expired: Set[int] = set()
        self.result: Any = None
        self.error: Optional[Exception] = None
        self._clock = clock
        self._timer = timer
        self._visit_started: Optional[float] = None

    async def load(self, fetch: QuizFetcher) -> None:
        """Fetch the quiz and start; cancelling the fetch abandons the session."""
        self._require(SessionState.LOADING)
        try:
            quiz = await fetch(self.quiz_id)
        except asyncio.CancelledError:
            self.abandon()
            raise
        self.start(quiz)

    def start(self, quiz: QuizOut) -> None:
        self._require(SessionState.LOADING)
        if not quiz.questions:
            raise ValidationError("quiz has no questions")
        count = len(quiz.questions)
        self.quiz = quiz
        self.current_index = 0
        self.selections = [None] * count
        self.time_remaining = [question.timeout for question in quiz.questions]
        self.elapsed = [0.0] * count
        self.expired = set()
        self.state = SessionState.IN_PROGRESS
        self._visit_started = self._clock()
        self._start_timer()

    def abandon(self) -> None:
        """Tear the session down without submitting."""
        if self.state in (SessionState.COMPLETED, SessionState.ABANDONED):
            return
        self._stop_timer()
        self.state = SessionState.ABANDONED
        self._discard()

    # Return to answering after a failed submit.
    def resume(self) -> None:
        self._require(SessionState.FAILED)
        self.state = SessionState.IN_PROGRESS
        self.error = None
        self._visit_started = self._clock()
        self._start_timer()

    @property
    def question_count(self) -> int:
        return len(self.selections)

    @property
    def answered_count(self) -> int:
        return sum(1 for selection in self.selections if selection is not None)

    def question_state(self, index: int) -> QuestionState:
        return QuestionState.EXPIRED if index in self.expired else QuestionState.ACTIVE

    # Expired questions are locked, so exclude_expired skips them.
    def first_unanswered(self, exclude_expired: bool = False) -> Optional[int]:
        for index, selection in enumerate(self.selections):
            if exclude_expired and index in self.expired:
                continue
            if selection is None:
                return index
        return None

    def select_option(self, option: int) -> bool:
        """Select an option for the current question; no-op once it has expired."""
        self._require(SessionState.IN_PROGRESS)
        if self.current_index in self.expired:
            return False
        options = self.quiz.questions[self.current_index].options
        if not 0 <= option < len(options):
            raise ValidationError(f"option must be between 0 and {len(options) - 1}")
        self.selections[self.current_index] = option
        return True

    def next(self) -> bool:
        return self._move(self.current_index + 1)

    def prev(self) -> bool:
        return self._move(self.current_index - 1)

    def jump_to(self, index: int) -> bool:
        self._require(SessionState.IN_PROGRESS)
        if not 0 <= index < self.question_count:
            raise ValidationError(f"question index must be between 0 and {self.question_count - 1}")
        return self._move(index)

    def tick(self) -> None:
        """Advance the current question's countdown by one second."""
        if self.state is not SessionState.IN_PROGRESS:
            return
        index = self.current_index
        if index in self.expired:
            return
        self.time_remaining[index] = max(self.time_remaining[index] - 1, 0)
        if self.time_remaining[index] == 0:
            self.expired.add(index)
            logger.debug("Question %d of quiz %s expired", index, self.quiz_id)

    def build_answers(self, mode: SubmitMode = SubmitMode.STRICT) -> List[AnswerCreate]:
        if mode is SubmitMode.STRICT:
            missing = self.first_unanswered(exclude_expired=True)
            if missing is not None:
                raise IncompleteAnswersError(missing)
        answers = []
        for index, question in enumerate(self.quiz.questions):
            selection = self.selections[index]
            if selection is None and mode is SubmitMode.AUTO:
                selection = DEFAULT_AUTO_OPTION
            answers.append(
                AnswerCreate(
                    question_id=question.id,
                    selected_option=selection,
                    time_taken=self.elapsed[index],
                )
            )
        return answers

    def submit(self, scorer: Scorer, mode: SubmitMode = SubmitMode.STRICT) -> Any:
        """Hand the answers to ``scorer`` and complete the attempt.

        Strict mode raises IncompleteAnswersError and leaves the session in
        progress. Questions that expired unanswered do not block it;
        they are sent with no selection and score as incorrect. A scorer failure moves the session to FAILED with every
        selection and timing kept, so ``submit`` may be called again.
        """
        if self.state is SessionState.IN_PROGRESS:
            self._record_elapsed()
        elif self.state is not SessionState.FAILED:
            raise SessionStateError(f"cannot submit from state {self.state.value}")

        answers = self.build_answers(mode)
        self._stop_timer()
        self.state = SessionState.SUBMITTING
        try:
            result = scorer(answers)
        except Exception as exc:
            self.state = SessionState.FAILED
            self.error = exc
            logger.warning("Submission for quiz %s failed: %s", self.quiz_id, exc)
            raise
        self.state = SessionState.COMPLETED
        self.result = result
        self._discard()
        return result

    def _require(self, state: SessionState) -> None:
        if self.state is not state:
            raise SessionStateError(
                f"session is {self.state.value}, expected {state.value}"
            )

    def _record_elapsed(self) -> None:
        now = self._clock()
        if self._visit_started is not None:
            self.elapsed[self.current_index] += max(now - self._visit_started, 0.0)
        self._visit_started = now

    def _move(self, index: int) -> bool:
        self._require(SessionState.IN_PROGRESS)
        self._record_elapsed()
        if not 0 <= index < self.question_count:
            return False
        if index != self.current_index:
            self.current_index = index
            self._start_timer()
        return True

    def _start_timer(self) -> None:
        if self._timer is not None:
            self._timer.start(self.tick)

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()

    def _discard(self) -> None:
        self.quiz = None
        self.selections = []
        self.time_remaining = []
        self.elapsed = []
        self.expired = set()
        self._visit_started = None
