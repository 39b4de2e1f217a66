# Pydantic request/response schemas.
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Request payload for registering a course.
class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)

# Response model for a course.
class CourseOut(BaseModel):
    id: str
    title: str
    created_by: str
    created_at: str

# Request payload for creating a quiz; questions are validated by the catalog.
class QuizCreate(BaseModel):
    course_id: str
    title: str = ""
    description: str = ""
    questions: List[Dict[str, Any]] = Field(default_factory=list)

# Request payload for updating a quiz; omitted fields are left untouched.
class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[Dict[str, Any]]] = None

# A question as stored; correct_option is absent from the learner view.
class QuestionOut(BaseModel):
    id: str
    question: str
    options: List[str]
    correct_option: Optional[int] = None
    timeout: int = 30

# Response model for a full quiz.
class QuizOut(BaseModel):
    id: str
    course_id: str
    title: str
    description: str
    created_by: str
    created_at: str
    updated_at: str
    questions: List[QuestionOut]

# Response model for quiz listings, questions omitted.
class QuizSummaryOut(BaseModel):
    id: str
    course_id: str
    title: str
    description: str
    created_by: str
    created_at: str
    updated_at: str
    total_questions: int

# Request payload for AI-assisted question drafting.
class QuizGenerateCreate(BaseModel):
    topic_description: str = ""

# A generated question draft, not yet persisted.
class QuestionDraft(BaseModel):
    question: str
    options: List[str]
    correct_option: int
    timeout: int = 30

# Response model for generated question drafts.
class GeneratedQuestionsOut(BaseModel):
    questions: List[QuestionDraft]

# One answer in a submission request.
class AnswerCreate(BaseModel):
    question_id: str
    selected_option: Optional[Any] = None
    time_taken: float = 0

# Request payload for submitting a quiz attempt.
class SubmissionCreate(BaseModel):
    answers: List[AnswerCreate]

# A scored answer stored on a submission.
class AnswerOut(BaseModel):
    question_id: str
    selected_option: Optional[Any]
    is_correct: bool
    time_taken: int

# Response model for a submission.
class SubmissionOut(BaseModel):
    id: str
    user_id: str
    quiz_id: str
    course_id: str
    quiz_title: Optional[str]
    answers: List[AnswerOut]
    score: int
    total_questions: int
    correct_answers: int
    attempted_at: str

# A page of submissions, newest first.
class SubmissionPage(BaseModel):
    items: List[SubmissionOut]
    total: int
    limit: int
    offset: int

# Per-quiz aggregates computed on read.
class QuizStatsOut(BaseModel):
    quiz_id: str
    quiz_title: Optional[str]
    course_id: str
    attempts: int
    high_score: int
    average_score: float
    last_attempt: Optional[str]
    trend: List[int]

# Aggregates across all of a user's submissions.
class SubmissionStatsOut(BaseModel):
    total_attempts: int
    high_score: int
    average_score: float
    quizzes: List[QuizStatsOut]

# Response model for one month of streak data.
class StreakOut(BaseModel):
    month: str
    streak_days: List[str]
    current_streak: int
    longest_streak: int
    message: Optional[str] = None
