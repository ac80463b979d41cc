from pydantic import BaseModel, validator
from typing import List, Optional, Dict
from datetime import datetime
from enum import Enum

# ==================== ENUMS ====================

class QuizStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"

class QuestionKind(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    FREE_TEXT = "free_text"

class AttemptState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    GRADED = "GRADED"
    EXHAUSTED = "EXHAUSTED"

# ==================== QUIZ MODELS ====================

class Question(BaseModel):
    question_id: str
    prompt: str
    kind: QuestionKind = QuestionKind.MULTIPLE_CHOICE
    choices: List[str] = []
    correct_answer: str
    accepted_answers: List[str] = []  # extra free-text spellings
    points: int = 1

    @validator('points')
    def validate_points(cls, v):
        if v < 1:
            raise ValueError('Question points must be a positive integer')
        return v

class Quiz(BaseModel):
    quiz_id: str
    course_id: str
    title: str = ""
    questions: List[Question] = []
    max_attempts: int = 1
    time_limit_seconds: Optional[int] = None
    passing_score: Optional[int] = None  # overrides the service-wide threshold
    status: QuizStatus = QuizStatus.DRAFT

    @validator('max_attempts')
    def validate_max_attempts(cls, v):
        if v < 1:
            raise ValueError('max_attempts must be at least 1')
        return v

    @validator('time_limit_seconds')
    def validate_time_limit(cls, v):
        if v is not None and v <= 0:
            raise ValueError('time_limit_seconds must be positive')
        return v

    @validator('passing_score')
    def validate_passing_score(cls, v):
        if v is not None and not 0 <= v <= 100:
            raise ValueError('passing_score must be between 0 and 100')
        return v

    @property
    def is_published(self) -> bool:
        return self.status == QuizStatus.PUBLISHED

    def threshold(self, default: int) -> int:
        return self.passing_score if self.passing_score is not None else default

    def public_view(self) -> dict:
        """Quiz as shown to students: answer keys removed"""
        data = self.dict()
        for q in data["questions"]:
            q.pop("correct_answer", None)
            q.pop("accepted_answers", None)
        return data

# ==================== PROGRESS MODELS ====================

class ProgressRecord(BaseModel):
    user_id: str
    course_id: str
    completion_percentage: int = 0
    last_accessed_lesson: Optional[str] = None
    lessons_viewed: List[str] = []
    best_scores: Dict[str, int] = {}
    attempts: Dict[str, int] = {}
    open_attempts: Dict[str, datetime] = {}  # quiz_id -> started_at
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class LessonView(BaseModel):
    course_id: str
    lesson_id: str

# ==================== SUBMISSION MODELS ====================

class SubmissionCreate(BaseModel):
    quiz_id: str
    answers: Dict[str, str] = {}

class SubmissionRecord(BaseModel):
    submission_id: str
    quiz_id: str
    course_id: str
    user_id: str
    answers: Dict[str, str] = {}
    score: int
    passed: bool
    time_expired: bool = False
    attempt_number: int
    started_at: Optional[datetime] = None
    submitted_at: datetime

class SubmissionResult(BaseModel):
    submission_id: str
    quiz_id: str
    score: int
    passed: bool
    attempt_count: int
    attempts_remaining: int
    best_score: int
    completion_percentage: int
    time_expired: bool = False
    submitted_at: datetime

class AttemptStarted(BaseModel):
    quiz_id: str
    started_at: datetime
    time_limit_seconds: Optional[int] = None
    attempt_number: int

class AttemptStatus(BaseModel):
    quiz_id: str
    state: AttemptState
    attempt_count: int
    attempts_remaining: int
    best_score: Optional[int] = None
    started_at: Optional[datetime] = None
