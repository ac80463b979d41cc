import asyncio
from datetime import datetime, timedelta

import pytest
from jose import jwt

from learnhub.assessments.engine import AssessmentEngine
from learnhub.assessments.memory_store import InMemoryAssessmentStore
from learnhub.auth.identity import IdentityProvider

SECRET = "test-secret"
COURSE = "COURSE_PY101"
STUDENT = "user-1"


def make_quiz(quiz_id="QUIZ_1", course_id=COURSE, questions=None, **overrides):
    quiz = {
        "quiz_id": quiz_id,
        "course_id": course_id,
        "title": "Basics",
        "questions": questions if questions is not None else [
            {"question_id": "q1", "prompt": "Pick a", "choices": ["a", "b", "c"], "correct_answer": "a"},
            {"question_id": "q2", "prompt": "Pick b", "choices": ["a", "b", "c"], "correct_answer": "b"},
        ],
        "max_attempts": 3,
        "time_limit_seconds": None,
        "passing_score": None,
        "status": "PUBLISHED",
    }
    quiz.update(overrides)
    return quiz


def make_token(sub=STUDENT, role="student", secret=SECRET, expires_in=3600):
    claims = {"sub": sub, "role": role, "exp": datetime.utcnow() + timedelta(seconds=expires_in)}
    return jwt.encode(claims, secret, algorithm="HS256")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store():
    """In-memory store with one published two-question quiz and an enrolled student"""
    s = InMemoryAssessmentStore()
    s.add_quiz(make_quiz())
    s.add_enrollment(COURSE, STUDENT)
    return s


@pytest.fixture
def engine(store):
    return AssessmentEngine(store, passing_threshold=60)


@pytest.fixture
def identity_provider():
    return IdentityProvider(SECRET)
