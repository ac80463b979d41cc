"""
Quiz Router
Submission, attempt lifecycle and quiz listing
"""

from typing import List

from fastapi import APIRouter, Depends

from learnhub.assessments.dependencies import get_current_identity, get_engine
from learnhub.assessments.engine import AssessmentEngine
from learnhub.assessments.errors import Forbidden
from learnhub.assessments.models import (
    AttemptStarted, AttemptStatus, SubmissionCreate, SubmissionRecord,
    SubmissionResult,
)
from learnhub.auth.identity import Identity

router = APIRouter(tags=["Quizzes"])


# ==================== SUBMISSION ====================

@router.post("/submit", response_model=SubmissionResult)
async def submit_quiz_endpoint(
    submission: SubmissionCreate,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    """
    Grade a quiz attempt for the caller
    Submission time is assigned by the server
    """
    return await engine.submit_quiz(identity.user_id, submission.quiz_id, submission.answers)


@router.get("/submissions/{submission_id}", response_model=SubmissionRecord)
async def get_submission_endpoint(
    submission_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    """
    One graded attempt
    Students may only read their own submissions
    """
    submission = await engine.get_submission(submission_id)
    if submission.user_id != identity.user_id and not identity.is_staff:
        raise Forbidden("Cannot view another user's submission")
    return submission


@router.get("/{quiz_id}/submissions", response_model=List[SubmissionRecord])
async def list_submissions_endpoint(
    quiz_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    """The caller's attempts on a quiz, oldest first"""
    return await engine.list_submissions(identity.user_id, quiz_id)


# ==================== ATTEMPTS ====================

@router.post("/{quiz_id}/start", response_model=AttemptStarted)
async def start_quiz_endpoint(
    quiz_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    """Start the clock on an attempt (required for timed quizzes)"""
    return await engine.start_quiz(identity.user_id, quiz_id)


@router.get("/{quiz_id}/state", response_model=AttemptStatus)
async def attempt_state_endpoint(
    quiz_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    return await engine.attempt_state(identity.user_id, quiz_id)


# ==================== LISTING ====================

@router.get("/course/{course_id}", response_model=List[dict])
async def list_course_quizzes_endpoint(
    course_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    """Published quizzes of a course, without answer keys"""
    return await engine.list_course_quizzes(course_id)
