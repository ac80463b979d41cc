from fastapi import APIRouter, Depends

from learnhub.assessments.dependencies import get_current_identity, get_engine
from learnhub.assessments.engine import AssessmentEngine
from learnhub.assessments.errors import Forbidden
from learnhub.assessments.models import LessonView, ProgressRecord
from learnhub.auth.identity import Identity

router = APIRouter(tags=["Progress"])


@router.get("/{user_id}/{course_id}", response_model=ProgressRecord)
async def get_progress_endpoint(
    user_id: str,
    course_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    """
    Progress of one user in one course
    Students may only read their own progress
    """
    if identity.user_id != user_id and not identity.is_staff:
        raise Forbidden("Cannot view another user's progress")
    return await engine.get_progress(user_id, course_id)


@router.post("/update", response_model=ProgressRecord)
async def record_lesson_view_endpoint(
    view: LessonView,
    identity: Identity = Depends(get_current_identity),
    engine: AssessmentEngine = Depends(get_engine)
):
    """Record that the caller opened a lesson"""
    return await engine.record_lesson_view(identity.user_id, view.course_id, view.lesson_id)
