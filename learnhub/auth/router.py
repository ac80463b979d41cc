from fastapi import APIRouter, Depends

from learnhub.assessments.dependencies import get_current_identity
from learnhub.auth.identity import Identity, dashboard_view_for

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard")
async def dashboard_endpoint(identity: Identity = Depends(get_current_identity)):
    """Which dashboard the caller's role lands on"""
    return {
        "user_id": identity.user_id,
        "role": identity.role.value,
        "view": dashboard_view_for(identity.role).value
    }
