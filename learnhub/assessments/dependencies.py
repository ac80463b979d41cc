# learnhub/assessments/dependencies.py

from fastapi import Depends, Header, Request

from learnhub.assessments.engine import AssessmentEngine
from learnhub.assessments.store import AssessmentStore
from learnhub.auth.identity import Identity, IdentityProvider, bearer_token

# ==================== DEPENDENCY FUNCTIONS ====================
# Collaborators live on app.state and are handed out per request

def get_store(request: Request) -> AssessmentStore:
    """Persistence store dependency"""
    return request.app.state.store

def get_engine(request: Request) -> AssessmentEngine:
    return request.app.state.engine

def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider

def get_current_identity(
    authorization: str = Header(None),
    provider: IdentityProvider = Depends(get_identity_provider)
) -> Identity:
    """
    Verify the bearer credential of the request
    Raises Unauthorized (401) for a missing, invalid or expired token
    """
    return provider.verify(bearer_token(authorization))
