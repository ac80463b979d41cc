import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from learnhub.assessments.dependencies import get_store
from learnhub.assessments.errors import PersistenceError
from learnhub.assessments.store import AssessmentStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health")
async def health(store: AssessmentStore = Depends(get_store)):
    """Liveness plus a ping of the persistence store"""
    record = {
        "timestamp": datetime.utcnow().isoformat(),
        "status": "UP",
        "store": "UP"
    }
    try:
        await store.ping()
    except PersistenceError:
        logger.error("Health check: persistence store is DOWN")
        record["status"] = "DOWN"
        record["store"] = "DOWN"
        return JSONResponse(status_code=503, content=record)
    return record
