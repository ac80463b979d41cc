"""
Learnhub Assessment Service - Main Application
Quiz submission, grading and course progress
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

from learnhub import config
from learnhub.assessments.database import MongoAssessmentStore
from learnhub.assessments.engine import AssessmentEngine
from learnhub.assessments.errors import AssessmentError
from learnhub.assessments.memory_store import InMemoryAssessmentStore
from learnhub.assessments.router import router as quiz_router
from learnhub.assessments.store import AssessmentStore
from learnhub.auth.identity import IdentityProvider
from learnhub.auth.router import router as dashboard_router
from learnhub.progress.router import router as progress_router
from learnhub.system.health_router import router as health_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_store() -> AssessmentStore:
    """Store selected by STORE_BACKEND"""
    if config.STORE_BACKEND == "memory":
        logger.warning("Using the in-memory store; data is lost on restart")
        return InMemoryAssessmentStore()
    client = AsyncIOMotorClient(config.MONGO_URL)
    return MongoAssessmentStore(client[config.MONGO_DB_NAME])


# ==================== ERROR HANDLERS ====================

async def assessment_error_handler(request: Request, exc: AssessmentError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code}
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.warning("%s %s rejected (VALIDATION_ERROR): %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=400,
        content={"detail": message, "error": "VALIDATION_ERROR"}
    )


# ==================== APP FACTORY ====================

def create_app(
    store: Optional[AssessmentStore] = None,
    identity_provider: Optional[IdentityProvider] = None,
    engine: Optional[AssessmentEngine] = None,
) -> FastAPI:
    app = FastAPI(title="Learnhub Assessment Service")

    app.state.store = store or (engine.store if engine else build_store())
    app.state.identity_provider = identity_provider or IdentityProvider(
        config.JWT_SECRET_KEY, config.JWT_ALGORITHM
    )
    app.state.engine = engine or AssessmentEngine(app.state.store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AssessmentError, assessment_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.on_event("startup")
    async def startup_event():
        await app.state.store.setup()
        logger.info("Assessment service started (store=%s)", type(app.state.store).__name__)

    # ==================== ROUTER REGISTRATION ====================
    app.include_router(quiz_router, prefix="/quiz")
    app.include_router(progress_router, prefix="/progress")
    app.include_router(dashboard_router)
    app.include_router(health_router)

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
