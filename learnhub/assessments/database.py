import logging
from functools import wraps
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from learnhub.assessments.errors import PersistenceError, StoreConflict
from learnhub.assessments.store import AssessmentStore

logger = logging.getLogger(__name__)

NO_ID = {"_id": 0}


def _store_errors(fn):
    """Turn driver failures into PersistenceError"""
    @wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (StoreConflict, PersistenceError):
            raise
        except PyMongoError as e:
            # Two transactions touching the same progress document
            if e.has_error_label("TransientTransactionError"):
                raise StoreConflict(str(e))
            logger.error("MongoDB call %s failed: %s", fn.__name__, e)
            raise PersistenceError("Store unavailable, retry later")
    return wrapper


class MongoAssessmentStore(AssessmentStore):
    """
    Store backed by MongoDB through motor.

    Collections:
        quizzes            - quiz definitions (quiz_id)
        course_enrollments - (user_id, course_id, is_active)
        course_progress    - one record per (user_id, course_id), versioned
        quiz_submissions   - immutable graded attempts (submission_id)

    Submissions are committed in a multi-document transaction, so the
    deployment must be a replica set (Atlas clusters are).
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ==================== DATABASE INDEXES ====================

    @_store_errors
    async def setup(self) -> None:
        await self.db.quizzes.create_index("quiz_id", unique=True)
        await self.db.quizzes.create_index([("course_id", 1), ("status", 1)])

        await self.db.course_enrollments.create_index([("user_id", 1), ("course_id", 1)], unique=True)

        await self.db.course_progress.create_index([("user_id", 1), ("course_id", 1)], unique=True)

        await self.db.quiz_submissions.create_index("submission_id", unique=True)
        await self.db.quiz_submissions.create_index([("user_id", 1), ("quiz_id", 1)])
        await self.db.quiz_submissions.create_index("submitted_at")

        logger.info("Assessment indexes created")

    @_store_errors
    async def ping(self) -> None:
        await self.db.command("ping")

    # ==================== READS ====================

    @_store_errors
    async def get_quiz(self, quiz_id: str) -> Optional[dict]:
        return await self.db.quizzes.find_one({"quiz_id": quiz_id}, NO_ID)

    @_store_errors
    async def list_course_quizzes(self, course_id: str) -> List[dict]:
        cursor = self.db.quizzes.find(
            {"course_id": course_id, "status": "PUBLISHED"}, NO_ID
        ).sort("quiz_id", 1)
        return await cursor.to_list(length=None)

    @_store_errors
    async def get_enrollment(self, course_id: str, user_id: str) -> Optional[dict]:
        return await self.db.course_enrollments.find_one({
            "course_id": course_id,
            "user_id": user_id,
            "is_active": True
        }, NO_ID)

    @_store_errors
    async def get_progress(self, user_id: str, course_id: str) -> Optional[dict]:
        return await self.db.course_progress.find_one(
            {"user_id": user_id, "course_id": course_id}, NO_ID
        )

    @_store_errors
    async def get_submission(self, submission_id: str) -> Optional[dict]:
        return await self.db.quiz_submissions.find_one({"submission_id": submission_id}, NO_ID)

    @_store_errors
    async def list_submissions(self, user_id: str, quiz_id: str) -> List[dict]:
        cursor = self.db.quiz_submissions.find(
            {"user_id": user_id, "quiz_id": quiz_id}, NO_ID
        ).sort("submitted_at", 1)
        return await cursor.to_list(length=None)

    # ==================== CONDITIONAL WRITES ====================

    async def _write_progress(self, progress: dict, expected_version: int, session=None) -> dict:
        doc = dict(progress)
        doc.pop("_id", None)
        doc["version"] = expected_version + 1

        if expected_version == 0:
            # First interaction: the unique (user_id, course_id) index decides the race
            try:
                await self.db.course_progress.insert_one(dict(doc), session=session)
            except DuplicateKeyError:
                raise StoreConflict("progress record created concurrently")
            return doc

        result = await self.db.course_progress.replace_one(
            {
                "user_id": doc["user_id"],
                "course_id": doc["course_id"],
                "version": expected_version
            },
            doc,
            session=session
        )
        if result.matched_count == 0:
            raise StoreConflict("progress record changed concurrently")
        return doc

    @_store_errors
    async def save_progress(self, progress: dict, expected_version: int) -> dict:
        return await self._write_progress(progress, expected_version)

    @_store_errors
    async def commit_submission(self, submission: dict, progress: dict, expected_version: int) -> dict:
        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                doc = await self._write_progress(progress, expected_version, session=session)
                await self.db.quiz_submissions.insert_one(dict(submission), session=session)
        return doc
