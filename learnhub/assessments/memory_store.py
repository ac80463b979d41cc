"""
In-process store for local runs and tests (STORE_BACKEND=memory)
"""

import asyncio
import copy
from typing import Dict, List, Optional, Tuple

from learnhub.assessments.errors import StoreConflict
from learnhub.assessments.store import AssessmentStore


class InMemoryAssessmentStore(AssessmentStore):

    def __init__(self):
        self._lock = asyncio.Lock()
        self.quizzes: Dict[str, dict] = {}
        self.enrollments: Dict[Tuple[str, str], dict] = {}
        self.progress: Dict[Tuple[str, str], dict] = {}
        self.submissions: Dict[str, dict] = {}

    # ==================== SEEDING ====================

    def add_quiz(self, quiz: dict) -> None:
        self.quizzes[quiz["quiz_id"]] = copy.deepcopy(quiz)

    def add_enrollment(self, course_id: str, user_id: str, is_active: bool = True) -> None:
        self.enrollments[(course_id, user_id)] = {
            "course_id": course_id,
            "user_id": user_id,
            "is_active": is_active,
        }

    # ==================== READS ====================

    async def ping(self) -> None:
        return None

    async def get_quiz(self, quiz_id: str) -> Optional[dict]:
        return copy.deepcopy(self.quizzes.get(quiz_id))

    async def list_course_quizzes(self, course_id: str) -> List[dict]:
        return [
            copy.deepcopy(q) for q in self.quizzes.values()
            if q["course_id"] == course_id
            and q.get("status") == "PUBLISHED"
        ]

    async def get_enrollment(self, course_id: str, user_id: str) -> Optional[dict]:
        enrollment = self.enrollments.get((course_id, user_id))
        if enrollment and enrollment.get("is_active"):
            return dict(enrollment)
        return None

    async def get_progress(self, user_id: str, course_id: str) -> Optional[dict]:
        return copy.deepcopy(self.progress.get((user_id, course_id)))

    async def get_submission(self, submission_id: str) -> Optional[dict]:
        return copy.deepcopy(self.submissions.get(submission_id))

    async def list_submissions(self, user_id: str, quiz_id: str) -> List[dict]:
        found = [
            copy.deepcopy(s) for s in self.submissions.values()
            if s["user_id"] == user_id and s["quiz_id"] == quiz_id
        ]
        return sorted(found, key=lambda s: s["submitted_at"])

    # ==================== CONDITIONAL WRITES ====================

    def _check_version(self, key: Tuple[str, str], expected_version: int) -> None:
        current = self.progress.get(key)
        current_version = current["version"] if current else 0
        if current_version != expected_version:
            raise StoreConflict(f"progress {key} is at version {current_version}, expected {expected_version}")

    async def save_progress(self, progress: dict, expected_version: int) -> dict:
        key = (progress["user_id"], progress["course_id"])
        async with self._lock:
            self._check_version(key, expected_version)
            doc = copy.deepcopy(progress)
            doc["version"] = expected_version + 1
            self.progress[key] = doc
            return copy.deepcopy(doc)

    async def commit_submission(self, submission: dict, progress: dict, expected_version: int) -> dict:
        key = (progress["user_id"], progress["course_id"])
        async with self._lock:
            self._check_version(key, expected_version)
            if submission["submission_id"] in self.submissions:
                raise StoreConflict(f"submission {submission['submission_id']} already exists")
            doc = copy.deepcopy(progress)
            doc["version"] = expected_version + 1
            self.progress[key] = doc
            self.submissions[submission["submission_id"]] = copy.deepcopy(submission)
            return copy.deepcopy(doc)
