"""
Persistence Store contract

Quizzes, enrollments, progress records and submissions are plain dicts
keyed by their ids. Progress records carry a `version`; every write of
a progress record is conditional on the version the caller read
(0 meaning "no record yet") and stores it as version + 1. A write that
loses against a concurrent one raises StoreConflict and changes nothing.
Infrastructure failures raise PersistenceError.
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class AssessmentStore(ABC):

    async def setup(self) -> None:
        """Prepare the backing store (indexes etc.)"""

    @abstractmethod
    async def ping(self) -> None:
        ...

    # ==================== READS ====================

    @abstractmethod
    async def get_quiz(self, quiz_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def list_course_quizzes(self, course_id: str) -> List[dict]:
        ...

    @abstractmethod
    async def get_enrollment(self, course_id: str, user_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def get_progress(self, user_id: str, course_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def get_submission(self, submission_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def list_submissions(self, user_id: str, quiz_id: str) -> List[dict]:
        ...

    # ==================== CONDITIONAL WRITES ====================

    @abstractmethod
    async def save_progress(self, progress: dict, expected_version: int) -> dict:
        """Write a progress record if its stored version still equals expected_version"""

    @abstractmethod
    async def commit_submission(self, submission: dict, progress: dict, expected_version: int) -> dict:
        """
        Insert a submission and write its progress record as one unit.
        Either both land or neither does.
        """
