"""
Assessment Engine
Grades quiz submissions, enforces attempt limits and keeps course progress

Progress records are updated optimistically: read, validate against the
fresh record, then write conditionally on the version that was read. A lost
race re-runs the whole check, so the attempt limit is always enforced against
the latest committed state.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from learnhub import config
from learnhub.assessments.errors import (
    AttemptLimitExceeded, Forbidden, NotFound, PersistenceError,
    StoreConflict, ValidationError,
)
from learnhub.assessments.grading import (
    completion_percentage, is_passing, score_answers, validate_answers,
)
from learnhub.assessments.models import (
    AttemptStarted, AttemptState, AttemptStatus, ProgressRecord,
    Quiz, SubmissionRecord, SubmissionResult,
)
from learnhub.assessments.store import AssessmentStore

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC, the way Mongo hands datetimes back"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class AssessmentEngine:

    def __init__(
        self,
        store: AssessmentStore,
        passing_threshold: int = config.PASSING_THRESHOLD,
        max_retries: int = config.COMMIT_MAX_RETRIES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.passing_threshold = passing_threshold
        self.max_retries = max_retries
        self._clock = clock or datetime.utcnow

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    # ==================== LOOKUPS ====================

    async def _load_quiz(self, quiz_id: str) -> Quiz:
        doc = await self.store.get_quiz(quiz_id)
        if not doc:
            raise NotFound("Quiz not found")
        quiz = Quiz(**doc)
        if not quiz.is_published:
            raise NotFound("Quiz not found")
        return quiz

    async def _check_enrollment(self, user_id: str, course_id: str) -> dict:
        enrollment = await self.store.get_enrollment(course_id, user_id)
        if not enrollment:
            logger.warning("User %s is not enrolled in course %s", user_id, course_id)
            raise Forbidden("Not enrolled in this course. Please enroll first.")
        return enrollment

    async def _load_progress(self, user_id: str, course_id: str) -> ProgressRecord:
        doc = await self.store.get_progress(user_id, course_id)
        if doc:
            return ProgressRecord(**doc)
        return ProgressRecord(user_id=user_id, course_id=course_id)

    async def _course_quizzes(self, course_id: str) -> List[Quiz]:
        return [Quiz(**doc) for doc in await self.store.list_course_quizzes(course_id)]

    def _check_attempts_left(self, quiz: Quiz, progress: ProgressRecord, user_id: str) -> int:
        used = progress.attempts.get(quiz.quiz_id, 0)
        if used >= quiz.max_attempts:
            logger.warning(
                "Attempt limit reached for user %s on quiz %s (%d/%d)",
                user_id, quiz.quiz_id, used, quiz.max_attempts
            )
            raise AttemptLimitExceeded(
                f"Maximum of {quiz.max_attempts} attempts reached for this quiz"
            )
        return used

    def _conflicts_exhausted(self, what: str) -> PersistenceError:
        logger.error("Gave up on %s after %d concurrent updates", what, self.max_retries)
        return PersistenceError("Too many concurrent updates, retry later")

    # ==================== SUBMISSION ====================

    async def submit_quiz(
        self,
        user_id: str,
        quiz_id: str,
        answers: Any,
        submitted_at: Optional[datetime] = None,
    ) -> SubmissionResult:
        """
        Grade one attempt and record it.

        Checks, in order: quiz published (NotFound), caller enrolled
        (Forbidden), answers well-formed (ValidationError), attempts left
        (AttemptLimitExceeded). The answers are validated before the attempt
        limit, so a malformed payload from a caller with no attempts left
        gets ValidationError, not AttemptLimitExceeded. A timed quiz
        submitted after its limit is still graded and counted, with
        time_expired set.
        """
        quiz = await self._load_quiz(quiz_id)
        await self._check_enrollment(user_id, quiz.course_id)
        answers = validate_answers(quiz, answers)

        submitted_at = _as_utc(submitted_at) or self._now()
        score = score_answers(quiz, answers)
        threshold = quiz.threshold(self.passing_threshold)
        passed = is_passing(score, threshold)
        course_quizzes = await self._course_quizzes(quiz.course_id)

        for _ in range(self.max_retries):
            progress = await self._load_progress(user_id, quiz.course_id)
            used = self._check_attempts_left(quiz, progress, user_id)

            started_at = progress.open_attempts.get(quiz_id)
            time_expired = False
            if quiz.time_limit_seconds is not None:
                if started_at is None:
                    raise ValidationError("Start the quiz before submitting a timed attempt")
                elapsed = (submitted_at - started_at).total_seconds()
                time_expired = elapsed > quiz.time_limit_seconds

            attempt_count = used + 1
            best_scores = dict(progress.best_scores)
            if score > best_scores.get(quiz_id, -1):
                best_scores[quiz_id] = score

            attempts = dict(progress.attempts)
            attempts[quiz_id] = attempt_count
            open_attempts = dict(progress.open_attempts)
            open_attempts.pop(quiz_id, None)

            completion = completion_percentage(course_quizzes, best_scores, self.passing_threshold)

            updated = progress.dict()
            updated.update({
                "best_scores": best_scores,
                "attempts": attempts,
                "open_attempts": open_attempts,
                "completion_percentage": completion,
                "created_at": progress.created_at or submitted_at,
                "updated_at": submitted_at,
            })

            submission = {
                "submission_id": f"SUB_{uuid.uuid4().hex[:12].upper()}",
                "quiz_id": quiz_id,
                "course_id": quiz.course_id,
                "user_id": user_id,
                "answers": answers,
                "score": score,
                "passed": passed,
                "time_expired": time_expired,
                "attempt_number": attempt_count,
                "started_at": started_at,
                "submitted_at": submitted_at,
            }

            try:
                await self.store.commit_submission(submission, updated, expected_version=progress.version)
            except StoreConflict as e:
                logger.debug("Retrying submission for %s on %s: %s", user_id, quiz_id, e)
                continue

            logger.info(
                "Graded quiz %s for user %s: score=%d passed=%s attempt=%d/%d%s",
                quiz_id, user_id, score, passed, attempt_count, quiz.max_attempts,
                " (time expired)" if time_expired else ""
            )
            return SubmissionResult(
                submission_id=submission["submission_id"],
                quiz_id=quiz_id,
                score=score,
                passed=passed,
                attempt_count=attempt_count,
                attempts_remaining=quiz.max_attempts - attempt_count,
                best_score=best_scores[quiz_id],
                completion_percentage=completion,
                time_expired=time_expired,
                submitted_at=submitted_at,
            )

        raise self._conflicts_exhausted(f"submission of {quiz_id} by {user_id}")

    # ==================== ATTEMPT LIFECYCLE ====================

    async def start_quiz(self, user_id: str, quiz_id: str, started_at: Optional[datetime] = None) -> AttemptStarted:
        """Open an attempt. Re-starting an open attempt keeps the original start time."""
        quiz = await self._load_quiz(quiz_id)
        await self._check_enrollment(user_id, quiz.course_id)
        started_at = _as_utc(started_at) or self._now()

        for _ in range(self.max_retries):
            progress = await self._load_progress(user_id, quiz.course_id)
            used = self._check_attempts_left(quiz, progress, user_id)

            existing = progress.open_attempts.get(quiz_id)
            if existing is not None:
                return AttemptStarted(
                    quiz_id=quiz_id,
                    started_at=existing,
                    time_limit_seconds=quiz.time_limit_seconds,
                    attempt_number=used + 1,
                )

            updated = progress.dict()
            updated["open_attempts"] = {**progress.open_attempts, quiz_id: started_at}
            updated["created_at"] = progress.created_at or started_at
            updated["updated_at"] = started_at

            try:
                await self.store.save_progress(updated, expected_version=progress.version)
            except StoreConflict:
                continue

            logger.info("User %s started quiz %s (attempt %d)", user_id, quiz_id, used + 1)
            return AttemptStarted(
                quiz_id=quiz_id,
                started_at=started_at,
                time_limit_seconds=quiz.time_limit_seconds,
                attempt_number=used + 1,
            )

        raise self._conflicts_exhausted(f"start of {quiz_id} by {user_id}")

    async def attempt_state(self, user_id: str, quiz_id: str) -> AttemptStatus:
        quiz = await self._load_quiz(quiz_id)
        await self._check_enrollment(user_id, quiz.course_id)
        progress = await self._load_progress(user_id, quiz.course_id)

        used = progress.attempts.get(quiz_id, 0)
        started_at = progress.open_attempts.get(quiz_id)

        if used >= quiz.max_attempts:
            state = AttemptState.EXHAUSTED
        elif started_at is not None:
            state = AttemptState.IN_PROGRESS
        elif used > 0:
            state = AttemptState.GRADED
        else:
            state = AttemptState.NOT_STARTED

        return AttemptStatus(
            quiz_id=quiz_id,
            state=state,
            attempt_count=used,
            attempts_remaining=max(quiz.max_attempts - used, 0),
            best_score=progress.best_scores.get(quiz_id),
            started_at=started_at,
        )

    # ==================== PROGRESS ====================

    async def record_lesson_view(self, user_id: str, course_id: str, lesson_id: str) -> ProgressRecord:
        await self._check_enrollment(user_id, course_id)
        now = self._now()

        for _ in range(self.max_retries):
            progress = await self._load_progress(user_id, course_id)

            updated = progress.dict()
            updated["last_accessed_lesson"] = lesson_id
            if lesson_id not in progress.lessons_viewed:
                updated["lessons_viewed"] = progress.lessons_viewed + [lesson_id]
            updated["created_at"] = progress.created_at or now
            updated["updated_at"] = now

            try:
                saved = await self.store.save_progress(updated, expected_version=progress.version)
            except StoreConflict:
                continue
            return ProgressRecord(**saved)

        raise self._conflicts_exhausted(f"lesson view {lesson_id} by {user_id}")

    async def get_progress(self, user_id: str, course_id: str) -> ProgressRecord:
        return await self._load_progress(user_id, course_id)

    async def list_course_quizzes(self, course_id: str) -> List[dict]:
        return [quiz.public_view() for quiz in await self._course_quizzes(course_id)]

    # ==================== SUBMISSION HISTORY ====================

    async def list_submissions(self, user_id: str, quiz_id: str) -> List[SubmissionRecord]:
        """The user's graded attempts on a quiz, oldest first"""
        quiz = await self._load_quiz(quiz_id)
        await self._check_enrollment(user_id, quiz.course_id)
        return [SubmissionRecord(**doc) for doc in await self.store.list_submissions(user_id, quiz_id)]

    async def get_submission(self, submission_id: str) -> SubmissionRecord:
        doc = await self.store.get_submission(submission_id)
        if not doc:
            raise NotFound("Submission not found")
        return SubmissionRecord(**doc)
