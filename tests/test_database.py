import pytest
from pymongo.errors import DuplicateKeyError, OperationFailure, ServerSelectionTimeoutError

from learnhub.assessments.database import MongoAssessmentStore
from learnhub.assessments.engine import AssessmentEngine
from learnhub.assessments.errors import PersistenceError, StoreConflict
from learnhub.assessments.memory_store import InMemoryAssessmentStore
from conftest import COURSE, STUDENT, make_quiz, run


def transient_write_conflict():
    return OperationFailure(
        "WriteConflict", code=112, details={"errorLabels": ["TransientTransactionError"]}
    )


class FakeResult:
    def __init__(self, matched_count):
        self.matched_count = matched_count


class FakeCollection:
    def __init__(self, raise_on=None, matched_count=1, duplicate=False, fail_times=None):
        self.raise_on = raise_on
        self.matched_count = matched_count
        self.duplicate = duplicate
        self.fail_times = fail_times  # None: fail on every call
        self.calls = []
        self.sessions = []

    def _maybe_raise(self):
        if self.raise_on is None:
            return
        if self.fail_times is None:
            raise self.raise_on
        if self.fail_times > 0:
            self.fail_times -= 1
            raise self.raise_on

    async def find_one(self, query, projection=None):
        self.calls.append(("find_one", query))
        self._maybe_raise()
        return None

    async def insert_one(self, doc, session=None):
        self.calls.append(("insert_one", doc))
        self.sessions.append(session)
        self._maybe_raise()
        if self.duplicate:
            raise DuplicateKeyError("E11000 duplicate key")

    async def replace_one(self, query, doc, session=None):
        self.calls.append(("replace_one", query))
        self.sessions.append(session)
        self._maybe_raise()
        return FakeResult(self.matched_count)


class FakeTransaction:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        self.session.in_transaction = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.session.in_transaction = False
        self.session.outcome = "aborted" if exc_type else "committed"
        return False


class FakeSession:
    def __init__(self):
        self.in_transaction = False
        self.outcome = None
        self.ended = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.ended = True
        return False

    def start_transaction(self):
        return FakeTransaction(self)


class FakeClient:
    def __init__(self):
        self.sessions = []

    async def start_session(self):
        session = FakeSession()
        self.sessions.append(session)
        return session


class FakeDB:
    def __init__(self, **collections):
        self.client = FakeClient()
        self.course_progress = collections.get("course_progress", FakeCollection())
        self.quizzes = collections.get("quizzes", FakeCollection())
        self.quiz_submissions = collections.get("quiz_submissions", FakeCollection())


def test_driver_failure_becomes_persistence_error():
    db = FakeDB(quizzes=FakeCollection(raise_on=ServerSelectionTimeoutError("no primary")))
    with pytest.raises(PersistenceError):
        run(MongoAssessmentStore(db).get_quiz("QUIZ_1"))


def test_transient_transaction_error_becomes_conflict():
    db = FakeDB(course_progress=FakeCollection(raise_on=transient_write_conflict()))
    with pytest.raises(StoreConflict):
        run(MongoAssessmentStore(db).save_progress({"user_id": "u", "course_id": "c"}, expected_version=2))


def test_stale_version_is_a_conflict():
    progress = FakeCollection(matched_count=0)
    store = MongoAssessmentStore(FakeDB(course_progress=progress))
    with pytest.raises(StoreConflict):
        run(store.save_progress({"user_id": "u", "course_id": "c", "version": 2}, expected_version=2))
    assert progress.calls[0] == ("replace_one", {"user_id": "u", "course_id": "c", "version": 2})


def test_concurrent_first_write_is_a_conflict():
    store = MongoAssessmentStore(FakeDB(course_progress=FakeCollection(duplicate=True)))
    with pytest.raises(StoreConflict):
        run(store.save_progress({"user_id": "u", "course_id": "c"}, expected_version=0))


def test_successful_write_bumps_version():
    progress = FakeCollection()
    store = MongoAssessmentStore(FakeDB(course_progress=progress))
    saved = run(store.save_progress({"user_id": "u", "course_id": "c", "version": 4}, expected_version=4))
    assert saved["version"] == 5


# ==================== SUBMISSION TRANSACTION ====================

SUBMISSION = {"submission_id": "SUB_1", "quiz_id": "QUIZ_1", "user_id": "u", "score": 50}


def test_commit_writes_progress_and_submission_in_one_session():
    db = FakeDB()
    store = MongoAssessmentStore(db)

    saved = run(store.commit_submission(
        SUBMISSION, {"user_id": "u", "course_id": "c", "version": 3}, expected_version=3
    ))

    assert saved["version"] == 4
    [session] = db.client.sessions
    assert db.course_progress.sessions == [session]
    assert db.quiz_submissions.sessions == [session]
    assert db.quiz_submissions.calls == [("insert_one", SUBMISSION)]
    assert session.outcome == "committed"
    assert session.ended


def test_first_commit_inserts_progress_inside_the_transaction():
    db = FakeDB()
    run(MongoAssessmentStore(db).commit_submission(
        SUBMISSION, {"user_id": "u", "course_id": "c"}, expected_version=0
    ))
    [session] = db.client.sessions
    assert db.course_progress.calls[0][0] == "insert_one"
    assert db.course_progress.sessions == [session]


def test_failed_submission_insert_aborts_and_surfaces_persistence_error():
    db = FakeDB(quiz_submissions=FakeCollection(raise_on=ServerSelectionTimeoutError("no primary")))
    store = MongoAssessmentStore(db)

    with pytest.raises(PersistenceError):
        run(store.commit_submission(
            SUBMISSION, {"user_id": "u", "course_id": "c", "version": 1}, expected_version=1
        ))

    [session] = db.client.sessions
    assert session.outcome == "aborted"
    assert session.in_transaction is False
    assert session.ended


def test_write_conflict_inside_transaction_is_a_store_conflict():
    db = FakeDB(course_progress=FakeCollection(raise_on=transient_write_conflict()))

    with pytest.raises(StoreConflict):
        run(MongoAssessmentStore(db).commit_submission(
            SUBMISSION, {"user_id": "u", "course_id": "c", "version": 1}, expected_version=1
        ))

    assert db.client.sessions[0].outcome == "aborted"
    assert db.quiz_submissions.calls == []


def test_stale_version_inside_transaction_skips_submission_insert():
    db = FakeDB(course_progress=FakeCollection(matched_count=0))

    with pytest.raises(StoreConflict):
        run(MongoAssessmentStore(db).commit_submission(
            SUBMISSION, {"user_id": "u", "course_id": "c", "version": 1}, expected_version=1
        ))

    assert db.client.sessions[0].outcome == "aborted"
    assert db.quiz_submissions.calls == []


class MongoCommitStore(MongoAssessmentStore):
    """Reads from a seeded in-memory store, commits through the Mongo transaction"""

    def __init__(self, db, reads):
        super().__init__(db)
        self.reads = reads

    async def get_quiz(self, quiz_id):
        return await self.reads.get_quiz(quiz_id)

    async def list_course_quizzes(self, course_id):
        return await self.reads.list_course_quizzes(course_id)

    async def get_enrollment(self, course_id, user_id):
        return await self.reads.get_enrollment(course_id, user_id)

    async def get_progress(self, user_id, course_id):
        return await self.reads.get_progress(user_id, course_id)


def test_engine_retries_a_transient_transaction_conflict():
    reads = InMemoryAssessmentStore()
    reads.add_quiz(make_quiz())
    reads.add_enrollment(COURSE, STUDENT)
    db = FakeDB(course_progress=FakeCollection(raise_on=transient_write_conflict(), fail_times=1))
    engine = AssessmentEngine(MongoCommitStore(db, reads))

    result = run(engine.submit_quiz(STUDENT, "QUIZ_1", {"q1": "a", "q2": "b"}))

    assert result.score == 100
    assert result.attempt_count == 1
    assert [s.outcome for s in db.client.sessions] == ["aborted", "committed"]
    assert len(db.quiz_submissions.calls) == 1
