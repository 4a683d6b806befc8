"""
Pytest Configuration and Fixtures

Tests run against an in-memory SQLite database; the analytics cache is off.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ANALYTICS_CACHE_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "testing"

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from exambank.core.auth import CallerContext, create_token  # noqa: E402
from exambank.core.database import SessionLocal, engine, get_db  # noqa: E402
from exambank.main import app  # noqa: E402
from exambank.models.orm import (  # noqa: E402
    Base,
    Category,
    Contributor,
    Exam,
    ExamGroup,
    ExamStatus,
    Pool,
    Question,
    QuestionStatus,
    TestSession,
    TestTaker,
    TestTakerResponse,
)


class FixedPalette:
    """Deterministic palette: grey for every entry, black last when asked."""

    def colors(self, count, include_black=False):
        out = ["#808080"] * count
        if include_black and out:
            out[-1] = "#000000"
        return out


# =============================================================================
# Database / App Fixtures
# =============================================================================

@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# Caller Fixtures
# =============================================================================

@pytest.fixture
def admin():
    return CallerContext(sub="admin-1", roles=["admin"])


@pytest.fixture
def reviewer():
    return CallerContext(sub="reviewer-1", roles=["reviewer"])


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_token('admin-1', ['admin'])}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {create_token('user-1', ['student'])}"}


@pytest.fixture
def palette():
    return FixedPalette()


@pytest.fixture
def now():
    return datetime(2030, 1, 1, 9, 0)


# =============================================================================
# Model Fixtures
# =============================================================================

class Factory:
    """Creates committed rows with sensible defaults."""

    def __init__(self, session):
        self.db = session
        self._tick = datetime(2029, 1, 1)

    def _stamp(self):
        # strictly increasing creation times keep query order deterministic
        self._tick += timedelta(seconds=1)
        return self._tick

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def pool(self, name="Biology"):
        return self._save(Pool(name=name, created_at=self._stamp()))

    def exam_group(self, name="Spring session"):
        return self._save(ExamGroup(name=name, created_at=self._stamp()))

    def category(self, pool, name="Genetics", num_of_questions=10):
        return self._save(Category(name=name, pool_id=pool.id, num_of_questions=num_of_questions,
                                   created_at=self._stamp()))

    def contributor(self, pool, name="Ada"):
        return self._save(Contributor(name=name, pool_id=pool.id, created_at=self._stamp()))

    def question(self, category, contributor, status=QuestionStatus.APPROVED, title="What is DNA?", exam=None):
        return self._save(Question(title=title, cat_id=category.id, contributor_id=contributor.id, status=status,
                                   exam_id=exam.id if exam else None, created_at=self._stamp()))

    def questions(self, category, contributor, n, status=QuestionStatus.APPROVED):
        return [self.question(category, contributor, status=status, title=f"Question {i}") for i in range(n)]

    def exam(self, group, pool, testing_date, duration=60, number_of_questions=10, status=ExamStatus.GENERATED,
             name="Midterm", release_after=timedelta(days=7)):
        return self._save(Exam(
            name=name,
            exam_group_id=group.id,
            pool_id=pool.id,
            number_of_questions=number_of_questions,
            testing_date=testing_date,
            duration=duration,
            exam_release_date=testing_date + release_after,
            status=status,
            created_at=self._stamp(),
        ))

    def test_taker(self, group, username="taker1"):
        return self._save(TestTaker(username=username, exam_group_id=group.id, created_at=self._stamp()))

    def session(self, exam, taker, grade, submitted=True, minutes=45):
        started = self._stamp()
        return self._save(TestSession(exam_id=exam.id, test_taker_id=taker.id, grade=grade, is_submitted=submitted,
                                      created_at=started, updated_at=started + timedelta(minutes=minutes)))

    def response(self, exam, taker, question, is_correct):
        return self._save(TestTakerResponse(exam_id=exam.id, test_taker_id=taker.id, question_id=question.id,
                                            is_correct=is_correct))


@pytest.fixture
def make(db):
    return Factory(db)
