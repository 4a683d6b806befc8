"""
Tests for exam publishing and grade release.
"""
from datetime import timedelta

import pytest

from exambank.core.errors import Forbidden, InvalidRequest, NotFound, Unauthorized
from exambank.models.orm import ExamStatus
from exambank.services import lifecycle


@pytest.fixture
def exam_at(make):
    pool = make.pool()
    group = make.exam_group()

    def build(testing_date, status=ExamStatus.GENERATED):
        return make.exam(group, pool, testing_date, status=status)
    return build


class TestPublish:

    def test_publish_future_exam(self, db, admin, exam_at, now):
        exam = exam_at(now + timedelta(days=1))
        published = lifecycle.publish_exam(db, admin, exam.id, now=now)
        assert published.status == ExamStatus.PUBLISHED

    def test_publish_past_exam_rejected(self, db, admin, exam_at, now):
        exam = exam_at(now - timedelta(minutes=1))
        with pytest.raises(InvalidRequest) as exc:
            lifecycle.publish_exam(db, admin, exam.id, now=now)
        assert exc.value.message == "Testing date has already passed"
        db.refresh(exam)
        assert exam.status == ExamStatus.GENERATED

    def test_publish_at_testing_time_rejected(self, db, admin, exam_at, now):
        exam = exam_at(now)
        with pytest.raises(InvalidRequest):
            lifecycle.publish_exam(db, admin, exam.id, now=now)

    def test_publish_requires_admin(self, db, reviewer, exam_at, now):
        exam = exam_at(now + timedelta(days=1))
        with pytest.raises(Unauthorized):
            lifecycle.publish_exam(db, reviewer, exam.id, now=now)

    def test_unknown_exam(self, db, admin, now):
        with pytest.raises(NotFound):
            lifecycle.publish_exam(db, admin, "missing", now=now)


class TestUnpublish:

    def test_unpublish_future_exam(self, db, admin, exam_at, now):
        exam = exam_at(now + timedelta(days=1), status=ExamStatus.PUBLISHED)
        assert lifecycle.unpublish_exam(db, admin, exam.id, now=now).status == ExamStatus.GENERATED

    def test_unpublish_after_testing_date_forbidden(self, db, admin, exam_at, now):
        exam = exam_at(now - timedelta(hours=1), status=ExamStatus.PUBLISHED)
        with pytest.raises(Forbidden) as exc:
            lifecycle.unpublish_exam(db, admin, exam.id, now=now)
        assert exc.value.status_code == 403
        db.refresh(exam)
        assert exam.status == ExamStatus.PUBLISHED


class TestReleaseGrades:

    def test_release_after_delay(self, db, admin, exam_at, now):
        exam = exam_at(now - timedelta(days=2), status=ExamStatus.PUBLISHED)
        assert lifecycle.release_grades(db, admin, exam.id, now=now).status == ExamStatus.GRADE_RELEASED

    def test_release_too_early(self, db, admin, exam_at, now):
        exam = exam_at(now - timedelta(days=1), status=ExamStatus.PUBLISHED)
        with pytest.raises(InvalidRequest) as exc:
            lifecycle.release_grades(db, admin, exam.id, now=now)
        assert "opens_at" in exc.value.details

    def test_release_requires_published(self, db, admin, exam_at, now):
        exam = exam_at(now - timedelta(days=5))
        with pytest.raises(InvalidRequest):
            lifecycle.release_grades(db, admin, exam.id, now=now)

    def test_release_twice_rejected(self, db, admin, exam_at, now):
        exam = exam_at(now - timedelta(days=5), status=ExamStatus.PUBLISHED)
        lifecycle.release_grades(db, admin, exam.id, now=now)
        with pytest.raises(InvalidRequest):
            lifecycle.release_grades(db, admin, exam.id, now=now)
