import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from exambank.core.auth import CallerContext, require_role
from exambank.core.config import settings
from exambank.core.errors import Forbidden, InvalidRequest, NotFound
from exambank.models.orm import Exam, ExamStatus, utcnow

logger = logging.getLogger(__name__)


def get_exam(db: Session, ctx: CallerContext, exam_id: str) -> Exam:
    require_role(ctx)
    exam = db.get(Exam, exam_id)
    if exam is None:
        raise NotFound("Exam", exam_id)
    return exam


def _set_status(db: Session, exam: Exam, status: ExamStatus, ctx: CallerContext) -> Exam:
    previous = exam.status
    exam.status = status
    db.commit()
    db.refresh(exam)
    logger.info(f"Exam {exam.id} moved {previous.value} -> {status.value} by {ctx.caller_id}")
    return exam


def publish_exam(db: Session, ctx: CallerContext, exam_id: str, now: Optional[datetime] = None) -> Exam:
    exam = get_exam(db, ctx, exam_id)
    if exam.testing_date <= (now or utcnow()):
        raise InvalidRequest("Testing date has already passed", details={"exam_id": exam_id})
    return _set_status(db, exam, ExamStatus.PUBLISHED, ctx)


def unpublish_exam(db: Session, ctx: CallerContext, exam_id: str, now: Optional[datetime] = None) -> Exam:
    exam = get_exam(db, ctx, exam_id)
    if exam.testing_date <= (now or utcnow()):
        raise Forbidden("Testing date has already passed.", details={"exam_id": exam_id})
    return _set_status(db, exam, ExamStatus.GENERATED, ctx)


def release_grades(db: Session, ctx: CallerContext, exam_id: str, now: Optional[datetime] = None) -> Exam:
    exam = get_exam(db, ctx, exam_id)
    if exam.status != ExamStatus.PUBLISHED:
        raise InvalidRequest(f"Only published exams can release grades, exam is {exam.status.value}",
                             details={"exam_id": exam_id})
    opens_at = exam.testing_date + timedelta(days=settings.GRADE_RELEASE_DELAY_DAYS)
    if (now or utcnow()) < opens_at:
        raise InvalidRequest(f"Grades can be released from {opens_at.isoformat()}",
                             details={"exam_id": exam_id, "opens_at": opens_at.isoformat()})
    return _set_status(db, exam, ExamStatus.GRADE_RELEASED, ctx)
