import logging
import random
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from exambank.core.auth import CallerContext, require_role
from exambank.core.errors import InvalidRequest, NotFound
from exambank.models.orm import Category, Exam, ExamGroup, ExamStatus, Pool
from exambank.schemas import ExamCreate
from exambank.services.selector import select_questions

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


def exam_interval(testing_date: datetime, duration: int) -> Interval:
    return testing_date, testing_date + timedelta(minutes=duration)


def intervals_overlap(a: Interval, b: Interval) -> bool:
    """Half-open intervals: touching endpoints do not overlap."""
    return a[0] < b[1] and b[0] < a[1]


def group_intervals(db: Session, exam_group_id: str) -> List[Interval]:
    rows = db.execute(
        select(Exam.testing_date, Exam.duration)
        .where(Exam.exam_group_id == exam_group_id)
        .order_by(Exam.testing_date)
    ).all()
    return [exam_interval(testing_date, duration) for testing_date, duration in rows]


def _check_required(payload: ExamCreate) -> None:
    if not (payload.name and payload.exam_group_id and payload.pool_id
            and payload.testing_date and payload.exam_release_date):
        raise InvalidRequest("Please fill all the required fields.")
    if payload.number_of_questions <= 0 or payload.duration <= 0:
        raise InvalidRequest("Please fill all the required fields.")
    for entry in payload.categories:
        if not entry.selected_id or entry.number_of_question_per_category < 0:
            raise InvalidRequest("Please fill all the required fields.", field="categories")


def _check_references(db: Session, payload: ExamCreate) -> None:
    if db.get(ExamGroup, payload.exam_group_id) is None:
        raise NotFound("Exam group", payload.exam_group_id)
    if db.get(Pool, payload.pool_id) is None:
        raise NotFound("Pool", payload.pool_id)
    wanted = {entry.selected_id for entry in payload.categories}
    if not wanted:
        return
    owned = set(db.scalars(
        select(Category.id).where(Category.id.in_(wanted), Category.pool_id == payload.pool_id)
    ).all())
    missing = sorted(wanted - owned)
    if missing:
        raise InvalidRequest("Some categories do not belong to the selected pool.",
                             field="categories", details={"category_ids": missing})


def create_exam(db: Session, ctx: CallerContext, payload: ExamCreate,
                rng: Optional[random.Random] = None) -> Tuple[Exam, int]:
    """Schedule an exam and draw its questions.

    Question selection runs before the commit, so the returned exam always
    has its questions attached. Returns the exam and the number of questions
    drawn.
    """
    require_role(ctx)
    _check_required(payload)

    proposed = exam_interval(payload.testing_date, payload.duration)
    if any(intervals_overlap(proposed, existing) for existing in group_intervals(db, payload.exam_group_id)):
        raise InvalidRequest("The time slot you picked has another exam scheduled please try to pick another time.",
                             field="testing_date")
    if payload.exam_release_date < payload.testing_date:
        raise InvalidRequest("The exam release date should be after the testing date.", field="exam_release_date")
    _check_references(db, payload)

    exam = Exam(
        name=payload.name,
        exam_group_id=payload.exam_group_id,
        pool_id=payload.pool_id,
        number_of_questions=payload.number_of_questions,
        testing_date=payload.testing_date,
        duration=payload.duration,
        exam_release_date=payload.exam_release_date,
        status=ExamStatus.GENERATED,
    )
    try:
        db.add(exam)
        db.flush()
        selected = 0
        for entry in payload.categories:
            selected += len(select_questions(db, exam.id, entry.selected_id, entry.number_of_question_per_category, rng))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(exam)
    logger.info(f"Exam {exam.id} created by {ctx.caller_id} in group {exam.exam_group_id} with {selected} questions")
    return exam, selected
