from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, true
from sqlalchemy.orm import Session

from exambank.core.auth import CallerContext, get_current_user, require_roles
from exambank.core.cache import AnalyticsCache, get_analytics_cache, pool_analytics_key
from exambank.core.config import settings
from exambank.core.database import get_db
from exambank.models.orm import Exam
from exambank.schemas import CountOut, ExamCreate, ExamCreated, ExamDetail, ExamInterval, ExamOut
from exambank.services import lifecycle, scheduler

router = APIRouter()
admin_only = [Depends(require_roles("admin"))]


def _name_filter(search: Optional[str]):
    return Exam.name.contains(search) if search else true()


def _page(stmt, skip: int):
    return stmt.order_by(Exam.created_at.desc(), Exam.id).offset(skip).limit(settings.PAGE_SIZE)


@router.get("/count", response_model=CountOut, dependencies=admin_only)
def exams_count(search: Optional[str] = None, db: Session = Depends(get_db)):
    return CountOut(count=db.scalar(select(func.count(Exam.id)).where(_name_filter(search))))


@router.get("/intervals", response_model=List[ExamInterval])
def exam_intervals(exam_group_id: str, db: Session = Depends(get_db)):
    return [ExamInterval(start=start, end=end) for start, end in scheduler.group_intervals(db, exam_group_id)]


@router.get("", response_model=List[ExamOut], dependencies=admin_only)
def list_exams(skip: int = Query(0, ge=0), search: Optional[str] = None, db: Session = Depends(get_db)):
    return db.scalars(_page(select(Exam).where(_name_filter(search)), skip)).all()


@router.get("/by-group/{exam_group_id}", response_model=List[ExamOut], dependencies=admin_only)
def exams_by_group(exam_group_id: str, skip: int = Query(0, ge=0), db: Session = Depends(get_db)):
    return db.scalars(_page(select(Exam).where(Exam.exam_group_id == exam_group_id), skip)).all()


@router.get("/by-pool/{pool_id}", response_model=List[ExamOut], dependencies=admin_only)
def exams_by_pool(pool_id: str, skip: int = Query(0, ge=0), db: Session = Depends(get_db)):
    return db.scalars(_page(select(Exam).where(Exam.pool_id == pool_id), skip)).all()


@router.post("", response_model=ExamCreated, status_code=201)
def create_exam(payload: ExamCreate, user: CallerContext = Depends(get_current_user), db: Session = Depends(get_db),
                cache: AnalyticsCache = Depends(get_analytics_cache)):
    exam, selected = scheduler.create_exam(db, user, payload)
    cache.invalidate(pool_analytics_key(exam.pool_id))
    return ExamCreated(**ExamOut.model_validate(exam).model_dump(), selected_questions=selected)


@router.get("/{exam_id}", response_model=ExamDetail)
def get_exam(exam_id: str, user: CallerContext = Depends(get_current_user), db: Session = Depends(get_db)):
    exam = lifecycle.get_exam(db, user, exam_id)
    return ExamDetail(
        **ExamOut.model_validate(exam).model_dump(),
        exam_group_name=exam.exam_group.name,
        pool_name=exam.pool.name,
    )


@router.post("/{exam_id}/publish", response_model=ExamOut)
def publish_exam(exam_id: str, user: CallerContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return lifecycle.publish_exam(db, user, exam_id)


@router.post("/{exam_id}/unpublish", response_model=ExamOut)
def unpublish_exam(exam_id: str, user: CallerContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return lifecycle.unpublish_exam(db, user, exam_id)


@router.post("/{exam_id}/release-grades", response_model=ExamOut)
def release_grades(exam_id: str, user: CallerContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return lifecycle.release_grades(db, user, exam_id)
