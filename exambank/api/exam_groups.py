from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from exambank.core.auth import require_roles
from exambank.core.config import settings
from exambank.core.database import get_db
from exambank.core.errors import NotFound
from exambank.models.orm import ExamGroup
from exambank.schemas import ExamGroupCreate, ExamGroupOut

router = APIRouter()


@router.post("", response_model=ExamGroupOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_exam_group(payload: ExamGroupCreate, db: Session = Depends(get_db)):
    group = ExamGroup(name=payload.name)
    db.add(group); db.commit(); db.refresh(group)
    return group


@router.get("", response_model=List[ExamGroupOut])
def list_exam_groups(skip: int = Query(0, ge=0), db: Session = Depends(get_db)):
    stmt = select(ExamGroup).order_by(ExamGroup.created_at.desc(), ExamGroup.id).offset(skip).limit(settings.PAGE_SIZE)
    return db.scalars(stmt).all()


@router.get("/{exam_group_id}", response_model=ExamGroupOut)
def get_exam_group(exam_group_id: str, db: Session = Depends(get_db)):
    group = db.get(ExamGroup, exam_group_id)
    if not group: raise NotFound("Exam group", exam_group_id)
    return group
