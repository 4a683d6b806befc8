from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from exambank.core.auth import require_roles
from exambank.core.database import get_db
from exambank.core.errors import InvalidRequest, NotFound
from exambank.models.orm import ExamGroup, TestTaker
from exambank.schemas import TestTakerCreate, TestTakerOut

router = APIRouter()


@router.post("", response_model=TestTakerOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_test_taker(payload: TestTakerCreate, db: Session = Depends(get_db)):
    if not db.get(ExamGroup, payload.exam_group_id): raise NotFound("Exam group", payload.exam_group_id)
    if db.scalar(select(TestTaker.id).where(TestTaker.username == payload.username)):
        raise InvalidRequest(f"Username {payload.username} is already taken", field="username")
    taker = TestTaker(username=payload.username, exam_group_id=payload.exam_group_id)
    db.add(taker); db.commit(); db.refresh(taker)
    return taker


@router.get("/{test_taker_id}", response_model=TestTakerOut, dependencies=[Depends(require_roles("admin"))])
def get_test_taker(test_taker_id: str, db: Session = Depends(get_db)):
    taker = db.get(TestTaker, test_taker_id)
    if not taker: raise NotFound("Test taker", test_taker_id)
    return taker
