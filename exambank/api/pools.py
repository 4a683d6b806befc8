from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, true
from sqlalchemy.orm import Session

from exambank.core.auth import require_roles
from exambank.core.config import settings
from exambank.core.database import get_db
from exambank.core.errors import NotFound
from exambank.models.orm import Pool
from exambank.schemas import CountOut, PoolCreate, PoolOut

router = APIRouter()


@router.post("", response_model=PoolOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_pool(payload: PoolCreate, db: Session = Depends(get_db)):
    pool = Pool(name=payload.name)
    db.add(pool); db.commit(); db.refresh(pool)
    return pool


@router.get("/count", response_model=CountOut)
def pools_count(db: Session = Depends(get_db)):
    return CountOut(count=db.scalar(select(func.count(Pool.id))))


@router.get("", response_model=List[PoolOut])
def list_pools(skip: int = Query(0, ge=0), search: Optional[str] = None, db: Session = Depends(get_db)):
    stmt = select(Pool).where(Pool.name.contains(search) if search else true())
    return db.scalars(stmt.order_by(Pool.created_at.desc(), Pool.id).offset(skip).limit(settings.PAGE_SIZE)).all()


@router.get("/{pool_id}", response_model=PoolOut)
def get_pool(pool_id: str, db: Session = Depends(get_db)):
    pool = db.get(Pool, pool_id)
    if not pool: raise NotFound("Pool", pool_id)
    return pool
