from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from exambank.core.auth import require_roles
from exambank.core.cache import AnalyticsCache, get_analytics_cache, pool_analytics_key
from exambank.core.database import get_db
from exambank.core.errors import NotFound
from exambank.models.orm import Contributor, Pool
from exambank.schemas import ContributorCreate, ContributorOut

router = APIRouter()


@router.post("", response_model=ContributorOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_contributor(payload: ContributorCreate, db: Session = Depends(get_db),
                       cache: AnalyticsCache = Depends(get_analytics_cache)):
    if not db.get(Pool, payload.pool_id): raise NotFound("Pool", payload.pool_id)
    contributor = Contributor(name=payload.name, pool_id=payload.pool_id)
    db.add(contributor); db.commit(); db.refresh(contributor)
    cache.invalidate(pool_analytics_key(contributor.pool_id))
    return contributor


@router.get("/by-pool/{pool_id}", response_model=List[ContributorOut], dependencies=[Depends(require_roles("admin"))])
def contributors_by_pool(pool_id: str, db: Session = Depends(get_db)):
    return db.scalars(select(Contributor).where(Contributor.pool_id == pool_id).order_by(Contributor.created_at)).all()
