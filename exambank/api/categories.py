from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, true
from sqlalchemy.orm import Session

from exambank.core.auth import require_roles
from exambank.core.cache import AnalyticsCache, get_analytics_cache, pool_analytics_key
from exambank.core.config import settings
from exambank.core.database import get_db
from exambank.core.errors import InvalidRequest, NotFound
from exambank.models.orm import Category, Pool, Question
from exambank.schemas import CategoryCreate, CategoryOut, CategoryUpdate, CountOut

router = APIRouter()
admin_only = [Depends(require_roles("admin"))]


def _get_category(db: Session, category_id: str) -> Category:
    category = db.get(Category, category_id)
    if not category: raise NotFound("Category", category_id)
    return category


@router.get("/count", response_model=CountOut)
def category_count(db: Session = Depends(get_db)):
    return CountOut(count=db.scalar(select(func.count(Category.id))))


@router.post("", response_model=CategoryOut, status_code=201, dependencies=admin_only)
def add_category(payload: CategoryCreate, db: Session = Depends(get_db),
                 cache: AnalyticsCache = Depends(get_analytics_cache)):
    if not db.get(Pool, payload.pool_id): raise NotFound("Pool", payload.pool_id)
    category = Category(name=payload.name, num_of_questions=payload.num_of_questions, pool_id=payload.pool_id)
    db.add(category); db.commit(); db.refresh(category)
    cache.invalidate(pool_analytics_key(category.pool_id))
    return category


@router.get("", response_model=List[CategoryOut])
def list_categories(skip: int = Query(0, ge=0), search: Optional[str] = None, pool_id: Optional[str] = None,
                    db: Session = Depends(get_db)):
    stmt = select(Category).where(Category.name.contains(search) if search else true())
    if pool_id:
        stmt = stmt.where(Category.pool_id == pool_id)
    return db.scalars(stmt.order_by(Category.created_at, Category.id).offset(skip).limit(settings.PAGE_SIZE)).all()


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: str, db: Session = Depends(get_db)):
    return _get_category(db, category_id)


@router.put("/{category_id}", response_model=CategoryOut, dependencies=admin_only)
def update_category(category_id: str, payload: CategoryUpdate, db: Session = Depends(get_db),
                    cache: AnalyticsCache = Depends(get_analytics_cache)):
    category = _get_category(db, category_id)
    category.name = payload.name
    db.commit(); db.refresh(category)
    cache.invalidate(pool_analytics_key(category.pool_id))
    return category


@router.delete("/{category_id}", response_model=CategoryOut, dependencies=admin_only)
def delete_category(category_id: str, db: Session = Depends(get_db),
                    cache: AnalyticsCache = Depends(get_analytics_cache)):
    category = _get_category(db, category_id)
    if db.scalar(select(func.count(Question.id)).where(Question.cat_id == category.id)):
        raise InvalidRequest("Category still has questions", details={"category_id": category_id})
    out = CategoryOut.model_validate(category)
    db.delete(category); db.commit()
    cache.invalidate(pool_analytics_key(out.pool_id))
    return out
