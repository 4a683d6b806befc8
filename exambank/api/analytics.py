from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from exambank.core.auth import CallerContext, get_current_user, require_role
from exambank.core.cache import AnalyticsCache, exam_analytics_key, get_analytics_cache, pool_analytics_key
from exambank.core.database import get_db
from exambank.schemas import ExamAnalytics, PoolAnalytics, TestTakerResults
from exambank.services import analytics

router = APIRouter()


@router.get("/testtakers/{test_taker_id}", response_model=TestTakerResults)
def get_test_taker_results(test_taker_id: str, user: CallerContext = Depends(get_current_user),
                           db: Session = Depends(get_db)):
    return analytics.taker_results(db, user, test_taker_id)


@router.get("/pools/{pool_id}", response_model=PoolAnalytics)
def get_pool_analytics(pool_id: str, user: CallerContext = Depends(get_current_user), db: Session = Depends(get_db),
                       cache: AnalyticsCache = Depends(get_analytics_cache)):
    require_role(user)
    key = pool_analytics_key(pool_id)
    cached = cache.get(key)
    if cached is not None:
        return cached
    result = analytics.pool_analytics(db, user, pool_id)
    cache.set(key, result.model_dump(mode="json"))
    return result


@router.get("/exams/{exam_id}", response_model=ExamAnalytics)
def get_exam_analytics(exam_id: str, user: CallerContext = Depends(get_current_user), db: Session = Depends(get_db),
                       cache: AnalyticsCache = Depends(get_analytics_cache)):
    require_role(user)
    key = exam_analytics_key(exam_id)
    cached = cache.get(key)
    if cached is not None:
        return cached
    result = analytics.exam_analytics(db, user, exam_id)
    cache.set(key, result.model_dump(mode="json"))
    return result
