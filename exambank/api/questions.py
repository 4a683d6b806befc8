import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from exambank.core.auth import CallerContext, require_roles
from exambank.core.cache import AnalyticsCache, get_analytics_cache, pool_analytics_key
from exambank.core.config import settings
from exambank.core.database import get_db
from exambank.core.errors import InvalidRequest, NotFound
from exambank.models.orm import Category, Contributor, Question, QuestionAnswer, QuestionStatus
from exambank.schemas import QuestionCreate, QuestionOut, QuestionReview

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=QuestionOut, status_code=201)
def create_question(payload: QuestionCreate, user: CallerContext = Depends(require_roles("admin")),
                    db: Session = Depends(get_db), cache: AnalyticsCache = Depends(get_analytics_cache)):
    category = db.get(Category, payload.cat_id)
    if not category: raise NotFound("Category", payload.cat_id)
    contributor = db.get(Contributor, payload.contributor_id)
    if not contributor: raise NotFound("Contributor", payload.contributor_id)
    if contributor.pool_id != category.pool_id:
        raise InvalidRequest("Contributor and category belong to different pools", field="contributor_id")

    question = Question(title=payload.title, cat_id=category.id, contributor_id=contributor.id,
                        status=QuestionStatus.PENDING)
    question.answers = [QuestionAnswer(text=a.text, is_correct=a.is_correct) for a in payload.answers]
    db.add(question); db.commit(); db.refresh(question)
    cache.invalidate(pool_analytics_key(category.pool_id))
    logger.info(f"Question {question.id} added to category {category.id} by {user.caller_id}")
    return question


@router.get("/by-category/{category_id}", response_model=List[QuestionOut], dependencies=[Depends(require_roles("admin"))])
def questions_by_category(category_id: str, status: Optional[QuestionStatus] = None, skip: int = Query(0, ge=0),
                          db: Session = Depends(get_db)):
    stmt = select(Question).where(Question.cat_id == category_id)
    if status is not None:
        stmt = stmt.where(Question.status == status)
    return db.scalars(stmt.order_by(Question.created_at, Question.id).offset(skip).limit(settings.PAGE_SIZE)).all()


@router.post("/{question_id}/review", response_model=QuestionOut)
def review_question(question_id: str, payload: QuestionReview, user: CallerContext = Depends(require_roles("admin")),
                    db: Session = Depends(get_db), cache: AnalyticsCache = Depends(get_analytics_cache)):
    question = db.get(Question, question_id)
    if not question: raise NotFound("Question", question_id)
    if question.status != QuestionStatus.PENDING:
        raise InvalidRequest(f"Only pending questions can be reviewed, question is {question.status.value}")
    question.status = QuestionStatus(payload.status)
    db.commit(); db.refresh(question)
    cache.invalidate(pool_analytics_key(question.category.pool_id))
    logger.info(f"Question {question.id} {question.status.value} by {user.caller_id}")
    return question
