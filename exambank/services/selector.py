import logging
import random
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from exambank.models.orm import Question, QuestionStatus

logger = logging.getLogger(__name__)


def shuffled(items: list, rng: Optional[random.Random] = None) -> list:
    """Uniform random permutation (Fisher-Yates) of a copy of ``items``."""
    rng = rng or random
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def claim_question(db: Session, question_id: str, exam_id: str) -> bool:
    """Bind a question to an exam only if it is still approved."""
    result = db.execute(
        update(Question)
        .where(Question.id == question_id, Question.status == QuestionStatus.APPROVED)
        .values(exam_id=exam_id, status=QuestionStatus.SELECTED)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def select_questions(db: Session, exam_id: str, category_id: str, count: int,
                     rng: Optional[random.Random] = None) -> List[str]:
    """Draw up to ``count`` approved questions of a category into an exam.

    A short category yields fewer questions without error. Claims run in the
    caller's transaction; nothing is committed here.
    """
    if count <= 0:
        return []
    candidates = db.scalars(
        select(Question.id)
        .where(Question.cat_id == category_id, Question.status == QuestionStatus.APPROVED)
        .order_by(Question.created_at, Question.id)
    ).all()

    claimed: List[str] = []
    for question_id in shuffled(candidates, rng):
        if len(claimed) == count:
            break
        if claim_question(db, question_id, exam_id):
            claimed.append(question_id)
        else:
            logger.info(f"Question {question_id} was claimed concurrently, trying next candidate")

    if len(claimed) < count:
        logger.info(f"Category {category_id} had {len(claimed)} approved questions, {count} requested for exam {exam_id}")
    return claimed
