"""
Read-only analytics views.

Each view loads the records it needs, folds them into summary numbers and
attaches Chart.js payloads. Numbers are deterministic for unchanged data;
chart colors come from the supplied palette.
"""
import logging
import math
from collections import Counter
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exambank.core.auth import CallerContext, require_role
from exambank.core.config import settings
from exambank.core.errors import DataAccessError, NotFound
from exambank.models.orm import (
    Category,
    Contributor,
    Exam,
    ExamStatus,
    Pool,
    Question,
    QuestionStatus,
    TestSession,
    TestTaker,
    TestTakerResponse,
)
from exambank.schemas import (
    CategoryTotal,
    ContributorShare,
    ExamAnalytics,
    PoolAnalytics,
    QuestionPerformance,
    TestTakerExamResult,
    TestTakerResults,
)
from exambank.services.charts import ColorPalette, RandomColorPalette, bar_chart, doughnut_chart, titled

logger = logging.getLogger(__name__)

INCORRECT_BUCKET = "Incorrect"


@contextmanager
def data_access(view: str) -> Iterator[None]:
    """Turn driver/ORM failures into DataAccessError so they are not mistaken for missing rows."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"{view} query failed: {e}", exc_info=True)
        raise DataAccessError(f"Could not load {view}") from e


def percentage(part: float, whole: float) -> float:
    return part / whole * 100


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _summary(values: List[float]) -> Dict[str, Optional[float]]:
    if not values:
        return {"average": None, "highest": None, "lowest": None}
    return {"average": sum(values) / len(values), "highest": max(values), "lowest": min(values)}


# ---------------------------------------------------------------------------
# Test taker results
# ---------------------------------------------------------------------------

def _correct_by_category(db: Session, exam_id: str, test_taker_id: str) -> Counter:
    names = db.scalars(
        select(Category.name)
        .join(Question, Question.cat_id == Category.id)
        .join(TestTakerResponse, TestTakerResponse.question_id == Question.id)
        .where(
            TestTakerResponse.exam_id == exam_id,
            TestTakerResponse.test_taker_id == test_taker_id,
            TestTakerResponse.is_correct.is_(True),
        )
        .order_by(Category.created_at, Category.name)
    ).all()
    return Counter(names)


def taker_results(db: Session, ctx: CallerContext, test_taker_id: str,
                  palette: Optional[ColorPalette] = None) -> TestTakerResults:
    """Per-exam results of one test taker across the released exams of their group.

    ``ranking`` is the position of the test taker's session among the exam's
    submitted sessions in creation order, not a rank by grade.
    """
    require_role(ctx)
    palette = palette or RandomColorPalette()
    with data_access("test taker results"):
        taker = db.get(TestTaker, test_taker_id)
        if taker is None:
            raise NotFound("Test taker", test_taker_id)
        exams = db.scalars(
            select(Exam)
            .where(Exam.exam_group_id == taker.exam_group_id, Exam.status != ExamStatus.GENERATED)
            .order_by(Exam.created_at.desc(), Exam.id)
        ).all()

        results: List[TestTakerExamResult] = []
        for exam in exams:
            sessions = db.scalars(
                select(TestSession)
                .where(TestSession.exam_id == exam.id, TestSession.is_submitted.is_(True))
                .order_by(TestSession.created_at, TestSession.id)
            ).all()
            position = next((i for i, s in enumerate(sessions, start=1) if s.test_taker_id == taker.id), None)
            if position is None:
                continue
            session = sessions[position - 1]

            correct = _correct_by_category(db, exam.id, taker.id)
            categories: Dict[str, int] = dict(correct)
            incorrect = exam.number_of_questions - sum(correct.values())
            if incorrect > 0:
                categories[INCORRECT_BUCKET] = incorrect

            elapsed = (session.updated_at - session.created_at).total_seconds() / 60
            results.append(TestTakerExamResult(
                id=exam.id,
                name=exam.name,
                pool=exam.pool.name,
                num_of_questions=exam.number_of_questions,
                categories=categories,
                grade=percentage(session.grade, exam.number_of_questions),
                test_time=abs(math.floor(elapsed + 0.5)),
                test_duration=exam.duration,
                ranking=position,
                chart_data=doughnut_chart(list(categories), list(categories.values()), palette,
                                          include_black=incorrect > 0),
            ))

    summary = _summary([r.grade for r in results])
    return TestTakerResults(
        result=results,
        average_grade=summary["average"],
        highest_grade=summary["highest"],
        lowest_grade=summary["lowest"],
        username=taker.username,
    )


# ---------------------------------------------------------------------------
# Pool analytics
# ---------------------------------------------------------------------------

def pool_analytics(db: Session, ctx: CallerContext, pool_id: str,
                   palette: Optional[ColorPalette] = None) -> PoolAnalytics:
    require_role(ctx)
    palette = palette or RandomColorPalette()
    with data_access("pool analytics"):
        pool = db.get(Pool, pool_id)
        if pool is None:
            raise NotFound("Pool", pool_id, message="Pool not found")

        categories = db.scalars(
            select(Category).where(Category.pool_id == pool.id).order_by(Category.created_at, Category.name)
        ).all()
        question_rows = db.execute(
            select(Question.cat_id, Question.status)
            .join(Category, Category.id == Question.cat_id)
            .where(Category.pool_id == pool.id)
            .order_by(Category.created_at, Question.created_at, Question.id)
        ).all()
        contributors = db.scalars(
            select(Contributor).where(Contributor.pool_id == pool.id).order_by(Contributor.created_at, Contributor.name)
        ).all()
        authored = dict(db.execute(
            select(Question.contributor_id, func.count(Question.id))
            .where(Question.contributor_id.in_([c.id for c in contributors]))
            .group_by(Question.contributor_id)
        ).all())
        exam_count = db.scalar(select(func.count(Exam.id)).where(Exam.pool_id == pool.id))

    per_category = Counter(cat_id for cat_id, _ in question_rows)
    distribution = [CategoryTotal(category_name=c.name, total_questions=per_category.get(c.id, 0)) for c in categories]
    total_questions = sum(d.total_questions for d in distribution)

    shares = [
        ContributorShare(
            contributor_name=c.name,
            contribution_percentage=percentage(authored.get(c.id, 0), total_questions) if total_questions else 0.0,
        )
        for c in contributors
    ]
    top_contributors = sorted(shares, key=lambda s: s.contribution_percentage, reverse=True)[:3]
    top_categories = sorted(distribution, key=lambda d: d.total_questions, reverse=True)[:3]

    status_metrics: Dict[str, int] = dict(Counter(QuestionStatus(status).value for _, status in question_rows))

    status_chart = doughnut_chart(
        list(status_metrics), list(status_metrics.values()), palette,
        title=titled(not status_metrics, "Question Status Distribution"),
    )
    category_chart = bar_chart(
        [d.category_name for d in distribution], [d.total_questions for d in distribution], palette,
        dataset_label="Total Questions",
        title=titled(not distribution, "Category Distribution"),
    )
    return PoolAnalytics(
        pool_name=pool.name,
        contributor_count=len(contributors),
        category_distribution=distribution,
        exam_count=exam_count or 0,
        total_questions=total_questions,
        top_contributors=top_contributors,
        top_categories=top_categories,
        question_status_metrics=status_metrics,
        total_approved_questions=status_metrics.get(QuestionStatus.APPROVED.value, 0),
        status_distribution=status_chart,
        cat_distribution=category_chart,
    )


# ---------------------------------------------------------------------------
# Exam analytics
# ---------------------------------------------------------------------------

def exam_analytics(db: Session, ctx: CallerContext, exam_id: str,
                   palette: Optional[ColorPalette] = None) -> ExamAnalytics:
    """Grade statistics and question performance for one exam.

    Questions nobody answered report ``percentage_correct=None`` and are left
    out of the best/worst rankings.
    """
    require_role(ctx)
    palette = palette or RandomColorPalette()
    with data_access("exam analytics"):
        exam = db.get(Exam, exam_id)
        if exam is None:
            raise NotFound("Exam", exam_id, message="Exam not found")

        grades = db.scalars(
            select(TestSession.grade)
            .where(TestSession.exam_id == exam.id, TestSession.is_submitted.is_(True))
            .order_by(TestSession.created_at, TestSession.id)
        ).all()
        questions = db.execute(
            select(Question.id, Question.title, Question.contributor_id, Contributor.name, Category.name)
            .join(Contributor, Contributor.id == Question.contributor_id)
            .join(Category, Category.id == Question.cat_id)
            .where(Question.exam_id == exam.id)
            .order_by(Question.created_at, Question.id)
        ).all()
        answered = {
            question_id: (total, correct or 0)
            for question_id, total, correct in db.execute(
                select(
                    TestTakerResponse.question_id,
                    func.count(TestTakerResponse.id),
                    func.sum(case((TestTakerResponse.is_correct.is_(True), 1), else_=0)),
                )
                .where(TestTakerResponse.question_id.in_([q[0] for q in questions]))
                .group_by(TestTakerResponse.question_id)
            ).all()
        }

    nq = exam.number_of_questions
    grade_percentages = [percentage(g, nq) for g in grades]
    total_takers = len(grade_percentages)
    passed = sum(1 for g in grade_percentages if g > settings.PASS_THRESHOLD)
    summary = _summary(grade_percentages)

    performance: List[QuestionPerformance] = []
    for question_id, title, contributor_id, contributor_name, _ in questions:
        total, correct = answered.get(question_id, (0, 0))
        performance.append(QuestionPerformance(
            title=truncate(title, settings.QUESTION_TITLE_MAX),
            contr_id=contributor_id,
            contr_name=contributor_name,
            percentage_correct=percentage(correct, total) if total else None,
        ))
    ranked = sorted((p for p in performance if p.percentage_correct is not None),
                    key=lambda p: p.percentage_correct, reverse=True)

    per_category = Counter(category_name for *_, category_name in questions)
    chart = doughnut_chart(
        list(per_category), list(per_category.values()), palette,
        title=titled(not per_category, "Category Distribution"), title_size=14,
    )
    return ExamAnalytics(
        exam_id=exam.id,
        total_questions=len(questions),
        total_test_takers=total_takers,
        percentage_passed=percentage(passed, total_takers) if total_takers else None,
        average_grade=summary["average"],
        highest_grade=summary["highest"],
        lowest_grade=summary["lowest"],
        highest_performing_questions=ranked[:3],
        lowest_performing_questions=list(reversed(ranked[-3:])),
        category_distribution=chart,
    )
