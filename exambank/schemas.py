from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from exambank.models.orm import ExamStatus, QuestionStatus


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --------- Exams ---------

class CategorySelection(BaseModel):
    selected_id: str
    number_of_question_per_category: int


class ExamCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    exam_group_id: str
    pool_id: str
    number_of_questions: int
    testing_date: datetime
    duration: int
    exam_release_date: datetime
    categories: List[CategorySelection]

    @field_validator("testing_date", "exam_release_date")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return as_naive_utc(v)


class ExamOut(ORMModel):
    id: str
    name: str
    exam_group_id: str
    pool_id: str
    number_of_questions: int
    testing_date: datetime
    duration: int
    exam_release_date: datetime
    status: ExamStatus
    created_at: datetime
    updated_at: datetime


class ExamCreated(ExamOut):
    selected_questions: int


class ExamDetail(ExamOut):
    exam_group_name: str
    pool_name: str


class ExamInterval(BaseModel):
    start: datetime
    end: datetime


# --------- Resources ---------

class PoolCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class PoolOut(ORMModel):
    id: str
    name: str
    created_at: datetime


class ExamGroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class ExamGroupOut(ORMModel):
    id: str
    name: str
    created_at: datetime


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    num_of_questions: int = Field(ge=0, default=0)
    pool_id: str


class CategoryUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class CategoryOut(ORMModel):
    id: str
    name: str
    pool_id: str
    num_of_questions: int


class ContributorCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    pool_id: str


class ContributorOut(ORMModel):
    id: str
    name: str
    pool_id: str


class AnswerIn(BaseModel):
    text: str
    is_correct: bool = False


class QuestionCreate(BaseModel):
    title: str = Field(min_length=1)
    cat_id: str
    contributor_id: str
    answers: List[AnswerIn] = []


class QuestionReview(BaseModel):
    status: Literal["approved", "rejected"]


class QuestionOut(ORMModel):
    id: str
    title: str
    cat_id: str
    contributor_id: str
    status: QuestionStatus
    exam_id: Optional[str] = None


class TestTakerCreate(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    exam_group_id: str


class TestTakerOut(ORMModel):
    id: str
    username: str
    exam_group_id: str


class CountOut(BaseModel):
    count: int


# --------- Analytics ---------

ChartPayload = Dict[str, Any]


class TestTakerExamResult(BaseModel):
    id: str
    name: str
    pool: str
    num_of_questions: int
    categories: Dict[str, int]
    grade: float
    test_time: int
    test_duration: int
    ranking: Optional[int] = None
    chart_data: ChartPayload


class TestTakerResults(BaseModel):
    result: List[TestTakerExamResult]
    average_grade: Optional[float] = None
    highest_grade: Optional[float] = None
    lowest_grade: Optional[float] = None
    username: str


class CategoryTotal(BaseModel):
    category_name: str
    total_questions: int


class ContributorShare(BaseModel):
    contributor_name: str
    contribution_percentage: float


class PoolAnalytics(BaseModel):
    pool_name: str
    contributor_count: int
    category_distribution: List[CategoryTotal]
    exam_count: int
    total_questions: int
    top_contributors: List[ContributorShare]
    top_categories: List[CategoryTotal]
    question_status_metrics: Dict[str, int]
    total_approved_questions: int
    status_distribution: ChartPayload
    cat_distribution: ChartPayload


class QuestionPerformance(BaseModel):
    title: str
    contr_id: str
    contr_name: str
    percentage_correct: Optional[float] = None


class ExamAnalytics(BaseModel):
    exam_id: str
    total_questions: int
    total_test_takers: int
    percentage_passed: Optional[float] = None
    average_grade: Optional[float] = None
    highest_grade: Optional[float] = None
    lowest_grade: Optional[float] = None
    highest_performing_questions: List[QuestionPerformance]
    lowest_performing_questions: List[QuestionPerformance]
    category_distribution: ChartPayload
