import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _str_enum(enum_cls):
    return SQLEnum(enum_cls, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e])


class Base(DeclarativeBase): pass


class QuestionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    SELECTED = "selected"
    REJECTED = "rejected"


class ExamStatus(str, enum.Enum):
    GENERATED = "generated"
    PUBLISHED = "published"
    GRADE_RELEASED = "gradeReleased"


# ========== Content Models ==========

class Pool(Base):
    __tablename__ = "pools"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    categories: Mapped[List["Category"]] = relationship(back_populates="pool", order_by="Category.created_at")
    contributors: Mapped[List["Contributor"]] = relationship(back_populates="pool", order_by="Contributor.created_at")
    exams: Mapped[List["Exam"]] = relationship(back_populates="pool")


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (
        Index("idx_categories_pool", "pool_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    pool_id: Mapped[str] = mapped_column(String(36), ForeignKey("pools.id", ondelete="CASCADE"), nullable=False)
    num_of_questions: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    pool: Mapped["Pool"] = relationship(back_populates="categories")
    questions: Mapped[List["Question"]] = relationship(back_populates="category", order_by="Question.created_at")


class Contributor(Base):
    __tablename__ = "contributors"
    __table_args__ = (
        Index("idx_contributors_pool", "pool_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    pool_id: Mapped[str] = mapped_column(String(36), ForeignKey("pools.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    pool: Mapped["Pool"] = relationship(back_populates="contributors")
    questions: Mapped[List["Question"]] = relationship(back_populates="contributor")


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("idx_questions_cat_status", "cat_id", "status"),
        Index("idx_questions_exam", "exam_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    cat_id: Mapped[str] = mapped_column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    contributor_id: Mapped[str] = mapped_column(String(36), ForeignKey("contributors.id"), nullable=False)
    status: Mapped[QuestionStatus] = mapped_column(_str_enum(QuestionStatus), nullable=False, default=QuestionStatus.PENDING)
    exam_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("exams.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    category: Mapped["Category"] = relationship(back_populates="questions")
    contributor: Mapped["Contributor"] = relationship(back_populates="questions")
    exam: Mapped[Optional["Exam"]] = relationship(back_populates="questions")
    answers: Mapped[List["QuestionAnswer"]] = relationship(back_populates="question", cascade="all, delete-orphan")
    responses: Mapped[List["TestTakerResponse"]] = relationship(back_populates="question")


class QuestionAnswer(Base):
    __tablename__ = "question_answers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)

    question: Mapped["Question"] = relationship(back_populates="answers")


# ========== Scheduling Models ==========

class ExamGroup(Base):
    __tablename__ = "exam_groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    exams: Mapped[List["Exam"]] = relationship(back_populates="exam_group")
    test_takers: Mapped[List["TestTaker"]] = relationship(back_populates="exam_group")


class Exam(Base):
    __tablename__ = "exams"
    __table_args__ = (
        Index("idx_exams_group", "exam_group_id"),
        Index("idx_exams_pool", "pool_id"),
        Index("idx_exams_created", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    exam_group_id: Mapped[str] = mapped_column(String(36), ForeignKey("exam_groups.id"), nullable=False)
    pool_id: Mapped[str] = mapped_column(String(36), ForeignKey("pools.id"), nullable=False)
    number_of_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    testing_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    exam_release_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[ExamStatus] = mapped_column(_str_enum(ExamStatus), nullable=False, default=ExamStatus.GENERATED)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    exam_group: Mapped["ExamGroup"] = relationship(back_populates="exams")
    pool: Mapped["Pool"] = relationship(back_populates="exams")
    questions: Mapped[List["Question"]] = relationship(back_populates="exam", order_by="Question.created_at")
    sessions: Mapped[List["TestSession"]] = relationship(back_populates="exam")


# ========== Delivery Models ==========

class TestTaker(Base):
    __tablename__ = "test_takers"
    __test__ = False

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    exam_group_id: Mapped[str] = mapped_column(String(36), ForeignKey("exam_groups.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    exam_group: Mapped["ExamGroup"] = relationship(back_populates="test_takers")


class TestSession(Base):
    __tablename__ = "test_sessions"
    __test__ = False
    __table_args__ = (
        UniqueConstraint("exam_id", "test_taker_id", name="uq_test_session"),
        Index("idx_ts_exam", "exam_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    exam_id: Mapped[str] = mapped_column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    test_taker_id: Mapped[str] = mapped_column(String(36), ForeignKey("test_takers.id", ondelete="CASCADE"), nullable=False)
    grade: Mapped[int] = mapped_column(Integer, default=0)
    is_submitted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    exam: Mapped["Exam"] = relationship(back_populates="sessions")
    test_taker: Mapped["TestTaker"] = relationship()


class TestTakerResponse(Base):
    __tablename__ = "test_taker_responses"
    __test__ = False
    __table_args__ = (
        UniqueConstraint("test_taker_id", "question_id", name="uq_test_taker_response"),
        Index("idx_ttr_exam_taker", "exam_id", "test_taker_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    exam_id: Mapped[str] = mapped_column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    test_taker_id: Mapped[str] = mapped_column(String(36), ForeignKey("test_takers.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)

    question: Mapped["Question"] = relationship(back_populates="responses")
