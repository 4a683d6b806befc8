from exambank.models.orm import (
    Base,
    Category,
    Contributor,
    Exam,
    ExamGroup,
    ExamStatus,
    Pool,
    Question,
    QuestionAnswer,
    QuestionStatus,
    TestSession,
    TestTaker,
    TestTakerResponse,
)

__all__ = [
    "Base",
    "Category",
    "Contributor",
    "Exam",
    "ExamGroup",
    "ExamStatus",
    "Pool",
    "Question",
    "QuestionAnswer",
    "QuestionStatus",
    "TestSession",
    "TestTaker",
    "TestTakerResponse",
]
