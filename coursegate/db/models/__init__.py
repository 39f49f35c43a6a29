# SQLAlchemy models
from .base import Base
from .progress import (
    CourseProgress,
    Enrollment,
    KnowledgeCheckAnswer,
    KnowledgeCheckSession,
    LessonProgress,
    PlatformSetting,
)

__all__ = [
    # Base
    "Base",
    # Progress
    "LessonProgress",
    "CourseProgress",
    "KnowledgeCheckSession",
    "KnowledgeCheckAnswer",
    # Administration
    "Enrollment",
    "PlatformSetting",
]
