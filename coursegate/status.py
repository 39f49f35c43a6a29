"""Status values shared by lessons, modules, courses and knowledge-check sessions."""

from enum import Enum


class ProgressStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
