"""
coursegate: learner progress and course gating engine.

Components:
- db: Progress store (SQLAlchemy models + repository)
- course: Course definitions, catalog, navigation tree
- progress: Heartbeat ingestion and lesson completion
- knowledge_check: Question handlers and the quiz session state machine
- gating: Lesson / knowledge-check lock resolution
- analytics: Course completion and admin dashboard metrics
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
