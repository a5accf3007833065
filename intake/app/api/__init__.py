"""API endpoints package for the intake service."""

from intake.app.api.questions import router as questions_router

__all__ = [
    "questions_router",
]
