# services/providers.py
"""FastAPI dependency providers; override in tests via app.dependency_overrides."""
from functools import lru_cache

from config import get_settings
from services.feedback_service import FeedbackService
from services.gemini_service import GeminiService
from services.interview_repository import InterviewRepository
from services.question_service import QuestionService
from services.session_manager import SessionManager, session_manager


@lru_cache
def get_gemini() -> GeminiService:
    return GeminiService()


@lru_cache
def get_repository() -> InterviewRepository:
    return InterviewRepository()


def get_feedback_service() -> FeedbackService:
    return FeedbackService(get_gemini(), get_repository())


def get_question_service() -> QuestionService:
    return QuestionService(get_gemini(), get_repository(), get_settings().default_question_amount)


def get_session_manager() -> SessionManager:
    return session_manager
