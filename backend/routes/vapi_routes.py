"""
Voice engine routes - question-authoring callback and server webhook
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from config import get_settings
from models.request import GenerateQuestionsRequest
from services.gemini_service import GenerationError
from services.interview_repository import PersistenceError
from services.providers import get_question_service, get_session_manager
from services.question_service import QuestionService
from services.session_manager import SessionManager
from utils.auth import verify_vapi_secret
from utils.logger import get_logger
from utils.rate_limit import check_rate_limit

router = APIRouter(prefix="/vapi", tags=["Vapi"])
logger = get_logger("VapiRoutes")


@router.get("/generate")
async def generate_ping():
    return {"success": True, "data": "THANK YOU!"}


@router.post("/generate")
async def generate_questions(
    request: GenerateQuestionsRequest,
    question_service: QuestionService = Depends(get_question_service),
    auth: None = Depends(verify_vapi_secret)
):
    """
    Called by the question-authoring workflow once it has collected
    role, level, tech stack, focus and amount from the user.
    """
    await check_rate_limit(request.userid, "generate", get_settings().generate_rate_limit_per_minute)
    try:
        interview = await question_service.generate_interview(request)
    except (GenerationError, PersistenceError) as e:
        logger.error(f"Question generation failed for {request.userid}: {e}", exc_info=True)
        raise HTTPException(500, {"success": False, "error": str(e)})

    return {"success": True, "interview_id": interview.id, "questions": interview.questions}


@router.post("/webhook")
async def vapi_webhook(
    body: Dict[str, Any] = Body(...),
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_vapi_secret)
):
    """Server messages (status, transcript, speech updates) for live calls"""
    message = body.get("message")
    if not isinstance(message, dict):
        raise HTTPException(400, "Missing message")
    routed = manager.route_server_message(message)
    return {"received": True, "routed": routed}
