# ========================================
# routes/session_routes.py - Voice call sessions
# ========================================

from fastapi import APIRouter, HTTPException, Depends

from config import get_settings
from models.request import (
    ClientEventRequest,
    StartGenerateSessionRequest,
    StartInterviewSessionRequest,
)
from models.session import CallMode, SessionSnapshot
from services.call_session import CallSession, IllegalTransitionError
from services.feedback_service import FeedbackService
from services.interview_repository import InterviewRepository, PersistenceError
from services.providers import get_feedback_service, get_repository, get_session_manager
from services.session_manager import SessionManager, SessionNotFoundError
from utils.auth import verify_api_token
from utils.logger import get_logger
from utils.rate_limit import check_rate_limit

router = APIRouter(prefix="/session", tags=["Session"])
logger = get_logger("SessionRoutes")


def _lookup(manager: SessionManager, session_id: str) -> CallSession:
    try:
        return manager.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")


@router.post("/generate", response_model=SessionSnapshot)
async def create_generate_session(
    request: StartGenerateSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_api_token)
):
    """Create a question-authoring call session (IDLE until started)"""
    await check_rate_limit(request.user_id, "session", get_settings().session_rate_limit_per_minute)
    session = manager.create(CallMode.GENERATE, request.user_id, request.user_name)
    return session.snapshot()


@router.post("/interview", response_model=SessionSnapshot)
async def create_interview_session(
    request: StartInterviewSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
    repository: InterviewRepository = Depends(get_repository),
    feedback_service: FeedbackService = Depends(get_feedback_service),
    auth: None = Depends(verify_api_token)
):
    """Create a scripted interview call session (IDLE until started)"""
    await check_rate_limit(request.user_id, "session", get_settings().session_rate_limit_per_minute)

    questions = request.questions
    if questions is None:
        try:
            interview = repository.get_interview_by_id(request.interview_id)
        except PersistenceError as e:
            logger.error(f"Error loading interview {request.interview_id}: {e}", exc_info=True)
            raise HTTPException(502, "Failed to load interview")
        if interview is None:
            raise HTTPException(404, "Interview not found")
        questions = interview.questions

    session = manager.create(
        CallMode.INTERVIEW,
        request.user_id,
        request.user_name,
        interview_id=request.interview_id,
        questions=questions,
        synthesize=feedback_service.synthesize,
    )
    return session.snapshot()


@router.get("/{session_id}", response_model=SessionSnapshot)
async def get_call_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_api_token)
):
    return _lookup(manager, session_id).snapshot()


@router.post("/{session_id}/start", response_model=SessionSnapshot)
async def start_call(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_api_token)
):
    """Start the voice call; a failed start comes back IDLE with an error attached"""
    try:
        session = await manager.start_call(session_id)
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")
    except IllegalTransitionError as e:
        raise HTTPException(409, str(e))
    return session.snapshot()


@router.post("/{session_id}/stop", response_model=SessionSnapshot)
async def stop_call(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_api_token)
):
    """Request hang-up; the session finishes when the engine confirms"""
    session = _lookup(manager, session_id)
    try:
        await session.stop_call()
    except IllegalTransitionError as e:
        raise HTTPException(409, str(e))
    return session.snapshot()


@router.post("/{session_id}/retry", response_model=SessionSnapshot)
async def retry_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_api_token)
):
    """Discard the session and start over from a fresh IDLE session"""
    try:
        session = manager.retry(session_id)
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")
    except IllegalTransitionError as e:
        raise HTTPException(409, str(e))
    return session.snapshot()


@router.post("/{session_id}/events", response_model=SessionSnapshot)
async def forward_client_event(
    session_id: str,
    request: ClientEventRequest,
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_api_token)
):
    """Voice SDK events raised in the browser (errors, transcripts, speech)"""
    session = _lookup(manager, session_id)
    session.engine.dispatch_client_event(request.event, request.payload)
    return session.snapshot()


@router.delete("/{session_id}")
async def close_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    auth: None = Depends(verify_api_token)
):
    try:
        manager.close(session_id)
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")
    return {"message": "Session closed", "session_id": session_id}
