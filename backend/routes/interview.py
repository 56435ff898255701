from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from config import get_settings
from models.feedback import FeedbackRequest
from models.request import CreateFeedbackRequest
from services.feedback_service import FeedbackService, destination_for
from services.interview_repository import InterviewRepository, PersistenceError
from services.providers import get_feedback_service, get_repository
from utils.auth import verify_api_token
from utils.logger import get_logger

log = get_logger(__name__)
router = APIRouter(prefix="/interview", tags=["Interview"])


@router.get("/user/{user_id}")
async def get_user_interviews(
    user_id: str,
    repository: InterviewRepository = Depends(get_repository),
    auth: None = Depends(verify_api_token)
):
    try:
        interviews = repository.get_interviews_by_user_id(user_id)
    except PersistenceError as e:
        log.error(f"Error listing interviews for {user_id}: {e}", exc_info=True)
        raise HTTPException(502, "Failed to load interviews")
    return {"interviews": interviews, "total": len(interviews)}


@router.get("/latest")
async def get_latest_interviews(
    user_id: Optional[str] = None,
    limit: Optional[int] = None,
    repository: InterviewRepository = Depends(get_repository),
    auth: None = Depends(verify_api_token)
):
    try:
        interviews = repository.get_latest_interviews(user_id, limit or get_settings().latest_interviews_limit)
    except PersistenceError as e:
        log.error(f"Error listing latest interviews: {e}", exc_info=True)
        raise HTTPException(502, "Failed to load interviews")
    return {"interviews": interviews, "total": len(interviews)}


@router.get("/{interview_id}")
async def get_interview(
    interview_id: str,
    repository: InterviewRepository = Depends(get_repository),
    auth: None = Depends(verify_api_token)
):
    try:
        interview = repository.get_interview_by_id(interview_id)
    except PersistenceError as e:
        log.error(f"Error loading interview {interview_id}: {e}", exc_info=True)
        raise HTTPException(502, "Failed to load interview")
    if interview is None:
        raise HTTPException(404, "Interview not found")
    return interview


@router.get("/{interview_id}/feedback")
async def get_interview_feedback(
    interview_id: str,
    user_id: str,
    feedback_service: FeedbackService = Depends(get_feedback_service),
    auth: None = Depends(verify_api_token)
):
    """Feedback for (interview, user); also tells the UI whether the interview was taken"""
    try:
        feedback = feedback_service.get_feedback(interview_id, user_id)
    except PersistenceError as e:
        log.error(f"Error loading feedback for {interview_id}: {e}", exc_info=True)
        raise HTTPException(502, "Failed to load feedback")
    if feedback is None:
        raise HTTPException(404, "Feedback not found")
    return feedback


@router.post("/feedback")
async def create_feedback(
    payload: CreateFeedbackRequest,
    feedback_service: FeedbackService = Depends(get_feedback_service),
    auth: None = Depends(verify_api_token)
):
    """Synthesize feedback for a transcript; failures come back as success=false"""
    outcome = await feedback_service.synthesize(FeedbackRequest(
        interviewId=payload.interview_id,
        userId=payload.user_id,
        transcript=payload.transcript,
    ))
    return {**outcome.model_dump(mode="json", exclude_none=True), "destination": destination_for(outcome, payload.interview_id)}
