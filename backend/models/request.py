from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict

from models.session import TranscriptEntry


class GenerateQuestionsRequest(BaseModel):
    """Payload posted back by the question-authoring workflow."""
    type: str = Field(..., min_length=1, examples=["technical"])
    role: str = Field(..., min_length=1, examples=["Frontend Developer"])
    level: str = Field(..., min_length=1, examples=["junior"])
    techstack: str = Field("", examples=["React,TypeScript"])
    amount: Optional[int] = Field(None, ge=1, le=20)
    userid: str = Field(..., min_length=1)


class StartGenerateSessionRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=1)


class StartInterviewSessionRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    user_name: str = ""
    interview_id: str = Field(..., min_length=1)
    questions: Optional[List[str]] = Field(None, description="defaults to the stored interview questions")


class ClientEventRequest(BaseModel):
    """An event raised by the browser's voice SDK, forwarded verbatim."""
    event: str = Field(..., examples=["error"])
    payload: Dict[str, Any] = {}


class CreateFeedbackRequest(BaseModel):
    interview_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    transcript: List[TranscriptEntry] = Field(..., min_length=1)
