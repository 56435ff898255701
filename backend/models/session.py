from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    FINISHED = "finished"


class CallMode(str, Enum):
    GENERATE = "generate"    # author new interview questions
    INTERVIEW = "interview"  # conduct a scripted interview


class TranscriptRole(str, Enum):
    CANDIDATE = "candidate"
    SYSTEM = "system"
    AGENT = "agent"


class SessionErrorKind(str, Enum):
    REMOTE_TERMINATION = "remote_termination"
    TRANSPORT_FAILURE = "transport_failure"
    UNKNOWN = "unknown"


class TranscriptEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: TranscriptRole
    text: str


class SessionError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: SessionErrorKind
    message: str


# Navigation destinations handed to the UI
HOME_DESTINATION = "home"


def feedback_destination(interview_id: str) -> str:
    return f"feedback/{interview_id}"


class SessionSnapshot(BaseModel):
    """Read-only view of a call session for the presentation layer."""
    session_id: str
    mode: CallMode
    state: SessionState
    is_agent_speaking: bool = False
    transcript: List[TranscriptEntry] = []
    error: Optional[SessionError] = None
    destination: Optional[str] = None
    feedback_id: Optional[str] = None
    can_retry: bool = False
    web_call_url: Optional[str] = None
