# ========================================
# models/interview.py - Interview records
# ========================================

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum


class InterviewFocus(str, Enum):
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    MIXED = "mixed"


class Interview(BaseModel):
    id: Optional[str] = None
    role: str
    type: str = InterviewFocus.MIXED.value
    level: str = ""
    techstack: List[str] = []
    questions: List[str] = []
    userId: str
    finalized: bool = True
    coverImage: str = ""
    createdAt: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
