from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum

from models.session import TranscriptEntry


# Rubric order is the order the generator is asked to score in
FEEDBACK_CATEGORIES = (
    "Communication Skills",
    "Technical Knowledge",
    "Problem-Solving",
    "Cultural & Role Fit",
    "Confidence & Clarity",
)


class CategoryScore(BaseModel):
    name: str
    score: int = Field(..., ge=0, le=100)
    comment: str


class FeedbackResult(BaseModel):
    """Structured evaluation as returned by the generator."""
    totalScore: int = Field(..., ge=0, le=100)
    categoryScores: List[CategoryScore]
    strengths: List[str]
    areasForImprovement: List[str]
    finalAssessment: str

    @field_validator("categoryScores")
    @classmethod
    def _exact_rubric(cls, scores: List[CategoryScore]) -> List[CategoryScore]:
        names = tuple(s.name for s in scores)
        if names != FEEDBACK_CATEGORIES:
            raise ValueError(
                f"categoryScores must be exactly {list(FEEDBACK_CATEGORIES)}, got {list(names)}"
            )
        return scores


class FeedbackRecord(FeedbackResult):
    interviewId: str
    userId: str
    createdAt: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class FeedbackRequest(BaseModel):
    interviewId: str = Field(..., min_length=1)
    userId: str = Field(..., min_length=1)
    transcript: List[TranscriptEntry]


class FeedbackFailureKind(str, Enum):
    GENERATION_FAILURE = "generation_failure"
    PERSISTENCE_FAILURE = "persistence_failure"


class FeedbackOutcome(BaseModel):
    success: bool
    feedbackId: Optional[str] = None
    failure: Optional[FeedbackFailureKind] = None
