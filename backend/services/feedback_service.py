# services/feedback_service.py
"""
Feedback synthesis: transcript -> structured evaluation -> stored record.

The pipeline is one-shot. Generation and persistence failures are logged and
reported through FeedbackOutcome; nothing is raised to the caller.
"""
from typing import Any, Dict, Optional, Protocol, Sequence, Type, TypeVar

from pydantic import BaseModel

from models.feedback import (
    FeedbackFailureKind,
    FeedbackOutcome,
    FeedbackRecord,
    FeedbackRequest,
    FeedbackResult,
)
from models.session import HOME_DESTINATION, TranscriptEntry, feedback_destination
from utils.logger import get_logger

logger = get_logger("FeedbackService")

T = TypeVar("T", bound=BaseModel)

FEEDBACK_SYSTEM_INSTRUCTION = (
    "You are a professional interviewer analyzing a mock interview. "
    "Your task is to evaluate the candidate based on structured categories"
)

FEEDBACK_RUBRIC = """Please score the candidate from 0 to 100 in the following areas. Do not add categories other than the ones provided:
- **Communication Skills**: Clarity, articulation, structured responses.
- **Technical Knowledge**: Understanding of key concepts for the role.
- **Problem-Solving**: Ability to analyze problems and propose solutions.
- **Cultural & Role Fit**: Alignment with company values and job role.
- **Confidence & Clarity**: Confidence in responses, engagement, and clarity."""

FEEDBACK_OUTPUT_FORMAT = """Return ONLY valid JSON:
{
    "totalScore": 0,
    "categoryScores": [
        {"name": "Communication Skills", "score": 0, "comment": "..."},
        {"name": "Technical Knowledge", "score": 0, "comment": "..."},
        {"name": "Problem-Solving", "score": 0, "comment": "..."},
        {"name": "Cultural & Role Fit", "score": 0, "comment": "..."},
        {"name": "Confidence & Clarity", "score": 0, "comment": "..."}
    ],
    "strengths": ["..."],
    "areasForImprovement": ["..."],
    "finalAssessment": "..."
}"""


class StructuredGenerator(Protocol):
    async def generate_structured(self, system: str, prompt: str, schema: Type[T]) -> T: ...


class FeedbackStore(Protocol):
    def add_feedback(self, record: FeedbackRecord) -> str: ...

    def get_feedback_by_interview_id(self, interview_id: str, user_id: str) -> Optional[Dict[str, Any]]: ...


def format_transcript(transcript: Sequence[TranscriptEntry]) -> str:
    return "\n".join(f"- {entry.role.value}: {entry.text}" for entry in transcript)


def build_feedback_prompt(transcript: Sequence[TranscriptEntry]) -> str:
    return f"""You are an AI interviewer analyzing a mock interview. Your task is to evaluate the candidate based on structured categories. Be thorough and detailed in your analysis. Don't be lenient with the candidate. If there are mistakes or areas for improvement, point them out.
Transcript:
{format_transcript(transcript)}

{FEEDBACK_RUBRIC}

{FEEDBACK_OUTPUT_FORMAT}"""


def destination_for(outcome: FeedbackOutcome, interview_id: str) -> str:
    return feedback_destination(interview_id) if outcome.success and outcome.feedbackId else HOME_DESTINATION


class FeedbackService:
    def __init__(self, generator: StructuredGenerator, store: FeedbackStore):
        self.generator = generator
        self.store = store

    async def synthesize(self, request: FeedbackRequest) -> FeedbackOutcome:
        """Generate and persist feedback for one finished interview. Never raises."""
        prompt = build_feedback_prompt(request.transcript)

        try:
            result = await self.generator.generate_structured(
                FEEDBACK_SYSTEM_INSTRUCTION, prompt, FeedbackResult
            )
        except Exception as e:
            logger.error(f"Error generating feedback for {request.interviewId}: {e}", exc_info=True)
            return FeedbackOutcome(success=False, failure=FeedbackFailureKind.GENERATION_FAILURE)

        record = FeedbackRecord(
            interviewId=request.interviewId,
            userId=request.userId,
            **result.model_dump(),
        )

        try:
            feedback_id = self.store.add_feedback(record)
        except Exception as e:
            logger.error(f"Error saving feedback for {request.interviewId}: {e}", exc_info=True)
            return FeedbackOutcome(success=False, failure=FeedbackFailureKind.PERSISTENCE_FAILURE)

        logger.info(f"Feedback {feedback_id} saved for interview {request.interviewId} (score {record.totalScore})")
        return FeedbackOutcome(success=True, feedbackId=feedback_id)

    def get_feedback(self, interview_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get_feedback_by_interview_id(interview_id, user_id)
