# services/question_service.py
import json
import random
from typing import List

from models.interview import Interview
from models.request import GenerateQuestionsRequest
from services.gemini_service import GeminiService, GenerationError, strip_code_fence
from services.interview_repository import InterviewRepository
from utils.logger import get_logger

logger = get_logger("QuestionService")

INTERVIEW_COVERS = [
    "/adobe.png",
    "/amazon.png",
    "/facebook.png",
    "/hostinger.png",
    "/pinterest.png",
    "/quora.png",
    "/reddit.png",
    "/skype.png",
    "/spotify.png",
    "/telegram.png",
    "/tiktok.png",
    "/yahoo.png",
]


def get_random_interview_cover() -> str:
    return f"/covers{random.choice(INTERVIEW_COVERS)}"


def build_question_prompt(role: str, level: str, techstack: str, focus: str, amount: int) -> str:
    return f"""Prepare questions for a job interview.
The job role is {role}.
The job experience level is {level}.
The tech stack used in the job is: {techstack}.
The focus between behavioural and technical questions should lean towards: {focus}.
The amount of questions required is: {amount}.
Please return only the questions, without any additional text.
The questions are going to be read by a voice assistant so do not use "/" or "*" or any other special characters which might break the voice assistant.
Return the questions formatted like this:
["Question 1", "Question 2", "Question 3"]"""


def parse_questions(text: str) -> List[str]:
    """Parse the model's JSON array of questions."""
    resp = strip_code_fence(text)
    start = resp.find("[")
    end = resp.rfind("]") + 1
    if start == -1 or end == 0:
        raise GenerationError("No JSON array in question output")
    try:
        questions = json.loads(resp[start:end])
    except json.JSONDecodeError as e:
        raise GenerationError(f"Unparseable question output: {e}") from e
    if not isinstance(questions, list):
        raise GenerationError("Question output is not a list")
    cleaned = [str(q).strip() for q in questions if str(q).strip()]
    if not cleaned:
        raise GenerationError("Question output is empty")
    return cleaned


class QuestionService:
    def __init__(self, gemini: GeminiService, repository: InterviewRepository, default_amount: int = 5):
        self.gemini = gemini
        self.repository = repository
        self.default_amount = default_amount

    async def generate_interview(self, request: GenerateQuestionsRequest) -> Interview:
        """Author questions for a role and store them as a finalized interview."""
        amount = request.amount or self.default_amount
        prompt = build_question_prompt(request.role, request.level, request.techstack, request.type, amount)

        text = await self.gemini.generate_text(prompt)
        questions = parse_questions(text)

        interview = Interview(
            role=request.role,
            type=request.type,
            level=request.level,
            techstack=[t.strip() for t in request.techstack.split(",") if t.strip()],
            questions=questions,
            userId=request.userid,
            finalized=True,
            coverImage=get_random_interview_cover(),
        )
        interview.id = self.repository.add_interview(interview)
        logger.info(f"Generated {len(questions)} questions for {request.role} ({interview.id})")
        return interview
