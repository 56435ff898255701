import asyncio
from typing import Any, Dict, List, Optional

import pytest

from models.feedback import FEEDBACK_CATEGORIES, FeedbackRecord
from services.vapi_service import VapiVoiceEngine


def good_feedback() -> Dict[str, Any]:
    return {
        "totalScore": 72,
        "categoryScores": [
            {"name": name, "score": 70 + i, "comment": f"{name} was fine"}
            for i, name in enumerate(FEEDBACK_CATEGORIES)
        ],
        "strengths": ["Clear answers"],
        "areasForImprovement": ["More concrete examples"],
        "finalAssessment": "Solid candidate with room to grow.",
    }


class FakeVoiceEngine(VapiVoiceEngine):
    """Real event dispatch, no network. Records every (de)registration."""

    def __init__(
        self,
        fail_start: Optional[BaseException] = None,
        hang: bool = False,
        fail_stop: Optional[BaseException] = None,
    ):
        super().__init__()
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.hang = hang
        self.started: List[tuple] = []
        self.stop_calls = 0
        self.registered: List[str] = []
        self.deregistered: List[str] = []

    async def start(self, agent_config, variables):
        self.started.append((agent_config, variables))
        if self.fail_start is not None:
            raise self.fail_start
        if self.hang:
            await asyncio.sleep(3600)
        self.call_id = f"call-{len(self.started)}"
        self.web_call_url = "https://example.daily.co/room"

    async def stop(self):
        self.stop_calls += 1
        if self.fail_stop is not None:
            raise self.fail_stop

    def on(self, event, callback=None):
        self.registered.append(event)
        return super().on(event, callback)

    def off(self, event, callback):
        self.deregistered.append(event)
        super().off(event, callback)


class FakeGenerator:
    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.payload = payload if payload is not None else good_feedback()
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def generate_structured(self, system, prompt, schema):
        self.calls.append({"system": system, "prompt": prompt, "schema": schema})
        if self.error is not None:
            raise self.error
        return schema.model_validate(self.payload)


class FakeStore:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.records: List[FeedbackRecord] = []
        self.add_calls = 0

    def add_feedback(self, record):
        self.add_calls += 1
        if self.error is not None:
            raise self.error
        self.records.append(record)
        return f"fb-{len(self.records)}"

    def get_feedback_by_interview_id(self, interview_id, user_id):
        for i, r in enumerate(self.records):
            if r.interviewId == interview_id and r.userId == user_id:
                return {"id": f"fb-{i + 1}", **r.model_dump()}
        return None


@pytest.fixture
def engine():
    return FakeVoiceEngine()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def store():
    return FakeStore()
