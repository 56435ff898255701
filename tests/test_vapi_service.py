import asyncio
import json

import httpx
import pytest

from services.vapi_service import (
    VapiVoiceEngine,
    VoiceEngineError,
    build_interviewer_assistant,
    format_questions,
    normalize_role,
)


def recorder(engine):
    events = []
    for name in ("call-start", "call-end", "speech-start", "speech-end"):
        engine.on(name, lambda name=name: events.append((name, None)))
    engine.on("message", lambda payload: events.append(("message", payload)))
    engine.on("error", lambda payload: events.append(("error", payload)))
    return events


def test_format_questions():
    assert format_questions(["A?", "B?"]) == "- A?\n- B?"
    assert format_questions([]) == ""
    assert format_questions(None) == ""


def test_normalize_role():
    assert normalize_role("user") == "candidate"
    assert normalize_role("assistant") == "agent"
    assert normalize_role("system") == "system"


def test_assistant_carries_questions_variable():
    assistant = build_interviewer_assistant("https://api.example.com/vapi/webhook")
    assert "{{questions}}" in assistant["model"]["messages"][0]["content"]
    assert assistant["server"] == {"url": "https://api.example.com/vapi/webhook"}
    assert "server" not in build_interviewer_assistant()


def test_server_messages_map_to_engine_events():
    engine = VapiVoiceEngine()
    events = recorder(engine)

    engine.dispatch_server_message({"type": "status-update", "status": "in-progress"})
    engine.dispatch_server_message({"type": "speech-update", "status": "started", "role": "assistant"})
    engine.dispatch_server_message({"type": "speech-update", "status": "started", "role": "user"})
    engine.dispatch_server_message({"type": "speech-update", "status": "stopped", "role": "assistant"})
    engine.dispatch_server_message({
        "type": "transcript", "role": "user", "transcriptType": "final", "transcript": "Hi",
    })
    engine.dispatch_server_message({"type": "status-update", "status": "ended", "endedReason": "customer-ended-call"})

    assert events == [
        ("call-start", None),
        ("speech-start", None),
        ("speech-end", None),
        ("message", {"type": "transcript", "transcriptType": "final", "role": "user", "transcript": "Hi"}),
        ("call-end", None),
    ]


def test_error_end_reason_becomes_error_event():
    engine = VapiVoiceEngine()
    events = recorder(engine)
    engine.dispatch_server_message({
        "type": "status-update", "status": "ended", "endedReason": "pipeline-error-openai-llm-failed",
    })
    assert events == [("error", {"message": "pipeline-error-openai-llm-failed"})]


def test_client_events_are_reemitted():
    engine = VapiVoiceEngine()
    events = recorder(engine)
    engine.dispatch_client_event("error", {"message": "Meeting has ended"})
    engine.dispatch_client_event("bogus")
    assert events == [("error", {"message": "Meeting has ended"})]


def _engine_with(handler, monkeypatch):
    from config import get_settings
    monkeypatch.setattr(get_settings(), "vapi_api_key", "test-key")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VapiVoiceEngine(client=client)


def test_start_creates_web_call(monkeypatch):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={
            "id": "call-9",
            "webCallUrl": "https://vapi.daily.co/abc",
            "monitor": {"controlUrl": "https://control.vapi.ai/call-9"},
        })

    engine = _engine_with(handler, monkeypatch)
    asyncio.run(engine.start({"workflowId": "wf-1"}, {"username": "Ada", "userid": "u-1"}))

    assert seen["url"].endswith("/call/web")
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"] == {"workflowId": "wf-1", "workflowOverrides": {"variableValues": {"username": "Ada", "userid": "u-1"}}}
    assert engine.call_id == "call-9"
    assert engine.web_call_url == "https://vapi.daily.co/abc"
    assert engine.control_url == "https://control.vapi.ai/call-9"


def test_start_http_error_raises(monkeypatch):
    engine = _engine_with(lambda request: httpx.Response(500, text="down"), monkeypatch)
    with pytest.raises(VoiceEngineError):
        asyncio.run(engine.start(build_interviewer_assistant(), {"questions": "- A?"}))
    assert engine.call_id is None


def test_stop_posts_end_call(monkeypatch):
    seen = []

    def handler(request):
        seen.append((str(request.url), json.loads(request.content)))
        return httpx.Response(200, json={})

    engine = _engine_with(handler, monkeypatch)
    asyncio.run(engine.stop())  # no call yet: no request
    engine.control_url = "https://control.vapi.ai/call-9"
    asyncio.run(engine.stop())
    assert seen == [("https://control.vapi.ai/call-9", {"type": "end-call"})]
