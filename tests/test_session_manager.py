import asyncio
import time

import pytest

from conftest import FakeGenerator, FakeStore, FakeVoiceEngine
from models.session import CallMode, SessionState
from services.call_session import IllegalTransitionError
from services.feedback_service import FeedbackService
from services.session_manager import SessionManager, SessionNotFoundError


async def _noop_synth(request):
    raise AssertionError("not expected")


def final(role, text):
    return {"type": "transcript", "transcriptType": "final", "role": role, "transcript": text}


def test_retry_replaces_session_with_fresh_idle_one():
    engines = []

    def factory():
        engine = FakeVoiceEngine(fail_start=RuntimeError("offline") if not engines else None)
        engines.append(engine)
        return engine

    manager = SessionManager(engine_factory=factory)
    session = manager.create(CallMode.INTERVIEW, "u-1", interview_id="int-1", questions=["Q?"], synthesize=_noop_synth)

    asyncio.run(manager.start_call(session.session_id))
    assert session.error is not None

    fresh = manager.retry(session.session_id)
    assert fresh is not session
    assert fresh.session_id == session.session_id
    assert fresh.state == SessionState.IDLE
    assert fresh.error is None
    assert fresh.transcript.is_empty()
    assert manager.get(session.session_id) is fresh
    # old engine fully released
    assert sorted(engines[0].registered) == sorted(engines[0].deregistered)


def test_retry_rejected_while_call_is_live():
    manager = SessionManager(engine_factory=FakeVoiceEngine)
    service = FeedbackService(FakeGenerator(), FakeStore())
    session = manager.create(CallMode.INTERVIEW, "u-1", interview_id="int-1", questions=["Q?"], synthesize=service.synthesize)

    async def scenario():
        await manager.start_call(session.session_id)
        session.engine.emit("call-start")
        session.engine.emit("message", final("user", "my answer"))
        with pytest.raises(IllegalTransitionError):
            manager.retry(session.session_id)
        routed = manager.route_server_message({
            "type": "status-update", "status": "ended", "endedReason": "customer-ended-call",
            "call": {"id": session.engine.call_id},
        })
        await session.wait_for_feedback()
        return routed

    routed = asyncio.run(scenario())
    assert manager.get(session.session_id) is session
    assert session.engine.deregistered == []
    assert routed is True
    assert session.state == SessionState.FINISHED
    assert session.destination == "feedback/int-1"
    # transcript was spoken, so the finished session is not retryable either
    with pytest.raises(IllegalTransitionError):
        manager.retry(session.session_id)


def test_close_detaches_and_forgets():
    manager = SessionManager(engine_factory=FakeVoiceEngine)
    session = manager.create(CallMode.GENERATE, "u-1", "Ada")
    manager.close(session.session_id)

    assert len(session.engine.deregistered) == 6
    with pytest.raises(SessionNotFoundError):
        manager.get(session.session_id)
    with pytest.raises(SessionNotFoundError):
        manager.close(session.session_id)


def test_close_while_feedback_pending_writes_once_and_unroutes():
    manager = SessionManager(engine_factory=FakeVoiceEngine)
    store = FakeStore()
    service = FeedbackService(FakeGenerator(), store)
    session = manager.create(CallMode.INTERVIEW, "u-1", interview_id="int-1", questions=["Q?"], synthesize=service.synthesize)

    async def scenario():
        await manager.start_call(session.session_id)
        call_id = session.engine.call_id
        session.engine.emit("call-start")
        session.engine.emit("message", final("user", "answer"))
        session.engine.emit("call-end")
        pending = not session.feedback_task.done()
        manager.close(session.session_id)
        outcome = await session.wait_for_feedback()
        return call_id, pending, outcome

    call_id, pending, outcome = asyncio.run(scenario())
    assert pending is True
    assert outcome.success is True
    assert len(store.records) == 1
    assert len(session.engine.deregistered) == 6
    assert manager.find_by_call_id(call_id) is None
    assert session.session_id not in manager.active_sessions


def test_server_messages_routed_by_call_id():
    manager = SessionManager(engine_factory=FakeVoiceEngine)
    session = manager.create(CallMode.GENERATE, "u-1", "Ada")

    async def scenario():
        await manager.start_call(session.session_id)
        routed = manager.route_server_message({
            "type": "status-update", "status": "in-progress", "call": {"id": session.engine.call_id},
        })
        unknown = manager.route_server_message({"type": "status-update", "status": "ended", "call": {"id": "nope"}})
        return routed, unknown

    routed, unknown = asyncio.run(scenario())
    assert routed is True
    assert unknown is False
    assert session.state == SessionState.ACTIVE
    assert manager.find_by_call_id(session.engine.call_id) is session

    manager.close(session.session_id)
    assert manager.find_by_call_id(session.engine.call_id) is None


def test_failed_start_is_not_indexed():
    manager = SessionManager(engine_factory=lambda: FakeVoiceEngine(fail_start=RuntimeError("offline")))
    session = manager.create(CallMode.GENERATE, "u-1", "Ada")
    asyncio.run(manager.start_call(session.session_id))
    assert manager._call_index == {}


def test_stale_settled_sessions_are_evicted():
    manager = SessionManager(engine_factory=FakeVoiceEngine, session_ttl=60)
    finished = manager.create(CallMode.GENERATE, "u-1", "Ada")
    live = manager.create(CallMode.GENERATE, "u-2", "Bob")

    async def scenario():
        await manager.start_call(finished.session_id)
        finished.engine.emit("call-start")
        finished.engine.emit("call-end")
        await manager.start_call(live.session_id)
        live.engine.emit("call-start")

    asyncio.run(scenario())
    assert finished.destination == "home"

    # nothing is stale yet
    assert manager.evict_expired() == []

    evicted = manager.evict_expired(now=time.monotonic() + 61)
    assert evicted == [finished.session_id]
    assert len(finished.engine.deregistered) == 6
    assert manager.find_by_call_id(finished.engine.call_id) is None
    assert manager.get(live.session_id) is live


def test_create_sweeps_expired_sessions():
    manager = SessionManager(engine_factory=FakeVoiceEngine, session_ttl=60)
    old = manager.create(CallMode.GENERATE, "u-1", "Ada")
    old.updated_at -= 120

    manager.create(CallMode.GENERATE, "u-2", "Bob")
    assert old.session_id not in manager.active_sessions
    assert len(manager.active_sessions) == 1


def test_zero_ttl_disables_eviction():
    manager = SessionManager(engine_factory=FakeVoiceEngine, session_ttl=0)
    session = manager.create(CallMode.GENERATE, "u-1", "Ada")
    assert manager.evict_expired(now=time.monotonic() + 10_000) == []
    assert manager.get(session.session_id) is session
