# services/session_manager.py
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from config import get_settings
from models.session import CallMode
from services.call_session import CallSession, FeedbackSynthesizer, IllegalTransitionError
from services.vapi_service import VapiVoiceEngine
from utils.logger import get_logger

logger = get_logger("SessionManager")


class SessionNotFoundError(KeyError):
    pass


class SessionManager:
    """Owns live call sessions and routes engine traffic to them."""

    def __init__(
        self,
        engine_factory: Callable[[], Any] = VapiVoiceEngine,
        session_ttl: Optional[float] = None,
    ):
        self.engine_factory = engine_factory
        self.session_ttl = get_settings().session_ttl_seconds if session_ttl is None else session_ttl
        self.active_sessions: Dict[str, CallSession] = {}
        self._params: Dict[str, Dict[str, Any]] = {}
        self._call_index: Dict[str, str] = {}

    def _build(self, session_id: str, params: Dict[str, Any]) -> CallSession:
        """Idle-state factory: a new engine, an empty transcript, no error."""
        settings = get_settings()
        session = CallSession(
            session_id=session_id,
            engine=self.engine_factory(),
            workflow_id=settings.vapi_workflow_id,
            server_url=settings.vapi_server_url,
            start_timeout=settings.voice_start_timeout_seconds,
            **params,
        )
        session.attach()
        return session

    def create(
        self,
        mode: CallMode,
        user_id: str,
        user_name: str = "",
        interview_id: Optional[str] = None,
        questions: Optional[List[str]] = None,
        synthesize: Optional[FeedbackSynthesizer] = None,
    ) -> CallSession:
        self.evict_expired()
        session_id = str(uuid.uuid4())
        params = {
            "mode": mode,
            "user_id": user_id,
            "user_name": user_name,
            "interview_id": interview_id,
            "questions": questions,
            "synthesize": synthesize,
        }
        session = self._build(session_id, params)
        self.active_sessions[session_id] = session
        self._params[session_id] = params
        logger.info(f"Created {mode.value} session {session_id} for user {user_id}")
        return session

    def get(self, session_id: str) -> CallSession:
        session = self.active_sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def start_call(self, session_id: str) -> CallSession:
        """Start the session's call and index it by the engine's call id for webhook routing."""
        session = self.get(session_id)
        started = await session.start_call()
        call_id = getattr(session.engine, "call_id", None)
        if started and call_id:
            self._call_index[call_id] = session_id
        return session

    def retry(self, session_id: str) -> CallSession:
        """Discard the session and replace it with a fresh IDLE one under the same id.

        Only a failed start or an error with nothing said can be retried; a live call
        or pending feedback must finish first.
        """
        old = self.get(session_id)
        if not old.can_retry:
            raise IllegalTransitionError(old.state, "retry")
        self._forget_call(old)
        old.detach()
        session = self._build(session_id, self._params[session_id])
        self.active_sessions[session_id] = session
        logger.info(f"Session {session_id} reset for retry")
        return session

    def close(self, session_id: str) -> None:
        session = self.active_sessions.pop(session_id, None)
        self._params.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        self._forget_call(session)
        session.detach()

    def _forget_call(self, session: CallSession) -> None:
        call_id = getattr(session.engine, "call_id", None)
        if call_id and self._call_index.get(call_id) == session.session_id:
            del self._call_index[call_id]

    def evict_expired(self, now: Optional[float] = None) -> List[str]:
        """Close sessions that have sat idle or finished for longer than the TTL."""
        if not self.session_ttl:
            return []
        now = time.monotonic() if now is None else now
        expired = [
            sid for sid, session in self.active_sessions.items()
            if session.is_settled and now - session.updated_at > self.session_ttl
        ]
        for sid in expired:
            logger.info(f"Evicting stale session {sid}")
            self.close(sid)
        return expired

    def find_by_call_id(self, call_id: Optional[str]) -> Optional[CallSession]:
        session_id = self._call_index.get(call_id) if call_id else None
        return self.active_sessions.get(session_id) if session_id else None

    def route_server_message(self, message: Dict[str, Any]) -> bool:
        call_id = (message.get("call") or {}).get("id")
        session = self.find_by_call_id(call_id)
        if session is None:
            logger.warning(f"No session for call {call_id}; dropping {message.get('type')}")
            return False
        session.engine.dispatch_server_message(message)
        return True

    def cleanup_all(self) -> None:
        logger.info("Cleaning up all call sessions...")
        for sid in list(self.active_sessions.keys()):
            self.close(sid)


session_manager = SessionManager()
