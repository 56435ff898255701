# backend/services/call_session.py
"""
Call session state machine.

One CallSession drives one voice call:

    IDLE --start_call()--> CONNECTING --call-start--> ACTIVE
    {CONNECTING, ACTIVE} --call-end / error--> FINISHED

FINISHED is terminal; "Try Again" builds a fresh session from the factory.
Engine callbacks run on the event loop, one at a time, in whatever order the
engine delivers them. Transitions are synchronous; only start_call(), stop_call()
and the feedback task suspend.
"""
import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from models.feedback import FeedbackOutcome, FeedbackRequest
from models.session import (
    HOME_DESTINATION,
    CallMode,
    SessionError,
    SessionSnapshot,
    SessionState,
    TranscriptEntry,
    TranscriptRole,
)
from services.error_classifier import classify_error, transport_failure
from services.feedback_service import destination_for
from services.transcript_accumulator import TranscriptAccumulator
from services.vapi_service import (
    CALL_END,
    CALL_START,
    ERROR,
    MESSAGE,
    SPEECH_END,
    SPEECH_START,
    VoiceEngine,
    build_interviewer_assistant,
    format_questions,
    normalize_role,
)
from utils.logger import get_logger

logger = get_logger("CallSession")


class SessionEvent(str, Enum):
    START_REQUESTED = "start_requested"
    START_FAILED = "start_failed"
    REMOTE_CALL_STARTED = "remote_call_started"
    REMOTE_CALL_ENDED = "remote_call_ended"
    REMOTE_ERROR = "remote_error"


class IllegalTransitionError(RuntimeError):
    def __init__(self, state: SessionState, event: str):
        super().__init__(f"'{event}' is not allowed while {state.value}")
        self.state = state
        self.event = event


_TRANSITIONS: Dict[SessionState, Dict[SessionEvent, SessionState]] = {
    SessionState.IDLE: {
        SessionEvent.START_REQUESTED: SessionState.CONNECTING,
    },
    SessionState.CONNECTING: {
        SessionEvent.START_FAILED: SessionState.IDLE,
        SessionEvent.REMOTE_CALL_STARTED: SessionState.ACTIVE,
        SessionEvent.REMOTE_CALL_ENDED: SessionState.FINISHED,
        SessionEvent.REMOTE_ERROR: SessionState.FINISHED,
    },
    SessionState.ACTIVE: {
        SessionEvent.REMOTE_CALL_ENDED: SessionState.FINISHED,
        SessionEvent.REMOTE_ERROR: SessionState.FINISHED,
    },
    SessionState.FINISHED: {},
}


def next_state(state: SessionState, event: SessionEvent) -> SessionState:
    """Pure transition function; raises on anything not in the table."""
    try:
        return _TRANSITIONS[state][event]
    except KeyError:
        raise IllegalTransitionError(state, event.value) from None


FeedbackSynthesizer = Callable[[FeedbackRequest], Awaitable[FeedbackOutcome]]


class CallSession:
    def __init__(
        self,
        session_id: str,
        engine: VoiceEngine,
        mode: CallMode,
        user_id: str,
        user_name: str = "",
        interview_id: Optional[str] = None,
        questions: Optional[List[str]] = None,
        synthesize: Optional[FeedbackSynthesizer] = None,
        navigate: Optional[Callable[[str], Any]] = None,
        workflow_id: str = "",
        server_url: str = "",
        start_timeout: Optional[float] = None,
    ):
        if mode == CallMode.INTERVIEW and (not interview_id or synthesize is None):
            raise ValueError("interview mode needs an interview_id and a feedback synthesizer")

        self.session_id = session_id
        self.engine = engine
        self.mode = mode
        self.user_id = user_id
        self.user_name = user_name
        self.interview_id = interview_id
        self.questions = list(questions or [])
        self.workflow_id = workflow_id
        self.server_url = server_url
        self.start_timeout = start_timeout
        self._synthesize = synthesize
        self._navigate = navigate

        # State
        self.state = SessionState.IDLE
        self.is_agent_speaking = False
        self.error: Optional[SessionError] = None
        self.transcript = TranscriptAccumulator()
        self.destination: Optional[str] = None
        self.feedback_outcome: Optional[FeedbackOutcome] = None
        self.feedback_task: Optional[asyncio.Task] = None
        self.feedback_requests = 0
        self.updated_at = time.monotonic()

        self._handlers: Dict[str, Callable] = {}
        self._closed = False

    # ---------------------------------------------------------------- #
    # Listener registration
    # ---------------------------------------------------------------- #

    def attach(self) -> None:
        if self._handlers or self._closed:
            return
        self._handlers = {
            CALL_START: self._on_call_start,
            CALL_END: self._on_call_end,
            MESSAGE: self._on_message,
            SPEECH_START: self._on_speech_start,
            SPEECH_END: self._on_speech_end,
            ERROR: self._on_error,
        }
        for event, handler in self._handlers.items():
            self.engine.on(event, handler)

    def detach(self) -> None:
        """Deregister every engine handler exactly once, whatever state was reached."""
        if self._closed:
            return
        for event, handler in self._handlers.items():
            self.engine.off(event, handler)
        self._handlers = {}
        self._navigate = None
        self._closed = True
        logger.info(f"Session {self.session_id} detached in state {self.state.value}")

    # ---------------------------------------------------------------- #
    # Commands
    # ---------------------------------------------------------------- #

    def _transition(self, event: SessionEvent) -> SessionState:
        previous = self.state
        self.state = next_state(self.state, event)
        self.updated_at = time.monotonic()
        logger.info(f"Session {self.session_id}: {previous.value} -> {self.state.value} ({event.value})")
        return self.state

    def _agent_call(self) -> tuple:
        if self.mode == CallMode.GENERATE:
            return (
                {"workflowId": self.workflow_id},
                {"username": self.user_name, "userid": self.user_id},
            )
        return (
            build_interviewer_assistant(self.server_url),
            {"questions": format_questions(self.questions)},
        )

    async def start_call(self) -> bool:
        """Begin the call. On failure the session drops back to IDLE with a transport error."""
        if self._closed:
            raise IllegalTransitionError(self.state, "start_call after close")
        self._transition(SessionEvent.START_REQUESTED)
        self.error = None

        agent_config, variables = self._agent_call()
        try:
            start = self.engine.start(agent_config, variables)
            if self.start_timeout:
                await asyncio.wait_for(start, timeout=self.start_timeout)
            else:
                await start
        except asyncio.TimeoutError:
            return self._start_failed("Timed out waiting for the interviewer to connect")
        except Exception as e:
            return self._start_failed(e)
        return True

    def _start_failed(self, reason: Any) -> bool:
        logger.warning(f"Session {self.session_id} failed to start: {reason}")
        if self.state != SessionState.CONNECTING:
            # engine already moved us on (e.g. error event raced the failure)
            return False
        self._transition(SessionEvent.START_FAILED)
        self.error = transport_failure(reason)
        return False

    async def stop_call(self) -> None:
        """Ask the engine to hang up. FINISHED is reached only via the engine's own end/error event.

        A failed request attaches a transport error but leaves the state alone; the
        remote call may still be live.
        """
        if self.state not in (SessionState.CONNECTING, SessionState.ACTIVE):
            raise IllegalTransitionError(self.state, "stop_call")
        try:
            await self.engine.stop()
        except Exception as e:
            logger.warning(f"Session {self.session_id} stop failed while {self.state.value}: {e}")
            self.error = transport_failure(e)

    # ---------------------------------------------------------------- #
    # Engine callbacks
    # ---------------------------------------------------------------- #

    def _on_call_start(self) -> None:
        try:
            self._transition(SessionEvent.REMOTE_CALL_STARTED)
        except IllegalTransitionError as e:
            logger.warning(f"Session {self.session_id}: ignoring call-start ({e})")

    def _on_call_end(self) -> None:
        try:
            self._transition(SessionEvent.REMOTE_CALL_ENDED)
        except IllegalTransitionError as e:
            logger.warning(f"Session {self.session_id}: ignoring call-end ({e})")
            return
        self._on_finished()

    def _on_error(self, payload: Any = None) -> None:
        session_error = classify_error(payload)
        logger.warning(f"Session {self.session_id} engine error [{session_error.kind.value}]: {payload}")
        if self.state not in (SessionState.CONNECTING, SessionState.ACTIVE):
            logger.warning(f"Session {self.session_id}: error while {self.state.value}, no transition")
            return
        self.error = session_error
        self._transition(SessionEvent.REMOTE_ERROR)
        self._on_finished()

    def _on_message(self, message: Any = None) -> None:
        if not isinstance(message, dict):
            return
        if message.get("type") != "transcript" or message.get("transcriptType") != "final":
            return
        if self.state not in (SessionState.ACTIVE, SessionState.FINISHED):
            logger.warning(f"Session {self.session_id}: transcript while {self.state.value}, dropped")
            return
        try:
            entry = TranscriptEntry(
                role=TranscriptRole(normalize_role(message.get("role"))),
                text=message.get("transcript") or "",
            )
        except ValueError:
            logger.warning(f"Session {self.session_id}: unknown transcript role {message.get('role')!r}")
            return
        self.transcript.append(entry)

    def _on_speech_start(self) -> None:
        self.is_agent_speaking = True

    def _on_speech_end(self) -> None:
        self.is_agent_speaking = False

    # ---------------------------------------------------------------- #
    # Exit handler (runs once; the transition into FINISHED is one-way)
    # ---------------------------------------------------------------- #

    def _on_finished(self) -> None:
        self.is_agent_speaking = False

        if self.mode == CallMode.GENERATE:
            self._go(HOME_DESTINATION)
            return

        transcript = self.transcript.snapshot()
        if transcript:
            request = FeedbackRequest(
                interviewId=self.interview_id,
                userId=self.user_id,
                transcript=list(transcript),
            )
            self.feedback_requests += 1
            self.feedback_task = asyncio.get_running_loop().create_task(self._run_feedback(request))
        elif self.error is None:
            self._go(HOME_DESTINATION)
        # empty transcript with an error: stay on the error screen

    async def _run_feedback(self, request: FeedbackRequest) -> FeedbackOutcome:
        outcome = await self._synthesize(request)
        self.feedback_outcome = outcome
        self.updated_at = time.monotonic()
        if not outcome.success:
            logger.error(f"Session {self.session_id}: error saving feedback, sending user home")
        self._go(destination_for(outcome, self.interview_id))
        return outcome

    def _go(self, destination: str) -> None:
        self.destination = destination
        if self._navigate is not None:
            self._navigate(destination)

    async def wait_for_feedback(self) -> Optional[FeedbackOutcome]:
        if self.feedback_task is None:
            return None
        return await self.feedback_task

    # ---------------------------------------------------------------- #
    # Presentation
    # ---------------------------------------------------------------- #

    @property
    def can_retry(self) -> bool:
        return self.error is not None and self.destination is None and (
            self.state == SessionState.IDLE
            or (self.state == SessionState.FINISHED and self.transcript.is_empty())
        )

    @property
    def is_settled(self) -> bool:
        """No call in progress and no feedback pending."""
        if self.state not in (SessionState.IDLE, SessionState.FINISHED):
            return False
        return self.feedback_task is None or self.feedback_task.done()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            mode=self.mode,
            state=self.state,
            is_agent_speaking=self.is_agent_speaking,
            transcript=list(self.transcript.snapshot()),
            error=self.error,
            destination=self.destination,
            feedback_id=self.feedback_outcome.feedbackId if self.feedback_outcome else None,
            can_retry=self.can_retry,
            web_call_url=getattr(self.engine, "web_call_url", None),
        )
