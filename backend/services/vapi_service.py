# backend/services/vapi_service.py
"""
Vapi voice engine adapter.

Calls are created over the REST API; the browser joins the returned web call.
Call lifecycle arrives two ways and both are re-emitted as the same engine
events (call-start, call-end, message, speech-start, speech-end, error):
  - server messages posted to /vapi/webhook
  - web SDK events the browser forwards to /session/{id}/events
"""
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx
from livekit.rtc import EventEmitter

from config import get_settings
from utils.logger import get_logger

logger = get_logger("VapiService")

CALL_START = "call-start"
CALL_END = "call-end"
MESSAGE = "message"
SPEECH_START = "speech-start"
SPEECH_END = "speech-end"
ERROR = "error"

ENGINE_EVENTS = (CALL_START, CALL_END, MESSAGE, SPEECH_START, SPEECH_END, ERROR)

# endedReason values that are a normal hang-up rather than a failure
_NORMAL_END_REASONS = {
    "customer-ended-call",
    "assistant-ended-call",
    "assistant-said-end-call-phrase",
    "assistant-forwarded-call",
    "exceeded-max-duration",
    "silence-timed-out",
    "manually-canceled",
}


class VoiceEngineError(RuntimeError):
    """The voice engine rejected or failed a request."""


class VoiceEngine(Protocol):
    async def start(self, agent_config: Dict[str, Any], variables: Dict[str, str]) -> None: ...

    async def stop(self) -> None: ...

    def on(self, event: str, callback: Callable) -> Callable: ...

    def off(self, event: str, callback: Callable) -> None: ...


def format_questions(questions: Optional[List[str]]) -> str:
    if not questions:
        return ""
    return "\n".join(f"- {q}" for q in questions)


def build_interviewer_assistant(server_url: str = "") -> Dict[str, Any]:
    """Inline agent definition for interview mode; `{{questions}}` is filled per call."""
    assistant = {
        "name": "Interviewer",
        "firstMessage": "Hello! Thank you for taking the time to speak with me today. I'm excited to learn more about you and your experience.",
        "transcriber": {
            "provider": "deepgram",
            "model": "nova-2",
            "language": "en",
        },
        "voice": {
            "provider": "11labs",
            "voiceId": "sarah",
            "stability": 0.4,
            "similarityBoost": 0.8,
            "speed": 0.9,
            "style": 0.5,
            "useSpeakerBoost": True,
        },
        "model": {
            "provider": "google",
            "model": "gemini-2.0-flash",
            "messages": [
                {
                    "role": "system",
                    "content": """You are a professional job interviewer conducting a real-time voice interview with a candidate. Your goal is to assess their qualifications, motivation, and fit for the role.

Interview Guidelines:
Follow the structured question flow:
{{questions}}

Engage naturally & react appropriately:
Listen actively to responses and acknowledge them before moving forward.
Ask brief follow-up questions if a response is vague or requires more detail.
Keep the conversation flowing smoothly while maintaining control.
Be professional, yet warm and welcoming.

Answer the candidate's questions professionally. If you don't know the answer, redirect the candidate to HR for more details.

Conclude the interview properly:
Thank the candidate for their time.
Inform them that the company will reach out soon with feedback.
End the conversation on a polite and positive note.

Keep all your responses short and simple. This is a voice conversation, so keep your responses short, like in a real conversation.""",
                }
            ],
        },
    }
    if server_url:
        assistant["server"] = {"url": server_url}
    return assistant


def normalize_role(role: Optional[str]) -> str:
    """Engine roles (user/assistant/system) -> transcript roles (candidate/agent/system)."""
    return {
        "user": "candidate",
        "customer": "candidate",
        "assistant": "agent",
        "bot": "agent",
    }.get((role or "").lower(), (role or "").lower())


class VapiVoiceEngine(EventEmitter):
    """One engine per call session."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        settings = get_settings()
        self.base_url = settings.vapi_base_url.rstrip("/")
        self.api_key = settings.vapi_api_key
        self.timeout = settings.voice_http_timeout_seconds
        self._client = client
        self.call_id: Optional[str] = None
        self.web_call_url: Optional[str] = None
        self.control_url: Optional[str] = None

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def _post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, headers=self._headers(), timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=body, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise VoiceEngineError(f"Vapi returned {e.response.status_code}: {e.response.text[:200]}") from e
        except httpx.HTTPError as e:
            raise VoiceEngineError(f"Vapi request failed: {e}") from e
        return response.json() if response.content else {}

    async def start(self, agent_config: Dict[str, Any], variables: Dict[str, str]) -> None:
        if not self.api_key:
            raise VoiceEngineError("Vapi API key not configured")

        if "workflowId" in agent_config:
            body = {**agent_config, "workflowOverrides": {"variableValues": variables}}
        else:
            body = {"assistant": agent_config, "assistantOverrides": {"variableValues": variables}}

        data = await self._post(f"{self.base_url}/call/web", body)
        self.call_id = data.get("id")
        self.web_call_url = data.get("webCallUrl")
        self.control_url = (data.get("monitor") or {}).get("controlUrl")
        logger.info(f"Vapi call created: {self.call_id}")

    async def stop(self) -> None:
        if not self.control_url:
            logger.warning("stop() before the call exposed a control URL; nothing to end")
            return
        await self._post(self.control_url, {"type": "end-call"})
        logger.info(f"Requested end of call {self.call_id}")

    # ---------------------------------------------------------------- #
    # Inbound events
    # ---------------------------------------------------------------- #

    def dispatch_server_message(self, message: Dict[str, Any]) -> None:
        """Translate one webhook server message into engine events."""
        msg_type = message.get("type")

        if msg_type == "status-update":
            status = message.get("status")
            if status == "in-progress":
                self.emit(CALL_START)
            elif status == "ended":
                reason = message.get("endedReason") or ""
                if reason and reason not in _NORMAL_END_REASONS and "error" in reason:
                    self.emit(ERROR, {"message": reason})
                else:
                    self.emit(CALL_END)

        elif msg_type == "transcript" or (msg_type or "").startswith("transcript["):
            self.emit(MESSAGE, {
                "type": "transcript",
                "transcriptType": message.get("transcriptType"),
                "role": message.get("role"),
                "transcript": message.get("transcript", ""),
            })

        elif msg_type == "speech-update":
            if message.get("role") != "assistant":
                return
            if message.get("status") == "started":
                self.emit(SPEECH_START)
            elif message.get("status") == "stopped":
                self.emit(SPEECH_END)

        else:
            logger.debug(f"Ignoring Vapi server message: {msg_type}")

    def dispatch_client_event(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """Re-emit an event the browser SDK raised."""
        if event not in ENGINE_EVENTS:
            logger.warning(f"Unknown client event: {event}")
            return
        if event in (MESSAGE, ERROR):
            self.emit(event, payload or {})
        else:
            self.emit(event)
