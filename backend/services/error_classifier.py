# services/error_classifier.py
"""
Maps voice-engine failures onto the session error taxonomy.

Rules are evaluated in order, first match wins:
  1. message mentions the meeting ending      -> RemoteTermination
  2. any other non-empty message              -> TransportFailure
  3. no usable message                        -> Unknown
"""
from typing import Any, Optional

from models.session import SessionError, SessionErrorKind

REMOTE_TERMINATION_MARKERS = ("Meeting has ended", "Meeting ended")

REMOTE_TERMINATION_MESSAGE = "The interview session ended unexpectedly. Please try again."
UNKNOWN_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


def extract_error_message(error: Any) -> Optional[str]:
    """Pull a human-readable message out of whatever the engine surfaced."""
    if error is None:
        return None
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, dict):
        message = error.get("message")
        # web SDK nests the daily error under "error"
        if message is None and isinstance(error.get("error"), dict):
            message = error["error"].get("message") or error["error"].get("msg")
        if message is None and isinstance(error.get("errorMsg"), str):
            message = error["errorMsg"]
        return message if isinstance(message, str) else None
    message = getattr(error, "message", None)
    return message if isinstance(message, str) else None


def classify_error(error: Any) -> SessionError:
    message = extract_error_message(error)

    if message and any(marker in message for marker in REMOTE_TERMINATION_MARKERS):
        return SessionError(kind=SessionErrorKind.REMOTE_TERMINATION, message=REMOTE_TERMINATION_MESSAGE)

    if message:
        return SessionError(
            kind=SessionErrorKind.TRANSPORT_FAILURE,
            message=f"An error occurred: {message}. Please try again.",
        )

    return SessionError(kind=SessionErrorKind.UNKNOWN, message=UNKNOWN_ERROR_MESSAGE)


def transport_failure(error: Any) -> SessionError:
    """Failed start or stop requests to the engine are always transport failures."""
    message = extract_error_message(error)
    if message:
        text = f"An error occurred: {message}. Please try again."
    else:
        text = "Could not connect to the interviewer. Please try again."
    return SessionError(kind=SessionErrorKind.TRANSPORT_FAILURE, message=text)
