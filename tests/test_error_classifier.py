import pytest

from models.session import SessionErrorKind
from services.error_classifier import (
    REMOTE_TERMINATION_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    classify_error,
    transport_failure,
)


@pytest.mark.parametrize("message", [
    "Meeting has ended abruptly",
    "Meeting ended due to ejection",
    "daily-error: Meeting has ended",
])
def test_meeting_end_is_remote_termination(message):
    err = classify_error({"message": message})
    assert err.kind == SessionErrorKind.REMOTE_TERMINATION
    assert err.message == REMOTE_TERMINATION_MESSAGE


def test_marker_is_case_sensitive():
    err = classify_error({"message": "meeting has ended"})
    assert err.kind == SessionErrorKind.TRANSPORT_FAILURE


def test_other_message_is_transport_failure():
    err = classify_error({"message": "ICE connection failed"})
    assert err.kind == SessionErrorKind.TRANSPORT_FAILURE
    assert err.message == "An error occurred: ICE connection failed. Please try again."


@pytest.mark.parametrize("payload", [None, {}, {"message": ""}, {"message": None}, {"code": 500}])
def test_missing_message_is_unknown(payload):
    err = classify_error(payload)
    assert err.kind == SessionErrorKind.UNKNOWN
    assert err.message == UNKNOWN_ERROR_MESSAGE


def test_nested_sdk_error_and_exceptions():
    assert classify_error({"error": {"message": "Meeting has ended"}}).kind == SessionErrorKind.REMOTE_TERMINATION
    assert classify_error(RuntimeError("socket closed")).kind == SessionErrorKind.TRANSPORT_FAILURE


def test_transport_failure_always_transport():
    assert transport_failure(RuntimeError("Meeting has ended")).kind == SessionErrorKind.TRANSPORT_FAILURE
    assert transport_failure(RuntimeError()).kind == SessionErrorKind.TRANSPORT_FAILURE
