"""Tests for utils/errors.py: error codes, hints, structured output."""
import json

import httpx

from dropbook.utils.errors import (
    InvalidStateError,
    ItemNotFoundError,
    LocalFileNotFoundError,
    NotConfiguredError,
    OAuthHTTPError,
    ServerError,
    StorageIOError,
    ToolInputError,
    _get_hint,
    classify_error,
    error_payload,
    handle_error,
)


# ── _get_hint ────────────────────────────────────────────────────────

def test_hint_expired_token():
    assert "login" in _get_hint("ApiError: expired_access_token")


def test_hint_not_found():
    assert _get_hint("path/not_found/..") is not None


def test_hint_rate_limit():
    assert "rate" in _get_hint("too_many_requests").lower()


def test_hint_none():
    assert _get_hint("something else entirely") is None


# ── classify_error ───────────────────────────────────────────────────

def test_classify_own_errors():
    assert classify_error(NotConfiguredError()) == "NOT_CONFIGURED"
    assert classify_error(InvalidStateError()) == "INVALID_STATE"
    assert classify_error(ServerError("invalid_grant")) == "OAUTH_ERROR"
    assert classify_error(OAuthHTTPError(500)) == "OAUTH_ERROR"
    assert classify_error(ItemNotFoundError()) == "STORAGE_ERROR"
    assert classify_error(StorageIOError("disk full")) == "STORAGE_ERROR"
    assert classify_error(LocalFileNotFoundError("/x")) == "NOT_FOUND"
    assert classify_error(ToolInputError("bad")) == "INVALID_ARGUMENT"


def test_classify_network_errors():
    assert classify_error(httpx.ReadTimeout("slow")) == "TIMEOUT"
    assert classify_error(httpx.ConnectError("refused")) == "CONNECTION_ERROR"
    assert classify_error(ConnectionResetError()) == "CONNECTION_ERROR"


def test_classify_unknown():
    assert classify_error(RuntimeError("boom")) == "RUNTIME_ERROR"


# ── Messages ─────────────────────────────────────────────────────────

def test_server_error_message():
    assert str(ServerError("invalid_grant", "code expired")) == "OAuth error: invalid_grant - code expired"
    assert str(ServerError("invalid_grant")) == "OAuth error: invalid_grant"


def test_http_error_message():
    assert str(OAuthHTTPError(401)) == "OAuth request failed with status 401"


# ── error_payload / handle_error ─────────────────────────────────────

def test_payload_shape():
    payload = error_payload(NotConfiguredError())
    assert payload["error"] is True
    assert payload["code"] == "NOT_CONFIGURED"
    assert "hint" in payload


def test_payload_without_hint():
    payload = error_payload(RuntimeError("boom"))
    assert payload == {"error": True, "code": "RUNTIME_ERROR", "message": "boom"}


def test_payload_empty_message_uses_type():
    assert error_payload(ValueError())["message"] == "ValueError"


def test_handle_error_writes_json(capsys):
    handle_error(InvalidStateError())
    captured = capsys.readouterr()

    data = json.loads(captured.out)
    assert data["code"] == "INVALID_STATE"
    assert "Error:" in captured.err
