"""Error taxonomy and structured error handling for agent-friendly output."""

from __future__ import annotations

import json
import sys

import httpx
from rich.console import Console

console = Console(stderr=True)


class DropbookError(Exception):
    """Base class for every error raised by dropbook itself."""

    code = "RUNTIME_ERROR"


class NotConfiguredError(DropbookError):
    """Application or user credentials are missing."""

    code = "NOT_CONFIGURED"

    def __init__(self, message: str = "Dropbox client not configured. Please authenticate first.") -> None:
        super().__init__(message)


class AuthenticationFailedError(DropbookError):
    """The operator supplied an empty or unusable authorization code."""

    code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication failed. Please check your credentials.") -> None:
        super().__init__(message)


class LocalFileNotFoundError(DropbookError):
    code = "NOT_FOUND"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Local file not found: {path}")


class ToolInputError(DropbookError):
    """Invalid arguments passed to an MCP tool."""

    code = "INVALID_ARGUMENT"


# ── OAuth ────────────────────────────────────────────────────────────

class OAuthError(DropbookError):
    code = "OAUTH_ERROR"


class InvalidResponseError(OAuthError):
    def __init__(self, message: str = "Invalid response from OAuth server") -> None:
        super().__init__(message)


class OAuthHTTPError(OAuthError):
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"OAuth request failed with status {status_code}")


class ServerError(OAuthError):
    """Structured ``{error, error_description}`` body from the token endpoint."""

    def __init__(self, error: str, description: str | None = None) -> None:
        self.error = error
        self.description = description
        message = f"OAuth error: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)


class InvalidStateError(OAuthError):
    code = "INVALID_STATE"

    def __init__(self, message: str = "Invalid state parameter - possible CSRF attack") -> None:
        super().__init__(message)


# ── Credential storage ───────────────────────────────────────────────

class CredentialStoreError(DropbookError):
    code = "STORAGE_ERROR"


class ItemNotFoundError(CredentialStoreError):
    def __init__(self, message: str = "No token found in keyring. Run 'dropbook login' first.") -> None:
        super().__init__(message)


class UnexpectedDataError(CredentialStoreError):
    def __init__(self, message: str = "Unexpected data format in credential store") -> None:
        super().__init__(message)


class StorageIOError(CredentialStoreError):
    """Filesystem failure in the file-backed store."""


class KeyringBackendError(CredentialStoreError):
    """The OS keyring refused or failed an operation."""


# Actionable hints keyed by error code
_CODE_HINTS: dict[str, str] = {
    "NOT_CONFIGURED": "Set DROPBOX_APP_KEY and DROPBOX_APP_SECRET, then run `dropbook login`",
    "AUTH_ERROR": "Run `dropbook login` again and paste the full authorization code",
    "INVALID_STATE": "The redirect did not come from this login attempt; start over with `dropbook login`",
    "OAUTH_ERROR": "The authorization code may have expired; run `dropbook login` again",
    "STORAGE_ERROR": "Check permissions on ~/.dropbook or run `dropbook logout` and log in again",
    "TIMEOUT": "Request timed out; try again or check network connectivity",
    "CONNECTION_ERROR": "Connection error; check network connectivity",
}

# Fallback hints keyed by error substring, for errors raised by third-party clients
_ERROR_HINTS: list[tuple[str, str]] = [
    ("expired_access_token", "Token may be expired; run `dropbook login`"),
    ("invalid_access_token", "Token is no longer valid; run `dropbook login`"),
    ("401", "Token may be expired; run `dropbook login`"),
    ("not_found", "The specified path does not exist; verify it with `dropbook list`"),
    ("rate limit", "Rate limited; wait a moment and retry"),
    ("too_many_requests", "Rate limited; wait a moment and retry"),
]


def _get_hint(error_message: str) -> str | None:
    """Match an error message to an actionable hint."""
    lower = error_message.lower()
    for pattern, hint in _ERROR_HINTS:
        if pattern.lower() in lower:
            return hint
    return None


def classify_error(error: BaseException) -> str:
    """Map an exception to a stable error code."""
    if isinstance(error, DropbookError):
        return error.code
    if isinstance(error, httpx.TimeoutException):
        return "TIMEOUT"
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return "CONNECTION_ERROR"
    if isinstance(error, FileNotFoundError):
        return "NOT_FOUND"
    return "RUNTIME_ERROR"


def error_payload(error: BaseException) -> dict[str, object]:
    """Build the structured error object shared by the CLI and the MCP server."""
    message = str(error) or type(error).__name__
    code = classify_error(error)
    hint = _CODE_HINTS.get(code) or _get_hint(message)

    payload: dict[str, object] = {
        "error": True,
        "code": code,
        "message": message,
    }
    if hint:
        payload["hint"] = hint
    return payload


def handle_error(error: BaseException) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout for agent consumption:
    {"error": true, "code": "NOT_CONFIGURED", "message": "...", "hint": "..."}

    Also prints a human-readable error to stderr.
    """
    payload = error_payload(error)

    json.dump(payload, sys.stdout)
    sys.stdout.write("\n")

    console.print(f"[red]Error:[/red] {payload['message']}")
    if "hint" in payload:
        console.print(f"[dim]Hint: {payload['hint']}[/dim]")
