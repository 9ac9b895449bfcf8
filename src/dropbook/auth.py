"""OAuth2 Authorization Code + PKCE flow for the Dropbox API.

Builds the authorization URL, checks the redirect's state, exchanges the
code for tokens, and hands the result to the credential store.
"""

from __future__ import annotations

import base64
import logging
import secrets
import time
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
from pydantic import BaseModel, ValidationError

from dropbook.config import Settings
from dropbook.models.auth import AccessToken, OAuthErrorResponse, StoredTokenData, TokenResponse, TokenStatus
from dropbook.pkce import generate_pkce, generate_state
from dropbook.storage import TieredCredentialStore
from dropbook.utils.errors import (
    AuthenticationFailedError,
    InvalidResponseError,
    InvalidStateError,
    NotConfiguredError,
    OAuthHTTPError,
    ServerError,
)

logger = logging.getLogger(__name__)

AUTHORIZE_ENDPOINT = "https://www.dropbox.com/oauth2/authorize"
TOKEN_ENDPOINT = "https://api.dropboxapi.com/oauth2/token"

# Lifetime assumed when the token endpoint omits expires_in (4 hours).
# Downstream refresh timing relies on this exact value.
DEFAULT_TOKEN_LIFETIME_SECONDS = 14400

DEFAULT_SCOPES: tuple[str, ...] = (
    "account_info.read",
    "files.metadata.read",
    "files.metadata.write",
    "files.content.read",
    "files.content.write",
)


class AuthorizationRequest(BaseModel):
    """One login attempt: the URL to visit and the secrets to check it with."""
    url: str
    state: str
    code_verifier: str
    redirect_hint: str


def build_authorize_url(
    app_key: str,
    code_challenge: str,
    state: str,
    scopes: Sequence[str] = DEFAULT_SCOPES,
) -> str:
    """Compose the browser-facing authorization URL."""
    params = {
        "client_id": app_key,
        "response_type": "code",
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "token_access_type": "offline",
        "state": state,
    }
    if scopes:
        params["scope"] = " ".join(scopes)
    return f"{AUTHORIZE_ENDPOINT}?{urlencode(params)}"


def start_authorization(app_key: str, scopes: Sequence[str] = DEFAULT_SCOPES) -> AuthorizationRequest:
    """Generate fresh PKCE and state material and the matching URL."""
    pkce = generate_pkce()
    state = generate_state()
    return AuthorizationRequest(
        url=build_authorize_url(app_key, pkce.code_challenge, state, scopes),
        state=state,
        code_verifier=pkce.code_verifier,
        redirect_hint=f"db-{app_key}://2/token?code=AUTHORIZATION_CODE&state={state}",
    )


def parse_redirect(value: str) -> tuple[str, str | None]:
    """Extract (code, state) from a pasted redirect URL or a bare code."""
    value = value.strip()
    if "?" not in value:
        return value, None

    query = parse_qs(urlsplit(value).query)
    code = query.get("code", [""])[0].strip()
    state = query.get("state", [None])[0]
    return code, state


def verify_state(expected: str, received: str | None) -> None:
    """Raise InvalidStateError unless the redirect's state matches ours."""
    if not received or not secrets.compare_digest(expected.encode(), received.encode()):
        raise InvalidStateError()


class OAuthClient:
    """Exchanges authorization codes at the Dropbox token endpoint."""

    def __init__(self, app_key: str, app_secret: str, token_endpoint: str = TOKEN_ENDPOINT) -> None:
        self._app_key = app_key
        self._app_secret = app_secret
        self._token_endpoint = token_endpoint
        self._http = httpx.Client(timeout=30.0)

    def exchange_code(self, code: str, code_verifier: str) -> AccessToken:
        """Exchange an authorization code for an access/refresh token pair.

        Args:
            code: Authorization code pasted by the operator.
            code_verifier: The PKCE verifier whose challenge was sent in the URL.

        Returns:
            The new AccessToken.

        Raises:
            ServerError: The endpoint returned a structured OAuth error.
            OAuthHTTPError: The endpoint returned a non-2xx without a usable body.
            InvalidResponseError: Transport failure or malformed success body.
        """
        try:
            response = self._http.post(
                self._token_endpoint,
                data={
                    "code": code,
                    "grant_type": "authorization_code",
                    "code_verifier": code_verifier,
                },
                headers={"Authorization": self._basic_auth_header()},
            )
        except httpx.TransportError as e:
            raise InvalidResponseError(f"Token request failed: {e}") from e

        if not response.is_success:
            raise self._error_from_response(response)

        try:
            token_data = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise InvalidResponseError("Invalid response from OAuth server") from e

        lifetime = token_data.expires_in
        if lifetime is None:
            lifetime = DEFAULT_TOKEN_LIFETIME_SECONDS

        logger.info("Token exchange succeeded (refresh token: %s)", token_data.refresh_token is not None)
        return AccessToken(
            access_token=token_data.access_token,
            uid=token_data.uid or "",
            refresh_token=token_data.refresh_token,
            expiration_timestamp=time.time() + lifetime,
        )

    def _basic_auth_header(self) -> str:
        credentials = f"{self._app_key}:{self._app_secret}".encode("utf-8")
        return "Basic " + base64.b64encode(credentials).decode("ascii")

    @staticmethod
    def _error_from_response(response: httpx.Response) -> Exception:
        try:
            body: Any = response.json()
            err = OAuthErrorResponse.model_validate(body)
        except (ValueError, ValidationError):
            logger.info("Token endpoint returned HTTP %s", response.status_code)
            return OAuthHTTPError(response.status_code)
        logger.info("Token endpoint returned %s (HTTP %s)", err.error, response.status_code)
        return ServerError(err.error, err.error_description)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def __enter__(self) -> OAuthClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def complete_login(
    request: AuthorizationRequest,
    redirect_value: str,
    oauth: OAuthClient,
    store: TieredCredentialStore,
    state: str | None = None,
) -> tuple[AccessToken, list[str]]:
    """Finish a login attempt.

    Args:
        request: The attempt started by start_authorization().
        redirect_value: Redirect URL or bare authorization code from the operator.
        oauth: Token exchange client.
        store: Where to persist the new token.
        state: State value entered separately, when redirect_value is a bare code.

    Returns:
        The new token and the names of the backends it was written to.
    """
    code, redirect_state = parse_redirect(redirect_value)
    if not code:
        raise AuthenticationFailedError("No authorization code provided")

    # State is checked before the code ever leaves this process
    verify_state(request.state, redirect_state if redirect_state is not None else state)

    token = oauth.exchange_code(code, request.code_verifier)
    written = store.save(StoredTokenData.from_access_token(token))
    return token, written


def token_status(settings: Settings, store: TieredCredentialStore) -> TokenStatus:
    """Describe the credentials the next command would use."""
    try:
        data, source = store.load_with_source()
    except NotConfiguredError:
        data, source = None, None

    if data is not None:
        access_token, refresh_token, expires = data.access_token, data.refresh_token, data.expiration_timestamp
    elif settings.access_token:
        source = "environment"
        access_token, refresh_token, expires = settings.access_token, settings.refresh_token or None, None
    else:
        return TokenStatus(has_token=False, is_expired=True)

    now = time.time()
    expires_at = datetime.fromtimestamp(expires) if expires is not None else None
    is_expired = expires is not None and now >= expires
    seconds_remaining = int(expires - now) if expires is not None and not is_expired else None

    return TokenStatus(
        has_token=bool(access_token),
        source=source,
        has_refresh_token=bool(refresh_token),
        is_expired=is_expired,
        expires_at=expires_at,
        seconds_remaining=seconds_remaining,
    )
