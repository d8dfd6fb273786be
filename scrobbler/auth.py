"""
Desktop authorization handshake for signature mode.

1. auth.getToken returns an AuthToken (valid for about an hour).
2. build_auth_url() gives the page where the user approves the token.
3. auth.getSession exchanges the approved token for a Session.

The token belongs to the caller between steps 1 and 3; only the resulting
session key is kept by the client.
"""
import enum
from dataclasses import dataclass
from typing import Any, Dict
from urllib.parse import urlencode

from .exceptions import InvalidResponseError, InvalidTokenError


DEFAULT_AUTH_URL = "https://www.last.fm/api/auth/"

# Service codes returned by auth.getSession.
TOKEN_NOT_AUTHORIZED = 14
TOKEN_INVALID_CODES = (4, 15)


class AuthState(enum.Enum):
    UNAUTHENTICATED = 'unauthenticated'
    TOKEN_OBTAINED = 'token_obtained'
    AUTHORIZED = 'authorized'


@dataclass(frozen=True)
class AuthToken:
    """Unauthorized request token returned by auth.getToken."""

    token: str

    def __str__(self):
        return self.token


@dataclass(frozen=True)
class Session:
    """Authenticated user name and session key returned by auth.getSession."""

    key: str
    name: str

    def __repr__(self):
        return f"Session(name={self.name!r}, key='***')"


def build_auth_url(api_key: str, token: AuthToken, auth_url: str = DEFAULT_AUTH_URL) -> str:
    """
    Build the page URL where the user authorizes a request token.

    Args:
        api_key: API key of the application
        token: Token from auth.getToken
        auth_url: Authorization page of the service

    Returns:
        URL whose query carries api_key and token unchanged

    Raises:
        InvalidTokenError: If the token is empty
    """
    value = token.token if isinstance(token, AuthToken) else token
    if not isinstance(value, str) or not value.strip():
        raise InvalidTokenError("Cannot build an authorization URL for an empty token")

    query = urlencode({'api_key': api_key, 'token': value})
    separator = '&' if '?' in auth_url else '?'
    return f"{auth_url}{separator}{query}"


def parse_token_response(data: Dict[str, Any]) -> AuthToken:
    """Extract the AuthToken from an auth.getToken response."""
    token = data.get('token') if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        raise InvalidResponseError(
            "auth.getToken response has no token",
            response=data
        )
    return AuthToken(token)


def parse_session_response(data: Dict[str, Any]) -> Session:
    """Extract the Session from an auth.getSession response."""
    session = data.get('session') if isinstance(data, dict) else None
    if not isinstance(session, dict):
        raise InvalidResponseError(
            "auth.getSession response has no session",
            response=data
        )

    key = session.get('key')
    name = session.get('name')
    if not key or not isinstance(key, str) or not isinstance(name, str):
        raise InvalidResponseError(
            "auth.getSession response has an incomplete session",
            response={'session': {'name': name}}
        )

    return Session(key=key, name=name)
