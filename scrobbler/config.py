"""
Configuration management for the scrobbler client.

Values come from environment variables or a .env file (python-decouple);
keyword arguments override them. Credentials are never exposed in logs.
"""
import logging
from typing import Any, Dict, Optional

from decouple import config

from .auth import DEFAULT_AUTH_URL
from .signing import DEFAULT_API_ROOT, AuthMode


logger = logging.getLogger('scrobbler.config')

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = 'scrobbler-client/1.0'


class ScrobblerConfig:
    """
    Holds credentials and transport settings for a ScrobblerClient.

    Signature mode needs LASTFM_API_KEY and LASTFM_API_SECRET (and optionally
    a saved LASTFM_SESSION_KEY). Token mode needs SCROBBLE_BASE_URL and
    SCROBBLE_TOKEN, and wins when both are set.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        session_key: Optional[str] = None,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        api_root: Optional[str] = None,
        auth_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        max_retries: Optional[int] = None,
    ):
        self._api_key = api_key if api_key is not None else config('LASTFM_API_KEY', default='')
        self._api_secret = api_secret if api_secret is not None else config('LASTFM_API_SECRET', default='')
        self._session_key = session_key if session_key is not None else config('LASTFM_SESSION_KEY', default='')
        self._base_url = base_url if base_url is not None else config('SCROBBLE_BASE_URL', default='')
        self._token = token if token is not None else config('SCROBBLE_TOKEN', default='')
        self._api_root = api_root or config('LASTFM_API_ROOT', default=DEFAULT_API_ROOT)
        self._auth_url = auth_url or config('LASTFM_AUTH_URL', default=DEFAULT_AUTH_URL)
        self._timeout = timeout if timeout is not None else config(
            'SCROBBLER_TIMEOUT', default=DEFAULT_TIMEOUT, cast=float
        )
        self._user_agent = user_agent or config('SCROBBLER_USER_AGENT', default=DEFAULT_USER_AGENT)
        self._max_retries = max_retries if max_retries is not None else config(
            'SCROBBLER_MAX_RETRIES', default=0, cast=int
        )

    @property
    def api_key(self) -> str:
        """Get API key (never log this value unmasked)."""
        return self._api_key

    @property
    def api_secret(self) -> str:
        """Get shared secret (never log this value)."""
        return self._api_secret

    @property
    def session_key(self) -> Optional[str]:
        """Get a previously saved session key (never log this value)."""
        return self._session_key or None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def token(self) -> str:
        """Get bearer token (never log this value)."""
        return self._token

    @property
    def api_root(self) -> str:
        return self._api_root

    @property
    def auth_url(self) -> str:
        return self._auth_url

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def user_agent(self) -> str:
        return self._user_agent

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def mode(self) -> AuthMode:
        if self._base_url and self._token:
            return AuthMode.TOKEN
        return AuthMode.SIGNATURE

    def is_configured(self) -> bool:
        """
        Check if either mode has its credentials.

        Returns:
            True if a token server or an API key and secret are set
        """
        if self.mode is AuthMode.TOKEN:
            return True
        return bool(self._api_key and self._api_secret)

    def get_masked_api_key(self) -> str:
        """
        Get masked API key for display purposes.

        Returns:
            Masked string like "abc***xyz" or "Not configured"
        """
        if not self._api_key:
            return "Not configured"

        if len(self._api_key) <= 6:
            return "****hidden****"

        return f"{self._api_key[:3]}***{self._api_key[-3:]}"

    def get_status(self) -> Dict[str, Any]:
        """
        Get configuration status summary (safe for logging/display).

        Returns:
            Dictionary with configuration status information
        """
        return {
            'configured': self.is_configured(),
            'mode': self.mode.value,
            'has_api_key': bool(self._api_key),
            'has_api_secret': bool(self._api_secret),
            'has_session_key': bool(self._session_key),
            'has_token': bool(self._token),
            'base_url': self._base_url or None,
            'masked_api_key': self.get_masked_api_key(),
            'timeout': self._timeout,
            'max_retries': self._max_retries,
        }

    def validate(self) -> tuple[bool, Optional[str]]:
        """
        Validate configuration completeness.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if self._base_url and not self._token:
            return False, "Scrobble server token is not configured"

        if self._token and not self._base_url:
            return False, "Scrobble server base URL is not configured"

        if self.mode is AuthMode.SIGNATURE:
            if not self._api_key:
                return False, "Last.fm API key is not configured"

            if not self._api_secret:
                return False, "Last.fm API secret is not configured"

        if self._timeout <= 0:
            return False, f"Invalid request timeout: {self._timeout}"

        if self._max_retries < 0:
            return False, f"Invalid max retries: {self._max_retries}"

        return True, None

    def log_status(self):
        """Log configuration status (safely, without credentials)."""
        status = self.get_status()
        logger.info(
            "Scrobbler configuration status",
            extra={
                'configured': status['configured'],
                'mode': status['mode'],
                'has_session_key': status['has_session_key'],
                'masked_api_key': status['masked_api_key'],
            }
        )


def get_scrobbler_config(**overrides) -> ScrobblerConfig:
    """
    Get scrobbler configuration instance.

    Returns:
        ScrobblerConfig instance
    """
    return ScrobblerConfig(**overrides)
