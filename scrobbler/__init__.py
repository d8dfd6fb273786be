"""
Scrobbling client for Last.fm compatible services.

This package provides:
- Signature mode (API key, shared secret, MD5 signed requests, session key)
- The desktop authorization handshake (token, authorization URL, session)
- Token mode for self-hosted servers (bearer token, JSON bodies)
- Now playing updates and batched scrobbles with per-track outcomes
"""

from .auth import AuthState, AuthToken, Session
from .client import ScrobblerClient
from .config import ScrobblerConfig, get_scrobbler_config
from .exceptions import (
    AuthenticationError,
    AuthError,
    BatchTooLargeError,
    EmptyBatchError,
    InvalidBaseURLError,
    InvalidFieldError,
    InvalidResponseError,
    InvalidTokenError,
    MissingFieldError,
    MissingParameterError,
    MissingSessionKeyError,
    RateLimitError,
    ScrobblerError,
    ServiceError,
    ServiceUnavailableError,
    SessionExchangeFailed,
    TokenRequestFailed,
    TransportError,
    UnsupportedModeError,
    ValidationError,
)
from .signing import AuthMode, AuthenticatedRequest, build_signature
from .submission import (
    MAX_BATCH_SIZE,
    CorrectedValue,
    IgnoredReason,
    NowPlayingResult,
    ScrobbleOutcome,
    ScrobbleResult,
)
from .tracks import NowPlaying, Scrobble

__all__ = [
    'ScrobblerClient',
    'ScrobblerConfig',
    'get_scrobbler_config',
    'AuthMode',
    'AuthState',
    'AuthToken',
    'Session',
    'AuthenticatedRequest',
    'build_signature',
    'NowPlaying',
    'Scrobble',
    'MAX_BATCH_SIZE',
    'CorrectedValue',
    'IgnoredReason',
    'NowPlayingResult',
    'ScrobbleOutcome',
    'ScrobbleResult',
    'ScrobblerError',
    'ValidationError',
    'MissingFieldError',
    'InvalidFieldError',
    'EmptyBatchError',
    'BatchTooLargeError',
    'MissingParameterError',
    'MissingSessionKeyError',
    'InvalidBaseURLError',
    'UnsupportedModeError',
    'AuthError',
    'TokenRequestFailed',
    'SessionExchangeFailed',
    'InvalidTokenError',
    'TransportError',
    'ServiceError',
    'AuthenticationError',
    'RateLimitError',
    'ServiceUnavailableError',
    'InvalidResponseError',
]
