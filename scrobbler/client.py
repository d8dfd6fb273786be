"""
Scrobbler client implementation.

Single entry point for both authentication modes:
- Signature mode (Last.fm compatible): token handshake, signed requests
- Token mode (self-hosted servers): bearer header, JSON bodies

Each call validates locally, builds one authenticated request, sends it and
parses the answer. There are no retries inside the client; error types tell
the caller whether to fix the input, re-authorize or try again later.
"""
import logging
import threading
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Sequence, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .auth import (
    TOKEN_INVALID_CODES,
    TOKEN_NOT_AUTHORIZED,
    AuthState,
    AuthToken,
    Session,
    build_auth_url,
    parse_session_response,
    parse_token_response,
)
from .config import ScrobblerConfig
from .exceptions import (
    AuthenticationError,
    AuthError,
    InvalidFieldError,
    InvalidResponseError,
    InvalidTokenError,
    RateLimitError,
    ServiceError,
    ServiceUnavailableError,
    SessionExchangeFailed,
    TokenRequestFailed,
    TransportError,
    UnsupportedModeError,
)
from .signing import AuthenticatedRequest, AuthMode, BearerSigner, SignatureSigner
from .submission import (
    NOW_PLAYING_PATH,
    SCROBBLE_PATH,
    NowPlayingResult,
    ScrobbleResult,
    build_now_playing_json,
    build_now_playing_params,
    build_scrobble_json,
    build_scrobble_params,
    check_batch,
    check_now_playing,
    parse_now_playing_response,
    parse_scrobble_response,
)
from .tracks import NowPlaying, Scrobble


logger = logging.getLogger('scrobbler.client')

AUTHENTICATION_ERROR_CODES = (4, 9, 10, 13, 26)
RATE_LIMIT_ERROR_CODES = (29,)
UNAVAILABLE_ERROR_CODES = (11, 16)
DEFAULT_RETRY_AFTER = 60


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """
    Read a Retry-After header given as delay-seconds or as an HTTP-date.

    Returns:
        Seconds to wait (never negative), DEFAULT_RETRY_AFTER when the header
        is missing, or None when it cannot be understood
    """
    if value is None:
        return DEFAULT_RETRY_AFTER

    value = value.strip()
    if value.isdigit():
        return int(value)

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.warning("Unparseable Retry-After header", extra={'retry_after': value})
        return None

    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)

    delay = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return max(0, int(delay))


class ScrobblerClient:
    """
    Scrobbling client for Last.fm compatible and bearer token servers.

    Build one with for_lastfm(), for_token() or from_config(). Credentials are
    fixed for the client's lifetime, except the session key which goes from
    absent to present once (get_session() or set_session_key()).
    """

    def __init__(self, signer: Union[SignatureSigner, BearerSigner], config: Optional[ScrobblerConfig] = None):
        """
        Initialize scrobbler client.

        Args:
            signer: SignatureSigner or BearerSigner holding the credentials
            config: ScrobblerConfig for transport settings (will create if not provided)
        """
        self.config = config or ScrobblerConfig()
        self._signer = signer
        self._session = None
        self._session_lock = threading.Lock()
        self._token_issued = False

    @classmethod
    def for_lastfm(
        cls,
        api_key: str,
        shared_secret: str,
        session_key: Optional[str] = None,
        config: Optional[ScrobblerConfig] = None,
    ) -> 'ScrobblerClient':
        """Create a signature mode client; pass a saved session_key to skip the handshake."""
        config = config or ScrobblerConfig()
        signer = SignatureSigner(
            api_key,
            shared_secret,
            session_key=session_key,
            api_root=config.api_root,
        )
        return cls(signer, config)

    @classmethod
    def for_token(
        cls,
        base_url: str,
        token: str,
        config: Optional[ScrobblerConfig] = None,
    ) -> 'ScrobblerClient':
        """
        Create a token mode client for a custom scrobble server.

        Raises:
            InvalidBaseURLError: If base_url is not an absolute http(s) URL
        """
        return cls(BearerSigner(base_url, token), config)

    @classmethod
    def from_config(cls, config: Optional[ScrobblerConfig] = None) -> 'ScrobblerClient':
        """Create a client in whichever mode the configuration describes."""
        config = config or ScrobblerConfig()

        is_valid, error_msg = config.validate()
        if not is_valid:
            logger.warning(f"Scrobbler client initialized with invalid config: {error_msg}")

        if config.mode is AuthMode.TOKEN:
            return cls.for_token(config.base_url, config.token, config)
        return cls.for_lastfm(config.api_key, config.api_secret, config.session_key, config)

    # -------- state --------

    @property
    def mode(self) -> AuthMode:
        return self._signer.mode

    @property
    def session_key(self) -> Optional[str]:
        """Session key in signature mode, None otherwise (never log this value)."""
        if self.mode is AuthMode.SIGNATURE:
            return self._signer.session_key
        return None

    @property
    def auth_state(self) -> AuthState:
        if self.mode is AuthMode.TOKEN or self._signer.session_key:
            return AuthState.AUTHORIZED
        if self._token_issued:
            return AuthState.TOKEN_OBTAINED
        return AuthState.UNAUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.auth_state is AuthState.AUTHORIZED

    def _require_signature_mode(self, operation: str) -> SignatureSigner:
        if self.mode is not AuthMode.SIGNATURE:
            raise UnsupportedModeError(operation, self.mode.value)
        return self._signer

    def set_session_key(self, session_key: str):
        """
        Use a previously saved session key.

        Raises:
            InvalidFieldError: If the key is empty
            AuthError: If a different session key is already set
        """
        signer = self._require_signature_mode('set_session_key')

        if not isinstance(session_key, str) or not session_key.strip():
            raise InvalidFieldError("Session key cannot be empty", field='session_key')

        if signer.session_key:
            if signer.session_key == session_key:
                return
            raise AuthError("Client already has a session key; call clear_session_key() first")

        self._signer = signer.with_session_key(session_key)
        logger.info("Session key set", extra={'mode': self.mode.value})

    def clear_session_key(self):
        """Drop the session key, returning the client to the unauthenticated state."""
        signer = self._require_signature_mode('clear_session_key')
        self._signer = signer.with_session_key(None)
        self._token_issued = False
        logger.info("Session key cleared", extra={'mode': self.mode.value})

    # -------- transport --------

    def _get_session(self) -> requests.Session:
        """
        Get or create requests session with transport configuration.

        Returns:
            Configured requests.Session instance
        """
        with self._session_lock:
            if self._session is None:
                self._session = self._build_session()
            return self._session

    def _build_session(self) -> requests.Session:
        session = requests.Session()

        # Transport-level retries only, and never for POST submissions
        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            'User-Agent': self.config.user_agent,
        })

        return session

    def _send(self, request: AuthenticatedRequest, operation: str) -> Any:
        """
        Send one authenticated request and decode the answer.

        Args:
            request: Request produced by the signer
            operation: Name used in logs and error messages

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            TransportError: For network errors and HTTP errors without a body
            ServiceError: For errors reported by the service
        """
        logger.debug(
            f"Sending scrobbler request: {operation}",
            extra={
                'operation': operation,
                'http_method': request.http_method,
                'url': request.url,
            }
        )

        try:
            session = self._get_session()
            if request.http_method == 'GET':
                response = session.get(
                    request.url,
                    params=request.params,
                    headers=request.headers,
                    timeout=self.config.timeout
                )
            else:
                response = session.post(
                    request.url,
                    data=request.data,
                    json=request.json,
                    headers=request.headers,
                    timeout=self.config.timeout
                )

        except requests.exceptions.Timeout as e:
            logger.error(f"Scrobbler request timeout: {operation}")
            raise TransportError(
                f"Request timed out after {self.config.timeout} seconds"
            ) from e

        except requests.exceptions.ConnectionError as e:
            logger.error(f"Scrobbler connection error: {operation}")
            raise TransportError(
                f"Failed to connect to {request.url}"
            ) from e

        except requests.exceptions.RequestException as e:
            logger.error(f"Scrobbler request failed: {operation}", exc_info=True)
            raise TransportError(
                f"Request failed: {str(e)}"
            ) from e

        logger.debug(
            "Scrobbler response received",
            extra={
                'operation': operation,
                'status_code': response.status_code,
            }
        )

        data = self._decode(response, operation)

        if isinstance(data, dict) and 'error' in data:
            self._raise_service_error(data, operation)

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get('Retry-After'))
            raise RateLimitError(
                "Scrobbling service rate limit exceeded",
                error_code=429,
                retry_after=retry_after
            )

        if response.status_code >= 400:
            logger.error(
                f"Scrobbler HTTP error: {operation}",
                extra={'operation': operation, 'status_code': response.status_code}
            )
            raise TransportError(
                f"{operation} failed with HTTP {response.status_code}",
                status_code=response.status_code
            )

        return data

    def _decode(self, response, operation: str) -> Any:
        if response.status_code == 204:
            return None
        try:
            return response.json()
        except ValueError as e:
            if not (response.content or b'').strip():
                return None
            if response.status_code >= 400:
                raise TransportError(
                    f"{operation} failed with HTTP {response.status_code}",
                    status_code=response.status_code
                ) from e
            logger.error(f"Scrobbler returned invalid JSON: {operation}")
            raise InvalidResponseError(
                "Scrobbling service returned invalid JSON response"
            ) from e

    def _raise_service_error(self, data: dict, operation: str):
        error_message = data.get('message', 'Unknown error')
        try:
            error_code = int(data.get('error'))
        except (TypeError, ValueError):
            error_code = data.get('error')

        logger.error(
            "Scrobbling service error",
            extra={
                'operation': operation,
                'error_code': error_code,
                'error_message': error_message,
            }
        )

        if error_code in AUTHENTICATION_ERROR_CODES:
            raise AuthenticationError(
                f"Authentication failed: {error_message}",
                error_code=error_code,
                response=data
            )
        elif error_code in RATE_LIMIT_ERROR_CODES:
            raise RateLimitError(
                f"Rate limit exceeded: {error_message}",
                error_code=error_code,
                response=data
            )
        elif error_code in UNAVAILABLE_ERROR_CODES:
            raise ServiceUnavailableError(
                f"Service unavailable: {error_message}",
                error_code=error_code,
                response=data
            )
        raise ServiceError(
            f"Scrobbling service error: {error_message}",
            error_code=error_code,
            response=data
        )

    # -------- authorization handshake --------

    def get_token(self) -> AuthToken:
        """
        Step 1: request an unauthorized token (signature mode only).

        Raises:
            UnsupportedModeError: In token mode
            TokenRequestFailed: For any transport or service failure
        """
        signer = self._require_signature_mode('get_token')
        request = signer.build_request({'method': 'auth.getToken'}, authenticated=False, http_method='GET')

        try:
            token = parse_token_response(self._send(request, 'auth.getToken'))
        except (TransportError, ServiceError) as e:
            raise TokenRequestFailed(f"Token request failed: {e.message}") from e

        self._token_issued = True
        logger.info("Authorization token obtained")
        return token

    def get_auth_url(self, token: Union[AuthToken, str]) -> str:
        """
        Step 2: URL the user must open to authorize the token. No network access.

        Raises:
            UnsupportedModeError: In token mode
            InvalidTokenError: If the token is empty
        """
        signer = self._require_signature_mode('get_auth_url')
        return build_auth_url(signer.api_key, token, self.config.auth_url)

    def get_session(self, token: Union[AuthToken, str]) -> Session:
        """
        Step 3: exchange an authorized token for a session key.

        On success the session key is used for all later calls. Persisting it
        is up to the caller.

        Raises:
            SessionExchangeFailed: The user has not authorized the token yet;
                retry after prompting again
            InvalidTokenError: The token is empty, unknown or expired
            AuthError: The client already holds a session key
        """
        signer = self._require_signature_mode('get_session')

        if signer.session_key:
            raise AuthError("Client is already authorized; call clear_session_key() first")

        value = token.token if isinstance(token, AuthToken) else token
        if not isinstance(value, str) or not value.strip():
            raise InvalidTokenError("Cannot exchange an empty token")

        request = signer.build_request(
            {'method': 'auth.getSession', 'token': value},
            authenticated=False,
            http_method='GET'
        )

        try:
            data = self._send(request, 'auth.getSession')
        except ServiceError as e:
            if e.error_code == TOKEN_NOT_AUTHORIZED:
                logger.info("Token not yet authorized by the user")
                raise SessionExchangeFailed(
                    "Token has not been authorized yet",
                    service_code=e.error_code
                ) from e
            if e.error_code in TOKEN_INVALID_CODES:
                raise InvalidTokenError(
                    f"Token is invalid or expired: {e.message}",
                    service_code=e.error_code
                ) from e
            raise

        session = parse_session_response(data)
        self._signer = signer.with_session_key(session.key)

        logger.info(
            "Session obtained",
            extra={'username': session.name}
        )

        return session

    # -------- submission --------

    def update_now_playing(self, record: NowPlaying) -> NowPlayingResult:
        """
        Tell the service which track is playing right now.

        Args:
            record: NowPlaying (or Scrobble) record for the current track

        Returns:
            NowPlayingResult with the echoed, possibly corrected, track fields
        """
        if isinstance(record, Scrobble):
            record = NowPlaying(
                artist=record.artist,
                track=record.track,
                album=record.album,
                duration=record.duration,
                album_artist=record.album_artist,
                track_number=record.track_number,
                mbid=record.mbid,
                player=record.player,
            )
        check_now_playing(record)

        if self.mode is AuthMode.SIGNATURE:
            request = self._signer.build_request(build_now_playing_params(record))
        else:
            request = self._signer.build_request(NOW_PLAYING_PATH, build_now_playing_json(record))

        data = self._send(request, 'updateNowPlaying')
        result = parse_now_playing_response(data, record)

        logger.debug(
            "Now playing updated",
            extra={'ignored': result.ignored_reason is not None}
        )

        return result

    def scrobble(self, records: Union[Scrobble, Sequence[Scrobble]]) -> ScrobbleResult:
        """
        Submit up to 50 scrobbles in one request.

        Args:
            records: A Scrobble or a sequence of them

        Returns:
            ScrobbleResult whose outcomes follow the order of records

        Raises:
            EmptyBatchError: If no records were given
            BatchTooLargeError: If more than 50 records were given
        """
        records = check_batch(records)

        if self.mode is AuthMode.SIGNATURE:
            request = self._signer.build_request(build_scrobble_params(records))
        else:
            request = self._signer.build_request(SCROBBLE_PATH, build_scrobble_json(records))

        data = self._send(request, 'scrobble')
        result = parse_scrobble_response(data, records)

        logger.info(
            "Scrobbles submitted",
            extra={
                'submitted': len(records),
                'accepted': result.accepted_count,
                'ignored': result.ignored_count,
            }
        )

        return result

    def close(self):
        """Close the HTTP session."""
        with self._session_lock:
            if self._session is not None:
                self._session.close()
                self._session = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
