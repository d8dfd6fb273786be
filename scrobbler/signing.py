"""
Request signing for the two authentication modes.

SignatureSigner produces Last.fm-style signed parameter sets (api_key, sk,
api_sig); BearerSigner produces JSON requests authorized with a bearer token.
Both expose build_request() and are picked once when the client is built.
"""
import enum
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

from .exceptions import (
    InvalidBaseURLError,
    MissingParameterError,
    MissingSessionKeyError,
)


logger = logging.getLogger('scrobbler.signing')

DEFAULT_API_ROOT = "https://ws.audioscrobbler.com/2.0/"

# Parameters that select the response encoding rather than the call itself.
UNSIGNED_PARAMETERS = frozenset({'format', 'callback', 'api_sig'})


class AuthMode(enum.Enum):
    SIGNATURE = 'signature'
    TOKEN = 'token'


@dataclass(frozen=True)
class AuthenticatedRequest:
    """Everything the transport needs to send one request."""

    http_method: str
    url: str
    params: Optional[Dict[str, str]] = None
    data: Optional[Dict[str, str]] = None
    json: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


def build_signature(params: Mapping[str, Any], secret: str) -> str:
    """
    Build the api_sig for a Last.fm request.

    Parameter names are sorted by their UTF-8 bytes, each name is followed
    directly by its value, the shared secret is appended and the result is
    MD5 hashed.

    Args:
        params: Request parameters (api_sig, format and callback are ignored)
        secret: Shared secret of the API account

    Returns:
        Lowercase hex MD5 digest
    """
    signed = {
        str(name): str(value)
        for name, value in params.items()
        if name not in UNSIGNED_PARAMETERS
    }
    ordered = sorted(signed.items(), key=lambda item: item[0].encode('utf-8'))
    signature_string = ''.join(f"{name}{value}" for name, value in ordered)
    signature_string += secret

    return hashlib.md5(signature_string.encode('utf-8')).hexdigest()


class SignatureSigner:
    """Signs Last.fm API calls with the API key, shared secret and session key."""

    mode = AuthMode.SIGNATURE

    def __init__(
        self,
        api_key: str,
        shared_secret: str,
        session_key: Optional[str] = None,
        api_root: str = DEFAULT_API_ROOT,
    ):
        if not api_key:
            raise MissingParameterError('api_key')
        if not shared_secret:
            raise MissingParameterError('shared_secret')

        self._api_key = api_key
        self._shared_secret = shared_secret
        self._session_key = session_key or None
        self._api_root = api_root

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def session_key(self) -> Optional[str]:
        """Current session key (never log this value)."""
        return self._session_key

    @property
    def api_root(self) -> str:
        return self._api_root

    def with_session_key(self, session_key: Optional[str]) -> 'SignatureSigner':
        """Return a signer sharing these credentials with a different session key."""
        return SignatureSigner(
            self._api_key,
            self._shared_secret,
            session_key=session_key,
            api_root=self._api_root,
        )

    def build_request(
        self,
        params: Mapping[str, Any],
        authenticated: bool = True,
        http_method: str = 'POST',
    ) -> AuthenticatedRequest:
        """
        Sign a Last.fm API call.

        Args:
            params: Method parameters, including 'method'
            authenticated: Whether the call needs the session key ('sk')
            http_method: 'GET' sends the parameters in the query string,
                'POST' sends them form encoded

        Returns:
            AuthenticatedRequest for the API root

        Raises:
            MissingParameterError: If 'method' or any value is missing
            MissingSessionKeyError: If authenticated and no session key is set
        """
        if not params.get('method'):
            raise MissingParameterError('method')

        request_params = {}
        for name, value in params.items():
            if value is None or value == '':
                raise MissingParameterError(name)
            request_params[name] = str(value)

        request_params['api_key'] = self._api_key

        if authenticated:
            if not self._session_key:
                raise MissingSessionKeyError()
            request_params['sk'] = self._session_key

        request_params['api_sig'] = build_signature(request_params, self._shared_secret)
        request_params['format'] = 'json'

        logger.debug(
            f"Signed Last.fm request: {request_params['method']}",
            extra={
                'method': request_params['method'],
                'params_count': len(request_params),
                'authenticated': authenticated,
            }
        )

        if http_method.upper() == 'GET':
            return AuthenticatedRequest('GET', self._api_root, params=request_params)
        return AuthenticatedRequest('POST', self._api_root, data=request_params)


def validate_base_url(base_url: str) -> str:
    """
    Check that a token-mode base URL is absolute.

    Returns:
        The base URL without trailing slashes

    Raises:
        InvalidBaseURLError: If the URL has no http(s) scheme or no host
    """
    if not isinstance(base_url, str):
        raise InvalidBaseURLError(base_url)

    try:
        parts = urlsplit(base_url.strip())
    except ValueError as e:
        raise InvalidBaseURLError(base_url) from e

    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise InvalidBaseURLError(base_url)

    return base_url.strip().rstrip('/')


class BearerSigner:
    """Authorizes requests to a custom scrobble server with a bearer token."""

    mode = AuthMode.TOKEN

    def __init__(self, base_url: str, token: str):
        if not token:
            raise MissingParameterError('token')

        self._base_url = validate_base_url(base_url)
        self._token = token

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def build_request(self, path: str, payload: Any) -> AuthenticatedRequest:
        """
        Build a POST to ``{base_url}/{path}`` with a JSON body.

        Args:
            path: Endpoint below the base URL ('now' or 'scrob')
            payload: JSON serializable body

        Returns:
            AuthenticatedRequest carrying the Authorization header
        """
        logger.debug(
            f"Built bearer request: {path}",
            extra={'path': path}
        )

        return AuthenticatedRequest(
            'POST',
            self.url_for(path),
            json=payload,
            headers={'Authorization': f"Bearer {self._token}"},
        )
