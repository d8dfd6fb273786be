"""
Custom exceptions for the scrobbler client.

Every error carries a message, an error code and a details dict so callers
can tell apart "fix your input" (ValidationError), "re-run the authorization
step" (AuthError) and "try again later" (TransportError, ServiceError).
"""


class ScrobblerError(Exception):
    """Base exception for all scrobbler errors."""

    def __init__(self, message, error_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


# Locally detected contract violations. Never sent over the network.

class ValidationError(ScrobblerError):
    """Raised when a request is rejected before any I/O happens."""

    def __init__(self, message, field=None, value=None, **kwargs):
        kwargs.setdefault('error_code', 'VALIDATION_ERROR')
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        if field:
            self.details.update({'field': field, 'value': value})


class MissingFieldError(ValidationError):
    """Raised when a required track field is empty."""

    def __init__(self, field, **kwargs):
        super().__init__(
            f"'{field}' is required and cannot be empty",
            field=field,
            error_code='MISSING_FIELD',
            **kwargs
        )


class InvalidFieldError(ValidationError):
    """Raised when a track field has the wrong type or range."""

    def __init__(self, message, field=None, value=None, **kwargs):
        super().__init__(message, field=field, value=value, error_code='INVALID_FIELD', **kwargs)


class EmptyBatchError(ValidationError):
    """Raised when a scrobble batch has no tracks."""

    def __init__(self, **kwargs):
        super().__init__("No scrobbles provided", error_code='EMPTY_BATCH', **kwargs)


class BatchTooLargeError(ValidationError):
    """Raised when a scrobble batch exceeds the per-request ceiling."""

    def __init__(self, size, max_size, **kwargs):
        super().__init__(
            f"Maximum {max_size} scrobbles per request, got {size}",
            error_code='BATCH_TOO_LARGE',
            **kwargs
        )
        self.size = size
        self.max_size = max_size
        self.details.update({'size': size, 'max_size': max_size})


class MissingParameterError(ValidationError):
    """Raised when a request parameter needed for signing is missing."""

    def __init__(self, parameter, **kwargs):
        super().__init__(
            f"Missing required request parameter '{parameter}'",
            field=parameter,
            error_code='MISSING_PARAMETER',
            **kwargs
        )
        self.parameter = parameter


class MissingSessionKeyError(ValidationError):
    """Raised when an authenticated call is made before the handshake completed."""

    def __init__(self, message="Session key required for authenticated requests", **kwargs):
        super().__init__(message, error_code='MISSING_SESSION_KEY', **kwargs)


class InvalidBaseURLError(ValidationError):
    """Raised when a token-mode base URL is not an absolute http(s) URL."""

    def __init__(self, base_url, **kwargs):
        super().__init__(
            f"Invalid base URL '{base_url}': expected an absolute http(s) URL",
            field='base_url',
            value=base_url,
            error_code='INVALID_BASE_URL',
            **kwargs
        )


class UnsupportedModeError(ValidationError):
    """Raised when an operation is not available in the client's auth mode."""

    def __init__(self, operation, mode, **kwargs):
        super().__init__(
            f"{operation}() is not available in {mode} mode",
            error_code='UNSUPPORTED_MODE',
            **kwargs
        )
        self.operation = operation
        self.mode = mode


# Handshake failures.

class AuthError(ScrobblerError):
    """Base exception for authorization handshake failures."""

    def __init__(self, message, **kwargs):
        kwargs.setdefault('error_code', 'AUTH_ERROR')
        super().__init__(message, **kwargs)


class TokenRequestFailed(AuthError):
    """Raised when auth.getToken fails for any transport or service reason."""

    def __init__(self, message, **kwargs):
        super().__init__(message, error_code='TOKEN_REQUEST_FAILED', **kwargs)


class SessionExchangeFailed(AuthError):
    """
    Raised when the user has not authorized the token yet.

    Recoverable: prompt the user again and call get_session() with the same
    token.
    """

    def __init__(self, message, service_code=None, **kwargs):
        super().__init__(message, error_code='SESSION_EXCHANGE_FAILED', **kwargs)
        self.service_code = service_code
        if service_code is not None:
            self.details.update({'service_code': service_code})


class InvalidTokenError(AuthError):
    """Raised when a token is empty, unknown or expired."""

    def __init__(self, message, service_code=None, **kwargs):
        super().__init__(message, error_code='INVALID_TOKEN', **kwargs)
        self.service_code = service_code
        if service_code is not None:
            self.details.update({'service_code': service_code})


# Failures below the service: connectivity, timeouts, TLS, bare HTTP errors.

class TransportError(ScrobblerError):
    """Raised for network/connection issues, propagated from requests."""

    def __init__(self, message, status_code=None, **kwargs):
        kwargs.setdefault('error_code', 'TRANSPORT_ERROR')
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.details.update({'status_code': status_code})


# Structured errors returned by the remote service.

class ServiceError(ScrobblerError):
    """Raised when the service answers with an error code and message."""

    def __init__(self, message, error_code=None, response=None, **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)
        self.response = response


class AuthenticationError(ServiceError):
    """Raised for invalid signature, API key or session key."""
    pass


class RateLimitError(ServiceError):
    """Raised when the service rate limit is exceeded."""

    def __init__(self, message, retry_after=None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        if retry_after:
            self.details.update({'retry_after': retry_after})


class ServiceUnavailableError(ServiceError):
    """Raised when the service reports it is offline or temporarily failing."""
    pass


class InvalidResponseError(ServiceError):
    """Raised when the service returns invalid/unexpected data."""
    pass
