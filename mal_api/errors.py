from typing import Any, Optional


class MALError(RuntimeError):
    """Base class for every error raised by mal_api."""


class ConfigurationError(MALError, ValueError):
    """Client identity or configuration is missing/invalid for the requested flow."""


class AuthenticationError(MALError):
    """No usable access or refresh token is available."""


class TransportError(MALError):
    """Network failure or an error status returned by the remote service.

    status_code is None when the request never produced a response.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url
