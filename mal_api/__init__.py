"""MyAnimeList v2 API client (OAuth Authorization Code + PKCE "plain").

Typical flow:
- get_oauth_url() -> send the user to .url, keep .code_challenge
- resolve_auth_code(code, code_challenge) -> tokens stored on the client
- get()/post()/patch()/put()/delete() with transparent refresh
"""

from .auth import AuthorizationRequest, MALPKCEAuth, extract_code_from_redirect_url, generate_code_challenge
from .client import MALClient
from .errors import AuthenticationError, ConfigurationError, MALError, TransportError
from .refresh import RefreshCoordinator, RefreshState
from .token_manager import Credentials, TokenManager, TokenPair
from .transport import HTTPResponse, HTTPTransport

__all__ = [
    "AuthenticationError",
    "AuthorizationRequest",
    "ConfigurationError",
    "Credentials",
    "HTTPResponse",
    "HTTPTransport",
    "MALClient",
    "MALError",
    "MALPKCEAuth",
    "RefreshCoordinator",
    "RefreshState",
    "TokenManager",
    "TokenPair",
    "TransportError",
    "extract_code_from_redirect_url",
    "generate_code_challenge",
]
