import logging
import secrets
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import AuthenticationError, ConfigurationError, TransportError
from .token_manager import TokenManager, TokenPair
from .transport import HTTPTransport

logger = logging.getLogger(__name__)

MAL_OAUTH_BASE_URL = "https://myanimelist.net/v1/oauth2/"

# MyAnimeList only accepts the "plain" PKCE method: challenge == verifier.
CODE_CHALLENGE_METHOD = "plain"
DEFAULT_PKCE_CHALLENGE_SIZE = 32


def generate_code_challenge(size: int = DEFAULT_PKCE_CHALLENGE_SIZE) -> str:
    """Return a random PKCE code challenge (also the code verifier, "plain" method).

    ``size`` random bytes are encoded as URL-safe text; 32 bytes give 43 chars,
    the minimum verifier length allowed by RFC 7636.
    """

    return secrets.token_urlsafe(int(size))


REDIRECT_KEYS = ("code", "state", "error", "error_description", "hint", "message")


def extract_code_from_redirect_url(redirect_url: str, *, expected_state: Optional[str] = None) -> Dict[str, str]:
    """Parse the MyAnimeList redirect back to the app.

    Returns the present keys of code/state on success, or error plus
    error_description/hint/message when the user denied access. With
    expected_state, a callback carrying a different state raises
    AuthenticationError.
    """

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out = {key: str(qs[key][0]) for key in REDIRECT_KEYS if qs.get(key)}

    if expected_state is not None and "code" in out and out.get("state") != expected_state:
        raise AuthenticationError("MyAnimeList redirect state does not match the authorization request")
    return out


def check_mal_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate MyAnimeList config fields and return a structured status dict."""

    config = config or {}
    has_client = bool(str(config.get("mal_client_id") or "").strip()) and bool(
        str(config.get("mal_client_secret") or "").strip()
    )
    has_tokens = bool(config.get("mal_access_token") or config.get("mal_refresh_token"))

    if not has_client and not has_tokens:
        message = (
            "Missing mal_client_id/mal_client_secret and no stored tokens.\n"
            "Create an API client at https://myanimelist.net/apiconfig and copy both values into config.json."
        )
    elif not has_client:
        message = (
            "Stored tokens found but mal_client_id/mal_client_secret are not set.\n"
            "API calls will work until the tokens stop being accepted; re-authorizing needs the client credentials."
        )
    else:
        message = "MyAnimeList credentials look OK."

    return {
        "ok": has_client or has_tokens,
        "can_authorize": has_client,
        "has_tokens": has_tokens,
        "message": message,
    }


@dataclass(frozen=True)
class AuthorizationRequest:
    url: str
    code_challenge: str
    state: Optional[str] = None
    redirect_uri: Optional[str] = None

    response_type = "code"
    code_challenge_method = CODE_CHALLENGE_METHOD


class MALPKCEAuth:
    """MyAnimeList OAuth (Authorization Code + PKCE "plain") helper.

    Every successful exchange is written into the shared TokenManager.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        *,
        transport: Optional[HTTPTransport] = None,
        pkce_challenge_size: int = DEFAULT_PKCE_CHALLENGE_SIZE,
    ):
        self.token_manager = token_manager
        self.transport = transport or HTTPTransport(MAL_OAUTH_BASE_URL)
        self.pkce_challenge_size = pkce_challenge_size

    def _require_client_credentials(self) -> None:
        if not self.token_manager.credentials.is_complete:
            raise ConfigurationError("client_id and client_secret must be set to use this function")

    def build_authorization_url(
        self,
        redirect_uri: Optional[str] = None,
        code_challenge: Optional[str] = None,
        state: Optional[str] = None,
    ) -> AuthorizationRequest:
        """Build the URL the user opens to grant access.

        Keep the returned code_challenge: it is the code_verifier for
        exchange_authorization_code().
        """

        self._require_client_credentials()

        if not code_challenge:
            code_challenge = generate_code_challenge(self.pkce_challenge_size)

        query = {
            "response_type": AuthorizationRequest.response_type,
            "client_id": self.token_manager.credentials.client_id,
            "state": state,
            "redirect_uri": redirect_uri,
            "code_challenge": code_challenge,
            "code_challenge_method": CODE_CHALLENGE_METHOD,
        }
        url = self.transport.build_url("authorize", query)
        return AuthorizationRequest(url=url, code_challenge=code_challenge, state=state, redirect_uri=redirect_uri)

    async def exchange_authorization_code(
        self,
        auth_code: str,
        code_verifier: str,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._require_client_credentials()
        credentials = self.token_manager.credentials

        logger.info("Exchanging MyAnimeList authorization code for tokens")
        payload = await self._post_token(
            {
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "grant_type": "authorization_code",
                "code": auth_code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            }
        )
        self._store(payload)
        return payload

    async def exchange_refresh_token(self, refresh_token: Optional[str] = None) -> Dict[str, Any]:
        """Mint a new token pair from a refresh token (defaults to the stored one)."""

        refresh_token = refresh_token or self.token_manager.refresh_token
        if not refresh_token:
            raise AuthenticationError("No refresh token available to refresh the access token")

        credentials = self.token_manager.credentials
        logger.info("Refreshing MyAnimeList access token")
        payload = await self._post_token(
            {
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            }
        )
        self._store(payload, fallback_refresh_token=refresh_token)
        return payload

    def _store(self, payload: Dict[str, Any], *, fallback_refresh_token: Optional[str] = None) -> None:
        tokens = TokenPair.from_token_response(payload, fallback_refresh_token=fallback_refresh_token)
        if not tokens.access_token:
            raise AuthenticationError("MyAnimeList token response did not contain an access_token")
        self.token_manager.set(tokens)

    async def _post_token(self, form: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self.transport.request(
            "POST",
            "token",
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        resp.raise_for_status()

        if not isinstance(resp.body, dict):
            raise TransportError(
                f"MyAnimeList token response was not an object: {resp.body}",
                status_code=resp.status_code,
                body=resp.body,
                url=resp.url,
            )
        return resp.body
