import logging
from typing import Any, Dict, Optional

import httpx

from .auth import DEFAULT_PKCE_CHALLENGE_SIZE, MAL_OAUTH_BASE_URL, AuthorizationRequest, MALPKCEAuth
from .config import DEFAULT_CONFIG, validate_config
from .errors import ConfigurationError
from .refresh import RefreshCoordinator, RefreshState
from .token_manager import Credentials, TokenManager, TokenPair
from .transport import DEFAULT_TIMEOUT, HTTPResponse, HTTPTransport

logger = logging.getLogger(__name__)

MAL_API_BASE_URL = "https://api.myanimelist.net/v2/"

# One extra attempt after a refresh, never more.
MAX_ATTEMPTS = 2

# verb -> (sends a form body, retries once on 401)
# Only reads retry on 401; writes run preflight and dispatch once.
VERB_POLICY = {
    "GET": (False, True),
    "POST": (True, False),
    "PATCH": (True, False),
    "PUT": (True, False),
    "DELETE": (False, False),
}


def normalize_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a copy of params with a list/tuple ``fields`` joined by commas."""

    if params is None:
        return None
    out = dict(params)
    fields = out.get("fields")
    if isinstance(fields, (list, tuple)):
        out["fields"] = ",".join(str(f) for f in fields)
    return out


class MALClient:
    """MyAnimeList v2 API client with OAuth PKCE and transparent token refresh.

    Either client_id + client_secret, or at least one of access_token /
    refresh_token, must be supplied.

    Retry behavior:
    - get: a 401 on a call that did not already come from a refresh clears the
      access token and retries once (refreshing first). If no refresh token is
      available the 401 body is returned as-is.
    - post/patch/put/delete: no 401 retry; any non-2xx raises TransportError.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        *,
        auto_refresh_access_token: bool = False,
        api_base_url: str = MAL_API_BASE_URL,
        oauth_base_url: str = MAL_OAUTH_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
        oauth_http_client: Optional[httpx.AsyncClient] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        pkce_challenge_size: int = DEFAULT_PKCE_CHALLENGE_SIZE,
        redirect_uri: Optional[str] = None,
    ):
        credentials = Credentials(client_id=client_id, client_secret=client_secret)
        if not credentials.is_complete and not (access_token or refresh_token):
            raise ConfigurationError(
                "either provide both client_id and client_secret, or one of access_token / refresh_token"
            )

        self.token_manager = TokenManager(
            credentials,
            TokenPair(access_token=access_token or None, refresh_token=refresh_token or None),
        )
        self.api = HTTPTransport(api_base_url, timeout=timeout, client=http_client, transport=http_transport)
        self.auth = MALPKCEAuth(
            self.token_manager,
            transport=HTTPTransport(
                oauth_base_url, timeout=timeout, client=oauth_http_client, transport=http_transport
            ),
            pkce_challenge_size=pkce_challenge_size,
        )
        self.refresher = RefreshCoordinator(self.token_manager, self.auth, auto_refresh=auto_refresh_access_token)
        self.redirect_uri = redirect_uri or None

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs: Any) -> "MALClient":
        """Build a client from a config dict (see mal_api.config.DEFAULT_CONFIG)."""

        merged = {**DEFAULT_CONFIG, **(config or {})}
        is_valid, errors = validate_config(merged)
        if not is_valid:
            raise ConfigurationError(f"Invalid MyAnimeList config: {', '.join(errors)}")

        return cls(
            client_id=merged.get("mal_client_id") or None,
            client_secret=merged.get("mal_client_secret") or None,
            access_token=merged.get("mal_access_token") or None,
            refresh_token=merged.get("mal_refresh_token") or None,
            auto_refresh_access_token=bool(merged.get("mal_auto_refresh")),
            api_base_url=merged["mal_api_base_url"],
            oauth_base_url=merged["mal_oauth_base_url"],
            timeout=float(merged["mal_timeout"]),
            pkce_challenge_size=int(merged["mal_pkce_challenge_size"]),
            redirect_uri=merged.get("mal_redirect_uri") or None,
            **kwargs,
        )

    # -----------------
    # Token management
    # -----------------

    @property
    def access_token(self) -> Optional[str]:
        return self.token_manager.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self.token_manager.refresh_token

    @property
    def auto_refresh_access_token(self) -> bool:
        return self.refresher.auto_refresh

    @auto_refresh_access_token.setter
    def auto_refresh_access_token(self, value: bool) -> None:
        self.refresher.auto_refresh = bool(value)

    def get_oauth_url(
        self,
        redirect_uri: Optional[str] = None,
        code_challenge: Optional[str] = None,
        state: Optional[str] = None,
    ) -> AuthorizationRequest:
        return self.auth.build_authorization_url(redirect_uri or self.redirect_uri, code_challenge, state)

    async def resolve_auth_code(
        self, auth_code: str, code_verifier: str, redirect_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.auth.exchange_authorization_code(auth_code, code_verifier, redirect_uri or self.redirect_uri)

    async def resolve_refresh_token(self, refresh_token: Optional[str] = None) -> Dict[str, Any]:
        return await self.auth.exchange_refresh_token(refresh_token)

    # -----------------
    # HTTP verbs
    # -----------------

    async def get(self, resource: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._dispatch("GET", resource, normalize_params(params))

    async def post(self, resource: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._dispatch("POST", resource, params)

    async def patch(self, resource: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._dispatch("PATCH", resource, params)

    async def put(self, resource: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._dispatch("PUT", resource, params)

    async def delete(self, resource: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._dispatch("DELETE", resource, params)

    async def _dispatch(self, method: str, resource: str, params: Optional[Dict[str, Any]]) -> Any:
        sends_form, retries_on_401 = VERB_POLICY[method]

        attempt = 0
        while True:
            attempt += 1
            state = await self.refresher.preflight()
            via_refresh = state is RefreshState.REFRESHED

            access_token = self.token_manager.access_token
            logger.debug("%s %s (attempt %d, %s)", method, resource, attempt, state.value)
            resp = await self._send(method, resource, params, access_token=access_token, sends_form=sends_form)

            if resp.status_code == 401 and retries_on_401:
                if via_refresh or attempt >= MAX_ATTEMPTS:
                    logger.warning("%s %s still unauthorized after refresh; returning response body", method, resource)
                    return resp.body
                if not self.token_manager.refresh_token:
                    logger.warning("%s %s unauthorized and no refresh token; returning response body", method, resource)
                    return resp.body

                logger.warning("%s %s unauthorized; dropping access token and retrying once", method, resource)
                # Another call may already have replaced the rejected token.
                if self.token_manager.access_token == access_token:
                    self.token_manager.clear_access_token()
                continue

            resp.raise_for_status()
            return resp.body

    async def _send(
        self,
        method: str,
        resource: str,
        params: Optional[Dict[str, Any]],
        *,
        access_token: Optional[str],
        sends_form: bool,
    ) -> HTTPResponse:
        headers = {"Authorization": f"Bearer {access_token}"}
        if sends_form:
            return await self.api.request(method, resource, headers=headers, data=params or {})
        return await self.api.request(method, resource, headers=headers, params=params)

    # -----------------
    # Lifecycle
    # -----------------

    async def aclose(self) -> None:
        await self.api.aclose()
        await self.auth.transport.aclose()

    async def __aenter__(self) -> "MALClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
