from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Credentials:
    """Client identity issued by the MyAnimeList API config page."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh token pair held by TokenManager."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @staticmethod
    def from_token_response(
        payload: Dict[str, Any], *, fallback_refresh_token: Optional[str] = None
    ) -> "TokenPair":
        """Convert a token endpoint response into a TokenPair.

        MyAnimeList returns:
        - token_type ("Bearer")
        - expires_in (seconds)
        - access_token
        - refresh_token

        A response without refresh_token keeps fallback_refresh_token.
        """

        return TokenPair(
            access_token=payload.get("access_token") or None,
            refresh_token=payload.get("refresh_token") or fallback_refresh_token,
        )

    def with_access_token(self, access_token: Optional[str]) -> "TokenPair":
        return replace(self, access_token=access_token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
        }


class TokenManager:
    """In-memory owner of the client credentials and the current token pair.

    Persisting tokens across restarts is left to the caller: read
    ``get().to_dict()`` and pass the values back when building a new client.
    """

    def __init__(self, credentials: Optional[Credentials] = None, tokens: Optional[TokenPair] = None):
        self.credentials = credentials or Credentials()
        self._tokens = tokens or TokenPair()

    @property
    def access_token(self) -> Optional[str]:
        return self._tokens.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._tokens.refresh_token

    def get(self) -> TokenPair:
        return self._tokens

    def set(self, tokens: TokenPair) -> None:
        self._tokens = tokens

    def clear_access_token(self) -> None:
        """Drop only the access token so the next preflight re-derives it."""
        self._tokens = self._tokens.with_access_token(None)
