import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def clean_params(values: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Drop absent (None) entries and stringify the rest.

    Falsy values such as 0, False or "" are real values and are kept.
    """

    return {k: _stringify(v) for k, v in (values or {}).items() if v is not None}


@dataclass(frozen=True)
class HTTPResponse:
    status_code: int
    body: Any
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def raise_for_status(self) -> None:
        if not self.ok:
            raise TransportError(
                f"MyAnimeList request failed (HTTP {self.status_code}): {self.body}",
                status_code=self.status_code,
                body=self.body,
                url=self.url,
            )


class HTTPTransport:
    """Thin async HTTP collaborator bound to one base URL.

    Every status code comes back as an HTTPResponse; deciding which ones are
    errors is up to the caller. Only network failures and undecodable success
    bodies raise here.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json", **(headers or {})},
            follow_redirects=False,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return str(self.client.base_url)

    def build_url(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Render an absolute URL (with query string) without sending anything."""

        url = self.client.base_url.join(path.lstrip("/"))
        query = clean_params(params)
        if query:
            url = url.copy_merge_params(query)
        return str(url)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> HTTPResponse:
        method = method.upper()
        kwargs: Dict[str, Any] = {"headers": headers or {}}
        if params is not None:
            kwargs["params"] = clean_params(params)
        if data is not None:
            kwargs["data"] = clean_params(data)

        try:
            resp = await self.client.request(method, path.lstrip("/"), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"MyAnimeList request failed: {e}") from e

        url = str(resp.request.url)
        logger.debug("%s %s -> HTTP %s", method, resp.request.url.path, resp.status_code)

        if not resp.content:
            return HTTPResponse(status_code=resp.status_code, body={}, url=url)

        try:
            body = resp.json()
        except ValueError as e:
            if 200 <= resp.status_code < 300:
                raise TransportError(
                    f"MyAnimeList response was not JSON (HTTP {resp.status_code}): {resp.text}",
                    status_code=resp.status_code,
                    body=resp.text,
                    url=url,
                ) from e
            body = resp.text

        return HTTPResponse(status_code=resp.status_code, body=body, url=url)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
