"""Thin async REST client for the chat service."""

import logging
from typing import Any

import httpx

from parley.errors import NetworkError, ResponseError, SessionExpired


class ApiClient:
    """Wraps an httpx.AsyncClient and maps failures onto the Parley errors.

    The client holds no credentials. Callers pass the bearer token per call.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Performs a request and returns the decoded JSON body.

        Raises SessionExpired for a 401 on an authenticated call, ResponseError
        for any other error status, and NetworkError when no response arrived.
        """
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            logging.warning(f"{method} {path} failed: {e!r}")
            raise NetworkError(str(e) or type(e).__name__) from e

        payload = self._decode(response)
        if response.status_code == 401 and token:
            raise SessionExpired(f"{method} {path} was refused")
        if response.is_error:
            raise ResponseError(response.status_code, payload)
        return payload

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def aclose(self):
        await self._client.aclose()
