"""
REST HTTP client: runtime config handshake and the sessions API.
"""

from typing import Any, Optional

import httpx

from agent_bridge.errors import BridgeError, InvalidCursor, NotFound, TransportError

DEFAULT_BASE_URL = "http://localhost:3000"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        workspace_id: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._workspace_id = workspace_id
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": "agent-bridge/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._workspace_id:
            headers["X-Workspace-Id"] = self._workspace_id
        return headers

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        try:
            body = resp.json()
        except ValueError:
            body = {}
        code = body.get("code") if isinstance(body, dict) else None
        message = body.get("error") if isinstance(body, dict) else None
        message = message or f"HTTP {resp.status_code}: {resp.text[:200]}"
        if code == "invalid_cursor":
            raise InvalidCursor(
                str(resp.request.url.params.get("cursor", "")), message.removeprefix("Invalid cursor: "),
            )
        if resp.status_code == 404:
            raise NotFound(message)
        raise BridgeError(code or "http_error", message, {"status": resp.status_code})

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        self._raise_for_status(resp)
        if not resp.content:
            return None
        return resp.json()

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("POST", path, json=body)

    async def patch(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("PATCH", path, json=body)

    async def configure_runtime(self, config: dict[str, Any]) -> None:
        """POST the query configuration to the runtime before opening the WebSocket."""
        try:
            resp = await self._client.post("/config", json=config, headers=self._headers())
        except httpx.TransportError as e:
            raise TransportError(f"Failed to configure runtime: {e}") from e
        if resp.status_code >= 400:
            raise TransportError(f"Failed to configure runtime: HTTP {resp.status_code}: {resp.text[:200]}")

    async def close(self) -> None:
        await self._client.aclose()
