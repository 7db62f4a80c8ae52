"""
Remote adapter over HTTP.

Forwards operations for one entity to a peer unidata server using the REST
mapping below. Object-valued query parameters are JSON-encoded; responses
carry the result under "data" or an error under "error".

    findMany  GET     /{entity}/list       ?source&where&order_by&limit&offset
    findOne   GET     /{entity}/find_one   ?source&where
    create    POST    /{entity}/create     ?source   {"data": ...}
    update    PATCH   /{entity}/update     ?source   {"where": ..., "data": ...}
    delete    DELETE  /{entity}/delete     ?source&where  -> {"success": bool}

Errors:
    Non-2xx responses are mapped to DataAccessError subclasses by status
    code. Timeouts and network failures become InternalError.

Usage:
    adapter = RemoteAdapter("https://api.example.com", entity="user", source="postgres")
    users = await adapter.find_many({"where": {"active": True}, "limit": 10})
    await adapter.close()
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from ..context import simplify_entity_name
from ..errors import InternalError, error_for_status
from .base import Args, BaseAdapter

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)


class RemoteAdapter(BaseAdapter):
    """
    Adapter delegating to a remote server through httpx.

    Args:
        base_url: Server root URL
        entity: Entity name on the remote side
        source: Source to request on the remote side (None for its default)
        timeout: Request timeout in seconds
        headers: Extra headers sent with every request
        client: Pre-built AsyncClient (owned by the caller)
        log_requests: Log every request at DEBUG level
    """

    def __init__(
        self,
        base_url: str,
        entity: str,
        *,
        source: str | None = None,
        timeout: float = 5.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        log_requests: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self.entity = simplify_entity_name(entity)
        self.source = source
        self.timeout = timeout
        self.headers = headers or {}
        self.log_requests = log_requests
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "remote"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    **self.headers,
                },
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RemoteAdapter:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _params(self, ctx: OperationContext | None = None, **values: Any) -> dict[str, str]:
        params: dict[str, Any] = {"source": self.source, **values}
        if ctx is not None and ctx.metadata.get("context"):
            params["context"] = ctx.metadata["context"]

        encoded: dict[str, str] = {}
        for key, value in params.items():
            if value is None:
                continue
            encoded[key] = json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        return encoded

    async def _request(
        self,
        method: str,
        action: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        client = await self._get_client()
        path = f"/{self.entity}/{action}"

        if self.log_requests:
            logger.debug(f"[remote:{self.entity}] {method} {path} params={params} body={body}")

        try:
            response = await client.request(method, path, params=params, json=body)
        except httpx.TimeoutException as e:
            raise InternalError(f"Request timeout: {e}", entity=self.entity, source=self.source) from e
        except httpx.NetworkError as e:
            raise InternalError(f"Network error: {e}", entity=self.entity, source=self.source) from e

        payload = self._decode(response)
        self._check_response(response, payload)
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    def _decode(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"error": response.text}

    def _check_response(self, response: httpx.Response, payload: Any) -> None:
        """
        Raise the DataAccessError matching a failed response.

        A 2xx response whose body carries "error" is treated as a server error.
        """
        error = payload.get("error") if isinstance(payload, dict) else None
        if response.is_success and not error:
            return

        message = error if isinstance(error, str) else (response.text or "Request failed")
        status = response.status_code if not response.is_success else 500
        raise error_for_status(status, message, entity=self.entity, source=self.source)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def find_many(self, args: Args | None = None, ctx: OperationContext | None = None) -> list[Any]:
        args = args or {}
        params = self._params(
            ctx,
            where=args.get("where") or None,
            order_by=args.get("order_by") or None,
            limit=args.get("limit") or None,
            offset=args.get("offset") or None,
        )
        return await self._request("GET", "list", params=params) or []

    async def find_one(self, args: Args, ctx: OperationContext | None = None) -> Any:
        params = self._params(ctx, where=args.get("where"))
        return await self._request("GET", "find_one", params=params)

    async def create(self, args: Args, ctx: OperationContext | None = None) -> Any:
        return await self._request(
            "POST", "create", params=self._params(ctx), body={"data": args.get("data")}
        )

    async def update(self, args: Args, ctx: OperationContext | None = None) -> Any:
        return await self._request(
            "PATCH",
            "update",
            params=self._params(ctx),
            body={"where": args.get("where"), "data": args.get("data")},
        )

    async def delete(self, args: Args, ctx: OperationContext | None = None) -> bool:
        result = await self._request("DELETE", "delete", params=self._params(ctx, where=args.get("where")))
        if isinstance(result, dict):
            return bool(result.get("success"))
        return bool(result)

