"""
Shared HTTP plumbing for the fulfillment and print gateways.

Both gateways speak JSON over HTTP and report failures two ways: a non-2xx
status, or a 2xx body carrying `"success": false`. BaseGateway turns both
into exceptions from exceptions.py and puts a hard deadline on every call,
so callers only ever deal with DispatchError subclasses.
"""

import asyncio
from typing import Any, Coroutine, Dict, Optional

import httpx

from exceptions import GatewayError, GatewayRejectedError, GatewayTimeoutError
from gateway_worker import GatewayWorker
from logger import get_logger

logger = get_logger(__name__)


class BaseGateway:
    """
    Async JSON client for one gateway base URL.

    Attributes:
        base_url (str): Gateway root, e.g. "http://localhost:3000"
        timeout (float): Deadline in seconds for a whole call (connect,
                         send, read and decode)
    """

    def __init__(self, base_url: str, timeout: float = 15.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 worker: Optional[GatewayWorker] = None):
        """
        Args:
            base_url: Gateway root URL
            timeout: Per-call deadline in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
            worker: Thread whose loop performs the HTTP I/O. Required when
                    the caller's loop cannot open sockets (QtAsyncio); without
                    one, calls run on the caller's loop.
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.worker = worker
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def _on_network_loop(self, coro: Coroutine) -> Any:
        if self.worker is None:
            return await coro
        return await self.worker.call(coro)

    async def aclose(self):
        """Close the underlying connection pool."""
        await self._on_network_loop(self._client.aclose())

    async def _request(self, method: str, path: str, *,
                       params: Optional[Dict[str, Any]] = None,
                       json: Optional[Dict[str, Any]] = None,
                       check_success: bool = True) -> Any:
        """
        Perform one call and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Endpoint path relative to base_url
            params: Query parameters (None values are dropped)
            json: JSON request body
            check_success: Treat a body with "success": false as a failure

        Returns:
            Decoded JSON (dict or list), or None for an empty body

        Raises:
            GatewayTimeoutError: Deadline exceeded
            GatewayError: Transport failure or non-2xx status
            GatewayRejectedError: 2xx body with "success": false
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        logger.debug(f"{method} {self.base_url}{path} params={params}")

        response = await self._on_network_loop(self._send(method, path, params, json))
        body = self._decode(response)

        if not response.is_success:
            message = self._error_message(body) or response.reason_phrase or "Request failed"
            logger.error(f"{method} {path} returned HTTP {response.status_code}: {message}")
            raise GatewayError(message, endpoint=path, status_code=response.status_code)

        if check_success and isinstance(body, dict) and body.get('success') is False:
            message = self._error_message(body) or "Gateway reported failure"
            logger.error(f"{method} {path} reported failure: {message}")
            raise GatewayRejectedError(message, endpoint=path,
                                       status_code=response.status_code, payload=body)

        return body

    async def _send(self, method: str, path: str, params: Optional[Dict[str, Any]],
                    json: Optional[Dict[str, Any]]) -> httpx.Response:
        # Runs on the network loop; the deadline covers the whole exchange
        try:
            response = await asyncio.wait_for(
                self._client.request(method, path, params=params, json=json),
                timeout=self.timeout,
            )
            return response
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error(f"{method} {path} timed out after {self.timeout:g}s")
            raise GatewayTimeoutError(endpoint=path, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise GatewayError(f"Cannot reach {self.base_url}: {e}", endpoint=path)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Non-JSON error pages from proxies
            return None

    @staticmethod
    def _error_message(body: Any) -> Optional[str]:
        if isinstance(body, dict):
            for key in ('error', 'message', 'details'):
                if body.get(key):
                    return str(body[key])
        return None
