"""
Invocation Relay

Long-polls the Lambda Runtime API for the next invocation, forwards its
payload to whatever endpoint the function currently resolves to, and posts the
result back. Every fetched request id gets exactly one response post, even when
forwarding fails. A failed round-trip is logged and the loop carries on.
"""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol
from urllib.parse import urlencode

import httpx

from nextbridge.core.config import BridgeConfig
from nextbridge.core.exceptions import RelayError

logger = logging.getLogger("nextbridge.relay")

REQUEST_ID_HEADER = "lambda-runtime-aws-request-id"

# Not forwarded in either direction.
HOP_BY_HOP_HEADERS = {
    "connection",
    "content-length",
    "content-encoding",
    "host",
    "keep-alive",
    "transfer-encoding",
}

TEXT_CONTENT_TYPES = ("text/", "application/json", "application/javascript", "application/xml")


@dataclass
class Invocation:
    request_id: str
    payload: Any


class InvocationForwarder(Protocol):
    async def forward(self, endpoint: str, payload: Any) -> Dict[str, Any]: ...


def _event_method(event: Dict[str, Any]) -> str:
    http = (event.get("requestContext") or {}).get("http") or {}
    return (event.get("httpMethod") or http.get("method") or "GET").upper()


def _event_path(event: Dict[str, Any]) -> str:
    return event.get("rawPath") or event.get("path") or "/"


def _event_query(event: Dict[str, Any]) -> str:
    if event.get("rawQueryString"):
        return event["rawQueryString"]
    multi = event.get("multiValueQueryStringParameters")
    if multi:
        return urlencode([(k, v) for k, values in multi.items() for v in values])
    single = event.get("queryStringParameters")
    if single:
        return urlencode(single)
    return ""


def _event_body(event: Dict[str, Any]) -> Optional[bytes]:
    body = event.get("body")
    if body is None:
        return None
    if event.get("isBase64Encoded"):
        return base64.b64decode(body)
    return body.encode("utf-8")


def event_to_request(endpoint: str, payload: Any) -> Dict[str, Any]:
    """
    Map an API Gateway proxy event (v1 or v2) to httpx request arguments.
    Anything that is not a proxy event is POSTed to the endpoint root as JSON.
    """
    base = endpoint.rstrip("/")
    is_proxy_event = isinstance(payload, dict) and (
        "httpMethod" in payload or "rawPath" in payload or "routeKey" in payload
    )
    if not is_proxy_event:
        return {
            "method": "POST",
            "url": f"{base}/",
            "headers": {"Content-Type": "application/json"},
            "content": json.dumps(payload).encode("utf-8"),
        }

    headers = {
        k: v
        for k, v in (payload.get("headers") or {}).items()
        if k.lower() not in HOP_BY_HOP_HEADERS
    }
    cookies = payload.get("cookies")
    if cookies:
        headers["cookie"] = "; ".join(cookies)

    url = f"{base}{_event_path(payload)}"
    query = _event_query(payload)
    if query:
        url = f"{url}?{query}"

    return {
        "method": _event_method(payload),
        "url": url,
        "headers": headers,
        "content": _event_body(payload),
    }


def response_to_result(response: httpx.Response) -> Dict[str, Any]:
    headers = {
        k: v for k, v in response.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS
    }
    content_type = response.headers.get("content-type", "")
    if content_type.startswith(TEXT_CONTENT_TYPES) or not response.content:
        try:
            return {
                "statusCode": response.status_code,
                "headers": headers,
                "body": response.content.decode("utf-8"),
                "isBase64Encoded": False,
            }
        except UnicodeDecodeError:
            pass
    return {
        "statusCode": response.status_code,
        "headers": headers,
        "body": base64.b64encode(response.content).decode("ascii"),
        "isBase64Encoded": True,
    }


class HttpEventForwarder:
    """Forwards proxy events as plain HTTP requests to the local process."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 30.0):
        self.client = client
        self.timeout = timeout

    async def forward(self, endpoint: str, payload: Any) -> Dict[str, Any]:
        request = event_to_request(endpoint, payload)
        logger.debug("Forwarding %s %s", request["method"], request["url"])
        response = await self.client.request(**request, timeout=self.timeout)
        return response_to_result(response)


class InvocationRelay:
    def __init__(
        self,
        client: httpx.AsyncClient,
        runtime_api: str,
        endpoint_source: Callable[[], Optional[str]],
        forwarder: InvocationForwarder,
        config: BridgeConfig,
    ):
        """
        Args:
            client: httpx.AsyncClient used for the Runtime API
            runtime_api: host:port of the Runtime API
            endpoint_source: returns the endpoint the function currently resolves to
            forwarder: maps a payload to a result against that endpoint
            config: BridgeConfig instance
        """
        self.client = client
        self.base_url = f"http://{runtime_api}/{config.RUNTIME_API_VERSION}/runtime"
        self.endpoint_source = endpoint_source
        self.forwarder = forwarder
        self.retry_delay = config.RELAY_RETRY_DELAY
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the relay loop."""
        self._task = asyncio.create_task(self._loop())
        logger.info("Invocation relay started (%s)", self.base_url)

    async def stop(self) -> None:
        """Stop the relay loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Invocation relay stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Relay round-trip failed: {e}")
                await asyncio.sleep(self.retry_delay)

    async def fetch_next(self) -> Invocation:
        response = await self.client.get(f"{self.base_url}/invocation/next", timeout=None)
        response.raise_for_status()

        request_id = response.headers.get(REQUEST_ID_HEADER)
        if not request_id:
            raise RelayError(f"Runtime API response is missing {REQUEST_ID_HEADER}")

        try:
            payload = response.json()
        except ValueError:
            payload = response.text
        logger.info("Received invocation", extra={"request_id": request_id})
        return Invocation(request_id=request_id, payload=payload)

    async def handle(self, invocation: Invocation) -> Dict[str, Any]:
        endpoint = self.endpoint_source()
        try:
            if not endpoint:
                raise RelayError("function has no resolved endpoint")
            return await self.forwarder.forward(endpoint, invocation.payload)
        except Exception as e:
            logger.error(
                f"Forwarding invocation failed: {e}",
                extra={"request_id": invocation.request_id, "endpoint": endpoint},
            )
            return {"statusCode": 502, "body": str(e)}

    async def post_response(self, request_id: str, result: Dict[str, Any]) -> bool:
        url = f"{self.base_url}/invocation/{request_id}/response"
        try:
            response = await self.client.post(url, json=result)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to post response: {e}", extra={"request_id": request_id})
            return False
        logger.info("Responded to invocation", extra={"request_id": request_id})
        return True

    async def run_once(self) -> bool:
        """One fetch/forward/post round-trip. Returns whether the post succeeded."""
        invocation = await self.fetch_next()
        result = await self.handle(invocation)
        return await self.post_response(invocation.request_id, result)
