import asyncio
import logging
from typing import AsyncIterator, Dict, Optional

import httpx
import websockets
from fastapi import APIRouter, Request, WebSocket
from fastapi.responses import Response, StreamingResponse
from websockets.exceptions import ConnectionClosed

from app.rpc_proxy.config import ProxyConfig
from app.utils import mask_token
from app.utils.exception_logging import log_exception_with_details

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

ALLOWED_METHODS = "GET, HEAD, POST, PUT, OPTIONS"
PROXY_MARKER_HEADER = "X-Helius-Cloudflare-Proxy"

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Recomputed by httpx for the outbound request
_UPGRADE_DROPPED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length"}

_WS_TO_HTTP_SCHEMES = {"ws://": "http://", "wss://": "https://"}


def compute_cors_headers(origin: Optional[str], config: ProxyConfig) -> Dict[str, str]:
    """
    Build the CORS header set for one request.

    With an allow-list, the request origin is echoed back only on an exact
    match; without one, every origin is allowed.
    """
    headers = {
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": "*",
    }
    if config.allowed_origins:
        if origin and origin in config.allowed_origins:
            headers["Access-Control-Allow-Origin"] = origin
    else:
        headers["Access-Control-Allow-Origin"] = "*"
    return headers


def is_upgrade_request(request: Request) -> bool:
    # Presence alone counts, whatever the value (including "")
    return "upgrade" in request.headers


def _with_api_key(url: str, api_key: str, query: str = "") -> str:
    target = f"{url}?api-key={api_key}"
    if query:
        target = f"{target}&{query}"
    return target


def build_upstream_url(config: ProxyConfig, path: str, query: str = "") -> str:
    """Construct the upstream HTTP URL for a request path and raw query string."""
    base_url = config.base_url
    if base_url.endswith("/"):
        base_url = base_url[:-1]
    if path != "/":
        base_url = f"{base_url}{path}"
    return _with_api_key(base_url, config.api_key, query)


def build_ws_upstream_url(config: ProxyConfig, http_scheme: bool = False) -> str:
    """
    Construct the upstream WebSocket URL.

    With ``http_scheme`` the ws/wss scheme is swapped for http/https so the
    URL can be used by an HTTP client.
    """
    url = config.ws_url
    if http_scheme:
        for ws_scheme, scheme in _WS_TO_HTTP_SCHEMES.items():
            if url.lower().startswith(ws_scheme):
                url = scheme + url[len(ws_scheme):]
                break
    return _with_api_key(url, config.api_key)


async def _close_upstream(response: httpx.Response, client: httpx.AsyncClient) -> None:
    await response.aclose()
    await client.aclose()


async def _stream_upstream(
    chunks: AsyncIterator[bytes], response: httpx.Response, client: httpx.AsyncClient
) -> AsyncIterator[bytes]:
    # Closes on completion, on a mid-stream upstream error and on client disconnect
    try:
        async for chunk in chunks:
            yield chunk
    finally:
        await _close_upstream(response, client)


def _request_path(request: Request) -> str:
    """Return the path with its original percent-encoding."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return request.url.path


async def _send_upstream(
    client: httpx.AsyncClient, upstream_request: httpx.Request, config: ProxyConfig
) -> httpx.Response:
    try:
        return await client.send(upstream_request, stream=True)
    except Exception as e:
        log_exception_with_details(
            logger, "[Proxy] Upstream call failed:", e, secret=config.api_key
        )
        await client.aclose()
        raise


async def forward_request(
    request: Request, config: ProxyConfig, cors_headers: Dict[str, str]
) -> Response:
    """
    Forward a regular HTTP request to the upstream JSON-RPC endpoint.

    Only the method and body are carried over. The upstream status and body
    are relayed as-is, with headers replaced by ``cors_headers``.
    """
    path = _request_path(request)
    target_url = build_upstream_url(config, path, request.url.query)
    payload = (await request.body()).decode("utf-8", errors="replace")

    logger.debug(
        mask_token(
            f"[Proxy] {request.method} {path} -> {target_url}",
            config.api_key,
        )
    )

    client = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout))
    upstream_request = client.build_request(
        method=request.method,
        url=target_url,
        content=payload.encode("utf-8") if payload else None,
        headers={
            "Content-Type": "application/json",
            PROXY_MARKER_HEADER: "true",
        },
    )
    upstream = await _send_upstream(client, upstream_request, config)

    return StreamingResponse(
        _stream_upstream(upstream.aiter_bytes(), upstream, client),
        status_code=upstream.status_code,
        headers=cors_headers,
    )


async def forward_upgrade_request(request: Request, config: ProxyConfig) -> Response:
    """
    Forward a plain HTTP request that carries an ``Upgrade`` header to the
    WebSocket endpoint and return the upstream response untouched.
    """
    target_url = build_ws_upstream_url(config, http_scheme=True)
    headers = [
        (name, value)
        for name, value in request.headers.items()
        if name.lower() not in _UPGRADE_DROPPED_REQUEST_HEADERS
    ]
    body = await request.body()

    logger.debug(
        mask_token(
            f"[Proxy] {request.method} {request.url.path} (Upgrade) -> {target_url}",
            config.api_key,
        )
    )

    client = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout))
    upstream_request = client.build_request(
        method=request.method,
        url=target_url,
        headers=headers,
        content=body or None,
    )
    upstream = await _send_upstream(client, upstream_request, config)

    # Raw bytes keep Content-Encoding and Content-Length consistent
    response = StreamingResponse(
        _stream_upstream(upstream.aiter_raw(), upstream, client),
        status_code=upstream.status_code,
    )
    for name, value in upstream.headers.multi_items():
        if name.lower() not in HOP_BY_HOP_HEADERS:
            response.headers.append(name, value)
    return response


async def handle_request(request: Request, config: ProxyConfig) -> Response:
    """Translate one inbound HTTP request into one upstream call."""
    cors_headers = compute_cors_headers(request.headers.get("origin"), config)

    if request.method == "OPTIONS":
        return Response(status_code=200, headers=cors_headers)

    if is_upgrade_request(request):
        return await forward_upgrade_request(request, config)

    return await forward_request(request, config, cors_headers)


async def _client_to_upstream(websocket: WebSocket, upstream) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            await upstream.close()
            return
        try:
            if message.get("text") is not None:
                await upstream.send(message["text"])
            elif message.get("bytes") is not None:
                await upstream.send(message["bytes"])
        except ConnectionClosed:
            return


async def _upstream_to_client(upstream, websocket: WebSocket) -> None:
    try:
        async for message in upstream:
            if isinstance(message, bytes):
                await websocket.send_bytes(message)
            else:
                await websocket.send_text(message)
    except ConnectionClosed as e:
        logger.warning(f"[WebSocket] Upstream closed abnormally: {e}")

    code = upstream.close_code
    if code in (None, 1005, 1006):
        code = 1000
    await websocket.close(code=code)


async def relay_websocket(websocket: WebSocket, config: ProxyConfig) -> None:
    """
    Relay a WebSocket session between the client and the upstream endpoint.

    The upstream connection is opened first so the subprotocol it selects can
    be handed back to the client on accept.
    """
    target_url = build_ws_upstream_url(config)
    subprotocols = websocket.scope.get("subprotocols") or None

    try:
        async with websockets.connect(target_url, subprotocols=subprotocols) as upstream:
            await websocket.accept(subprotocol=upstream.subprotocol)
            logger.info("[WebSocket] Relay opened")

            tasks = {
                asyncio.create_task(_client_to_upstream(websocket, upstream)),
                asyncio.create_task(_upstream_to_client(upstream, websocket)),
            }
            done, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                task.result()
    except Exception as e:
        log_exception_with_details(
            logger, "[WebSocket] Relay failed:", e, secret=config.api_key
        )
        raise

    logger.info("[WebSocket] Relay closed")


def get_proxy_config(connection) -> ProxyConfig:
    return connection.app.state.proxy_config


@router.api_route(
    "/{path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
)
async def proxy_all(request: Request, path: str):
    """Catch-all route that proxies every HTTP request upstream."""
    return await handle_request(request, get_proxy_config(request))


@router.websocket("/{path:path}")
async def proxy_websocket(websocket: WebSocket, path: str):
    await relay_websocket(websocket, get_proxy_config(websocket))
