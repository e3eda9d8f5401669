"""FastAPI application that exchanges proxy tokens for Slack files.

WHY: Files shared in Slack sit behind url_private links that need the bot
token. The CDN has to download them, so the bot publishes short-lived
proxy URLs and this app answers them: it looks up the token, fetches the
real file with the bot token, and streams it back.

HOW: create_app() builds a FastAPI app around an explicit TokenRegistry.
A catch-all route takes the first path segment as the token and treats
the rest (usually the filename) as decoration. The upstream fetch goes
through one shared httpx.AsyncClient opened in the lifespan, which also
runs a periodic sweep of stale tokens.

RULES:
- Empty token → 400, registry untouched
- Unknown or already-used token → 404, no outbound request
- Transport failure talking to Slack → 500 (token is already spent)
- Non-2xx from Slack → same status code with an error body
- Success → raw body streamed, Content-Type defaults to
  application/octet-stream, Content-Length forwarded when Slack sends one
- Any HTTP method is accepted on the proxy route
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from cdn_relay import __version__
from cdn_relay.proxy.models import ErrorResponse, HealthResponse, WorkflowButtonResponse
from cdn_relay.proxy.tokens import TokenRegistry
from cdn_relay.slack.messages import build_join_channel_blocks

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Seconds between sweeps of expired tokens
EXPIRE_INTERVAL_S = 300.0

_PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


async def _periodic_expire(registry: TokenRegistry, interval_s: float) -> None:
    """Drop expired tokens every ``interval_s`` seconds."""
    while True:
        await asyncio.sleep(interval_s)
        registry.expire()


def _forwarded_headers(upstream: httpx.Response) -> Dict[str, str]:
    headers = {}
    content_length = upstream.headers.get("Content-Length")
    if content_length:
        headers["Content-Length"] = content_length
    content_encoding = upstream.headers.get("Content-Encoding")
    if content_encoding:
        headers["Content-Encoding"] = content_encoding
    return headers


def create_app(
    registry: TokenRegistry,
    bot_token: str,
    channel_id: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
    expire_interval_s: float = EXPIRE_INTERVAL_S,
) -> FastAPI:
    """Create the proxy app bound to ``registry``.

    WHY: The registry is shared with the Slack handlers, so it is passed in
    rather than created here. ``transport`` lets tests stand in for Slack.

    RULES:
    - The upstream client follows redirects (Slack file links redirect)
    - The sweep task is cancelled and the client closed on shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Large files outlast httpx's 5s default read timeout
        app.state.http = httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=transport,
        )
        task = asyncio.create_task(_periodic_expire(registry, expire_interval_s))
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            await app.state.http.aclose()

    app = FastAPI(
        lifespan=lifespan,
        title="CDN Relay File Proxy",
        description=(
            "Single-use download links for private Slack files. Each link "
            "works once and is then forgotten."
        ),
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__, live_tokens=len(registry))

    @app.get(
        "/workflow-button",
        response_model=WorkflowButtonResponse,
        tags=["workflow"],
        summary="Join-channel button blocks",
        description="Block Kit payload used by a Workflow Builder step to offer channel access.",
    )
    async def workflow_button() -> WorkflowButtonResponse:
        return WorkflowButtonResponse(blocks=build_join_channel_blocks(channel_id))

    @app.api_route(
        "/{path:path}",
        methods=_PROXY_METHODS,
        tags=["proxy"],
        summary="Download a proxied file",
        description=(
            "Exchange a proxy token for the file it stands for. The first "
            "path segment is the token; anything after it is ignored."
        ),
        responses={
            400: {"model": ErrorResponse, "description": "No token in the path"},
            404: {"model": ErrorResponse, "description": "Unknown or already used token"},
            500: {"model": ErrorResponse, "description": "Could not reach Slack"},
        },
    )
    async def proxy_file(path: str, request: Request) -> StreamingResponse:
        token = path.split("/", 1)[0]
        if not token:
            raise HTTPException(status_code=400, detail="Missing file ID")

        locator = registry.resolve_and_consume(token)
        if locator is None:
            logger.info("Proxy not found for file ID: %s", token)
            raise HTTPException(status_code=404, detail="File not found")

        logger.info("Proxying file %s", token)
        http: httpx.AsyncClient = request.app.state.http

        try:
            upstream_request = http.build_request(
                "GET",
                locator,
                headers={"Authorization": "Bearer {}".format(bot_token)},
            )
            upstream = await http.send(upstream_request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL):
            logger.exception("Failed to fetch proxied file %s", token)
            raise HTTPException(status_code=500, detail="Error proxying file")

        if not upstream.is_success:
            await upstream.aclose()
            logger.warning(
                "Upstream returned %d for proxied file %s", upstream.status_code, token
            )
            raise HTTPException(status_code=upstream.status_code, detail="Error fetching file")

        return StreamingResponse(
            upstream.aiter_raw(),
            status_code=200,
            media_type=upstream.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
            headers=_forwarded_headers(upstream),
            background=BackgroundTask(upstream.aclose),
        )

    return app
