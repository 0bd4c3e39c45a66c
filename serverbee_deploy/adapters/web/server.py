"""Control plane — small REST API for the supervisor.

Mutating endpoints (``/kill``, ``/token/rest``) require the communication
token.  The view/clear endpoints are meant for local use only and rely on
the server being bound to loopback.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from aiohttp import web

from serverbee_deploy.core.auth import TokenGuard, extract_token
from serverbee_deploy.core.processes import kill_process
from serverbee_deploy.storage.settings_store import StoreError

if TYPE_CHECKING:
    from serverbee_deploy.config import Config

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"

# (method, path) pairs that must pass the token guard.
_PROTECTED_ROUTES: frozenset[tuple[str, str]] = frozenset({
    ("POST", "/kill"),
    ("POST", "/token/rest"),
})

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _result(success: bool, message: str | None = None, status: int = 200) -> web.Response:
    data: dict = {"success": success}
    if message is not None:
        data["message"] = message
    return web.json_response(data, status=status)


async def _read_json(request: web.Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


@web.middleware
async def _token_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if (request.method, request.path) not in _PROTECTED_ROUTES:
        return await handler(request)
    guard: TokenGuard = request.app["guard"]
    try:
        allowed = guard.authorize(extract_token(request.headers))
    except StoreError as e:
        logger.error("Token lookup failed: %s", e)
        return _result(False, "token store unavailable", status=500)
    if not allowed:
        logger.warning("Unauthorized %s %s from %s", request.method, request.path, request.remote)
        return _result(False, "unauthorized", status=401)
    return await handler(request)


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

async def _handle_index(request: web.Request) -> web.Response:
    """GET / — health check."""
    return web.Response(status=200)


async def _handle_version(request: web.Request) -> web.Response:
    """GET /version"""
    config: Config = request.app["config"]
    return web.Response(text=config.get_version())


async def _handle_kill(request: web.Request) -> web.Response:
    """POST /kill — {"pid": "1234"}"""
    body = await _read_json(request)
    if body is None or "pid" not in body:
        return _result(False, "pid is required", status=400)
    result = await asyncio.to_thread(kill_process, str(body["pid"]))
    return web.json_response(result.to_dict())


async def _read_token(request: web.Request) -> str | None:
    body = await _read_json(request)
    token = body.get("token") if body else None
    return token if isinstance(token, str) and token else None


async def _handle_token_rest(request: web.Request) -> web.Response:
    """POST /token/rest — rotate the token (requires the current one)."""
    config: Config = request.app["config"]
    token = await _read_token(request)
    if token is None:
        return _result(False, "token is required", status=400)
    try:
        config.set_token(token)
    except StoreError as e:
        logger.error("Failed to store token: %s", e)
        return _result(False, "failed to store token", status=500)
    return _result(True)


async def _handle_token_setup(request: web.Request) -> web.Response:
    """POST /token/setup — set the first token; refused once one exists.

    The body is read before the check so that the check and the write
    happen together under the config lock.
    """
    config: Config = request.app["config"]
    token = await _read_token(request)
    if token is None:
        return _result(False, "token is required", status=400)
    try:
        created = config.setup_token(token)
    except StoreError as e:
        logger.error("Failed to store token: %s", e)
        return _result(False, "failed to store token", status=500)
    if not created:
        return _result(False, "token already configured", status=409)
    return _result(True)


async def _handle_token_view(request: web.Request) -> web.Response:
    """GET /token/view — local only."""
    config: Config = request.app["config"]
    return web.Response(text=config.get_token() or "")


async def _handle_token_clear(request: web.Request) -> web.Response:
    """POST /token/clear — local only."""
    config: Config = request.app["config"]
    try:
        config.clear_token()
    except StoreError as e:
        logger.error("Failed to clear token: %s", e)
        return _result(False, "failed to clear token", status=500)
    return _result(True)


# ---------------------------------------------------------------------------
# App factory & server class
# ---------------------------------------------------------------------------

def build_app(config: Config, guard: TokenGuard) -> web.Application:
    app = web.Application(middlewares=[_token_middleware])
    app["config"] = config
    app["guard"] = guard

    app.router.add_get("/", _handle_index)
    app.router.add_get("/version", _handle_version)
    app.router.add_post("/kill", _handle_kill)

    app.router.add_post("/token/rest", _handle_token_rest)
    app.router.add_post("/token/setup", _handle_token_setup)
    app.router.add_get("/token/view", _handle_token_view)
    app.router.add_post("/token/clear", _handle_token_clear)
    return app


class ControlPlane:
    """aiohttp-based control plane server."""

    def __init__(
        self,
        config: Config,
        guard: TokenGuard,
        port: int,
        host: str = DEFAULT_HOST,
    ) -> None:
        self._app = build_app(config, guard)
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        logger.info("Control plane running at http://%s:%d", self._host, self._port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Control plane stopped")
