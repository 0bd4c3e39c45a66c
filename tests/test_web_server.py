"""Control plane endpoint tests (aiohttp test client)."""
from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
import aiohttp
from aiohttp import test_utils

from serverbee_deploy.adapters.web import server
from serverbee_deploy.adapters.web.server import ControlPlane, build_app
from serverbee_deploy.config import Config
from serverbee_deploy.core.auth import TokenGuard
from serverbee_deploy.core.processes import KillResult
from serverbee_deploy.storage.settings_store import SettingsStore, StoreError


@pytest.fixture
async def client(config: Config, store: SettingsStore):
    app = build_app(config, TokenGuard(store))
    async with test_utils.TestClient(test_utils.TestServer(app)) as c:
        yield c


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestOpenEndpoints:
    async def test_health(self, client: test_utils.TestClient):
        resp = await client.get("/")
        assert resp.status == 200

    async def test_version(self, client: test_utils.TestClient):
        resp = await client.get("/version")
        assert resp.status == 200
        assert await resp.text() == "1.2.3"

    async def test_token_view_empty(self, client: test_utils.TestClient):
        resp = await client.get("/token/view")
        assert await resp.text() == ""

    async def test_token_view_and_clear(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        resp = await client.get("/token/view")
        assert await resp.text() == "abc"

        resp = await client.post("/token/clear")
        assert await resp.json() == {"success": True}
        assert config.get_token() is None


class TestTokenGate:
    async def test_kill_without_token_configured_is_rejected(self, client: test_utils.TestClient):
        resp = await client.post("/kill", json={"pid": "1"})
        assert resp.status == 401
        assert (await resp.json())["success"] is False

    async def test_wrong_token_rejected(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        with patch.object(server, "kill_process") as kill:
            resp = await client.post("/kill", json={"pid": "1"}, headers=_bearer("xyz"))
        assert resp.status == 401
        kill.assert_not_called()

    async def test_no_token_presented_rejected(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        resp = await client.post("/token/rest", json={"token": "new"})
        assert resp.status == 401
        assert config.get_token() == "abc"

    async def test_rotation(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        resp = await client.post(
            "/token/rest", json={"token": "xyz"}, headers=_bearer("abc"),
        )
        assert resp.status == 200
        assert await resp.json() == {"success": True}

        with patch.object(server, "kill_process", return_value=KillResult(True)):
            old = await client.post("/kill", json={"pid": "1"}, headers=_bearer("abc"))
            new = await client.post("/kill", json={"pid": "1"}, headers={"X-Token": "xyz"})
        assert old.status == 401
        assert new.status == 200

    async def test_rest_requires_token_field(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        resp = await client.post("/token/rest", json={}, headers=_bearer("abc"))
        assert resp.status == 400

    async def test_rest_store_failure_reports_failure(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        with patch.object(Config, "set_token", side_effect=StoreError("disk full")):
            resp = await client.post(
                "/token/rest", json={"token": "xyz"}, headers=_bearer("abc"),
            )
        assert resp.status == 500
        assert (await resp.json())["success"] is False


class TestTokenSetup:
    async def test_setup_establishes_first_token(self, client: test_utils.TestClient, config: Config):
        resp = await client.post("/token/setup", json={"token": "first"})
        assert resp.status == 200
        assert config.get_token() == "first"

    async def test_setup_refused_once_configured(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        resp = await client.post("/token/setup", json={"token": "evil"})
        assert resp.status == 409
        assert config.get_token() == "abc"

    async def test_slow_setup_cannot_overwrite_first_token(
        self, client: test_utils.TestClient, config: Config,
    ):
        finish_body = asyncio.Event()

        async def slow_body():
            yield b'{"tok'
            await finish_body.wait()
            yield b'en": "late"}'

        async def slow_setup():
            resp = await client.post(
                "/token/setup", data=slow_body(),
                headers={"Content-Type": "application/json"},
            )
            return resp.status

        slow = asyncio.create_task(slow_setup())
        await asyncio.sleep(0.1)

        resp = await client.post("/token/setup", json={"token": "first"})
        assert resp.status == 200

        finish_body.set()
        assert await slow == 409
        assert config.get_token() == "first"

    async def test_setup_requires_token_field(self, client: test_utils.TestClient, config: Config):
        resp = await client.post("/token/setup", json={})
        assert resp.status == 400
        assert config.get_token() is None


class TestKill:
    async def test_kill_success(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        with patch.object(server, "kill_process", return_value=KillResult(True)) as kill:
            resp = await client.post("/kill", json={"pid": "4321"}, headers=_bearer("abc"))
        assert await resp.json() == {"success": True}
        kill.assert_called_once_with("4321")

    async def test_kill_not_found_has_message(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        result = KillResult(False, "process not found")
        with patch.object(server, "kill_process", return_value=result):
            resp = await client.post("/kill", json={"pid": "99999"}, headers=_bearer("abc"))
        assert await resp.json() == {"success": False, "message": "process not found"}

    async def test_kill_bad_body(self, client: test_utils.TestClient, config: Config):
        config.set_token("abc")
        resp = await client.post("/kill", data="not json", headers=_bearer("abc"))
        assert resp.status == 400


class TestControlPlane:
    async def test_start_and_stop(self, config: Config, store: SettingsStore, unused_tcp_port: int):
        cp = ControlPlane(config, TokenGuard(store), port=unused_tcp_port)
        await cp.start()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(f"http://127.0.0.1:{unused_tcp_port}/version") as resp:
                    assert resp.status == 200
                    assert await resp.text() == "1.2.3"
        finally:
            await cp.stop()

    def test_binds_loopback_by_default(self, config: Config, store: SettingsStore):
        cp = ControlPlane(config, TokenGuard(store), port=9528)
        assert cp._port == 9528
        assert cp._host == "127.0.0.1"
