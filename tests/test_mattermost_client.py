from __future__ import annotations

from pathlib import Path
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Mapping, Optional
import json
import socket
import sys
import threading
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from evebot.bot.bootstrap import BootstrapError, BootstrapSequencer
from evebot.config.settings import load_settings
from evebot.mattermost.client import HttpResponse, MattermostClient, UrllibTransport
from evebot.mattermost.errors import CONNECTING_ERROR_ID, AppError
from evebot.mattermost.models import Channel, User


def _json_response(status: int, payload, headers: Optional[Mapping[str, str]] = None) -> HttpResponse:
    return HttpResponse(
        status=status,
        body=json.dumps(payload).encode("utf-8"),
        headers=dict(headers or {}),
    )


class _Transport:
    def __init__(self, *responses: HttpResponse) -> None:
        self._responses = list(responses)
        self.requests: list[dict] = []

    async def request(self, *, method, url, headers, body, timeout_seconds):
        self.requests.append(
            {
                "method": method,
                "url": url,
                "headers": dict(headers),
                "body": json.loads(body) if body else None,
                "timeout_seconds": timeout_seconds,
            }
        )
        return self._responses.pop(0)


class MattermostClientTests(unittest.IsolatedAsyncioTestCase):
    def _client(self, *responses: HttpResponse):
        transport = _Transport(*responses)
        client = MattermostClient(url="http://chat.local:8065/", timeout_seconds=5.0, transport=transport)
        return client, transport

    async def test_ping_reads_version_from_header(self) -> None:
        client, transport = self._client(
            _json_response(200, {"status": "OK"}, {"x-version-id": "9.11.0"})
        )

        props = await client.ping()

        self.assertEqual(props["version"], "9.11.0")
        self.assertEqual(props["status"], "OK")
        self.assertEqual(transport.requests[0]["url"], "http://chat.local:8065/api/v4/system/ping")
        self.assertEqual(transport.requests[0]["timeout_seconds"], 5.0)

    async def test_login_stores_token_for_later_requests(self) -> None:
        client, transport = self._client(
            _json_response(200, {"id": "u1", "username": "eve", "first_name": "Eve"}, {"token": "tok"}),
            _json_response(200, [{"id": "t1", "name": "upmedia", "display_name": "Up Media"}]),
        )

        user = await client.login("eve@localhost", "pw")
        initial_load = await client.get_initial_load()

        self.assertEqual(user, User(id="u1", username="eve", first_name="Eve"))
        self.assertEqual(client.auth_token, "tok")
        self.assertEqual(
            transport.requests[0]["body"],
            {"login_id": "eve@localhost", "password": "pw"},
        )
        self.assertNotIn("Authorization", transport.requests[0]["headers"])
        self.assertEqual(transport.requests[1]["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(initial_load.find_team("upmedia").id, "t1")

    async def test_login_without_token_header_fails(self) -> None:
        client, _ = self._client(_json_response(200, {"id": "u1", "username": "eve"}))

        with self.assertRaises(AppError):
            await client.login("eve@localhost", "pw")

    async def test_server_error_payload_becomes_app_error(self) -> None:
        client, _ = self._client(
            _json_response(
                401,
                {
                    "id": "api.user.login.invalid_credentials_email_username",
                    "message": "Enter a valid email or username and/or password.",
                    "detailed_error": "",
                    "status_code": 401,
                },
            )
        )

        with self.assertRaises(AppError) as ctx:
            await client.login("eve@localhost", "wrong")

        self.assertEqual(ctx.exception.id, "api.user.login.invalid_credentials_email_username")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIn("valid email", ctx.exception.message)

    async def test_non_json_error_body_still_raises_app_error(self) -> None:
        client, _ = self._client(HttpResponse(status=502, body=b"<html>Bad Gateway</html>"))

        with self.assertRaises(AppError) as ctx:
            await client.ping()

        self.assertEqual(ctx.exception.status_code, 502)

    async def test_update_user_patches_profile_fields(self) -> None:
        client, transport = self._client(
            _json_response(200, {"id": "u1", "username": "eve", "first_name": "Eve", "last_name": "Bot"})
        )

        updated = await client.update_user(
            User(id="u1", username="eve", first_name="Eve", last_name="Bot")
        )

        request = transport.requests[0]
        self.assertEqual(request["method"], "PUT")
        self.assertTrue(request["url"].endswith("/api/v4/users/u1/patch"))
        self.assertEqual(request["body"], {"username": "eve", "first_name": "Eve", "last_name": "Bot"})
        self.assertEqual(updated.last_name, "Bot")

    async def test_channel_requests_require_team(self) -> None:
        client, transport = self._client()

        with self.assertRaises(AppError):
            await client.get_channels()

        self.assertEqual(transport.requests, [])

    async def test_get_and_create_channels_use_selected_team(self) -> None:
        client, transport = self._client(
            _json_response(200, [{"id": "c1", "name": "town-square", "type": "O"}]),
            _json_response(201, {"id": "c2", "name": "eve", "team_id": "t1", "type": "O"}),
        )
        client.set_team_id("t1")

        channels = await client.get_channels()
        created = await client.create_channel(Channel(id="", name="eve", display_name="Debug"))

        self.assertEqual([channel.name for channel in channels], ["town-square"])
        self.assertTrue(transport.requests[0]["url"].endswith("/api/v4/users/me/teams/t1/channels"))
        self.assertEqual(transport.requests[1]["body"]["team_id"], "t1")
        self.assertEqual(transport.requests[1]["body"]["type"], "O")
        self.assertEqual(created.id, "c2")

    async def test_create_post_sets_root_only_for_replies(self) -> None:
        client, transport = self._client(
            _json_response(201, {"id": "p1", "channel_id": "c1", "message": "hi"}),
            _json_response(201, {"id": "p2", "channel_id": "c1", "message": "re", "root_id": "p1"}),
        )

        await client.create_post(channel_id="c1", message="hi")
        reply = await client.create_post(channel_id="c1", message="re", root_id="p1")

        self.assertEqual(transport.requests[0]["body"], {"channel_id": "c1", "message": "hi"})
        self.assertEqual(transport.requests[1]["body"]["root_id"], "p1")
        self.assertEqual(reply.root_id, "p1")


class _GarbledServer:
    """Local TCP listener answering every connection with a non-HTTP banner."""

    def __init__(self) -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen()
        self._sock.settimeout(0.1)
        self._stopped = threading.Event()
        self.url = f"http://127.0.0.1:{self._sock.getsockname()[1]}"
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while not self._stopped.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(1.0)
                try:
                    conn.recv(65536)
                    conn.sendall(b"SSH-2.0-OpenSSH_9.0\r\n")
                except OSError:
                    pass

    def close(self) -> None:
        self._stopped.set()
        self._thread.join(timeout=1.0)
        self._sock.close()


class _ErrorPayloadHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        body = json.dumps({"id": "api.context.404.app_error", "message": "Not found"}).encode("utf-8")
        self.send_response(404)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args) -> None:
        pass


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class UrllibTransportTests(unittest.IsolatedAsyncioTestCase):
    async def _get(self, url: str) -> HttpResponse:
        return await UrllibTransport().request(
            method="GET",
            url=url,
            headers={"Accept": "application/json"},
            body=None,
            timeout_seconds=2.0,
        )

    async def test_error_status_returns_server_payload(self) -> None:
        server = ThreadingHTTPServer(("127.0.0.1", 0), _ErrorPayloadHandler)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            response = await self._get(f"http://127.0.0.1:{server.server_address[1]}/api/v4/system/ping")
        finally:
            server.shutdown()
            server.server_close()

        self.assertEqual(response.status, 404)
        self.assertEqual(json.loads(response.body)["id"], "api.context.404.app_error")
        self.assertEqual(response.headers["content-type"], "application/json")

    async def test_refused_connection_becomes_app_error(self) -> None:
        with self.assertRaises(AppError) as ctx:
            await self._get(f"http://127.0.0.1:{_unused_port()}/api/v4/system/ping")

        self.assertEqual(ctx.exception.id, CONNECTING_ERROR_ID)

    async def test_non_http_reply_becomes_app_error(self) -> None:
        server = _GarbledServer()
        try:
            with self.assertRaises(AppError) as ctx:
                await self._get(server.url + "/api/v4/system/ping")
        finally:
            server.close()

        self.assertEqual(ctx.exception.id, CONNECTING_ERROR_ID)

    async def test_malformed_url_becomes_app_error(self) -> None:
        with self.assertRaises(AppError) as ctx:
            await self._get("chat.local/api/v4/system/ping")

        self.assertEqual(ctx.exception.id, CONNECTING_ERROR_ID)

    async def test_bootstrap_fails_cleanly_against_non_http_server(self) -> None:
        server = _GarbledServer()
        settings = load_settings(
            environ={"EVE_USER_PASSWD": "pw", "EVE_MM_URL": server.url, "EVE_HTTP_TIMEOUT": "2"}
        )
        client = MattermostClient(url=settings.server.mm_url, timeout_seconds=settings.server.http_timeout)
        try:
            with self.assertLogs("evebot.bootstrap", level="ERROR"):
                with self.assertRaises(BootstrapError):
                    await BootstrapSequencer(client=client, settings=settings).run()
        finally:
            server.close()


if __name__ == "__main__":
    unittest.main()
