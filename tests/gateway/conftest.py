"""Gateway fixtures: a local aiohttp stand-in for the token contract REST API."""

from __future__ import annotations

import pytest
from aiohttp import web

from giveaway_ledger.galachain.client import GalaChainLedgerClient

GATEWAY_PORT = 9310
CONTRACT_PATH = "api/asset/token-contract"


class FakeGateway:
    """Canned responses per contract method, plus a log of every request.

    A reply is either a JSON payload (served with HTTP 200) or an int
    status code served with an empty body. A list of replies is consumed
    one per request.
    """

    def __init__(self) -> None:
        self.replies: dict[str, object] = {}
        self.requests: list[tuple[str, dict, object]] = []  # (method, body, headers)

    def reply(self, method: str, *replies) -> None:
        self.replies[method] = list(replies) if len(replies) > 1 else replies[0]

    def bodies(self, method: str) -> list[dict]:
        return [body for m, body, _ in self.requests if m == method]

    async def handle(self, request: web.Request) -> web.Response:
        method = request.match_info["method"]
        self.requests.append((method, await request.json(), request.headers.copy()))

        reply = self.replies.get(method, {"Status": 1, "Data": []})
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, int):
            return web.Response(status=reply)
        return web.json_response(reply)


@pytest.fixture
async def gateway():
    """Running FakeGateway on 127.0.0.1:9310."""
    fake = FakeGateway()
    app = web.Application()
    app.router.add_post(f"/{CONTRACT_PATH}/{{method}}", fake.handle)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", GATEWAY_PORT)
    await site.start()
    yield fake
    await runner.cleanup()


@pytest.fixture
def client(gateway):
    """GalaChainLedgerClient pointed at the fake gateway."""
    return GalaChainLedgerClient(
        base_url=f"http://127.0.0.1:{GATEWAY_PORT}",
        contract_path=CONTRACT_PATH,
        timeout=5,
        api_key="test-key",
    )
