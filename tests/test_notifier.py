"""Notifier tests against a local aiohttp server."""

import asyncio
import json

import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from relleno.core.errors import SideEffectError
from relleno.services.notifier import TASK_HEADER, Notifier

TASK_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


@pytest_asyncio.fixture
async def hooks():
    received: list[dict] = []

    async def record(request: web.Request) -> web.Response:
        received.append(
            {
                "method": request.method,
                "task": request.headers.get(TASK_HEADER),
                "body": await request.read(),
            }
        )
        return web.Response(status=204)

    async def fail(request: web.Request) -> web.Response:
        return web.Response(status=500, text="boom")

    async def stall(request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.Response(status=204)

    app = web.Application()
    app.router.add_route("*", "/hook", record)
    app.router.add_route("*", "/fail", fail)
    app.router.add_route("*", "/stall", stall)

    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield server, received
    finally:
        await server.close()


@pytest_asyncio.fixture
async def notifier():
    instance = Notifier(timeout=0.5)
    try:
        yield instance
    finally:
        await instance.aclose()


@pytest.mark.asyncio
async def test_send_includes_document_when_requested(hooks, notifier: Notifier) -> None:
    server, received = hooks
    status = await notifier.send(str(server.make_url("/hook")), "PUT", TASK_ID, {"x": 1}, send_document=True)

    assert status == 204
    assert received[0]["method"] == "PUT"
    assert received[0]["task"] == TASK_ID
    assert json.loads(received[0]["body"]) == {"x": 1}


@pytest.mark.asyncio
async def test_send_without_document_has_empty_body(hooks, notifier: Notifier) -> None:
    server, received = hooks
    await notifier.send(str(server.make_url("/hook")), "POST", TASK_ID, {"x": 1}, send_document=False)
    assert received[0]["body"] == b""


@pytest.mark.asyncio
async def test_error_status_raises_side_effect_error(hooks, notifier: Notifier) -> None:
    server, _ = hooks
    with pytest.raises(SideEffectError, match="HTTP 500"):
        await notifier.send(str(server.make_url("/fail")), "POST", TASK_ID)


@pytest.mark.asyncio
async def test_stalled_endpoint_times_out(hooks, notifier: Notifier) -> None:
    server, _ = hooks
    with pytest.raises(SideEffectError, match="timed out"):
        await notifier.send(str(server.make_url("/stall")), "POST", TASK_ID)


@pytest.mark.asyncio
async def test_unreachable_endpoint_raises_side_effect_error(notifier: Notifier) -> None:
    port = test_utils.unused_port()
    with pytest.raises(SideEffectError):
        await notifier.send(f"http://127.0.0.1:{port}/hook", "POST", TASK_ID)


@pytest.mark.asyncio
async def test_dispatch_does_not_wait_and_logs_failures(hooks, notifier: Notifier, caplog: pytest.LogCaptureFixture) -> None:
    server, received = hooks

    ok = notifier.dispatch(str(server.make_url("/hook")), "POST", TASK_ID, {"x": 1}, send_document=True)
    failing = notifier.dispatch(str(server.make_url("/fail")), "POST", TASK_ID)
    assert notifier.pending == 2

    await asyncio.gather(ok, failing)

    assert notifier.pending == 0
    assert len(received) == 1
    assert "failed" in caplog.text


def test_dispatch_outside_event_loop_raises() -> None:
    with pytest.raises(SideEffectError, match="no running event loop"):
        Notifier().dispatch("http://hooks.local/x", "POST", TASK_ID)


@pytest.mark.asyncio
async def test_dispatch_after_close_raises() -> None:
    notifier = Notifier()
    await notifier.aclose()
    with pytest.raises(SideEffectError, match="closed"):
        notifier.dispatch("http://hooks.local/x", "POST", TASK_ID)
