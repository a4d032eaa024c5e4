"""Shared test fixtures for the trafficgen test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Stub HTTP server
# =============================================================================


class HitCounter:
    """Counts requests seen by the stub server."""

    def __init__(self) -> None:
        self.hits = 0


COUNTER_KEY = web.AppKey("counter", HitCounter)


async def _ok_handler(request: web.Request) -> web.Response:
    request.app[COUNTER_KEY].hits += 1
    return web.Response(text="ok")


async def _status_handler(request: web.Request) -> web.Response:
    """Return the status code given in the path, e.g. ``/status/503``."""
    request.app[COUNTER_KEY].hits += 1
    return web.Response(status=int(request.match_info["code"]), text="status")


async def _slow_handler(request: web.Request) -> web.Response:
    """Respond after ``?delay=`` seconds (default 2)."""
    request.app[COUNTER_KEY].hits += 1
    await asyncio.sleep(float(request.query.get("delay", "2")))
    return web.Response(text="slow")


def _create_stub_app(counter: HitCounter) -> web.Application:
    app = web.Application()
    app[COUNTER_KEY] = counter
    app.router.add_get("/", _ok_handler)
    app.router.add_get("/status/{code}", _status_handler)
    app.router.add_get("/slow", _slow_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def hit_counter() -> HitCounter:
    return HitCounter()


@pytest.fixture
async def stub_server(hit_counter: HitCounter) -> AsyncIterator[str]:
    """Stub server on the test's event loop.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    runner = web.AppRunner(_create_stub_app(hit_counter), shutdown_timeout=1.0)
    await runner.setup()
    port = _get_free_port()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def unreachable_url() -> str:
    """A localhost URL on which nothing listens (connection refused)."""
    return f"http://127.0.0.1:{_get_free_port()}/"


@pytest.fixture
def sync_stub_server() -> Iterator[str]:
    """Stub server running in a background thread for sync (CLI) tests."""
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_stub_app(HitCounter()), shutdown_timeout=1.0)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
