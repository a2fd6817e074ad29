"""
Pytest configuration and shared fixtures for raceprobe tests.
"""

import socket
import ssl
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest
from aiohttp import web
from multidict import CIMultiDict

from raceprobe.config import RaceConfig, TargetSpec
from raceprobe.http_client import CapturedResponse, ResponseRecord

FIXTURES = Path(__file__).parent / "fixtures"


def build_target_app(state: Dict[str, Any]) -> web.Application:
    """
    In-process web application standing in for a race test target.

    Every handler counts its hits in ``state`` so tests can check whether
    any request reached the server.
    """

    def hit(name: str):
        state["hits"][name] = state["hits"].get(name, 0) + 1

    async def coupon(request: web.Request) -> web.Response:
        hit("coupon")
        return web.Response(text="OK-1")

    async def balance(request: web.Request) -> web.Response:
        hit("balance")
        current = state["balance"]
        state["balance"] -= 1
        return web.Response(text=f"Balance:{current}")

    async def ok(request: web.Request) -> web.Response:
        hit("ok")
        return web.Response(text="ok")

    async def page(request: web.Request) -> web.Response:
        hit("page")
        return web.Response(text="<h1>Welcome</h1>", content_type="text/html")

    async def redirect(request: web.Request) -> web.Response:
        hit("redirect")
        raise web.HTTPFound("/landing")

    async def landing(request: web.Request) -> web.Response:
        hit("landing")
        return web.Response(text="landed")

    async def echo(request: web.Request) -> web.Response:
        hit("echo")
        return web.json_response(
            {
                "method": request.method,
                "content_type": request.headers.get("Content-Type", ""),
                "cookie": request.headers.get("Cookie", ""),
                "x_test": request.headers.get("X-Test", ""),
                "body": await request.text(),
            }
        )

    app = web.Application()
    app.router.add_route("*", "/coupon", coupon)
    app.router.add_route("*", "/balance", balance)
    app.router.add_route("*", "/ok", ok)
    app.router.add_route("*", "/ok2", ok)
    app.router.add_get("/page", page)
    app.router.add_get("/redirect", redirect)
    app.router.add_get("/landing", landing)
    app.router.add_route("*", "/echo", echo)
    return app


@pytest.fixture
def target_state() -> Dict[str, Any]:
    """Mutable state shared with the target application."""
    return {"hits": {}, "balance": 100}


@pytest.fixture
def target_app(target_state: Dict[str, Any]) -> web.Application:
    return build_target_app(target_state)


@pytest.fixture
def proxy_state() -> Dict[str, Any]:
    return {"requests": []}


@pytest.fixture
def proxy_app(proxy_state: Dict[str, Any]) -> web.Application:
    """
    Minimal forward HTTP proxy stand-in.

    Records every absolute-form request it receives and answers it itself
    instead of forwarding.
    """

    async def forward(request: web.Request) -> web.Response:
        proxy_state["requests"].append((request.method, request.host, request.path))
        return web.Response(text="proxied")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", forward)
    return app


@pytest.fixture
def self_signed_context() -> ssl.SSLContext:
    """Server TLS context with a self-signed certificate for localhost/127.0.0.1."""
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(FIXTURES / "selfsigned.crt", FIXTURES / "selfsigned.key")
    return context


@pytest.fixture
def unused_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def make_config() -> Callable[..., RaceConfig]:
    """Factory for RaceConfig objects with one or more simple targets."""

    def factory(*urls: str, method: str = "GET", count: int = 3, **target_kwargs) -> RaceConfig:
        targets = [TargetSpec(method=method, url=url, **target_kwargs) for url in urls]
        return RaceConfig(targets=targets, count=count)

    return factory


@pytest.fixture
def make_record() -> Callable[..., ResponseRecord]:
    """Factory for ResponseRecord objects without any network I/O."""

    def factory(
        body: bytes = b"ok",
        status_code: int = 200,
        target: Optional[TargetSpec] = None,
        index: int = 0,
        content_length: Optional[int] = -1,
        body_error: Optional[str] = None,
        location: Optional[str] = None,
    ) -> ResponseRecord:
        target = target or TargetSpec(method="GET", url="https://example.test/")
        if content_length == -1:
            content_length = len(body)
        headers = CIMultiDict({"Content-Type": "text/plain"})
        if location:
            headers["Location"] = location
        response = CapturedResponse(
            status_code=status_code,
            protocol="HTTP/1.1",
            headers=headers,
            content_length=content_length,
            url=target.url,
            redirect_location=location,
            body=body,
            body_error=body_error,
        )
        return ResponseRecord(response=response, origin_target=target, index=index)

    return factory
