"""
Async HTTP execution for race tests.

One RaceHTTPClient.execute() call is one request execution: it builds its own
aiohttp session from the target template, optionally waits at the shared
start gate, sends the request and reports a tagged result.
"""

import asyncio
import ssl
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import aiohttp
from aiohttp import ClientSession, ClientTimeout, CookieJar, TCPConnector
from multidict import CIMultiDict
from yarl import URL

from .config import DEFAULT_TIMEOUT, TargetSpec
from .preparer import PreparedTarget
from .utils import cookies_to_string, setup_logging

logger = setup_logging("http_client")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
REDIRECT_STATUSES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 10


class BodyReadError(Exception):
    """The response body could not be drained."""


@dataclass
class RaceError:
    """A non-fatal error collected during a run."""

    stage: str  # request, body
    message: str
    index: Optional[int] = None
    url: Optional[str] = None

    def __str__(self) -> str:
        if self.stage == "request" and self.index is not None:
            return f"Error in request #{self.index}: {self.message}"
        if self.stage == "body":
            return f"Error reading response body: {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "message": self.message,
            "index": self.index,
            "url": self.url,
        }


@dataclass
class CapturedResponse:
    """A response received by one execution, with its body already drained."""

    status_code: int
    protocol: str
    headers: CIMultiDict
    content_length: Optional[int]
    url: str
    redirect_location: Optional[str] = None
    body: bytes = b""
    body_error: Optional[str] = None

    def read_body(self) -> bytes:
        """Return the body bytes. Safe to call any number of times."""
        if self.body_error is not None:
            raise BodyReadError(self.body_error)
        return self.body

    def header_dict(self) -> Dict[str, List[str]]:
        """Headers as a name -> list of values mapping, first-seen name order."""
        result: Dict[str, List[str]] = {}
        for name, value in self.headers.items():
            result.setdefault(name, []).append(value)
        return result


@dataclass
class ResponseRecord:
    """One completed request attempt and the target that produced it."""

    response: CapturedResponse
    origin_target: TargetSpec
    index: int
    redirect_blocked: bool = False


@dataclass
class Completed:
    record: ResponseRecord
    ok: bool = field(default=True, init=False)


@dataclass
class Failed:
    error: RaceError
    ok: bool = field(default=False, init=False)


ExecutionResult = Union[Completed, Failed]


def _describe(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


def _protocol(response: aiohttp.ClientResponse) -> str:
    version = response.version
    if version is None:
        return ""
    return f"HTTP/{version.major}.{version.minor}"


def _resolve_location(response: aiohttp.ClientResponse) -> Optional[str]:
    location = response.headers.get("Location")
    if not location:
        return None
    try:
        return str(response.url.join(URL(location)))
    except ValueError:
        return location


class RaceHTTPClient:
    """
    Per-execution HTTP policy for race tests.

    Features:
    - One aiohttp session (and connection) per execution
    - TLS certificate verification disabled
    - Optional HTTP/HTTPS proxy for every request
    - Cookies sent as a Cookie header and through a per-execution jar
    - Redirects followed or captured as-is, per target
    - Fixed per-request timeout, no retries
    """

    def __init__(
        self,
        proxy: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = False,
        max_redirects: int = MAX_REDIRECTS,
        verbose: bool = False,
    ):
        self.proxy = proxy
        self.timeout = ClientTimeout(total=timeout)
        self.verify_ssl = verify_ssl
        self.max_redirects = max_redirects
        self.verbose = verbose

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if self.verify_ssl:
            return None
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        return ssl_context

    def build_headers(self, target: PreparedTarget) -> CIMultiDict:
        """Build the request headers: Cookie, custom headers, POST content type."""
        headers: CIMultiDict = CIMultiDict()

        if target.spec.cookies:
            headers.add("Cookie", cookies_to_string(list(target.spec.cookies)))

        for name, value in target.header_pairs:
            headers.add(name, value)

        # Some applications only process POST bodies with a form content type
        if target.spec.method == "POST" and not target.has_content_type:
            headers.add("Content-Type", FORM_CONTENT_TYPE)

        return headers

    def build_request_kwargs(self, target: PreparedTarget) -> Dict[str, Any]:
        """
        Keyword arguments for ClientSession.request() for one execution.

        The body bytes are created fresh on every call so no two executions
        share a payload object.
        """
        spec = target.spec
        kwargs: Dict[str, Any] = {
            "method": spec.method,
            "url": spec.url,
            "headers": self.build_headers(target),
            "data": spec.body.encode("utf-8") if spec.body else None,
            "allow_redirects": spec.redirects,
            "proxy": self.proxy,
        }
        if spec.redirects:
            kwargs["max_redirects"] = self.max_redirects

        # Cookies go out only in the raw Cookie header, never through cookies=
        return kwargs

    def create_session(self) -> ClientSession:
        """
        Create the aiohttp session for a single execution.

        Must be called with the event loop running. The jar starts empty and
        only collects cookies set by the target while redirects are followed.
        """
        connector = TCPConnector(ssl=self._ssl_context(), force_close=True)
        return ClientSession(
            connector=connector,
            timeout=self.timeout,
            cookie_jar=CookieJar(unsafe=True),
        )

    async def _wait_for_start(self, start_gate: asyncio.Barrier):
        try:
            await start_gate.wait()
        except asyncio.BrokenBarrierError:
            # Another execution could not get ready, send anyway
            pass

    async def _capture(
        self,
        response: aiohttp.ClientResponse,
        target: PreparedTarget,
        index: int,
    ) -> ResponseRecord:
        body = b""
        body_error = None
        try:
            body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            body_error = _describe(e)
            logger.warning(f"Body read failed for request #{index} to {target.spec.url}: {body_error}")

        location = _resolve_location(response)
        redirect_blocked = (
            not target.spec.redirects
            and response.status in REDIRECT_STATUSES
            and location is not None
        )
        if redirect_blocked and self.verbose:
            logger.info(f"[VERBOSE] Redirect not followed to: {location}")

        captured = CapturedResponse(
            status_code=response.status,
            protocol=_protocol(response),
            headers=CIMultiDict(response.headers),
            content_length=response.content_length,
            url=str(response.url),
            redirect_location=location,
            body=body,
            body_error=body_error,
        )
        return ResponseRecord(
            response=captured,
            origin_target=target.spec,
            index=index,
            redirect_blocked=redirect_blocked,
        )

    async def execute(
        self,
        target: PreparedTarget,
        index: int,
        start_gate: Optional[asyncio.Barrier] = None,
    ) -> ExecutionResult:
        """
        Run one request execution.

        Args:
            target: Prepared target template
            index: Repetition index, used to tag errors
            start_gate: Optional barrier shared by all executions of a run

        Returns:
            Completed with the captured response (including blocked redirects),
            or Failed with the transport/construction error.
        """
        try:
            kwargs = self.build_request_kwargs(target)
            session = self.create_session()
        except (ValueError, TypeError) as e:
            if start_gate is not None:
                await start_gate.abort()
            return Failed(RaceError("request", f"could not form request: {_describe(e)}", index, target.spec.url))

        async with session:
            if start_gate is not None:
                await self._wait_for_start(start_gate)

            try:
                async with session.request(**kwargs) as response:
                    record = await self._capture(response, target, index)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, OSError) as e:
                return Failed(RaceError("request", _describe(e), index, target.spec.url))

        return Completed(record)
