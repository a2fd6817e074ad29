"""
Attack preparation: validate a RaceConfig and turn it into dispatch-ready targets.

No network I/O happens here. The first configuration problem found is raised
as a ConfigurationError and nothing is dispatched.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from yarl import URL

from .config import (
    SUPPORTED_METHODS,
    InvalidCookieFormat,
    InvalidCount,
    InvalidHeaderFormat,
    InvalidMethod,
    InvalidProxyScheme,
    InvalidProxyURL,
    NoTargetsConfigured,
    RaceConfig,
    TargetSpec,
)
from .utils import setup_logging, split_cookie, split_header

logger = setup_logging("preparer")


@dataclass
class PreparedTarget:
    """
    A validated target with its parsed cookies and headers.

    Holds plain values only, so preparation needs no event loop. Each
    execution builds its own session and cookie jar at send time.
    """

    spec: TargetSpec
    cookie_pairs: List[Tuple[str, str]] = field(default_factory=list)
    header_pairs: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def cookies(self) -> Dict[str, str]:
        """Cookie name -> value, in configured order (a later duplicate name wins)."""
        return dict(self.cookie_pairs)

    @property
    def has_content_type(self) -> bool:
        return any(name.lower() == "content-type" for name, _ in self.header_pairs)


@dataclass
class PreparedAttack:
    """Dispatch-ready configuration."""

    config: RaceConfig
    targets: List[PreparedTarget]
    proxy: Optional[str] = None

    @property
    def count(self) -> int:
        return self.config.count

    @property
    def total_requests(self) -> int:
        return self.config.count * len(self.targets)


def normalize_proxy(proxy: str) -> Optional[str]:
    """
    Validate a proxy setting and return it in normalized form.

    An empty setting means a direct connection (None). A missing scheme
    defaults to http; anything other than http/https is rejected.
    """
    proxy = (proxy or "").strip()
    if not proxy:
        return None

    try:
        parsed = URL(proxy)
        if not parsed.scheme:
            # "127.0.0.1:8080" has no scheme, yarl reads "127.0.0.1" as one,
            # so both cases are resolved by re-parsing with the default scheme
            parsed = URL(f"http://{proxy}")
        elif parsed.scheme not in ("http", "https") and not parsed.host:
            parsed = URL(f"http://{proxy}")
    except ValueError as e:
        raise InvalidProxyURL(proxy) from e

    if parsed.scheme not in ("http", "https"):
        raise InvalidProxyScheme(proxy, parsed.scheme)
    if not parsed.host:
        raise InvalidProxyURL(proxy)

    return str(parsed)


def _is_absolute(url: str) -> bool:
    try:
        return URL(url).is_absolute()
    except ValueError:
        return False


def prepare_target(spec: TargetSpec) -> PreparedTarget:
    """Validate one target and parse its cookie and header strings."""
    if spec.method not in SUPPORTED_METHODS:
        raise InvalidMethod(spec.method, spec.url)

    if not _is_absolute(spec.url):
        # Not fatal: every execution of this target fails on its own
        logger.warning(f"Target URL is not absolute, its requests will fail: {spec.url}")

    cookie_pairs = []
    for cookie in spec.cookies:
        pair = split_cookie(cookie)
        if pair is None:
            raise InvalidCookieFormat(cookie, spec.url)
        cookie_pairs.append(pair)

    header_pairs = []
    for header in spec.headers:
        pair = split_header(header)
        if pair is None:
            raise InvalidHeaderFormat(header, spec.url)
        header_pairs.append(pair)

    return PreparedTarget(
        spec=spec,
        cookie_pairs=cookie_pairs,
        header_pairs=header_pairs,
    )


def prepare_attack(config: RaceConfig) -> PreparedAttack:
    """
    Validate a RaceConfig and build the dispatch-ready attack.

    Applies the default count, checks the target list, every target's method,
    cookies and headers, and the proxy URL.

    Raises:
        ConfigurationError (or a subclass) on the first problem found.
    """
    if not config.targets:
        raise NoTargetsConfigured()

    if config.count < 0:
        raise InvalidCount(config.count)
    config.apply_defaults()

    targets = [prepare_target(spec) for spec in config.targets]

    proxy = normalize_proxy(config.proxy)
    if proxy and proxy != config.proxy:
        config.proxy = proxy

    logger.info(
        f"Prepared {len(targets)} target(s) x {config.count} request(s)"
        + (f" via proxy {proxy}" if proxy else "")
    )
    return PreparedAttack(config=config, targets=targets, proxy=proxy)
