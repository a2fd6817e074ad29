"""
Race test configuration: RaceConfig / TargetSpec containers, defaults,
configuration file loading and the configuration error taxonomy.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import yaml

from .utils import load_config, setup_logging

logger = setup_logging("config")

DEFAULT_COUNT = 100
DEFAULT_TIMEOUT = 120.0
SUPPORTED_METHODS = ("GET", "POST", "PUT", "HEAD")


class ConfigurationError(ValueError):
    """Fatal configuration problem, raised before any request is sent."""


class ConfigFileError(ConfigurationError):
    """Configuration file is missing, unreadable or malformed."""


class InvalidConfiguration(ConfigurationError):
    """Configuration document has the wrong shape (missing or mistyped fields)."""


class NoTargetsConfigured(ConfigurationError):
    def __init__(self):
        super().__init__("No targets set. Minimum of 1 target required.")


class InvalidCookieFormat(ConfigurationError):
    def __init__(self, cookie: str, url: str):
        self.cookie = cookie
        self.url = url
        super().__init__(
            f"Invalid cookie {cookie!r} for {url}: expected the format name=value"
        )


class InvalidHeaderFormat(ConfigurationError):
    def __init__(self, header: str, url: str):
        self.header = header
        self.url = url
        super().__init__(
            f"Invalid header {header!r} for {url}: expected the format 'Name: value'"
        )


class InvalidMethod(ConfigurationError):
    def __init__(self, method: str, url: str):
        self.method = method
        self.url = url
        super().__init__(
            f"Invalid request method {method!r} for {url}: "
            f"must be one of {', '.join(SUPPORTED_METHODS)}"
        )


class InvalidProxyURL(ConfigurationError):
    def __init__(self, proxy: str):
        self.proxy = proxy
        super().__init__(f"Invalid proxy URL: {proxy!r}")


class InvalidProxyScheme(ConfigurationError):
    def __init__(self, proxy: str, scheme: str):
        self.proxy = proxy
        self.scheme = scheme
        super().__init__(
            "Proxy must be an http or https proxy, and specify the proper scheme "
            f'(e.g. "http://127.0.0.1:8080"), got {scheme!r}'
        )


class InvalidCount(ConfigurationError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Request count must be a positive number, got {count}")


def _flag(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidConfiguration(f"'{field_name}' must be true or false, got {value!r}")
    return value


def _string_list(value: Any, field_name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise InvalidConfiguration(f"'{field_name}' must be a list of strings")
    return tuple(str(v) for v in value)


@dataclass(frozen=True)
class TargetSpec:
    """
    One request template to be fired repeatedly.

    Value type: two targets are the same target when every field matches,
    with cookie and header sequences compared in order.
    """

    method: str
    url: str
    body: str = ""
    cookies: Tuple[str, ...] = ()
    headers: Tuple[str, ...] = ()
    redirects: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "body": self.body,
            "cookies": list(self.cookies),
            "headers": list(self.headers),
            "redirects": self.redirects,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetSpec":
        if not isinstance(data, dict):
            raise InvalidConfiguration("Each target must be a mapping")

        method = data.get("method")
        url = data.get("url")
        if not method or not url:
            raise InvalidConfiguration("Each target requires a 'method' and a 'url'")

        body = data.get("body") or ""
        return cls(
            method=str(method).strip().upper(),
            url=str(url).strip(),
            body=str(body),
            cookies=_string_list(data.get("cookies"), "cookies"),
            headers=_string_list(data.get("headers"), "headers"),
            redirects=_flag(data.get("redirects"), "redirects", False),
        )


@dataclass
class RaceConfig:
    """
    Race test configuration.

    Defaults:
        count: 100 (applied when 0)
        verbose: False
        proxy: none
        timeout: 120 seconds
    """

    targets: List[TargetSpec] = field(default_factory=list)
    count: int = 0
    verbose: bool = False
    proxy: str = ""
    timeout: float = DEFAULT_TIMEOUT
    sync_start: bool = True

    def apply_defaults(self) -> "RaceConfig":
        """Fill in default values for unset options. Returns self."""
        if not self.count:
            self.count = DEFAULT_COUNT
        if not self.timeout or self.timeout <= 0:
            self.timeout = DEFAULT_TIMEOUT
        return self

    @property
    def total_requests(self) -> int:
        return self.count * len(self.targets)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "verbose": self.verbose,
            "proxy": self.proxy,
            "timeout": self.timeout,
            "sync_start": self.sync_start,
            "targets": [t.to_dict() for t in self.targets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], require_targets: bool = False) -> "RaceConfig":
        """
        Build a RaceConfig from a parsed configuration mapping.

        Raises InvalidConfiguration when the mapping has the wrong shape. With
        require_targets, a missing 'targets' key is an error as well (an empty
        list is left for the preparer to reject).
        """
        if not isinstance(data, dict):
            raise InvalidConfiguration("Configuration must be a mapping")

        if require_targets and "targets" not in data:
            raise InvalidConfiguration("'targets' is required")

        raw_targets = data.get("targets") or []
        if not isinstance(raw_targets, list):
            raise InvalidConfiguration("'targets' must be a list")

        try:
            count = int(data.get("count") or 0)
            timeout = float(data.get("timeout") or DEFAULT_TIMEOUT)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"Invalid numeric option: {e}") from e

        return cls(
            targets=[TargetSpec.from_dict(t) for t in raw_targets],
            count=count,
            verbose=_flag(data.get("verbose"), "verbose", False),
            proxy=str(data.get("proxy") or "").strip(),
            timeout=timeout,
            sync_start=_flag(data.get("sync_start"), "sync_start", True),
        )


def load_config_file(location: str) -> RaceConfig:
    """
    Read a YAML, JSON or TOML configuration file into a RaceConfig with defaults applied.

    Raises ConfigFileError when the file cannot be opened or parsed.
    """
    try:
        data = load_config(location)
    except FileNotFoundError as e:
        raise ConfigFileError(f"could not open configuration file: {e}") from e
    except OSError as e:
        raise ConfigFileError(f"could not read configuration file: {e}") from e
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigFileError(f"could not parse configuration file: {e}") from e

    config = RaceConfig.from_dict(data)
    config.apply_defaults()
    logger.info(f"Loaded configuration from {location}: {len(config.targets)} target(s)")
    return config
