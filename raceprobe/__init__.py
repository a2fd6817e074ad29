"""
raceprobe - race condition tester for web applications
"""

__version__ = "1.0.0"

from .config import (
    ConfigurationError,
    ConfigFileError,
    InvalidConfiguration,
    InvalidCookieFormat,
    InvalidCount,
    InvalidHeaderFormat,
    InvalidMethod,
    InvalidProxyScheme,
    InvalidProxyURL,
    NoTargetsConfigured,
    RaceConfig,
    TargetSpec,
    load_config_file,
)
from .dispatcher import DispatchResult, RequestDispatcher
from .engine import RaceTester, RaceTestResult, run_race_test
from .grouper import OutcomeGroup, ResponseGrouper, ResponseSnapshot
from .http_client import RaceError, RaceHTTPClient
from .preparer import prepare_attack
from .report import ResultManager, build_report, render_text
from .utils import setup_logging

__all__ = [
    "ConfigurationError",
    "ConfigFileError",
    "InvalidConfiguration",
    "InvalidCookieFormat",
    "InvalidCount",
    "InvalidHeaderFormat",
    "InvalidMethod",
    "InvalidProxyScheme",
    "InvalidProxyURL",
    "NoTargetsConfigured",
    "RaceConfig",
    "TargetSpec",
    "load_config_file",
    "DispatchResult",
    "RequestDispatcher",
    "RaceTester",
    "RaceTestResult",
    "run_race_test",
    "OutcomeGroup",
    "ResponseGrouper",
    "ResponseSnapshot",
    "RaceError",
    "RaceHTTPClient",
    "prepare_attack",
    "ResultManager",
    "build_report",
    "render_text",
    "setup_logging",
]
