"""
Race test engine.

Ties the pipeline together: prepare -> dispatch -> group. The configuration
is passed in per call; nothing is kept between runs.

Usage:
    result = await run_race_test(config)
    for group in result.groups:
        print(group.exemplar.status_code, group.count)
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import RaceConfig
from .dispatcher import RequestDispatcher
from .grouper import OutcomeGroup, ResponseGrouper
from .http_client import RaceError
from .preparer import prepare_attack
from .report import ResultManager, build_report
from .utils import setup_logging, timestamp_now

logger = setup_logging("engine")


@dataclass
class RaceTestResult:
    """Outcome of one race test run."""

    groups: List[OutcomeGroup] = field(default_factory=list)
    errors: List[RaceError] = field(default_factory=list)
    proxy: Optional[str] = None
    total_requests: int = 0
    responses_received: int = 0
    started_at: str = field(default_factory=timestamp_now)
    duration: float = 0.0

    @property
    def distinct_outcomes(self) -> int:
        return len(self.groups)

    def report(self) -> List[Dict[str, Any]]:
        return build_report(self.groups, self.proxy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "duration": self.duration,
            "total_requests": self.total_requests,
            "responses_received": self.responses_received,
            "distinct_outcomes": self.distinct_outcomes,
            "groups": self.report(),
            "errors": [str(e) for e in self.errors],
        }


async def run_race_test(
    config: RaceConfig,
    dispatcher: Optional[RequestDispatcher] = None,
) -> RaceTestResult:
    """
    Run one race test.

    Args:
        config: Race configuration, used for this run only
        dispatcher: Optional dispatcher override

    Returns:
        RaceTestResult with the ordered outcome groups and every non-fatal error

    Raises:
        ConfigurationError: before any request is sent, when the configuration is invalid
    """
    attack = prepare_attack(config)
    dispatcher = dispatcher or RequestDispatcher()
    result = RaceTestResult(proxy=attack.proxy, total_requests=attack.total_requests)
    start_time = time.monotonic()

    logger.info("Requests begin.")
    dispatched = await dispatcher.dispatch(attack)
    logger.info(
        f"Requests completed: {len(dispatched.records)} response(s), {len(dispatched.errors)} error(s)"
    )

    groups, read_errors = ResponseGrouper(verbose=config.verbose).group(dispatched.records)

    result.groups = groups
    result.errors = dispatched.errors + read_errors
    result.responses_received = len(dispatched.records)
    result.duration = time.monotonic() - start_time

    logger.info(f"Found {len(groups)} unique response(s) across {result.total_requests} request(s)")
    return result


class RaceTester:
    """
    Race test runner with result persistence.

    Usage:
        tester = RaceTester(config, output_dir="results")
        result = await tester.test()
        tester.save_results(result, "coupon")
    """

    def __init__(self, config: RaceConfig, output_dir: str = "results"):
        self.config = config
        self.output_dir = output_dir

    async def test(self) -> RaceTestResult:
        """Run the race test."""
        return await run_race_test(self.config)

    def save_results(self, result: RaceTestResult, name: Optional[str] = None) -> Dict[str, str]:
        """Save results to files."""
        manager = ResultManager(self.output_dir)
        return manager.save(result, name or f"race_{result.started_at}")
