"""
Request dispatcher: fire count x len(targets) executions at once and collect
every response and every error.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .http_client import Completed, ExecutionResult, RaceError, RaceHTTPClient, ResponseRecord
from .preparer import PreparedAttack, PreparedTarget
from .utils import setup_logging

logger = setup_logging("dispatcher")


@dataclass
class DispatchResult:
    """Everything the executions of one run produced, in completion order."""

    records: List[ResponseRecord] = field(default_factory=list)
    errors: List[RaceError] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def total(self) -> int:
        return len(self.records) + len(self.errors)


class RequestDispatcher:
    """
    Launches every request execution of a prepared attack concurrently.

    There is no concurrency limit and no ordering between executions; the
    server decides which request wins. dispatch() returns only after every
    execution finished, failed or timed out.
    """

    def __init__(self, client: Optional[RaceHTTPClient] = None):
        self.client = client

    def _client_for(self, attack: PreparedAttack) -> RaceHTTPClient:
        if self.client is not None:
            return self.client
        return RaceHTTPClient(
            proxy=attack.proxy,
            timeout=attack.config.timeout,
            verbose=attack.config.verbose,
        )

    def _log_target(self, attack: PreparedAttack, target: PreparedTarget):
        spec = target.spec
        logger.info(f"[VERBOSE] Sending {attack.count} {spec.method} requests to {spec.url}")
        if attack.proxy:
            logger.info(f"[VERBOSE] Proxy: {attack.proxy}")
        if spec.body:
            logger.info(f"[VERBOSE] Request body: {spec.body}")
        if spec.cookies:
            logger.info(f"[VERBOSE] Request cookies: {list(spec.cookies)}")

    async def dispatch(self, attack: PreparedAttack) -> DispatchResult:
        """
        Send all requests of the attack concurrently.

        Returns:
            DispatchResult with one record per completed execution (blocked
            redirects included) and one error per failed execution.
        """
        client = self._client_for(attack)
        verbose = attack.config.verbose
        total = attack.total_requests
        result = DispatchResult()

        start_gate = asyncio.Barrier(total) if attack.config.sync_start and total > 1 else None

        async def run_one(target: PreparedTarget, index: int) -> ExecutionResult:
            outcome = await client.execute(target, index, start_gate)
            # Appended as executions finish, so records keep completion order
            if isinstance(outcome, Completed):
                result.records.append(outcome.record)
            else:
                result.errors.append(outcome.error)
                logger.warning(str(outcome.error))
            return outcome

        tasks = []
        for target in attack.targets:
            if verbose:
                self._log_target(attack, target)
            for index in range(attack.count):
                tasks.append(asyncio.create_task(run_one(target, index)))

        start_time = time.monotonic()
        await asyncio.gather(*tasks)
        result.elapsed = time.monotonic() - start_time

        if verbose:
            logger.info(f"[VERBOSE] Requests complete in {result.elapsed:.3f}s")

        return result
