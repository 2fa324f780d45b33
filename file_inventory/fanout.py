"""
Parallel dispatch of the scan task across targets.

The FanOutExecutor sends the same PathFilterSet to every target with at
most ``max_concurrency`` calls in flight, waits for all of them, and hands
back one result per target that answered plus one TransportFailure per
target that did not. Individual failures never escape ``run()``.

Results come back in dispatch order regardless of completion order, so a
given target list always produces the same aggregate.

The dispatch callable is injectable: the default runs scan_paths.py over
SSH, tests pass coroutines that fabricate results.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from file_inventory.models import (
    FanOutResult,
    PathFilterSet,
    RemoteScanTaskResult,
    TransportFailure,
)
from file_inventory.remote.scan import TransportFailureError, async_execute_remote

logger = logging.getLogger(__name__)

# (target, filters) -> result; raises TransportFailureError on transport faults
Dispatch = Callable[[str, PathFilterSet], Awaitable[RemoteScanTaskResult]]


def ssh_dispatch(python_command: str = "python3") -> Dispatch:
    """Default dispatch: run scan_paths.py on the target over SSH.

    The timeout is enforced by the executor, so none is passed down here.
    """
    return functools.partial(
        async_execute_remote, timeout=None, python_command=python_command
    )


@dataclass
class FanOutExecutor:
    """Run the scan task on many targets with a concurrency limit.

    Uses asyncio with a semaphore to bound in-flight remote calls.
    ``max_concurrency=1`` serializes the batch.

    Args:
        dispatch: Coroutine function executing the task on one target
        max_concurrency: Max targets scanned at once (>= 1)
        timeout: Per-target timeout in seconds (None = trust the transport)

    Example:
        executor = FanOutExecutor(max_concurrency=4, timeout=600)
        outcome = await executor.run(["srv01", "srv02"], filters)
        print(outcome.results, outcome.failures)
    """

    dispatch: Dispatch = field(default_factory=ssh_dispatch)
    max_concurrency: int = 8
    timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")

    async def _run_one(
        self,
        semaphore: asyncio.Semaphore,
        target: str,
        filters: PathFilterSet,
    ) -> RemoteScanTaskResult | TransportFailure:
        """Execute the task on a single target with semaphore limiting."""
        async with semaphore:
            start = time.monotonic()
            try:
                result = await asyncio.wait_for(
                    self.dispatch(target, filters), timeout=self.timeout
                )
            except TransportFailureError as e:
                logger.warning("Transport failure for %s: %s", target, e.reason)
                return TransportFailure(target=target, reason=e.reason)
            except TimeoutError:
                logger.warning("Scan on %s timed out after %ss", target, self.timeout)
                return TransportFailure(
                    target=target, reason=f"timed out after {self.timeout}s"
                )
            except Exception as e:
                logger.warning("Scan dispatch to %s failed: %s", target, e)
                return TransportFailure(target=target, reason=f"{type(e).__name__}: {e}")

            duration = time.monotonic() - start
            logger.info(
                "Scanned %s in %.1fs: %d files, %d path errors",
                target,
                duration,
                len(result.matched_files),
                len(result.errors),
            )
            return result

    async def run(
        self, targets: Sequence[str], filters: PathFilterSet
    ) -> FanOutResult:
        """Dispatch to every target and wait for the whole batch."""
        outcome = FanOutResult(targets=list(targets))
        if not targets:
            return outcome

        logger.info(
            "Dispatching scan to %d targets (max %d concurrent)",
            len(targets),
            self.max_concurrency,
        )
        semaphore = asyncio.Semaphore(self.max_concurrency)
        completed = await asyncio.gather(
            *(self._run_one(semaphore, target, filters) for target in targets)
        )

        for item in completed:
            if isinstance(item, TransportFailure):
                outcome.failures.append(item)
            else:
                outcome.results.append(item)

        logger.info(
            "Fan-out complete: %d results, %d transport failures",
            len(outcome.results),
            outcome.transport_failure_count,
        )
        return outcome

    def run_sync(self, targets: Sequence[str], filters: PathFilterSet) -> FanOutResult:
        """Blocking wrapper for callers without an event loop."""
        return asyncio.run(self.run(targets, filters))
