"""Aggregator: concurrent execution of probe sets and policy classification."""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Optional, Sequence

from netprobe.models.outcome import AggregateOutcome, AggregationPolicy
from netprobe.models.probe import ErrorKind, ProbeResult, ProbeSpec
from netprobe.services.logger import log_aggregate_summary
from netprobe.services.runner import ProbeRunner


logger = logging.getLogger(__name__)

DEFAULT_MAX_IN_FLIGHT = 8

# How often the collecting thread checks the cancel event
POLL_INTERVAL = 0.05

ResultCallback = Callable[[ProbeResult], None]


class Aggregator:
    """Runs a set of probes concurrently and classifies the outcome.

    Every probe runs to completion (there is no early exit under ANY) so
    that the outcome always reports the full picture. Results keep the
    order of the specs, not the order of completion.
    """

    def __init__(self, runner: ProbeRunner, max_in_flight: int = DEFAULT_MAX_IN_FLIGHT):
        """Initialize aggregator.

        Args:
            runner: Probe runner shared by every aggregation.
            max_in_flight: Maximum probes running at once.

        Raises:
            ValueError: If max_in_flight is below 1.
        """
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")
        self.runner = runner
        self.max_in_flight = max_in_flight

    def aggregate(
        self,
        specs: Sequence[ProbeSpec],
        policy: AggregationPolicy,
        cancel_event: Optional[threading.Event] = None,
        on_result: Optional[ResultCallback] = None,
        label: Optional[str] = None,
    ) -> AggregateOutcome:
        """Run every spec and classify the results under a policy.

        Args:
            specs: Probes to run; an empty set classifies as FAILURE.
            policy: Aggregation policy.
            cancel_event: Optional event; when set, pending probes are
                dropped, in-flight attempts are aborted and the outcome holds
                only the results completed so far.
            on_result: Optional progress callback, called from the collecting
                thread as each result completes.
            label: Optional name of the check, carried into the outcome.

        Returns:
            AggregateOutcome: Results in spec order plus classification.
        """
        start = time.monotonic()
        slots: list[Optional[ProbeResult]] = [None] * len(specs)
        cancelled = False

        if specs:
            executor = ThreadPoolExecutor(
                max_workers=min(self.max_in_flight, len(specs)),
                thread_name_prefix="probe",
            )
            try:
                futures = {
                    executor.submit(self.runner.run, spec, cancel_event): index
                    for index, spec in enumerate(specs)
                }
                pending = set(futures)

                while pending:
                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        break

                    done, pending = wait(
                        pending, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED
                    )
                    for future in done:
                        if not self._record(future, futures[future], specs, slots, on_result):
                            cancelled = True

                # Probes that finished while the last batch was being handled
                for future in pending:
                    if future.done() and not future.cancelled():
                        self._record(future, futures[future], specs, slots, on_result)
            finally:
                # In-flight attempts watch the cancel event and stop on their own
                executor.shutdown(wait=not cancelled, cancel_futures=cancelled)

        outcome = AggregateOutcome(
            results=tuple(r for r in slots if r is not None),
            policy=policy,
            cancelled=cancelled,
            label=label,
        )
        log_aggregate_summary(outcome, time.monotonic() - start)
        return outcome

    @staticmethod
    def _collect(future, spec: ProbeSpec) -> ProbeResult:
        try:
            return future.result()
        except Exception as e:
            # Unexpected runner error - record it rather than lose the probe
            logger.error(f"Unexpected error running {spec.describe()}: {e}")
            return ProbeResult(
                spec=spec,
                success=False,
                error_kind=ErrorKind.PROCESS_ERROR,
                detail=f"Exception: {e}",
            )

    def _record(
        self,
        future,
        index: int,
        specs: Sequence[ProbeSpec],
        slots: list,
        on_result: Optional[ResultCallback],
    ) -> bool:
        """Store a finished probe in its slot.

        Returns:
            bool: False when the probe was cut short by the cancel event.
        """
        result = self._collect(future, specs[index])
        if result.error_kind == ErrorKind.CANCELLED:
            return False
        slots[index] = result
        if on_result is not None:
            on_result(result)
        return True
