"""Probe runner: priority-ordered backend attempts with per-attempt deadlines."""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Optional

from netprobe.backends.base import AttemptContext, Capability
from netprobe.exceptions import AttemptCancelled, DeadlineExceeded, InconclusiveAttempt
from netprobe.models.probe import (
    AttemptRecord,
    ErrorKind,
    Observation,
    ProbeResult,
    ProbeSpec,
)
from netprobe.services.logger import log_probe_result
from netprobe.services.registry import BackendRegistry


logger = logging.getLogger(__name__)

# How often a waiting attempt checks the cancel event
POLL_INTERVAL = 0.05


class ProbeRunner:
    """Runs one ProbeSpec through the registry's capabilities.

    Capabilities are tried in priority order. The first definitive
    observation ends the probe, including a definitive failure: an
    authoritative "unreachable" from one tool is an answer, not a reason to
    ask the next tool. Parse errors, tool errors and deadline overruns are
    inconclusive and fall through to the next capability.
    """

    def __init__(self, registry: BackendRegistry):
        self._registry = registry

    def run(
        self, spec: ProbeSpec, cancel_event: Optional[threading.Event] = None
    ) -> ProbeResult:
        """Run a probe to a terminal result.

        Args:
            spec: Probe to run.
            cancel_event: Optional event; when set, the in-flight attempt is
                aborted and the result is CANCELLED.

        Returns:
            ProbeResult: Never raises for backend or network problems.
        """
        capabilities = self._registry.capabilities_for(spec.kind)
        if not capabilities:
            result = ProbeResult(
                spec=spec,
                success=False,
                error_kind=ErrorKind.NO_BACKEND_AVAILABLE,
                detail=f"no backend available for {spec.kind.value}",
            )
            log_probe_result(result)
            return result

        attempts: list[AttemptRecord] = []
        for capability in capabilities:
            if cancel_event is not None and cancel_event.is_set():
                return self._cancelled(spec, attempts)

            record, observation = self.attempt(spec, capability, cancel_event)
            attempts.append(record)

            if observation is not None:
                result = ProbeResult(
                    spec=spec,
                    success=observation.success,
                    payload=observation.payload,
                    latency_ms=record.elapsed_ms,
                    error_kind=(
                        None if observation.success else ErrorKind.DEFINITIVE_NETWORK_FAILURE
                    ),
                    capability=capability.name,
                    detail=observation.detail,
                    attempts=tuple(attempts),
                )
                log_probe_result(result)
                return result

            if record.status == AttemptCancelled.status:
                return self._cancelled(spec, attempts)

        result = ProbeResult(
            spec=spec,
            success=False,
            error_kind=ErrorKind.ALL_BACKENDS_INCONCLUSIVE,
            detail="; ".join(f"{a.capability}: {a.status}" for a in attempts),
            attempts=tuple(attempts),
        )
        log_probe_result(result)
        return result

    def attempt(
        self,
        spec: ProbeSpec,
        capability: Capability,
        cancel_event: Optional[threading.Event] = None,
    ) -> tuple[AttemptRecord, Optional[Observation]]:
        """Run exactly one capability for a probe, bounded by spec.timeout.

        Args:
            spec: Probe to run.
            capability: Capability to use.
            cancel_event: Optional cancellation signal.

        Returns:
            tuple[AttemptRecord, Optional[Observation]]: The observation is
                None when the attempt was inconclusive.
        """
        context = AttemptContext(spec.timeout, cancel_event)
        executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"attempt-{capability.name}"
        )
        start = time.monotonic()
        observation: Optional[Observation] = None
        try:
            future = executor.submit(_execute_and_parse, capability, spec, context)
            observation = self._await(future, spec.timeout, context, cancel_event)
            status, detail = "definitive", observation.detail
        except InconclusiveAttempt as e:
            status, detail = e.status, str(e)
            logger.debug(
                "Inconclusive attempt",
                extra={"capability": capability.name, "status": status, "detail": detail},
            )
        except Exception as e:
            # Unexpected backend error - treat as inconclusive
            status, detail = "process_error", f"{type(e).__name__}: {e}"
            logger.error(
                f"Unexpected error from {capability.name} on {spec.describe()}: {e}"
            )
        finally:
            # Never join: an aborted attempt finishes in the background
            executor.shutdown(wait=False)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        return AttemptRecord(capability.name, status, elapsed_ms, detail), observation

    @staticmethod
    def _await(
        future: Future,
        timeout: float,
        context: AttemptContext,
        cancel_event: Optional[threading.Event],
    ) -> Observation:
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                context.abort()
                raise DeadlineExceeded(f"no answer within {timeout}s")
            done, _ = wait([future], timeout=min(remaining, POLL_INTERVAL))
            if done:
                return future.result()
            if cancel_event is not None and cancel_event.is_set():
                context.abort()
                raise AttemptCancelled("cancelled by caller")

    @staticmethod
    def _cancelled(spec: ProbeSpec, attempts: list[AttemptRecord]) -> ProbeResult:
        return ProbeResult(
            spec=spec,
            success=False,
            error_kind=ErrorKind.CANCELLED,
            detail="cancelled",
            attempts=tuple(attempts),
        )


def _execute_and_parse(
    capability: Capability, spec: ProbeSpec, context: AttemptContext
) -> Observation:
    raw = capability.execute(spec, context)
    context.raise_if_aborted()
    return capability.parse(spec, raw)
