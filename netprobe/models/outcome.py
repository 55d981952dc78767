"""Aggregate outcome models and the classification rule."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from netprobe.models.probe import ProbeResult


class PolicyKind(Enum):
    """How many successes a probe set needs to count as working."""

    ALL = "ALL"
    ANY = "ANY"
    AT_LEAST_K = "AT_LEAST_K"


class Classification(Enum):
    """Three-way verdict for a set of probe results."""

    FULL_SUCCESS = "FULL_SUCCESS"
    PARTIAL = "PARTIAL"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class AggregationPolicy:
    """Policy plus its threshold.

    Attributes:
        kind: ALL, ANY or AT_LEAST_K.
        k: Required success count, only for AT_LEAST_K.

    Raises:
        ValueError: If k is missing or below 1 for AT_LEAST_K, or given
            for another policy.
    """

    kind: PolicyKind
    k: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind == PolicyKind.AT_LEAST_K:
            if self.k is None or self.k < 1:
                raise ValueError("AT_LEAST_K policy requires k >= 1")
        elif self.k is not None:
            raise ValueError(f"{self.kind.value} policy does not take k")

    @classmethod
    def all(cls) -> "AggregationPolicy":
        return cls(PolicyKind.ALL)

    @classmethod
    def any(cls) -> "AggregationPolicy":
        return cls(PolicyKind.ANY)

    @classmethod
    def at_least(cls, k: int) -> "AggregationPolicy":
        return cls(PolicyKind.AT_LEAST_K, k)

    def describe(self) -> str:
        if self.kind == PolicyKind.AT_LEAST_K:
            return f"AT_LEAST_{self.k}"
        return self.kind.value

    def to_json(self) -> dict:
        return {"kind": self.kind.value, "k": self.k}


def classify(
    success_count: int, total: int, policy: AggregationPolicy
) -> Classification:
    """Classify a success count under a policy.

    An empty set is always FAILURE so that "nothing was tested" can never
    read as "everything passed".

    Args:
        success_count: Number of successful results.
        total: Number of results.
        policy: Aggregation policy.

    Returns:
        Classification: FULL_SUCCESS, PARTIAL or FAILURE.

    Examples:
        >>> classify(2, 3, AggregationPolicy.all())
        <Classification.PARTIAL: 'PARTIAL'>
        >>> classify(1, 3, AggregationPolicy.any())
        <Classification.FULL_SUCCESS: 'FULL_SUCCESS'>
    """
    if total == 0 or success_count == 0:
        return Classification.FAILURE

    if policy.kind == PolicyKind.ALL:
        if success_count == total:
            return Classification.FULL_SUCCESS
        return Classification.PARTIAL

    if policy.kind == PolicyKind.ANY:
        return Classification.FULL_SUCCESS

    if success_count >= policy.k:
        return Classification.FULL_SUCCESS
    return Classification.PARTIAL


def _measured_latency(result: ProbeResult) -> Optional[float]:
    rtt = result.payload.get("rtt_avg_ms")
    if rtt is not None:
        return rtt
    return result.latency_ms


@dataclass(frozen=True)
class AggregateOutcome:
    """Results of one aggregation and their classification.

    Attributes:
        results: Probe results in the order the specs were given.
        policy: Policy used to classify.
        cancelled: True if the aggregation was cancelled; results then hold
            only the probes that completed.
        label: Optional name of the check (e.g. "dns_resolution").

    Computed Properties:
        success_count, total, classification, average_latency_ms.

    Invariants:
        - classification == classify(success_count, total, policy)
    """

    results: tuple[ProbeResult, ...]
    policy: AggregationPolicy
    cancelled: bool = False
    label: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def classification(self) -> Classification:
        return classify(self.success_count, self.total, self.policy)

    @property
    def average_latency_ms(self) -> Optional[float]:
        """Mean latency over successful results that measured one.

        A result whose payload carries the round-trip time reported by the
        tool itself (`rtt_avg_ms`, from ping) contributes that figure; other
        results contribute the duration of their definitive attempt.

        Returns:
            Optional[float]: Average in milliseconds, None if unmeasured.
        """
        latencies = [
            latency for latency in (_measured_latency(r) for r in self.results if r.success)
            if latency is not None
        ]
        if not latencies:
            return None
        return round(sum(latencies) / len(latencies), 1)

    def successes(self) -> list[ProbeResult]:
        return [r for r in self.results if r.success]

    def failures(self) -> list[ProbeResult]:
        return [r for r in self.results if not r.success]

    def to_json(self) -> dict:
        """Serialize to JSON-compatible dict.

        Returns:
            dict: JSON-serializable representation matching
                aggregate-outcome-schema.json.
        """
        return {
            "label": self.label,
            "policy": self.policy.to_json(),
            "classification": self.classification.value,
            "success_count": self.success_count,
            "total": self.total,
            "cancelled": self.cancelled,
            "average_latency_ms": self.average_latency_ms,
            "results": [r.to_json() for r in self.results],
        }
