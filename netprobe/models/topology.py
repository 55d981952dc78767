"""Topology fact models and candidate reduction rules."""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Union


UNKNOWN = "unknown"

FactValue = Union[str, list]


@dataclass(frozen=True)
class TopologyCandidate:
    """Raw answer one capability gave for a topology fact.

    Attributes:
        capability: Capability name.
        value: Scalar string, list of strings, or empty ("" / []) when the
            capability had no answer.
    """

    capability: str
    value: Any

    def is_empty(self) -> bool:
        return not self.value

    def to_json(self) -> dict:
        value = list(self.value) if isinstance(self.value, (list, tuple)) else self.value
        return {"capability": self.capability, "value": value}


@dataclass(frozen=True)
class TopologyFact:
    """One reconciled network-state value.

    Attributes:
        name: Fact name (gateway, local_network, dns_servers...).
        value: Winning value, or UNKNOWN when no capability answered.
        source_capability: Capability that produced the value, None if UNKNOWN.
        candidates: Every capability's raw answer, in priority order.

    Invariants:
        - value == UNKNOWN if and only if source_capability is None
    """

    name: str
    value: FactValue
    source_capability: Optional[str]
    candidates: tuple[TopologyCandidate, ...] = ()

    @property
    def is_known(self) -> bool:
        return self.value != UNKNOWN

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "value": list(self.value) if isinstance(self.value, list) else self.value,
            "source_capability": self.source_capability,
            "candidates": [c.to_json() for c in self.candidates],
        }


def first_non_empty(
    name: str, candidates: Sequence[TopologyCandidate]
) -> TopologyFact:
    """Reduce scalar candidates: the first non-empty value wins.

    Args:
        name: Fact name.
        candidates: Candidates in capability priority order.

    Returns:
        TopologyFact: Reconciled fact (UNKNOWN if every candidate is empty).

    Examples:
        >>> fact = first_non_empty("gateway", [
        ...     TopologyCandidate("a", ""),
        ...     TopologyCandidate("b", "10.0.0.1"),
        ...     TopologyCandidate("c", "10.0.0.2"),
        ... ])
        >>> fact.value, fact.source_capability
        ('10.0.0.1', 'b')
    """
    for candidate in candidates:
        if not candidate.is_empty():
            return TopologyFact(
                name=name,
                value=candidate.value,
                source_capability=candidate.capability,
                candidates=tuple(candidates),
            )
    return TopologyFact(
        name=name, value=UNKNOWN, source_capability=None, candidates=tuple(candidates)
    )


def union_in_order(
    name: str, candidates: Sequence[TopologyCandidate]
) -> TopologyFact:
    """Reduce list candidates: union of all lists, first-seen order kept.

    The source capability is the first one that contributed a value.

    Args:
        name: Fact name.
        candidates: Candidates in capability priority order.

    Returns:
        TopologyFact: Reconciled fact (UNKNOWN if every list is empty).

    Examples:
        >>> union_in_order("dns_servers", [
        ...     TopologyCandidate("a", ["8.8.8.8"]),
        ...     TopologyCandidate("b", ["8.8.8.8", "1.1.1.1"]),
        ... ]).value
        ['8.8.8.8', '1.1.1.1']
    """
    merged = _dedupe(item for c in candidates if not c.is_empty() for item in c.value)
    if not merged:
        return TopologyFact(
            name=name,
            value=UNKNOWN,
            source_capability=None,
            candidates=tuple(candidates),
        )

    source = next(c.capability for c in candidates if not c.is_empty())
    return TopologyFact(
        name=name, value=merged, source_capability=source, candidates=tuple(candidates)
    )


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered
