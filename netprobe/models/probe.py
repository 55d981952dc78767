"""Probe request and result models."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ProbeKind(Enum):
    """Kinds of network facts a probe can obtain."""

    REACHABILITY = "reachability"
    NAME_RESOLUTION = "name_resolution"
    PORT_OPEN = "port_open"
    HTTP_FETCH = "http_fetch"

    # Local introspection kinds, answered by every capability that can
    GATEWAY = "gateway"
    LOCAL_NETWORK = "local_network"
    LOCAL_ADDRESS = "local_address"
    DNS_SERVERS = "dns_servers"
    NEIGHBOR = "neighbor"
    INTERFACES = "interfaces"
    ROUTES = "routes"


class ErrorKind(Enum):
    """Why a probe did not succeed."""

    NO_BACKEND_AVAILABLE = "NoBackendAvailable"
    ALL_BACKENDS_INCONCLUSIVE = "AllBackendsInconclusive"
    PARSE_ERROR = "ParseError"
    DEADLINE_EXCEEDED = "DeadlineExceeded"
    DEFINITIVE_NETWORK_FAILURE = "DefinitiveNetworkFailure"
    PROCESS_ERROR = "ProcessError"
    CANCELLED = "Cancelled"


LOCAL_TARGET = "local"
MAX_PORT = 65535


def _check_port(port: Any) -> None:
    if port is None:
        raise ValueError("PORT_OPEN probe requires a port")
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"Port must be an integer, got {port!r}")
    if not 1 <= port <= MAX_PORT:
        raise ValueError(f"Port must be between 1 and {MAX_PORT}, got {port}")


@dataclass(frozen=True)
class ProbeSpec:
    """Immutable description of one probe.

    Attributes:
        kind: Kind of fact to obtain.
        target: Host, domain, URL or "local" for introspection kinds.
        parameters: Kind-specific options (record_type, server, port,
            count, user_agent).
        timeout: Deadline for each backend attempt, in seconds.

    Raises:
        ValueError: If target is empty, timeout is not positive, or a
            PORT_OPEN probe lacks an integer port in 1-65535.
    """

    kind: ProbeKind
    target: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    timeout: float = 5.0

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ProbeKind):
            raise ValueError(f"Unknown probe kind: {self.kind!r}")
        if not self.target or not str(self.target).strip():
            raise ValueError("Probe target cannot be empty")
        if self.timeout <= 0:
            raise ValueError(f"Probe timeout must be positive, got {self.timeout}")
        if self.kind == ProbeKind.PORT_OPEN:
            _check_port(self.parameters.get("port"))
        object.__setattr__(self, "target", str(self.target).strip())
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    def param(self, key: str, default: Any = None) -> Any:
        return self.parameters.get(key, default)

    def describe(self) -> str:
        """Short label such as "name_resolution google.com @8.8.8.8"."""
        label = f"{self.kind.value} {self.target}"
        if self.param("server"):
            label += f" @{self.param('server')}"
        if self.param("port") is not None and self.kind == ProbeKind.PORT_OPEN:
            label += f":{self.param('port')}"
        return label

    def to_json(self) -> dict:
        return {
            "kind": self.kind.value,
            "target": self.target,
            "parameters": dict(self.parameters),
            "timeout": self.timeout,
        }


@dataclass(frozen=True)
class Observation:
    """Normalized, definitive answer produced by a capability parser.

    Attributes:
        success: True if the fact was positively established.
        payload: Kind-specific data (addresses, rtt, status code...).
        detail: Short human-readable explanation.
    """

    success: bool
    payload: dict = field(default_factory=dict)
    detail: str = ""


@dataclass(frozen=True)
class AttemptRecord:
    """Diagnostics for one capability attempt.

    Attributes:
        capability: Capability name.
        status: definitive, parse_error, deadline_exceeded, process_error,
            cancelled or inconclusive.
        elapsed_ms: Wall-clock time spent on the attempt.
        detail: Error or result description.
    """

    capability: str
    status: str
    elapsed_ms: int
    detail: str = ""

    @property
    def is_definitive(self) -> bool:
        return self.status == "definitive"

    def to_json(self) -> dict:
        return {
            "capability": self.capability,
            "status": self.status,
            "elapsed_ms": self.elapsed_ms,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of running one ProbeSpec.

    Attributes:
        spec: The probe that was run.
        success: True if the probed fact holds.
        payload: Kind-specific data from the definitive attempt.
        latency_ms: Duration of the definitive attempt, None if there was none.
        error_kind: None on success.
        capability: Capability that produced the definitive answer.
        detail: Human-readable summary.
        attempts: Every attempt made, in priority order.
    """

    spec: ProbeSpec
    success: bool
    payload: dict = field(default_factory=dict)
    latency_ms: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    capability: Optional[str] = None
    detail: str = ""
    attempts: tuple[AttemptRecord, ...] = ()

    def __post_init__(self) -> None:
        if self.success and self.error_kind is not None:
            raise ValueError("A successful result cannot carry an error kind")
        if not self.success and self.error_kind is None:
            raise ValueError("A failed result requires an error kind")
        if self.latency_ms is not None and self.latency_ms < 0:
            raise ValueError("latency_ms must be non-negative")

    def is_definitive(self) -> bool:
        """Check if a backend gave an authoritative answer.

        Returns:
            bool: True for successes and definitive network failures.
        """
        return self.success or self.error_kind == ErrorKind.DEFINITIVE_NETWORK_FAILURE

    def to_json(self) -> dict:
        return {
            "spec": self.spec.to_json(),
            "success": self.success,
            "payload": self.payload,
            "latency_ms": self.latency_ms,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "capability": self.capability,
            "detail": self.detail,
            "attempts": [a.to_json() for a in self.attempts],
        }
