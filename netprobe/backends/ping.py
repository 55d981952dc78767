"""ICMP echo reachability via the system ping tool."""

import math
import re

from netprobe.backends.base import CommandCapability
from netprobe.exceptions import ParseError
from netprobe.models.probe import Observation, ProbeKind, ProbeSpec
from netprobe.utils.platform_info import DARWIN
from netprobe.utils.process import CommandOutput


DEFAULT_COUNT = 1

_STATS = re.compile(
    r"(?P<transmitted>\d+) packets transmitted, (?P<received>\d+)(?: packets)? received"
)
_LOSS = re.compile(r"(?P<loss>[\d.]+)% packet loss")
_RTT = re.compile(
    r"(?:rtt|round-trip) min/avg/max/(?:mdev|stddev) = "
    r"(?P<min>[\d.]+)/(?P<avg>[\d.]+)/(?P<max>[\d.]+)"
)
_UNRESOLVED = re.compile(
    r"unknown host|cannot resolve|Name or service not known|"
    r"Temporary failure in name resolution|No address associated",
    re.IGNORECASE,
)
_UNREACHABLE = re.compile(r"Network is unreachable|No route to host", re.IGNORECASE)


class PingCapability(CommandCapability):
    """Reachability via `ping -c COUNT -W WAIT host`.

    macOS takes the per-reply wait in milliseconds, Linux in seconds.
    """

    name = "ping"
    executable = "ping"
    supported_kinds = frozenset({ProbeKind.REACHABILITY})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        count = int(spec.param("count", DEFAULT_COUNT))
        wait_seconds = max(1, math.floor(spec.timeout / max(count, 1)))
        if self.platform == DARWIN:
            wait = str(wait_seconds * 1000)
        else:
            wait = str(wait_seconds)
        return [self.executable, "-c", str(count), "-W", wait, spec.target]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        output = raw.combined
        stats = _STATS.search(output)

        if stats:
            transmitted = int(stats.group("transmitted"))
            received = int(stats.group("received"))
            payload = {
                "host": spec.target,
                "transmitted": transmitted,
                "received": received,
                "packet_loss": _packet_loss(output, transmitted, received),
                "reachable": received > 0,
            }
            rtt = _RTT.search(output)
            if rtt:
                payload["rtt_min_ms"] = float(rtt.group("min"))
                payload["rtt_avg_ms"] = float(rtt.group("avg"))
                payload["rtt_max_ms"] = float(rtt.group("max"))

            if received > 0:
                detail = f"{received}/{transmitted} replies"
                if payload["packet_loss"] > 0:
                    detail += f", {payload['packet_loss']:g}% packet loss"
                return Observation(success=True, payload=payload, detail=detail)
            return Observation(
                success=False, payload=payload, detail=f"{spec.target} is unreachable"
            )

        if _UNRESOLVED.search(output):
            return Observation(
                success=False,
                payload={"host": spec.target, "reachable": False, "reason": "unresolved"},
                detail=f"cannot resolve {spec.target}",
            )
        if _UNREACHABLE.search(output):
            return Observation(
                success=False,
                payload={"host": spec.target, "reachable": False, "reason": "no_route"},
                detail=f"no route to {spec.target}",
            )

        raise ParseError(
            f"unrecognized ping output (exit {raw.returncode}): {output[:200]}"
        )


def _packet_loss(output: str, transmitted: int, received: int) -> float:
    match = _LOSS.search(output)
    if match:
        return float(match.group("loss"))
    if transmitted == 0:
        return 100.0
    return round(100.0 * (transmitted - received) / transmitted, 1)
