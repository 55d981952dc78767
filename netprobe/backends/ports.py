"""TCP port and TCP-based reachability checks."""

import errno
import re
import socket
from typing import Any

from netprobe.backends.base import AttemptContext, Capability, CommandCapability
from netprobe.exceptions import BackendProcessError, DeadlineExceeded, ParseError
from netprobe.models.probe import Observation, ProbeKind, ProbeSpec
from netprobe.utils.process import CommandOutput


DEFAULT_REACHABILITY_PORT = 443

# errno values that mean the network itself answered "no"
_UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.ENETUNREACH}


def _port_for(spec: ProbeSpec) -> int:
    if spec.kind == ProbeKind.PORT_OPEN:
        return spec.param("port")
    return int(spec.param("tcp_port", DEFAULT_REACHABILITY_PORT))


class SocketConnectCapability(Capability):
    """Port state and reachability via a TCP connect from this process.

    A refused connection proves the host is up, so REACHABILITY treats it
    as success while PORT_OPEN treats it as a definitive "closed".
    """

    name = "socket-connect"
    supported_kinds = frozenset({ProbeKind.PORT_OPEN, ProbeKind.REACHABILITY})

    def execute(self, spec: ProbeSpec, context: AttemptContext) -> dict[str, Any]:
        port = _port_for(spec)
        try:
            with socket.create_connection((spec.target, port), timeout=context.timeout):
                return {"port": port, "state": "open"}
        except ConnectionRefusedError:
            return {"port": port, "state": "refused"}
        except socket.timeout as e:
            raise DeadlineExceeded(f"connect to {spec.target}:{port} timed out") from e
        except socket.gaierror as e:
            if e.errno == socket.EAI_AGAIN:
                raise BackendProcessError(f"temporary resolver failure: {e}") from e
            return {"port": port, "state": "unresolved", "error": str(e)}
        except OSError as e:
            if e.errno in _UNREACHABLE_ERRNOS:
                return {"port": port, "state": "unreachable", "error": str(e)}
            raise BackendProcessError(f"connect to {spec.target}:{port}: {e}") from e

    def parse(self, spec: ProbeSpec, raw: dict[str, Any]) -> Observation:
        return _observation_for_state(spec, raw["port"], raw["state"])


def _observation_for_state(spec: ProbeSpec, port: int, state: str) -> Observation:
    if spec.kind == ProbeKind.REACHABILITY:
        reachable = state in ("open", "refused")
        return Observation(
            success=reachable,
            payload={"host": spec.target, "reachable": reachable, "port": port, "state": state},
            detail=f"tcp/{port} {state}",
        )

    is_open = state == "open"
    return Observation(
        success=is_open,
        payload={
            "host": spec.target,
            "port": port,
            "open": is_open,
            "state": state,
            "service": spec.param("service"),
        },
        detail=f"port {port} {'open' if is_open else state}",
    )


_NC_OPEN = re.compile(r"succeeded|open\b|Connected to", re.IGNORECASE)
_NC_REFUSED = re.compile(r"Connection refused", re.IGNORECASE)
_NC_TIMEOUT = re.compile(r"timed out", re.IGNORECASE)
_NC_UNREACHABLE = re.compile(r"No route to host|Network is unreachable", re.IGNORECASE)


class NetcatCapability(CommandCapability):
    """Port state via `nc -v -z -w WAIT host port`."""

    name = "netcat"
    executable = "nc"
    supported_kinds = frozenset({ProbeKind.PORT_OPEN})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        wait = str(max(1, int(spec.timeout)))
        return [self.executable, "-v", "-z", "-w", wait, spec.target, str(_port_for(spec))]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        output = raw.combined
        port = _port_for(spec)
        if raw.returncode == 0 and (_NC_OPEN.search(output) or not output):
            return _observation_for_state(spec, port, "open")
        if _NC_REFUSED.search(output):
            return _observation_for_state(spec, port, "refused")
        if _NC_UNREACHABLE.search(output):
            return _observation_for_state(spec, port, "unreachable")
        if _NC_TIMEOUT.search(output):
            raise DeadlineExceeded(f"nc timed out on {spec.target}:{port}")
        raise ParseError(f"unrecognized nc output (exit {raw.returncode}): {output[:200]}")
