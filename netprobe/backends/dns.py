"""Name resolution backends: dnspython, dig, nslookup and host.

Every backend maps its answer onto the same payload:
``{"domain", "record_type", "server", "records", "rcode"}``. NXDOMAIN,
empty answers, SERVFAIL and REFUSED are definitive failures; timeouts are
inconclusive and fall through to the next backend.
"""

import logging
import re
from typing import Any

import dns.exception
import dns.resolver

from netprobe.backends.base import AttemptContext, Capability, CommandCapability
from netprobe.exceptions import BackendProcessError, DeadlineExceeded, ParseError
from netprobe.models.probe import Observation, ProbeKind, ProbeSpec
from netprobe.utils.process import CommandOutput


logger = logging.getLogger(__name__)

DEFAULT_RECORD_TYPE = "A"

_TIMED_OUT = re.compile(r"connection timed out|no servers could be reached", re.IGNORECASE)


def _record_type(spec: ProbeSpec) -> str:
    return str(spec.param("record_type", DEFAULT_RECORD_TYPE)).upper()


def _observation(spec: ProbeSpec, rcode: str, records: list[str]) -> Observation:
    """Build the normalized observation shared by every DNS backend."""
    record_type = _record_type(spec)
    payload = {
        "domain": spec.target,
        "record_type": record_type,
        "server": spec.param("server"),
        "records": records,
        "rcode": rcode,
    }
    if rcode == "NOERROR" and records:
        return Observation(
            success=True,
            payload=payload,
            detail=f"{len(records)} {record_type} record(s)",
        )
    if rcode == "NOERROR":
        payload["rcode"] = "NOANSWER"
        return Observation(
            success=False, payload=payload, detail=f"no {record_type} record"
        )
    return Observation(success=False, payload=payload, detail=rcode)


def _clean_name(value: str) -> str:
    return value.strip().rstrip(".")


class DnspythonCapability(Capability):
    """In-process resolution with dnspython."""

    name = "dnspython"
    supported_kinds = frozenset({ProbeKind.NAME_RESOLUTION})

    def execute(self, spec: ProbeSpec, context: AttemptContext) -> dict[str, Any]:
        server = spec.param("server")
        try:
            if server:
                resolver = dns.resolver.Resolver(configure=False)
                resolver.nameservers = [server]
            else:
                # Reads the system resolver configuration
                resolver = dns.resolver.Resolver()
            resolver.timeout = context.timeout
            resolver.lifetime = context.timeout

            answers = resolver.resolve(spec.target, _record_type(spec))
            return {"rcode": "NOERROR", "records": [_clean_name(str(r)) for r in answers]}
        except dns.resolver.NXDOMAIN:
            return {"rcode": "NXDOMAIN", "records": []}
        except dns.resolver.NoAnswer:
            return {"rcode": "NOERROR", "records": []}
        except dns.resolver.NoNameservers as e:
            # Every nameserver answered with SERVFAIL/REFUSED or could not be reached
            logger.debug("No nameserver answered for %s: %s", spec.target, e)
            return {"rcode": "SERVFAIL", "records": []}
        except dns.exception.Timeout as e:
            raise DeadlineExceeded(f"dnspython timed out resolving {spec.target}") from e
        except dns.exception.DNSException as e:
            raise BackendProcessError(f"dnspython: {type(e).__name__}: {e}") from e

    def parse(self, spec: ProbeSpec, raw: dict[str, Any]) -> Observation:
        return _observation(spec, raw["rcode"], raw["records"])


_DIG_STATUS = re.compile(r"status: (?P<status>[A-Z]+)")


class DigCapability(CommandCapability):
    """Resolution via `dig +time=T +tries=1 [@server] domain TYPE`."""

    name = "dig"
    executable = "dig"
    supported_kinds = frozenset({ProbeKind.NAME_RESOLUTION})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        argv = [self.executable, f"+time={max(1, int(spec.timeout))}", "+tries=1"]
        if spec.param("server"):
            argv.append(f"@{spec.param('server')}")
        argv.extend([spec.target, _record_type(spec)])
        return argv

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        output = raw.stdout
        status = _DIG_STATUS.search(output)
        if status is None:
            if _TIMED_OUT.search(raw.combined):
                raise DeadlineExceeded(f"dig timed out resolving {spec.target}")
            raise ParseError(f"no status in dig output (exit {raw.returncode})")

        record_type = _record_type(spec)
        records = []
        in_answer = False
        for line in output.splitlines():
            if line.startswith(";; ANSWER SECTION"):
                in_answer = True
                continue
            if in_answer:
                if not line.strip() or line.startswith(";"):
                    break
                fields = line.split()
                if len(fields) >= 5 and fields[3].upper() == record_type:
                    records.append(_clean_name(" ".join(fields[4:])))

        return _observation(spec, status.group("status"), records)


_NSLOOKUP_CANT_FIND = re.compile(r"\*\* server can't find [^:]+: (?P<rcode>[A-Z]+)")
_NSLOOKUP_NO_ANSWER = re.compile(r"Can't find .*: No answer|No answer", re.IGNORECASE)
_NSLOOKUP_VALUE = re.compile(
    r"(?:mail exchanger|nameserver|canonical name|text) = (?P<value>.+)$"
)


class NslookupCapability(CommandCapability):
    """Resolution via `nslookup -type=TYPE -timeout=T domain [server]`."""

    name = "nslookup"
    executable = "nslookup"
    supported_kinds = frozenset({ProbeKind.NAME_RESOLUTION})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        argv = [
            self.executable,
            f"-type={_record_type(spec)}",
            f"-timeout={max(1, int(spec.timeout))}",
            spec.target,
        ]
        if spec.param("server"):
            argv.append(spec.param("server"))
        return argv

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        output = raw.combined
        cant_find = _NSLOOKUP_CANT_FIND.search(output)
        if cant_find:
            return _observation(spec, cant_find.group("rcode"), [])
        if _TIMED_OUT.search(output):
            raise DeadlineExceeded(f"nslookup timed out resolving {spec.target}")

        address_query = _record_type(spec) in ("A", "AAAA")
        records = []
        seen_name = False
        for line in output.splitlines():
            line = line.strip()
            if line.startswith("Name:"):
                seen_name = True
            elif line.startswith("Address:"):
                # The Address line before the first Name: is the server's own
                if seen_name and address_query:
                    records.append(line.split(":", 1)[1].strip())
            elif not address_query:
                value = _NSLOOKUP_VALUE.search(line)
                if value:
                    records.append(_clean_name(value.group("value")))

        if records:
            return _observation(spec, "NOERROR", records)
        if _NSLOOKUP_NO_ANSWER.search(output):
            return _observation(spec, "NOERROR", [])
        raise ParseError(f"unrecognized nslookup output (exit {raw.returncode})")


_HOST_NOT_FOUND = re.compile(r"not found: \d+\((?P<rcode>[A-Z]+)\)")
_HOST_RECORD = re.compile(
    r" (?:has address|has IPv6 address|mail is handled by|name server|"
    r"is an alias for|descriptive text) (?P<value>.+)$"
)
_HOST_NO_RECORD = re.compile(r" has no [A-Z]+ record")
_HOST_TYPE_PHRASES = {
    "A": "has address",
    "AAAA": "has IPv6 address",
    "MX": "mail is handled by",
    "NS": "name server",
    "CNAME": "is an alias for",
    "TXT": "descriptive text",
}


class HostCapability(CommandCapability):
    """Resolution via `host -t TYPE -W T domain [server]`."""

    name = "host"
    executable = "host"
    supported_kinds = frozenset({ProbeKind.NAME_RESOLUTION})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        argv = [
            self.executable,
            "-t",
            _record_type(spec),
            "-W",
            str(max(1, int(spec.timeout))),
            spec.target,
        ]
        if spec.param("server"):
            argv.append(spec.param("server"))
        return argv

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        output = raw.combined
        not_found = _HOST_NOT_FOUND.search(output)
        if not_found:
            return _observation(spec, not_found.group("rcode"), [])
        if _TIMED_OUT.search(output):
            raise DeadlineExceeded(f"host timed out resolving {spec.target}")

        phrase = _HOST_TYPE_PHRASES.get(_record_type(spec))
        records = []
        for line in output.splitlines():
            match = _HOST_RECORD.search(line)
            if match and (phrase is None or phrase in line):
                records.append(_clean_name(match.group("value")))

        if records:
            return _observation(spec, "NOERROR", records)
        if _HOST_NO_RECORD.search(output):
            return _observation(spec, "NOERROR", [])
        raise ParseError(f"unrecognized host output (exit {raw.returncode})")
