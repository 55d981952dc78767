"""HTTP reachability backends: requests, curl and wget.

A 2xx or 3xx status is success. Other statuses and refused or
unresolvable connections are definitive failures; timeouts are
inconclusive.
"""

import html
import re
from typing import Any

import requests

from netprobe.backends.base import AttemptContext, Capability, CommandCapability
from netprobe.exceptions import BackendProcessError, DeadlineExceeded, ParseError
from netprobe.models.probe import Observation, ProbeKind, ProbeSpec
from netprobe.utils.process import CommandOutput


DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36"
BODY_EXCERPT_CHARS = 300

_TITLE = re.compile(r"<title[^>]*>(?P<title>.*?)</title>", re.IGNORECASE | re.DOTALL)


def extract_title(body: str) -> str | None:
    """Extract the HTML page title, whitespace collapsed.

    Examples:
        >>> extract_title("<html><TITLE> Router  Login </TITLE></html>")
        'Router Login'
    """
    match = _TITLE.search(body or "")
    if not match:
        return None
    title = " ".join(html.unescape(match.group("title")).split())
    return title or None


def _user_agent(spec: ProbeSpec) -> str:
    return spec.param("user_agent") or DEFAULT_USER_AGENT


def _status_observation(spec: ProbeSpec, status_code: int, body: str) -> Observation:
    ok = 200 <= status_code < 400
    payload = {
        "url": spec.target,
        "status_code": status_code,
        "reachable": ok,
        "title": extract_title(body),
        "body_excerpt": (body or "")[:BODY_EXCERPT_CHARS],
    }
    return Observation(success=ok, payload=payload, detail=f"HTTP {status_code}")


def _connection_failure(spec: ProbeSpec, reason: str) -> Observation:
    return Observation(
        success=False,
        payload={
            "url": spec.target,
            "status_code": None,
            "reachable": False,
            "title": None,
            "body_excerpt": "",
            "reason": reason,
        },
        detail=reason,
    )


class RequestsCapability(Capability):
    """In-process HTTP GET with requests."""

    name = "requests"
    supported_kinds = frozenset({ProbeKind.HTTP_FETCH})

    def execute(self, spec: ProbeSpec, context: AttemptContext) -> dict[str, Any]:
        try:
            response = requests.get(
                spec.target,
                timeout=context.timeout,
                headers={"User-Agent": _user_agent(spec)},
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as e:
            # ConnectTimeout is also a ConnectionError, so this must come first
            raise DeadlineExceeded(f"{spec.target} timed out") from e
        except requests.exceptions.ConnectionError as e:
            return {"status_code": None, "error": str(e)}
        except requests.exceptions.RequestException as e:
            raise BackendProcessError(f"requests: {type(e).__name__}: {e}") from e

        return {"status_code": response.status_code, "body": response.text or ""}

    def parse(self, spec: ProbeSpec, raw: dict[str, Any]) -> Observation:
        if raw["status_code"] is None:
            return _connection_failure(spec, f"connection failed: {raw['error'][:200]}")
        return _status_observation(spec, raw["status_code"], raw.get("body", ""))


_CURL_MARKER = "\n__netprobe_status__"

# curl exit codes that carry a definitive network answer
_CURL_DEFINITIVE = {
    6: "could not resolve host",
    7: "failed to connect",
    35: "TLS handshake failed",
    51: "certificate verification failed",
    60: "certificate verification failed",
}
_CURL_TIMEOUT = 28


class CurlCapability(CommandCapability):
    """HTTP GET via `curl -sS --max-time T -A UA -w STATUS url`."""

    name = "curl"
    executable = "curl"
    supported_kinds = frozenset({ProbeKind.HTTP_FETCH})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [
            self.executable,
            "-sS",
            "--max-time",
            str(spec.timeout),
            "-A",
            _user_agent(spec),
            "-w",
            _CURL_MARKER + "%{http_code}",
            spec.target,
        ]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if raw.returncode == _CURL_TIMEOUT:
            raise DeadlineExceeded(f"curl timed out fetching {spec.target}")
        if raw.returncode in _CURL_DEFINITIVE:
            return _connection_failure(spec, _CURL_DEFINITIVE[raw.returncode])

        body, marker, status = raw.stdout.rpartition(_CURL_MARKER)
        if not marker or not status.strip().isdigit():
            raise ParseError(f"no status marker in curl output (exit {raw.returncode})")
        status_code = int(status.strip())
        if status_code == 0:
            raise ParseError(f"curl returned no HTTP status (exit {raw.returncode})")
        return _status_observation(spec, status_code, body)


_WGET_STATUS = re.compile(r"HTTP/\d(?:\.\d)?\s+(?P<code>\d{3})")
_WGET_TIMEOUT = re.compile(r"timed out", re.IGNORECASE)
_WGET_RESOLVE = re.compile(r"unable to resolve host address|Name or service not known")
_WGET_REFUSED = re.compile(r"Connection refused|No route to host|Network is unreachable")


class WgetCapability(CommandCapability):
    """HTTP reachability via `wget --spider -S -T T -t 1 url` (no body)."""

    name = "wget"
    executable = "wget"
    supported_kinds = frozenset({ProbeKind.HTTP_FETCH})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [
            self.executable,
            "--spider",
            "-S",
            "--max-redirect=0",
            "-T",
            str(max(1, int(spec.timeout))),
            "-t",
            "1",
            "-U",
            _user_agent(spec),
            spec.target,
        ]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        output = raw.combined
        statuses = _WGET_STATUS.findall(output)
        if statuses:
            return _status_observation(spec, int(statuses[-1]), "")
        if _WGET_RESOLVE.search(output):
            return _connection_failure(spec, "could not resolve host")
        if _WGET_REFUSED.search(output):
            return _connection_failure(spec, "failed to connect")
        if _WGET_TIMEOUT.search(output):
            raise DeadlineExceeded(f"wget timed out fetching {spec.target}")
        raise ParseError(f"unrecognized wget output (exit {raw.returncode})")
