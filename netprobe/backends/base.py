"""Capability interface shared by every probe backend."""

import shutil
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional

from netprobe.exceptions import AttemptCancelled
from netprobe.models.probe import Observation, ProbeKind, ProbeSpec
from netprobe.utils.platform_info import LINUX
from netprobe.utils.process import CommandOutput, run_command


class AttemptContext:
    """Per-attempt deadline and abort signal handed to a capability.

    The runner sets the abort flag when the attempt's deadline passes;
    the caller's cancel event (if any) aborts it too.
    """

    def __init__(
        self, timeout: float, cancel_event: Optional[threading.Event] = None
    ):
        self.timeout = timeout
        self._abort = threading.Event()
        self._cancel_event = cancel_event

    def abort(self) -> None:
        self._abort.set()

    def is_aborted(self) -> bool:
        if self._abort.is_set():
            return True
        return self._cancel_event is not None and self._cancel_event.is_set()

    def raise_if_aborted(self) -> None:
        if self.is_aborted():
            raise AttemptCancelled("attempt aborted")


class Capability(ABC):
    """A concrete mechanism able to execute probes of certain kinds.

    Subclasses set ``name`` and ``supported_kinds`` and implement
    ``execute`` (obtain raw output) and ``parse`` (normalize it).
    ``execute`` raises an InconclusiveAttempt subclass when the tool
    itself fails; ``parse`` raises ParseError for output it cannot map
    and returns an Observation for every definitive answer, success or
    failure.
    """

    #: Unique capability name (kebab-case)
    name: str = ""
    #: Probe kinds this capability can answer
    supported_kinds: frozenset[ProbeKind] = frozenset()

    def __init__(self, platform: str = LINUX):
        self.platform = platform

    def supports(self, kind: ProbeKind) -> bool:
        return kind in self.supported_kinds

    def is_present(self) -> bool:
        """Default presence check; library-backed capabilities are always present."""
        return True

    @abstractmethod
    def execute(self, spec: ProbeSpec, context: AttemptContext) -> Any:
        """Run the backend for one probe and return its raw output."""

    @abstractmethod
    def parse(self, spec: ProbeSpec, raw: Any) -> Observation:
        """Map raw backend output onto an Observation."""

    def __repr__(self) -> str:
        return f"<Capability {self.name!r} platform={self.platform!r}>"


class CommandCapability(Capability):
    """Capability backed by an external command-line tool."""

    #: Executable looked up on PATH by the presence check
    executable: str = ""

    def is_present(self) -> bool:
        return shutil.which(self.executable) is not None

    @abstractmethod
    def build_command(self, spec: ProbeSpec) -> list[str]:
        """Build argv for one probe."""

    def execute(self, spec: ProbeSpec, context: AttemptContext) -> CommandOutput:
        return run_command(
            self.build_command(spec),
            timeout=context.timeout,
            should_abort=context.is_aborted,
        )
