"""Attempt-level signals raised by capabilities and caught by the probe runner.

None of these ever escape ProbeRunner.run(); they are turned into
AttemptRecord entries and, when every attempt ends this way, into a
ProbeResult with error_kind ALL_BACKENDS_INCONCLUSIVE.
"""


class InconclusiveAttempt(Exception):
    """An attempt failed for reasons unrelated to the network fact probed."""

    status = "inconclusive"


class ParseError(InconclusiveAttempt):
    """Backend output could not be mapped onto a result."""

    status = "parse_error"


class DeadlineExceeded(InconclusiveAttempt):
    """The attempt did not finish within the probe timeout."""

    status = "deadline_exceeded"


class BackendProcessError(InconclusiveAttempt):
    """The backend tool could not be started or crashed."""

    status = "process_error"


class AttemptCancelled(InconclusiveAttempt):
    """The caller cancelled the operation while the attempt was running."""

    status = "cancelled"
