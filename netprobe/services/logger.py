"""Structured JSON logging for probe runs."""

import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from netprobe.models.outcome import AggregateOutcome
from netprobe.models.probe import ProbeResult
from netprobe.models.topology import TopologyFact


# Run ID for correlating every log entry of one invocation
RUN_ID = str(uuid.uuid4())


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter that adds run_id and standardized fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record.

        Args:
            log_record: The log record to modify.
            record: The original logging.LogRecord.
            message_dict: Additional fields from the logging call.
        """
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["run_id"] = RUN_ID
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure structured JSON logging on stderr.

    Reports go to stdout, so logs stay on stderr.

    Args:
        verbose: Log at DEBUG instead of WARNING.

    Returns:
        logging.Logger: Configured root logger.
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    json_handler = logging.StreamHandler(sys.stderr)
    formatter = CustomJsonFormatter("%(message)s", timestamp=True)
    json_handler.setFormatter(formatter)
    logger.addHandler(json_handler)

    return logger


def log_probe_result(result: ProbeResult) -> None:
    """Log structured per-probe result.

    Args:
        result: Finished probe result.
    """
    logger = logging.getLogger(__name__)
    logger.info(
        "Probe completed",
        extra={
            "kind": result.spec.kind.value,
            "target": result.spec.target,
            "success": result.success,
            "error_kind": result.error_kind.value if result.error_kind else None,
            "capability": result.capability,
            "latency_ms": result.latency_ms,
            "attempts": [a.to_json() for a in result.attempts],
        },
    )


def log_aggregate_summary(outcome: AggregateOutcome, duration_sec: float) -> None:
    """Log aggregation summary.

    Args:
        outcome: Classified aggregate outcome.
        duration_sec: Wall-clock time of the aggregation.
    """
    logger = logging.getLogger(__name__)
    log = logger.warning if outcome.cancelled else logger.info
    log(
        "Aggregation completed",
        extra={
            "label": outcome.label,
            "policy": outcome.policy.describe(),
            "classification": outcome.classification.value,
            "success_count": outcome.success_count,
            "total": outcome.total,
            "cancelled": outcome.cancelled,
            "duration_sec": round(duration_sec, 3),
        },
    )


def log_topology_fact(fact: TopologyFact) -> None:
    """Log a reconciled topology fact, at WARNING when it stayed unknown.

    Args:
        fact: Reconciled fact.
    """
    logger = logging.getLogger(__name__)
    log = logger.info if fact.is_known else logger.warning
    log(
        "Topology fact resolved",
        extra={
            "fact": fact.name,
            "value": fact.value,
            "source_capability": fact.source_capability,
            "candidate_count": len(fact.candidates),
        },
    )
