"""Report rendering: JSON, YAML and plain text.

Converts outcomes, facts and diagnostic reports into formatted output
for the terminal or for other tools.
"""

import json
from typing import Any, List, Union

import yaml

from netprobe.models.outcome import AggregateOutcome
from netprobe.models.probe import ProbeResult
from netprobe.models.report import DnsReport, InternetReport, RouterReport, TopologyReport
from netprobe.models.topology import TopologyFact


Renderable = Union[
    AggregateOutcome,
    ProbeResult,
    TopologyFact,
    DnsReport,
    InternetReport,
    RouterReport,
    TopologyReport,
]

OK = "✓"
FAIL = "✗"


class OutcomeReporter:
    """Generates formatted reports from outcome and report models."""

    @staticmethod
    def generate_json_report(item: Renderable) -> str:
        """Generate JSON-formatted report.

        Args:
            item: Any model with a to_json() method.

        Returns:
            str: Pretty-printed JSON string with sorted keys for determinism.
        """
        return json.dumps(item.to_json(), indent=2, sort_keys=True)

    @staticmethod
    def generate_yaml_report(item: Renderable) -> str:
        """Generate YAML-formatted report, keys in model order."""
        return yaml.safe_dump(
            item.to_json(), default_flow_style=False, sort_keys=False, allow_unicode=True
        )

    @staticmethod
    def generate_text_report(item: Renderable) -> str:
        """Generate a plain-text report for terminals.

        Args:
            item: Outcome, result, fact or diagnostic report.

        Returns:
            str: Human-readable lines, newline terminated.

        Raises:
            TypeError: If the item type has no text rendering.
        """
        if isinstance(item, AggregateOutcome):
            lines = _outcome_lines(item)
        elif isinstance(item, ProbeResult):
            lines = [_result_line(item)]
        elif isinstance(item, TopologyFact):
            lines = [_fact_line(item)]
        elif isinstance(item, DnsReport):
            lines = _dns_lines(item)
        elif isinstance(item, InternetReport):
            lines = _internet_lines(item)
        elif isinstance(item, RouterReport):
            lines = _router_lines(item)
        elif isinstance(item, TopologyReport):
            lines = ["Network topology:"] + [f"  {_fact_line(f)}" for f in item.facts]
        else:
            raise TypeError(f"No text rendering for {type(item).__name__}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def render(item: Renderable, output_format: str) -> str:
        """Render in "text", "json" or "yaml".

        Raises:
            ValueError: If the format is unknown.
        """
        if output_format == "json":
            return OutcomeReporter.generate_json_report(item)
        if output_format == "yaml":
            return OutcomeReporter.generate_yaml_report(item)
        if output_format == "text":
            return OutcomeReporter.generate_text_report(item)
        raise ValueError(f"Unknown output format: {output_format}")


def _mark(success: bool) -> str:
    return OK if success else FAIL


def _result_line(result: ProbeResult) -> str:
    line = f"{_mark(result.success)} {result.spec.describe()}"
    if result.detail:
        line += f" - {result.detail}"
    if result.latency_ms is not None:
        line += f" ({result.latency_ms}ms"
        line += f", {result.capability})" if result.capability else ")"
    elif result.error_kind is not None:
        line += f" [{result.error_kind.value}]"
    return line


def _outcome_lines(outcome: AggregateOutcome, indent: str = "") -> List[str]:
    header = f"{outcome.label or 'checks'}: {outcome.classification.value}"
    header += f" ({outcome.success_count}/{outcome.total}, {outcome.policy.describe()})"
    if outcome.average_latency_ms is not None:
        header += f", avg {outcome.average_latency_ms}ms"
    if outcome.cancelled:
        header += ", cancelled"
    return [indent + header] + [f"{indent}  {_result_line(r)}" for r in outcome.results]


def _value_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(value)
    return str(value)


def _fact_line(fact: TopologyFact) -> str:
    line = f"{_mark(fact.is_known)} {fact.name}: {_value_text(fact.value)}"
    if fact.source_capability:
        line += f" (via {fact.source_capability})"
    return line


def _listing_lines(fact: TopologyFact, indent: str) -> List[str]:
    """A list fact with one item per line."""
    if not fact.is_known:
        return [indent + _fact_line(fact)]
    header = f"{indent}{OK} {fact.name} (via {fact.source_capability}):"
    return [header] + [f"{indent}    {item}" for item in fact.value]


def _dns_lines(report: DnsReport) -> List[str]:
    lines = [f"DNS report for {report.domain}: {report.classification.value}"]
    lines.append(f"  {_fact_line(report.dns_servers)}")
    if report.current_servers is not None:
        lines.extend(_outcome_lines(report.current_servers, "  "))
    lines.extend(_outcome_lines(report.public_servers, "  "))
    for record_type, result in report.records.items():
        records = result.payload.get("records") or []
        text = ", ".join(records) if records else result.detail
        lines.append(f"  {_mark(result.success)} {record_type}: {text}")
    if report.cancelled:
        lines.append("  (cancelled)")
    return lines


def _internet_lines(report: InternetReport) -> List[str]:
    lines = [f"Internet connectivity: {report.classification.value}"]
    for outcome in report.sections.values():
        lines.extend(_outcome_lines(outcome, "  "))
    if report.public_address is not None:
        lines.append(f"  {_fact_line(report.public_address)}")
    if report.cancelled:
        lines.append("  (cancelled)")
    return lines


def _router_lines(report: RouterReport) -> List[str]:
    lines = [f"Router status: {report.classification.value}"]
    for listing in (report.interfaces, report.routes):
        if listing is not None:
            lines.extend(_listing_lines(listing, "  "))
    lines.append(f"  {_fact_line(report.gateway)}")
    if report.reachability is not None:
        lines.append(f"  {_result_line(report.reachability)}")
    if report.ports is not None:
        open_ports = ", ".join(
            f"{r.payload['port']} ({r.payload.get('service') or 'unknown'})"
            for r in report.ports.successes()
        )
        lines.append(f"  Open ports: {open_ports or 'none'}")
    if report.web_interface_url:
        lines.append(f"  Web interface: {report.web_interface_url}")
    if report.web_title:
        lines.append(f"  Web interface title: {report.web_title}")
    if report.mac_address is not None:
        lines.append(f"  {_fact_line(report.mac_address)}")
    if report.vendor:
        lines.append(f"  Vendor: {report.vendor}")
    if report.cancelled:
        lines.append("  (cancelled)")
    return lines
