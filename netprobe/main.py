"""Main entry point for netprobe: the `netprobe` command line."""

import json
import logging
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Optional

import click
import yaml

from netprobe.backends.defaults import build_default_registry
from netprobe.config import Config
from netprobe.models.outcome import AggregationPolicy, Classification
from netprobe.models.probe import ProbeKind, ProbeResult, ProbeSpec
from netprobe.services.diagnostics import NetworkDiagnostics
from netprobe.services.logger import setup_logging
from netprobe.services.reporter import OutcomeReporter


logger = logging.getLogger(__name__)

EXIT_CODES = {
    Classification.FULL_SUCCESS: 0,
    Classification.PARTIAL: 2,
    Classification.FAILURE: 1,
}

CHECK_KINDS = {
    "reachability": ProbeKind.REACHABILITY,
    "dns": ProbeKind.NAME_RESOLUTION,
    "port": ProbeKind.PORT_OPEN,
    "http": ProbeKind.HTTP_FETCH,
}

Workflow = Callable[[threading.Event], Any]


def run_cancellable(work: Workflow, cancel_event: threading.Event) -> Any:
    """Run a workflow in a worker thread so Ctrl-C can cancel it cleanly.

    On KeyboardInterrupt the cancel event is set and the workflow's partial
    result is still returned.

    Args:
        work: Callable taking the cancel event.
        cancel_event: Event shared with every probe of the workflow.

    Returns:
        Any: Whatever the workflow returns.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="workflow")
    try:
        future = executor.submit(work, cancel_event)
        while True:
            try:
                done, _ = wait([future], timeout=0.1)
                if done:
                    return future.result()
            except KeyboardInterrupt:
                logger.warning("Interrupted, cancelling outstanding probes")
                cancel_event.set()
    finally:
        executor.shutdown(wait=False)


def exit_code_for(item: Any) -> int:
    if isinstance(item, ProbeResult):
        return 0 if item.success else 1
    return EXIT_CODES[item.classification]


def _execute(ctx: click.Context, work: Workflow) -> None:
    """Run a workflow, print its report and exit with its verdict."""
    start_time = time.time()
    try:
        result = run_cancellable(work, threading.Event())
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    click.echo(OutcomeReporter.render(result, ctx.obj["format"]), nl=False)
    logger.info(f"Completed in {time.time() - start_time:.2f} seconds")
    ctx.exit(exit_code_for(result))


def _diagnostics(ctx: click.Context) -> NetworkDiagnostics:
    if "diagnostics" not in ctx.obj:
        ctx.obj["diagnostics"] = NetworkDiagnostics(ctx.obj["config"])
    return ctx.obj["diagnostics"]


@click.group()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json", "yaml"]),
    default="text",
    show_default=True,
    help="Report format",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging on stderr")
@click.pass_context
def cli(ctx: click.Context, output_format: str, verbose: bool) -> None:
    """netprobe - network diagnostics for home and IoT networks."""
    try:
        config = Config.from_env()
    except ValueError as e:
        setup_logging(verbose)
        logger.error(f"Invalid configuration: {e}")
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(1)

    setup_logging(verbose or config.verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["format"] = output_format


@cli.command()
@click.argument("domain", default="google.com")
@click.option("--server", "-s", multiple=True, help="DNS server to test (repeatable)")
@click.pass_context
def dns(ctx: click.Context, domain: str, server: tuple[str, ...]) -> None:
    """Test DNS resolution of DOMAIN."""
    diagnostics = _diagnostics(ctx)
    if server:
        _execute(
            ctx,
            lambda event: diagnostics.check_dns(domain, list(server), cancel_event=event),
        )
    else:
        _execute(ctx, lambda event: diagnostics.dns_report(domain, event))


@cli.command()
@click.argument("host", default="8.8.8.8")
@click.option("--count", "-c", type=click.IntRange(1, 100), default=None, help="Echo requests")
@click.pass_context
def ping(ctx: click.Context, host: str, count: Optional[int]) -> None:
    """Test reachability of HOST."""
    diagnostics = _diagnostics(ctx)
    _execute(ctx, lambda event: diagnostics.ping(host, count, event))


@cli.command()
@click.option("--quick", "-q", is_flag=True, help="Skip the latency section")
@click.pass_context
def internet(ctx: click.Context, quick: bool) -> None:
    """Test internet connectivity."""
    diagnostics = _diagnostics(ctx)
    _execute(ctx, lambda event: diagnostics.internet_report(quick, event))


@cli.command()
@click.argument("gateway", required=False)
@click.pass_context
def router(ctx: click.Context, gateway: Optional[str]) -> None:
    """Check the router (default gateway unless GATEWAY is given)."""
    diagnostics = _diagnostics(ctx)
    _execute(ctx, lambda event: diagnostics.router_report(gateway, event))


@cli.command()
@click.pass_context
def topology(ctx: click.Context) -> None:
    """Show gateway, local network, local address and DNS servers."""
    diagnostics = _diagnostics(ctx)
    _execute(ctx, diagnostics.topology_report)


@cli.command()
@click.argument("kind", type=click.Choice(sorted(CHECK_KINDS)))
@click.argument("targets", nargs=-1, required=True)
@click.option(
    "--policy",
    type=click.Choice(["all", "any", "at-least"]),
    default="all",
    show_default=True,
)
@click.option("--k", "k", type=click.IntRange(min=1), default=None, help="Threshold for at-least")
@click.option("--record-type", default="A", show_default=True, help="DNS record type")
@click.option("--server", default=None, help="DNS server")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="TCP port")
@click.pass_context
def check(
    ctx: click.Context,
    kind: str,
    targets: tuple[str, ...],
    policy: str,
    k: Optional[int],
    record_type: str,
    server: Optional[str],
    port: Optional[int],
) -> None:
    """Run one KIND of probe against every TARGET and classify the outcome."""
    if policy == "at-least":
        if k is None:
            raise click.UsageError("--policy at-least requires --k")
        aggregation = AggregationPolicy.at_least(k)
    elif k is not None:
        raise click.UsageError("--k is only valid with --policy at-least")
    elif policy == "any":
        aggregation = AggregationPolicy.any()
    else:
        aggregation = AggregationPolicy.all()

    probe_kind = CHECK_KINDS[kind]
    if probe_kind == ProbeKind.PORT_OPEN and port is None:
        raise click.UsageError("port checks require --port")

    config = ctx.obj["config"]
    diagnostics = _diagnostics(ctx)
    specs = []
    for target in targets:
        if probe_kind == ProbeKind.REACHABILITY:
            specs.append(diagnostics.ping_spec(target, 1))
            continue
        parameters: dict[str, Any] = {}
        if probe_kind == ProbeKind.NAME_RESOLUTION:
            parameters = {"record_type": record_type, "server": server}
        elif probe_kind == ProbeKind.PORT_OPEN:
            parameters = {"port": port}
        else:
            parameters = {"user_agent": config.user_agent}
        timeout = config.http_timeout if probe_kind == ProbeKind.HTTP_FETCH else config.timeout
        specs.append(ProbeSpec(probe_kind, target, parameters, timeout))

    _execute(
        ctx,
        lambda event: diagnostics.aggregator.aggregate(
            specs, aggregation, event, label=f"check:{kind}"
        ),
    )


@cli.command()
@click.pass_context
def backends(ctx: click.Context) -> None:
    """List probe backends and whether they are available on this host."""
    described = build_default_registry().describe()
    output_format = ctx.obj["format"]
    if output_format == "text":
        for name, entry in described.items():
            mark = "✓" if entry["available"] else "✗"
            click.echo(f"{mark} {name}: {', '.join(entry['kinds'])}")
        return

    if output_format == "json":
        click.echo(json.dumps(described, indent=2, sort_keys=True))
    else:
        click.echo(yaml.safe_dump(described, default_flow_style=False), nl=False)


def main() -> int:
    """Console entry point.

    Returns:
        int: Exit code (0 full success, 2 partial, 1 failure or fatal error).
    """
    try:
        return cli.main(standalone_mode=False) or 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        return 1


if __name__ == "__main__":
    sys.exit(main())
