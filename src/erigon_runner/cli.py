"""CLI for erigon-runner.

Usage:
    erigon-runner run --config config.json --msg "[bali]" --repo ../cdk-erigon
    erigon-runner watch --config config.json --msg "[bali]" < node.log
    erigon-runner negotiate-ports --repo ../cdk-erigon --erigon-config hermezconfig-bali.yaml
    erigon-runner send "hello" --config config.json
"""

import shlex
from pathlib import Path

import click

from erigon_runner.alerter import WebhookClient
from erigon_runner.config import (
    DEFAULT_BUILD_COMMAND,
    DEFAULT_CHILD_COMMAND,
    ChildConfig,
    RunConfig,
    load_alert_config,
)
from erigon_runner.errors import ChildExitError, RunnerError
from erigon_runner.logging import configure_logging
from erigon_runner.metrics import start_metrics_server
from erigon_runner.ports import DEFAULT_MAX_ATTEMPTS, PortNegotiator
from erigon_runner.supervisor import build_alerter, run_supervised

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=Path("config.json"),
    show_default=True,
    help="Run configuration file (webhook, patterns, log file)",
)
msg_option = click.option("--msg", "msg_prefix", default="", help="Chat message prefix")
repo_option = click.option(
    "--repo",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Child working directory (the cdk-erigon checkout)",
)
erigon_config_option = click.option(
    "--erigon-config",
    type=click.Path(path_type=Path),
    default=Path("hermezconfig-bali.yaml"),
    show_default=True,
    help="Child configuration file, relative to --repo",
)
max_attempts_option = click.option(
    "--max-port-attempts",
    default=DEFAULT_MAX_ATTEMPTS,
    show_default=True,
    type=click.IntRange(min=1),
    help="Ports to try upwards from each configured port",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Run cdk-erigon with free ports and chat alerts on its logs."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = "DEBUG" if verbose else "INFO"


@main.command("run")
@config_option
@msg_option
@repo_option
@erigon_config_option
@click.option(
    "--binary",
    default=" ".join(DEFAULT_CHILD_COMMAND),
    show_default=True,
    help="Child command, run from --repo; --config=<file> is appended",
)
@click.option(
    "--build/--no-build",
    default=True,
    show_default=True,
    help="Build the child before running it",
)
@click.option(
    "--build-command",
    default=" ".join(DEFAULT_BUILD_COMMAND),
    show_default=True,
    help="Build command, run from --repo",
)
@max_attempts_option
@click.option("--webhook-timeout", default=10.0, show_default=True, help="Seconds per webhook call")
@click.option("--metrics-port", type=int, default=None, help="Serve Prometheus metrics here")
@click.pass_context
def run_cmd(
    ctx: click.Context,
    config_path: Path,
    msg_prefix: str,
    repo: Path,
    erigon_config: Path,
    binary: str,
    build: bool,
    build_command: str,
    max_port_attempts: int,
    webhook_timeout: float,
    metrics_port: int | None,
) -> None:
    """Negotiate ports, start the child and alert on its output.

    Exits with the child's status if it fails.
    """
    configure_logging(ctx.obj["log_level"], run_name=msg_prefix or None)

    try:
        config = RunConfig(
            alerts=load_alert_config(config_path),
            child=ChildConfig(
                repo=repo,
                config_file=erigon_config,
                command=tuple(shlex.split(binary)),
                build_command=tuple(shlex.split(build_command)) if build else None,
            ),
            msg_prefix=msg_prefix,
            max_port_attempts=max_port_attempts,
            webhook_timeout=webhook_timeout,
        )

        if metrics_port is not None:
            start_metrics_server(port=metrics_port)

        run_supervised(config, echo=click.echo)
    except ChildExitError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(e.returncode if e.returncode > 0 else 1) from e
    except RunnerError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e


@main.command("watch")
@config_option
@msg_option
@click.pass_context
def watch_cmd(ctx: click.Context, config_path: Path, msg_prefix: str) -> None:
    """Alert on lines read from stdin instead of a child process."""
    configure_logging(ctx.obj["log_level"], run_name=msg_prefix or None)

    try:
        alerts = load_alert_config(config_path)
    except RunnerError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e

    config = RunConfig(alerts=alerts, msg_prefix=msg_prefix)
    alerter = build_alerter(config, echo=click.echo)
    try:
        alerter.scan(click.get_text_stream("stdin"))
    finally:
        alerter.webhook.close()


@main.command("negotiate-ports")
@repo_option
@erigon_config_option
@max_attempts_option
@click.pass_context
def negotiate_ports_cmd(
    ctx: click.Context, repo: Path, erigon_config: Path, max_port_attempts: int
) -> None:
    """Write the child config with free ports and print the mapping.

    The new file is left in place.
    """
    configure_logging(ctx.obj["log_level"])

    negotiator = PortNegotiator(max_attempts=max_port_attempts)
    try:
        new_path, mapping = negotiator.rewrite_config(repo / erigon_config)
    except RunnerError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e

    for key, ports in mapping.items():
        click.echo(f"{key}: {', '.join(str(p) for p in ports)}")
    click.echo(f"Wrote {new_path}")


@main.command("send")
@click.argument("message")
@config_option
@click.pass_context
def send_cmd(ctx: click.Context, message: str, config_path: Path) -> None:
    """Send a custom message to the configured webhook."""
    configure_logging(ctx.obj["log_level"])

    try:
        alerts = load_alert_config(config_path)
    except RunnerError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e

    if not alerts.webhook_url:
        click.echo("Error: no webhookURL configured", err=True)
        raise SystemExit(1)

    client = WebhookClient(alerts.webhook_url)
    try:
        sent = client.send(message)
    finally:
        client.close()

    if sent:
        click.echo("Message sent!")
    else:
        click.echo("Failed to send message")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
