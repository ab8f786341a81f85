"""Child process supervision: negotiate ports, launch, scan output, clean up."""

import queue
import subprocess
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import IO

from erigon_runner.alerter import AlertManager, LineLogger, LogAlerter, WebhookClient
from erigon_runner.config import RunConfig
from erigon_runner.errors import (
    BuildError,
    ChildExitError,
    RunnerError,
    SpawnError,
    StreamReadError,
)
from erigon_runner.logging import get_logger
from erigon_runner.metrics import CHILD_EXITS, RUN_HEALTH, RunHealth
from erigon_runner.ports import PortNegotiator

log = get_logger(__name__)

# Marks the end of one output stream on the line queue
_EOF = object()


def build_alerter(
    config: RunConfig,
    echo: Callable[[str], None] | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> LogAlerter:
    """Wire up the alert pipeline described by a run config."""
    alerts = config.alerts
    if not alerts.webhook_url:
        log.warning("No webhook URL configured, alerts will fail to deliver")
    return LogAlerter(
        rules=config.rules,
        alert_manager=AlertManager(
            default_cooldown=alerts.default_cooldown,
            pattern_cooldowns=alerts.pattern_cooldowns(),
            clock=clock,
        ),
        webhook=WebhookClient(alerts.webhook_url, timeout=config.webhook_timeout),
        line_logger=LineLogger(alerts.log_file, config.msg_prefix) if alerts.log_file else None,
        msg_prefix=config.msg_prefix,
        echo=echo,
    )


class ProcessSupervisor:
    """Owns one run of the child process.

    stdout and stderr are read by two threads into a single queue. Lines from
    one stream stay in order; the interleaving between streams is whatever
    order the readers happened to get them in.
    """

    def __init__(
        self,
        config: RunConfig,
        alerter: LogAlerter,
        negotiator: PortNegotiator | None = None,
        health: RunHealth = RUN_HEALTH,
    ):
        if config.child is None:
            raise ValueError("RunConfig has no child to supervise")
        self.config = config
        self.alerter = alerter
        self.negotiator = negotiator or PortNegotiator(max_attempts=config.max_port_attempts)
        self.health = health

    def run(self) -> None:
        """Run the child to completion.

        The negotiated config file is removed however the run ends.

        Raises:
            ConfigError: Child config unreadable
            PortNegotiationError: No free port or new config not writable
            BuildError: Build command failed
            SpawnError: Child could not be started
            ChildExitError: Child exited non-zero
        """
        try:
            self._run()
        except RunnerError as e:
            returncode = e.returncode if isinstance(e, ChildExitError) else None
            self.health.update("failed", returncode=returncode, error=str(e))
            raise

    def _run(self) -> None:
        child = self.config.child
        self.health.update("negotiating")
        new_config, _ = self.negotiator.rewrite_config(child.config_path)
        try:
            if child.build_command:
                self.health.update("building")
                self._build()
            self._run_child(new_config)
        finally:
            self._remove(new_config)

    def _build(self) -> None:
        child = self.config.child
        log.info("Building child", command=list(child.build_command), cwd=str(child.repo))
        try:
            result = subprocess.run(
                list(child.build_command),
                cwd=child.repo,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise BuildError(f"cannot run build command: {e}") from e

        if result.returncode != 0:
            log.error("Build output", stderr=result.stderr[-2000:])
            raise BuildError(f"build failed with status {result.returncode}")

    def _spawn(self, config_path: Path) -> subprocess.Popen:
        child = self.config.child
        args = [*child.command, f"--config={config_path}"]
        log.info("Starting child", args=args, cwd=str(child.repo))
        try:
            return subprocess.Popen(
                args,
                cwd=child.repo,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise SpawnError(f"cannot start {args[0]}: {e}") from e

    def _run_child(self, config_path: Path) -> None:
        with self._spawn(config_path) as proc:
            self.health.update("running", pid=proc.pid)
            try:
                self._scan(proc)
                returncode = proc.wait()
            except KeyboardInterrupt:
                log.warning("Interrupted, stopping child", pid=proc.pid)
                proc.terminate()
                self.health.update("exited", returncode=proc.wait())
                raise

        if returncode != 0:
            CHILD_EXITS.labels(status="error").inc()
            raise ChildExitError(returncode)

        CHILD_EXITS.labels(status="ok").inc()
        self.health.update("exited", returncode=0)
        log.info("Child exited cleanly")

    def _scan(self, proc: subprocess.Popen) -> None:
        """Feed merged child output through the alerter until both streams close."""
        lines: queue.Queue = queue.Queue()
        readers = [
            threading.Thread(
                target=_pump, args=(proc.stdout, "stdout", lines), name="stdout", daemon=True
            ),
            threading.Thread(
                target=_pump, args=(proc.stderr, "stderr", lines), name="stderr", daemon=True
            ),
        ]
        for reader in readers:
            reader.start()

        open_streams = len(readers)
        while open_streams:
            stream, item = lines.get()
            if item is _EOF:
                open_streams -= 1
            elif isinstance(item, StreamReadError):
                log.error("Stopped reading child output", stream=stream, error=str(item))
                return
            else:
                self.alerter.process_line(item, stream=stream)

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
            log.debug("Removed negotiated config", path=str(path))
        except OSError as e:
            log.error("Failed to remove negotiated config", path=str(path), error=str(e))


def _pump(stream: IO[str], name: str, lines: queue.Queue) -> None:
    try:
        for line in stream:
            lines.put((name, line.rstrip("\r\n")))
    except (OSError, ValueError) as e:
        lines.put((name, StreamReadError(f"reading child {name} failed: {e}")))
    finally:
        lines.put((name, _EOF))


def run_supervised(
    config: RunConfig,
    echo: Callable[[str], None] | None = None,
) -> None:
    """Run the child described by ``config`` with alerting on its output."""
    alerter = build_alerter(config, echo=echo)
    try:
        ProcessSupervisor(config, alerter).run()
    finally:
        alerter.webhook.close()
