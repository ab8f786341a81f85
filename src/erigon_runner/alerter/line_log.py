"""Append-only file log of every child output line."""

from pathlib import Path

import structlog

from erigon_runner.errors import FileLogError

log = structlog.get_logger()


class LineLogger:
    """Appends each line to a file, optionally prefixed.

    The file is reopened for every line, so rotation or deletion by another
    process is picked up on the next write.
    """

    def __init__(self, path: Path | str, prefix: str = ""):
        self.path = Path(path)
        self.prefix = prefix

    def format(self, line: str) -> str:
        if self.prefix:
            return f"{self.prefix} {line}\n"
        return f"{line}\n"

    def _write(self, line: str) -> None:
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(self.format(line))
        except OSError as e:
            raise FileLogError(f"cannot append to {self.path}: {e}") from e

    def append(self, line: str) -> bool:
        """Append a line. Errors are logged and otherwise ignored."""
        try:
            self._write(line)
        except FileLogError as e:
            log.error("Line log write failed", error=str(e))
            return False
        return True
