"""Error types raised by the runner."""


class RunnerError(Exception):
    """Base class for runner errors."""

    pass


class ConfigError(RunnerError):
    """Raised when the run or child configuration cannot be read or parsed."""

    pass


class PortNegotiationError(RunnerError):
    """Raised when a free port cannot be found or the new config cannot be written."""

    pass


class BuildError(RunnerError):
    """Raised when the pre-run build command fails."""

    pass


class SpawnError(RunnerError):
    """Raised when the child process cannot be started."""

    pass


class StreamReadError(RunnerError):
    """Raised when reading child output fails."""

    pass


class DispatchError(RunnerError):
    """Raised when a webhook message is not delivered."""

    pass


class FileLogError(RunnerError):
    """Raised when the line log cannot be opened or written."""

    pass


class ChildExitError(RunnerError):
    """Raised when the child exits with a non-zero status."""

    def __init__(self, returncode: int):
        super().__init__(f"child exited with status {returncode}")
        self.returncode = returncode
