"""Free-port negotiation for the child's configuration file.

Every top-level key whose name contains "port" and whose value is a string of
comma-separated integers gets each port replaced by the first port, counting
up from the configured one, that a local TCP listener can bind. The result is
written next to the original as ``<stem>_new<ext>``.

Probing releases the port straight away, so another process may grab it
before the child binds. Negotiation is best-effort.
"""

import re
import socket
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from erigon_runner.errors import ConfigError, PortNegotiationError
from erigon_runner.logging import get_logger

log = get_logger(__name__)

MAX_PORT = 65535
DEFAULT_MAX_ATTEMPTS = 1000

_PORT_LIST = re.compile(r"^\s*\d+\s*(,\s*\d+\s*)*$")


def is_port_free(port: int, host: str = "") -> bool:
    """Try to bind and listen on a TCP port, releasing it immediately."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
            sock.listen(1)
        except OSError:
            return False
    return True


def is_port_key(key: Any) -> bool:
    return isinstance(key, str) and "port" in key


def parse_port_list(value: Any) -> list[int] | None:
    """Parse "30303, 30304" into [30303, 30304]; None if not a port list."""
    if not isinstance(value, str) or not _PORT_LIST.match(value):
        return None
    return [int(part) for part in value.split(",")]


def read_child_config(path: Path) -> dict[str, Any]:
    """Load the child's YAML configuration.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def extract_ports(config: dict[str, Any]) -> dict[str, list[int]]:
    """Find port-bearing keys and their declared ports, in document order."""
    ports = {}
    for key, value in config.items():
        if not is_port_key(key):
            continue
        port_list = parse_port_list(value)
        if port_list is None:
            log.debug("Skipping non port-list value", key=key)
            continue
        ports[key] = port_list
    return ports


def negotiated_path(path: Path) -> Path:
    """config.yaml -> config_new.yaml"""
    return path.with_name(f"{path.stem}_new{path.suffix}")


class PortNegotiator:
    """Finds free ports and writes the rewritten child configuration."""

    def __init__(
        self,
        host: str = "",
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        port_check: Callable[[int], bool] | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.host = host
        self.max_attempts = max_attempts
        self.port_check = port_check or (lambda port: is_port_free(port, self.host))
        self._lock = threading.Lock()

    def find_available_port(self, port: int) -> int:
        """Return the first free port at or above ``port``.

        Raises:
            PortNegotiationError: If max_attempts ports are busy or 65535 is passed
        """
        with self._lock:
            candidate = port
            for _ in range(self.max_attempts):
                if candidate > MAX_PORT:
                    break
                if self.port_check(candidate):
                    return candidate
                candidate += 1

        raise PortNegotiationError(
            f"no free port found from {port} ({candidate - port} ports tried)"
        )

    def negotiate(self, ports: dict[str, list[int]]) -> dict[str, list[int]]:
        """Map each key's declared ports to free ones, keeping order."""
        mapping = {}
        for key, port_list in ports.items():
            mapping[key] = [self.find_available_port(p) for p in port_list]
            if mapping[key] != port_list:
                log.info("Port moved", key=key, declared=port_list, negotiated=mapping[key])
        return mapping

    def rewrite_config(self, path: Path) -> tuple[Path, dict[str, list[int]]]:
        """Negotiate ports for a child config file and write the new copy.

        The original file is left untouched.

        Returns:
            Path of the new config file and the negotiated port mapping

        Raises:
            ConfigError: If the original cannot be read or parsed
            PortNegotiationError: If probing fails or the new file cannot be written
        """
        path = Path(path).absolute()
        log.info("Reading child config", path=str(path))
        config = read_child_config(path)

        mapping = self.negotiate(extract_ports(config))
        for key, port_list in mapping.items():
            config[key] = ", ".join(str(p) for p in port_list)

        new_path = negotiated_path(path)
        try:
            with open(new_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(config, f, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            if new_path.is_file():
                new_path.unlink()
            raise PortNegotiationError(f"failed to write new config file {new_path}: {e}") from e

        log.info("Wrote negotiated child config", path=str(new_path), ports=mapping)
        return new_path, mapping
