"""Client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6123


@dataclass
class WmClientConfig:
    """Configuration for the IPC client.

    The port is the only option the server protocol cares about; the rest
    tune the local client.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # Seconds to wait for a reply. None waits forever.
    timeout: float | None = None

    # WebSocket keep-alive (passed to websockets.connect)
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0

    @property
    def url(self) -> str:
        """WebSocket URL of the IPC server."""
        return f"ws://{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> WmClientConfig:
        """Build a config from GLAZEWM_IPC_* environment variables."""
        config = cls()
        if host := os.getenv("GLAZEWM_IPC_HOST"):
            config.host = host
        if port := os.getenv("GLAZEWM_IPC_PORT"):
            try:
                config.port = int(port)
            except ValueError as e:
                raise ValueError(f"Invalid GLAZEWM_IPC_PORT: {port!r}") from e
        if timeout := os.getenv("GLAZEWM_IPC_TIMEOUT"):
            try:
                config.timeout = float(timeout)
            except ValueError as e:
                raise ValueError(f"Invalid GLAZEWM_IPC_TIMEOUT: {timeout!r}") from e
        return config
