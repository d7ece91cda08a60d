"""
Metrics for grid synchronization.

Counts pulls, confirmed and unverified writes, and local fallbacks through
statsd over UDP. Unverified writes are counted apart from confirmed ones so a
dashboard never mistakes a fire-and-forget write for a delivered one.
"""

import logging
import os
import socket
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

PULL_SUCCESS = "pull.success"
PULL_ERROR = "pull.error"
PULL_SKIPPED = "pull.skipped"
PULL_DURATION = "pull.duration"
PUSH_CONFIRMED = "push.confirmed"
PUSH_UNVERIFIED = "push.unverified"
UPDATE_FALLBACK = "update.fallback"
VIEW_SIZE = "view.cases"


@dataclass
class MetricsConfig:
    """Configuration for metrics collection."""

    host: str = "localhost"
    port: int = 8125
    prefix: str = "saviour.grid"
    enabled: bool = False

    @classmethod
    def from_env(cls) -> "MetricsConfig":
        """Create config from environment variables."""
        return cls(
            host=os.environ.get("STATSD_HOST", "localhost"),
            port=int(os.environ.get("STATSD_PORT", "8125")),
            prefix=os.environ.get("STATSD_PREFIX", "saviour.grid"),
            enabled=os.environ.get("STATSD_ENABLED", "false").lower() == "true",
        )


class StatsdClient:
    """
    Simple StatsD client for sending metrics via UDP.

    Failed sends are dropped so metrics never get in the way of a sync.
    """

    def __init__(self, config: Optional[MetricsConfig] = None):
        self.config = config or MetricsConfig.from_env()
        self._socket: Optional[socket.socket] = None
        self._lock = threading.Lock()

    def _get_socket(self) -> socket.socket:
        if self._socket is None:
            self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            self._socket.setblocking(False)
        return self._socket

    def _send(self, metric: str) -> None:
        if not self.config.enabled:
            return

        try:
            with self._lock:
                self._get_socket().sendto(
                    metric.encode("utf-8"),
                    (self.config.host, self.config.port),
                )
        except OSError as e:
            logger.debug(f"Failed to send metric: {e}")

    def _format_name(self, name: str) -> str:
        if self.config.prefix:
            return f"{self.config.prefix}.{name}"
        return name

    def incr(self, name: str, value: int = 1) -> None:
        """Increment a counter."""
        self._send(f"{self._format_name(name)}:{value}|c")

    def gauge(self, name: str, value: Union[int, float]) -> None:
        """Set a gauge value."""
        self._send(f"{self._format_name(name)}:{value}|g")

    def timing(self, name: str, value_ms: Union[int, float]) -> None:
        """Record a timing value in milliseconds."""
        self._send(f"{self._format_name(name)}:{value_ms}|ms")

    @contextmanager
    def timer(self, name: str):
        """
        Context manager for timing a block of code.

        Example:
            with client.timer(PULL_DURATION):
                engine.fetch_snapshot()
        """
        start = time.time()
        try:
            yield
        finally:
            self.timing(name, (time.time() - start) * 1000)

    def close(self) -> None:
        """Close the socket."""
        with self._lock:
            if self._socket:
                self._socket.close()
                self._socket = None


class NullMetricsClient:
    """No-op metrics client for when metrics are disabled."""

    def incr(self, name: str, value: int = 1) -> None:
        pass

    def gauge(self, name: str, value: Union[int, float]) -> None:
        pass

    def timing(self, name: str, value_ms: Union[int, float]) -> None:
        pass

    @contextmanager
    def timer(self, name: str):
        yield

    def close(self) -> None:
        pass


MetricsClient = Union[StatsdClient, NullMetricsClient]

_metrics_client: Optional[MetricsClient] = None
_metrics_lock = threading.Lock()


def get_metrics_client() -> MetricsClient:
    """
    Get the global metrics client.

    Returns a StatsdClient if metrics are enabled, otherwise a NullMetricsClient.
    """
    global _metrics_client

    with _metrics_lock:
        if _metrics_client is None:
            config = MetricsConfig.from_env()
            if config.enabled:
                _metrics_client = StatsdClient(config)
                logger.info(
                    f"Metrics enabled: {config.host}:{config.port} "
                    f"(prefix: {config.prefix})"
                )
            else:
                _metrics_client = NullMetricsClient()

    return _metrics_client


def configure_metrics(
    host: str = "localhost",
    port: int = 8125,
    prefix: str = "saviour.grid",
    enabled: bool = True,
) -> MetricsClient:
    """Replace the global metrics client."""
    global _metrics_client

    with _metrics_lock:
        if _metrics_client is not None:
            _metrics_client.close()

        if enabled:
            _metrics_client = StatsdClient(
                MetricsConfig(host=host, port=port, prefix=prefix, enabled=True)
            )
            logger.info(f"Metrics configured: {host}:{port} (prefix: {prefix})")
        else:
            _metrics_client = NullMetricsClient()
            logger.info("Metrics disabled")

    return _metrics_client
