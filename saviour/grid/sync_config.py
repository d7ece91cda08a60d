"""Configuration for grid sync engines.

This module provides the GridConfig dataclass that encapsulates everything a
client needs to reach the shared node: where the relay lives, which token and
node identify the single global room, and how often to poll it.
"""

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://keyvalue.immanuel.co/api/KeyVal"
DEFAULT_TOKEN = "SAVIOUR_GLOBAL_V1"
DEFAULT_NODE = "SAVIOUR_EMERGENCY_GRID"


@dataclass
class GridConfig:
    """Configuration for a grid client.

    There is exactly one shared node per deployment, so ``token`` and ``node``
    are constants rather than per-user values.
    """

    base_url: str = DEFAULT_BASE_URL
    token: str = DEFAULT_TOKEN
    node: str = DEFAULT_NODE
    poll_interval: float = 7.0  # seconds between background pulls
    timeout: float = 10.0  # per-request transport timeout in seconds
    secondary_transport: bool = True  # URL-embedded fallback for writes

    @classmethod
    def from_env(cls) -> "GridConfig":
        """Create config from environment variables."""
        return cls(
            base_url=os.environ.get("SAVIOUR_GRID_URL", DEFAULT_BASE_URL),
            token=os.environ.get("SAVIOUR_GRID_TOKEN", DEFAULT_TOKEN),
            node=os.environ.get("SAVIOUR_GRID_NODE", DEFAULT_NODE),
            poll_interval=float(os.environ.get("SAVIOUR_POLL_INTERVAL", "7")),
            timeout=float(os.environ.get("SAVIOUR_HTTP_TIMEOUT", "10")),
            secondary_transport=os.environ.get(
                "SAVIOUR_SECONDARY_TRANSPORT", "true"
            ).lower()
            == "true",
        )
