"""Simple HTTP client for the grid key-value relay."""

import logging
from enum import Enum
from typing import Optional
from urllib.parse import quote

import httpx

from saviour.grid.exceptions import RemoteUnavailable
from saviour.grid.sync_config import GridConfig

logger = logging.getLogger(__name__)


class Delivery(str, Enum):
    """How much we know about a write after replace_blob returns."""

    CONFIRMED = "confirmed"  # primary path answered with a success status
    UNVERIFIED = "unverified"  # secondary path fired, outcome unknown


class GridStoreClient:
    """Client for the two operations the relay offers on the global node."""

    def __init__(
        self,
        base_url: str,
        token: str,
        node: str,
        timeout: float = 10.0,
        secondary_transport: bool = True,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize client.

        Args:
            base_url: Relay URL up to and including the ``/api/KeyVal`` prefix
            token: Application token
            node: Shared node name
            timeout: Request timeout in seconds
            secondary_transport: Whether a failed write retries via the URL path
            http_client: Pre-built httpx client (tests pass a TestClient here)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.node = node
        self.timeout = timeout
        self.secondary_transport = secondary_transport

        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(
        cls, config: GridConfig, http_client: Optional[httpx.Client] = None
    ) -> "GridStoreClient":
        """Build a client from a GridConfig."""
        return cls(
            base_url=config.base_url,
            token=config.token,
            node=config.node,
            timeout=config.timeout,
            secondary_transport=config.secondary_transport,
            http_client=http_client,
        )

    @property
    def read_url(self) -> str:
        return f"{self.base_url}/GetValue/{self.token}/{self.node}"

    @property
    def write_url(self) -> str:
        return f"{self.base_url}/UpdateValue/{self.token}/{self.node}"

    def fetch_blob(self) -> str:
        """Read the raw payload stored under the global node.

        The read always goes to the relay; intermediate caches are told not
        to answer it.

        Returns:
            Response body as text

        Raises:
            RemoteUnavailable: Transport error or non-success status
        """
        try:
            response = self.client.get(
                self.read_url,
                headers={"Cache-Control": "no-store, no-cache", "Pragma": "no-cache"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteUnavailable(f"Fetch from {self.node} failed: {e}") from e

        return response.text

    def replace_blob(self, payload: str) -> Delivery:
        """Overwrite the payload stored under the global node.

        If the primary POST fails and the secondary path is enabled, the
        payload is sent again embedded in the URL. That attempt is
        fire-and-forget: its result is not inspected and the write is
        reported as UNVERIFIED.

        Args:
            payload: Serialized snapshot

        Returns:
            Delivery.CONFIRMED or Delivery.UNVERIFIED

        Raises:
            RemoteUnavailable: Primary path failed and the secondary path is off
        """
        try:
            response = self.client.post(
                self.write_url,
                content=payload.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return Delivery.CONFIRMED
        except httpx.HTTPError as e:
            if not self.secondary_transport:
                raise RemoteUnavailable(f"Write to {self.node} failed: {e}") from e
            logger.warning(f"Primary write to {self.node} failed ({e}), using URL path")

        self._send_unverified(payload)
        return Delivery.UNVERIFIED

    def _send_unverified(self, payload: str) -> None:
        url = f"{self.write_url}/{quote(payload, safe='')}"
        try:
            self.client.post(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            # Outcome of this path is unobservable by contract
            logger.debug(f"Secondary write to {self.node} raised: {e}")

    def health_check(self, timeout: Optional[float] = None) -> bool:
        """Check whether the relay root answers.

        Args:
            timeout: Optional timeout override
        """
        root = self.base_url.rsplit("/api/", 1)[0] or self.base_url
        try:
            response = self.client.get(
                f"{root}/",
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed: {e}")
            return False
        return response.is_success

    def close(self):
        """Close the client."""
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
