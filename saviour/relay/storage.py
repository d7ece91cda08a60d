"""In-memory node storage for the grid relay."""

import json
import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class NodeStore:
    """Holds one text value per (token, node).

    Values live only as long as the process; a restart wipes the grid.
    """

    def __init__(self):
        self._values: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def read(self, token: str, node: str) -> Optional[str]:
        """Return the stored value, or None if the node was never written."""
        with self._lock:
            return self._values.get((token, node))

    def write(self, token: str, node: str, value: str) -> int:
        """Replace the stored value.

        Returns:
            Number of cases in the written snapshot (0 if it cannot be parsed)
        """
        with self._lock:
            self._values[(token, node)] = value

        count = self._count_cases(value)
        logger.info(f"Node {node} updated, {count} cases on grid")
        return count

    def clear(self) -> None:
        """Drop every stored value."""
        with self._lock:
            self._values.clear()

    @staticmethod
    def _count_cases(value: str) -> int:
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return 0
        if isinstance(parsed, dict) and isinstance(parsed.get("p"), list):
            return len(parsed["p"])
        return 0
