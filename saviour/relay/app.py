"""FastAPI application for the grid relay.

A bare key-value store with the two endpoints grid clients rely on. It keeps
no versions and offers no conditional writes; every write replaces the value.
"""

import logging
import os
from dataclasses import dataclass

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from .storage import NodeStore


@dataclass
class RelaySettings:
    """Settings for the relay process."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Create settings from environment variables."""
        return cls(log_level=os.environ.get("SAVIOUR_RELAY_LOG_LEVEL", "INFO").upper())


settings = RelaySettings.from_env()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Saviour Grid Relay",
    description="Single-node key-value relay for the emergency case grid",
    version="0.1.0",
)

storage = NodeStore()


def get_storage() -> NodeStore:
    """Dependency returning the process-wide node store."""
    return storage


def _store(store: NodeStore, token: str, node: str, value: str) -> PlainTextResponse:
    if not node or not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="INVALID_DATA"
        )
    store.write(token, node, value)
    return PlainTextResponse("UPDATE_OK")


@app.get("/", response_class=PlainTextResponse, tags=["health"])
async def health_check():
    """Liveness check."""
    return "SAVIOUR NODE ACTIVE"


@app.get("/api/KeyVal/GetValue/{token}/{node}", tags=["keyval"])
async def get_value(token: str, node: str, store: NodeStore = Depends(get_storage)):
    """
    Read the value stored under a node.

    The stored text is returned JSON-encoded, so clients receive it wrapped
    in a JSON string; an unwritten node returns ``null``.
    """
    return JSONResponse(content=store.read(token, node))


@app.post("/api/KeyVal/UpdateValue/{token}/{node}", tags=["keyval"])
async def update_value(
    token: str,
    node: str,
    request: Request,
    store: NodeStore = Depends(get_storage),
):
    """Replace the value stored under a node with the request body."""
    body = await request.body()
    return _store(store, token, node, body.decode("utf-8", errors="replace"))


@app.post("/api/KeyVal/UpdateValue/{token}/{node}/{data:path}", tags=["keyval"])
async def update_value_in_path(
    token: str,
    node: str,
    data: str,
    store: NodeStore = Depends(get_storage),
):
    """
    Replace the value stored under a node with a URL-embedded payload.

    Used by clients whose primary write path is blocked. The path is decoded
    once by the router, which yields the original payload text.
    """
    return _store(store, token, node, data)
