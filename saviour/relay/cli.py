"""Relay entrypoint."""

import cyclopts
import uvicorn

from .app import app as fastapi_app

relay_app = cyclopts.App(name="relay", help="Run the grid key-value relay")


@relay_app.default
def serve(
    bind_host: str = "127.0.0.1",
    bind_port: int = 3000,
    log_level: str = "info",
):
    """Start the grid relay.

    Values are held in memory only, so restarting the relay empties the grid.

    Example:
        saviour relay --bind-port 3000
    """
    print(f"Starting grid relay on {bind_host}:{bind_port}")
    print("  Endpoint: /api/KeyVal")
    uvicorn.run(
        fastapi_app,
        host=bind_host,
        port=bind_port,
        log_level=log_level,
    )
