import logging
import os
from typing import Annotated

import cyclopts
from cyclopts import App
from dotenv import load_dotenv
from rich.console import Console

from saviour.grid.cli import grid_app
from saviour.relay.cli import relay_app

app = App(name="saviour", help="Emergency grid coordination tools")
app.command(grid_app, name="grid")
app.command(relay_app, name="relay")


@app.command
def advise(
    role: Annotated[str, cyclopts.Parameter(help="Who is asking (patient, police, hospital)")],
    prompt: Annotated[str, cyclopts.Parameter(help="Situation to get advice on")],
):
    """Ask for quick triage advice.

    Example:
        saviour advise patient "Cardiac Distress"
    """
    from saviour.advisor import TacticalAdvisor

    Console().print(TacticalAdvisor().quick_advice(role, prompt))


load_dotenv()


def main():
    logging.basicConfig(
        level=os.environ.get("SAVIOUR_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,  # relay.app configures logging at import time
    )
    app()
