"""checkupgrades: pending pacman upgrades annotated with repo and size metadata."""

import logging
from os import getenv

import typer
from rich.console import Console
from rich.logging import RichHandler

logging.basicConfig(
    level=getenv("CHECKUPGRADES_LOG_LEVEL", "INFO").upper(),
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_suppress=[typer],
        )
    ],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
