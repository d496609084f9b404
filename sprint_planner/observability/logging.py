"""Rich logging configuration for the service."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO") -> None:
    console = Console(stderr=True)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, markup=False, rich_tracebacks=True)],
        force=True,
    )


__all__ = ["configure_logging"]
