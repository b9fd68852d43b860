from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False) -> None:
    """Route yada_engine logs to stderr through rich.

    Core modules only log; they never print. The CLI decides the level.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
    handler.setFormatter(logging.Formatter("%(message)s"))

    log = logging.getLogger("yada_engine")
    log.handlers.clear()
    log.addHandler(handler)
    log.setLevel(level)
    log.propagate = False
