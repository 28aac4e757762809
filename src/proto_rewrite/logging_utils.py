from __future__ import annotations

import logging
import sys


def setup_logging(*, verbose: bool = False) -> None:
    """Route all log records to stdout with a single handler."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    )
    root.addHandler(handler)
