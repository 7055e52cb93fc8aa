"""
Logging setup for Infragate.

Library modules only create named loggers (``infragate.<area>``) and never
install handlers. Entry points call configure_logging() once to route
records to stderr through Rich.

Loggers:
    - infragate.registry: policy loading
    - infragate.engine: decisions (INFO) and individual violations (DEBUG)
    - infragate.engine.faults: checker faults (ERROR, with traceback)
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from infragate import APP_NAME


def configure_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """
    Attach a Rich stderr handler to the ``infragate`` logger.

    Levels: WARNING by default, INFO with verbose, DEBUG with debug.
    Calling it again replaces the previous handler.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root = logging.getLogger(APP_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_infragate", False):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=debug,
        rich_tracebacks=debug,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    handler._infragate = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(level)
    return root
