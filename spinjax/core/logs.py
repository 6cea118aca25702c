"""
Console logging setup for spinjax.

Library modules only create module loggers with logging.getLogger(__name__);
applications (and the command-line entry point) decide where records go.
"""

import logging
import sys
from typing import Union


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Send spinjax log records to stdout.

    Any console handler installed by a previous call is replaced, so calling
    this twice does not duplicate output.

    Args:
        level: Logging level (name or number)

    Returns:
        The 'spinjax' logger
    """
    if isinstance(level, str):
        number = logging.getLevelName(level.upper())
        if not isinstance(number, int):
            raise ValueError(f"Unknown logging level: {level}")
        level = number

    logger = logging.getLogger("spinjax")
    for handler in list(logger.handlers):
        if getattr(handler, "_spinjax_console", False):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(name)s %(levelname)s %(message)s"))
    console_handler._spinjax_console = True
    logger.addHandler(console_handler)
    logger.setLevel(level)
    return logger
