"""Logging setup: console handler plus an optional log file.

Library modules only call ``logging.getLogger(__name__)``; applications call
:func:`setup_logging` once at startup.
"""

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_MARK = "_vfxscan_handler"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Configure the root logger.

    Safe to call more than once: handlers installed by a previous call are
    replaced rather than duplicated.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
            handler.close()

    root.setLevel(level)
    fmt = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)
    setattr(console, _HANDLER_MARK, True)
    root.addHandler(console)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(fmt)
        setattr(file_handler, _HANDLER_MARK, True)
        root.addHandler(file_handler)

    # watchfiles logs every rust notify batch at DEBUG/INFO
    logging.getLogger("watchfiles").setLevel(logging.WARNING)
