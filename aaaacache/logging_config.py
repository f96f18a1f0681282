from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

FORMATS = {
    "detailed": "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s",
    "simple": "%(levelname)s %(message)s",
}


def _resolve_level(level: str) -> int:
    value = getattr(logging, level.upper(), None)
    if isinstance(value, int):
        return value
    return logging.INFO


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[Union[str, Path]] = None,
    format_style: str = "simple",
) -> None:
    """Configure logging for the command-line tool.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path for an additional file handler.
        format_style: "detailed" includes logger name and line, "simple" does not.
    """
    formatter = logging.Formatter(FORMATS.get(format_style, FORMATS["simple"]))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FORMATS["detailed"]))
        root.addHandler(file_handler)

    root.setLevel(_resolve_level(level))
