import logging
import sys

from pythonjsonlogger import json

_HANDLER_NAME = "tokengen"


def configure_logging(level: str | int = "INFO", json_format: bool = True) -> logging.Logger:
    """
    Install a single stdout handler on the root logger.

    Calling it again only updates the level and formatter of the handler it
    installed before.

    Args:
        level: Logging level name or number.
        json_format: Emit structured JSON lines instead of plain text.

    Returns:
        logging.Logger: The root logger.
    """
    root = logging.getLogger()
    handler = next((h for h in root.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        root.addHandler(handler)

    if json_format:
        formatter = json.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    handler.setFormatter(formatter)

    root.setLevel(level.upper() if isinstance(level, str) else level)
    return root
