import json
import logging
import os
import sys
import time

ROOT_LOGGER = "pastebox"


def get_logger(name=None, level=None, to_file=None):
    """Structured JSON-lines logger shared by all pastebox components.

    Handlers are attached once, on the ``pastebox`` root logger; component
    loggers (``pastebox.store`` etc.) propagate to it.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if level is None:
        level = os.getenv("PASTEBOX_LOG_LEVEL", "INFO").upper()
    root.setLevel(level)
    to_file = to_file or os.getenv("PASTEBOX_LOG_FILE")

    if not root.handlers:
        formatter = logging.Formatter(
            fmt=json.dumps({
                "ts": "%(asctime)s",
                "level": "%(levelname)s",
                "name": "%(name)s",
                "msg": "%(message)s",
            }),
            datefmt="%Y-%m-%dT%H:%M:%SZ",
        )
        formatter.converter = time.gmtime  # UTC timestamps
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        root.addHandler(handler)

        if to_file:
            os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(to_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    if name is None:
        return root
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
