from __future__ import annotations
import logging

# Third-party loggers that drown out request-level messages at DEBUG
NOISY_LOGGERS = ("sqlalchemy.engine", "multipart", "python_multipart")


def setup_console_logging(level: int = logging.INFO) -> None:
    """
    Call once per process (API app or CLI). Sends records to stderr.
    """
    root = logging.getLogger()
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if root.handlers:
        # uvicorn or pytest installed handlers already
        root.setLevel(level)
        return

    root.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
