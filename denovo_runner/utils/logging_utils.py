from __future__ import annotations

import logging
import sys

from tqdm import tqdm

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class TqdmLoggingHandler(logging.Handler):
    """Write log records through tqdm so they do not break an active progress bar."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=sys.stderr)
        except Exception:  # noqa: BLE001
            self.handleError(record)


def configure_logging(verbose: bool) -> None:
    """Route root logging through tqdm and set the package log level."""
    root = logging.getLogger()
    target = logging.getLogger("denovo_runner")
    level = logging.DEBUG if verbose else logging.WARNING

    root.setLevel(level)
    target.setLevel(level)

    # Plain stream handlers (basicConfig) would interleave with the bar.
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    if not any(isinstance(h, TqdmLoggingHandler) for h in root.handlers):
        handler = TqdmLoggingHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for handler in root.handlers:
        handler.setLevel(level)
