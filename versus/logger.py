"""Queue-based logging for the Versus API process and its helpers."""

import logging
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from versus.helpers import VersusHelpers

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s : %(message)s'


def logListenerSetup(loggingQueue, opts: dict = None) -> QueueListener:
    """Create and start a QueueListener that writes log records to the console and to disk.

    Args:
        loggingQueue: queue (accepts both normal and multiprocessing queue types)
        opts (dict): Versus config; '_debug' enables debug output on the console,
                     '__logging' False disables file logging

    Returns:
        logging.handlers.QueueListener: started listener
    """
    if opts is None:
        opts = dict()
    doLogging = opts.get("__logging", True)
    debug = opts.get("_debug", False)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)
    handlers = [console_handler]

    if doLogging:
        log_dir = Path(VersusHelpers.logPath())

        debug_handler = RotatingFileHandler(
            str(log_dir / "versus.debug.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=10,
            delay=True,
        )
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(formatter)
        handlers.append(debug_handler)

        error_handler = RotatingFileHandler(
            str(log_dir / "versus.error.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=10,
            delay=True,
        )
        error_handler.setLevel(logging.WARNING)
        error_handler.setFormatter(formatter)
        handlers.append(error_handler)

    listener = QueueListener(loggingQueue, *handlers, respect_handler_level=True)
    listener.start()
    return listener


def logWorkerSetup(loggingQueue) -> logging.Logger:
    """Root Versus logger, forwarding everything to the logging queue.

    Args:
        loggingQueue: queue shared with the listener

    Returns:
        logging.Logger: the 'versus' logger
    """
    log = logging.getLogger("versus")
    log.setLevel(logging.DEBUG)
    # Avoid stacking handlers when the app factory runs more than once
    for handler in list(log.handlers):
        if isinstance(handler, QueueHandler):
            log.removeHandler(handler)
    log.addHandler(QueueHandler(loggingQueue))
    return log
