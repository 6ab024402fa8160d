"""
Switchyard process bootstrap: graceful shutdown and last-resort error logging.

install(registry) wires, once per process and from the main thread only:
- SIGINT, SIGTERM and SIGQUIT (where the platform has them): log
  "Received <SIGNAL>, shutting down gracefully...", flush the standard
  streams and exit with status 0.
- sys.excepthook and threading.excepthook: log uncaught exceptions through the
  registry's logger before the interpreter reports them.

The per-CLI "run at most once" guard lives on the CLI instance; the guard in
this module only keeps a second CLI in the same process from re-installing.
"""
import functools
import logging
import signal
import sys
import threading

from .registry import LoggerToken
from .utils import *

logger = logging.getLogger(__name__)

SIGNALS = ("SIGINT", "SIGTERM", "SIGQUIT")

_installed = False


def _logger(registry, /):
    if registry is not Unset and registry.has(LoggerToken):
        return registry.get(LoggerToken)
    return logger


def _shutdown(log, signum, frame, /):
    log.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
    for stream in (sys.stdout, sys.stderr):
        stream.flush()
    sys.exit(0)


def _uncaught(log, previous, type, value, traceback, /):
    if not issubclass(type, KeyboardInterrupt):
        log.error(f"Uncaught exception: {type.__name__}: {value}")
    previous(type, value, traceback)


def _uncaught_thread(log, previous, arguments, /):
    if not issubclass(arguments.exc_type, SystemExit):
        log.error(f"Uncaught exception in thread {getattr(arguments.thread, 'name', '?')}: {arguments.exc_value}")
    previous(arguments)


def installed():
    return _installed


def install(registry=Unset, /):
    """
    Install the process-wide traps. Returns whether anything was installed.
    """
    global _installed

    if _installed or threading.current_thread() is not threading.main_thread():
        return False
    _installed = True

    log = _logger(registry)
    for name in SIGNALS:
        if (signum := getattr(signal, name, None)) is not None:
            signal.signal(signum, functools.partial(_shutdown, log))

    sys.excepthook = functools.partial(_uncaught, log, sys.excepthook)
    threading.excepthook = functools.partial(_uncaught_thread, log, threading.excepthook)
    logger.debug("installed signal and uncaught-exception handlers")
    return True


__all__ = (
    "install",
    "installed",
)
