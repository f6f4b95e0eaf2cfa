"""
Cooperative error reporting for scripts run under runwise.

A supervised Python script can opt in at startup:

    from runwise.hooks import install_error_hooks, is_supervised

    if is_supervised():
        install_error_hooks()

Uncaught exceptions, including ones raised inside asyncio tasks, are then
written to stderr in a form runwise detects, and the process exits with
status 1.
"""

import asyncio
import os
import sys
import traceback

MARKER_ENV = "RUNWISE_ACTIVE"


def is_supervised() -> bool:
    return os.environ.get(MARKER_ENV, "").lower() == "true"


def report_exception(exc_type, exc, tb, header: str = "Uncaught Exception:"):
    sys.stderr.write(f"{header}\n")
    sys.stderr.write("".join(traceback.format_exception(exc_type, exc, tb)))
    sys.stderr.flush()


def _excepthook(exc_type, exc, tb):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    # The interpreter exits with status 1 after the hook returns
    report_exception(exc_type, exc, tb)


def _loop_exception_handler(loop, context):
    exc = context.get("exception")
    if exc is None:
        sys.stderr.write(f"Unhandled Rejection: {context.get('message', 'unknown error')}\n")
    else:
        report_exception(type(exc), exc, exc.__traceback__, header="Unhandled Rejection:")
    sys.stderr.flush()
    os._exit(1)


def install_error_hooks(loop: asyncio.AbstractEventLoop = None):
    """Route uncaught exceptions to stderr and exit with status 1.

    Pass the running loop to also catch exceptions from asyncio callbacks
    and tasks that are never awaited.
    """
    sys.excepthook = _excepthook
    if loop is not None:
        loop.set_exception_handler(_loop_exception_handler)
