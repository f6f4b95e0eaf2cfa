"""
Error detection for supervised process output.

A chunk of output is error-bearing if it contains any of a fixed set of
signals. This is a line classifier, not a stack-trace parser: it works for
any runtime and logging format at the cost of some false positives.
"""

import re

# Signals to detect
ERROR_SIGNALS = [
    r"error:",
    r"TypeError",
    r"ReferenceError",
    r"SyntaxError",
    r"warning:",
    r"failed",
    r"throw",
    r"stack trace",
    r"traceback",
    r"exception",
    r"crash",
    r"fatal",
]

COMPILED_SIGNALS = [re.compile(p, re.IGNORECASE) for p in ERROR_SIGNALS]


def is_error_output(text: str) -> bool:
    """Return True if the text looks like an error worth explaining."""
    if not text:
        return False
    return any(p.search(text) for p in COMPILED_SIGNALS)
