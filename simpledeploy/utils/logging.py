"""
Logging utilities for simpledeploy
"""
import sys
from datetime import datetime

_verbose = False


def set_verbose(verbose: bool):
    """Set the verbose flag"""
    global _verbose
    _verbose = verbose


def is_verbose() -> bool:
    return _verbose


def log(msg: str):
    """Log a message with timestamp"""
    ts = datetime.now().strftime("%H:%M:%S")
    print(f"[{ts}] {msg}", flush=True)


def vlog(msg: str):
    """Log a verbose message (only if verbose mode is enabled)"""
    if _verbose:
        log(msg)


def warn(msg: str):
    """Log a warning message"""
    log(f"⚠  {msg}")


def error(msg):
    """Log one or more error lines to stderr"""
    lines = [msg] if isinstance(msg, str) else list(msg)
    ts = datetime.now().strftime("%H:%M:%S")
    for line in lines:
        print(f"[{ts}] ✗  {line}", file=sys.stderr, flush=True)


def success(msg: str):
    log(f"✓  {msg}")


def note(msg):
    """Log a note; a list is printed one item per line"""
    lines = [msg] if isinstance(msg, str) else list(msg)
    for line in lines:
        log(f"!  {line}")


def title(msg: str):
    """Print a stage banner"""
    print()
    print(msg)
    print("─" * len(msg), flush=True)
