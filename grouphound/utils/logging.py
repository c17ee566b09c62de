# Message levels and verbosity for GroupHound.
#
# Modules import status/good/info/warn/error/debug from here. This is the
# only place that decides whether a message is shown; rendering is left to
# grouphound.utils.console.
#
# - status, error: always shown
# - good, warn: shown unless verbose_only is set outside verbose mode
# - info: verbose mode only (run statistics, cache counters)
# - debug: --debug or GROUPHOUND_DEBUG=1 (resolver and LDAP internals)

import os

from .console import emit

_VERBOSE = False
_DEBUG = False


def set_verbosity(verbose: bool, debug_flag: bool):
    """Set verbosity for the whole process; --debug also exports GROUPHOUND_DEBUG."""
    global _VERBOSE, _DEBUG
    _VERBOSE = verbose
    _DEBUG = debug_flag

    if debug_flag:
        os.environ["GROUPHOUND_DEBUG"] = "1"


def is_debug() -> bool:
    return _DEBUG or bool(os.getenv("GROUPHOUND_DEBUG"))


def is_verbose() -> bool:
    """Debug mode implies verbose."""
    return _VERBOSE or is_debug()


def status(msg: str):
    emit("status", msg)


def good(msg: str, verbose_only: bool = False):
    if verbose_only and not is_verbose():
        return
    emit("good", msg)


def warn(msg: str, verbose_only: bool = False):
    """Print a warning; verbose_only is for per-membership skips."""
    if verbose_only and not is_verbose():
        return
    emit("warn", msg)


def error(msg: str):
    emit("error", msg)


def info(msg: str):
    if is_verbose():
        emit("info", msg)


def debug(msg: str, exc_info: bool = False):
    if is_debug():
        emit("debug", msg, exc_info=exc_info)
