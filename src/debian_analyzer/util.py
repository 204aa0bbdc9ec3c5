import argparse
import logging
import os
import re
import sys
from typing import (
    NoReturn,
    Optional,
    Tuple,
    TextIO,
)

import colorlog

_SPACE_RE = re.compile(r"\s")
_DOUBLE_ESCAPEES = re.compile(r'([\n`$"\\])')
_REGULAR_ESCAPEES = re.compile(r"""([\s!"$'()*+#;<>?@\[\]\\`|~])""")
_LOG_FORMAT = "{name}: {levelnamelower}: {message}"
_COLOR_LOG_FORMAT = (
    "{bold}{name}{reset}: {bold}{log_color}{levelnamelower}{reset}: {message}"
)
_DEFAULT_LOGGER: Optional[logging.Logger] = None
_HANDLERS: Tuple[logging.Handler, ...] = ()


def _info(msg: str) -> None:
    if _DEFAULT_LOGGER is not None:
        _DEFAULT_LOGGER.info(msg)


def _warn(msg: str, *, prog: Optional[str] = None) -> None:
    if _DEFAULT_LOGGER is not None:
        _DEFAULT_LOGGER.warning(msg)
        return
    me = os.path.basename(sys.argv[0]) if prog is None else prog
    print(f"{me}: warning: {msg}", file=sys.stderr)


def _error(msg: str, *, prog: Optional[str] = None) -> "NoReturn":
    if _DEFAULT_LOGGER is not None:
        _DEFAULT_LOGGER.error(msg)
    else:
        me = os.path.basename(sys.argv[0]) if prog is None else prog
        print(f"{me}: error: {msg}", file=sys.stderr)
    sys.exit(1)


class ColorizedArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        _error(message, prog=self.prog)


def _backslash_escape(m: "re.Match[str]") -> str:
    return "\\" + m.group(0)


def _escape_shell_word(w: str) -> str:
    if _SPACE_RE.search(w):
        w = _DOUBLE_ESCAPEES.sub(_backslash_escape, w)
        return f'"{w}"'
    return _REGULAR_ESCAPEES.sub(_backslash_escape, w)


def escape_shell(*args: str) -> str:
    """Render a command line so it can be pasted into a shell"""
    return " ".join(_escape_shell_word(w) for w in args)


def read_text_if_exists(path: str) -> Optional[str]:
    """Read a file as UTF-8 text, mapping "not found" to None

    Any other I/O failure is propagated to the caller.
    """
    try:
        with open(path, encoding="utf-8") as fd:
            return fd.read()
    except FileNotFoundError:
        return None


def _check_color() -> Tuple[bool, bool, Optional[str]]:
    """Decide whether stdout and stderr get colors

    DEBIAN_ANALYZER_COLORS wins over DPKG_COLORS, which wins over NO_COLOR.
    The third value is the rejected setting, if the requested one was
    not understood.
    """
    dpkg_or_default = os.environ.get(
        "DPKG_COLORS", "never" if "NO_COLOR" in os.environ else "auto"
    )
    requested_color = os.environ.get("DEBIAN_ANALYZER_COLORS", dpkg_or_default)
    bad_request = None
    if requested_color not in {"auto", "always", "never"}:
        bad_request = requested_color
        requested_color = "auto"

    if requested_color == "auto":
        return sys.stdout.isatty(), sys.stderr.isatty(), bad_request
    enable = requested_color == "always"
    return enable, enable, bad_request


def program_name() -> str:
    name = os.path.basename(sys.argv[0])
    if name.endswith(".py"):
        name = name[:-3]
    if name == "__main__":
        name = os.path.basename(os.path.dirname(sys.argv[0]))
    if name == "debian_analyzer_cmd":
        name = "debian-analyzer"
    return name


def change_log_level(log_level: int) -> None:
    if _DEFAULT_LOGGER is not None:
        _DEFAULT_LOGGER.setLevel(log_level)
    logging.getLogger().setLevel(log_level)


class _SplitByLevel(logging.Filter):
    """Route records below or at/above WARNING; also provides `levelnamelower`"""

    def __init__(self, *, warnings_and_up: bool) -> None:
        super().__init__()
        self.warnings_and_up = warnings_and_up

    def filter(self, record: logging.LogRecord) -> bool:
        record.levelnamelower = record.levelname.lower()
        return (record.levelno >= logging.WARNING) == self.warnings_and_up


def _create_handler(stream: TextIO, use_color: bool) -> logging.Handler:
    if use_color:
        handler: logging.Handler = colorlog.StreamHandler(stream)
        handler.setFormatter(
            colorlog.ColoredFormatter(_COLOR_LOG_FORMAT, style="{", force_color=True)
        )
    else:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, style="{"))
    return handler


def setup_logging(
    *,
    log_only_to_stderr: bool = False,
    reconfigure_logging: bool = False,
) -> None:
    """Install the stdout/stderr handlers of the program logger

    Warnings and errors always go to stderr. Everything else goes to stdout,
    or to stderr as well with `log_only_to_stderr` (for commands whose
    stdout is their result).
    """
    global _DEFAULT_LOGGER, _HANDLERS
    if _DEFAULT_LOGGER is not None and not reconfigure_logging:
        raise RuntimeError(
            "Logging has already been configured."
            " Use reconfigure_logging=True if you need to reconfigure it"
        )
    stdout_color, stderr_color, bad_request = _check_color()
    if log_only_to_stderr:
        info_stream, info_color = sys.stderr, stderr_color
    else:
        info_stream, info_color = sys.stdout, stdout_color

    info_handler = _create_handler(info_stream, info_color)
    info_handler.addFilter(_SplitByLevel(warnings_and_up=False))
    warn_handler = _create_handler(sys.stderr, stderr_color)
    warn_handler.addFilter(_SplitByLevel(warnings_and_up=True))

    root = logging.getLogger()
    for handler in _HANDLERS:
        root.removeHandler(handler)
    _HANDLERS = (info_handler, warn_handler)
    for handler in _HANDLERS:
        root.addHandler(handler)
    root.setLevel(logging.INFO)

    _DEFAULT_LOGGER = logging.getLogger(program_name())
    if bad_request:
        _DEFAULT_LOGGER.warning(
            f'Invalid color request for "{bad_request}" in either DEBIAN_ANALYZER_COLORS'
            ' or DPKG_COLORS. Resetting to "auto".'
        )
