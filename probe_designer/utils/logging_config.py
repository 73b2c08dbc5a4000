"""Logging setup shared by the command-line tools.

Library modules only ever call ``logging.getLogger(__name__)``; the
entry points call ``setup_logging`` once to attach handlers to the root
logger and take their own logger from ``get_logger``.

Public API:
    setup_logging(log_level="INFO", context={"app": "probe-import"})
    get_logger(name)
    push_context(source="probe.nc")
    pop_context(keys=["source"])
    install_excepthook()

Format examples:
    Human: 2026-03-02T09:14:07.512Z | INFO     | app=probe-import | Parsed 3 probe operation(s)
    JSON:  {"t": "2026-03-02T09:14:07.512000+00:00", "lvl": "INFO", "app": "probe-import", "msg": "..."}

Context fields live in a contextvar, so concurrent callers do not see
each other's fields.  ``setup_logging`` only ever removes handlers it
installed itself; handlers added by other code stay attached.
"""

import contextvars
import json as jsonlib
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

_context_var: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    'logging_context', default={}
)

# Attribute set on every handler installed by setup_logging
_OWNED_ATTR = "_probe_designer_owned"

LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Formatter that adds the active context fields to every record.

    Parameters
    ----------
    fmt_mode : str
        ``"human"`` for one ``|``-separated text line, ``"json"`` for one
        JSON object per line.
    use_color : bool
        Colour the level name (human mode, and only when stderr is a TTY).
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"fmt_mode must be 'human' or 'json', got {fmt_mode!r}")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        fields = dict(_context_var.get())
        when = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.fmt_mode == "json":
            payload = {
                't': when.isoformat(),
                'lvl': record.levelname,
                'name': record.name,
                'pid': os.getpid(),
                'msg': record.getMessage(),
                **fields,
            }
            if record.exc_info:
                payload['exc'] = self.formatException(record.exc_info)
            return jsonlib.dumps(payload, default=str)

        stamp = when.strftime('%Y-%m-%dT%H:%M:%S.') + f"{when.microsecond // 1000:03d}Z"
        level = f"{record.levelname:<8}"
        if self.use_color:
            level = LEVEL_COLORS.get(record.levelname, '') + level + RESET

        segments = [stamp, level]
        if fields:
            segments.append(' '.join(f"{key}={value}" for key, value in fields.items()))
        segments.append(record.getMessage())
        text = ' | '.join(segments)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def _owned_handlers(logger: logging.Logger) -> List[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, _OWNED_ATTR, False)]


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    context: Optional[Dict[str, Any]] = None
) -> List[logging.Handler]:
    """Configure the root logger.

    Calling it again replaces the handlers from the previous call.

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    log_file : str, optional
        Also append records to this file (always uncoloured)
    json : bool
        Emit JSON lines instead of human-readable text, default False
    color : bool
        Colour the level name on a TTY console, default True
    context : dict, optional
        Initial context fields (e.g. ``{"app": "probe-generate"}``)

    Returns
    -------
    list[logging.Handler]
        Handlers attached to the root logger by this call.

    Raises
    ------
    ValueError
        If *log_level* is not a known level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    for handler in _owned_handlers(root):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    fmt_mode = "json" if json else "human"
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ContextFormatter(fmt_mode, use_color=color))
    handlers: List[logging.Handler] = [console]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(path, encoding="utf-8")
        to_file.setFormatter(ContextFormatter(fmt_mode, use_color=False))
        handlers.append(to_file)

    for handler in handlers:
        setattr(handler, _OWNED_ATTR, True)
        root.addHandler(handler)

    if context:
        push_context(**context)

    logging.captureWarnings(True)
    return handlers


def get_logger(name: str) -> logging.Logger:
    """Return the named logger (typically ``__name__``)."""
    return logging.getLogger(name)


def push_context(**kwargs: Any) -> None:
    """Add fields to every subsequent record in the current context.

    Examples
    --------
    >>> push_context(app="probe-import")
    >>> push_context(source="fixture.nc")
    >>> logger.info("Parsed")  # -> "... | app=probe-import source=fixture.nc | Parsed"
    """
    _context_var.set({**_context_var.get(), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove the given context fields, or all of them when *keys* is None."""
    if keys is None:
        _context_var.set({})
    else:
        _context_var.set(
            {k: v for k, v in _context_var.get().items() if k not in keys}
        )


def install_excepthook() -> None:
    """Log uncaught exceptions (except Ctrl+C) with traceback before exit."""
    previous = sys.excepthook

    def hook(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            previous(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = hook
