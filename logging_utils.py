"""Tagged console logging shared by the tuner, metronome and UI.

Messages are emitted as ``[LEVEL][Tag] message | key=value ...``. Audio
callbacks run once per block, so anything they report goes through
``log_event_throttled`` to keep an xrun storm from flooding the console.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any

_logger = logging.getLogger("ukutools")
if not _logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("[%(levelname)s][%(tag)s] %(message)s"))
    _logger.addHandler(_handler)
    _logger.setLevel(logging.INFO)


class _TagAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: dict[str, Any]):
        kwargs.setdefault("extra", {})["tag"] = kwargs.pop("tag", "App")
        return msg, kwargs


_tagged = _TagAdapter(_logger, {})

# key -> (last emit time, suppressed count)
_throttle_state: dict[str, tuple[float, int]] = {}
_throttle_lock = threading.Lock()


def _level_value(level: str | None) -> int:
    if not isinstance(level, str):
        return logging.INFO
    value = getattr(logging, level.upper(), None)
    return value if isinstance(value, int) else logging.INFO


def format_fields(message: str, fields: dict[str, Any]) -> str:
    """Append ``key=value`` pairs to a message."""
    if not fields:
        return message
    return message + " | " + " ".join(f"{k}={v}" for k, v in fields.items())


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    _tagged.log(_level_value(level), format_fields(message, fields), tag=tag)


def log_event_throttled(level: str, tag: str, message: str, *, key: str,
                        interval_s: float = 5.0, **fields: Any) -> bool:
    """
    Like log_event, but emits at most once per ``interval_s`` for ``key``.

    The next emitted message carries ``suppressed=N`` when earlier calls were
    dropped. Returns True if the message was emitted.
    """
    now = time.monotonic()
    with _throttle_lock:
        last, suppressed = _throttle_state.get(key, (None, 0))
        if last is not None and now - last < interval_s:
            _throttle_state[key] = (last, suppressed + 1)
            return False
        _throttle_state[key] = (now, 0)
    if suppressed:
        fields["suppressed"] = suppressed
    log_event(level, tag, message, **fields)
    return True


def reset_throttle(key: str | None = None) -> None:
    """Forget throttle history for one key, or for all keys."""
    with _throttle_lock:
        if key is None:
            _throttle_state.clear()
        else:
            _throttle_state.pop(key, None)


def set_log_level(level: str | None) -> None:
    """Set global log level (DEBUG/INFO/WARNING/ERROR). Unknown names mean INFO."""
    _logger.setLevel(_level_value(level))


def get_log_level() -> str:
    return logging.getLevelName(_logger.level)
