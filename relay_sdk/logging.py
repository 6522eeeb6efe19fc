import logging
from collections.abc import MutableMapping
from typing import Any

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_RESERVED = ("exc_info", "stack_info", "stacklevel", "extra")

_default_level = logging.INFO
_configured: set[str] = set()


class EventLogger(logging.LoggerAdapter):
    """Logger adapter accepting ``logger.info("event", key=value)`` calls.

    Keyword fields are rendered as ``key=value`` pairs after the event name
    and also attached to the record under ``fields``.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _RESERVED}
        if not fields:
            return msg, kwargs

        rendered = " ".join(f"{key}={value}" for key, value in fields.items())
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("fields", fields)
        kwargs["extra"] = extra
        return f"{msg} {rendered}", kwargs


def resolve_level(level: int | str) -> int:
    """Map a level name such as ``"debug"`` to its number.

    Raises:
        ValueError: If the name is not a standard logging level
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def set_default_level(level: int | str) -> None:
    """Set the level of every logger from ``get_logger``, past and future."""
    global _default_level
    _default_level = resolve_level(level)
    for name in _configured:
        logging.getLogger(name).setLevel(_default_level)


def get_logger(name: str) -> EventLogger:
    """Return an event logger for ``name``, configuring it on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_default_level)
        _configured.add(name)
    return EventLogger(logger, {})
