"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so every bridge component
logs an event name followed by key=value pairs (default) or a single JSON
object per line (``json_output=True``, for log aggregators).

Values containing spaces, equals signs, or quotes are escaped and wrapped
in double quotes. Long values (relay error strings, ciphertexts) are
truncated to a configurable maximum length.

A logger can carry bound context via [bind()][nostrbridge.core.logger.Logger.bind]:
the gate binds ``event_id`` and ``sender`` once per inbound event so every
line it writes for that event is correlated without repeating the fields.

Examples:
    ```python
    from nostrbridge.core.logger import Logger

    logger = Logger("event_gate")
    logger.info("dm_received", sender="ab12...", relay="wss://nos.lol")
    # Output: info event_gate dm_received sender=ab12... relay=wss://nos.lol

    event_logger = logger.bind(event_id="ff00...")
    event_logger.error("decrypt_failed", error="invalid MAC")
    # Output: error event_gate decrypt_failed event_id=ff00... error="invalid MAC"
    ```
"""

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ' key1=value1 key2="value with spaces"'.
        Returns empty string if kwargs is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = str(v)
        if max_value_length and len(s) > max_value_length:
            s = s[:max_value_length] + f"...<truncated {len(s) - max_value_length} chars>"
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts) if parts else ""


class StructuredFormatter(logging.Formatter):
    """Formats all log records as ``level name message key=value ...``.

    Reads structured data from the ``structured_kv`` extra field attached
    by [Logger][nostrbridge.core.logger.Logger]. Records from plain
    ``logging.getLogger()`` calls (the ``utils`` adapters) are emitted with
    the same prefix so the whole process shares one output shape.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Wraps a standard ``logging.Logger``. All public methods mirror the
    standard logging API with an added ``**kwargs`` parameter; bound
    context from [bind()][nostrbridge.core.logger.Logger.bind] is merged
    in front of the per-call fields.

    Examples:
        ```python
        logger = Logger("multiplexer")
        logger.warning("publish_rejected", relay="wss://nos.lol", reason="rate-limited")
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, typically the component name. Maps to the
                underlying ``logging.getLogger(name)`` call.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum character length for individual values
                before truncation. Defaults to 1000.
            context: Fields prepended to every record written by this logger.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> "Logger":
        """Return a logger sharing this one's output that always carries *context*.

        Later bindings override earlier ones for the same key.
        """
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def _merge(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if not self._context:
            return kwargs
        return {**self._context, **kwargs}

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        """Format message and kwargs as a JSON line with timestamp, level and logger name."""
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "logger": self._logger.name,
            "message": msg,
            **kwargs,
        }
        return json.dumps(record, default=str)

    def _make_extra(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Build the ``extra`` dict with values pre-truncated to ``max_value_length``."""
        if not kwargs:
            return {}
        truncated: dict[str, Any] = {}
        for k, v in kwargs.items():
            s = str(v)
            if self._max_value_length and len(s) > self._max_value_length:
                truncated[k] = (
                    s[: self._max_value_length]
                    + f"...<truncated {len(s) - self._max_value_length} chars>"
                )
            else:
                truncated[k] = v
        return {"structured_kv": truncated}

    def _log(self, level: int, level_name: str, msg: str, kwargs: dict[str, Any]) -> None:
        fields = self._merge(kwargs)
        if self._json_output:
            self._logger.log(level, self._format_json(msg, level_name, fields))
        else:
            self._logger.log(level, msg, extra=self._make_extra(fields))

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, "debug", msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, "info", msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, "warning", msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, "error", msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        """Log a CRITICAL level message with optional key=value pairs."""
        self._log(logging.CRITICAL, "critical", msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active exception traceback."""
        fields = self._merge(kwargs)
        if self._json_output:
            self._logger.exception(self._format_json(msg, "error", fields))
        else:
            self._logger.exception(msg, extra=self._make_extra(fields))
