"""
Audit Logger module for the domain acquisition pipeline.

Every component reports through one ``AuditLogger``. Entries carry a
component name and a data dict; the dict is scrubbed of secrets such as the
registrar API key before anything is written. Output goes to stderr as JSON
lines, plain text lines, or both.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from domain_acquirer.enums import LogLevel


LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}

OUTPUT_FORMATS = ("json", "text", "both")

# Matched exactly or as a "_<name>" suffix ("dynadot_api_key", "user_token")
SENSITIVE_KEYS = frozenset({
    "api_key", "key", "token", "secret", "password", "hmac_secret",
    "auth", "authorization", "credential", "credentials",
})

MASK_VALUE = "***MASKED***"


def is_sensitive_key(key: Any) -> bool:
    name = str(key).lower()
    if name in SENSITIVE_KEYS:
        return True
    return any(name.endswith("_" + sensitive) for sensitive in SENSITIVE_KEYS)


def mask_sensitive_data(value: Any) -> Any:
    """Return a copy of ``value`` with every sensitive dict entry replaced."""
    if isinstance(value, dict):
        return {
            k: MASK_VALUE if is_sensitive_key(k) else mask_sensitive_data(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [mask_sensitive_data(item) for item in value]
    return value


@dataclass
class LogEntry:
    """One emitted log record."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "level": self.level.value,
                "component": self.component,
                "message": self.message,
                "data": self.data,
            },
            ensure_ascii=False,
            default=str,
        )

    def to_text(self) -> str:
        # [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        line = f"[{self.timestamp}] {self.level.value.upper()} [{self.component}] {self.message}"
        if self.data:
            line += " " + json.dumps(self.data, ensure_ascii=False, default=str)
        return line


class AuditLogger:
    """
    Structured logger shared by the pipeline components.

    Entries below the configured level are dropped. Emitted entries are also
    kept in memory so callers (and tests) can inspect what was reported.
    """

    SENSITIVE_KEYS = SENSITIVE_KEYS
    MASK_VALUE = MASK_VALUE

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        level: str = "info",
    ):
        """
        Args:
            output_format: 'json', 'text' or 'both'
            output_stream: Destination stream (defaults to sys.stderr)
            level: Lowest level that is emitted ('debug', 'info', 'warn', 'error')
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = LogLevel(level.lower())
        self._entries: list[LogEntry] = []

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return LEVEL_ORDER[level] >= LEVEL_ORDER[self._min_level]

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Emit one entry.

        Returns:
            The emitted LogEntry, or None if ``level`` is below the threshold
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=mask_sensitive_data(dict(data or {})),
        )
        self._entries.append(entry)
        self._write(entry)
        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        record_id: Optional[str] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Emit an ERROR entry describing a failure.

        The exception's message, class name and (for coded pipeline errors)
        its code are added to the entry data, as is the affected record id.
        """
        context = dict(additional_data or {})

        if error is not None:
            context.update(error_message=str(error), error_type=type(error).__name__)
            code = getattr(error, "code", None)
            if code is not None:
                context["error_code"] = code

        if record_id is not None:
            context["record_id"] = record_id

        return self.log(LogLevel.ERROR, component, message, context)

    def _write(self, entry: LogEntry) -> None:
        lines = []
        if self._output_format != "text":
            lines.append(entry.to_json())
        if self._output_format != "json":
            lines.append(entry.to_text())

        self._stream.write("".join(line + "\n" for line in lines))
        self._stream.flush()

    def clear_entries(self) -> None:
        self._entries.clear()
