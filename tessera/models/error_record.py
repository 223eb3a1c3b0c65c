from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per output document that could not be produced (directory
creation or write failure). `row` is the worksheet row of the data record;
-1 is used when the failure is not tied to a single row.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        template: Template file name
        sheet: Sheet name within the workbook
        row: Worksheet row number (1-based). -1 when unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description (usually the OSError text)
    """
    timestamp: str  # ISO8601 UTC
    template: str
    sheet: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(template: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            template=template,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
