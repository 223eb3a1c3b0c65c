from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

"""Processing result models for the document generation run.

SheetStat tracks one (sheet, template) unit, GenerationResult aggregates the
whole run and feeds the SUMMARY line.
"""

__all__ = [
    "SheetStatus",
    "SheetStat",
    "GenerationResult",
]


class SheetStatus(Enum):
    """Outcome of one sheet.

    - GENERATED: records were rendered (individual records may still fail)
    - SKIPPED_NO_TEMPLATE: no template resolved for the sheet
    - SKIPPED_NO_PLACEHOLDERS: the bound template has no `${...}` markers
    - SKIPPED_NO_RECORDS: the sheet has a header but no non-blank rows
    - CANCELLED: the run was cancelled before or while rendering this sheet
    """
    GENERATED = "generated"
    SKIPPED_NO_TEMPLATE = "skipped_no_template"
    SKIPPED_NO_PLACEHOLDERS = "skipped_no_placeholders"
    SKIPPED_NO_RECORDS = "skipped_no_records"
    CANCELLED = "cancelled"

    @property
    def skipped(self) -> bool:
        return self.value.startswith("skipped")


@dataclass(frozen=True)
class SheetStat:
    """Per-sheet statistics."""
    sheet_name: str
    template_name: str | None
    status: SheetStatus
    generated: int = 0  # 書き出し成功件数
    failed: int = 0  # 書き出し失敗件数
    output_dir: Path | None = None
    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class GenerationResult:
    """Aggregated results for one generation run."""
    total_generated: int
    total_failed: int
    skipped_sheets: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    sheet_stats: list[SheetStat] = field(default_factory=list)
    cancelled: bool = False
    no_data: bool = False  # ワークブックにデータ行が 1 件も無い

    @property
    def processed_sheets(self) -> int:
        return len(self.sheet_stats)
