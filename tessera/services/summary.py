from __future__ import annotations

from ..models.processing_result import GenerationResult, SheetStat

"""SUMMARY line and per-sheet report rendering.

Format:
SUMMARY sheets={processed} generated={generated} failed={failed}
skipped_sheets={skipped} elapsed_sec={elapsed}
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
    "render_sheet_line",
]


def format_seconds(seconds: float) -> str:
    """Format elapsed seconds without scientific notation or trailing zeros."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: GenerationResult) -> str:
    """Render the SUMMARY line for a finished run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2025, 9, 20, tzinfo=timezone.utc)
        >>> r = GenerationResult(
        ...     total_generated=3, total_failed=1, skipped_sheets=1,
        ...     start_time=t, end_time=t, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(r)
        'SUMMARY sheets=0 generated=3 failed=1 skipped_sheets=1 elapsed_sec=2'
    """
    line = (
        f"SUMMARY sheets={result.processed_sheets} "
        f"generated={result.total_generated} "
        f"failed={result.total_failed} "
        f"skipped_sheets={result.skipped_sheets} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
    if result.cancelled:
        line += " cancelled=true"
    return line


def render_sheet_line(stat: SheetStat) -> str:
    if stat.status.skipped:
        return f"sheet '{stat.sheet_name}': {stat.status.value}"
    return (
        f"sheet '{stat.sheet_name}' template={stat.template_name} "
        f"generated={stat.generated} failed={stat.failed} dir={stat.output_dir}"
    )
