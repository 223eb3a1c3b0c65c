from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..config.loader import GenerationConfig
from ..document.scanner import scan_placeholders
from ..document.template import TemplateSource, TemplateUnreadableError
from ..document.writer import DocumentRenderer
from ..excel.reader import DataFileError, read_sheet_records
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.placeholder import Placeholder
from ..models.processing_result import GenerationResult, SheetStat, SheetStatus
from ..models.tabular_record import TabularRecord
from .binding import BindingResolver, build_binding, default_resolver
from .progress import ProgressTracker
from .summary import render_sheet_line

"""Batch orchestration: sheets × templates → one .docx per record.

Run states:
    START → DATA_LOADED
          → per bound (sheet, template): TEMPLATE_SCANNED → MAPPING_LOGGED → RECORDS_RENDERED
          → DONE

Failure isolation (smallest unit first):
- record: directory creation / write failure → logged, error record, counted as failed
- sheet: no template, no placeholders, no records → WARN and skip
- run: unreadable data file or template → ProcessingError (fatal)
"""

__all__ = [
    "ProcessingError",
    "RecordJob",
    "RecordOutcome",
    "OUTPUT_EXTENSION",
    "sanitize_file_name",
    "record_base_name",
    "iter_record_jobs",
    "render_record",
    "generate_all",
]

logger = logging.getLogger(__name__)

OUTPUT_EXTENSION = ".docx"

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class ProcessingError(Exception):
    """Fatal error that stops the whole run."""


@dataclass(frozen=True)
class RecordJob:
    record: TabularRecord
    destination: Path


@dataclass(frozen=True)
class RecordOutcome:
    record: TabularRecord
    destination: Path
    error_type: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def sanitize_file_name(name: str) -> str:
    """Make a cell value usable as a file name (path separators etc. → `_`)."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip()
    # Windows は末尾のドット/空白を許さない
    return cleaned.rstrip(". ")


def record_base_name(record: TabularRecord, naming_columns: Sequence[str]) -> str | None:
    """First non-blank value among the naming columns, sanitized."""
    for column in naming_columns:
        value = record.get_value(column)
        if value and value.strip():
            cleaned = sanitize_file_name(value)
            if cleaned:
                return cleaned
    return None


def iter_record_jobs(
    records: Iterable[TabularRecord],
    sheet_dir: Path,
    naming_columns: Sequence[str],
) -> Iterator[RecordJob]:
    """Assign a unique destination file to every record of a sheet.

    Records without a usable naming value fall back to `record-<row>`.
    Duplicate names (compared case-insensitively) get ` (2)`, ` (3)`, ...
    """
    used: set[str] = set()
    for index, record in enumerate(records, start=1):
        base = record_base_name(record, naming_columns)
        if base is None:
            ident = record.row_number if record.row_number > 0 else index
            base = f"record-{ident}"
            logger.warning(
                "row=%s has no value for naming columns %s; using '%s'",
                ident,
                list(naming_columns),
                base,
            )
        candidate = base
        n = 2
        while candidate.casefold() in used:
            candidate = f"{base} ({n})"
            n += 1
        used.add(candidate.casefold())
        yield RecordJob(record=record, destination=sheet_dir / f"{candidate}{OUTPUT_EXTENSION}")


def render_record(renderer: DocumentRenderer, job: RecordJob) -> RecordOutcome:
    """Render one record and write it to its destination.

    OSError while creating the directory or writing the file is returned as a
    failed outcome; anything else propagates and aborts the run.
    """
    try:
        # exist_ok: 並列ワーカーが同じディレクトリを同時に作成しても安全
        job.destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return RecordOutcome(job.record, job.destination, "DIRECTORY_CREATE_ERROR", str(e))
    data = renderer.render(job.record)
    try:
        job.destination.write_bytes(data)
    except OSError as e:
        return RecordOutcome(job.record, job.destination, "WRITE_ERROR", str(e))
    return RecordOutcome(job.record, job.destination)


def _is_cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _run_sequential(
    renderer: DocumentRenderer,
    jobs: Iterator[RecordJob],
    cancel_event: threading.Event | None,
    collect: Callable[[RecordOutcome], None],
) -> bool:
    """Render jobs one by one in source order. Returns True when cancelled."""
    try:
        for job in jobs:
            if _is_cancelled(cancel_event):
                return True
            collect(render_record(renderer, job))
    except KeyboardInterrupt:
        logger.warning("interrupted: stopping after the current document")
        return True
    return False


def _run_pool(
    renderer: DocumentRenderer,
    jobs: Iterator[RecordJob],
    workers: int,
    cancel_event: threading.Event | None,
    collect: Callable[[RecordOutcome], None],
) -> bool:
    """Render jobs on a bounded thread pool. Returns True when cancelled.

    At most 2 * workers renders are in flight; outcomes are collected on the
    calling thread only. On cancellation no new job is submitted and in-flight
    renders are allowed to finish.
    """
    max_in_flight = workers * 2
    pending: set[Future[RecordOutcome]] = set()
    cancelled = False
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tessera-render") as pool:
        try:
            while True:
                while not cancelled and len(pending) < max_in_flight:
                    job = next(jobs, None)
                    if job is None:
                        break
                    if _is_cancelled(cancel_event):
                        cancelled = True
                        break
                    pending.add(pool.submit(render_record, renderer, job))
                if not pending:
                    break
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for fut in done:
                    collect(fut.result())
        except KeyboardInterrupt:
            cancelled = True
            logger.warning("interrupted: waiting for %d in-flight documents", len(pending))
            done, _ = wait(pending)
            for fut in done:
                collect(fut.result())
    return cancelled


def _log_mapping(placeholders: Iterable[Placeholder], first_record: TabularRecord) -> None:
    """Report which placeholders resolve against the first record.

    Diagnostic only: generation continues either way and other records are
    not inspected.
    """
    logger.info("Mapping columns...")
    for p in sorted(placeholders, key=lambda p: p.full_marker):
        if first_record.get_value(p.variable_name) is not None:
            logger.info("  %s -> %s", p.full_marker, p.variable_name)
        else:
            logger.warning("placeholder %s not found in data columns", p.full_marker)


class _TemplateCache:
    """Load + scan each template once per run, shared by the sheets bound to it."""

    def __init__(self) -> None:
        self._entries: dict[Path, tuple[TemplateSource, frozenset[Placeholder]]] = {}

    def get(self, path: Path) -> tuple[TemplateSource, frozenset[Placeholder]]:
        if path not in self._entries:
            source = TemplateSource.load(path)
            placeholders = scan_placeholders(source)
            logger.info(
                "template=%s placeholders=%s",
                source.name,
                sorted(p.full_marker for p in placeholders),
            )
            self._entries[path] = (source, placeholders)
        return self._entries[path]


def _process_sheet(
    sheet_name: str,
    records: list[TabularRecord],
    template_path: Path,
    output_dir: Path,
    config: GenerationConfig,
    templates: _TemplateCache,
    error_log: ErrorLogBuffer,
    cancel_event: threading.Event | None,
) -> SheetStat:
    start = datetime.now(UTC)
    logger.info("Processing sheet '%s' with template '%s'...", sheet_name, template_path.name)

    # TEMPLATE_SCANNED
    source, placeholders = templates.get(template_path)
    if not placeholders:
        logger.warning(
            "no placeholders found in template '%s'; skipping sheet '%s'",
            source.name,
            sheet_name,
        )
        return SheetStat(sheet_name, source.name, SheetStatus.SKIPPED_NO_PLACEHOLDERS)
    if not records:
        logger.warning("sheet '%s' has no data records; skipping", sheet_name)
        return SheetStat(sheet_name, source.name, SheetStatus.SKIPPED_NO_RECORDS)

    # MAPPING_LOGGED
    _log_mapping(placeholders, records[0])

    # RECORDS_RENDERED
    renderer = DocumentRenderer(
        source,
        placeholders,
        formatting=config.formatting,
        single_placeholder_per_paragraph=config.single_placeholder_per_paragraph,
        fixed_values=config.fixed_values,
    )
    sheet_dir = output_dir / config.output_subdir / source.stem / sanitize_file_name(sheet_name)
    jobs = iter_record_jobs(records, sheet_dir, config.naming_columns)

    with ProgressTracker(len(records), description=sheet_name) as progress:

        def collect(outcome: RecordOutcome) -> None:
            progress.advance(outcome.ok)
            if outcome.ok:
                logger.debug("written %s", outcome.destination)
                return
            logger.error(
                "cannot generate %s (row=%s): %s",
                outcome.destination.name,
                outcome.record.row_number,
                outcome.error,
            )
            error_log.append(
                ErrorRecord.create(
                    template=source.name,
                    sheet=sheet_name,
                    row=outcome.record.row_number,
                    error_type=outcome.error_type or "UNKNOWN_ERROR",
                    message=outcome.error or "",
                )
            )

        if config.workers > 1:
            cancelled = _run_pool(renderer, jobs, config.workers, cancel_event, collect)
        else:
            cancelled = _run_sequential(renderer, jobs, cancel_event, collect)

    elapsed = (datetime.now(UTC) - start).total_seconds()
    stat = SheetStat(
        sheet_name=sheet_name,
        template_name=source.name,
        status=SheetStatus.CANCELLED if cancelled else SheetStatus.GENERATED,
        generated=progress.completed,
        failed=progress.failed,
        output_dir=sheet_dir,
        elapsed_seconds=elapsed,
    )
    logger.info(
        "%d files created for sheet '%s' in %s",
        stat.generated,
        sheet_name,
        sheet_dir.absolute(),
    )
    return stat


def generate_all(
    templates: Sequence[Path],
    data_path: Path,
    output_dir: Path,
    config: GenerationConfig | None = None,
    *,
    resolver: BindingResolver | None = None,
    cancel_event: threading.Event | None = None,
) -> GenerationResult:
    """Generate one document per record for every sheet with a template.

    Args:
        templates: template paths in the order supplied by the user
        data_path: .xlsx workbook
        output_dir: output root
        config: run configuration (defaults when None)
        resolver: sheet → template strategy; defaults to the keyword /
            sheet-name / sole-template chain built from `config.binding_rules`
        cancel_event: when set, no new record is scheduled

    Returns:
        GenerationResult with per-sheet statistics

    Raises:
        ProcessingError: data file or a bound template cannot be read
    """
    cfg = config if config is not None else GenerationConfig()
    chain = resolver if resolver is not None else default_resolver(cfg.binding_rules)
    template_paths = [Path(t) for t in templates]
    start_time = datetime.now(UTC)
    error_log = ErrorLogBuffer(Path(cfg.error_log_dir))

    # DATA_LOADED
    logger.info("Reading data file %s ...", data_path)
    try:
        data = read_sheet_records(Path(data_path))
    except DataFileError as e:
        raise ProcessingError(str(e)) from e

    if not any(data.values()):
        logger.warning("no data found in data file %s", data_path)
        end_time = datetime.now(UTC)
        return GenerationResult(
            total_generated=0,
            total_failed=0,
            skipped_sheets=0,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - start_time).total_seconds(),
            sheet_stats=[],
            no_data=True,
        )

    logger.info("Detected sheets: %s", list(data.keys()))
    logger.info("%d records total", sum(len(r) for r in data.values()))

    binding = build_binding(data.keys(), template_paths, chain)
    cache = _TemplateCache()
    sheet_stats: list[SheetStat] = []
    cancelled = False

    try:
        for sheet_name, records in data.items():
            template_path = binding.get(sheet_name)
            if cancelled or _is_cancelled(cancel_event):
                cancelled = True
                sheet_stats.append(
                    SheetStat(
                        sheet_name,
                        template_path.name if template_path else None,
                        SheetStatus.CANCELLED,
                    )
                )
                continue
            if template_path is None:
                logger.warning("no template specified for sheet '%s'; skipping this sheet", sheet_name)
                sheet_stats.append(SheetStat(sheet_name, None, SheetStatus.SKIPPED_NO_TEMPLATE))
                continue
            try:
                stat = _process_sheet(
                    sheet_name,
                    records,
                    template_path,
                    Path(output_dir),
                    cfg,
                    cache,
                    error_log,
                    cancel_event,
                )
            except TemplateUnreadableError as e:
                raise ProcessingError(str(e)) from e
            sheet_stats.append(stat)
            if stat.status is SheetStatus.CANCELLED:
                cancelled = True
    finally:
        # 途中で致命的エラーになっても、それまでの失敗記録は残す
        try:
            written = error_log.flush()
            if written is not None:
                logger.info("error log written: %s", written)
        except OSError as e:
            logger.warning("cannot write error log: %s", e)

    for stat in sheet_stats:
        logger.info(render_sheet_line(stat))

    total_generated = sum(s.generated for s in sheet_stats)
    total_failed = sum(s.failed for s in sheet_stats)
    skipped = sum(1 for s in sheet_stats if s.status.skipped)
    end_time = datetime.now(UTC)
    if cancelled:
        logger.warning("generation cancelled: %d files created", total_generated)
    else:
        logger.info("Generation complete: %d files created in %s", total_generated, Path(output_dir).absolute())

    return GenerationResult(
        total_generated=total_generated,
        total_failed=total_failed,
        skipped_sheets=skipped,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        sheet_stats=sheet_stats,
        cancelled=cancelled,
    )
