from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from .. import __version__
from ..config.loader import ConfigError, GenerationConfig, load_config, load_env_file
from ..document.scanner import scan_placeholders
from ..document.template import TemplateUnreadableError
from ..excel.reader import DataFileError, normalize_sheet, read_excel_file
from ..logging.init import log_summary, set_debug, setup_logging
from ..services.binding import build_binding, default_resolver
from ..services.orchestrator import ProcessingError, generate_all
from ..services.summary import render_summary_line
from .interactive import InteractivePrompter
from .validation import InputValidationError, validate_inputs

"""CLI entrypoint.

Flow:
- load .env, then config (config/tessera.yml when present, or --config)
- collect inputs from flags or interactively (--interactive)
- validate inputs (fatal → exit 1)
- run the orchestrator and print the SUMMARY line

Exit codes:
    0   run completed (skipped sheets / warnings included)
    1   fatal: config, input validation, unreadable data/template, unexpected error
    2   --strict and at least one document failed
    130 cancelled with Ctrl+C
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_RECORD_FAILURES = 2
EXIT_CANCELLED = 130

DEFAULT_OUTPUT = "./output"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="tessera",
        description="Generates personalized documents from Word templates and an Excel data file.",
    )
    p.add_argument(
        "-t",
        "--template",
        dest="templates",
        nargs="+",
        action="extend",
        type=Path,
        metavar="PATH",
        help="One or more Word template files (.docx)",
    )
    p.add_argument("-d", "--data", type=Path, metavar="PATH", help="Excel data file (.xlsx)")
    p.add_argument(
        "-o", "--output", type=Path, default=Path(DEFAULT_OUTPUT), metavar="DIR",
        help=f"Output directory for generated documents (default: {DEFAULT_OUTPUT})",
    )
    p.add_argument("-i", "--interactive", action="store_true", help="Prompt for the inputs")
    p.add_argument("-c", "--config", type=Path, metavar="PATH", help="YAML config file")
    p.add_argument("--workers", type=int, metavar="N", help="Number of parallel render workers")
    p.add_argument(
        "--single-placeholder-per-paragraph",
        action="store_true",
        default=None,
        help="Substitute only the first placeholder of each paragraph (legacy behaviour)",
    )
    p.add_argument("--strict", action="store_true", help="Exit with 2 when any document failed")
    p.add_argument(
        "--inspect", action="store_true",
        help="Print sheets, placeholders and template binding then exit",
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def _apply_cli_overrides(cfg: GenerationConfig, args: argparse.Namespace) -> GenerationConfig:
    changes = {}
    if args.workers is not None:
        if args.workers < 1:
            raise ConfigError(f"--workers must be >= 1: {args.workers}")
        changes["workers"] = args.workers
    if args.single_placeholder_per_paragraph:
        changes["single_placeholder_per_paragraph"] = True
    return replace(cfg, **changes) if changes else cfg


def _inspect(templates: list[Path], data: Path, cfg: GenerationConfig) -> int:
    try:
        raw = read_excel_file(data)
    except DataFileError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"DATA: {data.name}")
    for sname, df in raw.items():
        if df.shape[0] <= 1:
            print(f"  SHEET: {sname} (ignored: no data rows)")
            continue
        sheet = normalize_sheet(df, sname)
        print(f"  SHEET: {sname} cols={sheet.columns} records={len(sheet.records)}")
    for template in templates:
        try:
            placeholders = scan_placeholders(template)
        except TemplateUnreadableError as e:
            print(f"inspect: {e}")
            return EXIT_FATAL
        print(f"TEMPLATE: {template.name} placeholders={sorted(p.full_marker for p in placeholders)}")
    binding = build_binding(raw.keys(), templates, default_resolver(cfg.binding_rules))
    for sname in raw:
        target = binding.get(sname)
        print(f"  BIND: {sname} -> {target.name if target else '(none)'}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はテストからの明示的な空引数)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    load_env_file(Path(".env"), override=True)
    try:
        cfg = _apply_cli_overrides(load_config(args.config, required=args.config is not None), args)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.interactive:
        logger.info("Starting Tessera in interactive mode...")
        try:
            collected = InteractivePrompter(default_output=str(args.output)).collect_input()
        except (EOFError, KeyboardInterrupt):
            logger.error("input: interactive session aborted")
            return EXIT_FATAL
        templates = collected.template_paths
        data = collected.data_path
        output = collected.output_directory
    else:
        if not args.templates or args.data is None:
            logger.error("missing required arguments (--template, --data). Use --help or --interactive.")
            return EXIT_FATAL
        templates, data, output = list(args.templates), args.data, args.output

    try:
        validate_inputs(templates, data, output)
    except InputValidationError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL

    if args.inspect:
        return _inspect(templates, data, cfg)

    logger.info(f"Generating from {len(templates)} template(s) and {data} into {output}")
    try:
        result = generate_all(templates, data, output, cfg)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.warning("cancelled by user")
        return EXIT_CANCELLED
    except Exception as e:
        logger.error(f"unexpected error during generation: {e}")
        logger.debug("traceback", exc_info=True)
        return EXIT_FATAL

    # log_summary が "SUMMARY " ラベルを付与するので本文のみ渡す
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.cancelled:
        return EXIT_CANCELLED
    if args.strict and result.total_failed > 0:
        return EXIT_RECORD_FAILURES
    return EXIT_SUCCESS

