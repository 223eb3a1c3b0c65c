from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

"""Input validation for the three run inputs (templates, data file, output dir)."""

__all__ = [
    "TEMPLATE_EXTENSION",
    "DATA_EXTENSION",
    "InputValidationError",
    "file_exists_and_is_readable",
    "has_extension",
    "create_directory_if_not_exists",
    "validate_inputs",
]

TEMPLATE_EXTENSION = ".docx"
DATA_EXTENSION = ".xlsx"


class InputValidationError(Exception):
    """Raised when an input path is missing, unreadable or has the wrong extension."""


def file_exists_and_is_readable(path: Path | None) -> bool:
    return path is not None and path.is_file() and os.access(path, os.R_OK)


def has_extension(path: Path | None, extension: str | None) -> bool:
    """Case-insensitive extension check (`.DOCX` is accepted)."""
    if path is None or extension is None:
        return False
    return path.name.lower().endswith(extension.lower())


def create_directory_if_not_exists(path: Path | None) -> bool:
    """True if `path` is (now) a directory. Never raises."""
    if path is None:
        return False
    if path.exists():
        return path.is_dir()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return True


def validate_inputs(templates: Sequence[Path], data: Path, output: Path) -> None:
    """Validate all inputs before any processing starts.

    Raises:
        InputValidationError: first problem found
    """
    if not templates:
        raise InputValidationError("at least one template file is required")
    for template in templates:
        if not file_exists_and_is_readable(template) or not has_extension(template, TEMPLATE_EXTENSION):
            raise InputValidationError(f"invalid template file: {template}")
    if not file_exists_and_is_readable(data) or not has_extension(data, DATA_EXTENSION):
        raise InputValidationError(f"invalid data file: {data}")
    if not create_directory_if_not_exists(output):
        raise InputValidationError(f"could not create output directory: {output}")
