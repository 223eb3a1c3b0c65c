from __future__ import annotations

import os
from pathlib import Path

import pytest

from tessera.cli.validation import (
    InputValidationError,
    create_directory_if_not_exists,
    file_exists_and_is_readable,
    has_extension,
    validate_inputs,
)


def test_has_extension_is_case_insensitive():
    assert has_extension(Path("Award.DOCX"), ".docx")
    assert has_extension(Path("a.xlsx"), ".XLSX")
    assert not has_extension(Path("a.xls"), ".xlsx")
    assert not has_extension(None, ".docx")
    assert not has_extension(Path("a.docx"), None)


def test_file_exists_and_is_readable(tmp_path: Path):
    f = tmp_path / "a.docx"
    assert not file_exists_and_is_readable(f)
    f.write_bytes(b"x")
    assert file_exists_and_is_readable(f)
    assert not file_exists_and_is_readable(tmp_path)
    assert not file_exists_and_is_readable(None)


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="permission bits not enforced")
def test_unreadable_file(tmp_path: Path):
    f = tmp_path / "secret.docx"
    f.write_bytes(b"x")
    f.chmod(0)
    try:
        assert not file_exists_and_is_readable(f)
    finally:
        f.chmod(0o644)


def test_create_directory(tmp_path: Path):
    target = tmp_path / "a" / "b"
    assert create_directory_if_not_exists(target)
    assert target.is_dir()
    assert create_directory_if_not_exists(target)
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    assert not create_directory_if_not_exists(blocker)
    assert not create_directory_if_not_exists(blocker / "child")
    assert not create_directory_if_not_exists(None)


def test_validate_inputs(award_template: Path, levels_workbook: Path, temp_workdir: Path):
    out = temp_workdir / "output"
    validate_inputs([award_template], levels_workbook, out)
    assert out.is_dir()


@pytest.mark.parametrize(
    "case,message",
    [
        ("no_templates", "at least one template file is required"),
        ("bad_template", "invalid template file"),
        ("bad_data", "invalid data file"),
        ("bad_output", "could not create output directory"),
    ],
)
def test_validate_inputs_errors(award_template, levels_workbook, temp_workdir: Path, case, message):
    templates = [award_template]
    data = levels_workbook
    out = temp_workdir / "output"
    if case == "no_templates":
        templates = []
    elif case == "bad_template":
        templates = [award_template, temp_workdir / "templates" / "missing.docx"]
    elif case == "bad_data":
        data = award_template
    else:
        out = levels_workbook
    with pytest.raises(InputValidationError, match=message):
        validate_inputs(templates, data, out)
