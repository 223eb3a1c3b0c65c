from __future__ import annotations

from pathlib import Path

import pytest

from tessera.cli import main as cli_main

"""End-to-end runs through the CLI with real .docx / .xlsx files."""

pytestmark = pytest.mark.integration


def _out(root: Path, template: str, sheet: str) -> Path:
    return root / "generated" / template / sheet


def test_single_record_greeting(temp_workdir: Path, make_template, make_workbook, docx_texts, capsys):
    tpl = make_template(
        temp_workdir / "templates" / "certificate.docx",
        paragraphs=[["Dear ${fullName}, congratulations on ${award}."]],
    )
    data = make_workbook(
        temp_workdir / "data" / "one.xlsx",
        {"Level 1": [["fullName", "award"], ["Ada Lovelace", "Distinction"]]},
    )
    out = temp_workdir / "output"

    code = cli_main(["-t", str(tpl), "-d", str(data), "-o", str(out)])

    assert code == 0
    produced = _out(out, "certificate", "Level 1") / "Ada Lovelace.docx"
    assert produced.exists()
    assert docx_texts(produced) == ["Dear Ada Lovelace, congratulations on Distinction."]
    assert "SUMMARY sheets=1 generated=1 failed=0 skipped_sheets=0" in capsys.readouterr().out


def test_header_only_sheet_produces_nothing(award_template, levels_workbook, temp_workdir: Path, capsys):
    out = temp_workdir / "output"

    code = cli_main(["-t", str(award_template), "-d", str(levels_workbook), "-o", str(out)])

    assert code == 0
    root = out / "generated" / "certificate"
    assert sorted(p.name for p in root.iterdir()) == ["Level 1"]
    assert len(list((root / "Level 1").glob("*.docx"))) == 3
    stdout = capsys.readouterr().out
    assert "INFO Detected sheets: ['Level 1']" in stdout


def test_unmatched_sheet_is_warned_and_skipped(
    temp_workdir: Path, make_template, make_workbook, docx_texts, capsys
):
    cert = make_template(
        temp_workdir / "templates" / "Certificate.docx",
        paragraphs=[["This certifies that"], ["${FULL NAME}"], ["completed on ${DATE}"]],
    )
    dipl = make_template(
        temp_workdir / "templates" / "diploma.docx",
        paragraphs=[["Diploma awarded to ${fullName}"]],
        table=[[["Grade"], ["${grade}"]]],
    )
    data = make_workbook(
        temp_workdir / "data" / "cohort.xlsx",
        {
            "Level 1": [["FULL NAME", "DATE"], ["Ada Lovelace", "20th September 2025"]],
            "Level 2": [["fullName", "grade"], ["Alan Turing", "A"], ["Grace Hopper", "B"]],
            "Level 3": [["fullName"], ["Edsger Dijkstra"]],
        },
    )
    out = temp_workdir / "output"

    code = cli_main(["-t", str(cert), str(dipl), "-d", str(data), "-o", str(out)])

    stdout = capsys.readouterr().out
    assert code == 0
    assert "WARN no template specified for sheet 'Level 3'; skipping this sheet" in stdout
    assert "SUMMARY sheets=3 generated=3 failed=0 skipped_sheets=1" in stdout

    level1 = _out(out, "Certificate", "Level 1") / "Ada Lovelace.docx"
    assert docx_texts(level1) == ["This certifies that", "Ada Lovelace", "completed on 20th September 2025"]
    level2 = _out(out, "diploma", "Level 2")
    assert sorted(p.name for p in level2.iterdir()) == ["Alan Turing.docx", "Grace Hopper.docx"]
    assert "B" in docx_texts(level2 / "Grace Hopper.docx")
    assert not any(p.name == "Level 3" for p in out.rglob("*"))


def test_parallel_workers_via_env(award_template, levels_workbook, temp_workdir: Path, monkeypatch, capsys):
    monkeypatch.setenv("TESSERA_WORKERS", "2")
    out = temp_workdir / "output"
    code = cli_main(["-t", str(award_template), "-d", str(levels_workbook), "-o", str(out)])
    assert code == 0
    assert len(list(_out(out, "certificate", "Level 1").glob("*.docx"))) == 3
    capsys.readouterr()
