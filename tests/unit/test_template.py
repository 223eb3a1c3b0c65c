from __future__ import annotations

from pathlib import Path

import pytest
from docx import Document

from tessera.document.template import (
    TemplateSource,
    TemplateUnreadableError,
    iter_paragraphs,
    iter_runs,
    logical_text,
)


def test_load_reads_bytes_once(award_template: Path):
    source = TemplateSource.load(award_template)
    assert source.name == "certificate.docx"
    assert source.stem == "certificate"
    assert source.data == award_template.read_bytes()
    # open() は毎回独立した Document を返す
    first, second = source.open(), source.open()
    first.paragraphs[0].runs[0].text = "changed"
    assert second.paragraphs[0].text == "Certificate of Achievement"


def test_load_missing(temp_workdir: Path):
    with pytest.raises(TemplateUnreadableError, match="not found"):
        TemplateSource.load(temp_workdir / "templates" / "missing.docx")


def test_load_directory_is_rejected(temp_workdir: Path):
    with pytest.raises(TemplateUnreadableError):
        TemplateSource.load(temp_workdir / "templates")


def test_logical_text_joins_runs():
    p = Document().add_paragraph()
    for text in ("${", "full", "Name", "}"):
        p.add_run(text)
    assert logical_text(p) == "${fullName}"


def test_iter_paragraphs_order_merged_and_nested(temp_workdir: Path):
    doc = Document()
    doc.add_paragraph("body")
    table = doc.add_table(rows=2, cols=2)
    merged = table.cell(0, 0).merge(table.cell(0, 1))
    merged.paragraphs[0].text = "merged"
    table.cell(1, 0).paragraphs[0].text = "left"
    inner = table.cell(1, 1).add_table(rows=1, cols=1)
    inner.cell(0, 0).paragraphs[0].text = "nested"
    path = temp_workdir / "templates" / "layout.docx"
    doc.save(path)

    texts = [p.text for p in iter_paragraphs(TemplateSource.load(path).open())]
    assert texts[0] == "body"
    assert texts.count("merged") == 1
    assert "left" in texts
    assert "nested" in texts
    assert texts.index("merged") < texts.index("left") < texts.index("nested")


def test_iter_runs_includes_hyperlink_runs_in_order(add_hyperlink):
    p = Document().add_paragraph()
    p.add_run("Dear ${full")
    add_hyperlink(p, "Name}")
    p.add_run(", hi")
    assert [r.text for r in iter_runs(p)] == ["Dear ${full", "Name}", ", hi"]
    assert logical_text(p) == "Dear ${fullName}, hi"
    # Paragraph.runs はハイパーリンク内の run を返さない
    assert len(p.runs) == 2
