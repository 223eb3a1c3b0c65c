# Shared pytest fixtures
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

import pandas as pd
import pytest
from docx import Document
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.text.paragraph import Paragraph

from tessera.logging.init import APP_LOGGER_NAME, reset_logging

# 段落 = run テキストのリスト。run を分けることで Word の分割 run を再現する
Runs = Sequence[str]


@pytest.fixture(autouse=True)
def _clean_logging():
    # capsys の stdout 差し替えに追従させるため毎テストでハンドラを作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(tmp_path: Path, monkeypatch) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    (tmp_path / "templates").mkdir()
    monkeypatch.chdir(tmp_path)
    for var in ("TESSERA_OUTPUT_SUBDIR", "TESSERA_WORKERS", "TESSERA_ERROR_LOG_DIR"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture()
def tessera_caplog(caplog):
    """caplog that also sees records of the non-propagating `tessera` logger."""
    logger = logging.getLogger(APP_LOGGER_NAME)
    previous = logger.propagate
    logger.propagate = True
    caplog.set_level(logging.DEBUG, logger=APP_LOGGER_NAME)
    yield caplog
    logger.propagate = previous


def _build_docx(
    path: Path,
    paragraphs: Sequence[Runs] = (),
    table: Sequence[Sequence[Runs]] | None = None,
) -> Path:
    doc = Document()
    for runs in paragraphs:
        p = doc.add_paragraph()
        for text in runs:
            p.add_run(text)
    if table:
        t = doc.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, runs in enumerate(row):
                p = t.cell(r, c).paragraphs[0]
                for text in runs:
                    p.add_run(text)
    path.parent.mkdir(parents=True, exist_ok=True)
    doc.save(path)
    return path


def _add_hyperlink(paragraph: Paragraph, text: str, url: str = "https://example.com") -> None:
    """Append `<w:hyperlink><w:r><w:t>text</w:t></w:r></w:hyperlink>` to `paragraph`."""
    r_id = paragraph.part.relate_to(url, RT.HYPERLINK, is_external=True)
    link = OxmlElement("w:hyperlink")
    link.set(qn("r:id"), r_id)
    run = OxmlElement("w:r")
    t = OxmlElement("w:t")
    t.set(qn("xml:space"), "preserve")
    t.text = text
    run.append(t)
    link.append(run)
    paragraph._p.append(link)


def _build_xlsx(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


def _docx_paragraph_texts(path: Path) -> list[str]:
    doc = Document(str(path))
    texts = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                texts.extend(p.text for p in cell.paragraphs)
    return texts


@pytest.fixture()
def make_template() -> Callable[..., Path]:
    return _build_docx


@pytest.fixture()
def make_workbook() -> Callable[..., Path]:
    return _build_xlsx


@pytest.fixture()
def docx_texts() -> Callable[[Path], list[str]]:
    return _docx_paragraph_texts


@pytest.fixture()
def add_hyperlink() -> Callable[..., None]:
    return _add_hyperlink


@pytest.fixture()
def award_template(temp_workdir: Path) -> Path:
    """Certificate template with a marker split across runs (`${full` + `Name}`)."""
    return _build_docx(
        temp_workdir / "templates" / "certificate.docx",
        paragraphs=[
            ["Certificate of Achievement"],
            ["Dear ", "${full", "Name}", ", congratulations on ${award}."],
            ["Awarded on ${date}"],
        ],
    )


@pytest.fixture()
def levels_workbook(temp_workdir: Path) -> Path:
    return _build_xlsx(
        temp_workdir / "data" / "candidates.xlsx",
        {
            "Level 1": [
                ["fullName", "award", "date"],
                ["Ada Lovelace", "Distinction", "20th September 2025"],
                ["Alan Turing", "Merit", "20th September 2025"],
                ["Grace Hopper", "Pass", "20th September 2025"],
            ],
            "Level 2": [
                ["fullName", "award", "date"],
            ],
        },
    )
