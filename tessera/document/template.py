from __future__ import annotations

import os
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from docx import Document
from docx.document import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from docx.table import Table
from docx.text.paragraph import Paragraph
from docx.text.run import Run

"""Template container access.

The scanner and the renderer only need two things from a .docx package:
- the ordered paragraphs of the body and of every table cell
- a fresh, mutable in-memory document per use

TemplateSource reads the template bytes once; `open()` builds a new
python-docx Document from those bytes every time, so records (and worker
threads) never share mutable document state.
"""

__all__ = [
    "TemplateUnreadableError",
    "TemplateSource",
    "iter_paragraphs",
    "iter_runs",
    "logical_text",
]


class TemplateUnreadableError(Exception):
    """Raised when a template is missing, unreadable or not a .docx package."""


@dataclass(frozen=True)
class TemplateSource:
    path: Path
    data: bytes

    @classmethod
    def load(cls, path: Path) -> TemplateSource:
        """Read and validate a template.

        Raises:
            TemplateUnreadableError: missing file, permission problem or a
                file python-docx cannot open
        """
        path = Path(path)
        if not path.is_file() or not os.access(path, os.R_OK):
            raise TemplateUnreadableError(f"template file not found or is not readable: {path}")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise TemplateUnreadableError(f"cannot read template {path}: {e}") from e
        source = cls(path=path, data=data)
        source.open()  # 破損パッケージはここで検出
        return source

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def stem(self) -> str:
        return self.path.stem

    def open(self) -> DocxDocument:
        try:
            return Document(BytesIO(self.data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
            raise TemplateUnreadableError(f"not a valid .docx template {self.path}: {e}") from e


def _iter_table_paragraphs(table: Table, seen: set[object]) -> Iterator[Paragraph]:
    for row in table.rows:
        for cell in row.cells:
            # 結合セルは row.cells に同じ <w:tc> が複数回現れる
            # 要素自体を保持する (lxml プロキシが再生成されると id が変わる)
            if cell._tc in seen:
                continue
            seen.add(cell._tc)
            yield from cell.paragraphs
            for nested in cell.tables:
                yield from _iter_table_paragraphs(nested, seen)


def iter_paragraphs(document: DocxDocument) -> Iterator[Paragraph]:
    """Yield body paragraphs, then every paragraph inside every table cell."""
    yield from document.paragraphs
    seen: set[object] = set()
    for table in document.tables:
        yield from _iter_table_paragraphs(table, seen)


# ハイパーリンク等でラップされた run も含める
_RUN_XPATH = "./w:r | ./w:hyperlink/w:r | ./w:ins/w:r | ./w:smartTag/w:r"


def iter_runs(paragraph: Paragraph) -> list[Run]:
    """Every text run of `paragraph` in document order.

    `Paragraph.runs` only returns the `<w:r>` children of the paragraph and
    misses runs wrapped in hyperlinks or tracked insertions.
    """
    return [Run(r, paragraph) for r in paragraph._p.xpath(_RUN_XPATH)]


def logical_text(paragraph: Paragraph) -> str:
    """Concatenate run text in document order.

    Word frequently splits one visible word over several runs (spell check,
    revision ids), so a marker like `${fullName}` may arrive as `${full` +
    `Name}`; matching always happens on this reconstruction.
    """
    return "".join(run.text for run in iter_runs(paragraph))
