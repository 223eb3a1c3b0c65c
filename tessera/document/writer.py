from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from copy import deepcopy
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

from docx.document import Document as DocxDocument
from docx.oxml.ns import qn
from docx.text.paragraph import Paragraph

from ..models.placeholder import Placeholder
from ..models.tabular_record import TabularRecord
from .formatting import DEFAULT_FORMATTING, FormattingTable
from .template import TemplateSource, iter_paragraphs, iter_runs, logical_text

"""Substitution engine: one populated .docx per data record.

Per paragraph (body and table cells alike):
1. rebuild the logical text from the runs
2. pick the placeholders whose marker occurs in it (ordered by first occurrence)
3. substitute on the logical text
4. drop the original runs (hyperlink runs included) and put a single run
   holding the result where the first one was; it keeps the run properties
   of the first original run
5. apply the variable-specific formatting to that run

Two paragraph modes exist:
- multi (default): every marker in the paragraph is substituted in one pass
- single: only the earliest placeholder is substituted, remaining markers are
  left as-is (legacy certificate templates had one marker per paragraph)
"""

__all__ = [
    "DocumentRenderer",
]

logger = logging.getLogger(__name__)


class DocumentRenderer:
    """Render a template for individual records.

    The template bytes are read once; every call to `render`/`write` works on
    a freshly opened Document, so one renderer may be shared by several
    worker threads.
    """

    def __init__(
        self,
        template: TemplateSource | Path,
        placeholders: Iterable[Placeholder],
        *,
        formatting: FormattingTable = DEFAULT_FORMATTING,
        single_placeholder_per_paragraph: bool = False,
        fixed_values: Mapping[str, str] | None = None,
    ) -> None:
        self.template = template if isinstance(template, TemplateSource) else TemplateSource.load(template)
        self.placeholders: frozenset[Placeholder] = frozenset(placeholders)
        self.formatting = formatting
        self.single_placeholder_per_paragraph = single_placeholder_per_paragraph
        self._fixed_values = {k.casefold(): str(v) for k, v in (fixed_values or {}).items()}

    def resolve_value(self, placeholder: Placeholder, record: TabularRecord) -> str:
        """Bound value for a placeholder: fixed override > record cell > ""."""
        fixed = self._fixed_values.get(placeholder.variable_name.casefold())
        if fixed is not None:
            return fixed
        value = record.get_value(placeholder.variable_name)
        return value if value is not None else ""

    def build(self, record: TabularRecord) -> DocxDocument:
        """Return a new in-memory document populated for `record`."""
        document = self.template.open()
        values = {p: self.resolve_value(p, record) for p in self.placeholders}
        for paragraph in iter_paragraphs(document):
            self._replace_in_paragraph(paragraph, values)
        return document

    def render(self, record: TabularRecord) -> bytes:
        buf = BytesIO()
        self.write(record, buf)
        return buf.getvalue()

    def write(self, record: TabularRecord, stream: BinaryIO) -> None:
        self.build(record).save(stream)

    def _matched_placeholders(self, text: str) -> list[Placeholder]:
        hits = [(text.find(p.full_marker), p.full_marker, p) for p in self.placeholders]
        return [p for pos, _, p in sorted(h for h in hits if h[0] >= 0)]

    def _replace_in_paragraph(self, paragraph: Paragraph, values: Mapping[Placeholder, str]) -> None:
        text = logical_text(paragraph)
        if "${" not in text:
            return
        matched = self._matched_placeholders(text)
        if not matched:
            return

        if self.single_placeholder_per_paragraph:
            applied = matched[:1]
            new_text = text.replace(applied[0].full_marker, values[applied[0]])
        else:
            applied = matched
            by_marker = {p.full_marker: values[p] for p in applied}
            # 長いマーカーを先に試す (一方が他方の接頭辞になる場合)
            alternation = "|".join(
                re.escape(m) for m in sorted(by_marker, key=len, reverse=True)
            )
            new_text = re.sub(alternation, lambda m: by_marker[m.group(0)], text)

        run = _replace_runs(paragraph, new_text)
        for placeholder in applied:
            self.formatting.apply(run, placeholder.variable_name)


def _replace_runs(paragraph: Paragraph, text: str):
    """Replace every run of `paragraph` by one run carrying `text`.

    The new run takes the place of the first original run. When that run sits
    inside a wrapper (hyperlink, tracked insertion) the new run goes in front
    of the wrapper; wrappers left without runs are dropped.
    """
    p = paragraph._p
    old = [run._r for run in iter_runs(paragraph)]
    new_run = paragraph.add_run(text)
    if not old:
        return new_run
    first = old[0]
    base_rpr = deepcopy(first.rPr) if first.rPr is not None else None
    anchor = first if first.getparent() is p else first.getparent()
    # addprevious は要素を移動する (末尾に追加された run を元の位置へ)
    anchor.addprevious(new_run._r)
    wrappers = []
    for r in old:
        parent = r.getparent()
        parent.remove(r)
        if parent is not p and parent not in wrappers:
            wrappers.append(parent)
    for wrapper in wrappers:
        if wrapper.find(qn("w:r")) is None:
            p.remove(wrapper)
    if base_rpr is not None:
        new_run._r.insert(0, base_rpr)
    return new_run
