from __future__ import annotations

import logging
import re
from pathlib import Path

from ..models.placeholder import Placeholder
from .template import TemplateSource, iter_paragraphs, logical_text

"""Placeholder scanner.

Finds every unique `${name}` marker in a template. Matching runs on the
logical text of each paragraph so that markers split across runs are found.
"""

__all__ = [
    "PLACEHOLDER_PATTERN",
    "find_placeholders_in_text",
    "scan_placeholders",
]

logger = logging.getLogger(__name__)

# sigil + "{" + 1文字以上の非 "}" (非貪欲) + "}"
PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+?)\}")


def find_placeholders_in_text(text: str) -> set[Placeholder]:
    found: set[Placeholder] = set()
    for match in PLACEHOLDER_PATTERN.finditer(text):
        if not match.group(1).strip():
            logger.debug("ignoring blank placeholder marker %r", match.group(0))
            continue
        found.add(Placeholder(variable_name=match.group(1), full_marker=match.group(0)))
    return found


def scan_placeholders(template: TemplateSource | Path) -> frozenset[Placeholder]:
    """Return all unique placeholders of a template.

    Args:
        template: a loaded TemplateSource or a path to a .docx file

    Returns:
        Frozen set of placeholders (possibly empty)

    Raises:
        TemplateUnreadableError: template missing or not a .docx package
    """
    source = template if isinstance(template, TemplateSource) else TemplateSource.load(template)
    document = source.open()
    found: set[Placeholder] = set()
    for paragraph in iter_paragraphs(document):
        found |= find_placeholders_in_text(logical_text(paragraph))
    logger.debug("template=%s placeholders=%s", source.name, sorted(p.full_marker for p in found))
    return frozenset(found)
