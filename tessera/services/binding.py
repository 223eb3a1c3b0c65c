from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

"""Sheet → template binding.

Which template renders which sheet is decided by a pluggable resolver:

    resolver.resolve(sheet_name, templates) -> Path | None

The default chain reproduces the historical behaviour (keyword in the
template file name) and adds two fallbacks: a template named after the sheet,
and "only one template given → it renders everything".
"""

__all__ = [
    "BindingResolver",
    "BindingRule",
    "KeywordBindingResolver",
    "SheetNameBindingResolver",
    "SoleTemplateResolver",
    "ChainedBindingResolver",
    "DEFAULT_BINDING_RULES",
    "default_resolver",
    "build_binding",
]

logger = logging.getLogger(__name__)


class BindingResolver(Protocol):
    def resolve(self, sheet_name: str, templates: Sequence[Path]) -> Path | None:
        ...


@dataclass(frozen=True)
class BindingRule:
    """Templates whose file name contains `keyword` render `sheets`."""
    keyword: str
    sheets: tuple[str, ...]

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> BindingRule:
        return cls(keyword=str(raw["keyword"]), sheets=tuple(str(s) for s in raw["sheets"]))


DEFAULT_BINDING_RULES: tuple[BindingRule, ...] = (
    BindingRule(keyword="certificate", sheets=("Level 1", "Kainos OAU")),
    BindingRule(keyword="diploma", sheets=("Level 2",)),
)


class KeywordBindingResolver:
    """Match a keyword in the template file name (case-insensitive).

    Templates are tried in the order they were supplied; the first template
    with a rule listing the sheet wins.
    """

    def __init__(self, rules: Iterable[BindingRule] = DEFAULT_BINDING_RULES) -> None:
        self.rules = tuple(rules)

    def resolve(self, sheet_name: str, templates: Sequence[Path]) -> Path | None:
        wanted = sheet_name.casefold()
        for template in templates:
            file_name = template.name.casefold()
            for rule in self.rules:
                if rule.keyword.casefold() not in file_name:
                    continue
                if any(s.casefold() == wanted for s in rule.sheets):
                    return template
        return None


class SheetNameBindingResolver:
    """Template whose stem equals the sheet name (case-insensitive)."""

    def resolve(self, sheet_name: str, templates: Sequence[Path]) -> Path | None:
        wanted = sheet_name.strip().casefold()
        for template in templates:
            if template.stem.strip().casefold() == wanted:
                return template
        return None


class SoleTemplateResolver:
    """With exactly one template supplied, it renders every sheet."""

    def resolve(self, sheet_name: str, templates: Sequence[Path]) -> Path | None:
        if len(templates) == 1:
            return templates[0]
        return None


class ChainedBindingResolver:
    def __init__(self, resolvers: Iterable[BindingResolver]) -> None:
        self.resolvers = tuple(resolvers)

    def resolve(self, sheet_name: str, templates: Sequence[Path]) -> Path | None:
        for resolver in self.resolvers:
            found = resolver.resolve(sheet_name, templates)
            if found is not None:
                return found
        return None


def default_resolver(rules: Iterable[BindingRule] | None = None) -> ChainedBindingResolver:
    return ChainedBindingResolver(
        [
            KeywordBindingResolver(DEFAULT_BINDING_RULES if rules is None else rules),
            SheetNameBindingResolver(),
            SoleTemplateResolver(),
        ]
    )


def build_binding(
    sheet_names: Iterable[str],
    templates: Sequence[Path],
    resolver: BindingResolver,
) -> dict[str, Path]:
    """Compute the Template-Sheet Binding for the given sheets.

    Sheets without a template are simply absent from the result.
    """
    binding: dict[str, Path] = {}
    for sheet_name in sheet_names:
        template = resolver.resolve(sheet_name, templates)
        if template is None:
            logger.debug("no template resolved for sheet=%s", sheet_name)
            continue
        binding[sheet_name] = template
    return binding
