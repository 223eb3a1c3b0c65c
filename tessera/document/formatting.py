from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from docx.shared import Pt
from docx.text.run import Run

"""Variable-specific run formatting.

A FormattingTable is an ordered, immutable list of rules mapping a
variable-name pattern to a formatting directive. The renderer applies the
rule of each substituted placeholder to the run it creates; nothing else in
the substitution algorithm knows about fonts.
"""

__all__ = [
    "FormattingRule",
    "FormattingTable",
    "DEFAULT_FORMATTING",
]


@dataclass(frozen=True)
class FormattingRule:
    """Formatting directive for variables whose name matches `pattern`.

    The pattern is a regular expression matched against the whole variable
    name, ignoring case. Attributes left as None are not touched.
    """
    pattern: str
    font_family: str | None = None
    font_size: float | None = None
    bold: bool | None = None
    italic: bool | None = None
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            compiled = re.compile(self.pattern, re.IGNORECASE)
        except re.error as e:
            raise ValueError(f"invalid formatting pattern {self.pattern!r}: {e}") from e
        object.__setattr__(self, "_regex", compiled)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> FormattingRule:
        return cls(
            pattern=raw["pattern"],
            font_family=raw.get("font_family"),
            font_size=raw.get("font_size"),
            bold=raw.get("bold"),
            italic=raw.get("italic"),
        )

    def matches(self, variable_name: str) -> bool:
        return self._regex.fullmatch(variable_name) is not None

    def apply(self, run: Run) -> None:
        font = run.font
        if self.font_family is not None:
            font.name = self.font_family
        if self.font_size is not None:
            font.size = Pt(self.font_size)
        if self.bold is not None:
            font.bold = self.bold
        if self.italic is not None:
            font.italic = self.italic


@dataclass(frozen=True)
class FormattingTable:
    rules: tuple[FormattingRule, ...] = ()

    @classmethod
    def of(cls, rules: Iterable[FormattingRule]) -> FormattingTable:
        return cls(rules=tuple(rules))

    def lookup(self, variable_name: str) -> FormattingRule | None:
        """First rule whose pattern matches `variable_name`, or None."""
        for rule in self.rules:
            if rule.matches(variable_name):
                return rule
        return None

    def apply(self, run: Run, variable_name: str) -> bool:
        rule = self.lookup(variable_name)
        if rule is None:
            return False
        rule.apply(run)
        return True

    def __len__(self) -> int:
        return len(self.rules)


# 証書テンプレート向け既定値 (氏名は筆記体で大きく、日付は小さく)
DEFAULT_FORMATTING = FormattingTable.of(
    [
        FormattingRule(pattern=r"full\s*name", font_family="Lucida Calligraphy", font_size=22),
        FormattingRule(pattern=r"date", font_family="Swis721 Th TL", font_size=16),
    ]
)
