from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

"""TabularRecord model: one non-blank data row of a worksheet.

Cells are kept as an ordered tuple of (header, value) pairs rather than a dict
so that headers differing only by case survive ingestion; lookups resolve
them deterministically (first column wins).
"""

__all__ = [
    "TabularRecord",
]


@dataclass(frozen=True)
class TabularRecord:
    """Read-only, case-insensitive view over one worksheet row.

    `row_number` is the 1-based worksheet row (header = row 1, first data row
    = row 2). It is only used for diagnostics.
    """
    cells: tuple[tuple[str, str], ...]
    row_number: int = -1

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]], row_number: int = -1) -> TabularRecord:
        return cls(cells=tuple((str(h), str(v)) for h, v in pairs), row_number=row_number)

    @classmethod
    def from_mapping(cls, data: Mapping[str, str], row_number: int = -1) -> TabularRecord:
        return cls.from_pairs(data.items(), row_number=row_number)

    def get_value(self, header: str | None) -> str | None:
        """Return the value for `header`, ignoring case, or None when unknown.

        Comparison uses `str.casefold` (locale independent). When several
        headers fold to the same key the first one in column order wins.
        """
        if header is None:
            return None
        key = header.casefold()
        for name, value in self.cells:
            if name.casefold() == key:
                return value
        return None

    def is_blank(self) -> bool:
        return all(not v.strip() for _, v in self.cells)
