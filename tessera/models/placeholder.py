from __future__ import annotations

from dataclasses import dataclass

"""Placeholder model.

A placeholder is one unique `${name}` marker discovered in a template. The
literal marker text takes part in identity, so `${name}` and `${ name }` are
two different placeholders even though a lookup may resolve them alike.
"""

__all__ = [
    "Placeholder",
]


@dataclass(frozen=True)
class Placeholder:
    """A `${...}` marker found in a template.

    Attributes:
        variable_name: Text inside the delimiters, e.g. ``fullName``
        full_marker: Literal marker including delimiters, e.g. ``${fullName}``
    """
    variable_name: str
    full_marker: str

    def __post_init__(self) -> None:
        if not self.variable_name or not self.variable_name.strip():
            raise ValueError("variable name cannot be blank")
        if not self.full_marker or not self.full_marker.strip():
            raise ValueError("full marker cannot be blank")
