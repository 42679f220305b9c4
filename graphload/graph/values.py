"""
CSV value coercion.

Node CSV headers carry a type hint after a colon (``runways:int``,
``lat:double``, ``code:string``). The hint is resolved once per column into
a ValueKind and reused for every row.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Union

from .errors import ParseError

TypedValue = Union[int, float, str]

_INT_SUFFIXES = {"int", "integer", "long", "short", "byte"}
_FLOAT_SUFFIXES = {"double", "float"}

# Plain ASCII decimal forms only: no digit separators, no NaN or Infinity
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


class ValueKind(Enum):
    INT = "int"
    FLOAT = "float"
    TEXT = "text"

    @classmethod
    def from_header(cls, header: str) -> "ValueKind":
        """Kind named by the header's type suffix; TEXT when absent or unknown."""
        _, sep, suffix = header.partition(":")
        if not sep:
            return cls.TEXT
        suffix = suffix.strip().lower()
        if suffix in _INT_SUFFIXES:
            return cls.INT
        if suffix in _FLOAT_SUFFIXES:
            return cls.FLOAT
        return cls.TEXT

    def parse(self, raw: str) -> TypedValue:
        if self is ValueKind.INT:
            if not _INT_PATTERN.fullmatch(raw):
                raise ValueError(f"not an integer: {raw!r}")
            return int(raw)
        if self is ValueKind.FLOAT:
            if not _FLOAT_PATTERN.fullmatch(raw):
                raise ValueError(f"not a decimal number: {raw!r}")
            return float(raw)
        return raw


def property_name(header: str) -> str:
    """Header with its type suffix removed: ``lat:double`` -> ``lat``."""
    return header.split(":", 1)[0].strip()


@dataclass(frozen=True)
class Column:
    """A typed CSV column."""
    index: int
    header: str
    name: str
    kind: ValueKind

    @classmethod
    def from_header(cls, index: int, header: str) -> "Column":
        return cls(index, header, property_name(header), ValueKind.from_header(header))

    def coerce(self, raw: str) -> TypedValue:
        """
        Convert one cell of this column.

        Raises:
            ParseError: If the text is not a valid number for a numeric column.
        """
        try:
            return self.kind.parse(raw)
        except ValueError as e:
            raise ParseError(
                f"Cannot parse {raw!r} as {self.kind.value} for column {self.header!r}",
                column=self.header,
                value=raw,
            ) from e


def parse_header(headers: Sequence[str]) -> List[Column]:
    return [Column.from_header(i, h) for i, h in enumerate(headers)]


def coerce(raw: str, header: str) -> TypedValue:
    """Convert ``raw`` according to the type suffix of ``header``."""
    return Column.from_header(0, header).coerce(raw)
