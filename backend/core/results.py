"""
Tagged query results and the fail-closed parsers the checks use on them.
"""
import re
from dataclasses import dataclass
from typing import Union

from core.errors import ParseError

NO_ROWS = "0 record(s) selected."

_UNSIGNED = re.compile(r"^\d+$")
_SIGNED = re.compile(r"^-?\d+$")


@dataclass(frozen=True)
class NumericResult:
    value: int


@dataclass(frozen=True)
class TabularResult:
    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]

    def first_cell(self) -> str:
        return self.rows[0][0] if self.rows and self.rows[0] else ""

    def column(self, name: str) -> list[str]:
        idx = [c.upper() for c in self.columns].index(name.upper())
        return [r[idx] for r in self.rows]

    def as_text(self) -> str:
        lines = []
        if self.columns:
            lines.append("  ".join(self.columns))
        lines.extend("  ".join(r) for r in self.rows)
        return "\n".join(lines)


@dataclass(frozen=True)
class EmptyResult:
    columns: tuple[str, ...] = ()

    def as_text(self) -> str:
        return NO_ROWS


QueryResult = Union[TabularResult, EmptyResult]


def parse_int(raw: str, signed: bool = False) -> int:
    """Parse a whole-number cell; anything else raises ParseError."""
    value = (raw or "").strip()
    pattern = _SIGNED if signed else _UNSIGNED
    if not pattern.match(value):
        raise ParseError(value)
    return int(value)


def parse_count(result: QueryResult) -> NumericResult:
    """Interpret a single-cell result as a non-negative integer."""
    if isinstance(result, EmptyResult):
        raise ParseError(NO_ROWS)
    return NumericResult(parse_int(result.first_cell()))
