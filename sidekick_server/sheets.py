"""Rewrite spreadsheet cells that contain the placeholder.

A matching cell is replaced as a whole by an ``=IMAGE("<url>")`` formula.
Each changed row is sent as one range in which every other cell is null.
The values API leaves null cells untouched, so text such as ``00123`` is
never re-parsed under USER_ENTERED. Rows and sheets without a match are
never written.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sidekick_server.exceptions import ValidationError

CellValue = Any  # str, number or bool as returned by the values API


def image_formula(image_url: str) -> str:
    """Build an IMAGE formula; embedded double quotes are doubled."""
    escaped = image_url.replace('"', '""')
    return f'=IMAGE("{escaped}")'


def quote_sheet_title(title: str) -> str:
    """Quote a sheet title for use in A1 notation ranges.

    Titles are always quoted. A bare title such as ``Q1`` or ``AB12`` parses
    as a cell reference on the first sheet rather than as a sheet name.
    """
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


@dataclass(frozen=True)
class SheetRowUpdate:
    """A row to write back, addressed by its 0-based index.

    ``None`` entries are sent as JSON null, which the values API skips, so
    only the replaced cells change.
    """

    sheet_title: str
    row_index: int
    values: tuple[CellValue, ...]

    @property
    def a1_range(self) -> str:
        return f"{quote_sheet_title(self.sheet_title)}!A{self.row_index + 1}"

    def to_value_range(self) -> dict[str, Any]:
        return {
            "range": self.a1_range,
            "majorDimension": "ROWS",
            "values": [list(self.values)],
        }


@dataclass
class SheetRewrite:
    """Row updates for every sheet that had at least one match."""

    updates: list[SheetRowUpdate] = field(default_factory=list)
    sheets_modified: int = 0
    cells_replaced: int = 0

    def to_data(self) -> list[dict[str, Any]]:
        """Serialize into the ``data`` list of ``values.batchUpdate``."""
        return [update.to_value_range() for update in self.updates]


def _matches(cell: CellValue, placeholder: str) -> bool:
    return isinstance(cell, str) and placeholder in cell


def rewrite_sheet(
    sheet_title: str,
    rows: Sequence[Sequence[CellValue]],
    placeholder: str,
    image_url: str,
) -> list[SheetRowUpdate]:
    """Return one update per row that contains the placeholder."""
    if not placeholder:
        raise ValidationError("Placeholder must not be empty")

    formula = image_formula(image_url)
    updates: list[SheetRowUpdate] = []
    for row_index, row in enumerate(rows):
        if not any(_matches(cell, placeholder) for cell in row):
            continue
        values = tuple(formula if _matches(cell, placeholder) else None for cell in row)
        updates.append(SheetRowUpdate(sheet_title=sheet_title, row_index=row_index, values=values))
    return updates


def plan_sheet_rewrite(
    sheets: Iterable[tuple[str, Sequence[Sequence[CellValue]]]],
    placeholder: str,
    image_url: str,
) -> SheetRewrite:
    """Rewrite every sheet given as ``(title, rows)`` pairs."""
    rewrite = SheetRewrite()
    for title, rows in sheets:
        updates = rewrite_sheet(title, rows, placeholder, image_url)
        if not updates:
            continue
        rewrite.updates.extend(updates)
        rewrite.sheets_modified += 1
        rewrite.cells_replaced += sum(
            1 for row in rows for cell in row if _matches(cell, placeholder)
        )
    return rewrite
