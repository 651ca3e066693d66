"""Typed view of a Google Docs body used for placeholder and image lookup.

Google Docs indexes are zero-based UTF-16 code unit offsets. Python strings
are indexed by code point, so positions found inside a text run must be
converted with ``utf16_len`` before they are added to the run's start index.

Only the parts of the document the locator cares about are kept: paragraphs
with their text runs and inline objects, and tables (recursively). Section
breaks, tables of contents and other inline elements are dropped.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, NewType

# Absolute document index (UTF-16 code units). Positions inside a single
# run's Python string are plain ints and must never be passed where this is expected.
AbsoluteOffset = NewType("AbsoluteOffset", int)


def utf16_len(text: str) -> int:
    """Calculate the length of a string in UTF-16 code units.

    Characters outside the BMP (code points > 0xFFFF) use surrogate pairs
    in UTF-16, consuming 2 code units.
    """
    length = 0
    for char in text:
        if ord(char) > 0xFFFF:
            length += 2
        else:
            length += 1
    return length


@dataclass(frozen=True)
class TextRun:
    """A run of text starting at an absolute document offset."""

    content: str
    start: AbsoluteOffset

    def absolute_offset(self, position: int) -> AbsoluteOffset:
        """Convert a code point position within ``content`` to an absolute offset."""
        return AbsoluteOffset(self.start + utf16_len(self.content[:position]))


@dataclass(frozen=True)
class EmbeddedObject:
    """An inline object (image) occupying ``[start, end)``."""

    object_id: str
    start: AbsoluteOffset
    end: AbsoluteOffset


InlineElement = TextRun | EmbeddedObject


@dataclass(frozen=True)
class Paragraph:
    elements: tuple[InlineElement, ...]


@dataclass(frozen=True)
class Table:
    """A table; ``cells`` holds each cell's blocks in row-major order."""

    cells: tuple[tuple[Block, ...], ...]


Block = Paragraph | Table


@dataclass(frozen=True)
class DocumentContentTree:
    """Ordered block sequence of a document body."""

    blocks: tuple[Block, ...]

    def inline_elements(self) -> Iterator[InlineElement]:
        """Yield inline elements top-to-bottom, left-to-right.

        Table cells are visited in row-major order, which matches ascending
        document offsets.
        """
        yield from _walk(self.blocks)


def _walk(blocks: tuple[Block, ...]) -> Iterator[InlineElement]:
    for block in blocks:
        if isinstance(block, Paragraph):
            yield from block.elements
        else:
            for cell in block.cells:
                yield from _walk(cell)


def parse_document(raw: dict[str, Any]) -> DocumentContentTree:
    """Build a content tree from a ``documents.get`` response."""
    content = (raw.get("body") or {}).get("content") or []
    return DocumentContentTree(blocks=_parse_blocks(content))


def _parse_blocks(content: list[dict[str, Any]]) -> tuple[Block, ...]:
    blocks: list[Block] = []
    for element in content:
        if "paragraph" in element:
            blocks.append(_parse_paragraph(element["paragraph"]))
        elif "table" in element:
            blocks.append(_parse_table(element["table"]))
    return tuple(blocks)


def _parse_paragraph(paragraph: dict[str, Any]) -> Paragraph:
    elements: list[InlineElement] = []
    for el in paragraph.get("elements") or []:
        start = el.get("startIndex")
        if not _is_index(start):
            continue
        if "textRun" in el:
            elements.append(
                TextRun(
                    content=el["textRun"].get("content") or "",
                    start=AbsoluteOffset(start),
                )
            )
        elif "inlineObjectElement" in el:
            end = el.get("endIndex")
            if not _is_index(end):
                continue
            elements.append(
                EmbeddedObject(
                    object_id=el["inlineObjectElement"].get("inlineObjectId", ""),
                    start=AbsoluteOffset(start),
                    end=AbsoluteOffset(end),
                )
            )
    return Paragraph(elements=tuple(elements))


def _parse_table(table: dict[str, Any]) -> Table:
    cells: list[tuple[Block, ...]] = []
    for row in table.get("tableRows") or []:
        for cell in row.get("tableCells") or []:
            cells.append(_parse_blocks(cell.get("content") or []))
    return Table(cells=tuple(cells))


def _is_index(value: Any) -> bool:
    # bool is an int subclass but never a valid index
    return isinstance(value, int) and not isinstance(value, bool)
