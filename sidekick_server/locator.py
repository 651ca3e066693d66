"""Find the document ranges an image replacement should target.

Placeholder text wins: every occurrence inside any text run is returned in
document order. When the document has no placeholder, the first inline image
becomes the single target. A document with neither yields an empty result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sidekick_server.documents import (
    AbsoluteOffset,
    DocumentContentTree,
    EmbeddedObject,
    TextRun,
    utf16_len,
)
from sidekick_server.exceptions import ValidationError

LocateMode = Literal["placeholder", "first-image"]


@dataclass(frozen=True)
class Occurrence:
    """Half-open interval ``[start, end)`` in absolute document offsets."""

    start: AbsoluteOffset
    end: AbsoluteOffset

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class LocateResult:
    occurrences: tuple[Occurrence, ...]
    mode: LocateMode | None

    @property
    def found(self) -> bool:
        return bool(self.occurrences)


def find_placeholders(tree: DocumentContentTree, placeholder: str) -> list[Occurrence]:
    """Return every placeholder occurrence, ascending by start offset.

    Matches never span two text runs; the API splits runs on style changes,
    so a placeholder with mixed styling is not found.
    """
    if not placeholder:
        raise ValidationError("Placeholder must not be empty")

    width = utf16_len(placeholder)
    occurrences: list[Occurrence] = []
    for element in tree.inline_elements():
        if not isinstance(element, TextRun):
            continue
        position = element.content.find(placeholder)
        while position != -1:
            start = element.absolute_offset(position)
            occurrences.append(Occurrence(start=start, end=AbsoluteOffset(start + width)))
            position = element.content.find(placeholder, position + len(placeholder))
    return occurrences


def find_first_image(tree: DocumentContentTree) -> Occurrence | None:
    """Return the span of the first inline image, if the document has one."""
    for element in tree.inline_elements():
        if isinstance(element, EmbeddedObject):
            return Occurrence(start=element.start, end=element.end)
    return None


def locate_targets(tree: DocumentContentTree, placeholder: str) -> LocateResult:
    """Locate placeholder occurrences, falling back to the first image."""
    occurrences = find_placeholders(tree, placeholder)
    if occurrences:
        return LocateResult(occurrences=tuple(occurrences), mode="placeholder")

    image = find_first_image(tree)
    if image is not None:
        return LocateResult(occurrences=(image,), mode="first-image")

    return LocateResult(occurrences=(), mode=None)
