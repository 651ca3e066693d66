"""Turn located occurrences into a Docs batchUpdate plan.

The Docs API applies a batch in order and reads every request's indexes
against the document as left by the previous requests. Each occurrence is
replaced by a delete of its range followed by an image insert at its start,
and occurrences are processed from the highest start offset down. Edits
never touch text below the range being edited, so the offsets taken from
the unmodified document stay valid for every later pair.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from operator import attrgetter
from typing import Any

from sidekick_server.documents import AbsoluteOffset
from sidekick_server.locator import Occurrence


@dataclass(frozen=True)
class ImageSpec:
    """The image to insert and its rendered size in points."""

    uri: str
    width_pt: float = 200.0
    height_pt: float = 200.0


@dataclass(frozen=True)
class DeleteRange:
    start: AbsoluteOffset
    end: AbsoluteOffset

    def to_request(self) -> dict[str, Any]:
        return {
            "deleteContentRange": {
                "range": {"startIndex": self.start, "endIndex": self.end},
            }
        }


@dataclass(frozen=True)
class InsertImage:
    at: AbsoluteOffset
    uri: str
    width_pt: float
    height_pt: float

    def to_request(self) -> dict[str, Any]:
        return {
            "insertInlineImage": {
                "location": {"index": self.at},
                "uri": self.uri,
                "objectSize": {
                    "width": {"magnitude": self.width_pt, "unit": "PT"},
                    "height": {"magnitude": self.height_pt, "unit": "PT"},
                },
            }
        }


MutationOp = DeleteRange | InsertImage

_by_start = attrgetter("start")


def plan_mutations(occurrences: Iterable[Occurrence], image: ImageSpec) -> list[MutationOp]:
    """Build delete/insert pairs in descending start-offset order.

    Raises:
        ValueError: If two occurrences overlap.
    """
    ordered = sorted(occurrences, key=_by_start, reverse=True)
    _check_disjoint(ordered)

    ops: list[MutationOp] = []
    for occurrence in ordered:
        ops.append(DeleteRange(start=occurrence.start, end=occurrence.end))
        ops.append(
            InsertImage(
                at=occurrence.start,
                uri=image.uri,
                width_pt=image.width_pt,
                height_pt=image.height_pt,
            )
        )
    return ops


def _check_disjoint(descending: list[Occurrence]) -> None:
    for higher, lower in zip(descending, descending[1:]):
        if lower.end > higher.start:
            raise ValueError(
                f"Overlapping occurrences [{lower.start}, {lower.end}) "
                f"and [{higher.start}, {higher.end})"
            )


def to_requests(ops: Iterable[MutationOp]) -> list[dict[str, Any]]:
    """Serialize a plan into ``documents.batchUpdate`` request objects."""
    return [op.to_request() for op in ops]
