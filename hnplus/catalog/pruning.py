"""Fit narrative paragraphs into the space left on a page."""

import logging
from typing import Optional, Sequence

from hnplus.catalog.paragraph import Paragraph, ParagraphKind, ParagraphPriority

logger = logging.getLogger(__name__)

# Space between consecutive paragraphs
PARAGRAPH_GAP = 1


def total_height(paragraphs: Sequence[Paragraph], gap: float = PARAGRAPH_GAP) -> float:
    return sum(p.get_height() for p in paragraphs) + gap * max(0, len(paragraphs) - 1)


def _find_orphaned_dam(paragraphs: Sequence[Paragraph]) -> Optional[int]:
    """Index of an 'Nth Dam' heading whose biography is not followed by any foal."""
    for i in range(len(paragraphs) - 1):
        if paragraphs[i].kind != ParagraphKind.HEADING or paragraphs[i + 1].kind != ParagraphKind.BIOGRAPHY:
            continue
        following = paragraphs[i + 2] if i + 2 < len(paragraphs) else None
        if following is None or following.kind != ParagraphKind.FOAL:
            return i
    return None


def prune(paragraphs: Sequence[Paragraph], budget: float, gap: float = PARAGRAPH_GAP) -> list[Paragraph]:
    """Drop paragraphs until the rest fit within ``budget`` points of height.

    The last paragraph at the lowest remaining priority is dropped first.
    Required paragraphs only go once nothing else is left; at that point dam
    headings left without any foals are dropped (with their biography)
    before anything else. The input sequence is not modified.
    """
    kept = list(paragraphs)
    removed = 0

    while kept and total_height(kept, gap) > budget:
        lowest = min(p.priority for p in kept)

        if lowest == ParagraphPriority.REQUIRED:
            orphan = _find_orphaned_dam(kept)
            if orphan is not None:
                del kept[orphan:orphan + 2]
                removed += 2
                continue

        for i in range(len(kept) - 1, -1, -1):
            if kept[i].priority == lowest:
                del kept[i]
                removed += 1
                break

    if removed:
        logger.debug(f"Pruned {removed} of {len(paragraphs)} paragraphs to fit {budget:.1f}pt")

    return kept
