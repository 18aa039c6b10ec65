"""Priority-tagged narrative paragraphs."""

from enum import IntEnum
from typing import Optional

from reportlab.lib.pagesizes import LETTER

from hnplus.catalog.layout import FontMap, FontMetrics, ParagraphBuilder, default_metrics

DEFAULT_FONT_SIZE = 8.5


class ParagraphPriority(IntEnum):
    """How badly a paragraph wants to stay on the page. Lowest goes first."""

    ONLY_IF_NEEDED = 0
    VERY_LOW = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4
    VERY_HIGH = 5
    REQUIRED = 6


class ParagraphKind:
    HEADING = "heading"
    BIOGRAPHY = "biography"
    FOAL = "foal"
    SECTION = "section"


class Paragraph(ParagraphBuilder):
    """A narrative paragraph carrying its pruning priority and role on the page."""

    def __init__(
        self,
        priority: ParagraphPriority,
        font: str = FontMap.NORMAL,
        size: float = DEFAULT_FONT_SIZE,
        max_width: float = LETTER[0],
        indent: Optional[float] = None,
        first_line_indent: Optional[float] = None,
        kind: str = ParagraphKind.FOAL,
        metrics: FontMetrics = default_metrics,
    ):
        super().__init__(font, size, max_width, indent, first_line_indent, metrics=metrics)
        self.priority = ParagraphPriority(priority)
        self.kind = kind

    def __repr__(self) -> str:
        return f"<Paragraph {self.kind} {self.priority.name}: {self.text[:40]!r}>"
