"""Paragraph layout on top of a reportlab canvas.

A ``ParagraphBuilder`` holds styled text runs and wraps them into lines on
demand. The wrapped geometry is cached until something changes; mutating
calls mark it stale and the next query rebuilds it.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfbase import pdfmetrics

logger = logging.getLogger(__name__)

# Vertical gap between wrapped lines
LINE_GAP = 1


class FontMap:
    """Font names used on catalog pages (reportlab standard Helvetica family)."""

    NORMAL = "Helvetica"
    BOLD = "Helvetica-Bold"
    ITALIC = "Helvetica-Oblique"
    BOLD_ITALIC = "Helvetica-BoldOblique"


class FontMetrics:
    """Text measurements for the standard PDF fonts."""

    def width(self, text: str, font: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, font, size)

    def height(self, font: str, size: float) -> float:
        ascent, descent = pdfmetrics.getAscentDescent(font, size)
        return ascent - descent


default_metrics = FontMetrics()


class PageCursor:
    """A drawing position on a reportlab canvas.

    Coordinates are PDF points from the bottom-left corner, so moving down
    decreases ``y``.
    """

    def __init__(self, canvas, width: float = LETTER[0], height: float = LETTER[1]):
        self.canvas = canvas
        self.width = width
        self.height = height
        self.x = 0.0
        self.y = 0.0

    @property
    def position(self) -> tuple[float, float]:
        return self.x, self.y

    def move_to(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def move_down(self, amount: float) -> None:
        self.y -= amount

    def move_up(self, amount: float) -> None:
        self.y += amount

    def move_right(self, amount: float) -> None:
        self.x += amount

    def move_left(self, amount: float) -> None:
        self.x -= amount

    def draw_text(
        self,
        text: str,
        font: str = FontMap.NORMAL,
        size: float = 8.5,
        x: Optional[float] = None,
        y: Optional[float] = None,
        color: Any = None,
        opacity: Optional[float] = None,
    ) -> None:
        """Draw ``text`` with its baseline at the cursor, or at an explicit x/y."""
        self.canvas.saveState()
        self.canvas.setFont(font, size)
        if color is not None:
            self.canvas.setFillColor(color)
        if opacity is not None:
            self.canvas.setFillAlpha(opacity)
        self.canvas.drawString(self.x if x is None else x, self.y if y is None else y, text)
        self.canvas.restoreState()

    def draw_text_centered(self, text: str, font: str = FontMap.NORMAL, size: float = 8.5, **options) -> None:
        """Draw ``text`` horizontally centered on the page at the cursor's y."""
        x = (self.width - pdfmetrics.stringWidth(text, font, size)) / 2
        self.draw_text(text, font, size, x=x, **options)


@dataclass(frozen=True)
class TextComponent:
    """One styled run of paragraph text. Unset font/size fall back to the paragraph's."""

    text: str
    font: Optional[str] = None
    size: Optional[float] = None
    options: Optional[dict] = field(default=None, compare=False)

    def matches(self, text: str, font: Optional[str] = None, size: Optional[float] = None,
                options: Optional[dict] = None) -> bool:
        return (
            self.text == text
            and (not font or self.font == font)
            and (not size or self.size == size)
            and (not options or (self.options or {}) == options)
        )


class ParagraphBuilder:
    """Wraps styled text runs into lines that fit ``max_width``.

    Args:
        font: Default font for runs that don't name one.
        size: Default font size.
        max_width: Width available to each line. Zero or less disables wrapping.
        indent: Offset of every line after the first.
        first_line_indent: Offset of the first line.
        padding_top: Extra space above the first line.
    """

    _SETTINGS = ("font", "size", "max_width", "indent", "first_line_indent", "padding_top")

    def __init__(
        self,
        font: str = FontMap.NORMAL,
        size: float = 24,
        max_width: float = LETTER[0],
        indent: Optional[float] = None,
        first_line_indent: Optional[float] = None,
        padding_top: Optional[float] = None,
        metrics: FontMetrics = default_metrics,
    ):
        self.font = font
        self.size = size
        self.max_width = LETTER[0] if max_width is None else max_width
        self.indent = indent
        self.first_line_indent = first_line_indent
        self.padding_top = padding_top
        self.metrics = metrics
        self._components: list[TextComponent] = []
        self._lines: Optional[list[list[TextComponent]]] = None

    @property
    def components(self) -> tuple[TextComponent, ...]:
        return tuple(self._components)

    @property
    def text(self) -> str:
        return " ".join(c.text for c in self._components)

    @property
    def is_built(self) -> bool:
        return self._lines is not None

    def invalidate(self) -> None:
        """Discard the cached line layout."""
        self._lines = None

    def configure(self, **changes) -> "ParagraphBuilder":
        """Change layout settings (font, size, max_width, indents, padding_top)."""
        for name, value in changes.items():
            if name not in self._SETTINGS:
                raise TypeError(f"Unknown paragraph setting: {name}")
            if name == "max_width" and value is None:
                value = LETTER[0]
            setattr(self, name, value)
        self.invalidate()
        return self

    def add(self, text: str, font: Optional[str] = None, size: Optional[float] = None,
            options: Optional[dict] = None) -> TextComponent:
        component = TextComponent(text, font, size, options)
        self._components.append(component)
        self.invalidate()
        return component

    def remove(self, text: str, font: Optional[str] = None, size: Optional[float] = None,
               options: Optional[dict] = None) -> bool:
        """Remove the first run matching every field that is given."""
        for index, component in enumerate(self._components):
            if component.matches(text, font, size, options):
                del self._components[index]
                self.invalidate()
                return True
        return False

    def _font_of(self, component: TextComponent) -> str:
        return component.font or self.font

    def _size_of(self, component: TextComponent) -> float:
        return component.size or self.size

    def _line_height(self, line: list[TextComponent]) -> float:
        if not line:
            return 0.0
        return max(self.metrics.height(self._font_of(c), self._size_of(c)) for c in line)

    def build(self) -> list[list[TextComponent]]:
        """Greedily pack words into lines no wider than ``max_width``."""
        if self.max_width <= 0:
            self._lines = [list(self._components)]
            return self._lines

        lines: list[list[TextComponent]] = []
        line: list[TextComponent] = []
        line_width = self.first_line_indent or 0

        for component in self._components:
            font = self._font_of(component)
            size = self._size_of(component)
            text = ""

            for i, word in enumerate(component.text.split(" ")):
                piece = word if i == 0 else f" {word}"
                width = self.metrics.width(piece, font, size)

                if line_width + width > self.max_width and (line or text):
                    if text:
                        line.append(replace(component, text=text))
                    lines.append(line)
                    line = []
                    line_width = self.indent or 0
                    piece = word
                    width = self.metrics.width(word, font, size)
                    text = ""

                text += piece
                line_width += width

            if text:
                line.append(replace(component, text=text))

        if line:
            lines.append(line)

        self._lines = lines
        return lines

    def _ensure_built(self) -> list[list[TextComponent]]:
        if self._lines is None:
            self.build()
        return self._lines

    def get_lines(self) -> list[list[TextComponent]]:
        return [list(line) for line in self._ensure_built()]

    def get_line_count(self) -> int:
        return len(self._ensure_built())

    def get_height(self) -> float:
        lines = self._ensure_built()
        return (
            sum(self._line_height(line) for line in lines)
            + LINE_GAP * max(0, len(lines) - 1)
            + (self.padding_top or 0)
        )

    def write(self, cursor: PageCursor) -> None:
        """Draw the paragraph starting at the cursor; the cursor is restored afterwards."""
        lines = self._ensure_built()
        x, y = cursor.position

        for i, line in enumerate(lines):
            if i == 0:
                if self.first_line_indent is not None:
                    cursor.move_to(x + self.first_line_indent, y)
                if self.padding_top is not None:
                    cursor.move_down(self.padding_top)
            else:
                cursor.move_to(x + (self.indent or 0), cursor.y - self._line_height(lines[i - 1]) - LINE_GAP)

            for component in line:
                font = self._font_of(component)
                size = self._size_of(component)
                cursor.draw_text(component.text, font, size, **(component.options or {}))
                cursor.move_right(self.metrics.width(component.text, font, size))

        cursor.move_to(x, y)
