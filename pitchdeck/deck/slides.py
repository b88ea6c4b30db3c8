"""Slide descriptions and layout elements.

A Deck is a list of SlideDescription values built from positioned layout
elements. Positions and sizes are in inches on a 10 x 5.625 (16:9)
canvas. Nothing here knows about python-pptx; ``pptx_writer`` does the
translation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Union

from pitchdeck.charts.specs import ChartKind
from pitchdeck.config import normalize_hex_color

SLIDE_WIDTH = 10.0
SLIDE_HEIGHT = 5.625


class SlideKind(Enum):
    COVER = "cover"
    CONTENT = "content"
    TABLE = "table"
    CHART = "chart"
    USER_INPUT = "user_input"


class Align(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class Theme:
    """Deck colors (hex without "#") and fonts."""

    primary: str = "1a2744"
    secondary: str = "3d4f5f"
    accent: str = "2563eb"
    text: str = "1a2744"
    muted: str = "6b7c8a"
    light: str = "9ca8b3"
    panel: str = "f4f6f8"
    heading_font: str = "Georgia"
    body_font: str = "Arial"


def create_theme(accent_color: str) -> Theme:
    """Build the house theme with the user's accent color.

    Raises:
        ConfigurationError: ``accent_color`` is not a hex color.
    """
    return Theme(accent=normalize_hex_color(accent_color))


# ---------------------------------------------------------------------------
# Layout elements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextElement:
    """A text box. Newlines in ``text`` start new paragraphs.

    Attributes:
        role: Optional shape name (e.g. "Title") so readers of the file
            can locate the element.
    """

    x: float
    y: float
    w: float
    h: float
    text: str
    size: float = 10
    bold: bool = False
    italic: bool = False
    color: str = "1a2744"
    font: str = "Arial"
    align: Align = Align.LEFT
    role: str = ""


@dataclass(frozen=True)
class ShapeElement:
    """A filled rectangle, optionally with centered text."""

    x: float
    y: float
    w: float
    h: float
    fill: str
    text: str = ""
    text_color: str = "ffffff"
    text_size: float = 10
    bold: bool = False
    rounded: bool = False
    role: str = ""


@dataclass(frozen=True)
class TableCell:
    text: str
    bold: bool = False
    fill: str | None = None
    color: str | None = None
    align: Align = Align.LEFT


@dataclass(frozen=True)
class TableElement:
    """A grid of cells; the first row is the header."""

    x: float
    y: float
    w: float
    rows: tuple[tuple[TableCell, ...], ...]
    row_height: float = 0.3
    font_size: float = 9
    col_widths: tuple[float, ...] = ()
    role: str = ""

    @property
    def h(self) -> float:
        return self.row_height * len(self.rows)


@dataclass(frozen=True)
class ImageElement:
    """A PNG image."""

    x: float
    y: float
    w: float
    h: float
    data: bytes = field(repr=False)
    role: str = ""


Element = Union[TextElement, ShapeElement, TableElement, ImageElement]


# ---------------------------------------------------------------------------
# Slides
# ---------------------------------------------------------------------------


@dataclass
class SlideDescription:
    """One slide: a name for error reporting, a title, and its elements.

    Attributes:
        name: Stable identifier (e.g. "KeyMetrics").
        title: Display title.
        elements: Layout elements, drawn in order.
        notes: Speaker notes.
        action_required: The slide still contains template placeholders
            the user must replace.
    """

    kind: ClassVar[SlideKind] = SlideKind.CONTENT

    name: str
    title: str
    elements: list[Element] = field(default_factory=list)
    notes: str = ""
    action_required: bool = False

    def add(self, *elements: Element) -> None:
        self.elements.extend(elements)

    def texts(self) -> list[str]:
        """All visible text on the slide, in drawing order."""
        out: list[str] = []
        for element in self.elements:
            if isinstance(element, TextElement):
                out.append(element.text)
            elif isinstance(element, ShapeElement) and element.text:
                out.append(element.text)
            elif isinstance(element, TableElement):
                out.extend(cell.text for row in element.rows for cell in row)
        return out


@dataclass
class CoverSlide(SlideDescription):
    kind: ClassVar[SlideKind] = SlideKind.COVER


@dataclass
class ContentSlide(SlideDescription):
    kind: ClassVar[SlideKind] = SlideKind.CONTENT


@dataclass
class TableSlide(SlideDescription):
    """Slide whose body is tabular data.

    ``data_available`` is False when the table was replaced by a
    "data unavailable" notice.
    """

    kind: ClassVar[SlideKind] = SlideKind.TABLE

    data_available: bool = True


@dataclass
class ChartSlide(SlideDescription):
    kind: ClassVar[SlideKind] = SlideKind.CHART

    chart_kind: ChartKind | None = None


@dataclass
class UserInputSlide(SlideDescription):
    """Slide driven by user-entered narrative text.

    Attributes:
        field_name: FormInput attribute the text came from.
        placeholder_used: The user left the field blank and a template
            was rendered instead.
        user_editable: Always True; the slide is meant to be edited.
    """

    kind: ClassVar[SlideKind] = SlideKind.USER_INPUT

    field_name: str = ""
    placeholder_used: bool = False
    user_editable: bool = True


@dataclass
class Deck:
    """Ordered slides plus presentation metadata."""

    slides: list[SlideDescription]
    theme: Theme
    title: str = ""
    subject: str = ""
    author: str = ""

    def __len__(self) -> int:
        return len(self.slides)

    def slide_names(self) -> list[str]:
        return [s.name for s in self.slides]

    def get(self, name: str) -> SlideDescription | None:
        return next((s for s in self.slides if s.name == name), None)

    def action_required_slides(self) -> list[SlideDescription]:
        """Slides still carrying placeholder content."""
        return [s for s in self.slides if s.action_required]
