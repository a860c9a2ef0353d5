"""
NDIS Compliance Platform - Report Layout

Cursor-based drawing context for the audit report.

Section code works in top-down coordinates (``y`` grows towards the bottom
of the page) and asks the context for room with ``ensure_space`` before
drawing a block. The context owns page breaks; nothing outside this module
converts to ReportLab's bottom-up canvas coordinates.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas
from reportlab.platypus import Flowable

from app.services.report_formatting import Palette


PAGE_SIZES = {
    "A4": A4,
    "LETTER": LETTER,
}

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"

LINE_SPACING = 1.3


@dataclass(frozen=True)
class Margins:
    top: float = 60
    bottom: float = 60
    left: float = 50
    right: float = 50


def resolve_page_size(name: str):
    try:
        return PAGE_SIZES[name.upper()]
    except KeyError:
        raise ValueError(f"Unsupported page size '{name}'; expected one of {', '.join(PAGE_SIZES)}")


class NumberedCanvas(canvas.Canvas):
    """
    Canvas that holds every page until ``save`` so the running footer can
    print the final page count.

    The first page is the cover and carries no footer. Numbering starts at 1
    on the page after the cover and the total excludes the cover.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []
        self.footer_labels: List[str] = []
        self.total_pages = 0

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        labels = []
        for index, state in enumerate(self._saved_page_states):
            self.__dict__.update(state)
            if index > 0:
                labels.append(self._draw_page_number(index, total - 1))
            canvas.Canvas.showPage(self)
        self.footer_labels = labels
        self.total_pages = total
        canvas.Canvas.save(self)

    def _draw_page_number(self, page_number: int, page_count: int) -> str:
        label = f"Page {page_number} of {page_count}"
        width, _ = self._pagesize
        self.saveState()
        self.setFillColor(Palette.MUTED)
        self.setFont(FONT_REGULAR, 9)
        self.drawCentredString(width / 2, 30, label)
        self.restoreState()
        return label


class LayoutContext:
    """Explicit cursor and page state for a single report render."""

    def __init__(self, canv: canvas.Canvas, page_size, margins: Optional[Margins] = None):
        self.canvas = canv
        self.page_width, self.page_height = page_size
        self.margins = margins or Margins()
        self.y = self.margins.top
        self.page_number = 1

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def left(self) -> float:
        return self.margins.left

    @property
    def content_width(self) -> float:
        return self.page_width - self.margins.left - self.margins.right

    @property
    def bottom_limit(self) -> float:
        return self.page_height - self.margins.bottom

    @property
    def remaining(self) -> float:
        return self.bottom_limit - self.y

    def _pdf_y(self, top: float) -> float:
        return self.page_height - top

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def new_page(self) -> None:
        self.canvas.showPage()
        self.page_number += 1
        self.y = self.margins.top

    def ensure_space(self, height: float) -> bool:
        """Start a new page unless ``height`` fits below the cursor. Returns True on a break."""
        if self.y + height > self.bottom_limit and self.y > self.margins.top:
            self.new_page()
            return True
        return False

    def move_down(self, lines: float = 1.0, size: float = 10) -> None:
        self.y += lines * size * LINE_SPACING

    def move_to(self, y: float) -> None:
        self.y = y

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def split_lines(self, text: str, font: str = FONT_REGULAR, size: float = 10,
                    width: Optional[float] = None) -> List[str]:
        if not text:
            return []
        return simpleSplit(str(text), font, size, width or self.content_width)

    def measure_text(self, text: str, font: str = FONT_REGULAR, size: float = 10,
                     width: Optional[float] = None) -> float:
        """Height the wrapped text would occupy."""
        return len(self.split_lines(text, font, size, width)) * size * LINE_SPACING

    def text(
        self,
        text: str,
        font: str = FONT_REGULAR,
        size: float = 10,
        color=Palette.BLACK,
        align: str = "left",
        x: Optional[float] = None,
        width: Optional[float] = None,
        paginate: bool = True,
        advance: bool = True,
    ) -> float:
        """
        Draw wrapped text at the cursor and return the height used.

        Each line checks for room on its own, so long paragraphs flow onto
        the next page. With ``advance=False`` the cursor is left where it was,
        which lets callers lay out side-by-side columns.
        """
        x = self.left if x is None else x
        width = width or (self.content_width - (x - self.left))
        leading = size * LINE_SPACING
        start = self.y

        self.canvas.setFillColor(color)
        self.canvas.setFont(font, size)
        for line in self.split_lines(text, font, size, width):
            if paginate and self.ensure_space(leading):
                self.canvas.setFillColor(color)
                self.canvas.setFont(font, size)
            baseline = self._pdf_y(self.y + size)
            if align == "center":
                self.canvas.drawCentredString(x + width / 2, baseline, line)
            elif align == "right":
                self.canvas.drawRightString(x + width, baseline, line)
            else:
                self.canvas.drawString(x, baseline, line)
            self.y += leading

        used = self.y - start
        if not advance:
            self.y = start
        return used

    def labelled_text(
        self,
        label: str,
        value: Optional[str],
        size: float = 10,
        label_color=Palette.MUTED,
        value_color=Palette.BLACK,
        fallback: str = "Not specified",
    ) -> float:
        """``Label: value`` on one line, the value wrapping under itself."""
        prefix = f"{label}: "
        prefix_width = stringWidth(prefix, FONT_BOLD, size)
        value_width = self.content_width - prefix_width
        lines = self.split_lines(value or fallback, FONT_REGULAR, size, value_width) or [""]
        leading = size * LINE_SPACING

        self.ensure_space(leading)
        start = self.y
        self.text(prefix, FONT_BOLD, size, label_color, advance=False)
        for line in lines:
            self.ensure_space(leading)
            self.canvas.setFillColor(value_color)
            self.canvas.setFont(FONT_REGULAR, size)
            self.canvas.drawString(self.left + prefix_width, self._pdf_y(self.y + size), line)
            self.y += leading
        return self.y - start

    def inline(self, runs: List[Tuple[str, str, object]], size: float = 9,
               indent: float = 0) -> float:
        """
        One line made of differently styled runs, given as (text, font, colour).

        Runs are not wrapped; the last run is shortened to fit the line.
        """
        leading = size * LINE_SPACING
        if not runs:
            return 0
        self.ensure_space(leading)
        x = self.left + indent
        limit = self.left + self.content_width
        baseline = self._pdf_y(self.y + size)
        for text, font, color in runs:
            available = limit - x
            if available <= 0:
                break
            while text and stringWidth(text, font, size) > available:
                text = text[:-4] + "..." if len(text) > 4 else ""
            self.canvas.setFillColor(color)
            self.canvas.setFont(font, size)
            self.canvas.drawString(x, baseline, text)
            x += stringWidth(text, font, size)
        self.y += leading
        return leading

    # ------------------------------------------------------------------
    # Shapes and flowables
    # ------------------------------------------------------------------

    def rect(self, height: float, fill_color, x: Optional[float] = None,
             width: Optional[float] = None, top: Optional[float] = None) -> None:
        """Filled rectangle whose top edge sits at ``top`` (default: the cursor)."""
        x = self.left if x is None else x
        width = self.content_width if width is None else width
        top = self.y if top is None else top
        self.canvas.setFillColor(fill_color)
        self.canvas.rect(x, self._pdf_y(top + height), width, height, stroke=0, fill=1)

    def hline(self, color=Palette.PRIMARY, thickness: float = 2, offset: float = 2) -> None:
        pdf_y = self._pdf_y(self.y + offset)
        self.canvas.setStrokeColor(color)
        self.canvas.setLineWidth(thickness)
        self.canvas.line(self.left, pdf_y, self.left + self.content_width, pdf_y)

    def image(self, image, width: float, height: float, x: Optional[float] = None) -> None:
        self.ensure_space(height)
        x = self.left if x is None else x
        self.canvas.drawImage(image, x, self._pdf_y(self.y + height), width, height,
                              preserveAspectRatio=True, mask="auto")
        self.y += height

    def flowable(self, flowable: Flowable, x: Optional[float] = None,
                 width: Optional[float] = None) -> float:
        """
        Draw a platypus flowable (typically a Table) at the cursor.

        Flowables taller than the remaining space are split across pages when
        they support it; tables repeat their header rows on each page.
        """
        x = self.left if x is None else x
        width = width or self.content_width
        start_page, start = self.page_number, self.y

        while flowable is not None:
            _, height = flowable.wrap(width, self.remaining)
            if height <= self.remaining:
                flowable.drawOn(self.canvas, x, self._pdf_y(self.y + height))
                self.y += height
                break

            parts = flowable.split(width, self.remaining)
            if len(parts) == 2:
                first, rest = parts
                _, first_height = first.wrap(width, self.remaining)
                first.drawOn(self.canvas, x, self._pdf_y(self.y + first_height))
                self.new_page()
                flowable = rest
            elif self.y > self.margins.top:
                self.new_page()
            else:
                # Taller than a whole page and cannot split: draw and move on
                flowable.drawOn(self.canvas, x, self._pdf_y(self.y + height))
                self.y += height
                break

        if self.page_number != start_page:
            return self.y - self.margins.top
        return self.y - start

    def finish(self) -> None:
        """Flush the current page and write the document."""
        self.canvas.showPage()
        self.canvas.save()
