"""
Output Sinks
============

SpreadsheetWriter serializes an ExportTable with pandas (openpyxl for
.xlsx, plain CSV otherwise). ReportLabRenderer implements the document
renderer primitives on a reportlab canvas.

Both sinks can work in memory (``output_dir=None``, bytes kept on the
instance) or write to a directory. Files are written to a temporary sibling
and renamed, so a failure never leaves a partial artifact behind.
"""

from io import BytesIO
from pathlib import Path
from typing import Any, List, Optional, Sequence
import logging
import os
import tempfile

import pandas as pd
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from models.data_models import ExportFormat, ExportTable
from core.errors import SinkError
from core.parameters import LayoutParameters
from reports.document_layout import PanelElement, SectionElement, TagElement, TextElement

logger = logging.getLogger(__name__)

FONT = 'Helvetica'
FONT_BOLD = 'Helvetica-Bold'
BODY_SIZE = 9.8
TAG_SIZE = 8.5
SECTION_TITLE_SIZE = 13


def atomic_write(path: Path, data: bytes) -> Path:
    """Write bytes next to ``path`` then rename into place"""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise SinkError(f"Could not write {path}: {e}") from e
    return path


# ============================================================================
# SPREADSHEET
# ============================================================================

class SpreadsheetWriter:
    """pandas-backed spreadsheet sink"""

    def __init__(self, output_dir: Optional[str] = None):
        self.output_dir = Path(output_dir) if output_dir else None
        self.content: Optional[bytes] = None

    @staticmethod
    def frame(rows: Sequence[Sequence[Any]]) -> pd.DataFrame:
        """Pad ragged rows (title lines, blank separator) to one width"""
        width = max((len(r) for r in rows), default=0)
        padded = [list(r) + [''] * (width - len(r)) for r in rows]
        return pd.DataFrame(padded)

    def serialize(self, rows: Sequence[Sequence[Any]], sheet_name: str, fmt: ExportFormat) -> bytes:
        df = self.frame(rows)
        try:
            if fmt is ExportFormat.SPREADSHEET:
                buffer = BytesIO()
                df.to_excel(buffer, sheet_name=sheet_name, header=False, index=False, engine='openpyxl')
                return buffer.getvalue()
            return df.to_csv(header=False, index=False).encode('utf-8')
        except (ValueError, OSError) as e:
            raise SinkError(f"Spreadsheet serialization failed: {e}") from e

    def write_rows(self, rows: Sequence[Sequence[Any]], sheet_name: str, filename: str,
                   fmt: ExportFormat = ExportFormat.SPREADSHEET) -> str:
        """
        Serialize rows and persist them under ``filename``.

        Returns the written path, or the bare filename when working in
        memory (``self.content`` then holds the bytes).

        Raises:
            SinkError: serialization or file write failed
        """
        self.content = self.serialize(rows, sheet_name, fmt)
        if self.output_dir is None:
            return filename
        path = atomic_write(self.output_dir / filename, self.content)
        logger.info(f"Spreadsheet saved: {path} ({len(rows)} rows)")
        return str(path)

    def write(self, table: ExportTable) -> str:
        return self.write_rows(table.rows, table.sheet_name, table.filename, table.format)


# ============================================================================
# DOCUMENT
# ============================================================================

def _rgb(color):
    return tuple(c / 255 for c in color)


class ReportLabRenderer:
    """
    Document renderer on an A4 reportlab canvas.

    Layout coordinates are millimetres from the top-left corner; reportlab
    measures points from the bottom-left, so every y is flipped here.
    """

    def __init__(self, output_dir: Optional[str] = None, params: LayoutParameters = None):
        self.output_dir = Path(output_dir) if output_dir else None
        self.params = params or LayoutParameters()
        self.content: Optional[bytes] = None
        self.pages = 1
        self._buffer = BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=A4)
        self._cursor = self.params.top_margin
        self._paint_background()

    # Coordinates -------------------------------------------------------------

    def _y(self, top: float) -> float:
        return (self.params.page_height - top) * mm

    def _paint_background(self):
        p = self.params
        self._canvas.setFillColorRGB(*_rgb(p.colors['bg']))
        self._canvas.rect(0, 0, p.page_width * mm, p.page_height * mm, stroke=0, fill=1)

    # Primitives --------------------------------------------------------------

    def measure_text(self, text: str, width: float) -> List[str]:
        return simpleSplit(text, FONT, BODY_SIZE, width * mm) or ['']

    def draw_panel(self, panel: PanelElement) -> None:
        c = self._canvas
        c.setFillColorRGB(*_rgb(panel.fill))
        c.setStrokeColorRGB(*_rgb(panel.stroke))
        c.setLineWidth(0.6)
        c.roundRect(panel.x * mm, self._y(panel.y + panel.height), panel.width * mm,
                    panel.height * mm, panel.radius * mm, stroke=1, fill=1)
        self._cursor = max(self._cursor, panel.y + panel.height + 6)

    def draw_text(self, text: TextElement) -> None:
        c = self._canvas
        c.setFont(FONT_BOLD if text.style.bold else FONT, text.style.font_size)
        c.setFillColorRGB(*_rgb(text.style.color))
        c.drawString(text.x * mm, self._y(text.y), text.text)
        self._cursor = max(self._cursor, text.y + 4)

    def draw_tag(self, tag: TagElement) -> None:
        c = self._canvas
        width = stringWidth(tag.text, FONT_BOLD, TAG_SIZE) / mm + 6
        x = tag.right_x - width
        c.setFillColorRGB(*_rgb(tag.fill))
        c.roundRect(x * mm, self._y(tag.y + 1.5), width * mm, 6 * mm, 3 * mm, stroke=0, fill=1)
        c.setFont(FONT_BOLD, TAG_SIZE)
        c.setFillColorRGB(*_rgb(tag.color))
        c.drawString((x + 3) * mm, self._y(tag.y), tag.text)

    def draw_section(self, section: SectionElement) -> None:
        """Flowing block below everything drawn so far; paginates itself"""
        p = self.params
        c = self._canvas
        width = p.page_width - 2 * p.grid_left

        if self._cursor + p.section_title_height > p.usable_height:
            self.add_page()
        c.setFont(FONT_BOLD, SECTION_TITLE_SIZE)
        c.setFillColorRGB(*_rgb(p.colors['text']))
        c.drawString(p.grid_left * mm, self._y(self._cursor + 6), section.title)
        self._cursor += 10

        c.setFillColorRGB(*_rgb(p.colors['muted']))
        for line in section.lines:
            for wrapped in self.measure_text(line, width):
                if self._cursor + p.line_height > p.usable_height:
                    self.add_page()
                    c.setFillColorRGB(*_rgb(p.colors['muted']))
                c.setFont(FONT, BODY_SIZE)
                c.drawString(p.grid_left * mm, self._y(self._cursor + 4), wrapped)
                self._cursor += p.line_height
        self._cursor += 4

    def add_page(self) -> None:
        self._canvas.showPage()
        self.pages += 1
        self._paint_background()
        self._cursor = self.params.top_margin

    def save(self, filename: str) -> str:
        """
        Finalize the document.

        Raises:
            SinkError: the PDF could not be produced or written
        """
        try:
            self._canvas.save()
        except (ValueError, OSError) as e:
            raise SinkError(f"PDF generation failed: {e}") from e
        self.content = self._buffer.getvalue()
        if self.output_dir is None:
            return filename
        return str(atomic_write(self.output_dir / filename, self.content))
