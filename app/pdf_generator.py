import io
import logging
import os
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Tuple

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from . import config
from .currency import currency_symbol, format_currency, normalize_currency_code
from .exceptions import EmptyPDFError, PDFWriteError
from .totals import line_total, to_decimal

logger = logging.getLogger(__name__)

# --- Page geometry (points) ---
PAGE_WIDTH, PAGE_HEIGHT = LETTER  # 612 x 792
MARGIN = 50
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
LOGO_MAX_SIZE = 80
LOGO_GAP = 10
MAX_WRAPPED_LINES = 2

# Item / Qty / Price / Total
COLUMN_FRACTIONS = (0.40, 0.15, 0.20, 0.25)
TOTALS_LABEL_FRACTION = 0.6


class PDFTemplate(str, Enum):
    CLASSIC = "classic"
    MODERN = "modern"
    MINIMAL = "minimal"


@dataclass(frozen=True)
class TemplateStyle:
    header_font_size: float
    title_font_size: float
    body_font_size: float
    spacing: float

    @property
    def line_height(self) -> float:
        return self.body_font_size + 8

    @property
    def info_line_height(self) -> float:
        """Line height of the stacked business details under the name."""
        return self.body_font_size + 4

    @property
    def name_line_height(self) -> float:
        return self.header_font_size + 2


TEMPLATE_STYLES = {
    PDFTemplate.CLASSIC: TemplateStyle(header_font_size=20, title_font_size=28, body_font_size=12, spacing=20),
    PDFTemplate.MODERN: TemplateStyle(header_font_size=16, title_font_size=32, body_font_size=11, spacing=16),
    PDFTemplate.MINIMAL: TemplateStyle(header_font_size=14, title_font_size=20, body_font_size=10, spacing=12),
}


def get_template_style(template) -> TemplateStyle:
    return TEMPLATE_STYLES[PDFTemplate(template)]


# --- Helpers ---

_registered_fonts: Tuple[str, str] | None = None


def _register_fonts() -> Tuple[str, str]:
    """Registers the configured TTF fonts once; falls back to Helvetica when none are available."""
    global _registered_fonts
    if _registered_fonts is not None:
        return _registered_fonts

    font_path = config.PDF_FONT_PATH
    if font_path and os.path.exists(font_path):
        pdfmetrics.registerFont(TTFont('InvoiceSans', font_path))
        bold_path = config.PDF_FONT_BOLD_PATH
        if bold_path and os.path.exists(bold_path):
            pdfmetrics.registerFont(TTFont('InvoiceSans-Bold', bold_path))
            _registered_fonts = ('InvoiceSans', 'InvoiceSans-Bold')
        else:
            _registered_fonts = ('InvoiceSans', 'InvoiceSans')
    else:
        if font_path:
            logger.warning("PDF font %s not found, using Helvetica. RUB and AMD amounts will show their ISO code.", font_path)
        _registered_fonts = ('Helvetica', 'Helvetica-Bold')
    return _registered_fonts


def fit_logo_size(width: float, height: float, max_size: float = LOGO_MAX_SIZE) -> Tuple[float, float]:
    """Scales an image into a max_size box: landscape by width, portrait and square by height."""
    aspect_ratio = width / height
    if aspect_ratio > 1:
        return max_size, max_size / aspect_ratio
    return max_size * aspect_ratio, max_size


def format_date(value: date | None) -> str:
    """Medium date style, e.g. "Jan 5, 2024"."""
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def format_period(start: date, end: date) -> str:
    return f"{start:%d %b %Y} – {end:%d %b %Y}"


def invoice_pdf_filename(number: str | None) -> str:
    """Invoice_<number>.pdf with spaces and path separators turned into underscores."""
    safe_number = number or ''
    for char in (' ', '/', '\\', os.sep):
        safe_number = safe_number.replace(char, '_')
    return f"Invoice_{safe_number}.pdf"


def drawable_currency_symbol(currency_code: str | None, font_name: str) -> str:
    """
    The currency sign if `font_name` can draw it. The built-in Type1 fonts only cover
    WinAnsi, so ₽ and ֏ become the ISO code followed by a space ("RUB 77.00").
    """
    symbol = currency_symbol(currency_code)
    if font_name not in pdfmetrics.standardFonts:
        return symbol
    try:
        symbol.encode("cp1252")
    except UnicodeEncodeError:
        return f"{normalize_currency_code(currency_code)} "
    return symbol


# --- Layout ---

class InvoiceLayout:
    """Draws one invoice onto a single US Letter page, top to bottom with a running Y cursor."""

    def __init__(self, invoice, template=PDFTemplate.CLASSIC):
        self.invoice = invoice
        self.style = get_template_style(template)
        self.regular_font, self.bold_font = _register_fonts()
        self.currency_code = invoice.currency_code
        self.currency_symbol = drawable_currency_symbol(self.currency_code, self.regular_font)
        self._canvas = None
        self._y = MARGIN

        widths = [CONTENT_WIDTH * fraction for fraction in COLUMN_FRACTIONS]
        self._col_widths = widths
        self._col_x = [MARGIN + sum(widths[:i]) for i in range(len(widths))]

    def render(self) -> bytes:
        buffer = io.BytesIO()
        # invariant=1 drops timestamps and random ids so equal input gives equal bytes
        self._canvas = canvas.Canvas(buffer, pagesize=LETTER, invariant=1)
        self._canvas.setTitle(f"Invoice {self.invoice.number or ''}".strip())
        if self.invoice.display_business_name:
            self._canvas.setAuthor(self.invoice.display_business_name)
        self._y = MARGIN

        self._render_header()
        self._render_details()
        self._render_bill_to()
        self._render_items_table()
        self._render_totals()
        self._render_status()
        if self._y > PAGE_HEIGHT - MARGIN:
            # Single page only: rows past the bottom margin are not carried over
            logger.warning("Invoice %s with %d line items does not fit on one page; content past the bottom margin is cut off",
                           self.invoice.number, len(self.invoice.line_items))

        self._canvas.showPage()
        self._canvas.save()
        return buffer.getvalue()

    def _money(self, amount) -> str:
        return format_currency(amount, self.currency_code, symbol=self.currency_symbol)

    def _draw_text(self, text: str, x: float, y: float, font: str, size: float,
                   width: float = CONTENT_WIDTH, align: str = "left") -> None:
        """Draws text whose top edge sits at `y` (measured from the top of the page), wrapped to `width`."""
        if not text:
            return
        self._canvas.setFont(font, size)
        lines = simpleSplit(text, font, size, width)[:MAX_WRAPPED_LINES]
        for index, line in enumerate(lines):
            baseline = PAGE_HEIGHT - y - size - index * size * 1.2
            if align == "right":
                self._canvas.drawRightString(x + width, baseline, line)
            else:
                self._canvas.drawString(x, baseline, line)

    def _draw_logo(self, data: bytes | None, x: float, y: float) -> Tuple[float, float]:
        """Returns the drawn (width, height); (0, 0) when there is no usable logo."""
        if not data:
            return 0, 0
        try:
            image = ImageReader(io.BytesIO(data))
            width, height = image.getSize()
            if not width or not height:
                logger.warning("Skipping logo with empty dimensions on invoice %s", self.invoice.number)
                return 0, 0
            draw_width, draw_height = fit_logo_size(width, height)
            self._canvas.drawImage(image, x, PAGE_HEIGHT - y - draw_height,
                                   width=draw_width, height=draw_height, mask="auto")
        except Exception as e:
            logger.warning("Could not decode logo for invoice %s: %s", self.invoice.number, e)
            return 0, 0
        return draw_width, draw_height

    def _render_header(self) -> None:
        style = self.style
        invoice = self.invoice
        self._draw_text("INVOICE", MARGIN, self._y, self.bold_font, style.title_font_size, align="right")
        header_height = style.title_font_size

        if invoice.display_business_name:
            logo_width, logo_height = self._draw_logo(invoice.display_business_logo, MARGIN, self._y)
            text_x = MARGIN + logo_width + LOGO_GAP if logo_width else MARGIN
            text_width = CONTENT_WIDTH - (text_x - MARGIN)

            self._draw_text(invoice.display_business_name, text_x, self._y, self.bold_font,
                            style.header_font_size, width=text_width)

            tax_id = invoice.display_business_tax_id
            details = [
                invoice.display_business_address,
                invoice.display_business_phone,
                invoice.display_business_email,
                f"Tax ID: {tax_id}" if tax_id else "",
            ]
            # Only filled-in fields take a line, so the block stays contiguous
            current_line = 0
            for value in details:
                if not value:
                    continue
                line_y = self._y + style.name_line_height + current_line * style.info_line_height
                self._draw_text(value, text_x, line_y, self.regular_font, style.body_font_size, width=text_width)
                current_line += 1

            text_height = style.name_line_height + current_line * style.info_line_height
            header_height = max(header_height, logo_height, text_height)

        self._y += header_height + style.spacing

    def _render_details(self) -> None:
        invoice = self.invoice
        lines = [f"Invoice Number: {invoice.number or ''}"]
        if invoice.issue_date:
            lines.append(f"Issue Date: {format_date(invoice.issue_date)}")
        if invoice.due_date:
            lines.append(f"Due Date: {format_date(invoice.due_date)}")
        if invoice.period_start and invoice.period_end:
            lines.append(f"Period: {format_period(invoice.period_start, invoice.period_end)}")

        for line in lines:
            self._draw_text(line, MARGIN, self._y, self.regular_font, self.style.body_font_size)
            self._y += self.style.line_height
        self._y += self.style.spacing

    def _render_bill_to(self) -> None:
        style = self.style
        self._draw_text("Bill To:", MARGIN, self._y, self.bold_font, style.body_font_size + 2)
        self._y += style.line_height
        client_name = self.invoice.display_client_name
        if client_name:
            self._draw_text(client_name, MARGIN, self._y, self.regular_font, style.body_font_size)
            self._y += style.line_height
        self._y += style.spacing

    def _render_items_table(self) -> None:
        style = self.style
        for title, x, width in zip(("Item", "Qty", "Price", "Total"), self._col_x, self._col_widths):
            self._draw_text(title, x, self._y, self.bold_font, style.body_font_size, width=width)
        self._y += style.line_height + 5

        rule_y = PAGE_HEIGHT - self._y
        self._canvas.setLineWidth(0.75)
        self._canvas.line(MARGIN, rule_y, MARGIN + CONTENT_WIDTH, rule_y)
        self._y += style.spacing / 2

        for item in self.invoice.line_items:
            quantity = item.quantity if item.quantity is not None else 0
            cells = (
                item.title or "",
                str(quantity),
                self._money(to_decimal(item.unit_price)),
                self._money(line_total(quantity, item.unit_price)),
            )
            for text, x, width in zip(cells, self._col_x, self._col_widths):
                self._draw_text(text, x, self._y, self.regular_font, style.body_font_size, width=width)
            self._y += style.line_height
        self._y += style.spacing

    def _render_totals(self) -> None:
        style = self.style
        totals = self.invoice.totals
        totals_x = self._col_x[2]
        totals_width = self._col_widths[2] + self._col_widths[3]
        label_width = totals_width * TOTALS_LABEL_FRACTION
        value_width = totals_width - label_width
        tax_percent = to_decimal(self.invoice.tax_percent)

        rows = (
            ("Subtotal:", totals.subtotal, self.regular_font, style.body_font_size),
            (f"Tax ({tax_percent:.1f}%):", totals.tax_amount, self.regular_font, style.body_font_size),
            ("Total:", totals.total, self.bold_font, style.body_font_size + 2),
        )
        for label, amount, font, size in rows:
            self._draw_text(label, totals_x, self._y, font, size, width=label_width, align="right")
            self._draw_text(self._money(amount), totals_x + label_width, self._y, font, size,
                            width=value_width, align="right")
            self._y += style.line_height
        self._y += style.spacing / 2

    def _render_status(self) -> None:
        self._draw_text(f"Status: {self.invoice.status_text}", MARGIN, self._y, self.bold_font,
                        self.style.body_font_size)
        self._y += self.style.line_height


# --- Public API ---

def render_invoice_pdf(invoice, template=PDFTemplate.CLASSIC) -> bytes:
    """Renders the invoice (snapshot fields and line items) into PDF bytes."""
    return InvoiceLayout(invoice, template).render()


def generate_invoice_pdf(invoice, template=PDFTemplate.CLASSIC, output_dir=None) -> Path:
    """
    Writes Invoice_<number>.pdf into `output_dir` (the configured PDF directory by default),
    replacing any previous file of that name. Raises PDFWriteError when the file cannot be
    written and EmptyPDFError when it ends up with no content.
    """
    pdf_bytes = render_invoice_pdf(invoice, template)
    target_dir = Path(output_dir or config.PDF_OUTPUT_DIR)
    pdf_path = target_dir / invoice_pdf_filename(invoice.number)
    if pdf_path.parent != target_dir:
        raise PDFWriteError("Invoice number does not map to a file name", path=str(pdf_path))

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        if pdf_path.exists():
            pdf_path.unlink()
        pdf_path.write_bytes(pdf_bytes)
        if not pdf_path.exists():
            raise PDFWriteError("PDF file was not created", path=str(pdf_path))
        file_size = pdf_path.stat().st_size
    except OSError as e:
        raise PDFWriteError(f"Failed to write PDF file: {e}", path=str(pdf_path)) from e

    if file_size == 0:
        raise EmptyPDFError("PDF file is empty", path=str(pdf_path))

    logger.info("Wrote invoice PDF %s (%d bytes)", pdf_path, file_size)
    return pdf_path
