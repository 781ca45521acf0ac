from datetime import date
from decimal import Decimal

import pytest
from pypdf import PdfReader

from app import pdf_generator
from app.exceptions import EmptyPDFError, PDFGenerationError, PDFWriteError
from app.pdf_generator import (
    CONTENT_WIDTH,
    PDFTemplate,
    TEMPLATE_STYLES,
    fit_logo_size,
    format_date,
    format_period,
    generate_invoice_pdf,
    get_template_style,
    invoice_pdf_filename,
    drawable_currency_symbol,
    render_invoice_pdf,
)


def _text(path) -> str:
    return PdfReader(path).pages[0].extract_text()


class TestTemplates:
    """Per-template layout constants."""

    @pytest.mark.parametrize("template, expected", [
        (PDFTemplate.CLASSIC, (20, 28, 12, 20)),
        (PDFTemplate.MODERN, (16, 32, 11, 16)),
        (PDFTemplate.MINIMAL, (14, 20, 10, 12)),
    ])
    def test_constants(self, template, expected):
        style = TEMPLATE_STYLES[template]
        assert (style.header_font_size, style.title_font_size, style.body_font_size, style.spacing) == expected

    def test_lookup_by_name(self):
        assert get_template_style("modern") is TEMPLATE_STYLES[PDFTemplate.MODERN]

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            get_template_style("fancy")

    def test_content_width(self):
        assert CONTENT_WIDTH == 512


class TestHelpers:
    """Geometry and text helpers."""

    def test_landscape_logo_scales_by_width(self):
        assert fit_logo_size(200, 100) == (80, 40)

    def test_portrait_logo_scales_by_height(self):
        assert fit_logo_size(50, 100) == (40, 80)

    def test_square_logo_scales_by_height(self):
        assert fit_logo_size(300, 300) == (80, 80)

    def test_dates(self):
        assert format_date(date(2024, 1, 5)) == "Jan 5, 2024"
        assert format_date(None) == ""
        assert format_period(date(2024, 3, 1), date(2024, 3, 31)) == "01 Mar 2024 – 31 Mar 2024"

    def test_filename_replaces_spaces(self):
        assert invoice_pdf_filename("INV 0001 A") == "Invoice_INV_0001_A.pdf"

    def test_filename_replaces_path_separators(self):
        assert invoice_pdf_filename("2024/01") == "Invoice_2024_01.pdf"
        assert invoice_pdf_filename("../escaped") == "Invoice_.._escaped.pdf"
        assert invoice_pdf_filename("A\\B") == "Invoice_A_B.pdf"

    @pytest.mark.parametrize("code, expected", [
        ("USD", "$"), ("EUR", "€"), ("GBP", "£"), ("RUB", "RUB "), ("AMD", "AMD "),
    ])
    def test_symbols_drawable_in_helvetica(self, code, expected):
        assert drawable_currency_symbol(code, "Helvetica") == expected

    def test_embedded_font_keeps_symbol(self):
        assert drawable_currency_symbol("RUB", "InvoiceSans") == "₽"


class TestRenderInvoicePdf:
    """Rendering invoices into a one-page document."""

    def test_single_us_letter_page(self, make_invoice, tmp_path):
        path = generate_invoice_pdf(make_invoice(), output_dir=tmp_path)
        reader = PdfReader(path)
        assert len(reader.pages) == 1
        box = reader.pages[0].mediabox
        assert (float(box.width), float(box.height)) == (612, 792)

    def test_content(self, make_invoice, tmp_path):
        invoice = make_invoice(period_start=date(2024, 3, 1), period_end=date(2024, 3, 31))
        text = _text(generate_invoice_pdf(invoice, output_dir=tmp_path))

        for expected in ("INVOICE", "Acme Studio", "1 Main St", "555-0100", "billing@acme.test",
                         "Tax ID: TX-42", "Invoice Number: INV-0001", "Issue Date: Mar 1, 2024",
                         "Due Date: Mar 31, 2024", "01 Mar 2024", "Bill To:", "Globex",
                         "Widget", "Service", "$10.00", "$20.00", "$50.00",
                         "Subtotal:", "$70.00", "Tax (10.0%):", "$7.00", "Total:", "$77.00",
                         "Status: Unpaid"):
            assert expected in text

    def test_period_needs_both_ends(self, make_invoice, tmp_path):
        text = _text(generate_invoice_pdf(make_invoice(period_start=date(2024, 3, 1)), output_dir=tmp_path))
        assert "Period:" not in text

    def test_paid_status(self, make_invoice, tmp_path):
        invoice = make_invoice()
        invoice.toggle_paid()
        assert "Status: Paid" in _text(generate_invoice_pdf(invoice, output_dir=tmp_path))

    def test_missing_snapshot_fields_are_omitted(self, make_invoice, tmp_path):
        invoice = make_invoice(business_name=None, business_address=None, business_phone=None,
                               business_email=None, business_tax_id=None, client_name=None)
        text = _text(generate_invoice_pdf(invoice, output_dir=tmp_path))
        assert "INVOICE" in text
        assert "Tax ID" not in text
        assert "Bill To:" in text

    def test_blank_business_fields_do_not_leave_gaps(self, make_invoice, tmp_path):
        invoice = make_invoice(business_address="", business_phone="")
        text = _text(generate_invoice_pdf(invoice, output_dir=tmp_path))
        assert "billing@acme.test" in text
        assert "Tax ID: TX-42" in text

    def test_empty_invoice_still_renders(self, make_invoice, tmp_path):
        invoice = make_invoice(items=())
        path = generate_invoice_pdf(invoice, output_dir=tmp_path)
        assert path.stat().st_size > 0
        text = _text(path)
        assert "Item" in text
        assert "$0.00" in text

    @pytest.mark.parametrize("template", list(PDFTemplate))
    def test_every_template_renders(self, make_invoice, template):
        data = render_invoice_pdf(make_invoice(), template)
        assert data.startswith(b"%PDF")

    def test_output_is_deterministic(self, make_invoice):
        assert render_invoice_pdf(make_invoice()) == render_invoice_pdf(make_invoice())

    def test_templates_differ(self, make_invoice):
        assert render_invoice_pdf(make_invoice(), "classic") != render_invoice_pdf(make_invoice(), "minimal")

    def test_other_currency(self, make_invoice, tmp_path):
        text = _text(generate_invoice_pdf(make_invoice(currency_code="GBP"), output_dir=tmp_path))
        assert "77.00" in text
        assert "$77.00" not in text

    def test_long_titles_do_not_fail(self, make_invoice):
        long_title = "Extremely long line item description " * 10
        assert render_invoice_pdf(make_invoice(items=((long_title, 1, "1.00"),))).startswith(b"%PDF")

    @pytest.mark.parametrize("code", ["RUB", "AMD"])
    def test_symbol_outside_builtin_font_uses_code(self, make_invoice, tmp_path, monkeypatch, code):
        monkeypatch.setattr(pdf_generator, "_registered_fonts", ("Helvetica", "Helvetica-Bold"))
        text = _text(generate_invoice_pdf(make_invoice(currency_code=code), output_dir=tmp_path))
        assert f"{code} 70.00" in text
        assert f"{code} 77.00" in text
        assert "■" not in text

    def test_overflowing_page_is_logged(self, make_invoice, caplog):
        items = [(f"Item {n}", 1, "1.00") for n in range(40)]
        assert render_invoice_pdf(make_invoice(items=items)).startswith(b"%PDF")
        assert "does not fit on one page" in caplog.text

    def test_regular_invoice_fits_page(self, make_invoice, caplog):
        render_invoice_pdf(make_invoice())
        assert "does not fit on one page" not in caplog.text


class TestLogo:
    """Business logo handling."""

    def test_logo_is_embedded(self, make_invoice, png_logo):
        with_logo = render_invoice_pdf(make_invoice(business_logo=png_logo))
        without_logo = render_invoice_pdf(make_invoice())
        assert b"/Subtype /Image" in with_logo
        assert b"/Subtype /Image" not in without_logo

    def test_corrupt_logo_is_skipped(self, make_invoice, tmp_path, caplog):
        invoice = make_invoice(business_logo=b"definitely not an image")
        path = generate_invoice_pdf(invoice, output_dir=tmp_path)
        assert "Acme Studio" in _text(path)
        assert "Could not decode logo" in caplog.text

    def test_logo_ignored_without_business_name(self, make_invoice, png_logo):
        data = render_invoice_pdf(make_invoice(business_name="", business_logo=png_logo))
        assert b"/Subtype /Image" not in data


class TestGenerateInvoicePdf:
    """Writing the PDF file and failure signalling."""

    def test_file_name_and_location(self, make_invoice, tmp_path):
        path = generate_invoice_pdf(make_invoice(number="INV 7"), output_dir=tmp_path)
        assert path == tmp_path / "Invoice_INV_7.pdf"
        assert path.read_bytes().startswith(b"%PDF")

    def test_replaces_existing_file(self, make_invoice, tmp_path):
        stale = tmp_path / "Invoice_INV-0001.pdf"
        stale.write_bytes(b"stale")
        path = generate_invoice_pdf(make_invoice(), output_dir=tmp_path)
        assert path == stale
        assert path.read_bytes().startswith(b"%PDF")

    def test_creates_missing_directory(self, make_invoice, tmp_path):
        path = generate_invoice_pdf(make_invoice(), output_dir=tmp_path / "nested" / "pdfs")
        assert path.exists()

    def test_slash_in_number_stays_in_directory(self, make_invoice, tmp_path):
        out = tmp_path / "out"
        path = generate_invoice_pdf(make_invoice(number="2024/01"), output_dir=out)
        assert path == out / "Invoice_2024_01.pdf"
        escaped = generate_invoice_pdf(make_invoice(number="../escaped"), output_dir=out)
        assert escaped.parent == out
        assert not (tmp_path / "escaped.pdf").exists()

    def test_write_failure(self, make_invoice, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        with pytest.raises(PDFWriteError) as exc_info:
            generate_invoice_pdf(make_invoice(), output_dir=blocker)
        assert isinstance(exc_info.value, PDFGenerationError)

    def test_empty_output(self, make_invoice, tmp_path, monkeypatch):
        monkeypatch.setattr(pdf_generator, "render_invoice_pdf", lambda invoice, template: b"")
        with pytest.raises(EmptyPDFError) as exc_info:
            generate_invoice_pdf(make_invoice(), output_dir=tmp_path)
        assert exc_info.value.path.endswith("Invoice_INV-0001.pdf")

    def test_defaults_to_configured_directory(self, make_invoice, tmp_path, monkeypatch):
        monkeypatch.setattr(pdf_generator.config, "PDF_OUTPUT_DIR", str(tmp_path))
        assert generate_invoice_pdf(make_invoice()).parent == tmp_path

    def test_totals_match_aggregator(self, make_invoice):
        invoice = make_invoice(tax_percent=Decimal("0"))
        assert invoice.total == Decimal("70.00")
