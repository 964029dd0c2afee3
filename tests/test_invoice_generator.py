"""Tests for invoice layout, PDF rendering and tabular exports."""

import io
from decimal import Decimal

import pandas as pd
import pdfplumber
import pytest
from openpyxl import load_workbook

import invoice_generator
from exceptions import ConfigurationError, InvalidAmountError, NegativeTaxableAmountError, RenderError
from invoice_generator import (
    RenderConfig,
    build_layout,
    generate_invoice_csv_bytes,
    generate_invoice_pdf,
    generate_invoice_xlsx_bytes,
    register_fonts,
    render_invoice,
)
from models import LineItem
from tax_calc import compute_totals

PLAIN = RenderConfig(watermark=None)


def pdf_pages_text(pdf: bytes):
    with pdfplumber.open(io.BytesIO(pdf)) as doc:
        return [page.extract_text() or "" for page in doc.pages]


def layout_for(request, config=PLAIN):
    totals = compute_totals(request.items, request.jurisdiction())
    return build_layout(request, totals, config)


class TestLayout:
    def test_same_state_columns(self, make_request, widget):
        layout = layout_for(make_request([widget]))

        assert layout.item_headers == (
            "No.", "Description", "HSN/SAC", "Qty", "Rate (Rs.)", "Amount (Rs.)",
            "Tax Rate", "CGST (Rs.)", "SGST (Rs.)", "Total (Rs.)",
        )
        assert layout.item_rows == (
            ("1", "Widget", "8471", "2", "100.00", "200.00", "18%", "18.00", "18.00", "236.00"),
        )
        assert len(layout.item_aligns) == len(layout.item_headers)

    def test_other_state_columns(self, make_request, widget, outstation_buyer):
        layout = layout_for(make_request([widget], buyer=outstation_buyer))

        assert "IGST (Rs.)" in layout.item_headers
        assert "CGST (Rs.)" not in layout.item_headers
        assert layout.item_rows[0][-2:] == ("36.00", "236.00")
        assert ("IGST", "Rs. 36.00") in layout.footer_rows
        assert all(label not in ("CGST", "SGST") for label, _ in layout.footer_rows)

    def test_footer_rows(self, make_request, widget):
        layout = layout_for(make_request([widget]))

        assert layout.footer_rows == (
            ("Taxable Amount", "Rs. 200.00"),
            ("CGST", "Rs. 18.00"),
            ("SGST", "Rs. 18.00"),
            ("Total Tax", "Rs. 36.00"),
            ("Round Off", "Rs. 0.00"),
            ("Grand Total", "Rs. 236.00"),
        )
        assert layout.amount_in_words == "Two Hundred and Thirty Six Rupees Only"

    def test_discount_rows(self, make_request):
        item = LineItem(description="Desk", quantity=1, unit_rate=1000, tax_rate_percent=18, discount=100)
        layout = layout_for(make_request([item]))

        assert layout.footer_rows[:3] == (
            ("Gross Amount", "Rs. 1,000.00"),
            ("Discount", "-Rs. 100.00"),
            ("Taxable Amount", "Rs. 900.00"),
        )

    def test_breakdown_rows(self, make_request):
        items = [
            LineItem(quantity=5, unit_rate=100, tax_rate_percent=18),
            LineItem(quantity=10, unit_rate=100, tax_rate_percent=5),
        ]
        layout = layout_for(make_request(items))

        assert [row[0] for row in layout.breakdown_rows] == ["5%", "18%", "Total"]
        assert layout.breakdown_rows[-1] == ("Total", "1,500.00", "0.00", "70.00", "70.00", "140.00")

    def test_no_items_placeholder(self, make_request):
        layout = layout_for(make_request([]))

        assert len(layout.item_rows) == 1
        assert layout.item_rows[0][1] == "No items"
        assert layout.amount_in_words == "Zero Rupees Only"

    def test_parties_and_meta(self, make_request, widget, outstation_buyer):
        layout = layout_for(make_request([widget], buyer=outstation_buyer))

        assert layout.seller_lines[0] == "Friends Group Company Pvt. Ltd."
        assert "GSTIN: 27ABCDE1234F1Z5" in layout.seller_lines
        assert "State: Karnataka (29)" in layout.buyer_lines
        assert dict(layout.meta_rows) == {
            "Invoice No.": "INV-2025-0001",
            "Invoice Date": "07-Oct-2025",
            "Due Date": "06-Nov-2025",
            "Place of Supply": "Karnataka (29)",
        }

    def test_missing_seller_gstin_and_due_date(self, make_request, widget, seller):
        request = make_request([widget], seller=seller.model_copy(update={"gstin": None}), due_date=None)
        layout = layout_for(request)

        assert "GSTIN: N/A" in layout.seller_lines
        assert dict(layout.meta_rows)["Due Date"] == "N/A"

    def test_bank_rows(self, make_request, widget):
        layout = layout_for(make_request([widget]))

        assert layout.bank_rows == (
            ("Account Name", "Friends Group Company Pvt. Ltd."),
            ("Account Number", "1234567890"),
            ("Bank", "State Bank of India"),
            ("IFSC", "SBIN0001234"),
            ("Branch", "Viman Nagar"),
        )
        assert layout_for(make_request([widget], bank_details=None)).bank_rows == ()

    def test_long_notes_and_terms_are_cut(self, make_request, widget, caplog):
        long_text = "Handle with care and keep away from moisture. " * 60
        with caplog.at_level("WARNING"):
            layout = layout_for(make_request([widget], notes=long_text, terms_and_conditions=long_text))

        assert layout.notes_truncated is True
        assert len(layout.notes_lines) == PLAIN.notes_max_lines
        assert layout.notes_lines[-1].endswith("...")
        assert layout.terms_truncated is True
        assert len(layout.terms_lines) == PLAIN.terms_max_lines
        assert "notes cut" in caplog.text

    def test_default_notes(self, make_request, widget):
        layout = layout_for(make_request([widget], notes=""))

        assert layout.notes_lines == ("Thank you for your business!",)
        assert layout.notes_truncated is False


class TestFonts:
    def test_standard_fonts_use_ascii_symbol(self):
        fonts = register_fonts(RenderConfig())

        assert fonts.regular == "Helvetica"
        assert fonts.currency == "Rs."

    def test_symbol_that_fits_the_encoding_is_kept(self):
        assert register_fonts(RenderConfig(currency_symbol="INR")).currency == "INR"

    def test_missing_font_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            register_fonts(RenderConfig(font_path=str(tmp_path / "missing.ttf")))


class TestRender:
    def test_single_page_invoice(self, make_request, widget):
        rendered = render_invoice(make_request([widget]), PLAIN)

        assert rendered.pdf.startswith(b"%PDF")
        assert rendered.page_count == 1
        assert rendered.totals.rounded_total == 236
        (text,) = pdf_pages_text(rendered.pdf)
        for expected in ("TAX INVOICE", "INV-2025-0001", "HSN/SAC", "CGST", "SGST",
                         "Two Hundred and Thirty Six Rupees Only", "TAX BREAKDOWN",
                         "BANK DETAILS", "SBIN0001234", "Authorized Signatory"):
            assert expected in text

    def test_watermark_is_drawn(self, make_request, widget):
        rendered = render_invoice(make_request([widget]))

        with pdfplumber.open(io.BytesIO(rendered.pdf)) as doc:
            chars = "".join(ch["text"] for ch in doc.pages[0].chars if ch["size"] > 20)
        assert sorted(chars) == sorted("ORIGINAL")

    def test_long_invoice_spans_pages(self, make_request):
        items = [
            LineItem(description=f"Spare part {n}", hsn_code="8708", quantity=1, unit_rate=250, tax_rate_percent=28)
            for n in range(60)
        ]
        rendered = render_invoice(make_request(items), PLAIN)
        pages = pdf_pages_text(rendered.pdf)

        assert rendered.page_count == len(pages) >= 2
        assert "HSN/SAC" in pages[1]
        assert "Spare part 59" in "".join(pages)
        assert "Authorized Signatory" in pages[-1]

    def test_validation_happens_before_drawing(self, make_request, monkeypatch):
        calls = []
        monkeypatch.setattr(invoice_generator, "_draw", lambda *args: calls.append(args))
        item = LineItem(quantity=1, unit_rate=10, discount=50)

        with pytest.raises(NegativeTaxableAmountError):
            render_invoice(make_request([item]))
        assert calls == []

    def test_oversized_amount_fails_validation(self, make_request, monkeypatch):
        calls = []
        monkeypatch.setattr(invoice_generator, "_draw", lambda *args: calls.append(args))
        item = LineItem(quantity=Decimal("1e27"), unit_rate=10, tax_rate_percent=18)

        with pytest.raises(InvalidAmountError):
            render_invoice(make_request([item]))
        assert calls == []

    def test_backend_failure_is_wrapped(self, make_request, widget, monkeypatch):
        def broken(layout, config):
            raise RuntimeError("disk full")

        monkeypatch.setattr(invoice_generator, "_draw", broken)

        with pytest.raises(RenderError) as excinfo:
            render_invoice(make_request([widget]))
        assert isinstance(excinfo.value.cause, RuntimeError)
        assert "disk full" in str(excinfo.value)

    def test_font_errors_are_not_wrapped(self, make_request, widget, tmp_path):
        config = RenderConfig(font_path=str(tmp_path / "nope.ttf"))

        with pytest.raises(ConfigurationError):
            render_invoice(make_request([widget]), config)

    def test_generate_invoice_pdf_from_layout(self, make_request, widget):
        pdf = generate_invoice_pdf(layout_for(make_request([widget])), PLAIN)

        assert pdf.startswith(b"%PDF")


class TestExports:
    def test_csv(self, make_request, widget, outstation_buyer):
        request = make_request([widget], buyer=outstation_buyer)
        totals = compute_totals(request.items, request.jurisdiction())

        df = pd.read_csv(io.BytesIO(generate_invoice_csv_bytes(request, totals)))

        assert list(df.columns) == ["Sr", "Description", "HSN", "Qty", "Unit Price", "Discount",
                                    "Taxable", "Rate%", "CGST", "SGST", "IGST", "Total"]
        assert df.loc[0, "IGST"] == 36.0
        assert df.loc[0, "Total"] == 236.0

    def test_xlsx(self, make_request, widget):
        request = make_request([widget])
        totals = compute_totals(request.items, request.jurisdiction())

        workbook = load_workbook(io.BytesIO(generate_invoice_xlsx_bytes(request, totals)))

        assert workbook.sheetnames == ["Items", "Tax Breakdown", "Totals"]
        totals_sheet = workbook["Totals"]
        header = [cell.value for cell in totals_sheet[1]]
        values = [cell.value for cell in totals_sheet[2]]
        row = dict(zip(header, values))
        assert row["Grand Total"] == 236
        assert row["Amount in Words"] == "Two Hundred and Thirty Six"
        assert workbook["Tax Breakdown"]["A3"].value == "Total"
