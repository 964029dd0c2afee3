"""Invoice layout, reportlab PDF rendering and CSV/XLSX exports."""

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple
from xml.sax.saxutils import escape

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, Table, TableStyle

from exceptions import ConfigurationError, InvoiceError, RenderError
from models import InvoiceRequest
from tax_calc import InvoiceTotals, compute_totals, money
from utils import format_date, format_inr, format_quantity, format_rate, wrap_text

log = logging.getLogger(__name__)

# relative column widths of the items table
INTRA_STATE_WIDTHS = [8, 40, 17, 12, 18, 20, 14, 19, 19, 23]
INTER_STATE_WIDTHS = [8, 50, 17, 12, 20, 22, 14, 22, 25]
ITEM_ALIGNS_INTRA = ["CENTER", "LEFT", "CENTER", "RIGHT", "RIGHT", "RIGHT", "CENTER", "RIGHT", "RIGHT", "RIGHT"]
ITEM_ALIGNS_INTER = ["CENTER", "LEFT", "CENTER", "RIGHT", "RIGHT", "RIGHT", "CENTER", "RIGHT", "RIGHT"]
BREAKDOWN_WIDTHS = [15, 35, 35, 35, 35, 35]


class RenderConfig(BaseModel):
    """Page geometry, fonts and fixed wording of the printed invoice."""

    model_config = ConfigDict(frozen=True)

    page_width: float = A4[0]
    page_height: float = A4[1]
    margin: float = 10 * mm
    font_name: str = "Helvetica"
    bold_font_name: str = "Helvetica-Bold"
    italic_font_name: str = "Helvetica-Oblique"
    font_path: Optional[str] = Field(
        default=None,
        description="TTF with a rupee glyph; without it the standard fonts and the ASCII symbol are used",
    )
    bold_font_path: Optional[str] = None
    currency_symbol: str = "₹"
    ascii_currency_symbol: str = "Rs."
    title: str = "TAX INVOICE"
    watermark: Optional[str] = "ORIGINAL"
    header_fill: str = "#F0F0F0"
    font_size: float = 8
    notes_max_lines: int = Field(default=4, ge=1)
    terms_max_lines: int = Field(default=3, ge=1)
    overflow_marker: str = "..."
    default_notes: str = "Thank you for your business!"
    page_break_threshold: float = Field(
        default=67 * mm,
        description="Start a new page before the bank/notes block when the cursor is below this height",
    )
    declaration: str = (
        "Declaration: We declare that this invoice shows the actual price of the goods/services "
        "described and that all particulars are true and correct."
    )
    signatory_caption: str = "Authorized Signatory"
    disclaimer: str = "This is a computer generated invoice and does not require a physical signature."

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def bottom_limit(self) -> float:
        # space kept free for the footer disclaimer
        return self.margin + 8 * mm


@dataclass(frozen=True)
class FontSet:
    regular: str
    bold: str
    italic: str
    currency: str


def _register_ttf(path: str) -> str:
    name = f"Invoice-{Path(path).stem}"
    if name not in pdfmetrics.getRegisteredFontNames():
        try:
            pdfmetrics.registerFont(TTFont(name, path))
        except Exception as exc:
            raise ConfigurationError(f"Cannot load font {path}: {exc}") from exc
        log.info("Registered font %s from %s", name, path)
    return name


def register_fonts(config: RenderConfig) -> FontSet:
    """Register configured TTF fonts once and pick the currency symbol they can draw."""
    if config.font_path:
        regular = _register_ttf(config.font_path)
        bold = _register_ttf(config.bold_font_path) if config.bold_font_path else regular
        return FontSet(regular, bold, regular, config.currency_symbol)

    try:
        config.currency_symbol.encode("cp1252")
        currency = config.currency_symbol
    except UnicodeEncodeError:
        # standard Type1 fonts are WinAnsi encoded and have no rupee sign
        currency = config.ascii_currency_symbol
    return FontSet(config.font_name, config.bold_font_name, config.italic_font_name, currency)


# ---------------------------------------------------
# LAYOUT
# ---------------------------------------------------
@dataclass(frozen=True)
class InvoiceLayout:
    """Everything that gets printed, already formatted, in page order."""

    title: str
    invoice_number: str
    currency: str
    is_inter_state: bool
    seller_lines: Tuple[str, ...]
    buyer_lines: Tuple[str, ...]
    meta_rows: Tuple[Tuple[str, str], ...]
    item_headers: Tuple[str, ...]
    item_aligns: Tuple[str, ...]
    item_rows: Tuple[Tuple[str, ...], ...]
    footer_rows: Tuple[Tuple[str, str], ...]
    amount_in_words: str
    breakdown_headers: Tuple[str, ...]
    breakdown_rows: Tuple[Tuple[str, ...], ...]
    bank_rows: Tuple[Tuple[str, str], ...]
    notes_lines: Tuple[str, ...]
    notes_truncated: bool
    terms_lines: Tuple[str, ...]
    terms_truncated: bool
    declaration: str
    signatory_name: str
    signatory_caption: str
    disclaimer: str
    watermark: Optional[str]
    seller_name: str


def _party_lines(party, show_missing_gstin: bool) -> Tuple[str, ...]:
    lines = [party.name]
    lines.extend(party.address_lines)
    if party.gstin:
        lines.append(f"GSTIN: {party.gstin}")
    elif show_missing_gstin:
        lines.append("GSTIN: N/A")
    if party.state_label:
        lines.append(f"State: {party.state_label}")
    if party.phone:
        lines.append(f"Phone: {party.phone}")
    if party.email:
        lines.append(f"Email: {party.email}")
    return tuple(lines)


def _amount(value) -> str:
    return format_inr(value, symbol="")


def build_layout(request: InvoiceRequest, totals: InvoiceTotals, config: RenderConfig) -> InvoiceLayout:
    """Lay out an invoice without drawing it."""
    fonts = register_fonts(config)
    cur = fonts.currency
    inter = totals.is_inter_state

    if inter:
        headers = ("No.", "Description", "HSN/SAC", "Qty", f"Rate ({cur})", f"Amount ({cur})",
                   "Tax Rate", f"IGST ({cur})", f"Total ({cur})")
        aligns = tuple(ITEM_ALIGNS_INTER)
    else:
        headers = ("No.", "Description", "HSN/SAC", "Qty", f"Rate ({cur})", f"Amount ({cur})",
                   "Tax Rate", f"CGST ({cur})", f"SGST ({cur})", f"Total ({cur})")
        aligns = tuple(ITEM_ALIGNS_INTRA)

    rows = []
    for sr, (item, line) in enumerate(zip(request.items, totals.lines), start=1):
        row = [str(sr), item.description, item.hsn_code, format_quantity(item.quantity),
               _amount(item.unit_rate), _amount(line.taxable_amount), format_rate(item.tax_rate_percent)]
        if inter:
            row.append(_amount(line.igst))
        else:
            row.extend([_amount(line.cgst), _amount(line.sgst)])
        row.append(_amount(line.line_total))
        rows.append(tuple(row))
    if not rows:
        placeholder = ["", "No items", ""] + [""] * (len(headers) - 3)
        rows.append(tuple(placeholder))

    footer = []
    if totals.total_discount:
        footer.append(("Gross Amount", format_inr(totals.gross_amount, cur)))
        footer.append(("Discount", format_inr(-totals.total_discount, cur)))
    footer.append(("Taxable Amount", format_inr(totals.subtotal, cur)))
    if inter:
        footer.append(("IGST", format_inr(totals.total_igst, cur)))
    else:
        footer.append(("CGST", format_inr(totals.total_cgst, cur)))
        footer.append(("SGST", format_inr(totals.total_sgst, cur)))
    footer.append(("Total Tax", format_inr(totals.total_tax, cur)))
    footer.append(("Round Off", format_inr(totals.round_off, cur)))
    footer.append(("Grand Total", format_inr(totals.rounded_total, cur)))

    breakdown = []
    for row in totals.breakdown + (totals.breakdown_total,):
        label = "Total" if row.rate is None else format_rate(row.rate)
        breakdown.append((label, _amount(row.taxable_amount), _amount(row.igst),
                          _amount(row.cgst), _amount(row.sgst), _amount(row.total_tax)))

    bank_rows = []
    bank = request.bank_details
    if bank is not None:
        bank_rows = [("Account Name", bank.account_holder_name),
                     ("Account Number", bank.account_number),
                     ("Bank", bank.bank_name)]
        if bank.ifsc_code:
            bank_rows.append(("IFSC", bank.ifsc_code))
        if bank.branch:
            bank_rows.append(("Branch", bank.branch))

    notes_width = config.content_width * 0.4 - 5 * mm - 4 * mm
    notes, notes_cut = wrap_text(request.notes or config.default_notes, fonts.regular, config.font_size,
                                 notes_width, config.notes_max_lines, config.overflow_marker)
    terms, terms_cut = wrap_text(request.terms_and_conditions, fonts.regular, config.font_size,
                                 config.content_width - 4 * mm, config.terms_max_lines, config.overflow_marker)
    if notes_cut:
        log.warning("Invoice %s: notes cut to %d lines", request.invoice_number, config.notes_max_lines)
    if terms_cut:
        log.warning("Invoice %s: terms cut to %d lines", request.invoice_number, config.terms_max_lines)

    return InvoiceLayout(
        title=config.title,
        invoice_number=request.invoice_number,
        currency=cur,
        is_inter_state=inter,
        seller_lines=_party_lines(request.seller, show_missing_gstin=True),
        buyer_lines=_party_lines(request.buyer, show_missing_gstin=False),
        meta_rows=(
            ("Invoice No.", request.invoice_number or "N/A"),
            ("Invoice Date", format_date(request.invoice_date)),
            ("Due Date", format_date(request.due_date)),
            ("Place of Supply", request.place_of_supply or "N/A"),
        ),
        item_headers=headers,
        item_aligns=aligns,
        item_rows=tuple(rows),
        footer_rows=tuple(footer),
        amount_in_words=f"{totals.amount_in_words} Rupees Only",
        breakdown_headers=("Tax Rate", "Taxable Amount", "IGST", "CGST", "SGST", "Total Tax"),
        breakdown_rows=tuple(breakdown),
        bank_rows=tuple(bank_rows),
        notes_lines=tuple(notes),
        notes_truncated=notes_cut,
        terms_lines=tuple(terms),
        terms_truncated=terms_cut,
        declaration=config.declaration,
        signatory_name=f"For {request.seller.name}",
        signatory_caption=config.signatory_caption,
        disclaimer=config.disclaimer,
        watermark=config.watermark,
        seller_name=request.seller.name,
    )


# ---------------------------------------------------
# PDF DRAWING
# ---------------------------------------------------
def _scaled(widths: List[float], total: float) -> List[float]:
    unit = total / sum(widths)
    return [w * unit for w in widths]


class _InvoiceCanvas:
    """A reportlab canvas with a top-down cursor and greedy page breaks."""

    def __init__(self, layout: InvoiceLayout, config: RenderConfig, fonts: FontSet):
        self.layout = layout
        self.config = config
        self.fonts = fonts
        self.buffer = BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=(config.page_width, config.page_height))
        self.c.setTitle(f"Invoice {layout.invoice_number}")
        self.c.setSubject("Tax Invoice")
        self.c.setAuthor(layout.seller_name)
        self.c.setCreator("GST Invoice Generator")
        self.fill = colors.HexColor(config.header_fill)
        self.left = config.margin
        self.width = config.content_width
        self.top = config.page_height - config.margin
        self.page_count = 0
        self.y = self.top
        self.cell_style = ParagraphStyle(
            "cell", fontName=fonts.regular, fontSize=config.font_size, leading=config.font_size + 2
        )

    # page frame
    def start_page(self):
        c, cfg = self.c, self.config
        if self.page_count:
            c.showPage()
        self.page_count += 1
        c.setStrokeColor(colors.black)
        c.setLineWidth(0.5)
        c.rect(self.left - 2 * mm, cfg.margin - 2 * mm, self.width + 4 * mm,
               cfg.page_height - 2 * cfg.margin + 4 * mm)
        if self.layout.watermark:
            c.saveState()
            c.setFillColor(colors.HexColor("#E6E6E6"))
            c.setFont(self.fonts.bold, 40)
            c.translate(cfg.page_width / 2, cfg.page_height / 2)
            c.rotate(45)
            c.drawCentredString(0, 0, self.layout.watermark)
            c.restoreState()
        c.setFillColor(colors.black)
        self.y = self.top

    def ensure_space(self, height: float):
        if self.y - height < self.config.bottom_limit:
            self.start_page()

    def draw_flowable(self, flowable):
        """Draw a table at the cursor, splitting it over pages when it does not fit."""
        while True:
            avail = self.y - self.config.bottom_limit
            _, height = flowable.wrapOn(self.c, self.width, avail)
            if height <= avail:
                flowable.drawOn(self.c, self.left, self.y - height)
                self.y -= height
                return
            parts = flowable.split(self.width, avail)
            if len(parts) < 2:
                if self.y == self.top:
                    # taller than a whole page and cannot be split; draw what fits
                    flowable.drawOn(self.c, self.left, self.y - height)
                    self.y -= height
                    return
                self.start_page()
                continue
            first, flowable = parts[0], parts[1]
            _, first_height = first.wrapOn(self.c, self.width, avail)
            first.drawOn(self.c, self.left, self.y - first_height)
            self.start_page()

    def boxed_header(self, x: float, y: float, width: float, height: float, label: str):
        c = self.c
        c.setLineWidth(0.25)
        c.rect(x, y - height, width, height)
        c.setFillColor(self.fill)
        c.rect(x, y - 6 * mm, width, 6 * mm, stroke=0, fill=1)
        c.setFillColor(colors.black)
        c.setFont(self.fonts.bold, 9)
        c.drawString(x + 2 * mm, y - 4 * mm, label)

    # sections
    def title_bar(self):
        c, fonts = self.c, self.fonts
        c.setFillColor(self.fill)
        c.rect(self.left, self.y - 10 * mm, self.width, 10 * mm, stroke=0, fill=1)
        c.setFillColor(colors.black)
        c.setFont(fonts.bold, 14)
        c.drawCentredString(self.left + self.width / 2, self.y - 6.5 * mm, self.layout.title)
        c.setFont(fonts.regular, 8)
        c.drawRightString(self.left + self.width - 2 * mm, self.y - 6.5 * mm,
                          f"Invoice No: {self.layout.invoice_number or 'N/A'}")
        self.y -= 15 * mm

    def parties(self):
        col = self.width / 2 - 2 * mm
        text_width = col - 4 * mm
        blocks = []
        for lines in (self.layout.seller_lines, self.layout.buyer_lines):
            wrapped = []
            for index, line in enumerate(lines):
                font = self.fonts.bold if index == 0 else self.fonts.regular
                size = 9 if index == 0 else 8
                for part in wrap_text(line, font, size, text_width)[0]:
                    wrapped.append((part, font, size))
            blocks.append(wrapped)
        height = max(35 * mm, 10 * mm + max(len(b) for b in blocks) * 3.8 * mm)
        self.ensure_space(height)

        for label, x, lines in (("SELLER", self.left, blocks[0]), ("BUYER", self.left + col + 4 * mm, blocks[1])):
            self.boxed_header(x, self.y, col, height, label)
            line_y = self.y - 10 * mm
            for text, font, size in lines:
                self.c.setFont(font, size)
                self.c.drawString(x + 2 * mm, line_y, text)
                line_y -= 3.8 * mm
        self.y -= height + 3 * mm

    def meta_row(self):
        cells = [Paragraph(f"<b>{escape(label)}</b><br/>{escape(value)}", self.cell_style)
                 for label, value in self.layout.meta_rows]
        table = Table([cells], colWidths=[self.width / len(cells)] * len(cells))
        table.setStyle(TableStyle([
            ("GRID", (0, 0), (-1, -1), 0.25, colors.black),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        self.draw_flowable(table)
        self.y -= 3 * mm

    def items_table(self):
        layout, fonts, cfg = self.layout, self.fonts, self.config
        widths = INTER_STATE_WIDTHS if layout.is_inter_state else INTRA_STATE_WIDTHS
        data = [list(layout.item_headers)]
        for row in layout.item_rows:
            cells = list(row)
            cells[1] = Paragraph(escape(cells[1]), self.cell_style)
            data.append(cells)
        first_footer = len(data)
        for label, value in layout.footer_rows:
            data.append([label] + [""] * (len(layout.item_headers) - 2) + [value])
        last = len(data) - 1

        style = [
            ("GRID", (0, 0), (-1, -1), 0.25, colors.black),
            ("FONTNAME", (0, 0), (-1, -1), fonts.regular),
            ("FONTSIZE", (0, 0), (-1, -1), cfg.font_size),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("BACKGROUND", (0, 0), (-1, 0), self.fill),
            ("FONTNAME", (0, 0), (-1, 0), fonts.bold),
            ("ALIGN", (0, 0), (-1, 0), "CENTER"),
            ("FONTNAME", (0, last), (-1, last), fonts.bold),
            ("BACKGROUND", (0, last), (-1, last), self.fill),
        ]
        for col, align in enumerate(layout.item_aligns):
            style.append(("ALIGN", (col, 1), (col, first_footer - 1), align))
        for row in range(first_footer, len(data)):
            style.append(("SPAN", (0, row), (-2, row)))
            style.append(("ALIGN", (0, row), (-1, row), "RIGHT"))

        table = Table(data, colWidths=_scaled(widths, self.width), repeatRows=1)
        table.setStyle(TableStyle(style))
        self.draw_flowable(table)
        self.y -= 3 * mm

    def amount_in_words(self):
        label_width = 32 * mm
        lines, _ = wrap_text(self.layout.amount_in_words, self.fonts.regular, self.config.font_size,
                             self.width - label_width - 4 * mm)
        height = max(10 * mm, (len(lines) + 1) * 4 * mm)
        self.ensure_space(height)
        c = self.c
        c.setLineWidth(0.25)
        c.rect(self.left, self.y - height, self.width, height)
        c.setFillColor(self.fill)
        c.rect(self.left, self.y - height, label_width, height, stroke=0, fill=1)
        c.setFillColor(colors.black)
        c.setFont(self.fonts.bold, self.config.font_size)
        c.drawString(self.left + 2 * mm, self.y - 6 * mm, "Amount in Words:")
        c.setFont(self.fonts.regular, self.config.font_size)
        line_y = self.y - 6 * mm
        for line in lines:
            c.drawString(self.left + label_width + 2 * mm, line_y, line)
            line_y -= 4 * mm
        self.y -= height + 3 * mm

    def breakdown_table(self):
        layout, fonts, cfg = self.layout, self.fonts, self.config
        headers = layout.breakdown_headers
        data = [["TAX BREAKDOWN"] + [""] * (len(headers) - 1), list(headers)]
        data.extend(list(row) for row in layout.breakdown_rows)
        last = len(data) - 1
        table = Table(data, colWidths=_scaled(BREAKDOWN_WIDTHS, self.width), repeatRows=2)
        table.setStyle(TableStyle([
            ("SPAN", (0, 0), (-1, 0)),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.black),
            ("FONTNAME", (0, 0), (-1, -1), fonts.regular),
            ("FONTSIZE", (0, 0), (-1, -1), cfg.font_size),
            ("BACKGROUND", (0, 0), (-1, 1), self.fill),
            ("FONTNAME", (0, 0), (-1, 1), fonts.bold),
            ("ALIGN", (0, 1), (-1, 1), "CENTER"),
            ("ALIGN", (0, 2), (0, last), "CENTER"),
            ("ALIGN", (1, 2), (-1, last), "RIGHT"),
            ("FONTNAME", (0, last), (-1, last), fonts.bold),
        ]))
        self.draw_flowable(table)
        self.y -= 3 * mm

    def bank_and_notes(self):
        layout, fonts, cfg = self.layout, self.fonts, self.config
        left_width = self.width * 0.6
        right_x = self.left + left_width + 5 * mm
        right_width = self.width * 0.4 - 5 * mm
        rows = max(len(layout.bank_rows), len(layout.notes_lines), 1)
        height = max(25 * mm, 10 * mm + rows * 4 * mm)
        terms_height = self._terms_height()

        if self.y < cfg.page_break_threshold or self.y - height - terms_height < cfg.bottom_limit:
            self.start_page()

        c = self.c
        self.boxed_header(self.left, self.y, left_width, height, "BANK DETAILS")
        c.setFont(fonts.regular, cfg.font_size)
        line_y = self.y - 10 * mm
        if not layout.bank_rows:
            c.drawString(self.left + 2 * mm, line_y, "Not provided")
        for label, value in layout.bank_rows:
            c.drawString(self.left + 2 * mm, line_y, f"{label}:")
            c.drawString(self.left + 32 * mm, line_y, value)
            line_y -= 4 * mm

        self.boxed_header(right_x, self.y, right_width, height, "NOTES")
        c.setFont(fonts.regular, cfg.font_size)
        line_y = self.y - 10 * mm
        for line in layout.notes_lines:
            c.drawString(right_x + 2 * mm, line_y, line)
            line_y -= 4 * mm
        self.y -= height + 3 * mm

    def _terms_height(self) -> float:
        if not self.layout.terms_lines:
            return 0
        return 10 * mm + len(self.layout.terms_lines) * 4 * mm

    def terms(self):
        if not self.layout.terms_lines:
            return
        height = self._terms_height()
        self.ensure_space(height)
        self.boxed_header(self.left, self.y, self.width, height, "TERMS AND CONDITIONS")
        self.c.setFont(self.fonts.regular, self.config.font_size)
        line_y = self.y - 10 * mm
        for line in self.layout.terms_lines:
            self.c.drawString(self.left + 2 * mm, line_y, line)
            line_y -= 4 * mm
        self.y -= height + 3 * mm

    def signature(self):
        c, fonts = self.c, self.fonts
        declaration, _ = wrap_text(self.layout.declaration, fonts.italic, 7, self.width)
        height = len(declaration) * 3.5 * mm + 2 * mm + 18 * mm
        self.ensure_space(height)
        c.setFont(fonts.italic, 7)
        for line in declaration:
            c.drawString(self.left, self.y - 3 * mm, line)
            self.y -= 3.5 * mm
        self.y -= 2 * mm

        box_top = self.y
        c.setLineWidth(0.25)
        c.rect(self.left, box_top - 16 * mm, self.width, 16 * mm)
        centre = self.left + self.width - 30 * mm
        c.setFont(fonts.bold, 9)
        c.drawCentredString(centre, box_top - 5 * mm, self.layout.signatory_name)
        c.setLineWidth(0.5)
        c.line(centre - 22 * mm, box_top - 11 * mm, centre + 22 * mm, box_top - 11 * mm)
        c.setFont(fonts.regular, 8)
        c.drawCentredString(centre, box_top - 14.5 * mm, self.layout.signatory_caption)
        self.y -= 18 * mm

    def footer(self):
        c = self.c
        c.setFont(self.fonts.italic, 7)
        c.setFillColor(colors.HexColor("#646464"))
        c.drawCentredString(self.left + self.width / 2, self.config.margin + 2 * mm, self.layout.disclaimer)
        c.setFillColor(colors.black)

    def render(self) -> Tuple[bytes, int]:
        self.start_page()
        self.title_bar()
        self.parties()
        self.meta_row()
        self.items_table()
        self.amount_in_words()
        self.breakdown_table()
        self.bank_and_notes()
        self.terms()
        self.signature()
        self.footer()
        self.c.showPage()
        self.c.save()
        return self.buffer.getvalue(), self.page_count


def _draw(layout: InvoiceLayout, config: RenderConfig) -> Tuple[bytes, int]:
    return _InvoiceCanvas(layout, config, register_fonts(config)).render()


def generate_invoice_pdf(layout: InvoiceLayout, config: Optional[RenderConfig] = None) -> bytes:
    pdf, _ = _draw(layout, config or RenderConfig())
    return pdf


@dataclass(frozen=True)
class RenderedInvoice:
    pdf: bytes
    totals: InvoiceTotals
    layout: InvoiceLayout
    page_count: int


def render_invoice(request: InvoiceRequest, config: Optional[RenderConfig] = None) -> RenderedInvoice:
    """
    Compute totals and render the invoice PDF.

    Validation errors are raised before anything is drawn. Failures of the
    PDF backend are raised as RenderError with the original exception attached.
    """
    config = config or RenderConfig()
    totals = compute_totals(request.items, request.jurisdiction())
    log.info("Rendering invoice %s with %d items", request.invoice_number, len(request.items))
    try:
        layout = build_layout(request, totals, config)
        pdf, pages = _draw(layout, config)
    except InvoiceError:
        raise
    except Exception as exc:
        log.exception("Rendering invoice %s failed", request.invoice_number)
        raise RenderError(f"Failed to render invoice {request.invoice_number}: {exc}", cause=exc) from exc
    log.info("Rendered invoice %s: %d page(s), %d bytes", request.invoice_number, pages, len(pdf))
    return RenderedInvoice(pdf=pdf, totals=totals, layout=layout, page_count=pages)


# ---------------------------------------------------
# TABULAR EXPORTS
# ---------------------------------------------------
def _items_frame(request: InvoiceRequest, totals: InvoiceTotals) -> pd.DataFrame:
    records = []
    for sr, (item, line) in enumerate(zip(request.items, totals.lines), start=1):
        records.append({
            "Sr": sr,
            "Description": item.description,
            "HSN": item.hsn_code,
            "Qty": float(item.quantity),
            "Unit Price": float(money(item.unit_rate)),
            "Discount": float(money(item.discount)),
            "Taxable": float(money(line.taxable_amount)),
            "Rate%": float(item.tax_rate_percent),
            "CGST": float(money(line.cgst)),
            "SGST": float(money(line.sgst)),
            "IGST": float(money(line.igst)),
            "Total": float(money(line.line_total)),
        })
    columns = ["Sr", "Description", "HSN", "Qty", "Unit Price", "Discount", "Taxable",
               "Rate%", "CGST", "SGST", "IGST", "Total"]
    return pd.DataFrame(records, columns=columns)


def _totals_frame(request: InvoiceRequest, totals: InvoiceTotals) -> pd.DataFrame:
    return pd.DataFrame([{
        "Invoice No.": request.invoice_number,
        "Invoice Date": format_date(request.invoice_date),
        "Buyer": request.buyer.name,
        "Taxable": float(money(totals.subtotal)),
        "CGST": float(money(totals.total_cgst)),
        "SGST": float(money(totals.total_sgst)),
        "IGST": float(money(totals.total_igst)),
        "Total Tax": float(money(totals.total_tax)),
        "Round Off": float(money(totals.round_off)),
        "Grand Total": float(totals.rounded_total),
        "Amount in Words": totals.amount_in_words,
    }])


def generate_invoice_csv_bytes(request: InvoiceRequest, totals: InvoiceTotals) -> bytes:
    df = _items_frame(request, totals)
    buffer = BytesIO()
    buffer.write(df.to_csv(index=False).encode("utf-8"))
    return buffer.getvalue()


def generate_invoice_xlsx_bytes(request: InvoiceRequest, totals: InvoiceTotals) -> bytes:
    breakdown = pd.DataFrame([
        {
            "Tax Rate": "Total" if row.rate is None else format_rate(row.rate),
            "Taxable Amount": float(money(row.taxable_amount)),
            "IGST": float(money(row.igst)),
            "CGST": float(money(row.cgst)),
            "SGST": float(money(row.sgst)),
            "Total Tax": float(money(row.total_tax)),
        }
        for row in totals.breakdown + (totals.breakdown_total,)
    ])
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _items_frame(request, totals).to_excel(writer, index=False, sheet_name="Items")
        breakdown.to_excel(writer, index=False, sheet_name="Tax Breakdown")
        _totals_frame(request, totals).to_excel(writer, index=False, sheet_name="Totals")
    return buffer.getvalue()
