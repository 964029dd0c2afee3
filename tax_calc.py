"""GST arithmetic: per-line tax, per-rate breakdown and invoice totals."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Tuple

from exceptions import InvalidAmountError, NegativeTaxableAmountError
from models import LineItem, TaxJurisdiction
from number_words import to_words

log = logging.getLogger(__name__)

ZERO = Decimal("0")
PAISA = Decimal("0.01")
RUPEE = Decimal("1")


@dataclass(frozen=True)
class LineTax:
    """Tax figures for a single invoice line."""

    taxable_amount: Decimal
    tax_rate_percent: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst

    @property
    def line_total(self) -> Decimal:
        return self.taxable_amount + self.total_tax


@dataclass(frozen=True)
class TaxBreakdownRow:
    """Taxable value and tax for one GST rate. rate is None on the total row."""

    rate: Optional[Decimal]
    taxable_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(frozen=True)
class InvoiceTotals:
    is_inter_state: bool
    lines: Tuple[LineTax, ...]
    breakdown: Tuple[TaxBreakdownRow, ...]
    breakdown_total: TaxBreakdownRow
    gross_amount: Decimal
    total_discount: Decimal
    subtotal: Decimal
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    total_tax: Decimal
    grand_total: Decimal
    rounded_total: Decimal
    round_off: Decimal
    amount_in_words: str


def _round_half_up(val: Decimal, exp: Decimal) -> Decimal:
    try:
        return val.quantize(exp, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        # the rounded value needs more digits than the decimal context allows
        raise InvalidAmountError(f"Amount {val} is too large to round", val) from exc


def money(val) -> Decimal:
    """Round to 2 decimals (half-up) consistently for money values."""
    if not isinstance(val, Decimal):
        val = Decimal(str(val))
    return _round_half_up(val, PAISA)


def round_rupees(val: Decimal) -> Decimal:
    return _round_half_up(val, RUPEE)


def _split_tax(taxable: Decimal, rate: Decimal, is_inter_state: bool) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Return (cgst, sgst, igst) for a taxable value.
    Inter-state → IGST at the full rate
    Intra-state → CGST + SGST, each at half the rate
    """
    if is_inter_state:
        return ZERO, ZERO, taxable * rate / 100
    half = taxable * rate / 200
    return half, half, ZERO


def compute_line(item: LineItem, is_inter_state: bool) -> LineTax:
    """Compute tax breakdown for one invoice line."""
    taxable = item.taxable_amount
    cgst, sgst, igst = _split_tax(taxable, item.tax_rate_percent, is_inter_state)
    return LineTax(
        taxable_amount=taxable,
        tax_rate_percent=item.tax_rate_percent,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
    )


def compute_totals(items: Iterable[LineItem], jurisdiction: TaxJurisdiction) -> InvoiceTotals:
    """
    Compute the totals of an invoice.

    The CGST/SGST vs. IGST decision is made once for the whole invoice from the
    jurisdiction. Tax is aggregated per distinct rate; the breakdown is sorted by
    rate and its total row is the column-wise sum. Amounts are kept exact; only
    the rounded total is rounded (half-up, to the rupee).
    """
    items = list(items)
    is_inter_state = jurisdiction.is_inter_state

    lines = []
    for index, item in enumerate(items):
        if item.taxable_amount < 0:
            raise NegativeTaxableAmountError(
                f"Item {index + 1} ({item.description or 'unnamed'}): discount {item.discount} "
                f"exceeds amount {item.gross_amount}",
                item_index=index,
                taxable_amount=item.taxable_amount,
            )
        lines.append(compute_line(item, is_inter_state))

    subtotal = sum((line.taxable_amount for line in lines), ZERO)

    by_rate: Dict[Decimal, Decimal] = {}
    for line in lines:
        rate = line.tax_rate_percent
        by_rate[rate] = by_rate.get(rate, ZERO) + line.taxable_amount

    breakdown = []
    for rate in sorted(by_rate):
        cgst, sgst, igst = _split_tax(by_rate[rate], rate, is_inter_state)
        breakdown.append(TaxBreakdownRow(rate, by_rate[rate], cgst, sgst, igst))

    breakdown_total = TaxBreakdownRow(
        rate=None,
        taxable_amount=sum((row.taxable_amount for row in breakdown), ZERO),
        cgst=sum((row.cgst for row in breakdown), ZERO),
        sgst=sum((row.sgst for row in breakdown), ZERO),
        igst=sum((row.igst for row in breakdown), ZERO),
    )

    total_tax = breakdown_total.cgst + breakdown_total.sgst + breakdown_total.igst
    grand_total = subtotal + total_tax
    rounded_total = round_rupees(grand_total)

    totals = InvoiceTotals(
        is_inter_state=is_inter_state,
        lines=tuple(lines),
        breakdown=tuple(breakdown),
        breakdown_total=breakdown_total,
        gross_amount=sum((item.gross_amount for item in items), ZERO),
        total_discount=sum((item.discount for item in items), ZERO),
        subtotal=subtotal,
        total_cgst=breakdown_total.cgst,
        total_sgst=breakdown_total.sgst,
        total_igst=breakdown_total.igst,
        total_tax=total_tax,
        grand_total=grand_total,
        rounded_total=rounded_total,
        round_off=rounded_total - grand_total,
        amount_in_words=to_words(rounded_total),
    )
    log.debug(
        "Computed totals: %d items, %d rates, subtotal=%s tax=%s grand=%s inter_state=%s",
        len(lines), len(breakdown), subtotal, total_tax, grand_total, is_inter_state,
    )
    return totals
