"""Display formatting and line-item import helpers for invoices."""

import io
import logging
import zipfile
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd  # type: ignore
from pydantic import ValidationError as PydanticValidationError
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth

from exceptions import ValidationError
from models import InvoiceRequest, LineItem
from tax_calc import money

log = logging.getLogger(__name__)

# accepted spellings of each line item column, compared lower-cased
COLUMN_ALIASES = {
    "description": ["description", "item", "item name", "product", "name"],
    "hsn_code": ["hsn_code", "hsncode", "hsn", "hsn/sac", "sac"],
    "quantity": ["quantity", "qty"],
    "unit_rate": ["unit_rate", "unitrate", "unit_price", "unit price", "price"],
    "tax_rate_percent": ["tax_rate_percent", "taxratepercent", "tax_rate", "gst_rate", "gst", "gst%", "rate%"],
    "discount": ["discount"],
}


# ---------------------------------------------------
# FORMATTING
# ---------------------------------------------------
def _group_indian(digits: str) -> str:
    """1234567 -> 12,34,567"""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_inr(amount, symbol: str = "₹") -> str:
    """Format an amount with Indian digit grouping, e.g. ₹ 1,23,456.70"""
    value = money(amount)
    sign = "-" if value < 0 else ""
    whole, frac = f"{abs(value):.2f}".split(".")
    text = f"{_group_indian(whole)}.{frac}"
    if symbol:
        return f"{sign}{symbol} {text}"
    return f"{sign}{text}"


def format_rate(rate) -> str:
    if not isinstance(rate, Decimal):
        rate = Decimal(str(rate))
    return f"{rate.normalize():f}%"


def format_quantity(qty) -> str:
    if not isinstance(qty, Decimal):
        qty = Decimal(str(qty))
    return f"{qty.normalize():f}"


def format_date(value: Union[date, datetime, str, None]) -> str:
    if value is None or value == "":
        return "N/A"
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return value.strftime("%d-%b-%Y")


def format_invoice_number(year: int, sequence: int, prefix: str = "INV") -> str:
    """Invoice numbers look like INV-2025-0001."""
    if sequence < 1:
        raise ValidationError(f"Invoice sequence must be positive, got {sequence}")
    return f"{prefix}-{year}-{sequence:04d}"


def wrap_text(
    text: str,
    font_name: str,
    font_size: float,
    width: float,
    max_lines: Optional[int] = None,
    marker: str = "...",
) -> Tuple[List[str], bool]:
    """
    Wrap text to a column width the way it will be drawn.

    Returns the lines and whether anything was cut. When the text needs more
    than max_lines, the last kept line is shortened to make room for marker.
    """
    if not text or not text.strip():
        return [], False
    lines = simpleSplit(text.strip(), font_name, font_size, width)
    if max_lines is None or len(lines) <= max_lines:
        return lines, False

    kept = lines[:max_lines]
    last = kept[-1]
    while last and stringWidth(last + marker, font_name, font_size) > width:
        last = last[:-1]
    kept[-1] = last.rstrip() + marker
    return kept, True


# ---------------------------------------------------
# REQUEST PARSING
# ---------------------------------------------------
def parse_invoice_request(payload: Mapping[str, Any]) -> InvoiceRequest:
    """Build an InvoiceRequest from a camelCase or snake_case mapping."""
    try:
        return InvoiceRequest.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid invoice data: {exc.error_count()} error(s)", errors=exc.errors()
        ) from exc


# ---------------------------------------------------
# LINE ITEM IMPORT (CSV / XLSX)
# ---------------------------------------------------
def _resolve_columns(columns: Sequence[str]) -> Dict[str, str]:
    lowered = {str(c).strip().lower(): c for c in columns}
    resolved = {}
    for field, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lowered:
                resolved[field] = lowered[alias]
                break
    return resolved


def _cell(row, column: Optional[str]):
    if column is None:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    if hasattr(value, "item"):
        # numpy scalar -> python scalar
        value = value.item()
    return value


def _code_text(value) -> Optional[str]:
    # HSN columns come back as floats when the sheet has blanks (8471.0)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return None if value is None else str(value).strip()


def items_from_dataframe(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Read line items from a table.

    Columns are matched by name (see COLUMN_ALIASES). A sheet without
    recognisable headers is read positionally as description, qty, unit price.
    """
    columns = _resolve_columns(df.columns)
    if "quantity" not in columns and "unit_rate" not in columns:
        if len(df.columns) < 3:
            raise ValidationError("Item sheet needs description, quantity and unit price columns")
        columns = {
            "description": df.columns[0],
            "quantity": df.columns[1],
            "unit_rate": df.columns[2],
        }
    missing = [name for name in ("quantity", "unit_rate") if name not in columns]
    if missing:
        raise ValidationError(f"Item sheet is missing column(s): {', '.join(missing)}")

    items = []
    for number, (_, row) in enumerate(df.iterrows(), start=1):
        description = _cell(row, columns.get("description"))
        quantity = _cell(row, columns["quantity"])
        unit_rate = _cell(row, columns["unit_rate"])
        if description is None and quantity is None and unit_rate is None:
            continue
        if quantity is None or unit_rate is None:
            raise ValidationError(f"Row {number}: quantity and unit price are required")
        item = {
            "description": "" if description is None else str(description).strip(),
            "hsn_code": _code_text(_cell(row, columns.get("hsn_code"))),
            "quantity": quantity,
            "unit_rate": unit_rate,
            "tax_rate_percent": _cell(row, columns.get("tax_rate_percent")),
            "discount": _cell(row, columns.get("discount")),
        }
        items.append(item)
    log.info("Read %d line items from table with columns %s", len(items), list(df.columns))
    return items


def load_line_items(file_bytes: bytes, filename: str) -> List[Dict[str, Any]]:
    fname = filename.lower()
    # read as text so HSN codes keep their leading zeros
    try:
        if fname.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(file_bytes), dtype=str)
        elif fname.endswith((".xlsx", ".xls")):
            df = pd.read_excel(io.BytesIO(file_bytes), dtype=str)
        else:
            raise ValidationError(f"Unsupported item file type: {filename}")
    except (ValueError, zipfile.BadZipFile, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ValidationError(f"Could not read items from {filename}: {exc}") from exc
    return items_from_dataframe(df)


def normalize_item_dicts(items: List[Dict[str, Any]], hsn_lookup=None) -> List[LineItem]:
    """
    Turn raw item dicts into LineItems.

    With an HSN lookup, a blank HSN code and a missing tax rate are filled from
    the best match for the description.
    """
    normalized = []
    for number, it in enumerate(items, start=1):
        data = {k: v for k, v in it.items() if v is not None}
        desc = str(data.get("description", "")).strip()
        if hsn_lookup is not None and desc and (not data.get("hsn_code") or "tax_rate_percent" not in data):
            sugg = hsn_lookup.suggest(desc, limit=1)
            if sugg:
                if not data.get("hsn_code"):
                    data["hsn_code"] = sugg[0].hsn_code
                data.setdefault("tax_rate_percent", sugg[0].rate)
        try:
            normalized.append(LineItem.model_validate(data))
        except PydanticValidationError as exc:
            raise ValidationError(f"Item {number} is invalid", errors=exc.errors()) from exc
    return normalized
