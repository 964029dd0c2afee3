import datetime
import logging
import os

import pandas as pd
import streamlit as st
from pydantic import ValidationError as PydanticValidationError

from config import Settings, configure_logging
from download import invoice_filename, render_with_retry
from exceptions import ConfigurationError, InvoiceError, ValidationError
from hsn_lookup import HSNLookup
from invoice_generator import generate_invoice_csv_bytes, generate_invoice_xlsx_bytes, render_invoice
from models import InvoiceRequest, Party
from utils import format_inr, format_invoice_number, format_rate, load_line_items, normalize_item_dicts

log = logging.getLogger(__name__)

ITEM_COLUMNS = ["description", "hsn_code", "quantity", "unit_rate", "tax_rate_percent", "discount"]

# ---------------------------------------------------
# PAGE CONFIG
# ---------------------------------------------------
st.set_page_config(page_title="GST Invoice Generator", layout="wide")

settings = Settings.from_env()
configure_logging(settings.log_level)
SELLER = settings.seller()

# ---------------------------------------------------
# CUSTOM CSS STYLING
# ---------------------------------------------------
st.markdown("""
<style>
    .company-header { text-align: center; background: #008000; color: white;
                      padding: 12px 0; border-radius: 8px; margin-bottom: 12px; }
    .company-header h2 { margin: 0; }
    .company-header p { margin: 2px 0; font-size: 13px; white-space: pre-line; }
    .section-title { font-size: 20px; font-weight: 700; color: #008000;
                     border-bottom: 2px solid #008000; margin: 8px 0 12px; }
    .summary-box { background: #eaf1fb; border-left: 4px solid #0b5394;
                   padding: 12px 18px; border-radius: 8px; margin-top: 12px; }
</style>
""", unsafe_allow_html=True)

# ---------------------------------------------------
# COMPANY HEADER
# ---------------------------------------------------
st.markdown(f"""
<div class="company-header">
    <h2>{SELLER.name}</h2>
    <p>{SELLER.address}</p>
    <p>GSTIN: {SELLER.gstin or "N/A"} | State: {SELLER.state_label}</p>
</div>
""", unsafe_allow_html=True)

st.title("🧾 GST Invoice Generator")
st.write("Compute CGST/SGST or IGST for your items and download the tax invoice as PDF, CSV or Excel.")


# ---------------------------------------------------
# LOAD HSN LOOKUP
# ---------------------------------------------------
@st.cache_resource
def load_hsn(path):
    if not os.path.exists(path):
        log.warning("HSN table %s not found; HSN suggestions disabled", path)
        return None
    return HSNLookup(path)


try:
    hsn = load_hsn(settings.hsn_csv)
except ConfigurationError as e:
    st.error(str(e))
    hsn = None


def show_auto_hsn(raw_items, items):
    """Caption each item whose blank HSN code was filled from the lookup."""
    for raw, item in zip(raw_items, items):
        if item.hsn_code and not str(raw.get("hsn_code") or "").strip():
            st.caption(f"Auto HSN for {item.description}: {item.hsn_code} | GST Rate: {format_rate(item.tax_rate_percent)}")


# ---------------------------------------------------
# INVOICE DETAILS
# ---------------------------------------------------
st.markdown('<div class="section-title">Invoice</div>', unsafe_allow_html=True)

col1, col2, col3 = st.columns(3)
with col1:
    today = datetime.date.today()
    sequence = st.number_input("Invoice Sequence", min_value=1, value=1)
    invoice_number = st.text_input("Invoice Number", value=format_invoice_number(today.year, int(sequence)))
with col2:
    invoice_date = st.date_input("Invoice Date", value=today)
with col3:
    due_date = st.date_input("Due Date", value=today + datetime.timedelta(days=30))

st.markdown('<div class="section-title">Buyer</div>', unsafe_allow_html=True)
col1, col2 = st.columns(2)
with col1:
    buyer_name = st.text_input("Buyer Name", value="Walk-in Customer")
    buyer_address = st.text_area("Buyer Address")
    buyer_gstin = st.text_input("Buyer GSTIN")
with col2:
    buyer_state = st.text_input("Buyer State", value=SELLER.state)
    buyer_state_code = st.text_input("Buyer State Code", value=SELLER.state_code)
    buyer_phone = st.text_input("Buyer Phone")

# ---------------------------------------------------
# LINE ITEMS
# ---------------------------------------------------
st.markdown('<div class="section-title">Items</div>', unsafe_allow_html=True)

if "invoice_items" not in st.session_state:
    st.session_state.invoice_items = pd.DataFrame(
        [{"description": "", "hsn_code": "", "quantity": 1.0, "unit_rate": 0.0,
          "tax_rate_percent": 18.0, "discount": 0.0}]
    )

uploaded = st.file_uploader("Import items (CSV/XLSX)", type=["csv", "xlsx"])
if uploaded is not None and st.button("Import Items"):
    try:
        raw_imported = load_line_items(uploaded.read(), uploaded.name)
        imported = normalize_item_dicts(raw_imported, hsn)
        show_auto_hsn(raw_imported, imported)
        st.session_state.invoice_items = pd.DataFrame(
            [it.model_dump(mode="json") for it in imported], columns=ITEM_COLUMNS
        ).astype({"quantity": float, "unit_rate": float, "tax_rate_percent": float, "discount": float})
        st.success(f"Imported {len(imported)} items from {uploaded.name}")
    except ValidationError as e:
        st.error(str(e))

edited = st.data_editor(st.session_state.invoice_items, num_rows="dynamic", use_container_width=True)

notes = st.text_area("Notes", value="Thank you for your business!")
terms = st.text_area("Terms and Conditions", value=settings.default_terms)

# ---------------------------------------------------
# GENERATE INVOICE
# ---------------------------------------------------
if st.button("Generate Invoice"):
    raw_items = [
        {k: v for k, v in row.items() if not (isinstance(v, float) and pd.isna(v))}
        for row in edited.to_dict("records")
        if str(row.get("description") or "").strip()
    ]
    try:
        items = normalize_item_dicts(raw_items, hsn)
        show_auto_hsn(raw_items, items)
        request = InvoiceRequest(
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            due_date=due_date,
            seller=SELLER,
            buyer=Party(
                name=buyer_name,
                address=buyer_address,
                gstin=buyer_gstin or None,
                state=buyer_state,
                state_code=buyer_state_code,
                phone=buyer_phone or None,
            ),
            items=items,
            bank_details=settings.bank_details(),
            notes=notes,
            terms_and_conditions=terms,
        )
        rendered = render_with_retry(lambda: render_invoice(request, settings.render_config()))
    except (ValidationError, PydanticValidationError) as e:
        st.error(f"Please fix the invoice: {e}")
    except InvoiceError as e:
        st.error(f"Could not generate the invoice: {e}")
    else:
        totals = rendered.totals
        cur = rendered.layout.currency
        if totals.is_inter_state:
            tax_text = f"IGST: {format_inr(totals.total_igst, cur)}"
        else:
            tax_text = f"CGST: {format_inr(totals.total_cgst, cur)} | SGST: {format_inr(totals.total_sgst, cur)}"
        st.markdown(f"""
        <div class="summary-box">
            Taxable: {format_inr(totals.subtotal, cur)}<br>
            {tax_text}<br>
            Round Off: {format_inr(totals.round_off, cur)}<br>
            <b>Grand Total: {format_inr(totals.rounded_total, cur)}</b><br>
            {totals.amount_in_words} Rupees Only
        </div>
        """, unsafe_allow_html=True)

        base_name = invoice_filename(request.invoice_number)[:-4]
        col1, col2, col3 = st.columns(3)
        with col1:
            st.download_button("📄 Download Invoice (PDF)",
                               data=rendered.pdf,
                               file_name=f"{base_name}.pdf",
                               mime="application/pdf")
        with col2:
            st.download_button("📊 Download Invoice (CSV)",
                               data=generate_invoice_csv_bytes(request, totals),
                               file_name=f"{base_name}.csv",
                               mime="text/csv")
        with col3:
            st.download_button("⬇️ Download Invoice (Excel)",
                               data=generate_invoice_xlsx_bytes(request, totals),
                               file_name=f"{base_name}.xlsx",
                               mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
