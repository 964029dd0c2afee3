"""Shared fixtures for invoice tests."""

from datetime import date
from typing import Any, Callable, Dict, List

import pytest

from models import BankDetails, InvoiceRequest, LineItem, Party, TaxJurisdiction


@pytest.fixture
def seller() -> Party:
    return Party(
        name="Friends Group Company Pvt. Ltd.",
        address="12 Wiman Nagar\nPune, Maharashtra 411014",
        gstin="27ABCDE1234F1Z5",
        state="Maharashtra",
        state_code="27",
        phone="+91 8207050123",
        email="info@mycompany.com",
    )


@pytest.fixture
def local_buyer() -> Party:
    return Party(name="Sharma Traders", address="MG Road, Pune", state="Maharashtra", state_code="27")


@pytest.fixture
def outstation_buyer() -> Party:
    return Party(
        name="Bangalore Retail LLP",
        address="Indiranagar, Bengaluru",
        gstin="29AAAAA0000A1Z5",
        state="Karnataka",
        state_code="29",
    )


@pytest.fixture
def bank() -> BankDetails:
    return BankDetails(
        account_holder_name="Friends Group Company Pvt. Ltd.",
        bank_name="State Bank of India",
        account_number="1234567890",
        branch="Viman Nagar",
        ifsc_code="SBIN0001234",
    )


@pytest.fixture
def same_state() -> TaxJurisdiction:
    return TaxJurisdiction(seller_state_code="27", buyer_state_code="27")


@pytest.fixture
def other_state() -> TaxJurisdiction:
    return TaxJurisdiction(seller_state_code="27", buyer_state_code="29")


@pytest.fixture
def widget() -> LineItem:
    """qty=2 at 100, 18% GST, no discount."""
    return LineItem(description="Widget", hsn_code="8471", quantity=2, unit_rate=100, tax_rate_percent=18)


@pytest.fixture
def make_request(seller: Party, local_buyer: Party, bank: BankDetails) -> Callable[..., InvoiceRequest]:
    """Factory for invoice requests; keyword arguments override the defaults."""

    def factory(items: List[LineItem], **overrides: Any) -> InvoiceRequest:
        data: Dict[str, Any] = {
            "invoice_number": "INV-2025-0001",
            "invoice_date": date(2025, 10, 7),
            "due_date": date(2025, 11, 6),
            "seller": seller,
            "buyer": local_buyer,
            "items": items,
            "bank_details": bank,
            "notes": "Goods dispatched via road transport.",
            "terms_and_conditions": "1. Payment due within 30 days.",
        }
        data.update(overrides)
        return InvoiceRequest(**data)

    return factory


@pytest.fixture
def invoice_payload() -> Dict[str, Any]:
    """An invoice as it arrives from the web layer (camelCase keys)."""
    return {
        "invoiceNumber": "INV-2025-0042",
        "invoiceDate": "2025-10-07",
        "dueDate": "2025-11-06",
        "seller": {
            "name": "Friends Group Company Pvt. Ltd.",
            "address": ["12 Wiman Nagar", "Pune"],
            "gstin": "27ABCDE1234F1Z5",
            "state": "Maharashtra",
            "stateCode": "27",
        },
        "buyer": {"name": "Bangalore Retail LLP", "state": "Karnataka", "stateCode": 29},
        "items": [
            {"description": "Widget", "hsnCode": "8471", "quantity": 2, "unitRate": 100, "taxRatePercent": 18},
        ],
        "bankDetails": {
            "accountHolderName": "Friends Group Company Pvt. Ltd.",
            "bankName": "State Bank of India",
            "accountNumber": 1234567890,
            "ifscCode": "SBIN0001234",
        },
        "notes": "Thanks!",
        "termsAndConditions": "Payment due within 30 days.",
    }
