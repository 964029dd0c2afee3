"""Input models for an invoice: parties, bank details and line items."""

from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _decimal_input(value: Any) -> Any:
    if isinstance(value, float):
        return str(value)
    return value


def _text_input(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    return value


class InvoiceModel(BaseModel):
    """Base model: immutable, accepts camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class LineItem(InvoiceModel):
    """One product or service line on an invoice."""

    description: str = ""
    hsn_code: str = Field(default="", description="HSN/SAC tariff code, carried opaquely")
    quantity: Decimal = Field(ge=0)
    unit_rate: Decimal = Field(ge=0, description="Price per unit before tax")
    tax_rate_percent: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0, description="Absolute amount off the line")

    coerce_numbers = field_validator(
        "quantity", "unit_rate", "tax_rate_percent", "discount", mode="before"
    )(_decimal_input)
    coerce_texts = field_validator("description", "hsn_code", mode="before")(_text_input)

    @property
    def gross_amount(self) -> Decimal:
        return self.quantity * self.unit_rate

    @property
    def taxable_amount(self) -> Decimal:
        # may be negative; compute_totals rejects it
        return self.gross_amount - self.discount


def normalize_state_code(code: str) -> str:
    return (code or "").strip().upper()


class TaxJurisdiction(InvoiceModel):
    seller_state_code: str
    buyer_state_code: str

    coerce_codes = field_validator("seller_state_code", "buyer_state_code", mode="before")(_text_input)

    @property
    def is_inter_state(self) -> bool:
        """True when seller and buyer are in different states (IGST applies)."""
        return normalize_state_code(self.seller_state_code) != normalize_state_code(self.buyer_state_code)


class Party(InvoiceModel):
    """Seller or buyer block printed on the invoice."""

    name: str
    address: str = ""
    gstin: Optional[str] = None
    state: str = ""
    state_code: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None

    coerce_texts = field_validator("name", "state", "state_code", mode="before")(_text_input)

    @field_validator("address", mode="before")
    @classmethod
    def join_address(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return "\n".join(str(line) for line in value if line)
        return _text_input(value)

    @property
    def address_lines(self) -> List[str]:
        return [line.strip() for line in self.address.splitlines() if line.strip()]

    @property
    def state_label(self) -> str:
        if self.state and self.state_code:
            return f"{self.state} ({self.state_code})"
        return self.state or self.state_code


class BankDetails(InvoiceModel):
    account_holder_name: str
    bank_name: str
    account_number: str
    branch: Optional[str] = None
    ifsc_code: Optional[str] = None

    coerce_texts = field_validator("account_number", mode="before")(_text_input)


class InvoiceRequest(InvoiceModel):
    """Everything needed to compute and render one invoice."""

    invoice_number: str
    invoice_date: date
    due_date: Optional[date] = None
    seller: Party
    buyer: Party
    items: List[LineItem] = Field(default_factory=list)
    bank_details: Optional[BankDetails] = None
    notes: str = ""
    terms_and_conditions: str = ""

    coerce_texts = field_validator("invoice_number", "notes", "terms_and_conditions", mode="before")(_text_input)

    def jurisdiction(self) -> TaxJurisdiction:
        # a buyer with no state on record is billed as a local (walk-in) customer
        buyer_code = self.buyer.state_code or self.seller.state_code
        return TaxJurisdiction(
            seller_state_code=self.seller.state_code,
            buyer_state_code=buyer_code,
        )

    @property
    def place_of_supply(self) -> str:
        if self.buyer.state or self.buyer.state_code:
            return self.buyer.state_label
        return self.seller.state_label
