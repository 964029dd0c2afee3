"""Exceptions raised by the invoice core."""

from typing import Any, Optional


class InvoiceError(Exception):
    """Base exception for all invoice errors."""

    pass


class ValidationError(InvoiceError):
    """Raised when invoice input is rejected before anything is rendered."""

    def __init__(self, message: str, errors: Any = None) -> None:
        super().__init__(message)
        self.errors = errors


class NegativeTaxableAmountError(ValidationError):
    """Raised when a line's discount exceeds its pre-tax amount."""

    def __init__(self, message: str, item_index: int, taxable_amount: Any) -> None:
        super().__init__(message)
        self.item_index = item_index
        self.taxable_amount = taxable_amount


class InvalidAmountError(ValidationError):
    """Raised when an amount cannot be written out in words."""

    def __init__(self, message: str, amount: Any) -> None:
        super().__init__(message)
        self.amount = amount


class RenderError(InvoiceError):
    """Raised when the PDF backend fails to produce a document."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigurationError(InvoiceError):
    """Raised when settings or lookup tables are unusable."""

    pass
