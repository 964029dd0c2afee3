"""Serve rendered invoices as file downloads."""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from exceptions import RenderError
from invoice_generator import RenderConfig, RenderedInvoice, render_invoice
from utils import parse_invoice_request

log = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE = 2  # exponential backoff base, seconds
MAX_BACKOFF = 30

T = TypeVar("T")

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


def invoice_filename(invoice_number: str) -> str:
    safe = _UNSAFE_FILENAME.sub("-", (invoice_number or "").strip()).strip("-.")
    return f"Invoice-{safe or 'download'}.pdf"


def pdf_download_headers(invoice_number: str, size: int) -> Dict[str, str]:
    return {
        "Content-Type": "application/pdf",
        "Content-Disposition": f'attachment; filename="{invoice_filename(invoice_number)}"',
        "Content-Length": str(size),
        "Cache-Control": "no-cache, no-store, must-revalidate",
        "Pragma": "no-cache",
        "Expires": "0",
    }


@dataclass(frozen=True)
class InvoiceResponse:
    body: bytes
    headers: Dict[str, str]
    invoice: RenderedInvoice

    status_code: int = 200

    @property
    def filename(self) -> str:
        return invoice_filename(self.invoice.layout.invoice_number)


def invoice_pdf_response(payload: Mapping[str, Any], config: Optional[RenderConfig] = None) -> InvoiceResponse:
    """Parse an invoice mapping, render it and wrap the PDF with download headers."""
    request = parse_invoice_request(payload)
    rendered = render_invoice(request, config)
    return InvoiceResponse(
        body=rendered.pdf,
        headers=pdf_download_headers(request.invoice_number, len(rendered.pdf)),
        invoice=rendered,
    )


def render_with_retry(
    render: Callable[[], T],
    max_attempts: int = MAX_ATTEMPTS,
    backoff_base: float = BACKOFF_BASE,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Call render, retrying RenderError with exponential backoff.

    Validation errors are raised at once: the same input fails the same way.
    The last RenderError is re-raised when attempts run out.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    attempt = 0
    while True:
        attempt += 1
        try:
            return render()
        except RenderError as exc:
            if attempt >= max_attempts:
                log.error("Invoice render failed after %d attempt(s): %s", attempt, exc)
                raise
            delay = min(MAX_BACKOFF, backoff_base ** attempt)
            log.warning("Invoice render attempt %d failed (%s); retrying in %.1fs", attempt, exc, delay)
            sleep(delay)
