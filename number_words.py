"""Rupee amounts in English words, Indian numbering (Crore, Lakh, Thousand)."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from exceptions import InvalidAmountError

ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
        "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
        "Seventeen", "Eighteen", "Nineteen"]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

CRORE = 10_000_000
LAKH = 100_000
THOUSAND = 1_000

Amount = Union[int, float, str, Decimal]


def _to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidAmountError(f"Cannot convert {amount!r} to words", amount)
    try:
        # floats go through str() so 1234.5 stays 1234.5 and not its binary expansion
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(f"Cannot convert {amount!r} to words", amount) from exc
    if value.is_nan() or value.is_infinite():
        raise InvalidAmountError(f"Cannot convert {amount!r} to words", amount)
    if value < 0:
        raise InvalidAmountError(f"Negative amount {amount!r} cannot be written in words", amount)
    return value


def integer_to_words(n: int) -> str:
    """Words for a positive whole number using Crore/Lakh/Thousand/Hundred groups."""
    if n < 20:
        return ONES[n]
    if n < 100:
        return TENS[n // 10] + (" " + ONES[n % 10] if n % 10 else "")
    if n < THOUSAND:
        rest = n % 100
        return ONES[n // 100] + " Hundred" + (" and " + integer_to_words(rest) if rest else "")
    if n < LAKH:
        group, rest, name = n // THOUSAND, n % THOUSAND, "Thousand"
    elif n < CRORE:
        group, rest, name = n // LAKH, n % LAKH, "Lakh"
    else:
        group, rest, name = n // CRORE, n % CRORE, "Crore"
    words = integer_to_words(group) + " " + name
    if rest:
        words += " " + integer_to_words(rest)
    return words


def to_words(amount: Amount) -> str:
    """
    Write a rupee amount in English words, Indian numbering.

    The amount is rounded half-up to paise first. A non-zero paise part is
    appended as "and <words> Paise".
    """
    try:
        value = _to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        # more digits than the decimal context can hold
        raise InvalidAmountError(f"Amount {amount!r} is too large to write in words", amount) from exc
    rupees = int(value)
    paise = int((value - rupees) * 100)

    if rupees == 0 and paise == 0:
        return "Zero"
    if rupees == 0:
        return integer_to_words(paise) + " Paise"

    words = integer_to_words(rupees)
    if paise:
        words += " and " + integer_to_words(paise) + " Paise"
    return words
