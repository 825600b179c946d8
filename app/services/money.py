"""
Monetary arithmetic.

All royalty amounts flow through this module. Values are held as
`decimal.Decimal` from parsing to summation and are only quantized to two
places by `format_amount`, at display time. Exports use `to_plain_string`,
which keeps full precision.

Numeric coercion is lenient by default: unparseable input becomes zero
instead of failing the row, because distributor spreadsheets are messy.
`LenientPolicy` makes that explicit and lets a field opt into strict
parsing.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import FrozenSet, Iterable, Optional, Union

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Enough significant digits for 20 fractional places on large totals
SUM_PRECISION = 50

# Currency symbols, whitespace and thousands separators
_STRIP_PATTERN = re.compile(r"[$€£¥₱,\s]")

Number = Union[Decimal, str, int]


class NumericParseError(ValueError):
    """Raised for unparseable numbers when the field is parsed strictly."""


@dataclass(frozen=True)
class LenientPolicy:
    """
    Lenient numeric coercion policy.

    Fields listed in `strict_fields` raise `NumericParseError` instead of
    defaulting to zero.
    """
    strict_fields: FrozenSet[str] = field(default_factory=frozenset)

    def is_strict(self, field_name: Optional[str]) -> bool:
        return field_name is not None and field_name in self.strict_fields


DEFAULT_POLICY = LenientPolicy()


def _clean_numeric(value: str) -> str:
    cleaned = _STRIP_PATTERN.sub("", value)
    # Accounting negatives: (123.45) -> -123.45
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]
    return cleaned


def parse_decimal(
    value: Optional[str],
    field_name: Optional[str] = None,
    policy: LenientPolicy = DEFAULT_POLICY,
) -> Decimal:
    """
    Parse a money or percentage string into an exact Decimal.

    Handles "$1,234.50", "€ 0.0001" and accounting negatives like "(12.50)".
    Empty input is zero. Unparseable input is zero unless the field is
    strict under `policy`.
    """
    if value is None:
        return ZERO
    text = str(value).strip()
    if not text:
        return ZERO

    cleaned = _clean_numeric(text)
    if cleaned in ("", "-"):
        return ZERO

    try:
        result = Decimal(cleaned)
    except InvalidOperation:
        result = None

    if result is None or not result.is_finite():
        if policy.is_strict(field_name):
            raise NumericParseError(f"Cannot parse decimal: {value}")
        logger.warning(f"Lenient coercion: {field_name or 'value'} {value!r} defaulted to 0")
        return ZERO

    return result


def parse_usage_count(
    value: Optional[str],
    field_name: Optional[str] = "usage_count",
    policy: LenientPolicy = DEFAULT_POLICY,
) -> int:
    """
    Parse a usage count as a non-negative integer.

    Fractional counts are truncated ("12.0" -> 12). Negative or
    unparseable values become 0 unless the field is strict.
    """
    if value is None:
        return 0
    cleaned = _clean_numeric(str(value).strip())
    if not cleaned:
        return 0

    try:
        count = int(Decimal(cleaned))
    except (InvalidOperation, ValueError, OverflowError):
        if policy.is_strict(field_name):
            raise NumericParseError(f"Cannot parse integer: {value}")
        logger.warning(f"Lenient coercion: {field_name} {value!r} defaulted to 0")
        return 0

    if count < 0:
        if policy.is_strict(field_name):
            raise NumericParseError(f"Usage count cannot be negative: {value}")
        return 0
    return count


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce a stored amount (Decimal, str or int) to Decimal. Floats are refused."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats")
    return Decimal(str(value))


def sum_amounts(values: Iterable[Optional[Number]]) -> Decimal:
    """Exact decimal sum."""
    total = ZERO
    with localcontext() as ctx:
        ctx.prec = SUM_PRECISION
        for value in values:
            total += to_decimal(value)
    return total


def format_amount(value: Number) -> str:
    """Format an amount to exactly two decimal places (display only)."""
    return str(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def to_plain_string(value: Optional[Number]) -> str:
    """
    Full-precision, non-scientific string for exports.

    Trailing zeros beyond the decimal point are dropped: "1.2500" -> "1.25",
    "100.00" -> "100".
    """
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal("1")))
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def percentage(part: Number, whole: Number) -> Decimal:
    """Share of `part` in `whole`, in percent with two decimals. Zero when whole is zero."""
    whole_dec = to_decimal(whole)
    if whole_dec == ZERO:
        return ZERO
    return (to_decimal(part) * 100 / whole_dec).quantize(CENT, rounding=ROUND_HALF_UP)
