from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AmountBreakdown:
    subtotal: Decimal
    discount_amount: Decimal
    after_discount: Decimal
    tax_amount: Decimal
    effective: Decimal


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_amount(amount, quantity=1, discount=0, tax_percent=0) -> AmountBreakdown:
    """
    Derive the effective charge of an expense.

    The discount is taken off the quantity-extended price first and tax is
    charged on what remains. Inputs are expected to be validated already;
    nothing is clamped here.
    """
    subtotal = _to_decimal(amount) * _to_decimal(quantity)
    discount_amount = subtotal * _to_decimal(discount) / HUNDRED
    after_discount = subtotal - discount_amount
    tax_amount = after_discount * _to_decimal(tax_percent) / HUNDRED
    return AmountBreakdown(
        subtotal=subtotal,
        discount_amount=discount_amount,
        after_discount=after_discount,
        tax_amount=tax_amount,
        effective=after_discount + tax_amount,
    )


def effective_amount(amount, quantity=1, discount=0, tax_percent=0) -> Decimal:
    return calculate_amount(amount, quantity, discount, tax_percent).effective


def to_cents(value: Decimal) -> Decimal:
    """Round for display, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
