from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO_MONEY = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Quantise to cents. Floats go through ``str`` so 0.1 + 0.2 stays 0.30."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return to_money(to_money(unit_price) * quantity)


def sum_money(amounts) -> Decimal:
    return to_money(sum(amounts, ZERO_MONEY))
