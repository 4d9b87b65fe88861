# storefront/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0")


def D(x) -> Money:
    if isinstance(x, Decimal):
        return x
    try:
        value = Decimal(str(x if x is not None else "0"))
    except InvalidOperation:
        raise ValueError(f"not a monetary amount: {x!r}")
    if not value.is_finite():
        raise ValueError(f"not a monetary amount: {x!r}")
    return value


def round_money(x) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_float(x) -> float:
    return float(round_money(x or 0))
