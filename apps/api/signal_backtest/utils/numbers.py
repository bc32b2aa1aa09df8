from decimal import Decimal, ROUND_HALF_EVEN

TWO_PLACES = Decimal("0.01")


def to_decimal(value: float) -> Decimal:
    # str() first so 1.1 becomes Decimal("1.1"), not its binary expansion
    return Decimal(str(value))


def round2(value) -> float:
    """Round to 2 decimal places with banker's rounding on the decimal representation."""
    if not isinstance(value, Decimal):
        value = to_decimal(value)
    return float(value.quantize(TWO_PLACES, rounding=ROUND_HALF_EVEN))
