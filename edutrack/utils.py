from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value, ndigits: int = 0):
    """Round .5 away from zero instead of to the nearest even digit."""
    quantum = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)
