from decimal import Decimal, ROUND_HALF_UP, getcontext

getcontext().prec = 28
CENTS = Decimal("0.01")
PORTION_PLACES = Decimal("0.00000001")

def qround(d: Decimal) -> Decimal:
    return d.quantize(CENTS, rounding=ROUND_HALF_UP)

def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))

def equal_portion(count: int) -> Decimal:
    return (Decimal("1") / Decimal(count)).quantize(PORTION_PLACES, rounding=ROUND_HALF_UP)

CURRENCY_SYMBOLS = {
    "HKD": "HK$",
    "USD": "$",
    "CNY": "¥",
}

def format_amount(amount, currency: str = "HKD") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{symbol}{qround(to_decimal(amount))}"
