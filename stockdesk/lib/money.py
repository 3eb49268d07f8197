"""
Money helpers

Amounts are integer minor units (kuruş/cent) everywhere; conversion to a
decimal display string happens only in format_money().
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Tuple

from stockdesk.core.errors import AppError

DEFAULT_CURRENCY = "TRY"

CURRENCY_SYMBOLS = {
    "TRY": "₺",
    "EUR": "€",
    "USD": "$",
}

# (from, to) -> rate, used until live rates are fetched
FALLBACK_RATES: Dict[Tuple[str, str], float] = {
    ("TRY", "EUR"): 0.02064,
    ("TRY", "USD"): 0.02397,
    ("TRY", "TRY"): 1.0,
    ("USD", "EUR"): 0.86125,
    ("USD", "TRY"): 41.724,
    ("USD", "USD"): 1.0,
    ("EUR", "TRY"): 48.446,
    ("EUR", "USD"): 1.1611,
    ("EUR", "EUR"): 1.0,
}

BRIDGE_CURRENCIES = ("TRY", "USD", "EUR")


def format_money(minor_units: int, currency: Optional[str] = None) -> str:
    """
    Format minor units for display, Turkish style: 1500 TRY -> "₺15,00",
    1234567 EUR -> "€12.345,67". Negative amounts keep a leading minus.
    """
    currency = currency or DEFAULT_CURRENCY
    amount = (Decimal(int(minor_units)) / 100).quantize(Decimal("0.01"))
    sign = "-" if amount < 0 else ""
    whole, _, cents = f"{abs(amount):.2f}".partition(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{sign}{symbol}{'.'.join(groups)},{cents}"


def to_minor_units(amount) -> int:
    """Decimal display amount -> integer minor units (half up)"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def find_rate(from_currency: str, to_currency: str, rates: Dict[Tuple[str, str], float]) -> float:
    """Direct rate, reverse rate, then a bridge currency"""
    if from_currency == to_currency:
        return 1.0
    if (from_currency, to_currency) in rates:
        return rates[(from_currency, to_currency)]
    if (to_currency, from_currency) in rates:
        return 1 / rates[(to_currency, from_currency)]
    for bridge in BRIDGE_CURRENCIES:
        if bridge in (from_currency, to_currency):
            continue
        to_bridge = rates.get((from_currency, bridge))
        bridge_to_target = rates.get((bridge, to_currency))
        if to_bridge and bridge_to_target:
            return to_bridge * bridge_to_target
    raise AppError(
        "CURRENCY_RATE_NOT_FOUND",
        details=f"Conversion rate not found from {from_currency} to {to_currency}",
    )


def convert_minor_units(
    minor_units: int,
    from_currency: str,
    to_currency: str,
    rates: Optional[Dict[Tuple[str, str], float]] = None,
) -> int:
    if from_currency == to_currency:
        return int(minor_units)
    rate = find_rate(from_currency, to_currency, rates or FALLBACK_RATES)
    converted = Decimal(int(minor_units)) * Decimal(str(rate))
    return int(converted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sum_in_currency(
    amounts: Iterable[Tuple[int, str]],
    target_currency: str,
    rates: Optional[Dict[Tuple[str, str], float]] = None,
) -> int:
    """Sum (minor_units, currency) pairs after converting each to target_currency"""
    return sum(convert_minor_units(value, currency, target_currency, rates) for value, currency in amounts)
