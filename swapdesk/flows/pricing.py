# swapdesk/flows/pricing.py

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from swapdesk.errors import FlowInputError, GuardRejection
from swapdesk.session.state import Direction, PriceKind

PERCENTAGE_PATTERN = re.compile(r"^([+-]?\d+(?:\.\d+)?)%$")
ABSOLUTE_PATTERN = re.compile(r"^\$?(\d+(?:\.\d+)?)$")


@dataclass(frozen=True)
class ParsedPrice:
    kind: PriceKind
    value: Decimal


def parse_price(text: str) -> ParsedPrice:
    """Syntax only. '+5%', '-5%', '5%' are relative to market; '$150.50'
    and '150.50' are absolute USD prices."""
    trimmed = text.strip()

    match = PERCENTAGE_PATTERN.match(trimmed)
    if match:
        return ParsedPrice(PriceKind.PERCENTAGE, Decimal(match.group(1)))

    match = ABSOLUTE_PATTERN.match(trimmed)
    if match:
        value = Decimal(match.group(1))
        if value <= 0:
            raise FlowInputError("Price must be greater than 0.")
        return ParsedPrice(PriceKind.ABSOLUTE, value)

    raise FlowInputError(
        "Invalid price format. Use an absolute price ($150.50 or 150.50) "
        "or a change from market (+5%, -5%).")


def resolve_trigger_price(parsed: ParsedPrice, market_price: Optional[Decimal]) -> Decimal:
    if parsed.kind == PriceKind.ABSOLUTE:
        return parsed.value
    if market_price is None:
        raise FlowInputError("Could not fetch the current token price. Please try again.")
    trigger = market_price * (1 + parsed.value / 100)
    if trigger <= 0:
        raise FlowInputError("That change would put the price at or below zero.")
    return trigger


def check_price_guard(direction: Direction, trigger_price: Decimal,
                      market_price: Optional[Decimal], band_pct=5) -> None:
    """Refuse buys more than band_pct above market and sells more than
    band_pct below it. Without a market price nothing is accepted."""
    if market_price is None:
        raise GuardRejection("Could not fetch the current market price to check your "
                             "order. Please try again.")
    band = Decimal(band_pct) / 100
    if direction == Direction.BUY:
        ceiling = market_price * (1 + band)
        if trigger_price > ceiling:
            raise GuardRejection(
                f"Buy price {format_price(trigger_price)} is more than {band_pct}% above "
                f"market ({format_price(market_price)}). Maximum allowed: "
                f"{format_price(ceiling)}.",
                boundary=ceiling, market_price=market_price)
    else:
        floor = market_price * (1 - band)
        if trigger_price < floor:
            raise GuardRejection(
                f"Sell price {format_price(trigger_price)} is more than {band_pct}% below "
                f"market ({format_price(market_price)}). Minimum allowed: "
                f"{format_price(floor)}.",
                boundary=floor, market_price=market_price)


def format_price(price: Decimal) -> str:
    if price >= 1000:
        return f"${price:,.2f}"
    if price >= 1:
        return f"${price:.2f}"
    if price >= Decimal("0.01"):
        return f"${price:.4f}"
    return f"${price:.6f}"


def format_percentage(percentage: Decimal) -> str:
    sign = "+" if percentage >= 0 else ""
    return f"{sign}{percentage:.1f}%"
