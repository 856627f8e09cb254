# swapdesk/flows/amounts.py

from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional

from swapdesk.errors import FlowInputError
from swapdesk.session.state import TokenRef
from swapdesk.transport.menus import PERCENT_CHOICES


def parse_amount(text: str) -> Decimal:
    try:
        amount = Decimal(text.strip())
    except InvalidOperation:
        raise FlowInputError("Invalid amount. Please enter a valid number.")
    if not amount.is_finite() or amount <= 0:
        raise FlowInputError("Invalid amount. Please enter a valid number.")
    return amount


def to_base_units(amount: Decimal, decimals: int) -> int:
    """floor(amount * 10^decimals)"""
    return int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR))


def from_base_units(units: int, decimals: int) -> Decimal:
    return Decimal(units).scaleb(-decimals)


def full_balance_units(token: TokenRef) -> int:
    if token.raw_amount is not None:
        return token.raw_amount
    return int((token.balance * (Decimal(10) ** token.decimals))
               .to_integral_value(rounding=ROUND_HALF_UP))


def percentage_units(token: TokenRef, percent: int) -> int:
    """100% is the whole balance; anything else floors to the base-unit grid."""
    if percent == 100:
        return full_balance_units(token)
    return to_base_units(token.balance * Decimal(percent) / Decimal(100), token.decimals)


def manual_units(token: TokenRef, amount: Decimal, exact_full_balance: bool = True) -> int:
    balance = token.balance
    if amount > balance:
        raise FlowInputError(
            f"Amount exceeds available balance ({balance} {token.symbol}). "
            "Please enter a valid amount.")
    if exact_full_balance and amount == balance:
        return full_balance_units(token)
    units = to_base_units(amount, token.decimals)
    if units <= 0:
        raise FlowInputError("Amount is too small to send.")
    return units


def parse_percent_callback(data: str, prefix: str) -> Optional[int]:
    """'swap_percent_50' -> 50 for prefix 'swap'; None if data isn't one."""
    marker = f"{prefix}_percent_"
    if not data.startswith(marker):
        return None
    try:
        percent = int(data[len(marker):])
    except ValueError:
        return None
    return percent if percent in PERCENT_CHOICES else None


def format_amount(amount: Decimal, places: int = 4) -> str:
    return f"{amount:.{places}f}"
