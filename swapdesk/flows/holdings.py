# swapdesk/flows/holdings.py

import asyncio
import logging
from decimal import Decimal
from typing import List, Optional

from swapdesk.errors import UpstreamError
from swapdesk.gateways.trading import SOL_MINT
from swapdesk.session.state import TokenRef
from swapdesk.transport.packets import Button

log = logging.getLogger(__name__)


async def _describe(trading, balance) -> TokenRef:
    try:
        info = await trading.find_token(balance.mint)
    except UpstreamError as e:
        log.warning(f"Token lookup failed for {balance.mint}: {e}")
        info = None
    if info is None:
        return TokenRef(mint=balance.mint, symbol="Unknown", decimals=balance.decimals,
                        ui_amount=balance.ui_amount, raw_amount=balance.amount)
    return TokenRef(mint=balance.mint, symbol=info.symbol, decimals=info.decimals,
                    ui_amount=balance.ui_amount, raw_amount=balance.amount)


async def load_holdings(trading, address: str) -> List[TokenRef]:
    """Native SOL followed by every fungible token with a nonzero
    balance, each labelled from the token directory."""
    holdings = await trading.get_holdings(address)

    tokens = []
    if Decimal(holdings.sol.ui_amount) > 0:
        tokens.append(TokenRef(mint=SOL_MINT, symbol="SOL", decimals=holdings.sol.decimals,
                               ui_amount=holdings.sol.ui_amount,
                               raw_amount=holdings.sol.amount))

    nonzero = [b for b in holdings.tokens if Decimal(b.ui_amount) > 0]
    tokens.extend(await asyncio.gather(*(_describe(trading, b) for b in nonzero)))
    return tokens


def find_holding(tokens: List[TokenRef], mint: str) -> Optional[TokenRef]:
    for token in tokens:
        if token.mint == mint:
            return token
    return None


def holdings_keyboard(tokens: List[TokenRef], limit: int = 10, back: str = "back_to_trade"):
    rows = [[Button(f"{t.symbol} - {t.balance:.4f}", t.mint)] for t in tokens[:limit]]
    rows.append([Button("⬅️ Back", back)])
    return rows
