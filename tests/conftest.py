"""
Shared fixtures for the flow and router tests: a memory-backed session
manager plus mocked chat, trading, custody and ledger collaborators.
"""

import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.pubkey import Pubkey

from swapdesk.flows.base import FlowContext
from swapdesk.gateways.custody import Wallet
from swapdesk.gateways.trading import SOL_MINT, TokenBalance, TokenInfo, WalletHoldings
from swapdesk.session.manager import SessionManager
from swapdesk.session.state import SessionState, TokenRef
from swapdesk.session.store import MemorySessionStore


class DummyConfig:
    def __init__(self):
        self.bot = {"name": "Swapdesk", "holdings_display_limit": 10}
        self.limits = {"price_guard_pct": 5, "min_notional_usd": 5}


class Harness:
    SESSION_ID = "42"
    MESSAGE_REF = 10
    OWNER = str(Pubkey.new_unique())
    RECIPIENT = str(Pubkey.new_unique())
    SOL = SOL_MINT
    USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
    BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
    SIGNED = base64.b64encode(b"signed").decode("ascii")

    def __init__(self):
        self.config = DummyConfig()
        self.store = MemorySessionStore()
        self.sessions = SessionManager(self.config, self.store)

        self.directory = {}
        for info in (TokenInfo(self.SOL, "SOL", "Wrapped SOL", 9),
                     TokenInfo(self.USDC, "USDC", "USD Coin", 6),
                     TokenInfo(self.BONK, "BONK", "Bonk", 5)):
            self.directory[info.mint] = info
            self.directory[info.symbol] = info

        self.transport = MagicMock()
        self.transport.send_text = AsyncMock()
        self.transport.send_text_with_buttons = AsyncMock(return_value=99)
        self.transport.edit_message = AsyncMock()
        self.transport.acknowledge_callback = AsyncMock()

        self.trading = MagicMock()
        self.trading.get_holdings = AsyncMock(return_value=WalletHoldings(
            sol=TokenBalance(self.SOL, 2_000_000_000, "2", 9),
            tokens=[TokenBalance(self.USDC, 7_123_456, "7.123456", 6),
                    TokenBalance(self.BONK, 0, "0", 5)]))
        self.trading.find_token = AsyncMock(side_effect=self._find_token)
        self.trading.get_token_price = AsyncMock(return_value=None)
        self.trading.get_token_prices = AsyncMock(return_value={})

        self.custody = MagicMock()
        self.custody.get_or_create_wallet = AsyncMock(
            return_value=Wallet("wallet-1", self.OWNER))
        self.custody.sign_transaction = AsyncMock(return_value=self.SIGNED)

        self.ledger = MagicMock()
        self.estimator = MagicMock()

    async def _find_token(self, query):
        return self.directory.get(query) or self.directory.get(query.upper())

    def ref(self, symbol, ui_amount=None, raw_amount=None) -> TokenRef:
        info = self.directory[symbol]
        return TokenRef(mint=info.mint, symbol=info.symbol, decimals=info.decimals,
                        ui_amount=ui_amount, raw_amount=raw_amount)

    def context(self, flow=None, message_ref=None) -> FlowContext:
        return FlowContext(
            session_id=self.SESSION_ID,
            config=self.config,
            sessions=self.sessions,
            transport=self.transport,
            trading=self.trading,
            custody=self.custody,
            ledger=self.ledger,
            estimator=self.estimator,
            flow=flow,
            message_ref=message_ref,
        )

    async def put(self, flow):
        await self.store.set(SessionState(self.SESSION_ID, flow))
        return flow

    async def flow(self):
        return (await self.sessions.load(self.SESSION_ID)).flow

    async def current_context(self, message_ref=None) -> FlowContext:
        """Context as the router would build it for the next event."""
        return self.context(flow=await self.flow(), message_ref=message_ref)

    def last_edit_text(self) -> str:
        return self.transport.edit_message.await_args.args[2]

    def last_error(self) -> str:
        return self.transport.send_text.await_args.args[1]


@pytest.fixture
def harness():
    return Harness()
