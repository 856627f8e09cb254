# swapdesk/gateways/trading.py

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from swapdesk.errors import UpstreamError
from swapdesk.gateways.http import HttpGateway

log = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"
SOL_DECIMALS = 9

# shorter queries are symbols, longer ones are mint addresses
SYMBOL_QUERY_MAX_LEN = 10


@dataclass
class TokenInfo:
    mint: str
    symbol: str
    name: str
    decimals: int


@dataclass
class TokenBalance:
    mint: str
    amount: int
    ui_amount: str
    decimals: int


@dataclass
class WalletHoldings:
    sol: TokenBalance
    tokens: List[TokenBalance] = field(default_factory=list)


@dataclass
class AggregatorOrder:
    request_id: str
    transaction: str
    out_amount: Optional[str] = None


@dataclass
class LimitOrderDraft:
    request_id: str
    transaction: str
    order: Optional[str] = None


@dataclass
class ExecutionResult:
    status: str
    signature: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "Success"


@dataclass
class OpenOrder:
    input_mint: str
    output_mint: str
    making_amount: str
    taking_amount: str
    status: str


def _decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class TradingGateway(HttpGateway):
    """Client for the aggregator: quotes and swap execution, trigger
    (limit) orders, wallet holdings, token directory and USD prices."""

    service = "trading"

    def __init__(self, base_url: str = "https://lite-api.jup.ag", api_key: str = "",
                 timeout: float = 30, session=None):
        super().__init__(base_url, timeout=timeout, session=session)
        self.api_key = api_key

    def _headers(self):
        headers = super()._headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    # --- swaps ---

    async def get_order(self, input_mint: str, output_mint: str, amount: int,
                        taker: str) -> AggregatorOrder:
        data = await self._request("GET", "/ultra/v1/order", params={
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "taker": taker,
        })
        data = self._expect_object(data, "order")
        if data.get("errorMessage") or not data.get("transaction"):
            raise UpstreamError(data.get("errorMessage") or "No transaction returned for this swap",
                                service=self.service)
        return AggregatorOrder(request_id=data["requestId"],
                               transaction=data["transaction"],
                               out_amount=data.get("outAmount"))

    async def execute_order(self, request_id: str, signed_tx: str) -> ExecutionResult:
        data = await self._request("POST", "/ultra/v1/execute", payload={
            "signedTransaction": signed_tx,
            "requestId": request_id,
        })
        data = self._expect_object(data, "execute")
        return ExecutionResult(status=data.get("status", "Failed"),
                               signature=data.get("signature"),
                               error=data.get("error"))

    # --- limit orders ---

    async def create_limit_order(self, input_mint: str, output_mint: str, maker: str,
                                 making_amount: int, taking_amount: int,
                                 compute_unit_price: str = "auto") -> LimitOrderDraft:
        data = await self._request("POST", "/trigger/v1/createOrder", payload={
            "inputMint": input_mint,
            "outputMint": output_mint,
            "maker": maker,
            "payer": maker,
            "params": {
                "makingAmount": str(making_amount),
                "takingAmount": str(taking_amount),
            },
            "computeUnitPrice": compute_unit_price,
        })
        data = self._expect_object(data, "limit order")
        if not data.get("transaction"):
            raise UpstreamError(self._error_message(data, 200), service=self.service)
        return LimitOrderDraft(request_id=data["requestId"],
                               transaction=data["transaction"],
                               order=data.get("order"))

    async def execute_limit_order(self, request_id: str, signed_tx: str) -> ExecutionResult:
        data = await self._request("POST", "/trigger/v1/execute", payload={
            "requestId": request_id,
            "signedTransaction": signed_tx,
        })
        data = self._expect_object(data, "limit order execute")
        return ExecutionResult(status=data.get("status", "Failed"),
                               signature=data.get("signature"),
                               error=data.get("error"))

    async def get_open_limit_orders(self, address: str) -> List[OpenOrder]:
        data = await self._request("GET", "/trigger/v1/getTriggerOrders", params={
            "user": address,
            "orderStatus": "active",
            "page": "1",
        })
        return [
            OpenOrder(input_mint=o["inputMint"],
                      output_mint=o["outputMint"],
                      making_amount=o.get("makingAmount") or o.get("rawMakingAmount") or "0",
                      taking_amount=o.get("takingAmount") or o.get("rawTakingAmount") or "0",
                      status=o.get("status", "unknown"))
            for o in data.get("orders") or []
        ]

    # --- wallet and token data ---

    async def get_holdings(self, address: str) -> WalletHoldings:
        data = await self._request("GET", f"/ultra/v1/holdings/{address}")
        sol = TokenBalance(mint=SOL_MINT,
                           amount=int(data.get("amount") or 0),
                           ui_amount=data.get("uiAmountString") or "0",
                           decimals=SOL_DECIMALS)
        tokens = []
        for mint, accounts in (data.get("tokens") or {}).items():
            # wrapped SOL shares the native mint; the native balance covers it
            if mint == SOL_MINT or not accounts:
                continue
            account = accounts[0]
            tokens.append(TokenBalance(mint=mint,
                                       amount=int(account.get("amount") or 0),
                                       ui_amount=account.get("uiAmountString") or "0",
                                       decimals=int(account["decimals"])))
        return WalletHoldings(sol=sol, tokens=tokens)

    async def find_token(self, query: str) -> Optional[TokenInfo]:
        """Resolve a symbol (case-insensitive) or a mint address."""
        query = query.strip()
        if not query:
            return None
        results = await self._request("GET", "/tokens/v2/search", params={"query": query})
        for token in results or []:
            if len(query) < SYMBOL_QUERY_MAX_LEN:
                matched = (token.get("symbol") or "").lower() == query.lower()
            else:
                matched = token.get("id") == query
            if matched:
                return TokenInfo(mint=token["id"],
                                 symbol=token.get("symbol") or "Unknown",
                                 name=token.get("name") or "Unknown Token",
                                 decimals=int(token["decimals"]))
        return None

    async def get_token_prices(self, mints: List[str]) -> Dict[str, Decimal]:
        """USD prices by mint. Unknown mints are missing from the result;
        an unreachable price service yields an empty dict."""
        if not mints:
            return {}
        try:
            data = await self._request("GET", "/price/v3", params={"ids": ",".join(mints)})
        except UpstreamError as e:
            log.warning(f"Price lookup failed for {mints}: {e}")
            return {}
        prices = {}
        for mint, entry in (data or {}).items():
            price = _decimal((entry or {}).get("usdPrice"))
            if price is not None and price > 0:
                prices[mint] = price
        return prices

    async def get_token_price(self, mint: str) -> Optional[Decimal]:
        prices = await self.get_token_prices([mint])
        return prices.get(mint)
