# swapdesk/flows/limit_order.py

import logging
from decimal import Decimal

from swapdesk.errors import FlowInputError, GuardRejection, UpstreamError
from swapdesk.flows.amounts import format_amount, manual_units, parse_amount, to_base_units
from swapdesk.flows.base import FlowHandler
from swapdesk.flows.holdings import find_holding, holdings_keyboard, load_holdings
from swapdesk.flows.pricing import (
    check_price_guard,
    format_percentage,
    format_price,
    parse_price,
    resolve_trigger_price,
)
from swapdesk.flows.registry import register
from swapdesk.session.state import (
    Direction,
    LimitOrderFlow,
    LimitOrderStep,
    PriceKind,
    TokenRef,
)
from swapdesk.transport.menus import BACK_TO_TRADE, LIMIT_DIRECTION_MENU

log = logging.getLogger(__name__)

DIRECTIONS = {
    "limit_buy": Direction.BUY,
    "limit_sell": Direction.SELL,
}


@register
class LimitOrderFlowHandler(FlowHandler):
    """Trigger order: pay `amount` of the input token for the output token
    once the output token trades at the trigger price.

    The trigger is always quoted as the output token's USD price. The
    guard compares it with a freshly fetched market price both when it is
    entered and again right before the order is created.
    """
    kind = "limit_order"

    async def start(self, context):
        flow = LimitOrderFlow(message_ref=context.message_ref)
        context.flow = await context.sessions.start_flow(context.session_id, flow)
        await self.show(context, "📈 Limit Order\n\nDo you want to buy or sell?",
                        LIMIT_DIRECTION_MENU)

    async def on_callback(self, context, data):
        step = context.flow.step
        if step == LimitOrderStep.SELECT_DIRECTION and data in DIRECTIONS:
            await self._select_direction(context, DIRECTIONS[data])
        elif step == LimitOrderStep.SELECT_INPUT:
            await self._select_input(context, data)
        else:
            await super().on_callback(context, data)

    async def on_text(self, context, text):
        step = context.flow.step
        if step == LimitOrderStep.ENTER_OUTPUT:
            await self._enter_output(context, text)
        elif step == LimitOrderStep.ENTER_PRICE:
            await self._enter_price(context, text)
        elif step == LimitOrderStep.ENTER_AMOUNT:
            await self._enter_amount(context, text)
        else:
            await super().on_text(context, text)

    def _band(self, context):
        return context.config.limits["price_guard_pct"]

    async def _select_direction(self, context, direction):
        wallet = await context.custody.get_or_create_wallet(context.session_id)
        tokens = await load_holdings(context.trading, wallet.address)
        if not tokens:
            await self.fail(context, "No tokens found in your wallet.")
            return

        def choose(flow):
            flow.direction = direction
            flow.step = LimitOrderStep.SELECT_INPUT

        await self.advance(context, LimitOrderStep.SELECT_DIRECTION, choose)
        verb = "pay with" if direction == Direction.BUY else "sell"
        limit = context.config.bot["holdings_display_limit"]
        await self.show(context, f"📊 Select the token you want to {verb}:",
                        holdings_keyboard(tokens, limit))

    async def _select_input(self, context, mint):
        wallet = await context.custody.get_or_create_wallet(context.session_id)
        token = find_holding(await load_holdings(context.trading, wallet.address), mint)
        if token is None:
            raise FlowInputError("Token not found in your holdings.")

        def choose(flow):
            flow.input_token = token
            flow.step = LimitOrderStep.ENTER_OUTPUT

        await self.advance(context, LimitOrderStep.SELECT_INPUT, choose)
        await self.show(context,
                        f"✅ Input token: {token.symbol}\n\n"
                        "📝 Please send the token symbol or address you want to receive:",
                        BACK_TO_TRADE)

    async def _enter_output(self, context, text):
        info = await context.trading.find_token(text)
        if info is None:
            raise FlowInputError(
                "Token not found. Please try again with a valid symbol or address.")
        if info.mint == context.flow.input_token.mint:
            raise FlowInputError("Output token must be different from the input token.")

        def choose(flow):
            flow.output_token = TokenRef(mint=info.mint, symbol=info.symbol,
                                         decimals=info.decimals)
            flow.step = LimitOrderStep.ENTER_PRICE

        await self.advance(context, LimitOrderStep.ENTER_OUTPUT, choose)
        market = await context.trading.get_token_price(info.mint)
        current = f"Current price: {format_price(market)}\n\n" if market else ""
        await self.show(context,
                        f"🎯 {info.symbol}\n\n{current}"
                        "Enter your trigger price:\n"
                        "• absolute: $150.50 or 150.50\n"
                        "• change from market: +5%, -5%",
                        BACK_TO_TRADE)

    async def _enter_price(self, context, text):
        flow = context.flow
        parsed = parse_price(text)
        snapshot = None
        if parsed.kind == PriceKind.PERCENTAGE:
            snapshot = await context.trading.get_token_price(flow.output_token.mint)
        trigger = resolve_trigger_price(parsed, snapshot)

        market = await context.trading.get_token_price(flow.output_token.mint)
        check_price_guard(flow.direction, trigger, market, self._band(context))

        def choose(flow):
            flow.price_kind = parsed.kind
            flow.price_value = parsed.value
            flow.trigger_price = trigger
            flow.step = LimitOrderStep.ENTER_AMOUNT

        flow = await self.advance(context, LimitOrderStep.ENTER_PRICE, choose)
        described = format_price(trigger)
        if parsed.kind == PriceKind.PERCENTAGE:
            described += f" ({format_percentage(parsed.value)} from market)"
        source = flow.input_token
        await self.show(context,
                        f"✅ Trigger price: {described}\n\n"
                        f"💰 Available: {format_amount(source.balance)} {source.symbol}\n\n"
                        f"Enter the amount of {source.symbol} for this order:",
                        BACK_TO_TRADE)

    async def _enter_amount(self, context, text):
        flow = context.flow
        source, target = flow.input_token, flow.output_token
        amount = parse_amount(text)
        making = manual_units(source, amount, exact_full_balance=False)
        taking = to_base_units(amount / flow.trigger_price, target.decimals)
        if taking <= 0:
            raise FlowInputError("Amount is too small for this trigger price.")

        minimum = Decimal(context.config.limits["min_notional_usd"])
        source_price = await context.trading.get_token_price(source.mint)
        if source_price is not None and amount * source_price < minimum:
            raise GuardRejection(
                f"Minimum order value is ${minimum} "
                f"(this order: ${format_amount(amount * source_price, 2)}).",
                boundary=minimum, market_price=source_price)

        market = await context.trading.get_token_price(target.mint)
        check_price_guard(flow.direction, flow.trigger_price, market, self._band(context))

        def lock(flow):
            flow.step = LimitOrderStep.SUBMITTING

        flow = await self.advance(context, LimitOrderStep.ENTER_AMOUNT, lock)
        log.info(f"Creating {flow.direction.value} limit order for session "
                 f"{context.session_id}: making={making} taking={taking} "
                 f"trigger={flow.trigger_price}")
        await self.show(context, "⏳ Creating limit order...")

        wallet = await context.custody.get_or_create_wallet(context.session_id)
        draft = await context.trading.create_limit_order(
            source.mint, target.mint, wallet.address, making, taking)
        signed = await context.custody.sign_transaction(wallet.wallet_id, draft.transaction)
        result = await context.trading.execute_limit_order(draft.request_id, signed)
        if not result.succeeded:
            raise UpstreamError(result.error or f"Order failed with status {result.status}",
                                service="trading")

        await self.finish(context,
                          f"✅ Limit order created!\n\n"
                          f"{flow.direction.value.capitalize()}: {amount} {source.symbol} → "
                          f"{target.symbol} at {format_price(flow.trigger_price)}\n\n"
                          f"🔗 https://solscan.io/tx/{result.signature}")
