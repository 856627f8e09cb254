# swapdesk/flows/swap.py

import logging

from swapdesk.errors import FlowInputError, UpstreamError
from swapdesk.flows.amounts import (
    from_base_units,
    format_amount,
    manual_units,
    parse_amount,
    parse_percent_callback,
    percentage_units,
)
from swapdesk.flows.base import FlowHandler
from swapdesk.flows.holdings import find_holding, holdings_keyboard, load_holdings
from swapdesk.flows.registry import register
from swapdesk.session.state import SwapFlow, SwapStep, TokenRef
from swapdesk.transport.menus import BACK_TO_TRADE, TRADE_MENU, amount_menu

log = logging.getLogger(__name__)


@register
class SwapFlowHandler(FlowHandler):
    kind = "swap"

    async def start(self, context):
        wallet = await context.custody.get_or_create_wallet(context.session_id)
        tokens = await load_holdings(context.trading, wallet.address)
        if not tokens:
            await self.show(context, "❌ No tokens found in your wallet.", TRADE_MENU)
            return

        flow = SwapFlow(message_ref=context.message_ref)
        context.flow = await context.sessions.start_flow(context.session_id, flow)
        limit = context.config.bot["holdings_display_limit"]
        await self.show(context, "📊 Select the token you want to swap FROM:",
                        holdings_keyboard(tokens, limit))

    async def on_callback(self, context, data):
        step = context.flow.step
        if step == SwapStep.SELECT_INPUT:
            await self._select_input(context, data)
        elif step == SwapStep.SELECT_AMOUNT:
            percent = parse_percent_callback(data, "swap")
            if percent is None:
                log.debug(f"swap: unexpected callback '{data}' at select_amount")
                return
            token = context.flow.input_token
            await self._submit(context, percentage_units(token, percent))
        else:
            await super().on_callback(context, data)

    async def on_text(self, context, text):
        step = context.flow.step
        if step == SwapStep.ENTER_OUTPUT:
            await self._enter_output(context, text)
        elif step == SwapStep.SELECT_AMOUNT:
            amount = parse_amount(text)
            token = context.flow.input_token
            await self._submit(context, manual_units(token, amount))
        else:
            await super().on_text(context, text)

    async def _select_input(self, context, mint):
        wallet = await context.custody.get_or_create_wallet(context.session_id)
        token = find_holding(await load_holdings(context.trading, wallet.address), mint)
        if token is None:
            raise FlowInputError("Token not found in your holdings.")

        def choose(flow):
            flow.input_token = token
            flow.step = SwapStep.ENTER_OUTPUT

        await self.advance(context, SwapStep.SELECT_INPUT, choose)
        await self.show(context,
                        f"✅ Input token: {token.symbol}\n\n"
                        "📝 Please send the token symbol or address you want to swap TO:\n\n"
                        "(Example: SOL, USDC, or token address)",
                        BACK_TO_TRADE)

    async def _enter_output(self, context, text):
        info = await context.trading.find_token(text)
        if info is None:
            raise FlowInputError(
                "Token not found. Please try again with a valid symbol or address.")
        input_token = context.flow.input_token
        if info.mint == input_token.mint:
            raise FlowInputError("Output token must be different from the input token.")

        def choose(flow):
            flow.output_token = TokenRef(mint=info.mint, symbol=info.symbol,
                                         decimals=info.decimals)
            flow.step = SwapStep.SELECT_AMOUNT

        await self.advance(context, SwapStep.ENTER_OUTPUT, choose)
        await self.show(context,
                        f"🔄 Swap {input_token.symbol} → {info.symbol}\n\n"
                        f"💰 Available: {format_amount(input_token.balance)} "
                        f"{input_token.symbol}\n\n"
                        "Select an amount or type it:",
                        amount_menu("swap"))

    async def _submit(self, context, units):
        if units <= 0:
            raise FlowInputError("Amount is too small to swap.")

        def lock(flow):
            flow.step = SwapStep.SUBMITTING

        flow = await self.advance(context, SwapStep.SELECT_AMOUNT, lock)
        source, target = flow.input_token, flow.output_token
        amount = from_base_units(units, source.decimals)
        log.info(f"Swapping {units} base units of {source.mint} to {target.mint} "
                 f"for session {context.session_id}")
        await self.show(context, f"⏳ Swapping {amount} {source.symbol} → {target.symbol}...")

        wallet = await context.custody.get_or_create_wallet(context.session_id)
        order = await context.trading.get_order(source.mint, target.mint, units, wallet.address)
        signed = await context.custody.sign_transaction(wallet.wallet_id, order.transaction)
        result = await context.trading.execute_order(order.request_id, signed)
        if not result.succeeded:
            raise UpstreamError(result.error or "Swap execution failed", service="trading")

        received = ""
        if order.out_amount:
            out = from_base_units(int(order.out_amount), target.decimals)
            received = f" (~{format_amount(out)} {target.symbol})"
        await self.finish(context,
                          f"✅ Swap successful!\n\n"
                          f"{amount} {source.symbol} → {target.symbol}{received}\n\n"
                          f"🔗 https://solscan.io/tx/{result.signature}")
