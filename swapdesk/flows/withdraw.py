# swapdesk/flows/withdraw.py

import base64
import logging

from solders.pubkey import Pubkey

from swapdesk.errors import FlowInputError
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
from swapdesk.ledger.transfer import build_transfer_instructions, parse_address
from swapdesk.session.state import WithdrawFlow, WithdrawStep
from swapdesk.transport.menus import BACK_TO_MAIN, amount_menu

log = logging.getLogger(__name__)


@register
class WithdrawFlowHandler(FlowHandler):
    kind = "withdraw"

    async def start(self, context):
        flow = WithdrawFlow(message_ref=context.message_ref)
        context.flow = await context.sessions.start_flow(context.session_id, flow)
        await self.show(context,
                        "💸 Withdraw\n\n📝 Please send the wallet address to withdraw to:",
                        BACK_TO_MAIN)

    async def on_text(self, context, text):
        step = context.flow.step
        if step == WithdrawStep.ENTER_ADDRESS:
            await self._enter_address(context, text)
        elif step == WithdrawStep.SELECT_AMOUNT:
            amount = parse_amount(text)
            token = context.flow.token
            await self._submit(context, manual_units(token, amount, exact_full_balance=False))
        else:
            await super().on_text(context, text)

    async def on_callback(self, context, data):
        step = context.flow.step
        if step == WithdrawStep.SELECT_TOKEN:
            await self._select_token(context, data)
        elif step == WithdrawStep.SELECT_AMOUNT:
            percent = parse_percent_callback(data, "withdraw")
            if percent is None:
                log.debug(f"withdraw: unexpected callback '{data}' at select_amount")
                return
            await self._submit(context, percentage_units(context.flow.token, percent))
        else:
            await super().on_callback(context, data)

    async def _enter_address(self, context, text):
        try:
            recipient = parse_address(text)
        except ValueError:
            raise FlowInputError("Invalid wallet address. Please send a valid Solana address.")

        wallet = await context.custody.get_or_create_wallet(context.session_id)
        tokens = await load_holdings(context.trading, wallet.address)
        if not tokens:
            await self.fail(context, "No tokens found in your wallet.")
            return

        def choose(flow):
            flow.recipient = str(recipient)
            flow.step = WithdrawStep.SELECT_TOKEN

        await self.advance(context, WithdrawStep.ENTER_ADDRESS, choose)
        limit = context.config.bot["holdings_display_limit"]
        await self.show(context, "📊 Select the token you want to withdraw:",
                        holdings_keyboard(tokens, limit, back="back_main"))

    async def _select_token(self, context, mint):
        wallet = await context.custody.get_or_create_wallet(context.session_id)
        token = find_holding(await load_holdings(context.trading, wallet.address), mint)
        if token is None:
            raise FlowInputError("Token not found in your holdings.")

        def choose(flow):
            flow.token = token
            flow.step = WithdrawStep.SELECT_AMOUNT

        await self.advance(context, WithdrawStep.SELECT_TOKEN, choose)
        await self.show(context,
                        f"✅ Token: {token.symbol}\n\n"
                        f"💰 Available: {format_amount(token.balance)} {token.symbol}\n\n"
                        "Select an amount or type it:",
                        amount_menu("withdraw", back="back_main"))

    async def _submit(self, context, units):
        if units <= 0:
            raise FlowInputError("Amount is too small to withdraw.")

        def lock(flow):
            flow.step = WithdrawStep.SUBMITTING

        flow = await self.advance(context, WithdrawStep.SELECT_AMOUNT, lock)
        token = flow.token
        amount = from_base_units(units, token.decimals)
        short = f"{flow.recipient[:4]}...{flow.recipient[-4:]}"
        log.info(f"Withdrawing {units} base units of {token.mint} to {flow.recipient} "
                 f"for session {context.session_id}")
        await self.show(context, f"⏳ Sending {amount} {token.symbol} to {short}...")

        wallet = await context.custody.get_or_create_wallet(context.session_id)
        owner = Pubkey.from_string(wallet.address)
        instructions = await build_transfer_instructions(
            context.ledger, owner, Pubkey.from_string(flow.recipient),
            token.mint, units, token.decimals)
        blockhash = await context.ledger.get_latest_blockhash()
        unsigned = await context.estimator.prepare_transaction(instructions, owner, blockhash)
        signed = await context.custody.sign_transaction(wallet.wallet_id, unsigned)
        signature = await context.ledger.send_raw_transaction(base64.b64decode(signed))
        await context.ledger.confirm_transaction(signature)

        await self.finish(context,
                          f"✅ Withdrawal successful!\n\n"
                          f"{amount} {token.symbol} sent to {short}\n\n"
                          f"🔗 https://solscan.io/tx/{signature}")
