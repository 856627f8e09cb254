# swapdesk/commands/builtins.py

import asyncio
import logging
from decimal import Decimal

from swapdesk.commands.base import BaseAction, show_menu
from swapdesk.commands.registry import register_action
from swapdesk.errors import UpstreamError
from swapdesk.flows import registry as flow_registry
from swapdesk.flows.amounts import format_amount
from swapdesk.flows.holdings import load_holdings
from swapdesk.transport.menus import INFO_MENU, MAIN_MENU, TRADE_MENU

log = logging.getLogger(__name__)

# -------------------
# Slash commands
# -------------------


@register_action
class StartCommand(BaseAction):
    trigger = "/start"
    short_text = "Start the bot and set up your wallet"

    async def run(self, context):
        try:
            wallet = await context.custody.get_or_create_wallet(context.session_id)
        except UpstreamError as e:
            log.error(f"Wallet setup failed for session {context.session_id}: {e}")
            await context.transport.send_text(
                context.session_id, "❌ Error creating wallet. Please try again.")
            return
        name = context.config.bot["name"]
        await context.transport.send_text_with_buttons(
            context.session_id,
            f"🎉 Welcome to {name}!\n\n💼 Wallet: {wallet.short_address}",
            MAIN_MENU)


@register_action
class MenuCommand(BaseAction):
    trigger = "/menu"
    short_text = "Show the main menu"

    async def run(self, context):
        await context.transport.send_text_with_buttons(
            context.session_id, "🏠 Main Menu", MAIN_MENU)


# -------------------
# Menu navigation
# -------------------


@register_action
class MainMenu(BaseAction):
    trigger = "back_main"

    async def run(self, context):
        await show_menu(context, "🏠 Main Menu", MAIN_MENU)


@register_action
class NewOperation(MainMenu):
    trigger = "new_operation"


@register_action
class TradeMenu(BaseAction):
    trigger = "trade"

    async def run(self, context):
        await show_menu(context, "📊 Trade\n\nChoose an operation:", TRADE_MENU)


@register_action
class BackToTrade(TradeMenu):
    trigger = "back_to_trade"


@register_action
class InfoMenu(BaseAction):
    trigger = "info"

    async def run(self, context):
        await show_menu(context, "ℹ️ Info", INFO_MENU)


# -------------------
# Flow entry points
# -------------------


class StartFlow(BaseAction):
    flow_kind: str

    async def run(self, context):
        await flow_registry.get(self.flow_kind).begin(context)


@register_action
class StartSwap(StartFlow):
    trigger = "trade_swap"
    flow_kind = "swap"


@register_action
class StartLimitOrder(StartFlow):
    trigger = "trade_limit"
    flow_kind = "limit_order"


@register_action
class StartWithdraw(StartFlow):
    trigger = "withdraw"
    flow_kind = "withdraw"


# -------------------
# Info views
# -------------------


@register_action
class HoldingsView(BaseAction):
    trigger = "info_holdings"

    async def run(self, context):
        try:
            wallet = await context.custody.get_or_create_wallet(context.session_id)
            tokens = await load_holdings(context.trading, wallet.address)
            prices = await context.trading.get_token_prices([t.mint for t in tokens])
        except UpstreamError as e:
            log.error(f"Holdings lookup failed for session {context.session_id}: {e}")
            await show_menu(context, "❌ Error fetching holdings. Please try again later.",
                            INFO_MENU)
            return

        if not tokens:
            await show_menu(context, f"💰 Holdings\n\n💼 {wallet.short_address}\n\n"
                            "No tokens found.", INFO_MENU)
            return

        limit = context.config.bot["holdings_display_limit"]
        lines = []
        total = Decimal(0)
        for token in tokens[:limit]:
            price = prices.get(token.mint)
            if price is None:
                lines.append(f"• {token.symbol}: {format_amount(token.balance)}")
                continue
            value = token.balance * price
            total += value
            lines.append(f"• {token.symbol}: {format_amount(token.balance)} "
                         f"(${format_amount(value, 2)})")
        if len(tokens) > limit:
            lines.append(f"…and {len(tokens) - limit} more")

        text = (f"💰 Holdings\n\n💼 {wallet.short_address}\n\n" + "\n".join(lines) +
                f"\n\nTotal: ${format_amount(total, 2)}")
        await show_menu(context, text, INFO_MENU)


@register_action
class OpenOrdersView(BaseAction):
    trigger = "info_orders"

    async def _symbol(self, context, mint):
        try:
            info = await context.trading.find_token(mint)
        except UpstreamError:
            info = None
        return info.symbol if info else "Unknown"

    async def run(self, context):
        try:
            wallet = await context.custody.get_or_create_wallet(context.session_id)
            orders = await context.trading.get_open_limit_orders(wallet.address)
        except UpstreamError as e:
            log.error(f"Open orders lookup failed for session {context.session_id}: {e}")
            await show_menu(context, "❌ Error fetching active orders. Please try again later.",
                            INFO_MENU)
            return

        if not orders:
            await show_menu(context, "📋 Active Orders\n\nNo active orders found.", INFO_MENU)
            return

        orders = orders[:5]
        mints = sorted({o.input_mint for o in orders} | {o.output_mint for o in orders})
        symbols = dict(zip(mints, await asyncio.gather(
            *(self._symbol(context, m) for m in mints))))

        lines = []
        for order in orders:
            making = format_amount(Decimal(order.making_amount))
            taking = format_amount(Decimal(order.taking_amount))
            lines.append(f"• {making} {symbols[order.input_mint]} → "
                         f"{taking} {symbols[order.output_mint]} - {order.status}")
        await show_menu(context, "📋 Active Orders\n\n🎯 Trigger Orders:\n" + "\n".join(lines),
                        INFO_MENU)
