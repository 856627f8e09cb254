# swapdesk/transport/menus.py

from swapdesk.transport.packets import Button

PERCENT_CHOICES = (25, 50, 75, 100)

MAIN_MENU = [
    [Button("📊 Trade", "trade"), Button("ℹ️ Info", "info"),
     Button("💸 Withdraw", "withdraw")],
]

TRADE_MENU = [
    [Button("🔄 Swap", "trade_swap"), Button("📈 Limit Order", "trade_limit")],
    [Button("⬅️ Back", "back_main")],
]

INFO_MENU = [
    [Button("💰 Holdings", "info_holdings"), Button("📋 Open Orders", "info_orders")],
    [Button("⬅️ Back", "back_main")],
]

LIMIT_DIRECTION_MENU = [
    [Button("🟢 Buy", "limit_buy"), Button("🔴 Sell", "limit_sell")],
    [Button("⬅️ Back", "back_to_trade")],
]

SUCCESS_MENU = [
    [Button("🔄 New Operation", "new_operation")],
]

BACK_TO_TRADE = [[Button("⬅️ Back", "back_to_trade")]]
BACK_TO_MAIN = [[Button("⬅️ Back", "back_main")]]


def amount_menu(prefix: str, back: str = "back_to_trade"):
    """Percentage buttons, two per row, with callback data
    '{prefix}_percent_{n}'."""
    buttons = [Button(f"{p}%", f"{prefix}_percent_{p}") for p in PERCENT_CHOICES]
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    rows.append([Button("⬅️ Back", back)])
    return rows
