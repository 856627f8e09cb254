import pytest

from swapdesk.commands.registry import registry as action_registry
from swapdesk.flows import registry
from swapdesk.flows.limit_order import LimitOrderFlowHandler
from swapdesk.flows.swap import SwapFlowHandler
from swapdesk.flows.withdraw import WithdrawFlowHandler
from swapdesk.session.state import FLOW_TYPES

import swapdesk.commands.builtins  # noqa: F401


@pytest.mark.parametrize("kind,cls", [
    ("swap", SwapFlowHandler),
    ("limit_order", LimitOrderFlowHandler),
    ("withdraw", WithdrawFlowHandler),
])
def test_flow_handler_registered(kind, cls):
    # The decorator should have registered the handler automatically
    handler = registry.get(kind)
    assert isinstance(handler, cls)
    assert handler.kind == kind


def test_every_flow_type_has_a_handler():
    assert set(registry.all_flows()) == set(FLOW_TYPES)


def test_unknown_kind():
    assert registry.get("dca") is None


@pytest.mark.parametrize("trigger", [
    "/start", "/menu", "back_main", "back_to_trade", "new_operation", "trade", "info",
    "trade_swap", "trade_limit", "withdraw", "info_holdings", "info_orders",
])
def test_menu_actions_registered(trigger):
    assert action_registry.get(trigger) is not None


def test_every_menu_button_has_an_action():
    from swapdesk.transport import menus
    keyboards = [menus.MAIN_MENU, menus.TRADE_MENU, menus.INFO_MENU,
                 menus.SUCCESS_MENU, menus.BACK_TO_TRADE, menus.BACK_TO_MAIN]
    for keyboard in keyboards:
        for row in keyboard:
            for button in row:
                assert action_registry.get(button.data) is not None, button.data
