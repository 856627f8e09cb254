# swapdesk/commands/base.py

from abc import ABC


class BaseAction(ABC):
    """
    A stateless menu action, triggered either by a slash command typed
    in the chat or by a button's callback data. Actions never touch flow
    state themselves; the router clears it for the global ones.
    """

    # Every subclass must override these
    trigger: str        # callback data or slash command, e.g. "trade" or "/start"
    short_text: str = ""

    async def run(self, context) -> None:
        raise NotImplementedError


async def show_menu(context, text, keyboard):
    """Replace the message the button sat on, or send a new one."""
    if context.message_ref:
        await context.transport.edit_message(context.session_id, context.message_ref,
                                             text, keyboard)
    else:
        await context.transport.send_text_with_buttons(context.session_id, text, keyboard)
