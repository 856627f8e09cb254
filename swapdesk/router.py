# swapdesk/router.py

import logging

from swapdesk.commands.registry import registry as action_registry
from swapdesk.errors import TransportError
from swapdesk.flows import registry as flow_registry
from swapdesk.flows.base import FlowContext
from swapdesk.session.manager import SessionManager
from swapdesk.transport.packets import InboundCallback

# Import to register built-in actions
import swapdesk.commands.builtins  # noqa: F401

log = logging.getLogger(__name__)

# honored even in the middle of a flow; they end it
GLOBAL_CALLBACKS = {"back_main", "back_to_trade"}
GLOBAL_COMMANDS = {"/start", "/menu"}


def command_name(text: str) -> str:
    """'/start@SomeBot payload' -> '/start'"""
    if not text.startswith("/"):
        return ""
    return text.split()[0].split("@")[0].lower()


class Router:
    def __init__(self, config, sessions: SessionManager, transport, trading, custody,
                 ledger, estimator):
        self.config = config
        self.sessions = sessions
        self.transport = transport
        self.trading = trading
        self.custody = custody
        self.ledger = ledger
        self.estimator = estimator

    def _context(self, session_id, flow, message_ref=None) -> FlowContext:
        return FlowContext(
            session_id=session_id,
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

    async def route(self, event):
        session_id = event.session_id
        try:
            await self._dispatch(event)
        except TransportError as e:
            log.error(f"Could not reach session {session_id}: {e}")

    async def _dispatch(self, event):
        session_id = event.session_id
        is_callback = isinstance(event, InboundCallback)

        # 1. Acknowledge first so the client stops its spinner
        if is_callback:
            try:
                await self.transport.acknowledge_callback(event.callback_id)
            except TransportError as e:
                log.warning(f"Failed to acknowledge callback {event.callback_id}: {e}")

        # 2. Load state once for this event
        state = await self.sessions.load(session_id)
        context = self._context(session_id, state.flow,
                                event.message_ref if is_callback else None)

        # 3. Global navigation ends any active flow
        key = event.data if is_callback else command_name(event.text.strip())
        if (is_callback and key in GLOBAL_CALLBACKS) or (not is_callback and key in GLOBAL_COMMANDS):
            if state.flow:
                await self.sessions.clear_flow(session_id)
                context.flow = None
            log.debug(f"Global action '{key}' for session {session_id}")
            await action_registry.get(key).run(context)
            return

        # 4. Handle flow if active
        if state.flow:
            handler = flow_registry.get(state.flow.kind)
            if not handler:
                log.error(f"Unknown flow kind '{state.flow.kind}' for session {session_id}")
                await self.sessions.clear_flow(session_id)
                return
            await handler.handle(context, event)
            return

        # 5. No flow: text is ignored, buttons navigate
        if not is_callback:
            log.debug(f"Ignoring text outside a flow for session {session_id}")
            return
        action = action_registry.get(key)
        if not action:
            log.info(f"Unknown callback '{key}' for session {session_id}")
            return
        await action.run(context)
