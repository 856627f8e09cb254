# swapdesk/flows/base.py

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from swapdesk.errors import (
    FlowInputError,
    GuardRejection,
    SimulationError,
    StaleFlowError,
    UpstreamError,
)
from swapdesk.transport.menus import SUCCESS_MENU
from swapdesk.transport.packets import InboundCallback

if TYPE_CHECKING:
    from swapdesk.config import Config
    from swapdesk.session.manager import SessionManager

log = logging.getLogger(__name__)

# terminal step value shared by every flow
SUBMITTING = "submitting"


@dataclass
class FlowContext:
    """providers a flow needs for one inbound event, so we can avoid
    passing every last thing as an argument"""
    session_id: str
    config: "Config"
    sessions: "SessionManager"
    transport: Any
    trading: Any
    custody: Any
    ledger: Any
    estimator: Any
    # snapshot of the active flow as loaded for this event
    flow: Optional[Any] = None
    # message the triggering button sat on, if any
    message_ref: Optional[int] = None


class FlowHandler:
    """Abstract base for the multi-step operations.

    Subclasses implement start(), on_text() and on_callback(). Those raise
    FlowInputError/GuardRejection to re-prompt without moving, and
    UpstreamError/SimulationError to end the flow. Once a submission has
    been claimed, any other exception ends the flow as well. begin() and
    handle() turn those into user-facing messages.
    """
    kind: str

    async def start(self, context: FlowContext):
        raise NotImplementedError

    async def on_text(self, context: FlowContext, text: str):
        log.debug(f"{self.kind}: ignoring text at {context.flow.step.value}")

    async def on_callback(self, context: FlowContext, data: str):
        log.debug(f"{self.kind}: ignoring callback '{data}' at {context.flow.step.value}")

    async def begin(self, context: FlowContext):
        await self._guarded(context, self.start(context))

    async def handle(self, context: FlowContext, event):
        if isinstance(event, InboundCallback):
            action = self.on_callback(context, event.data)
        else:
            action = self.on_text(context, event.text.strip())
        await self._guarded(context, action)

    async def _guarded(self, context: FlowContext, action):
        try:
            await action
        except StaleFlowError as e:
            log.debug(f"Ignoring stale {self.kind} event: {e}")
        except (FlowInputError, GuardRejection) as e:
            log.info(f"Rejected {self.kind} input for session {context.session_id}: {e}")
            await context.transport.send_text(context.session_id, f"❌ {e}")
        except (UpstreamError, SimulationError, RuntimeError, ValueError) as e:
            log.error(f"{self.kind} failed for session {context.session_id}: {e}")
            await self.fail(context, str(e))
        except Exception as e:
            if not self._submitting(context):
                raise
            # a claimed submission must always end, whatever broke
            log.exception(f"{self.kind} submission crashed for session "
                          f"{context.session_id}: {e}")
            await self.fail(context, "Something went wrong while submitting. "
                                     "Check your wallet before trying again.")

    def _submitting(self, context: FlowContext) -> bool:
        return (context.flow is not None
                and context.flow.step.value == SUBMITTING)

    # --- helpers ---

    async def advance(self, context: FlowContext, expected_step, mutate):
        flow = await context.sessions.advance(context.session_id, self.kind,
                                              expected_step, mutate)
        context.flow = flow
        return flow

    async def show(self, context: FlowContext, text: str, keyboard=None) -> int:
        """Edit the flow's message in place, or send one and remember it."""
        ref = context.flow.message_ref if context.flow else None
        ref = ref or context.message_ref
        if ref:
            await context.transport.edit_message(context.session_id, ref, text, keyboard)
            return ref

        ref = await context.transport.send_text_with_buttons(context.session_id, text, keyboard)
        context.message_ref = ref
        if context.flow and context.flow.message_ref is None:
            def remember(flow):
                flow.message_ref = ref
            await self.advance(context, context.flow.step, remember)
        return ref

    async def finish(self, context: FlowContext, text: str, keyboard=SUCCESS_MENU):
        await context.sessions.clear_flow(context.session_id)
        if context.flow:
            context.message_ref = context.flow.message_ref or context.message_ref
        context.flow = None
        await self.show(context, text, keyboard)

    async def fail(self, context: FlowContext, reason: str):
        await self.finish(context, f"❌ {reason}")
