# swapdesk/session/manager.py

import logging
from typing import Callable, Optional

from swapdesk.errors import StaleFlowError
from swapdesk.session.state import SessionState
from swapdesk.session.store import SessionStore

log = logging.getLogger(__name__)


class SessionManager:
    """Flow-level operations on top of a SessionStore.

    All writes go through store.update() so each one is atomic per
    session. advance() only applies when the session is still in the
    flow and step the caller saw; otherwise it raises StaleFlowError.
    """

    def __init__(self, config, store: SessionStore):
        self.config = config
        self.store = store

    async def load(self, session_id: str) -> SessionState:
        """Current state, or a fresh empty one. Empty state is not
        persisted until a flow starts."""
        state = await self.store.get(session_id)
        return state or SessionState(session_id=session_id)

    async def start_flow(self, session_id: str, flow):
        def replace(current: Optional[SessionState]) -> SessionState:
            if current and current.flow:
                log.info(f"Replacing {current.flow.kind} flow for session {session_id}")
            return SessionState(session_id=session_id, flow=flow)

        await self.store.update(session_id, replace)
        log.info(f"Started {flow.kind} flow for session {session_id}")
        return flow

    async def advance(self, session_id: str, kind: str, expected_step,
                      mutate: Callable[[object], None]):
        """Apply mutate to the active flow if it is still kind/expected_step.
        Returns the updated flow."""
        def apply(current: Optional[SessionState]) -> SessionState:
            flow = current.flow if current else None
            if flow is None or flow.kind != kind or flow.step != expected_step:
                found = f"{flow.kind}/{flow.step.value}" if flow else "no flow"
                raise StaleFlowError(
                    f"Expected {kind}/{expected_step.value} for session {session_id}, "
                    f"found {found}")
            mutate(flow)
            return current

        state = await self.store.update(session_id, apply)
        log.info(f"Session {session_id} {kind}: {expected_step.value} -> {state.flow.step.value}")
        return state.flow

    async def clear_flow(self, session_id: str):
        def drop(current: Optional[SessionState]) -> None:
            if current and current.flow:
                log.info(f"Cleared {current.flow.kind} flow for session {session_id}")
            return None

        await self.store.update(session_id, drop)
