# swapdesk/errors.py

from enum import Enum


class SwapdeskError(Exception):
    """Base class for errors raised inside a flow."""


class FlowInputError(SwapdeskError):
    """User input failed validation. The flow stays on the same step."""


class GuardRejection(SwapdeskError):
    """A price guard or notional floor refused the input.

    Carries the boundary that was crossed so the user can be told
    what would have been accepted.
    """

    def __init__(self, message, boundary=None, market_price=None):
        super().__init__(message)
        self.boundary = boundary
        self.market_price = market_price


class UpstreamError(SwapdeskError):
    """A quote, order, signing, execution or RPC call failed.

    The message is the upstream's own text where one was given.
    """

    def __init__(self, message, service=None, status=None):
        super().__init__(message)
        self.service = service
        self.status = status


class SimulationErrorKind(str, Enum):
    SLIPPAGE = "slippage"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN = "unknown"


class SimulationError(SwapdeskError):
    """Pre-flight simulation of a draft transaction failed."""

    reasons = {
        SimulationErrorKind.SLIPPAGE: "Slippage tolerance exceeded",
        SimulationErrorKind.INSUFFICIENT_FUNDS: "Insufficient funds for transaction",
        SimulationErrorKind.UNKNOWN: "Transaction simulation error",
    }

    def __init__(self, kind, logs=None):
        super().__init__(self.reasons[kind])
        self.kind = kind
        self.logs = logs or []


class StaleFlowError(SwapdeskError):
    """The flow moved on (or went away) before this transition landed."""


class TransportError(Exception):
    """Failed to deliver something to the chat service."""
