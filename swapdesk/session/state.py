# swapdesk/session/state.py

from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union


@dataclass
class TokenRef:
    """A token as the flows see it.

    mint and decimals drive every unit conversion; symbol is only ever
    shown to the user. ui_amount is the decimal balance as a string and
    raw_amount the same balance in base units, when known.
    """
    mint: str
    symbol: str
    decimals: int
    ui_amount: Optional[str] = None
    raw_amount: Optional[int] = None

    @property
    def balance(self) -> Decimal:
        return Decimal(self.ui_amount or "0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint": self.mint,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "ui_amount": self.ui_amount,
            "raw_amount": self.raw_amount,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenRef":
        return cls(
            mint=data["mint"],
            symbol=data["symbol"],
            decimals=int(data["decimals"]),
            ui_amount=data.get("ui_amount"),
            raw_amount=data.get("raw_amount"),
        )


class SwapStep(str, Enum):
    SELECT_INPUT = "select_input"
    ENTER_OUTPUT = "enter_output"
    SELECT_AMOUNT = "select_amount"
    SUBMITTING = "submitting"


class LimitOrderStep(str, Enum):
    SELECT_DIRECTION = "select_direction"
    SELECT_INPUT = "select_input"
    ENTER_OUTPUT = "enter_output"
    ENTER_PRICE = "enter_price"
    ENTER_AMOUNT = "enter_amount"
    SUBMITTING = "submitting"


class WithdrawStep(str, Enum):
    ENTER_ADDRESS = "enter_address"
    SELECT_TOKEN = "select_token"
    SELECT_AMOUNT = "select_amount"
    SUBMITTING = "submitting"


class Direction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class PriceKind(str, Enum):
    ABSOLUTE = "absolute"
    PERCENTAGE = "percentage"


class _FlowBase:
    """Field-driven (de)serialization shared by the flow variants."""
    kind: ClassVar[str]
    _token_fields: ClassVar[tuple] = ()
    _enum_fields: ClassVar[Dict[str, type]] = {}
    _decimal_fields: ClassVar[tuple] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                pass
            elif f.name in self._token_fields:
                value = value.to_dict()
            elif f.name in self._enum_fields:
                value = value.value
            elif f.name in self._decimal_fields:
                value = str(value)
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if value is None:
                pass
            elif f.name in cls._token_fields:
                value = TokenRef.from_dict(value)
            elif f.name in cls._enum_fields:
                value = cls._enum_fields[f.name](value)
            elif f.name in cls._decimal_fields:
                value = Decimal(value)
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass
class SwapFlow(_FlowBase):
    kind: ClassVar[str] = "swap"
    _token_fields: ClassVar[tuple] = ("input_token", "output_token")
    _enum_fields: ClassVar[Dict[str, type]] = {"step": SwapStep}

    step: SwapStep = SwapStep.SELECT_INPUT
    message_ref: Optional[int] = None
    input_token: Optional[TokenRef] = None
    output_token: Optional[TokenRef] = None


@dataclass
class LimitOrderFlow(_FlowBase):
    kind: ClassVar[str] = "limit_order"
    _token_fields: ClassVar[tuple] = ("input_token", "output_token")
    _enum_fields: ClassVar[Dict[str, type]] = {
        "step": LimitOrderStep,
        "direction": Direction,
        "price_kind": PriceKind,
    }
    _decimal_fields: ClassVar[tuple] = ("price_value", "trigger_price")

    step: LimitOrderStep = LimitOrderStep.SELECT_DIRECTION
    message_ref: Optional[int] = None
    direction: Optional[Direction] = None
    input_token: Optional[TokenRef] = None
    output_token: Optional[TokenRef] = None
    price_kind: Optional[PriceKind] = None
    price_value: Optional[Decimal] = None
    trigger_price: Optional[Decimal] = None


@dataclass
class WithdrawFlow(_FlowBase):
    kind: ClassVar[str] = "withdraw"
    _token_fields: ClassVar[tuple] = ("token",)
    _enum_fields: ClassVar[Dict[str, type]] = {"step": WithdrawStep}

    step: WithdrawStep = WithdrawStep.ENTER_ADDRESS
    message_ref: Optional[int] = None
    recipient: Optional[str] = None
    token: Optional[TokenRef] = None


Flow = Union[SwapFlow, LimitOrderFlow, WithdrawFlow]

FLOW_TYPES = {cls.kind: cls for cls in (SwapFlow, LimitOrderFlow, WithdrawFlow)}


@dataclass
class SessionState:
    session_id: str
    flow: Optional[Flow] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "flow": self.flow.to_dict() if self.flow else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionState":
        flow_data = data.get("flow")
        flow = None
        if flow_data:
            flow_cls = FLOW_TYPES.get(flow_data.get("kind"))
            if flow_cls is None:
                raise ValueError(f"Unknown flow kind: {flow_data.get('kind')}")
            flow = flow_cls.from_dict(flow_data)
        return cls(session_id=str(data["session_id"]), flow=flow)
