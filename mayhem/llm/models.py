"""LLM data models: chat messages, decisions, marketing plans and parse results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class Action(str, Enum):
    """Actions the trading prompt asks the model to choose from."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"
    BURN = "burn"
    ADD_LP = "add_lp"


@dataclass(frozen=True)
class ChatMessage:
    """A single role-tagged message sent to a provider."""

    role: str  # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Decision:
    """A trading decision as returned by the model.

    Fields hold exactly what the reply contained: ``action`` may fall
    outside :class:`Action`, and ``confidence`` and ``amount`` may be
    missing, out of range or not numbers at all.  Drivers coerce them
    before acting.  ``raw`` is the whole decoded object.
    """

    action: Any = None
    confidence: Any = None
    reasoning: Any = ""
    amount: Any = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class MarketingAllocation:
    """Budget assigned to one platform."""

    platform: str
    amount: float
    strategy: str = ""
    expected_roi: float = 0.0

    def to_dict(self) -> dict:
        return {
            "platform": self.platform,
            "amount": self.amount,
            "strategy": self.strategy,
            "expectedROI": self.expected_roi,
        }


@dataclass(frozen=True)
class MarketingPlan:
    """Allocation plan produced by the marketing prompt."""

    allocations: list[MarketingAllocation] = field(default_factory=list)
    reasoning: str = ""


@dataclass(frozen=True)
class ParseFailure:
    """Reply text that could not be decoded into the expected shape."""

    raw_text: str
    error: str


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Either a decoded value or a :class:`ParseFailure`, never both."""

    value: Optional[T] = None
    failure: Optional[ParseFailure] = None

    @classmethod
    def success(cls, value: T) -> "ParseResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, raw_text: str, error: str) -> "ParseResult[T]":
        return cls(failure=ParseFailure(raw_text=raw_text, error=error))

    @property
    def ok(self) -> bool:
        return self.failure is None
