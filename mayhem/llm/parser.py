"""Decode model replies into decisions and marketing plans.

Parsing is strict: the whole reply must be a JSON object.  Nothing here
raises; failures come back as a :class:`ParseResult` carrying a
:class:`ParseFailure`, and the caller decides on the fallback.
"""

from __future__ import annotations

import json

from mayhem.llm.models import (
    Action,
    Decision,
    MarketingAllocation,
    MarketingPlan,
    ParseResult,
)

FALLBACK_CONFIDENCE = 0.5


def _load_object(text: str) -> tuple[dict | None, str]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        return None, f"invalid JSON: {exc}"
    if not isinstance(data, dict):
        return None, f"expected a JSON object, got {type(data).__name__}"
    return data, ""


def parse_decision(text: str) -> ParseResult[Decision]:
    """Decode *text* into a :class:`Decision`.

    Any JSON object is accepted and its fields are passed through as they
    are: no confidence clamping, no type coercion and no check that
    ``action`` is one of the known actions.  Only text that is not a JSON
    object fails.
    """
    data, error = _load_object(text)
    if data is None:
        return ParseResult.fail(text, error)
    return ParseResult.success(
        Decision(
            action=data.get("action"),
            confidence=data.get("confidence"),
            reasoning=data.get("reasoning", ""),
            amount=data.get("amount"),
            raw=data,
        )
    )


def fallback_decision(raw_text: str) -> Decision:
    """Default decision used when a reply cannot be parsed."""
    return Decision(
        action=Action.HOLD.value,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=raw_text,
        amount=None,
    )


def parse_marketing_plan(text: str) -> ParseResult[MarketingPlan]:
    """Decode *text* into a :class:`MarketingPlan`."""
    data, error = _load_object(text)
    if data is None:
        return ParseResult.fail(text, error)

    raw_allocations = data.get("allocations", [])
    if not isinstance(raw_allocations, list):
        return ParseResult.fail(text, "'allocations' must be a list")

    allocations: list[MarketingAllocation] = []
    try:
        for item in raw_allocations:
            allocations.append(
                MarketingAllocation(
                    platform=str(item["platform"]),
                    amount=float(item.get("amount", 0)),
                    strategy=str(item.get("strategy", "")),
                    expected_roi=float(
                        item.get("expectedROI", item.get("expected_roi", 0)) or 0
                    ),
                )
            )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        return ParseResult.fail(text, f"malformed allocation: {exc}")

    return ParseResult.success(
        MarketingPlan(allocations=allocations, reasoning=str(data.get("reasoning", "")))
    )


def fallback_plan(raw_text: str) -> MarketingPlan:
    """Empty plan used when a marketing reply cannot be parsed."""
    return MarketingPlan(allocations=[], reasoning=raw_text)
