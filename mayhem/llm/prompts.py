"""Prompt templates used to instruct the LLM."""

from __future__ import annotations

import textwrap

from mayhem.models.market import MarketSnapshot, PlatformMetrics

DEFAULT_SYSTEM_PROMPT = textwrap.dedent(
    """
    You are an expert cryptocurrency trading AI for the Mayhem protocol on Solana.

    Your responsibilities:
    1. Analyze market data and make informed trading decisions
    2. Manage risk by limiting position sizes
    3. Execute buybacks when prices are favorable
    4. Decide when to burn tokens vs add to LP
    5. Provide clear reasoning for all decisions

    Guidelines:
    - Never risk more than 2% of portfolio on a single trade
    - Prefer gradual accumulation over large market orders
    - Consider market sentiment and volume trends
    - Prioritize long-term value over short-term gains
    - Always provide JSON-formatted responses
    """
).strip()


def build_trading_prompt(snapshot: MarketSnapshot) -> str:
    recent = "\n".join(
        f"- {tx.type}: {tx.amount} @ ${tx.price}" for tx in snapshot.recent_txs
    ) or "- none"
    fee_line = (
        f"\nCollected Fees: {snapshot.fee_amount} SOL"
        if snapshot.fee_amount is not None
        else ""
    )
    market = textwrap.dedent(
        f"""
        Analyze the following market data and decide on trading action:

        Token: {snapshot.symbol or "unknown"}
        Current Price: ${snapshot.price}
        24h Volume: ${snapshot.volume_24h}
        24h Price Change: {snapshot.price_change_24h}%
        Market Cap: ${snapshot.market_cap}
        Holders: {snapshot.holders}
        """
    ).strip()
    instructions = textwrap.dedent(
        """
        Respond in JSON format:
        {
          "action": "buy" | "sell" | "hold" | "burn" | "add_lp",
          "amount": <number in SOL>,
          "reasoning": "<your analysis>",
          "confidence": <0-1>
        }
        """
    ).strip()
    return f"{market}{fee_line}\n\nRecent Transactions:\n{recent}\n\n{instructions}"


def _format_platform(metrics: PlatformMetrics) -> str:
    return (
        f"- {metrics.platform}: {metrics.engagement} engagement, "
        f"{metrics.reach} reach, {metrics.active_users} active users, "
        f"{metrics.growth_rate} growth, "
        f"${metrics.cost_per_engagement:.4f} per engagement"
    )


def build_marketing_prompt(budget: float, metrics: dict[str, PlatformMetrics]) -> str:
    platforms = "\n".join(_format_platform(m) for m in metrics.values()) or "- no data"
    instructions = textwrap.dedent(
        """
        Recommend budget allocation and strategies in JSON format:
        {
          "allocations": [
            { "platform": "twitter", "amount": <USD>, "strategy": "<description>", "expectedROI": <number> },
            { "platform": "discord", "amount": <USD>, "strategy": "<description>", "expectedROI": <number> }
          ],
          "reasoning": "<your analysis>"
        }
        """
    ).strip()
    return (
        "Analyze platform metrics and allocate marketing budget:\n\n"
        f"Available Budget: ${budget}\n\n"
        f"Platform Performance (Last 7 days):\n{platforms}\n\n"
        f"{instructions}"
    )


__all__ = ["DEFAULT_SYSTEM_PROMPT", "build_marketing_prompt", "build_trading_prompt"]
