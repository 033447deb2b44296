"""CLI dashboard: prints agent status to the console."""


def print_status(status: dict) -> str:
    """Format and print one agent's status.

    Args:
        status: Dict as returned by an agent's ``get_status()``.

    Returns:
        The formatted string (also printed to stdout).
    """
    name = status.get("name", "unknown")
    kind = status.get("kind", "unknown")
    running = status.get("is_running", False)
    interval = status.get("interval_seconds")
    ticks = status.get("tick_count", 0)
    in_flight = status.get("in_flight", 0)
    last_result = status.get("last_result") or {}
    config = status.get("config") or {}

    interval_str = f"{interval:.0f}s" if interval is not None else "N/A"
    last_str = last_result.get("action", "N/A")
    if last_result.get("reason"):
        last_str += f" ({last_result['reason']})"
    target = config.get("token_mint") or (
        f"${config['total_budget']:,.2f} budget" if "total_budget" in config else "N/A"
    )

    lines = [
        "──────────────── Mayhem Agent Status ─────────────",
        f"  Agent:           {name} ({kind})",
        f"  Status:          {'Active' if running else 'Paused'}",
        f"  Target:          {target}",
        f"  Interval:        {interval_str}",
        f"  Ticks:           {ticks}",
        f"  In Flight:       {in_flight}",
        f"  Last Result:     {last_str}",
        "──────────────────────────────────────────────────",
    ]
    output = "\n".join(lines)
    print(output)
    return output
