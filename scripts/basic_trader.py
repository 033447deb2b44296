"""Conservative autonomous trading bot.

Checks the market every 5 minutes, lets the LLM decide, and trades when
confident.  Prints the agent status once a minute.

Usage (from the project root):
    python -m scripts.basic_trader
"""

import asyncio
import dataclasses
import logging
import signal
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from mayhem.cli.dashboard import print_status
from mayhem.config import load_config
from mayhem.llm.connector import LLMConnector
from mayhem.main import build_sdk
from mayhem.models.agent_config import TradingConfig

logger = logging.getLogger("mayhem.scripts.basic_trader")

SYSTEM_PROMPT = """\
You are a conservative crypto trading bot.
Analyze market data and make safe trading decisions.
Prefer holding over risky trades.
Max 2% risk per trade.
Always provide JSON responses."""

CHECK_INTERVAL = 5 * 60  # seconds
STATUS_INTERVAL = 60  # seconds


async def report_until_stopped(agent, stopped: asyncio.Event, interval: float = STATUS_INTERVAL) -> None:
    """Print the agent status every *interval* seconds until *stopped* is set."""
    while agent.is_running and not stopped.is_set():
        print_status(agent.get_status())
        try:
            await asyncio.wait_for(stopped.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def _main() -> None:
    config = load_config()
    if not config.wallet_private_key or not config.token_mint:
        raise ValueError("WALLET_PRIVATE_KEY and TOKEN_MINT are required")

    sdk = build_sdk(config)
    await sdk.initialize()
    logger.info("Connected to Mayhem Protocol")

    settings = dataclasses.replace(
        config.llm_settings(),
        model=config.llm_model or "anthropic/claude-3-haiku",
        system_prompt=SYSTEM_PROMPT,
    )
    llm = LLMConnector(settings)
    agent = llm.create_trading_agent(sdk, interval=CHECK_INTERVAL)

    trading_config = TradingConfig(
        token_mint=config.token_mint,
        strategy="dca",
        max_risk=0.02,
        stop_loss=20,
        take_profit=50,
    )
    logger.info("Trading configuration: %s", trading_config.to_dict())
    await agent.start_trading(trading_config)
    logger.info("Bot is now running. Press Ctrl+C to stop.")

    stopped = asyncio.Event()

    def _on_sigint() -> None:
        agent.stop_trading()
        stopped.set()

    asyncio.get_running_loop().add_signal_handler(signal.SIGINT, _on_sigint)
    await report_until_stopped(agent, stopped)

    logger.info("Shutting down...")
    await agent.wait_in_flight()
    await sdk.disconnect()
    logger.info("Bot stopped safely")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(_main())
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)
