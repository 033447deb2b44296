"""Daily buyback and burn using collected creator fees.

Every day at 00:00 UTC: collect fees, ask the LLM whether to buy back, and
if so buy with the fees and burn half.  Type ``buyback`` + Enter to run a
pass immediately.

Usage (from the project root):
    python -m scripts.buyback_burn_bot
"""

import asyncio
import dataclasses
import logging
import os
import signal
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from mayhem.agents.buyback import DailyBuybackJob
from mayhem.config import load_config
from mayhem.llm.connector import LLMConnector
from mayhem.main import build_sdk

logger = logging.getLogger("mayhem.scripts.buyback_burn_bot")

BURN_PERCENTAGE = 50


def _watch_stdin(job: DailyBuybackJob, fd: int):
    """Fire a pass whenever a ``buyback`` line arrives on *fd*.

    Reads on the event loop with ``add_reader`` so no worker thread is left
    blocked on stdin at shutdown.  Returns a callable that stops watching.
    """
    loop = asyncio.get_running_loop()
    pending = b""

    def _on_readable() -> None:
        nonlocal pending
        chunk = os.read(fd, 1024)
        if not chunk:
            loop.remove_reader(fd)
            return
        *lines, pending = (pending + chunk).split(b"\n")
        for line in lines:
            if line.strip() == b"buyback":
                logger.info("Manual buyback triggered!")
                job.fire()

    try:
        loop.add_reader(fd, _on_readable)
    except (OSError, ValueError) as exc:  # regular files and /dev/null cannot be polled
        logger.warning("Manual trigger disabled, cannot watch stdin: %s", exc)
        return lambda: None
    return lambda: loop.remove_reader(fd)


async def run_until_stopped(job: DailyBuybackJob, sdk, stdin_fd: int) -> None:
    """Serve manual triggers until SIGINT, then stop the job and disconnect."""
    loop = asyncio.get_running_loop()
    stopped = asyncio.Event()

    def _on_sigint() -> None:
        # A second Ctrl+C falls through to KeyboardInterrupt.
        loop.remove_signal_handler(signal.SIGINT)
        job.stop()
        stopped.set()

    loop.add_signal_handler(signal.SIGINT, _on_sigint)
    stop_watching = _watch_stdin(job, stdin_fd)
    try:
        await stopped.wait()
    finally:
        stop_watching()
        loop.remove_signal_handler(signal.SIGINT)

    logger.info("Shutting down...")
    await job.wait_in_flight()
    await sdk.disconnect()


async def _main() -> None:
    config = load_config()
    if not config.wallet_private_key or not config.token_mint:
        raise ValueError("WALLET_PRIVATE_KEY and TOKEN_MINT are required")

    sdk = build_sdk(config)
    await sdk.initialize()

    settings = dataclasses.replace(
        config.llm_settings(),
        model=config.llm_model or "anthropic/claude-3.5-sonnet",
    )
    llm = LLMConnector(settings)

    job = DailyBuybackJob(sdk, llm, config.token_mint, burn_percentage=BURN_PERCENTAGE)
    await job.start(run_immediately=False)
    logger.info("Bot running. Daily buybacks at %s. Press Ctrl+C to stop.", job.schedule)

    await run_until_stopped(job, sdk, sys.stdin.fileno())
    logger.info("Bot stopped")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(_main())
