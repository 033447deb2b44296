"""Mayhem Agent application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
the trader and marketing modes.
"""

import logging

from fastapi import FastAPI

from mayhem.api.routers import router

app = FastAPI(title="Mayhem Agent Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("mayhem")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


def warn_if_live(network: str) -> bool:
    """Log a prominent warning when trading on mainnet.

    Returns ``True`` if *network* is ``"mainnet"``.
    """
    if network == "mainnet":
        logger.warning("MAINNET MODE: real funds at risk! Starting in 5 seconds...")
        return True
    return False


# ── Builders ─────────────────────────────────────────────────────────────


def build_sdk(config):
    """Create a ``MayhemSDK`` from *config*, loading the wallet when set."""
    from mayhem.chain.models import SDKSettings
    from mayhem.chain.sdk import MayhemSDK
    from mayhem.chain.wallet import describe_wallet, load_keypair

    wallet = None
    if config.wallet_private_key:
        wallet = load_keypair(config.wallet_private_key)
        logger.info("Wallet: %s", describe_wallet(wallet))

    settings = SDKSettings(
        rpc_url=config.rpc_url,
        mayhem_program_id=config.mayhem_program_id,
        network=config.network,
        controller_program_id=config.controller_program_id,
        ws_url=config.ws_url,
    )
    return MayhemSDK(settings, wallet=wallet)


def build_llm(config):
    """Create an ``LLMConnector`` for the configured provider."""
    from mayhem.llm.connector import LLMConnector

    llm = LLMConnector(config.llm_settings())
    logger.info("LLM connected: %s", llm.provider_name)
    return llm


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import signal
    import sys
    import threading
    import time

    from mayhem.agents.manager import AgentManager
    from mayhem.api.routers import configure_routers
    from mayhem.config import load_config

    parser = argparse.ArgumentParser(description="Mayhem LLM trading agent")
    parser.add_argument(
        "--mode",
        choices=["trader", "marketing"],
        default="trader",
        help="Agent to run (default: trader)",
    )
    parser.add_argument(
        "--budget",
        type=float,
        default=1000.0,
        help="Marketing budget in USD (marketing mode)",
    )
    parser.add_argument(
        "--no-api",
        action="store_true",
        help="Run the agents without the internal API server",
    )
    args = parser.parse_args()

    config = load_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if warn_if_live(config.network):
        time.sleep(5)

    manager = AgentManager()
    configure_routers(agent_manager=manager)

    shutdown = threading.Event()

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping gracefully.")
        shutdown.set()
        manager.stop_all()

    signal.signal(signal.SIGINT, handle_shutdown)

    try:
        asyncio.run(_run_agents(config, manager, args, shutdown))
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)
    logger.info("Mayhem agent stopped.")


async def _run_agents(config, manager, args, shutdown=None) -> None:
    """Start the selected agent and, unless disabled, the API server.

    *shutdown* is a ``threading.Event`` set by the signal handler.  When it
    is set before the agent starts (for example during ``sdk.initialize()``),
    nothing is registered or started.
    """
    import asyncio

    llm = build_llm(config)
    sdk = None

    if args.mode == "trader":
        from mayhem.models.agent_config import TradingConfig

        if not config.token_mint:
            raise ValueError("TOKEN_MINT is required in trader mode")
        sdk = build_sdk(config)
        await sdk.initialize()
        if shutdown is not None and shutdown.is_set():
            logger.info("Shutdown requested before trading started.")
            await sdk.disconnect()
            return
        agent = manager.register(
            llm.create_trading_agent(sdk, interval=config.trading_interval_seconds)
        )
        await agent.start_trading(TradingConfig(token_mint=config.token_mint))
    else:
        from mayhem.marketing.client import MarketingAPI
        from mayhem.models.agent_config import MarketingConfig

        if not config.marketing_api_url:
            raise ValueError("MARKETING_API_URL is required in marketing mode")
        if shutdown is not None and shutdown.is_set():
            logger.info("Shutdown requested before marketing started.")
            return
        agent = manager.register(
            llm.create_marketing_agent(MarketingAPI(config.marketing_api_url))
        )
        await agent.start_marketing(MarketingConfig(total_budget=args.budget))

    server = None
    server_task = None
    if not args.no_api:
        import uvicorn

        server = uvicorn.Server(
            uvicorn.Config(app, host="0.0.0.0", port=config.health_port, log_level="info")
        )
        server_task = asyncio.create_task(server.serve())
        logger.info("Status API available at http://localhost:%d", config.health_port)

    while manager.any_running:
        await asyncio.sleep(1)

    await manager.wait_all()
    if server is not None:
        server.should_exit = True
        await server_task
    if sdk is not None:
        await sdk.disconnect()


if __name__ == "__main__":
    _run_cli()
