"""MayhemSDK: facade over the Mayhem and Controller programs.

Wraps RPC calls behind typed methods.  The programs' instruction layouts
are not defined here: transactions are assembled from an
``InstructionBuilder``, and the default builder contributes no
instructions.  ``collect_fees`` and ``get_token_price`` return placeholder
values until the on-chain reads are defined.  Account subscriptions use
the cluster's websocket endpoint.
"""

import asyncio
import base64
import inspect
import itertools
import json
import logging
from typing import Any, Callable, Optional, Protocol

import websockets
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from mayhem.chain.models import AccountEvent, BuybackParams, SDKSettings, TokenInfo, TradeParams
from mayhem.chain.rpc import DEFAULT_COMMITMENT, SolanaRPCClient, SolanaRPCError

logger = logging.getLogger("mayhem.chain")

# Placeholders until the bonding-curve and fee-vault reads exist.
PLACEHOLDER_TOKEN_PRICE = 0.0001
PLACEHOLDER_FEE_AMOUNT = 0.0
VOLUME_PER_SIGNATURE = 0.1
VOLUME_SIGNATURE_LIMIT = 1000
DEFAULT_RECONNECT_DELAY = 2.0  # seconds


class MayhemSDKError(RuntimeError):
    """Base class for facade precondition failures."""


class WalletNotInitializedError(MayhemSDKError):
    """Raised when a signing operation is attempted without a wallet."""


class ControllerNotConfiguredError(MayhemSDKError):
    """Raised when a Controller operation is attempted without its program id."""


class ProgramNotFoundError(MayhemSDKError):
    """Raised when the Mayhem program account does not exist on the cluster."""


class TokenNotFoundError(MayhemSDKError):
    """Raised when a mint account does not exist."""


def websocket_url(rpc_url: str) -> str:
    """Derive the cluster's websocket endpoint from its HTTP RPC URL."""
    if rpc_url.startswith("https://"):
        return "wss://" + rpc_url[len("https://"):]
    if rpc_url.startswith("http://"):
        return "ws://" + rpc_url[len("http://"):]
    return rpc_url


class InstructionBuilder(Protocol):
    """Produces the program instructions for each fund-moving operation."""

    def trade(self, params: TradeParams, payer: Pubkey, program: Pubkey) -> list[Instruction]:
        ...

    def collect_fees(self, payer: Pubkey, controller: Pubkey) -> list[Instruction]:
        ...

    def add_liquidity(
        self, token_mint: Pubkey, amount: float, payer: Pubkey, controller: Pubkey,
    ) -> list[Instruction]:
        ...


class PlaceholderInstructions:
    """Builder used until the program instruction formats are supplied."""

    def trade(self, params: TradeParams, payer: Pubkey, program: Pubkey) -> list[Instruction]:
        return []

    def collect_fees(self, payer: Pubkey, controller: Pubkey) -> list[Instruction]:
        return []

    def add_liquidity(
        self, token_mint: Pubkey, amount: float, payer: Pubkey, controller: Pubkey,
    ) -> list[Instruction]:
        return []


class MayhemSDK:
    """Async facade over the Mayhem protocol.

    Args:
        settings:     Cluster URL and program ids.
        wallet:       Signing keypair; read-only operations work without it.
        rpc:          Pre-built RPC client (defaults to one for ``settings.rpc_url``).
        instructions: Instruction builder for fund-moving operations.
        confirm_poll_interval: Seconds between confirmation polls.
        reconnect_delay: Seconds before a dropped subscription reconnects.
    """

    def __init__(
        self,
        settings: SDKSettings,
        wallet: Optional[Keypair] = None,
        rpc: Optional[SolanaRPCClient] = None,
        instructions: Optional[InstructionBuilder] = None,
        confirm_poll_interval: float = 1.0,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self._settings = settings
        self._wallet = wallet
        self._rpc = rpc or SolanaRPCClient(settings.rpc_url)
        self._instructions = instructions or PlaceholderInstructions()
        self._confirm_poll_interval = confirm_poll_interval
        self._reconnect_delay = reconnect_delay
        self._ws_url = settings.ws_url or websocket_url(settings.rpc_url)
        self._mayhem_program = Pubkey.from_string(settings.mayhem_program_id)
        self._controller_program: Optional[Pubkey] = (
            Pubkey.from_string(settings.controller_program_id)
            if settings.controller_program_id
            else None
        )
        self._subscription_ids = itertools.count(1)
        self._subscriptions: dict[int, asyncio.Task] = {}

    @property
    def wallet_address(self) -> Optional[str]:
        return str(self._wallet.pubkey()) if self._wallet else None

    @property
    def network(self) -> str:
        return self._settings.network

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Verify the Mayhem program exists; log Controller availability."""
        logger.info("Connecting to Mayhem protocol on %s...", self._settings.network)

        if not await self.account_exists(str(self._mayhem_program)):
            raise ProgramNotFoundError("Mayhem program not found on network")
        logger.info("Connected to Mayhem: %s", self._mayhem_program)

        if self._controller_program is not None:
            if await self.account_exists(str(self._controller_program)):
                logger.info("Connected to Controller: %s", self._controller_program)
            else:
                logger.warning("Controller program %s not found", self._controller_program)

    async def disconnect(self) -> None:
        """Cancel all account subscriptions."""
        for sub_id in list(self._subscriptions):
            await self.unsubscribe(sub_id)
        logger.info("Disconnecting from Mayhem")

    # ── Reads ────────────────────────────────────────────────────────────

    async def account_exists(self, address: str) -> bool:
        return await self._rpc.get_account_info(address) is not None

    async def get_token_info(self, mint_address: str) -> TokenInfo:
        """Read decimals and supply from the parsed mint account."""
        mint = Pubkey.from_string(mint_address)
        value = await self._rpc.get_account_info(str(mint), encoding="jsonParsed")
        if value is None:
            raise TokenNotFoundError(f"Token not found: {mint}")

        info = value["data"]["parsed"]["info"]
        decimals = int(info["decimals"])
        supply = int(info["supply"]) / (10 ** decimals)
        return TokenInfo(
            mint=str(mint),
            name="Token Name",
            symbol="TKN",
            decimals=decimals,
            supply=supply,
        )

    async def get_token_price(self, token_mint: str) -> float:
        """Current bonding-curve price.

        Placeholder: the curve state belongs to the Mayhem program and is
        not decoded here.
        """
        Pubkey.from_string(token_mint)
        return PLACEHOLDER_TOKEN_PRICE

    async def get_volume_24h(self, token_mint: str) -> float:
        """Approximate volume from the number of recent signatures on the mint."""
        signatures = await self._rpc.get_signatures_for_address(
            str(Pubkey.from_string(token_mint)), limit=VOLUME_SIGNATURE_LIMIT,
        )
        return len(signatures) * VOLUME_PER_SIGNATURE

    # ── Writes ───────────────────────────────────────────────────────────

    async def trade(self, params: TradeParams) -> str:
        """Submit a trade against the Mayhem program and return its signature."""
        wallet = self._require_wallet()
        logger.info("%s: %s tokens", params.side.upper(), params.amount)

        instructions = self._instructions.trade(params, wallet.pubkey(), self._mayhem_program)
        signature = await self._send(instructions)
        logger.info("Trade executed: %s", signature)
        return signature

    async def buyback_and_burn(self, params: BuybackParams) -> str:
        """Buy tokens for the full SOL amount, then burn a share.

        The burn step is only logged: the Controller burn instruction is
        not issued from here.
        """
        self._require_wallet()
        self._require_controller()
        logger.info(
            "Buyback: %s SOL → %s%% burn", params.sol_amount, params.burn_percentage,
        )

        signature = await self.trade(
            TradeParams(token_mint=params.token_mint, amount=params.sol_amount, side="buy")
        )

        if params.burn_percentage > 0:
            logger.info("Burning %s%% of bought tokens", params.burn_percentage)

        return signature

    async def add_liquidity_from_fees(self, token_mint: str, fee_amount: float) -> str:
        controller = self._require_controller()
        wallet = self._require_wallet()
        logger.info("Adding %s to LP", fee_amount)

        instructions = self._instructions.add_liquidity(
            Pubkey.from_string(token_mint), fee_amount, wallet.pubkey(), controller,
        )
        return await self._send(instructions)

    async def collect_fees(self) -> float:
        """Run the Controller fee collection and return the collected SOL.

        The amount is a placeholder until the transaction result is decoded.
        """
        controller = self._require_controller()
        wallet = self._require_wallet()
        logger.info("Collecting fees...")

        instructions = self._instructions.collect_fees(wallet.pubkey(), controller)
        await self._send(instructions)
        return PLACEHOLDER_FEE_AMOUNT

    # ── Subscriptions ────────────────────────────────────────────────────

    async def subscribe_to_token(
        self,
        token_mint: str,
        callback: Callable[[AccountEvent], Any],
    ) -> int:
        """Call *callback* with a ``token_update`` event on every change to *token_mint*.

        Opens an ``accountSubscribe`` websocket subscription in the
        background and reconnects when the connection drops.  Returns a
        subscription id for :meth:`unsubscribe`.
        """
        address = str(Pubkey.from_string(token_mint))
        sub_id = next(self._subscription_ids)
        logger.info("Listening to token events for %s (subscription %d)", address, sub_id)
        self._subscriptions[sub_id] = asyncio.create_task(
            self._watch_account(sub_id, address, callback)
        )
        return sub_id

    async def unsubscribe(self, subscription_id: int) -> None:
        """Cancel a subscription; ``accountUnsubscribe`` is sent on the way out."""
        task = self._subscriptions.pop(subscription_id, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _watch_account(
        self,
        sub_id: int,
        address: str,
        callback: Callable[[AccountEvent], Any],
    ) -> None:
        request = {
            "jsonrpc": "2.0",
            "id": sub_id,
            "method": "accountSubscribe",
            "params": [address, {"encoding": "base64", "commitment": DEFAULT_COMMITMENT}],
        }
        while True:
            try:
                async with websockets.connect(self._ws_url) as ws:
                    await ws.send(json.dumps(request))
                    await self._relay_account_notifications(ws, sub_id, address, callback)
            except (OSError, ValueError, KeyError, websockets.WebSocketException, SolanaRPCError) as exc:
                logger.error(
                    "Subscription %d for %s failed: %s; reconnecting in %.1fs",
                    sub_id, address, exc, self._reconnect_delay,
                )
            await asyncio.sleep(self._reconnect_delay)

    async def _relay_account_notifications(self, ws, sub_id, address, callback) -> None:
        server_id = None
        try:
            while True:
                message = json.loads(await ws.recv())
                if "error" in message:
                    error = message["error"]
                    raise SolanaRPCError(
                        error.get("message", "accountSubscribe failed"), code=error.get("code"),
                    )
                if message.get("id") == sub_id:
                    server_id = message["result"]
                    logger.debug("Subscription %d confirmed as %s", sub_id, server_id)
                    continue
                if message.get("method") != "accountNotification":
                    continue

                result = message["params"]["result"]
                await self._deliver(callback, AccountEvent(
                    type="token_update",
                    address=address,
                    data=result["value"],
                    slot=result.get("context", {}).get("slot"),
                ))
        finally:
            if server_id is not None:
                try:
                    await ws.send(json.dumps({
                        "jsonrpc": "2.0",
                        "id": sub_id,
                        "method": "accountUnsubscribe",
                        "params": [server_id],
                    }))
                except websockets.ConnectionClosed:
                    logger.debug("Subscription %d: connection already closed", sub_id)

    async def _deliver(self, callback: Callable[[AccountEvent], Any], event: AccountEvent) -> None:
        try:
            result = callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error("Subscription callback for %s failed: %s", event.address, exc)

    # ── Internals ────────────────────────────────────────────────────────

    def _require_wallet(self) -> Keypair:
        if self._wallet is None:
            raise WalletNotInitializedError("Wallet not initialized")
        return self._wallet

    def _require_controller(self) -> Pubkey:
        if self._controller_program is None:
            raise ControllerNotConfiguredError("Controller program not configured")
        return self._controller_program

    async def _send(self, instructions: list[Instruction]) -> str:
        """Sign, submit and confirm a transaction built from *instructions*."""
        wallet = self._require_wallet()
        blockhash = Hash.from_string(await self._rpc.get_latest_blockhash())
        message = Message.new_with_blockhash(instructions, wallet.pubkey(), blockhash)
        tx = Transaction([wallet], message, blockhash)
        encoded = base64.b64encode(bytes(tx)).decode("ascii")

        signature = await self._rpc.send_transaction(encoded)
        await self._rpc.confirm_transaction(
            signature, poll_interval=self._confirm_poll_interval,
        )
        return signature
