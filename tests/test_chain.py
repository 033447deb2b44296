"""Tests for mayhem.chain: wallet loading and the MayhemSDK facade with a mocked RPC client."""

import asyncio
import base64
import json
from unittest.mock import AsyncMock

import base58
import pytest
import websockets
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from mayhem.chain.models import AccountEvent, BuybackParams, SDKSettings, TradeParams
from mayhem.chain.sdk import (
    ControllerNotConfiguredError,
    MayhemSDK,
    PLACEHOLDER_TOKEN_PRICE,
    ProgramNotFoundError,
    TokenNotFoundError,
    WalletNotInitializedError,
    websocket_url,
)
from mayhem.chain.wallet import describe_wallet, load_keypair


# ── Helpers ──────────────────────────────────────────────────────────────

MAYHEM_PROGRAM = str(Pubkey.new_unique())
CONTROLLER_PROGRAM = str(Pubkey.new_unique())
TOKEN_MINT = str(Pubkey.new_unique())


def _make_rpc() -> AsyncMock:
    rpc = AsyncMock()
    rpc.get_account_info.return_value = {"data": ["", "base64"], "executable": True}
    rpc.get_latest_blockhash.return_value = str(Hash.default())
    rpc.send_transaction.return_value = "Sig111"
    rpc.confirm_transaction.return_value = {"confirmationStatus": "confirmed"}
    rpc.get_signatures_for_address.return_value = []
    return rpc


def _make_sdk(wallet=True, controller=True, rpc=None) -> MayhemSDK:
    settings = SDKSettings(
        rpc_url="https://api.devnet.solana.com",
        mayhem_program_id=MAYHEM_PROGRAM,
        controller_program_id=CONTROLLER_PROGRAM if controller else None,
    )
    return MayhemSDK(
        settings,
        wallet=Keypair() if wallet else None,
        rpc=rpc or _make_rpc(),
        confirm_poll_interval=0,
        reconnect_delay=0,
    )


# ── Wallet ───────────────────────────────────────────────────────────────


class TestWallet:
    def test_load_64_byte_secret(self):
        kp = Keypair()
        secret = base58.b58encode(bytes(kp)).decode()
        assert load_keypair(secret).pubkey() == kp.pubkey()

    def test_load_32_byte_seed(self):
        seed = bytes(range(32))
        secret = base58.b58encode(seed).decode()
        assert load_keypair(secret).pubkey() == Keypair.from_seed(seed).pubkey()

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError, match="32 or 64 bytes"):
            load_keypair(base58.b58encode(b"too short").decode())

    def test_invalid_base58_rejected(self):
        with pytest.raises(ValueError):
            load_keypair("0OIl-not-base58")

    def test_describe_wallet(self):
        kp = Keypair()
        assert describe_wallet(kp) == str(kp.pubkey())


# ── Lifecycle and reads ──────────────────────────────────────────────────


class TestSDKReads:
    @pytest.mark.asyncio
    async def test_initialize_checks_program(self):
        rpc = _make_rpc()
        await _make_sdk(rpc=rpc).initialize()
        checked = [c.args[0] for c in rpc.get_account_info.call_args_list]
        assert checked == [MAYHEM_PROGRAM, CONTROLLER_PROGRAM]

    @pytest.mark.asyncio
    async def test_initialize_missing_program(self):
        rpc = _make_rpc()
        rpc.get_account_info.return_value = None
        with pytest.raises(ProgramNotFoundError):
            await _make_sdk(rpc=rpc).initialize()

    @pytest.mark.asyncio
    async def test_initialize_tolerates_missing_controller(self):
        rpc = _make_rpc()
        rpc.get_account_info.side_effect = [{"data": []}, None]
        await _make_sdk(rpc=rpc).initialize()

    @pytest.mark.asyncio
    async def test_get_token_info(self):
        rpc = _make_rpc()
        rpc.get_account_info.return_value = {
            "data": {"parsed": {"info": {"decimals": 6, "supply": "1000000000"}, "type": "mint"}},
        }
        info = await _make_sdk(rpc=rpc).get_token_info(TOKEN_MINT)
        assert info.mint == TOKEN_MINT
        assert info.decimals == 6
        assert info.supply == pytest.approx(1000.0)
        assert info.symbol == "TKN"
        assert rpc.get_account_info.call_args.kwargs["encoding"] == "jsonParsed"

    @pytest.mark.asyncio
    async def test_get_token_info_missing(self):
        rpc = _make_rpc()
        rpc.get_account_info.return_value = None
        with pytest.raises(TokenNotFoundError):
            await _make_sdk(rpc=rpc).get_token_info(TOKEN_MINT)

    @pytest.mark.asyncio
    async def test_token_price_placeholder(self):
        assert await _make_sdk().get_token_price(TOKEN_MINT) == PLACEHOLDER_TOKEN_PRICE == 0.0001

    @pytest.mark.asyncio
    async def test_invalid_mint_rejected(self):
        with pytest.raises(ValueError):
            await _make_sdk().get_token_price("not-a-pubkey")

    @pytest.mark.asyncio
    async def test_volume_from_signature_count(self):
        rpc = _make_rpc()
        rpc.get_signatures_for_address.return_value = [{"signature": str(i)} for i in range(25)]
        volume = await _make_sdk(rpc=rpc).get_volume_24h(TOKEN_MINT)
        assert volume == pytest.approx(2.5)
        assert rpc.get_signatures_for_address.call_args.kwargs["limit"] == 1000


# ── Writes ───────────────────────────────────────────────────────────────


class TestSDKWrites:
    @pytest.mark.asyncio
    async def test_trade_requires_wallet(self):
        sdk = _make_sdk(wallet=False)
        with pytest.raises(WalletNotInitializedError):
            await sdk.trade(TradeParams(token_mint=TOKEN_MINT, amount=1.0, side="buy"))

    @pytest.mark.asyncio
    async def test_trade_signs_sends_and_confirms(self):
        rpc = _make_rpc()
        sdk = _make_sdk(rpc=rpc)

        sig = await sdk.trade(TradeParams(token_mint=TOKEN_MINT, amount=1.0, side="buy"))

        assert sig == "Sig111"
        encoded = rpc.send_transaction.call_args.args[0]
        tx = Transaction.from_bytes(base64.b64decode(encoded))
        assert tx.message.account_keys[0] == Pubkey.from_string(sdk.wallet_address)
        rpc.confirm_transaction.assert_awaited_once()
        assert rpc.confirm_transaction.call_args.args[0] == "Sig111"

    @pytest.mark.asyncio
    async def test_buyback_requires_controller(self):
        sdk = _make_sdk(controller=False)
        with pytest.raises(ControllerNotConfiguredError):
            await sdk.buyback_and_burn(
                BuybackParams(token_mint=TOKEN_MINT, sol_amount=1.0, burn_percentage=50),
            )

    @pytest.mark.asyncio
    async def test_buyback_trades_full_amount(self):
        sdk = _make_sdk()
        sdk.trade = AsyncMock(return_value="BuySig")
        sig = await sdk.buyback_and_burn(
            BuybackParams(token_mint=TOKEN_MINT, sol_amount=2.0, burn_percentage=50),
        )
        assert sig == "BuySig"
        params = sdk.trade.call_args.args[0]
        assert params.amount == 2.0
        assert params.side == "buy"

    @pytest.mark.asyncio
    async def test_collect_fees_sends_and_returns_placeholder(self):
        rpc = _make_rpc()
        assert await _make_sdk(rpc=rpc).collect_fees() == 0.0
        rpc.send_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_add_liquidity_requires_controller(self):
        with pytest.raises(ControllerNotConfiguredError):
            await _make_sdk(controller=False).add_liquidity_from_fees(TOKEN_MINT, 1.0)

    @pytest.mark.asyncio
    async def test_add_liquidity_returns_signature(self):
        assert await _make_sdk().add_liquidity_from_fees(TOKEN_MINT, 1.0) == "Sig111"


# ── Subscriptions ────────────────────────────────────────────────────────


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, *messages: dict) -> None:
        self.sent: list[dict] = []
        self._incoming: asyncio.Queue = asyncio.Queue()
        for message in messages:
            self._incoming.put_nowait(json.dumps(message))

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def recv(self) -> str:
        return await self._incoming.get()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _patch_connect(monkeypatch, *sockets: FakeWebSocket) -> list[str]:
    """Patch ``websockets.connect`` to hand out *sockets* in order."""
    urls: list[str] = []
    remaining = list(sockets)

    def _connect(url, **kwargs):
        urls.append(url)
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    monkeypatch.setattr(websockets, "connect", _connect)
    return urls


def _confirmation(request_id: int = 1, server_id: int = 42) -> dict:
    return {"jsonrpc": "2.0", "result": server_id, "id": request_id}


def _notification(value: dict, slot: int = 7, server_id: int = 42) -> dict:
    return {
        "jsonrpc": "2.0",
        "method": "accountNotification",
        "params": {
            "result": {"context": {"slot": slot}, "value": value},
            "subscription": server_id,
        },
    }


class TestSubscriptions:
    def test_websocket_url_from_rpc_url(self):
        assert websocket_url("https://api.devnet.solana.com") == "wss://api.devnet.solana.com"
        assert websocket_url("http://localhost:8899") == "ws://localhost:8899"
        assert websocket_url("wss://already.example") == "wss://already.example"

    @pytest.mark.asyncio
    async def test_notification_delivered_then_unsubscribed(self, monkeypatch):
        value = {"data": ["b", "base64"], "lamports": 10}
        socket = FakeWebSocket(_confirmation(), _notification(value))
        urls = _patch_connect(monkeypatch, socket)
        sdk = _make_sdk()
        events: list[AccountEvent] = []
        received = asyncio.Event()

        def _on_update(event):
            events.append(event)
            received.set()

        sub_id = await sdk.subscribe_to_token(TOKEN_MINT, _on_update)
        await asyncio.wait_for(received.wait(), timeout=1.0)
        await sdk.unsubscribe(sub_id)

        assert urls == ["wss://api.devnet.solana.com"]
        subscribe = socket.sent[0]
        assert subscribe["method"] == "accountSubscribe"
        assert subscribe["params"][0] == TOKEN_MINT
        assert subscribe["params"][1]["commitment"] == "confirmed"
        assert socket.sent[-1] == {
            "jsonrpc": "2.0", "id": sub_id, "method": "accountUnsubscribe", "params": [42],
        }
        assert events == [AccountEvent(type="token_update", address=TOKEN_MINT, data=value, slot=7)]

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self, monkeypatch):
        _patch_connect(monkeypatch, FakeWebSocket(_confirmation(), _notification({"data": []})))
        sdk = _make_sdk()
        received = asyncio.Event()

        async def _on_update(event):
            received.set()

        await sdk.subscribe_to_token(TOKEN_MINT, _on_update)
        await asyncio.wait_for(received.wait(), timeout=1.0)
        await sdk.disconnect()

    @pytest.mark.asyncio
    async def test_callback_error_keeps_subscription(self, monkeypatch):
        _patch_connect(monkeypatch, FakeWebSocket(
            _confirmation(), _notification({"data": ["a"]}), _notification({"data": ["b"]}),
        ))
        sdk = _make_sdk()
        seen: list = []
        done = asyncio.Event()

        def _on_update(event):
            seen.append(event.data)
            if len(seen) == 1:
                raise RuntimeError("handler bug")
            done.set()

        await sdk.subscribe_to_token(TOKEN_MINT, _on_update)
        await asyncio.wait_for(done.wait(), timeout=1.0)
        await sdk.disconnect()
        assert seen == [{"data": ["a"]}, {"data": ["b"]}]

    @pytest.mark.asyncio
    async def test_error_reply_reconnects(self, monkeypatch):
        rejected = FakeWebSocket(
            {"jsonrpc": "2.0", "error": {"code": -32602, "message": "Invalid param"}, "id": 1},
        )
        accepted = FakeWebSocket(_confirmation(), _notification({"data": ["c"]}))
        urls = _patch_connect(monkeypatch, rejected, accepted)
        sdk = _make_sdk()
        received = asyncio.Event()

        await sdk.subscribe_to_token(TOKEN_MINT, lambda e: received.set())
        await asyncio.wait_for(received.wait(), timeout=1.0)
        await sdk.disconnect()

        assert len(urls) == 2
        assert rejected.sent[-1]["method"] == "accountSubscribe"

    @pytest.mark.asyncio
    async def test_ws_url_override(self, monkeypatch):
        urls = _patch_connect(monkeypatch, FakeWebSocket())
        settings = SDKSettings(
            rpc_url="https://rpc.example.com",
            mayhem_program_id=MAYHEM_PROGRAM,
            ws_url="ws://localhost:8900",
        )
        sdk = MayhemSDK(settings, rpc=_make_rpc())
        await sdk.subscribe_to_token(TOKEN_MINT, lambda e: None)
        await asyncio.sleep(0.01)
        await sdk.disconnect()
        assert urls == ["ws://localhost:8900"]

    @pytest.mark.asyncio
    async def test_disconnect_cancels_subscriptions(self, monkeypatch):
        _patch_connect(monkeypatch, FakeWebSocket())
        sdk = _make_sdk()
        await sdk.subscribe_to_token(TOKEN_MINT, lambda e: None)
        await sdk.subscribe_to_token(TOKEN_MINT, lambda e: None)
        await sdk.disconnect()
        assert sdk._subscriptions == {}

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_is_noop(self):
        await _make_sdk().unsubscribe(999)
