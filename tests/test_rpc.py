"""Tests for mayhem.chain.rpc: Solana JSON-RPC client with mocked HTTP responses."""

import httpx
import pytest

from mayhem.chain.rpc import SolanaRPCClient, SolanaRPCError, TransactionNotConfirmedError

RPC_URL = "https://api.devnet.solana.com"


def _make_client() -> SolanaRPCClient:
    return SolanaRPCClient(RPC_URL, retry_base_delay=0.0)


def _mock_rpc(monkeypatch, *responses):
    """Patch ``httpx.AsyncClient.post`` to return *responses* in order.

    Each item is either a ``(status, body)`` tuple or an exception to raise.
    Returns the list of captured JSON-RPC payloads.
    """
    queue = list(responses)
    payloads: list[dict] = []

    async def _mock_post(self, url, *, json=None, headers=None, timeout=None):
        payloads.append(json)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        status, body = item
        return httpx.Response(status, json=body, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
    return payloads


def _ok(result) -> tuple:
    return 200, {"jsonrpc": "2.0", "id": 1, "result": result}


# ── Calls ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_payload_shape(monkeypatch):
    payloads = _mock_rpc(monkeypatch, _ok({"context": {"slot": 1}, "value": None}))
    await _make_client().get_account_info("Addr111")

    p = payloads[0]
    assert p["jsonrpc"] == "2.0"
    assert p["method"] == "getAccountInfo"
    assert p["params"] == ["Addr111", {"encoding": "base64", "commitment": "confirmed"}]


@pytest.mark.asyncio
async def test_account_info_missing_returns_none(monkeypatch):
    _mock_rpc(monkeypatch, _ok({"context": {"slot": 1}, "value": None}))
    assert await _make_client().get_account_info("Addr111") is None


@pytest.mark.asyncio
async def test_account_info_value(monkeypatch):
    value = {"lamports": 10, "data": ["", "base64"], "owner": "x", "executable": True}
    _mock_rpc(monkeypatch, _ok({"context": {"slot": 1}, "value": value}))
    assert await _make_client().get_account_info("Addr111") == value


@pytest.mark.asyncio
async def test_get_balance(monkeypatch):
    _mock_rpc(monkeypatch, _ok({"context": {"slot": 1}, "value": 5_000_000_000}))
    assert await _make_client().get_balance("Addr111") == 5_000_000_000


@pytest.mark.asyncio
async def test_signatures_limit(monkeypatch):
    payloads = _mock_rpc(monkeypatch, _ok([{"signature": "a"}, {"signature": "b"}]))
    sigs = await _make_client().get_signatures_for_address("Mint111", limit=1000)
    assert len(sigs) == 2
    assert payloads[0]["params"][1]["limit"] == 1000


@pytest.mark.asyncio
async def test_latest_blockhash(monkeypatch):
    _mock_rpc(monkeypatch, _ok({"context": {"slot": 1}, "value": {"blockhash": "Hash111", "lastValidBlockHeight": 9}}))
    assert await _make_client().get_latest_blockhash() == "Hash111"


@pytest.mark.asyncio
async def test_send_transaction(monkeypatch):
    payloads = _mock_rpc(monkeypatch, _ok("Sig111"))
    sig = await _make_client().send_transaction("AQID")
    assert sig == "Sig111"
    assert payloads[0]["params"][0] == "AQID"
    assert payloads[0]["params"][1]["encoding"] == "base64"


@pytest.mark.asyncio
async def test_rpc_error_raises(monkeypatch):
    _mock_rpc(monkeypatch, (200, {
        "jsonrpc": "2.0", "id": 1,
        "error": {"code": -32002, "message": "Transaction simulation failed", "data": {"logs": []}},
    }))
    with pytest.raises(SolanaRPCError, match="simulation failed") as exc_info:
        await _make_client().send_transaction("AQID")
    assert exc_info.value.code == -32002


# ── Retry ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_retries_on_503_then_succeeds(monkeypatch):
    payloads = _mock_rpc(monkeypatch, (503, {}), (429, {}), _ok("Sig111"))
    assert await _make_client().send_transaction("AQID") == "Sig111"
    assert len(payloads) == 3


@pytest.mark.asyncio
async def test_retries_transport_error(monkeypatch):
    payloads = _mock_rpc(
        monkeypatch,
        httpx.ConnectError("connection refused"),
        _ok({"context": {"slot": 1}, "value": None}),
    )
    assert await _make_client().get_account_info("Addr111") is None
    assert len(payloads) == 2


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(monkeypatch):
    _mock_rpc(monkeypatch, (502, {}), (502, {}), (502, {}))
    with pytest.raises(httpx.HTTPStatusError):
        await _make_client().get_latest_blockhash()


@pytest.mark.asyncio
async def test_client_error_not_retried(monkeypatch):
    payloads = _mock_rpc(monkeypatch, (400, {}))
    with pytest.raises(httpx.HTTPStatusError):
        await _make_client().get_latest_blockhash()
    assert len(payloads) == 1


# ── Confirmation ─────────────────────────────────────────────────────────


def _status(confirmation=None, err=None) -> tuple:
    value = None if confirmation is None and err is None else {
        "slot": 1, "confirmations": None, "err": err, "confirmationStatus": confirmation,
    }
    return _ok({"context": {"slot": 1}, "value": [value]})


@pytest.mark.asyncio
async def test_confirm_polls_until_confirmed(monkeypatch):
    payloads = _mock_rpc(monkeypatch, _status(), _status("processed"), _status("confirmed"))
    status = await _make_client().confirm_transaction("Sig111", poll_interval=0)
    assert status["confirmationStatus"] == "confirmed"
    assert len(payloads) == 3


@pytest.mark.asyncio
async def test_confirm_raises_on_failed_transaction(monkeypatch):
    _mock_rpc(monkeypatch, _status("confirmed", err={"InstructionError": [0, "Custom"]}))
    with pytest.raises(TransactionNotConfirmedError, match="failed"):
        await _make_client().confirm_transaction("Sig111", poll_interval=0)


@pytest.mark.asyncio
async def test_confirm_times_out(monkeypatch):
    _mock_rpc(monkeypatch, _status(), _status())
    with pytest.raises(TransactionNotConfirmedError, match="not confirmed"):
        await _make_client().confirm_transaction("Sig111", max_attempts=2, poll_interval=0)
