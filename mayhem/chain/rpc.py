"""Solana JSON-RPC async client.

Handles account lookups, signature history, blockhash queries and
transaction submission / confirmation over HTTP.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger("mayhem.chain")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

DEFAULT_COMMITMENT = "confirmed"


class SolanaRPCError(RuntimeError):
    """Raised when the RPC node returns a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class TransactionNotConfirmedError(SolanaRPCError):
    """Raised when a signature does not reach the requested commitment."""


class SolanaRPCClient:
    """Async client wrapping the Solana JSON-RPC HTTP API.

    Args:
        rpc_url:          Cluster endpoint, e.g. ``https://api.devnet.solana.com``.
        commitment:       Commitment used for reads and confirmations.
        timeout:          Per-request timeout in seconds.
        retry_base_delay: First backoff delay; doubles on each attempt.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = DEFAULT_COMMITMENT,
        timeout: float = 30.0,
        retry_base_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._timeout = timeout
        self._retry_base_delay = retry_base_delay
        self._ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def commitment(self) -> str:
        return self._commitment

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _post_with_retry(self, payload: dict) -> httpx.Response:
        """POST a JSON-RPC payload with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504), rate-limits
        (429) and transport errors.  Other HTTP errors are raised at once.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(
                        self._rpc_url,
                        json=payload,
                        headers={"Content-Type": "application/json"},
                        timeout=self._timeout,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = self._retry_base_delay * (2 ** attempt)
                    logger.warning(
                        "RPC %s returned %d, retry %d/%d in %.1fs",
                        payload["method"], resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = self._retry_base_delay * (2 ** attempt)
                logger.warning(
                    "RPC %s transport error (%s), retry %d/%d in %.1fs",
                    payload["method"], exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        """Invoke a JSON-RPC *method* and return its ``result`` member."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        resp = await self._post_with_retry(payload)
        body = resp.json()
        if body.get("error"):
            err = body["error"]
            raise SolanaRPCError(
                f"{method} failed: {err.get('message', 'unknown error')}",
                code=err.get("code"),
                data=err.get("data"),
            )
        return body.get("result")

    # ── Accounts ─────────────────────────────────────────────────────────

    async def get_account_info(
        self,
        address: str,
        encoding: str = "base64",
    ) -> Optional[dict]:
        """Return the account ``value`` object, or ``None`` if it does not exist."""
        result = await self.call(
            "getAccountInfo",
            [address, {"encoding": encoding, "commitment": self._commitment}],
        )
        return (result or {}).get("value")

    async def get_balance(self, address: str) -> int:
        """Return the balance of *address* in lamports."""
        result = await self.call(
            "getBalance", [address, {"commitment": self._commitment}]
        )
        return int(result["value"])

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 1000,
    ) -> list[dict]:
        """Return recent transaction signatures touching *address*, newest first."""
        result = await self.call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self._commitment}],
        )
        return list(result or [])

    # ── Transactions ─────────────────────────────────────────────────────

    async def get_latest_blockhash(self) -> str:
        result = await self.call(
            "getLatestBlockhash", [{"commitment": self._commitment}]
        )
        return result["value"]["blockhash"]

    async def send_transaction(
        self,
        encoded_tx: str,
        skip_preflight: bool = False,
    ) -> str:
        """Submit a base64-encoded signed transaction and return its signature."""
        return await self.call(
            "sendTransaction",
            [
                encoded_tx,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": self._commitment,
                },
            ],
        )

    async def get_signature_statuses(self, signatures: list[str]) -> list[Optional[dict]]:
        result = await self.call(
            "getSignatureStatuses",
            [signatures, {"searchTransactionHistory": True}],
        )
        return list(result["value"])

    async def confirm_transaction(
        self,
        signature: str,
        max_attempts: int = 30,
        poll_interval: float = 1.0,
    ) -> dict:
        """Poll until *signature* reaches the client's commitment.

        Raises:
            TransactionNotConfirmedError: the transaction failed on chain or
                did not confirm within ``max_attempts`` polls.
        """
        wanted = ("confirmed", "finalized") if self._commitment != "finalized" else ("finalized",)
        for _ in range(max_attempts):
            statuses = await self.get_signature_statuses([signature])
            status = statuses[0] if statuses else None
            if status is not None:
                if status.get("err"):
                    raise TransactionNotConfirmedError(
                        f"Transaction {signature} failed: {status['err']}",
                        data=status["err"],
                    )
                if status.get("confirmationStatus") in wanted:
                    return status
            await asyncio.sleep(poll_interval)
        raise TransactionNotConfirmedError(
            f"Transaction {signature} not confirmed after {max_attempts} attempts"
        )
