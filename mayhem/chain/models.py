"""Chain facade data models."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class SDKSettings:
    """Where to find the cluster and the Mayhem programs."""

    rpc_url: str
    mayhem_program_id: str
    network: str = "devnet"  # "mainnet" or "devnet"
    controller_program_id: Optional[str] = None
    ws_url: Optional[str] = None  # defaults to rpc_url with a ws:// or wss:// scheme


@dataclass(frozen=True)
class TokenInfo:
    """Mint details.  ``name`` and ``symbol`` are placeholders until metadata is read."""

    mint: str
    name: str
    symbol: str
    decimals: int
    supply: float
    price: Optional[float] = None


@dataclass(frozen=True)
class TradeParams:
    """A buy or sell against the Mayhem program."""

    token_mint: str
    amount: float
    side: str  # "buy" or "sell"
    slippage: Optional[float] = None


@dataclass(frozen=True)
class BuybackParams:
    """Buy tokens with collected fees and burn a share of them."""

    token_mint: str
    sol_amount: float
    burn_percentage: float  # 0-100


@dataclass(frozen=True)
class AccountEvent:
    """Delivered to subscription callbacks when a watched account changes."""

    type: str  # "token_update"
    address: str
    data: Any
    slot: Optional[int] = None
