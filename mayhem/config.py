"""Mayhem Agent application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from mayhem.llm.providers import LLMSettings


_REQUIRED_VARS = [
    "RPC_URL",
    "MAYHEM_PROGRAM_ID",
]

# Provider tag → environment variable holding its credential.
_PROVIDER_KEY_VARS: dict[str, str] = {
    "openrouter": "OPENROUTER_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "eliza": "ELIZA_AGENT_ID",
}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    rpc_url: str
    network: str  # "mainnet" or "devnet"
    mayhem_program_id: str
    controller_program_id: Optional[str]
    wallet_private_key: Optional[str]
    token_mint: Optional[str]
    llm_provider: str
    llm_api_key: Optional[str]
    llm_model: Optional[str]
    llm_base_url: Optional[str]
    llm_system_prompt: Optional[str]
    marketing_api_url: Optional[str]
    trading_interval_seconds: float
    log_level: str
    health_port: int
    ws_url: Optional[str] = None  # derived from rpc_url when unset

    def llm_settings(self) -> LLMSettings:
        """Return the gateway settings for the configured provider."""
        return LLMSettings(
            provider=self.llm_provider,
            api_key=self.llm_api_key,
            model=self.llm_model,
            base_url=self.llm_base_url,
            system_prompt=self.llm_system_prompt,
        )


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    provider = os.environ.get("LLM_PROVIDER", "openrouter").strip().lower()
    key_var = _PROVIDER_KEY_VARS.get(provider)

    return Config(
        rpc_url=os.environ["RPC_URL"],
        network=os.environ.get("NETWORK", "devnet"),
        mayhem_program_id=os.environ["MAYHEM_PROGRAM_ID"],
        controller_program_id=os.environ.get("CONTROLLER_PROGRAM_ID") or None,
        wallet_private_key=os.environ.get("WALLET_PRIVATE_KEY") or None,
        token_mint=os.environ.get("TOKEN_MINT") or None,
        llm_provider=provider,
        llm_api_key=(os.environ.get(key_var) or None) if key_var else None,
        llm_model=os.environ.get("LLM_MODEL") or None,
        llm_base_url=os.environ.get("LLM_BASE_URL") or None,
        llm_system_prompt=os.environ.get("LLM_SYSTEM_PROMPT") or None,
        marketing_api_url=os.environ.get("MARKETING_API_URL") or None,
        trading_interval_seconds=float(
            os.environ.get("TRADING_INTERVAL_SECONDS", "30")
        ),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        health_port=int(os.environ.get("HEALTH_PORT", "8080")),
        ws_url=os.environ.get("WS_URL") or None,
    )
