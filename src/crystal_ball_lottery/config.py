from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .holders import parse_blacklist
from .project_constants import (
    CHAIN_ID,
    ROUND_INTERVAL_SECONDS,
    STATE_PATH,
    TOKEN_CONTRACT,
)


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    sender_address: str
    private_key: str = field(repr=False)
    covalent_api_key: str = field(repr=False)
    token_contract: str = TOKEN_CONTRACT
    chain_id: int = CHAIN_ID
    blacklist: FrozenSet[str] = frozenset()
    state_path: str = STATE_PATH
    round_interval_s: float = ROUND_INTERVAL_SECONDS
    bot_token: Optional[str] = field(default=None, repr=False)
    announcement_chat_id: Optional[str] = None

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        require_signer: bool = True,
    ) -> "Settings":
        """
        Read settings from the environment (and .env).

        With require_signer=False the private key and Covalent key may be absent;
        read-only commands only need the RPC endpoint and the custodial address.
        """
        load_dotenv()

        # --rpc-url wins, then RPC_URL, then the legacy INFURA_URL name.
        rpc_url = rpc_url_override or _env("RPC_URL") or _env("INFURA_URL")
        if not rpc_url:
            raise ConfigError("Missing RPC_URL (or INFURA_URL). Put it in .env or export it.")

        sender = _env("SENDER_ADDRESS")
        if not sender:
            raise ConfigError("Missing SENDER_ADDRESS (custodial wallet address).")

        private_key = _env("PRIVATE_KEY")
        covalent_key = _env("COVALENT_API_KEY")
        if require_signer:
            if not private_key:
                raise ConfigError("Missing PRIVATE_KEY for the custodial wallet.")
            if not covalent_key:
                raise ConfigError("Missing COVALENT_API_KEY for holder snapshots.")

        try:
            chain_id = int(_env("CHAIN_ID") or CHAIN_ID)
            interval = float(_env("ROUND_INTERVAL_SECONDS") or ROUND_INTERVAL_SECONDS)
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e
        if interval <= 0:
            raise ConfigError("ROUND_INTERVAL_SECONDS must be positive.")

        return Settings(
            rpc_url=rpc_url,
            sender_address=sender,
            private_key=private_key,
            covalent_api_key=covalent_key,
            token_contract=_env("TOKEN_CONTRACT") or TOKEN_CONTRACT,
            chain_id=chain_id,
            blacklist=parse_blacklist(_env("BLACKLISTED_ADDRESSES")),
            state_path=_env("STATE_PATH") or STATE_PATH,
            round_interval_s=interval,
            bot_token=_env("BOT_TOKEN") or None,
            announcement_chat_id=_env("ANNOUNCEMENT_CHAT_ID") or None,
        )
