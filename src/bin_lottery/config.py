from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

DEFAULT_STATE_FILE = "lottery_state.json"


@dataclass(frozen=True)
class Settings:
    state_file: str
    sender: str | None = None
    rpc_url: str | None = None

    @staticmethod
    def from_env(
        state_file_override: str | None = None,
        sender_override: str | None = None,
        rpc_url_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        state_file = state_file_override or os.getenv("LOTTERY_STATE_FILE", "").strip()
        sender = sender_override or os.getenv("LOTTERY_SENDER", "").strip() or None

        # If user provides --rpc-url, trust it.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip()
        if not rpc_url:
            # Otherwise build a helius url from key, if there is one.
            helius_key = os.getenv("HELIUS_API_KEY", "").strip()
            if helius_key:
                rpc_url = f"https://mainnet.helius-rpc.com/?api-key={helius_key}"

        return Settings(
            state_file=state_file or DEFAULT_STATE_FILE,
            sender=sender,
            rpc_url=rpc_url or None,
        )

    def require_sender(self) -> str:
        if not self.sender:
            raise RuntimeError("Missing sender. Pass --sender or set LOTTERY_SENDER.")
        return self.sender

    def require_rpc_url(self) -> str:
        if not self.rpc_url:
            raise RuntimeError(
                "Missing RPC_URL (or HELIUS_API_KEY). Pass --height/--time, "
                "put it in .env or export it."
            )
        return self.rpc_url
