from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from .stage import BlockInfo

log = logging.getLogger(__name__)


class RpcClient:
    """Solana JSON-RPC reader used as the height/time oracle."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    def get_slot(self, commitment: str = "finalized") -> int:
        """Returns the current slot."""
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getSlot",
            "params": [{"commitment": commitment}],
        }
        data = self._post(payload)
        return int(data["result"])

    def get_block_time(self, slot: int) -> int:
        """Returns the Unix timestamp for a given slot."""
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getBlockTime",
            "params": [slot],
        }
        data = self._post(payload)
        if data.get("result") is None:
            raise RuntimeError(f"Timestamp not available for slot {slot}")
        return int(data["result"])

    def current_block(self, commitment: str = "finalized") -> BlockInfo:
        slot = self.get_slot(commitment=commitment)
        return BlockInfo(height=slot, time=self.get_block_time(slot))

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        log.debug("RPC %s %s", payload["method"], payload["params"])
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data


def load_block_from_file(path: str) -> BlockInfo:
    """
    Supports:
    1) {"height": 123, "time": 1700000000}
    2) {"slot": 123, "blockTime": 1700000000}
    3) {"result": {...either of the above...}}
    """
    raw = open(path, "r", encoding="utf-8").read().strip()
    try:
        j = json.loads(raw)
    except ValueError as e:
        raise RuntimeError(f"Block file is not valid JSON: {e}")

    if isinstance(j, dict) and isinstance(j.get("result"), dict):
        j = j["result"]

    if isinstance(j, dict):
        height = j.get("height", j.get("slot"))
        time_s = j.get("time", j.get("blockTime"))
        if height is not None and time_s is not None:
            return BlockInfo(height=int(height), time=int(time_s))

    raise RuntimeError(
        "Could not find a block in block file. "
        "Expected JSON with height/time or slot/blockTime."
    )
