from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .amounts import Coin
from .errors import NotInstantiated
from .stage import Stage
from .storage import KeyValueStore

T = TypeVar("T")


def _opt_int(v: Any) -> Optional[int]:
    return None if v is None else int(v)


def _opt_str(v: Optional[int]) -> Optional[str]:
    return None if v is None else str(v)


@dataclass(frozen=True)
class Config:
    # None means the contract is frozen: no owner-gated operation can run.
    owner: Optional[str]
    token_address: str
    ticket_price: Coin
    bins: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "token_address": self.token_address,
            "ticket_price": self.ticket_price.to_dict(),
            "bins": self.bins,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Config":
        return Config(
            owner=d.get("owner"),
            token_address=d["token_address"],
            ticket_price=Coin.from_dict(d["ticket_price"]),
            bins=int(d["bins"]),
        )


@dataclass(frozen=True)
class Bid:
    bin: int
    amount_paid: int

    def to_dict(self) -> Dict[str, Any]:
        return {"bin": self.bin, "amount_paid": str(self.amount_paid)}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Bid":
        return Bid(bin=int(d["bin"]), amount_paid=int(d["amount_paid"]))


@dataclass(frozen=True)
class RootEntry:
    merkle_root: str  # lowercase hex, no 0x
    total_amount: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"merkle_root": self.merkle_root, "total_amount": _opt_str(self.total_amount)}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "RootEntry":
        return RootEntry(merkle_root=d["merkle_root"], total_amount=_opt_int(d.get("total_amount")))


@dataclass(frozen=True)
class PoolTotals:
    total_tickets_collected: int = 0
    total_airdrop_claimed: int = 0
    total_prize_claimed: int = 0
    # None until withdrawn; then the amount that left the pool.
    airdrop_withdrawn: Optional[int] = None
    prize_withdrawn: Optional[int] = None
    # Addresses whose game proof was checked during the airdrop claim.
    winners: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tickets_collected": str(self.total_tickets_collected),
            "total_airdrop_claimed": str(self.total_airdrop_claimed),
            "total_prize_claimed": str(self.total_prize_claimed),
            "airdrop_withdrawn": _opt_str(self.airdrop_withdrawn),
            "prize_withdrawn": _opt_str(self.prize_withdrawn),
            "winners": self.winners,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "PoolTotals":
        return PoolTotals(
            total_tickets_collected=int(d["total_tickets_collected"]),
            total_airdrop_claimed=int(d["total_airdrop_claimed"]),
            total_prize_claimed=int(d["total_prize_claimed"]),
            airdrop_withdrawn=_opt_int(d.get("airdrop_withdrawn")),
            prize_withdrawn=_opt_int(d.get("prize_withdrawn")),
            winners=int(d.get("winners", 0)),
        )


@dataclass(frozen=True)
class ContractVersion:
    contract: str
    version: str

    def to_dict(self) -> Dict[str, Any]:
        return {"contract": self.contract, "version": self.version}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ContractVersion":
        return ContractVersion(contract=d["contract"], version=d["version"])


class Item(Generic[T]):
    """A single typed value under a fixed key."""

    def __init__(
        self,
        key: str,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        self.key = key
        self.encode = encode
        self.decode = decode

    def may_load(self, store: KeyValueStore) -> Optional[T]:
        raw = store.get(self.key)
        return None if raw is None else self.decode(raw)

    def load(self, store: KeyValueStore) -> T:
        value = self.may_load(store)
        if value is None:
            raise NotInstantiated(f"Missing state item: {self.key}")
        return value

    def save(self, store: KeyValueStore, value: T) -> None:
        store.set(self.key, self.encode(value))

    def remove(self, store: KeyValueStore) -> None:
        store.delete(self.key)


class Map(Generic[T]):
    """Typed values keyed by address under a namespace prefix."""

    def __init__(
        self,
        namespace: str,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        self.namespace = namespace
        self.encode = encode
        self.decode = decode

    def _key(self, address: str) -> str:
        return f"{self.namespace}:{address}"

    def has(self, store: KeyValueStore, address: str) -> bool:
        return store.has(self._key(address))

    def may_load(self, store: KeyValueStore, address: str) -> Optional[T]:
        raw = store.get(self._key(address))
        return None if raw is None else self.decode(raw)

    def save(self, store: KeyValueStore, address: str, value: T) -> None:
        store.set(self._key(address), self.encode(value))

    def remove(self, store: KeyValueStore, address: str) -> None:
        store.delete(self._key(address))


def _identity(v: Any) -> Any:
    return v


CONTRACT_INFO: Item[ContractVersion] = Item("contract_info", ContractVersion.to_dict, ContractVersion.from_dict)
CONFIG: Item[Config] = Item("config", Config.to_dict, Config.from_dict)

STAGE_BID: Item[Stage] = Item("stage_bid", Stage.to_dict, Stage.from_dict)
STAGE_CLAIM_AIRDROP: Item[Stage] = Item("stage_claim_airdrop", Stage.to_dict, Stage.from_dict)
STAGE_CLAIM_PRIZE: Item[Stage] = Item("stage_claim_prize", Stage.to_dict, Stage.from_dict)

ROOT_AIRDROP: Item[RootEntry] = Item("merkle_root_airdrop", RootEntry.to_dict, RootEntry.from_dict)
ROOT_GAME: Item[RootEntry] = Item("merkle_root_game", RootEntry.to_dict, RootEntry.from_dict)

POOL: Item[PoolTotals] = Item("pool_totals", PoolTotals.to_dict, PoolTotals.from_dict)

BIDS: Map[Bid] = Map("bids", Bid.to_dict, Bid.from_dict)
CLAIM_AIRDROP: Map[bool] = Map("claim_airdrop", _identity, bool)
CLAIM_PRIZE: Map[bool] = Map("claim_prize", _identity, bool)
# Verified game amount per address, recorded on the airdrop claim.
GAME_ELIGIBLE: Map[int] = Map("game_eligible", str, int)
