"""
Staged bin-lottery engine.

Three stages gate everything:
  bid            -> place / change / remove a bin guess (ticket paid in the native denom)
  claim airdrop  -> prove (address, amount) against the airdrop root, receive tokens
  claim prize    -> prove (address, share) against the game root, receive ticket money

Every operation runs inside storage.transaction(): it either commits all of
its writes or none. Operations never move funds themselves; they return
transfer instructions in Response.messages for the host ledger to execute.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar, Union

from . import merkle
from .addresses import validate_address
from .amounts import Coin, check_uint128, checked_add, checked_sub
from .errors import (
    AlreadyBid,
    AlreadyClaimed,
    BidStartPassed,
    CannotMigrate,
    InsufficientFunds,
    InvalidBin,
    InvalidConfig,
    InvalidProof,
    InvalidRoot,
    LotteryError,
    NoBidFound,
    NothingToWithdraw,
    RootsNotRegistered,
    StageNotActive,
    StageNotEnded,
    Unauthorized,
    WrongPayment,
)
from .project_constants import CONTRACT_NAME, CONTRACT_VERSION
from .stage import BlockInfo, Stage, has_ended, has_started
from .state import (
    BIDS,
    CLAIM_AIRDROP,
    CLAIM_PRIZE,
    CONFIG,
    CONTRACT_INFO,
    GAME_ELIGIBLE,
    POOL,
    ROOT_AIRDROP,
    ROOT_GAME,
    STAGE_BID,
    STAGE_CLAIM_AIRDROP,
    STAGE_CLAIM_PRIZE,
    Bid,
    Config,
    ContractVersion,
    PoolTotals,
    RootEntry,
)
from .storage import KeyValueStore, transaction

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

STAGE_NAME_BID = "bid"
STAGE_NAME_CLAIM_AIRDROP = "claim airdrop"
STAGE_NAME_CLAIM_PRIZE = "claim prize"


# ======================================================================================
# Messages and responses
# ======================================================================================


@dataclass(frozen=True)
class BankTransfer:
    """Native-denom payment (ticket refunds, prizes, prize-pool withdrawal)."""

    to_address: str
    amount: Coin


@dataclass(frozen=True)
class TokenTransfer:
    """Transfer on the external token ledger (airdrop payouts and withdrawal)."""

    token_address: str
    recipient: str
    amount: int


Transfer = Union[BankTransfer, TokenTransfer]


@dataclass
class Response:
    messages: List[Transfer] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def add_message(self, msg: Transfer) -> "Response":
        self.messages.append(msg)
        return self

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append((key, str(value)))
        return self

    def attribute(self, key: str) -> Optional[str]:
        for k, v in self.attributes:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class InstantiateMsg:
    token_address: str
    ticket_price: Coin
    bins: int
    stage_bid: Stage
    stage_claim_airdrop: Stage
    stage_claim_prize: Stage
    # Defaults to the instantiating sender.
    owner: Optional[str] = None


@dataclass(frozen=True)
class StagesResponse:
    stage_bid: Stage
    stage_claim_airdrop: Stage
    stage_claim_prize: Stage


@dataclass(frozen=True)
class MerkleRootsResponse:
    airdrop: Optional[RootEntry]
    game: Optional[RootEntry]


@dataclass(frozen=True)
class ClaimStatusResponse:
    airdrop_claimed: bool
    prize_claimed: bool
    game_eligible_amount: Optional[int]


# ======================================================================================
# Helpers
# ======================================================================================


def atomic(fn: F) -> F:
    """Run fn(store, ...) against a transaction overlay of `store`."""

    @functools.wraps(fn)
    def wrapper(store: KeyValueStore, *args: Any, **kwargs: Any) -> Any:
        try:
            with transaction(store) as tx:
                return fn(tx, *args, **kwargs)
        except LotteryError as e:
            log.debug("%s rejected: %s", fn.__name__, e)
            raise

    return wrapper  # type: ignore[return-value]


def require_active(stage: Stage, now: BlockInfo, stage_name: str) -> None:
    if not has_started(stage, now):
        raise StageNotActive(stage_name, "has not started")
    if has_ended(stage, now):
        raise StageNotActive(stage_name, "has ended")


def require_ended(stage: Stage, now: BlockInfo, stage_name: str) -> None:
    if not has_ended(stage, now):
        raise StageNotEnded(stage_name)


def require_owner(cfg: Config, sender: str) -> None:
    if cfg.owner is None or sender != cfg.owner:
        raise Unauthorized()


def normalize_root(merkle_root: str) -> str:
    raw = merkle.decode_hash(merkle_root)
    if raw is None:
        raise InvalidRoot(merkle_root)
    return raw.hex()


def _check_bin(bin: int, bins: int) -> None:
    if isinstance(bin, bool) or not isinstance(bin, int) or bin < 0 or bin >= bins:
        raise InvalidBin(bins)


def _optional_total(total: Optional[int]) -> Optional[int]:
    return None if total is None else check_uint128(total)


# ======================================================================================
# Instantiate / migrate / config
# ======================================================================================


@atomic
def instantiate(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    msg: InstantiateMsg,
) -> Response:
    owner = validate_address(msg.owner) if msg.owner is not None else sender
    token_address = validate_address(msg.token_address)

    if isinstance(msg.bins, bool) or not isinstance(msg.bins, int) or msg.bins <= 0:
        raise InvalidConfig(f"bins must be a positive integer, got {msg.bins!r}")
    if not msg.ticket_price.denom:
        raise InvalidConfig("ticket price denom must not be empty")
    if check_uint128(msg.ticket_price.amount) == 0:
        raise InvalidConfig("ticket price amount must be positive")

    for stage in (msg.stage_bid, msg.stage_claim_airdrop, msg.stage_claim_prize):
        stage.validate()

    # Bid stage has to start after instantiation.
    if has_started(msg.stage_bid, now):
        raise BidStartPassed()

    CONTRACT_INFO.save(store, ContractVersion(CONTRACT_NAME, CONTRACT_VERSION))
    CONFIG.save(
        store,
        Config(
            owner=owner,
            token_address=token_address,
            ticket_price=msg.ticket_price,
            bins=msg.bins,
        ),
    )
    STAGE_BID.save(store, msg.stage_bid)
    STAGE_CLAIM_AIRDROP.save(store, msg.stage_claim_airdrop)
    STAGE_CLAIM_PRIZE.save(store, msg.stage_claim_prize)
    POOL.save(store, PoolTotals())

    log.info("Instantiated: owner=%s bins=%d ticket=%s%s", owner, msg.bins,
             msg.ticket_price.amount, msg.ticket_price.denom)
    return (
        Response()
        .add_attribute("action", "instantiate")
        .add_attribute("owner", owner)
        .add_attribute("bins", msg.bins)
    )


@atomic
def migrate(store: KeyValueStore) -> Response:
    info = CONTRACT_INFO.load(store)
    if info.contract != CONTRACT_NAME:
        raise CannotMigrate(info.contract)
    CONTRACT_INFO.save(store, ContractVersion(CONTRACT_NAME, CONTRACT_VERSION))
    return (
        Response()
        .add_attribute("action", "migrate")
        .add_attribute("from_version", info.version)
        .add_attribute("to_version", CONTRACT_VERSION)
    )


@atomic
def update_config(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    new_owner: Optional[str],
) -> Response:
    cfg = CONFIG.load(store)
    require_owner(cfg, sender)

    # No new owner freezes the contract: claims still work, owner actions don't.
    owner = validate_address(new_owner) if new_owner is not None else None
    CONFIG.save(store, replace(cfg, owner=owner))

    log.info("Owner changed: %s -> %s", cfg.owner, owner)
    return (
        Response()
        .add_attribute("action", "update_config")
        .add_attribute("owner", owner if owner is not None else "none")
    )


# ======================================================================================
# Bidding
# ======================================================================================


@atomic
def place_bid(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    bin: int,
    funds: Sequence[Coin],
) -> Response:
    require_active(STAGE_BID.load(store), now, STAGE_NAME_BID)

    cfg = CONFIG.load(store)
    _check_bin(bin, cfg.bins)

    if BIDS.has(store, sender):
        raise AlreadyBid()

    price = cfg.ticket_price
    for c in funds:
        if c.denom != price.denom:
            raise WrongPayment(f"Only {price.denom} is accepted for tickets")
        if isinstance(c.amount, bool) or not isinstance(c.amount, int) or c.amount < 0:
            raise WrongPayment(f"Invalid coin amount: {c.amount!r}")
    paid = 0
    for c in funds:
        paid = checked_add(paid, c.amount)
    if paid != price.amount:
        raise WrongPayment(f"Ticket costs {price.amount}{price.denom}, got {paid}{price.denom}")

    BIDS.save(store, sender, Bid(bin=bin, amount_paid=paid))

    pool = POOL.load(store)
    POOL.save(store, replace(
        pool, total_tickets_collected=checked_add(pool.total_tickets_collected, paid),
    ))

    log.info("Bid placed: player=%s bin=%d", sender, bin)
    return (
        Response()
        .add_attribute("action", "bid")
        .add_attribute("player", sender)
        .add_attribute("bin", bin)
    )


@atomic
def change_bid(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    bin: int,
) -> Response:
    require_active(STAGE_BID.load(store), now, STAGE_NAME_BID)

    existing = BIDS.may_load(store, sender)
    if existing is None:
        raise NoBidFound()

    cfg = CONFIG.load(store)
    _check_bin(bin, cfg.bins)

    BIDS.save(store, sender, replace(existing, bin=bin))

    log.info("Bid changed: player=%s bin=%d -> %d", sender, existing.bin, bin)
    return (
        Response()
        .add_attribute("action", "change_bid")
        .add_attribute("player", sender)
        .add_attribute("new_bin", bin)
    )


@atomic
def remove_bid(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
) -> Response:
    require_active(STAGE_BID.load(store), now, STAGE_NAME_BID)

    existing = BIDS.may_load(store, sender)
    if existing is None:
        raise NoBidFound()

    BIDS.remove(store, sender)

    pool = POOL.load(store)
    POOL.save(store, replace(
        pool,
        total_tickets_collected=checked_sub(pool.total_tickets_collected, existing.amount_paid),
    ))

    cfg = CONFIG.load(store)
    refund = Coin(denom=cfg.ticket_price.denom, amount=existing.amount_paid)

    log.info("Bid removed: player=%s refund=%d%s", sender, refund.amount, refund.denom)
    return (
        Response()
        .add_message(BankTransfer(to_address=sender, amount=refund))
        .add_attribute("action", "remove_bid")
        .add_attribute("player", sender)
        .add_attribute("ticket_price_payback", refund.amount)
    )


# ======================================================================================
# Merkle roots and claims
# ======================================================================================


@atomic
def register_merkle_roots(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    merkle_root_airdrop: str,
    total_amount_airdrop: Optional[int],
    merkle_root_game: str,
    total_amount_game: Optional[int],
) -> Response:
    cfg = CONFIG.load(store)
    require_owner(cfg, sender)

    airdrop = RootEntry(normalize_root(merkle_root_airdrop), _optional_total(total_amount_airdrop))
    game = RootEntry(normalize_root(merkle_root_game), _optional_total(total_amount_game))

    # Overwrites any earlier registration; proofs against the old roots stop verifying.
    ROOT_AIRDROP.save(store, airdrop)
    ROOT_GAME.save(store, game)

    log.info("Merkle roots registered: airdrop=%s game=%s", airdrop.merkle_root, game.merkle_root)
    return (
        Response()
        .add_attribute("action", "register_merkle_roots")
        .add_attribute("merkle_root_airdrop", airdrop.merkle_root)
        .add_attribute("total_amount_airdrop", airdrop.total_amount if airdrop.total_amount is not None else "none")
        .add_attribute("merkle_root_game", game.merkle_root)
        .add_attribute("total_amount_game", game.total_amount if game.total_amount is not None else "none")
    )


def _load_roots(store: KeyValueStore) -> Tuple[RootEntry, RootEntry]:
    airdrop = ROOT_AIRDROP.may_load(store)
    game = ROOT_GAME.may_load(store)
    if airdrop is None or game is None:
        raise RootsNotRegistered()
    return airdrop, game


@atomic
def claim_airdrop(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    amount: int,
    proof_airdrop: Sequence[str],
    proof_game: Optional[Sequence[str]] = None,
    game_amount: Optional[int] = None,
) -> Response:
    """
    Pay the sender's airdrop allocation.

    If the caller also supplies its game leaf (game_amount + proof_game), that
    leaf is checked against the game root and the sender is recorded as a
    verified winner. The two checks are independent: a bad game proof never
    blocks the airdrop, and the prize itself is only paid by claim_prize.
    """
    require_active(STAGE_CLAIM_AIRDROP.load(store), now, STAGE_NAME_CLAIM_AIRDROP)

    if CLAIM_AIRDROP.has(store, sender):
        raise AlreadyClaimed()

    root_airdrop, root_game = _load_roots(store)
    if not merkle.verify(root_airdrop.merkle_root, sender, amount, proof_airdrop):
        raise InvalidProof("airdrop")

    pool = POOL.load(store)
    claimed = checked_add(pool.total_airdrop_claimed, amount)
    if root_airdrop.total_amount is not None and claimed > root_airdrop.total_amount:
        raise InsufficientFunds(
            f"Airdrop claims would reach {claimed}, above the declared total {root_airdrop.total_amount}"
        )

    CLAIM_AIRDROP.save(store, sender, True)
    winners = pool.winners

    game_eligible: Optional[bool] = None
    if proof_game is not None and game_amount is not None:
        game_eligible = merkle.verify(root_game.merkle_root, sender, game_amount, proof_game)
        if game_eligible and not GAME_ELIGIBLE.has(store, sender):
            GAME_ELIGIBLE.save(store, sender, game_amount)
            winners += 1

    POOL.save(store, replace(pool, total_airdrop_claimed=claimed, winners=winners))

    cfg = CONFIG.load(store)
    res = Response()
    if amount > 0:
        res.add_message(TokenTransfer(cfg.token_address, sender, amount))
    res.add_attribute("action", "claim_airdrop")
    res.add_attribute("player", sender)
    res.add_attribute("airdrop_amount", amount)
    if game_eligible is not None:
        res.add_attribute("game_eligible", "true" if game_eligible else "false")

    log.info("Airdrop claimed: player=%s amount=%d game_eligible=%s", sender, amount, game_eligible)
    return res


@atomic
def claim_prize(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    amount: int,
    proof_game: Sequence[str],
) -> Response:
    """Pay the sender's prize share; the game leaf amount is the final per-winner share."""
    require_active(STAGE_CLAIM_PRIZE.load(store), now, STAGE_NAME_CLAIM_PRIZE)

    if CLAIM_PRIZE.has(store, sender):
        raise AlreadyClaimed()

    _, root_game = _load_roots(store)
    if not merkle.verify(root_game.merkle_root, sender, amount, proof_game):
        raise InvalidProof("game")

    pool = POOL.load(store)
    available = checked_sub(pool.total_tickets_collected, pool.total_prize_claimed)
    if amount > available:
        raise InsufficientFunds(f"Prize {amount} exceeds the unpaid ticket pool {available}")
    claimed = checked_add(pool.total_prize_claimed, amount)
    if root_game.total_amount is not None and claimed > root_game.total_amount:
        raise InsufficientFunds(
            f"Prize claims would reach {claimed}, above the declared total {root_game.total_amount}"
        )

    CLAIM_PRIZE.save(store, sender, True)
    POOL.save(store, replace(pool, total_prize_claimed=claimed))

    cfg = CONFIG.load(store)
    res = Response()
    if amount > 0:
        res.add_message(BankTransfer(sender, Coin(cfg.ticket_price.denom, amount)))
    res.add_attribute("action", "claim_prize")
    res.add_attribute("player", sender)
    res.add_attribute("prize_from_tickets", amount)

    log.info("Prize claimed: player=%s amount=%d", sender, amount)
    return res


# ======================================================================================
# Withdraw of unclaimed funds
# ======================================================================================


@atomic
def withdraw_unclaimed_airdrop(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    recipient: str,
) -> Response:
    cfg = CONFIG.load(store)
    require_owner(cfg, sender)
    recipient = validate_address(recipient)

    require_ended(STAGE_CLAIM_AIRDROP.load(store), now, STAGE_NAME_CLAIM_AIRDROP)

    pool = POOL.load(store)
    if pool.airdrop_withdrawn is not None:
        raise NothingToWithdraw("Unclaimed airdrop already withdrawn")

    root_airdrop = ROOT_AIRDROP.may_load(store)
    if root_airdrop is None or root_airdrop.total_amount is None:
        raise NothingToWithdraw("No airdrop total was declared")
    # A re-registration may have lowered the total below what was already paid.
    if root_airdrop.total_amount <= pool.total_airdrop_claimed:
        raise NothingToWithdraw()
    remaining = checked_sub(root_airdrop.total_amount, pool.total_airdrop_claimed)

    POOL.save(store, replace(pool, airdrop_withdrawn=remaining))

    log.info("Unclaimed airdrop withdrawn: recipient=%s amount=%d", recipient, remaining)
    return (
        Response()
        .add_message(TokenTransfer(cfg.token_address, recipient, remaining))
        .add_attribute("action", "withdraw_airdrop")
        .add_attribute("address", recipient)
        .add_attribute("amount", remaining)
    )


@atomic
def withdraw_unclaimed_prize(
    store: KeyValueStore,
    now: BlockInfo,
    sender: str,
    recipient: str,
) -> Response:
    cfg = CONFIG.load(store)
    require_owner(cfg, sender)
    recipient = validate_address(recipient)

    require_ended(STAGE_CLAIM_PRIZE.load(store), now, STAGE_NAME_CLAIM_PRIZE)

    pool = POOL.load(store)
    if pool.prize_withdrawn is not None:
        raise NothingToWithdraw("Unclaimed prize already withdrawn")

    remaining = checked_sub(pool.total_tickets_collected, pool.total_prize_claimed)
    if remaining == 0:
        raise NothingToWithdraw()

    POOL.save(store, replace(pool, prize_withdrawn=remaining))

    log.info("Unclaimed prize withdrawn: recipient=%s amount=%d", recipient, remaining)
    return (
        Response()
        .add_message(BankTransfer(recipient, Coin(cfg.ticket_price.denom, remaining)))
        .add_attribute("action", "withdraw_prize")
        .add_attribute("address", recipient)
        .add_attribute("amount", remaining)
    )


# ======================================================================================
# Queries
# ======================================================================================


def query_config(store: KeyValueStore) -> Config:
    return CONFIG.load(store)


def query_stages(store: KeyValueStore) -> StagesResponse:
    return StagesResponse(
        stage_bid=STAGE_BID.load(store),
        stage_claim_airdrop=STAGE_CLAIM_AIRDROP.load(store),
        stage_claim_prize=STAGE_CLAIM_PRIZE.load(store),
    )


def query_bid(store: KeyValueStore, address: str) -> Optional[Bid]:
    return BIDS.may_load(store, validate_address(address))


def query_merkle_roots(store: KeyValueStore) -> MerkleRootsResponse:
    return MerkleRootsResponse(
        airdrop=ROOT_AIRDROP.may_load(store),
        game=ROOT_GAME.may_load(store),
    )


def query_pool_totals(store: KeyValueStore) -> PoolTotals:
    return POOL.load(store)


def query_claimed(store: KeyValueStore, address: str) -> ClaimStatusResponse:
    address = validate_address(address)
    return ClaimStatusResponse(
        airdrop_claimed=CLAIM_AIRDROP.has(store, address),
        prize_claimed=CLAIM_PRIZE.has(store, address),
        game_eligible_amount=GAME_ELIGIBLE.may_load(store, address),
    )
