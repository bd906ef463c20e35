from __future__ import annotations

from typing import Callable, List, Tuple

import pytest

from bin_lottery import contract
from bin_lottery.addresses import address_from_bytes
from bin_lottery.amounts import Coin
from bin_lottery.merkle import MerkleTree, build_tree
from bin_lottery.stage import BlockInfo, Duration, Scheduled, Stage
from bin_lottery.storage import MemoryStore

DENOM = "lamports"
TICKET = 100
BINS = 10
BLOCK_TIME = 1_700_000_000

BID_START = 200_000
AIRDROP_START = 201_000
PRIZE_START = 202_000
STAGE_LEN = 100


def addr(n: int) -> str:
    return address_from_bytes(bytes([n]) * 32)


OWNER = addr(1)
TOKEN = addr(2)
ALICE = addr(10)
BOB = addr(11)
CAROL = addr(12)
DAVE = addr(13)


def at(height: int) -> BlockInfo:
    return BlockInfo(height=height, time=BLOCK_TIME)


BEFORE = at(BID_START - 1)
BIDDING = at(BID_START + 1)
AIRDROP = at(AIRDROP_START + 1)
PRIZE = at(PRIZE_START + 1)
AFTER_AIRDROP = at(AIRDROP_START + STAGE_LEN)
AFTER_PRIZE = at(PRIZE_START + STAGE_LEN)


def ticket(amount: int = TICKET) -> List[Coin]:
    return [Coin(DENOM, amount)]


def height_stage(start: int, length: int = STAGE_LEN) -> Stage:
    return Stage(start=Scheduled.at_height(start), duration=Duration.height(length))


def instantiate_msg(**overrides) -> contract.InstantiateMsg:
    fields = dict(
        owner=OWNER,
        token_address=TOKEN,
        ticket_price=Coin(DENOM, TICKET),
        bins=BINS,
        stage_bid=height_stage(BID_START),
        stage_claim_airdrop=height_stage(AIRDROP_START),
        stage_claim_prize=height_stage(PRIZE_START),
    )
    fields.update(overrides)
    return contract.InstantiateMsg(**fields)


@pytest.fixture
def store() -> MemoryStore:
    s = MemoryStore()
    contract.instantiate(s, BEFORE, OWNER, instantiate_msg())
    return s


@pytest.fixture
def airdrop_tree() -> MerkleTree:
    return build_tree([(ALICE, 1_000), (BOB, 2_500), (CAROL, 5_000)])


@pytest.fixture
def game_tree() -> MerkleTree:
    return build_tree([(ALICE, 50), (CAROL, 50)])


@pytest.fixture
def registered(
    store: MemoryStore, airdrop_tree: MerkleTree, game_tree: MerkleTree
) -> MemoryStore:
    contract.register_merkle_roots(
        store,
        BEFORE,
        OWNER,
        airdrop_tree.root_hex,
        airdrop_tree.total,
        game_tree.root_hex,
        game_tree.total,
    )
    return store


@pytest.fixture
def make_bids(store: MemoryStore) -> Callable[[List[Tuple[str, int]]], None]:
    def _bid(bids: List[Tuple[str, int]]) -> None:
        for who, bin in bids:
            contract.place_bid(store, BIDDING, who, bin, ticket())

    return _bid
