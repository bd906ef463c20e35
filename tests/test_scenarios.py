"""End-to-end games driven through the public operations."""

import pytest

from bin_lottery import contract
from bin_lottery.amounts import Coin
from bin_lottery.errors import AlreadyClaimed, NoBidFound
from bin_lottery.merkle import build_tree
from bin_lottery.stage import BlockInfo, Duration, Scheduled, Stage
from bin_lottery.storage import MemoryStore

from conftest import (
    AFTER_AIRDROP,
    AFTER_PRIZE,
    AIRDROP,
    ALICE,
    BEFORE,
    BIDDING,
    BOB,
    CAROL,
    DENOM,
    OWNER,
    PRIZE,
    TOKEN,
    addr,
    instantiate_msg,
    ticket,
)


def test_bid_change_then_win_prize(store):
    contract.place_bid(store, BIDDING, ALICE, 3, ticket())
    assert contract.query_pool_totals(store).total_tickets_collected == 100

    contract.change_bid(store, BIDDING, ALICE, 7)
    assert contract.query_pool_totals(store).total_tickets_collected == 100
    assert contract.query_bid(store, ALICE).bin == 7

    # Off-chain: true bin for ALICE turned out to be 7, her share is 50.
    game = build_tree([(ALICE, 50), (addr(50), 25)])
    airdrop = build_tree([(ALICE, 10)])
    contract.register_merkle_roots(
        store, BIDDING, OWNER, airdrop.root_hex, airdrop.total, game.root_hex, None
    )

    res = contract.claim_prize(store, PRIZE, ALICE, 50, game.proof(ALICE, 50))
    assert res.messages == [contract.BankTransfer(ALICE, Coin(DENOM, 50))]
    assert contract.query_pool_totals(store).total_prize_claimed == 50

    with pytest.raises(AlreadyClaimed):
        contract.claim_prize(store, PRIZE, ALICE, 50, game.proof(ALICE, 50))


def test_bid_then_remove(store):
    contract.place_bid(store, BIDDING, BOB, 2, ticket())
    contract.remove_bid(store, BIDDING, BOB)

    assert contract.query_pool_totals(store).total_tickets_collected == 0
    assert contract.query_bid(store, BOB) is None
    with pytest.raises(NoBidFound):
        contract.change_bid(store, BIDDING, BOB, 5)


def test_full_round_conserves_funds(store):
    players = [ALICE, BOB, CAROL]
    for i, who in enumerate(players):
        contract.place_bid(store, BIDDING, who, i, ticket())

    airdrop = build_tree([(ALICE, 300), (BOB, 200), (CAROL, 100)])
    game = build_tree([(ALICE, 150), (CAROL, 150)])
    contract.register_merkle_roots(
        store, BEFORE, OWNER, airdrop.root_hex, airdrop.total, game.root_hex, game.total
    )

    paid_tokens = 0
    for who in (ALICE, BOB):
        amount = dict(airdrop.leaves)[who]
        game_amount = dict(game.leaves).get(who)
        res = contract.claim_airdrop(
            store, AIRDROP, who, amount, airdrop.proof(who, amount),
            proof_game=game.proof(who, game_amount) if game_amount else None,
            game_amount=game_amount,
        )
        paid_tokens += sum(m.amount for m in res.messages)
    assert contract.query_pool_totals(store).winners == 1

    res = contract.withdraw_unclaimed_airdrop(store, AFTER_AIRDROP, OWNER, OWNER)
    paid_tokens += res.messages[0].amount
    assert paid_tokens == airdrop.total

    paid_native = 0
    res = contract.claim_prize(store, PRIZE, ALICE, 150, game.proof(ALICE, 150))
    paid_native += res.messages[0].amount.amount
    res = contract.withdraw_unclaimed_prize(store, AFTER_PRIZE, OWNER, OWNER)
    paid_native += res.messages[0].amount.amount
    assert paid_native == 3 * 100

    pool = contract.query_pool_totals(store)
    assert pool.total_airdrop_claimed == 500
    assert pool.airdrop_withdrawn == 100
    assert pool.total_prize_claimed == 150
    assert pool.prize_withdrawn == 150


def test_time_scheduled_round():
    t0 = 1_700_000_000
    s = MemoryStore()
    msg = instantiate_msg(
        stage_bid=Stage(Scheduled.at_time(t0), Duration.time(3600)),
        stage_claim_airdrop=Stage(Scheduled.at_time(t0 + 7200), Duration.time(3600)),
        stage_claim_prize=Stage(Scheduled.at_time(t0 + 14400), Duration.time(3600)),
    )
    contract.instantiate(s, BlockInfo(height=1, time=t0 - 1), OWNER, msg)

    contract.place_bid(s, BlockInfo(height=2, time=t0), ALICE, 1, ticket())
    game = build_tree([(ALICE, 100)])
    contract.register_merkle_roots(s, BlockInfo(3, t0 + 3600), OWNER, game.root_hex, None, game.root_hex, None)
    res = contract.claim_prize(s, BlockInfo(4, t0 + 14400), ALICE, 100, game.proof(ALICE, 100))
    assert res.messages == [contract.BankTransfer(ALICE, Coin(DENOM, 100))]
    assert contract.query_config(s).token_address == TOKEN
