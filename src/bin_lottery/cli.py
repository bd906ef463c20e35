from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from . import contract
from .addresses import load_leaves_csv
from .amounts import coins_from_pairs
from .config import Settings
from .errors import LotteryError
from .merkle import build_tree
from .project_constants import DEFAULT_DENOM
from .rpc import RpcClient, load_block_from_file
from .stage import BlockInfo, Duration, Scheduled, Stage
from .storage import JsonFileStore
from .verify import verify_claims_file

log = logging.getLogger("bin_lottery")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


# --- helpers ---


def to_jsonable(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, contract.BankTransfer):
        return {"type": "bank", "to_address": obj.to_address, **obj.amount.to_dict()}
    if isinstance(obj, contract.TokenTransfer):
        return {
            "type": "token",
            "token_address": obj.token_address,
            "recipient": obj.recipient,
            "amount": str(obj.amount),
        }
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(x) for x in obj]
    return obj


def print_json(obj: Any) -> None:
    print(json.dumps(to_jsonable(obj), indent=2))


def print_response(res: contract.Response) -> None:
    print_json({"messages": res.messages, "attributes": dict(res.attributes)})


def parse_schedule(text: str) -> Tuple[str, int]:
    unit, sep, value = text.partition(":")
    if not sep or unit not in ("height", "time") or not value.strip().isdigit():
        raise argparse.ArgumentTypeError(
            f"expected height:<n> or time:<unix seconds>, got {text!r}"
        )
    return unit, int(value)


def make_stage(start: Tuple[str, int], duration: Tuple[str, int]) -> Stage:
    s_unit, s_val = start
    d_unit, d_val = duration
    sched = Scheduled.at_height(s_val) if s_unit == "height" else Scheduled.at_time(s_val)
    dur = Duration.height(d_val) if d_unit == "height" else Duration.time(d_val)
    return Stage(start=sched, duration=dur)


def load_claims(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def claim_entry(path: str, address: str) -> Tuple[int, List[str]]:
    doc = load_claims(path)
    entry = doc["claims"].get(address)
    if entry is None:
        raise SystemExit(f"{address} is not in {path}")
    return int(entry["amount"]), list(entry["proof"])


def resolve_block(args: argparse.Namespace, settings: Settings) -> BlockInfo:
    if args.block_file:
        return load_block_from_file(args.block_file)
    if args.height is not None or args.time is not None:
        if args.height is None or args.time is None:
            raise SystemExit("--height and --time must be given together.")
        return BlockInfo(height=args.height, time=args.time)

    rpc = RpcClient(settings.require_rpc_url(), timeout_s=args.timeout)
    try:
        block = rpc.current_block()
    finally:
        rpc.close()
    log.debug("Current block from RPC: height=%d time=%d", block.height, block.time)
    return block


def context(args: argparse.Namespace) -> Tuple[Settings, JsonFileStore]:
    settings = Settings.from_env(
        state_file_override=args.state,
        sender_override=args.sender,
        rpc_url_override=args.rpc_url,
    )
    return settings, JsonFileStore(settings.state_file)


# --- execute commands ---


def cmd_init(args: argparse.Namespace) -> int:
    settings, store = context(args)
    price = args.ticket_price.strip()
    if price.isdigit():
        price += DEFAULT_DENOM
    coins = coins_from_pairs([price])
    msg = contract.InstantiateMsg(
        owner=args.owner,
        token_address=args.token,
        ticket_price=coins[0],
        bins=args.bins,
        stage_bid=make_stage(args.bid_start, args.bid_duration),
        stage_claim_airdrop=make_stage(args.airdrop_start, args.airdrop_duration),
        stage_claim_prize=make_stage(args.prize_start, args.prize_duration),
    )
    res = contract.instantiate(store, resolve_block(args, settings), settings.require_sender(), msg)
    print_response(res)
    log.info("State file        : %s", settings.state_file)
    return 0


def cmd_update_config(args: argparse.Namespace) -> int:
    settings, store = context(args)
    new_owner = None if args.freeze else args.new_owner
    res = contract.update_config(store, resolve_block(args, settings), settings.require_sender(), new_owner)
    print_response(res)
    return 0


def cmd_bid(args: argparse.Namespace) -> int:
    settings, store = context(args)
    funds = coins_from_pairs(args.funds)
    res = contract.place_bid(store, resolve_block(args, settings), settings.require_sender(), args.bin, funds)
    print_response(res)
    return 0


def cmd_change_bid(args: argparse.Namespace) -> int:
    settings, store = context(args)
    res = contract.change_bid(store, resolve_block(args, settings), settings.require_sender(), args.bin)
    print_response(res)
    return 0


def cmd_remove_bid(args: argparse.Namespace) -> int:
    settings, store = context(args)
    res = contract.remove_bid(store, resolve_block(args, settings), settings.require_sender())
    print_response(res)
    return 0


def _root_and_total(
    root: Optional[str], total: Optional[int], claims_path: Optional[str], label: str
) -> Tuple[str, Optional[int]]:
    if claims_path:
        doc = load_claims(claims_path)
        return doc["merkle_root"], int(doc["total_amount"])
    if not root:
        raise SystemExit(f"Provide --{label}-root or --{label}-claims.")
    return root, total


def cmd_register_roots(args: argparse.Namespace) -> int:
    settings, store = context(args)
    root_airdrop, total_airdrop = _root_and_total(
        args.airdrop_root, args.airdrop_total, args.airdrop_claims, "airdrop"
    )
    root_game, total_game = _root_and_total(
        args.game_root, args.game_total, args.game_claims, "game"
    )
    res = contract.register_merkle_roots(
        store,
        resolve_block(args, settings),
        settings.require_sender(),
        root_airdrop,
        total_airdrop,
        root_game,
        total_game,
    )
    print_response(res)
    return 0


def cmd_claim_airdrop(args: argparse.Namespace) -> int:
    settings, store = context(args)
    sender = settings.require_sender()

    if args.claims:
        amount, proof = claim_entry(args.claims, sender)
    else:
        if args.amount is None:
            raise SystemExit("Provide --amount/--proof or --claims.")
        amount, proof = args.amount, args.proof or []

    game_amount: Optional[int] = args.game_amount
    game_proof: Optional[List[str]] = args.game_proof
    if args.game_claims:
        doc = load_claims(args.game_claims)
        entry = doc["claims"].get(sender)
        # Not being in the game tree is normal; the airdrop is claimed regardless.
        if entry is not None:
            game_amount, game_proof = int(entry["amount"]), list(entry["proof"])

    res = contract.claim_airdrop(
        store,
        resolve_block(args, settings),
        sender,
        amount,
        proof,
        proof_game=game_proof,
        game_amount=game_amount,
    )
    print_response(res)
    return 0


def cmd_claim_prize(args: argparse.Namespace) -> int:
    settings, store = context(args)
    sender = settings.require_sender()
    if args.claims:
        amount, proof = claim_entry(args.claims, sender)
    else:
        if args.amount is None:
            raise SystemExit("Provide --amount/--proof or --claims.")
        amount, proof = args.amount, args.proof or []
    res = contract.claim_prize(store, resolve_block(args, settings), sender, amount, proof)
    print_response(res)
    return 0


def cmd_withdraw_airdrop(args: argparse.Namespace) -> int:
    settings, store = context(args)
    res = contract.withdraw_unclaimed_airdrop(
        store, resolve_block(args, settings), settings.require_sender(), args.recipient
    )
    print_response(res)
    return 0


def cmd_withdraw_prize(args: argparse.Namespace) -> int:
    settings, store = context(args)
    res = contract.withdraw_unclaimed_prize(
        store, resolve_block(args, settings), settings.require_sender(), args.recipient
    )
    print_response(res)
    return 0


def cmd_query(args: argparse.Namespace) -> int:
    _, store = context(args)
    what = args.what
    if what in ("bid", "claimed") and not args.address:
        raise SystemExit(f"query {what} needs --address.")

    if what == "config":
        print_json(contract.query_config(store))
    elif what == "stages":
        print_json(contract.query_stages(store))
    elif what == "bid":
        print_json({"bid": contract.query_bid(store, args.address)})
    elif what == "roots":
        print_json(contract.query_merkle_roots(store))
    elif what == "pool":
        print_json(contract.query_pool_totals(store))
    elif what == "claimed":
        print_json(contract.query_claimed(store, args.address))
    return 0


# --- merkle helpers (off-chain side) ---


def cmd_merkle_build(args: argparse.Namespace) -> int:
    rows = load_leaves_csv(args.csv)
    tree = build_tree(rows)
    doc = {
        "merkle_root": tree.root_hex,
        "total_amount": str(tree.total),
        "claims": tree.claims(),
    }
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)

    print("========================================")
    print("MERKLE COMMITMENT")
    print("========================================")
    print(f"Leaves        : {len(rows)}")
    print(f"Root          : {tree.root_hex}")
    print(f"Total amount  : {tree.total}")
    print("----------------------------------------")
    print(f"Wrote claims  : {args.out}")
    return 0


def cmd_merkle_proof(args: argparse.Namespace) -> int:
    amount, proof = claim_entry(args.claims, args.address)
    print_json({"address": args.address, "amount": str(amount), "proof": proof})
    return 0


def cmd_merkle_verify(args: argparse.Namespace) -> int:
    result = verify_claims_file(args.claims)
    print("CLAIMS FILE VERIFIED")
    print(f"Root          : {result['merkle_root']}")
    print(f"Total amount  : {result['total_amount']}")
    print(f"Leaves        : {result['leaves']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bin-lottery",
        description="Staged bin-guessing lottery with Merkle airdrop and prize claims.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--state", default=None, help="State JSON file (else LOTTERY_STATE_FILE).")
    p.add_argument("--sender", default=None, help="Caller address (else LOTTERY_SENDER).")
    p.add_argument("--height", type=int, default=None, help="Current block height.")
    p.add_argument("--time", type=int, default=None, help="Current block unix time.")
    p.add_argument("--block-file", default=None, help="JSON file with the current block.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    i = sub.add_parser("init", help="Instantiate the lottery state.")
    i.add_argument("--owner", default=None, help="Owner address (default: sender).")
    i.add_argument("--token", required=True, help="Airdrop token address.")
    i.add_argument("--ticket-price", required=True, help="Ticket price, e.g. 100lamports (bare amount: native denom).")
    i.add_argument("--bins", required=True, type=int, help="Number of bins.")
    for name in ("bid", "airdrop", "prize"):
        i.add_argument(f"--{name}-start", required=True, type=parse_schedule,
                       help="height:<n> or time:<unix seconds>")
        i.add_argument(f"--{name}-duration", required=True, type=parse_schedule,
                       help="height:<n> or time:<seconds>")
    i.set_defaults(func=cmd_init)

    u = sub.add_parser("update-config", help="Change (or drop) the owner.")
    g = u.add_mutually_exclusive_group(required=True)
    g.add_argument("--new-owner", default=None)
    g.add_argument("--freeze", action="store_true", help="Remove the owner for good.")
    u.set_defaults(func=cmd_update_config)

    b = sub.add_parser("bid", help="Place a bid on a bin.")
    b.add_argument("--bin", required=True, type=int)
    b.add_argument("--funds", required=True, action="append", help="Coins sent, e.g. 100lamports.")
    b.set_defaults(func=cmd_bid)

    cb = sub.add_parser("change-bid", help="Move an existing bid to another bin.")
    cb.add_argument("--bin", required=True, type=int)
    cb.set_defaults(func=cmd_change_bid)

    rb = sub.add_parser("remove-bid", help="Withdraw a bid and get the ticket refunded.")
    rb.set_defaults(func=cmd_remove_bid)

    r = sub.add_parser("register-roots", help="Publish airdrop and game Merkle roots.")
    r.add_argument("--airdrop-root", default=None)
    r.add_argument("--airdrop-total", type=int, default=None)
    r.add_argument("--airdrop-claims", default=None, help="Claims file from `merkle build`.")
    r.add_argument("--game-root", default=None)
    r.add_argument("--game-total", type=int, default=None)
    r.add_argument("--game-claims", default=None, help="Claims file from `merkle build`.")
    r.set_defaults(func=cmd_register_roots)

    ca = sub.add_parser("claim-airdrop", help="Claim the airdrop allocation.")
    ca.add_argument("--amount", type=int, default=None)
    ca.add_argument("--proof", action="append", default=None, help="Hex sibling (repeat).")
    ca.add_argument("--claims", default=None, help="Airdrop claims file.")
    ca.add_argument("--game-amount", type=int, default=None)
    ca.add_argument("--game-proof", action="append", default=None)
    ca.add_argument("--game-claims", default=None, help="Game claims file.")
    ca.set_defaults(func=cmd_claim_airdrop)

    cp = sub.add_parser("claim-prize", help="Claim the game prize share.")
    cp.add_argument("--amount", type=int, default=None)
    cp.add_argument("--proof", action="append", default=None, help="Hex sibling (repeat).")
    cp.add_argument("--claims", default=None, help="Game claims file.")
    cp.set_defaults(func=cmd_claim_prize)

    wa = sub.add_parser("withdraw-airdrop", help="Owner: withdraw unclaimed airdrop tokens.")
    wa.add_argument("--recipient", required=True)
    wa.set_defaults(func=cmd_withdraw_airdrop)

    wp = sub.add_parser("withdraw-prize", help="Owner: withdraw the unclaimed ticket pool.")
    wp.add_argument("--recipient", required=True)
    wp.set_defaults(func=cmd_withdraw_prize)

    q = sub.add_parser("query", help="Read state.")
    q.add_argument("what", choices=["config", "stages", "bid", "roots", "pool", "claimed"])
    q.add_argument("--address", default=None)
    q.set_defaults(func=cmd_query)

    m = sub.add_parser("merkle", help="Off-chain Merkle tree tools.")
    msub = m.add_subparsers(dest="merkle_cmd", required=True)

    mb = msub.add_parser("build", help="Build a tree from an address,amount CSV.")
    mb.add_argument("--csv", required=True)
    mb.add_argument("--out", default="claims.json", help="Claims output JSON path.")
    mb.set_defaults(func=cmd_merkle_build)

    mp = msub.add_parser("proof", help="Print the proof for one address.")
    mp.add_argument("--claims", required=True)
    mp.add_argument("--address", required=True)
    mp.set_defaults(func=cmd_merkle_proof)

    mv = msub.add_parser("verify", help="Verify a claims file deterministically.")
    mv.add_argument("--claims", required=True)
    mv.set_defaults(func=cmd_merkle_verify)

    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except LotteryError as e:
        log.error("%s: %s", type(e).__name__, e)
        code = 1
    raise SystemExit(code)
