from __future__ import annotations

import csv
from typing import List, Set, Tuple

import base58

from .errors import InvalidAddress
from .project_constants import ADDRESS_BYTES


def validate_address(address: str) -> str:
    """
    Solana-style address: base58 text decoding to a 32-byte public key.
    Returns the address unchanged so callers can store the canonical text.
    """
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddress(address)
    a = address.strip()
    try:
        raw = base58.b58decode(a)
    except ValueError:
        raise InvalidAddress(address)
    if len(raw) != ADDRESS_BYTES:
        raise InvalidAddress(address)
    # Reject non-canonical encodings (e.g. extra leading '1's).
    if base58.b58encode(raw).decode("ascii") != a:
        raise InvalidAddress(address)
    return a


def address_from_bytes(raw: bytes) -> str:
    if len(raw) != ADDRESS_BYTES:
        raise InvalidAddress(raw)
    return base58.b58encode(raw).decode("ascii")


def load_leaves_csv(path: str) -> List[Tuple[str, int]]:
    """
    Read `address,amount` rows (with header) for building a Merkle tree.
    Blank lines and rows starting with '#' are skipped.
    """
    out: List[Tuple[str, int]] = []
    seen: Set[str] = set()
    with open(path, "r", encoding="utf-8", newline="") as f:
        rdr = csv.DictReader(line for line in f if line.strip() and not line.startswith("#"))
        if not rdr.fieldnames or "address" not in rdr.fieldnames or "amount" not in rdr.fieldnames:
            raise ValueError("CSV needs header: address,amount")
        for row in rdr:
            addr = validate_address(row["address"] or "")
            amount = (row["amount"] or "").strip()
            if not amount.isdigit():
                raise ValueError(f"amount must be a non-negative integer, got: {amount!r}")
            # Claims files are keyed by address; a second leaf would lose its proof.
            if addr in seen:
                raise ValueError(f"duplicate address in {path}: {addr}")
            seen.add(addr)
            out.append((addr, int(amount)))
    if not out:
        raise ValueError(f"No rows in {path}")

    # Deterministic ordering (critical for reproducibility)
    out.sort(key=lambda x: x[0])
    return out
