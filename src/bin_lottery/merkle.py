"""
Merkle commitments over (address, amount) leaves.

Leaf  = sha256(f"{address}{amount}")        (address text, then decimal amount)
Node  = sha256(min(a, b) + max(a, b))       (siblings sorted bytewise)

Sorting each pair makes proofs position-free: a proof is just the list of
sibling hashes from leaf to root, hex-encoded. The builder below is the
off-chain half; it must stay byte-for-byte compatible with `verify`.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .project_constants import HASH_NAME, ROOT_BYTES


def _digest(data: bytes) -> bytes:
    return hashlib.new(HASH_NAME, data).digest()


def leaf_hash(address: str, amount: int) -> bytes:
    return _digest(f"{address}{int(amount)}".encode("utf-8"))


def combine(a: bytes, b: bytes) -> bytes:
    if b < a:
        a, b = b, a
    return _digest(a + b)


def decode_hash(hex_str: str) -> Optional[bytes]:
    """Decode a 32-byte hex hash (optional 0x prefix); None if malformed."""
    if not isinstance(hex_str, str):
        return None
    s = hex_str.strip()
    if s[:2].lower() == "0x":
        s = s[2:]
    if len(s) != ROOT_BYTES * 2:
        return None
    try:
        return bytes.fromhex(s)
    except ValueError:
        return None


def compute_root(leaf: bytes, proof: Sequence[str]) -> Optional[bytes]:
    node = leaf
    for sibling_hex in proof:
        sibling = decode_hash(sibling_hex)
        if sibling is None:
            return None
        node = combine(node, sibling)
    return node


def verify(root_hex: str, address: str, amount: int, proof: Sequence[str]) -> bool:
    """
    True iff (address, amount) is committed under root_hex via proof.
    Malformed roots or proof elements are a plain negative result.
    """
    root = decode_hash(root_hex)
    if root is None:
        return False
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        return False
    computed = compute_root(leaf_hash(address, amount), proof)
    return computed is not None and computed == root


# --- Off-chain tree builder ---


@dataclass(frozen=True)
class MerkleTree:
    levels: List[List[bytes]]
    leaves: List[Tuple[str, int]]  # sorted by leaf hash, same order as levels[0]

    @property
    def root(self) -> bytes:
        return self.levels[-1][0]

    @property
    def root_hex(self) -> str:
        return self.root.hex()

    @property
    def total(self) -> int:
        return sum(amount for _, amount in self.leaves)

    def index_of(self, address: str, amount: int) -> int:
        target = leaf_hash(address, amount)
        for i, h in enumerate(self.levels[0]):
            if h == target:
                return i
        raise KeyError(f"Leaf not in tree: {address}:{amount}")

    def proof(self, address: str, amount: int) -> List[str]:
        pos = self.index_of(address, amount)
        out: List[str] = []
        for level in self.levels[:-1]:
            sib = pos ^ 1
            # Odd node out has no sibling at this level; it is promoted as is.
            if sib < len(level):
                out.append(level[sib].hex())
            pos //= 2
        return out

    def claims(self) -> Dict[str, Dict[str, object]]:
        return {
            addr: {"amount": str(amount), "proof": self.proof(addr, amount)}
            for addr, amount in self.leaves
        }


def build_levels(leaves: List[bytes]) -> List[List[bytes]]:
    if not leaves:
        raise ValueError("No leaves to build tree")
    levels = [leaves]
    cur = leaves
    while len(cur) > 1:
        nxt = []
        for i in range(0, len(cur), 2):
            if i + 1 < len(cur):
                nxt.append(combine(cur[i], cur[i + 1]))
            else:
                nxt.append(cur[i])
        levels.append(nxt)
        cur = nxt
    return levels


def build_tree(entries: Iterable[Tuple[str, int]]) -> MerkleTree:
    rows = [(addr, int(amount)) for addr, amount in entries]
    hashed = sorted(((leaf_hash(a, v), (a, v)) for a, v in rows), key=lambda x: x[0])
    return MerkleTree(
        levels=build_levels([h for h, _ in hashed]),
        leaves=[row for _, row in hashed],
    )
