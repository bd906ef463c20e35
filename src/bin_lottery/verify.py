from __future__ import annotations

import json
from typing import Any, Dict

from .merkle import build_tree, verify


def verify_claims_file(claims_path: str) -> Dict[str, Any]:
    """
    Re-check a claims file written by `bin-lottery merkle build`.
    Recomputes the root from the listed leaves and verifies every proof.
    """
    with open(claims_path, "r", encoding="utf-8") as f:
        doc = json.load(f)

    root_expected = doc["merkle_root"]
    total_expected = int(doc["total_amount"])
    claims = doc["claims"]

    # Recreate the tree from stored leaves (deterministic)
    entries = [(addr, int(c["amount"])) for addr, c in claims.items()]
    tree = build_tree(entries)
    if tree.root_hex != root_expected:
        raise RuntimeError(
            f"Root mismatch: file={root_expected} recomputed={tree.root_hex}"
        )
    if tree.total != total_expected:
        raise RuntimeError(
            f"Total mismatch: file={total_expected} recomputed={tree.total}"
        )

    for addr, c in claims.items():
        if not verify(root_expected, addr, int(c["amount"]), c["proof"]):
            raise RuntimeError(f"Proof does not verify for {addr}")

    return {
        "ok": True,
        "merkle_root": root_expected,
        "total_amount": total_expected,
        "leaves": len(claims),
    }
