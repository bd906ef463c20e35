from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from .errors import ArithmeticOverflow
from .project_constants import UINT128_MAX


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        # Amounts are stored as strings; they may exceed 2**53.
        return {"denom": self.denom, "amount": str(self.amount)}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Coin":
        return Coin(denom=str(d["denom"]), amount=int(d["amount"]))


def check_uint128(value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ArithmeticOverflow(f"Amount must be an integer, got {value!r}")
    if value < 0 or value > UINT128_MAX:
        raise ArithmeticOverflow(f"Amount out of Uint128 range: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    result = check_uint128(a) + check_uint128(b)
    if result > UINT128_MAX:
        raise ArithmeticOverflow(f"Overflow adding {a} + {b}")
    return result


def checked_sub(a: int, b: int) -> int:
    result = check_uint128(a) - check_uint128(b)
    if result < 0:
        raise ArithmeticOverflow(f"Underflow subtracting {a} - {b}")
    return result


def coins_from_pairs(pairs: Iterable[str]) -> List[Coin]:
    """
    Parse "100lamports"-style strings into coins.
    """
    out: List[Coin] = []
    for raw in pairs:
        s = raw.strip()
        i = 0
        while i < len(s) and s[i].isdigit():
            i += 1
        if i == 0 or i == len(s):
            raise ValueError(f"Coin must look like <amount><denom>, got: {raw!r}")
        out.append(Coin(denom=s[i:], amount=int(s[:i])))
    return out
