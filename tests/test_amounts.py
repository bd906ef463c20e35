import pytest

from bin_lottery.addresses import address_from_bytes, load_leaves_csv, validate_address
from bin_lottery.amounts import Coin, checked_add, checked_sub, coins_from_pairs
from bin_lottery.errors import ArithmeticOverflow, InvalidAddress
from bin_lottery.project_constants import UINT128_MAX

from conftest import ALICE, BOB


def test_checked_add_bounds():
    assert checked_add(UINT128_MAX - 1, 1) == UINT128_MAX
    with pytest.raises(ArithmeticOverflow):
        checked_add(UINT128_MAX, 1)


def test_checked_sub_underflow():
    assert checked_sub(5, 5) == 0
    with pytest.raises(ArithmeticOverflow):
        checked_sub(4, 5)


@pytest.mark.parametrize("bad", [-1, UINT128_MAX + 1, 1.5, True, "3"])
def test_operands_must_be_uint128(bad):
    with pytest.raises(ArithmeticOverflow):
        checked_add(bad, 0)


def test_coin_parsing():
    assert coins_from_pairs(["100lamports", " 5uusd "]) == [
        Coin("lamports", 100),
        Coin("uusd", 5),
    ]
    with pytest.raises(ValueError):
        coins_from_pairs(["lamports"])
    with pytest.raises(ValueError):
        coins_from_pairs(["100"])


def test_coin_dict_keeps_big_amounts_exact():
    c = Coin("lamports", UINT128_MAX)
    assert Coin.from_dict(c.to_dict()) == c


def test_validate_address():
    assert validate_address(ALICE) == ALICE
    for bad in ["", "0OIl", "abc", ALICE + "1", "1" + ALICE]:
        with pytest.raises(InvalidAddress):
            validate_address(bad)


def test_address_from_bytes_length():
    with pytest.raises(InvalidAddress):
        address_from_bytes(b"\x01" * 31)


def test_load_leaves_csv(tmp_path):
    path = tmp_path / "leaves.csv"
    path.write_text(f"address,amount\n# comment\n{BOB},20\n\n{ALICE},10\n", encoding="utf-8")
    rows = load_leaves_csv(str(path))
    assert sorted(rows) == rows
    assert dict(rows) == {ALICE: 10, BOB: 20}


def test_load_leaves_csv_rejects_bad_amount(tmp_path):
    path = tmp_path / "leaves.csv"
    path.write_text(f"address,amount\n{ALICE},-1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_leaves_csv(str(path))


def test_load_leaves_csv_rejects_duplicate_address(tmp_path):
    path = tmp_path / "leaves.csv"
    path.write_text(f"address,amount\n{ALICE},10\n{BOB},5\n{ALICE},10\n", encoding="utf-8")
    with pytest.raises(ValueError, match="duplicate address"):
        load_leaves_csv(str(path))
