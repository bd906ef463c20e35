import json

import pytest

from bin_lottery import contract
from bin_lottery.errors import WrongPayment
from bin_lottery.storage import JsonFileStore, MemoryStore, transaction

from conftest import ALICE, BEFORE, BIDDING, OWNER, instantiate_msg, ticket


def test_transaction_commits_on_success():
    s = MemoryStore({"a": 1})
    with transaction(s) as tx:
        tx.set("b", 2)
        tx.delete("a")
        assert tx.get("b") == 2
        assert not tx.has("a")
        # Backing store untouched until the block exits.
        assert s.has("a") and not s.has("b")
    assert s.data == {"b": 2}


def test_transaction_discards_on_error():
    s = MemoryStore({"a": 1})
    with pytest.raises(ValueError):
        with transaction(s) as tx:
            tx.set("a", 99)
            tx.set("c", 3)
            raise ValueError("boom")
    assert s.data == {"a": 1}


def test_memory_store_copies_values():
    s = MemoryStore()
    value = {"nested": [1]}
    s.set("k", value)
    value["nested"].append(2)
    got = s.get("k")
    got["nested"].append(3)
    assert s.get("k") == {"nested": [1]}


def test_json_file_store_persists_commits(tmp_path):
    path = str(tmp_path / "state.json")
    s = JsonFileStore(path)
    contract.instantiate(s, BEFORE, OWNER, instantiate_msg())
    contract.place_bid(s, BIDDING, ALICE, 4, ticket())

    reopened = JsonFileStore(path)
    assert contract.query_bid(reopened, ALICE).bin == 4
    with open(path, encoding="utf-8") as f:
        on_disk = json.load(f)
    assert on_disk["pool_totals"]["total_tickets_collected"] == "100"


def test_json_file_store_untouched_by_failed_operation(tmp_path):
    path = tmp_path / "state.json"
    s = JsonFileStore(str(path))
    contract.instantiate(s, BEFORE, OWNER, instantiate_msg())
    before = path.read_text(encoding="utf-8")

    with pytest.raises(WrongPayment):
        contract.place_bid(s, BIDDING, ALICE, 4, ticket(1))
    assert path.read_text(encoding="utf-8") == before
    assert list(tmp_path.iterdir()) == [path]
