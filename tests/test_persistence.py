"""
tests/test_persistence.py - Resource Store Tests

Validates:
- round trip of the resource record
- merge over defaults
- read/write failures fall back without raising
"""

import json
import logging

import pytest

from kernel.constants import UserTier
from kernel.types_state import UserResources
from persistence import STORAGE_KEY, StateStore, merge_record, resources_to_record


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "operator.json")


class TestRoundTrip:

    def test_save_then_load(self, store):
        resources = UserResources(tier=UserTier.ARCHITECT, tokens=7,
                                  ledger_history=[{"item": "lattice", "tokens": 3}])
        assert store.save_resources(resources) is True
        assert store.load_resources() == resources

    def test_wire_shape(self, store):
        store.save_resources(UserResources(tokens=5))
        on_disk = json.loads(store.path.read_text())
        assert on_disk[STORAGE_KEY] == {"tier": "ACOLYTE", "tokens": 5, "ledgerHistory": []}

    def test_other_keys_preserved(self, store):
        store.set("other", {"x": 1})
        store.save_resources(UserResources())
        assert store.get("other") == {"x": 1}

    def test_missing_file_gives_defaults(self, store):
        assert store.load_resources() == UserResources()


class TestMerge:

    def test_partial_record(self):
        merged = merge_record(UserResources(tokens=4), {"tier": "SOVEREIGN"})
        assert merged.tier == UserTier.SOVEREIGN
        assert merged.tokens == 4

    def test_bad_fields_keep_defaults(self, caplog):
        with caplog.at_level(logging.WARNING, logger="persistence"):
            merged = merge_record(UserResources(), {"tier": "EMPEROR", "tokens": "lots"})
        assert merged == UserResources()
        assert len(caplog.records) == 2

    def test_record_helper(self):
        assert resources_to_record(UserResources()) == {
            "tier": "ACOLYTE", "tokens": 0, "ledgerHistory": [],
        }


class TestFailureFallback:

    def test_corrupt_file(self, store, caplog):
        store.path.write_text("{not json")
        with caplog.at_level(logging.WARNING, logger="persistence"):
            assert store.load_resources() == UserResources()
        assert "read failed" in caplog.text

    def test_non_object_root(self, store):
        store.path.write_text("[1, 2, 3]")
        assert store.get(STORAGE_KEY) is None

    def test_unwritable_path(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        bad = StateStore(blocker / "nested" / "operator.json")
        with caplog.at_level(logging.WARNING, logger="persistence"):
            assert bad.save_resources(UserResources()) is False
        assert "write failed" in caplog.text

    def test_directory_in_place_of_file(self, tmp_path):
        (tmp_path / "store").mkdir()
        store = StateStore(tmp_path / "store")
        assert store.load_resources() == UserResources()
        assert store.save_resources(UserResources()) is False
