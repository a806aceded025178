"""Tests for batch date corrections."""
from datetime import datetime, timezone, timedelta

import pytest

from photodatefix.lib.corrections import apply_corrections
from photodatefix.lib.exceptions import TransactionError
from photodatefix.lib.scanner import FlaggedItem

UTC = timezone.utc


class RecordingStore:
    """Asset store double that records batches and can reject them."""

    def __init__(self, fail=False):
        self.fail = fail
        self.batches = []

    def perform_changes(self, changes):
        self.batches.append(list(changes))
        if self.fail:
            raise TransactionError('The operation couldn’t be completed')


def make_items(count):
    base = datetime(2024, 1, 1, tzinfo=UTC)
    return [
        FlaggedItem(
            identifier=f'asset-{i}',
            recorded_date=base + timedelta(days=i),
            extracted_date=base + timedelta(days=i, hours=-9),
        )
        for i in range(count)
    ]


class TestApplyCorrections:
    """Tests for apply_corrections()."""

    def test_success_removes_corrected_items(self):
        working_set = make_items(5)
        store = RecordingStore()

        remaining = apply_corrections(store, working_set[:3], working_set)

        assert [item.identifier for item in remaining] == ['asset-3', 'asset-4']
        assert len(working_set) == 5

    def test_success_sends_extracted_dates(self):
        items = make_items(3)
        store = RecordingStore()

        apply_corrections(store, items, items)

        assert store.batches == [[(item.identifier, item.extracted_date) for item in items]]

    def test_failure_leaves_working_set_untouched(self):
        working_set = make_items(3)
        snapshot = list(working_set)
        store = RecordingStore(fail=True)

        with pytest.raises(TransactionError) as exc_info:
            apply_corrections(store, working_set, working_set)

        assert exc_info.value.message == 'The operation couldn’t be completed'
        assert working_set == snapshot
        assert len(working_set) == 3

    def test_retry_after_failure(self):
        working_set = make_items(3)
        store = RecordingStore(fail=True)
        with pytest.raises(TransactionError):
            apply_corrections(store, working_set, working_set)

        store.fail = False
        remaining = apply_corrections(store, working_set, working_set)
        assert remaining == []
        assert len(store.batches) == 2

    def test_empty_batch_is_noop(self):
        store = RecordingStore(fail=True)
        working_set = make_items(2)

        remaining = apply_corrections(store, [], working_set)

        assert remaining == working_set
        assert store.batches == []

    def test_single_transaction_per_batch(self):
        items = make_items(10)
        store = RecordingStore()
        apply_corrections(store, items)
        assert len(store.batches) == 1
        assert len(store.batches[0]) == 10

    def test_without_working_set(self):
        assert apply_corrections(RecordingStore(), make_items(2)) == []
