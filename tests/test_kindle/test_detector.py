"""Tests for Kindle snapshot change detection."""

from datetime import timedelta

from readtracker.db.schemas import KindleBookSnapshot
from readtracker.kindle.detector import detect_changes

from conftest import NOW


def item(asin: str, percent=None, opened=None) -> KindleBookSnapshot:
    return KindleBookSnapshot(
        asin=asin, title=f"Book {asin}", percent_complete=percent, last_opened_at=opened
    )


class TestFirstSync:
    """Tests for detection with no previous snapshot."""

    def test_everything_is_new(self):
        current = [item("A1", 20, NOW), item("A2"), item("A3", 100)]
        changes = detect_changes(None, current)

        assert [b.asin for b in changes.new_books] == ["A1", "A2", "A3"]
        assert changes.progress_changes == []
        assert changes.recently_opened == []

    def test_empty_library(self):
        assert detect_changes(None, []).is_empty


class TestProgressChanges:
    """Tests for percent-complete classification."""

    def test_increase_reported_with_previous_percent(self):
        changes = detect_changes([item("A1", 40)], [item("A1", 55)])

        assert len(changes.progress_changes) == 1
        change = changes.progress_changes[0]
        assert change.book.asin == "A1"
        assert change.book.percent_complete == 55
        assert change.previous_percent == 40
        assert changes.new_books == []

    def test_unchanged_not_reported(self):
        assert detect_changes([item("A1", 40)], [item("A1", 40)]).progress_changes == []

    def test_regression_not_reported(self):
        assert detect_changes([item("A1", 40)], [item("A1", 30)]).progress_changes == []

    def test_missing_percent_on_either_side(self):
        assert detect_changes([item("A1")], [item("A1", 30)]).progress_changes == []
        assert detect_changes([item("A1", 30)], [item("A1")]).progress_changes == []

    def test_zero_previous_percent_counts(self):
        changes = detect_changes([item("A1", 0)], [item("A1", 5)])
        assert changes.progress_changes[0].previous_percent == 0


class TestRecentlyOpened:
    """Tests for last-opened classification."""

    def test_later_timestamp_reported(self):
        before = item("A1", opened=NOW - timedelta(days=1))
        after = item("A1", opened=NOW)
        assert [b.asin for b in detect_changes([before], [after]).recently_opened] == ["A1"]

    def test_same_timestamp_not_reported(self):
        assert detect_changes([item("A1", opened=NOW)], [item("A1", opened=NOW)]).recently_opened == []

    def test_item_in_both_buckets(self):
        before = item("A1", 20, NOW - timedelta(days=2))
        after = item("A1", 45, NOW)
        changes = detect_changes([before], [after])
        assert len(changes.progress_changes) == 1
        assert len(changes.recently_opened) == 1


class TestMixedLibrary:
    def test_new_and_removed_items(self):
        previous = [item("A1", 20), item("GONE", 50)]
        current = [item("A1", 20), item("NEW", 0)]
        changes = detect_changes(previous, current)

        assert [b.asin for b in changes.new_books] == ["NEW"]
        assert changes.progress_changes == []
        # Removed items are never reported
        assert all(b.asin != "GONE" for b in changes.new_books)

    def test_inputs_not_mutated(self):
        previous = [item("A1", 20)]
        current = [item("A1", 45)]
        detect_changes(previous, current)
        assert previous[0].percent_complete == 20
        assert len(current) == 1
