"""Change detection between two Kindle library snapshots.

Pure functions over plain values; nothing here touches storage.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..db.schemas import KindleBookSnapshot


@dataclass
class ProgressChange:
    """A library item whose percent complete went up since the last snapshot."""

    book: KindleBookSnapshot
    previous_percent: int


@dataclass
class ChangeSet:
    """Classification of the current library against the previous snapshot.

    An item can be in both ``progress_changes`` and ``recently_opened``.
    Items missing from the current library are never reported.
    """

    new_books: list[KindleBookSnapshot] = field(default_factory=list)
    progress_changes: list[ProgressChange] = field(default_factory=list)
    recently_opened: list[KindleBookSnapshot] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.new_books or self.progress_changes or self.recently_opened)


def detect_changes(
    previous: Optional[list[KindleBookSnapshot]],
    current: list[KindleBookSnapshot],
) -> ChangeSet:
    """Compare the current library with the previous snapshot's books.

    Args:
        previous: Books of the last stored snapshot, or None on first sync
        current: Freshly fetched library

    Returns:
        ChangeSet with new, progressed and recently opened items
    """
    changes = ChangeSet()

    if previous is None:
        changes.new_books = list(current)
        return changes

    previous_by_asin = {book.asin: book for book in previous}

    for book in current:
        before = previous_by_asin.get(book.asin)
        if before is None:
            changes.new_books.append(book)
            continue

        # Regressions (re-reads) count as unchanged
        if (
            book.percent_complete is not None
            and before.percent_complete is not None
            and book.percent_complete > before.percent_complete
        ):
            changes.progress_changes.append(
                ProgressChange(book=book, previous_percent=before.percent_complete)
            )

        if (
            book.last_opened_at is not None
            and before.last_opened_at is not None
            and book.last_opened_at > before.last_opened_at
        ):
            changes.recently_opened.append(book)

    return changes
