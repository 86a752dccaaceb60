"""
Match recorder: receives the completed MatchRecord from the turn engine and hands
it to storage exactly once. A failed save keeps the record pending for retry and
never touches the (already completed) match.
"""
from __future__ import annotations

import logging

from stickit.models import MatchRecord
from stickit.persistence.storage import MatchStorage, StorageError

logger = logging.getLogger(__name__)


class MatchSaveError(RuntimeError):
    """The match finished but its record could not be stored. Retry with MatchRecorder.retry()."""


class MatchRecorder:
    """Engine on_complete callback. Persistence is delegated to the injected storage."""

    def __init__(self, storage: MatchStorage) -> None:
        self._storage = storage
        self._saved: MatchRecord | None = None
        self._pending: MatchRecord | None = None

    @property
    def saved(self) -> MatchRecord | None:
        return self._saved

    @property
    def pending(self) -> MatchRecord | None:
        return self._pending

    @property
    def is_saved(self) -> bool:
        return self._saved is not None

    def __call__(self, record: MatchRecord) -> MatchRecord:
        if self._saved is not None:
            logger.debug("Match already saved as %s; ignoring repeat completion", self._saved.id)
            return self._saved
        self._pending = record
        return self._save(record)

    def retry(self) -> MatchRecord | None:
        """Re-attempt a pending save. Returns the saved record (None if the match never completed)."""
        if self._pending is None:
            return self._saved
        return self._save(self._pending)

    def _save(self, record: MatchRecord) -> MatchRecord:
        try:
            saved = self._storage.save_match(record)
        except StorageError as e:
            logger.exception("Could not save match won by %s", record.winner)
            raise MatchSaveError(f"Match results could not be saved: {e}") from e
        self._saved = saved
        self._pending = None
        return saved
