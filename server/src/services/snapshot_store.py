from __future__ import annotations

import threading
from typing import Optional

from ..models import PollSnapshot


class SnapshotStore:
    """Holds the single published `PollSnapshot`.

    Snapshots are immutable, so `read` hands out the current reference and
    `replace` swaps it in one step. Readers never see a half-written snapshot
    and never wait on a poll in progress.
    """

    def __init__(self, initial: Optional[PollSnapshot] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial or PollSnapshot()

    def read(self) -> PollSnapshot:
        with self._lock:
            return self._snapshot

    def replace(self, snapshot: PollSnapshot) -> PollSnapshot:
        """Publish `snapshot` and return the one it replaced."""
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
        return previous
