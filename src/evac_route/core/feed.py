"""Last-value-wins hand-off between a fast location producer and the session."""
from __future__ import annotations

import threading
from typing import Optional

from evac_route.core.models import LocationSample


class LocationMailbox:
    """Holds at most one sample; a newer ``put`` overwrites an unread one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sample: Optional[LocationSample] = None
        self.dropped = 0

    def put(self, sample: LocationSample) -> None:
        with self._lock:
            if self._sample is not None:
                self.dropped += 1
            self._sample = sample

    def take(self) -> Optional[LocationSample]:
        with self._lock:
            sample, self._sample = self._sample, None
            return sample
