"""In-memory, append-only sample store for a single run."""

from __future__ import annotations

import threading

from .models import Sample


class MetricsStore:
    """Ordered samples of one run. Appends are serialized by a lock."""

    def __init__(self) -> None:
        self._samples: list[Sample] = []
        self._lock = threading.Lock()

    def append(self, sample: Sample) -> None:
        """Add a sample. Timestamps must be non-decreasing."""
        with self._lock:
            if self._samples and sample.timestamp < self._samples[-1].timestamp:
                raise ValueError(
                    f"Sample timestamp {sample.timestamp.isoformat()} precedes "
                    f"{self._samples[-1].timestamp.isoformat()}"
                )
            self._samples.append(sample)

    def snapshot(self) -> tuple[Sample, ...]:
        with self._lock:
            return tuple(self._samples)

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
