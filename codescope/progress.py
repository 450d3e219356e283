"""
Progress reporting for sync runs.

Emits one event per processed file with a rate and an ETA, so the CLI can
drive a progress bar without knowing how the engine schedules work.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class ProgressEvent:
    """
    Event emitted while a sync run processes files.

    Attributes:
        phase: Stage of the run ("chunking" or "embedding")
        current: Files completed in this phase
        total: Files this phase will process
        filename: File just completed
        elapsed_seconds: Time since the phase started
        eta_seconds: Estimated time remaining (None until a rate is known)
    """
    phase: str
    current: int
    total: int
    filename: str
    elapsed_seconds: float
    eta_seconds: Optional[float] = None

    @property
    def fraction(self) -> float:
        return self.current / self.total if self.total else 1.0


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Counts completed files for one phase and forwards events to a callback."""

    def __init__(self, phase: str, total: int, callback: Optional[ProgressCallback] = None):
        self.phase = phase
        self.total = total
        self.current = 0
        self.callback = callback
        self.start_time = time.monotonic()

    def advance(self, filename: str) -> ProgressEvent:
        """Record one completed file and emit an event."""
        self.current += 1
        elapsed = time.monotonic() - self.start_time
        rate = self.current / elapsed if elapsed > 0 else 0.0
        remaining = max(self.total - self.current, 0)
        eta = remaining / rate if rate > 0 else None

        event = ProgressEvent(
            phase=self.phase,
            current=self.current,
            total=self.total,
            filename=filename,
            elapsed_seconds=elapsed,
            eta_seconds=eta,
        )
        if self.callback:
            self.callback(event)
        return event

    @staticmethod
    def format_eta(seconds: Optional[float]) -> str:
        """
        Format ETA in human-readable form.

        Returns:
            Strings like "2m 30s", "1h 15m", or "unknown"
        """
        if seconds is None:
            return "unknown"

        minutes, secs = divmod(int(seconds), 60)
        hours, minutes = divmod(minutes, 60)
        if hours > 0:
            return f"{hours}h {minutes}m"
        if minutes > 0:
            return f"{minutes}m {secs}s"
        return f"{secs}s"
