"""Progress reporting, match streaming and cooperative cancellation."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from .models import MatchEvent, ProgressEvent

ProgressCallback = Callable[[ProgressEvent], None]
MatchCallback = Callable[[MatchEvent], None]
Scheduler = Callable[[], Awaitable[None]]

DEFAULT_PROGRESS_INTERVAL = 10


async def yield_to_host() -> None:
    """Default scheduler: hand control back to the event loop once."""
    await asyncio.sleep(0)


class CancellationToken:
    """Advisory cancellation flag polled by the walker before each visit."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ProgressReporter:
    """Counts visits against a precomputed total and emits events.

    ``before_visit`` is the walker's only suspension point: at every
    ``interval``-th visit (and on the first and last) it publishes a
    :class:`ProgressEvent` and awaits the injected scheduler.
    """

    def __init__(
        self,
        total: int,
        token: CancellationToken,
        on_progress: Optional[ProgressCallback] = None,
        on_match: Optional[MatchCallback] = None,
        scheduler: Optional[Scheduler] = None,
        interval: int = DEFAULT_PROGRESS_INTERVAL,
    ):
        if interval < 1:
            raise ValueError("progress interval must be at least 1")
        self.total = total
        self.token = token
        self.on_progress = on_progress
        self.on_match = on_match
        self.scheduler = scheduler or yield_to_host
        self.interval = interval
        self.visited = 0
        self.matches = 0
        self.cancelled = False

    def percentage(self, visited: int) -> int:
        if self.total <= 0:
            return 0
        # Halves round up.
        return min(100, int(visited / self.total * 100 + 0.5))

    def _event(self, visited: int) -> ProgressEvent:
        visited = min(visited, self.total)
        return ProgressEvent(
            visited=visited,
            total=self.total,
            percentage=self.percentage(visited),
            matches_so_far=self.matches,
        )

    def start(self) -> None:
        if self.on_progress and self.total > 0:
            self.on_progress(self._event(0))

    def check_cancelled(self) -> bool:
        if self.token.cancelled:
            self.cancelled = True
        return self.cancelled

    async def before_visit(self) -> bool:
        """Return False once cancellation has been requested."""
        if self.check_cancelled():
            return False

        self.visited += 1
        if (
            self.visited % self.interval == 0
            or self.visited == 1
            or self.visited == self.total
        ):
            if self.on_progress and self.total > 0:
                self.on_progress(self._event(self.visited))
            await self.scheduler()
        return True

    def match(self, event: MatchEvent) -> None:
        self.matches += 1
        if self.on_match:
            self.on_match(event)

    def finish(self) -> None:
        if self.on_progress and self.total > 0 and not self.cancelled:
            self.on_progress(self._event(self.total))
