"""
Processing progress simulator.
Decoding completes before progress is reported, so processing progress is
replayed in fixed-size chunks on a timer to give polling clients smooth
feedback. Swap this strategy out for real streaming-decode progress without
changing the parsing service.
"""
import asyncio
from typing import Awaitable, Callable, List

PROCESSING_PROGRESS_FLOOR = 60
PROCESSING_PROGRESS_SPAN = 40
PROCESSING_PROGRESS_CEILING = 99


class ChunkedProgressSimulator:
    """Advances processing progress one chunk per tick."""

    def __init__(self, chunks: int = 5, interval: float = 0.3):
        self.chunks = max(1, chunks)
        self.interval = max(0.0, interval)

    def steps(self, total: int) -> List[int]:
        """Percentages reported for a run over `total` records."""
        total = total or 1
        chunk = max(1, total // self.chunks)
        processed = 0
        percentages = []
        while processed < total:
            processed = min(total, processed + chunk)
            pct = PROCESSING_PROGRESS_FLOOR + processed * PROCESSING_PROGRESS_SPAN // total
            percentages.append(min(PROCESSING_PROGRESS_CEILING, pct))
        return percentages

    async def run(self, total: int, on_progress: Callable[[int], Awaitable[None]]) -> None:
        for pct in self.steps(total):
            await asyncio.sleep(self.interval)
            await on_progress(pct)
