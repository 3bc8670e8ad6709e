"""Active-sentence lookup for a playhead moving over a list of timed segments."""

import logging
import math
from typing import Iterator, List, Optional, Sequence

from .models import Segment

logger = logging.getLogger(__name__)


def _contains(segment: Segment, time: float) -> bool:
    return segment.start_time <= time < segment.end_time


class SentenceIndex:
    """
    Immutable, start-time ordered segment array with a cached lookup.

    The playback clock ticks every few tens of milliseconds, and almost every
    tick lands in the same segment as the previous one or in the next one.
    ``lookup_active`` therefore checks the previously active segment, then its
    successor, and only falls back to a binary search on a seek or a gap.

    The binary search needs segments sorted by start time with ``id`` equal
    to their position. The constructor establishes both: unsorted input is
    stably re-sorted and ids are renumbered when they do not match.
    """

    def __init__(self, segments: Sequence[Segment] = ()):
        items = list(segments)
        if any(b.start_time < a.start_time for a, b in zip(items, items[1:])):
            logger.warning("Segments are not ordered by start time; re-sorting before indexing.")
            items.sort(key=lambda seg: seg.start_time)
        if any(seg.id != i for i, seg in enumerate(items)):
            items = [
                Segment(id=i, start_time=seg.start_time, end_time=seg.end_time, text=seg.text)
                for i, seg in enumerate(items)
            ]
        self._segments: List[Segment] = items

    def __len__(self) -> int:
        return len(self._segments)

    def __getitem__(self, index: int) -> Segment:
        return self._segments[index]

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    @property
    def segments(self) -> List[Segment]:
        """A copy of the indexed segments."""
        return list(self._segments)

    def get(self, segment_id: Optional[int]) -> Optional[Segment]:
        if segment_id is None or not 0 <= segment_id < len(self._segments):
            return None
        return self._segments[segment_id]

    def find(self, time: float) -> Optional[int]:
        """Binary search for the segment whose [start, end) contains ``time``."""
        # NaN compares false both ways and would land on the middle segment
        if math.isnan(time):
            return None
        low = 0
        high = len(self._segments) - 1
        while low <= high:
            mid = (low + high) // 2
            segment = self._segments[mid]
            if time < segment.start_time:
                high = mid - 1
            elif time >= segment.end_time:
                low = mid + 1
            else:
                return mid
        return None

    def lookup_active(self, time: float, previous_id: Optional[int] = None) -> Optional[int]:
        """
        Returns the id of the segment containing ``time``, or None.

        Args:
            time: Current playback position in seconds.
            previous_id: The id returned by the previous call, if any.
        """
        count = len(self._segments)
        if count == 0:
            return None

        if previous_id is not None and 0 <= previous_id < count:
            if _contains(self._segments[previous_id], time):
                return previous_id
            next_id = previous_id + 1
            if next_id < count and _contains(self._segments[next_id], time):
                return next_id

        return self.find(time)


def lookup_active(segments: Sequence[Segment], time: float, previous_id: Optional[int] = None) -> Optional[int]:
    """One-shot lookup; prefer a long-lived SentenceIndex on the playback path."""
    return SentenceIndex(segments).lookup_active(time, previous_id)
