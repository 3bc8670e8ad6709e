"""Rescales transcript timestamps to the real audio duration."""

import logging
from typing import List, Optional, Sequence

from .models import Segment

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.02


def correct_drift(
    segments: Sequence[Segment],
    actual_duration: Optional[float],
    tolerance: float = DEFAULT_TOLERANCE
) -> List[Segment]:
    """
    Stretches or shrinks every timestamp by one uniform factor.

    Transcription providers often report timestamps that run proportionally
    long or short against the real file. The factor is the real duration
    divided by the last segment's end time. This assumes the error is linear
    over the whole file; non-uniform timing errors are left as they are.

    Args:
        segments: A finished transcript, ordered by start time.
        actual_duration: The true length of the audio in seconds.
        tolerance: Ratios within this distance of 1.0 are left alone.

    Returns:
        A new list of segments. Unchanged copies are returned when either
        duration is missing or zero, or when the ratio is within tolerance.
    """
    segments = list(segments)
    if not segments or not actual_duration or actual_duration <= 0:
        return segments

    transcript_duration = segments[-1].end_time
    if transcript_duration <= 0:
        return segments

    ratio = actual_duration / transcript_duration
    if abs(ratio - 1.0) <= tolerance:
        logger.debug(f"Transcript duration within tolerance (scale {ratio:.4f}); no correction applied.")
        return segments

    logger.info(
        f"Normalizing timestamps: transcript={transcript_duration:.1f}s -> "
        f"audio={actual_duration:.1f}s (scale: {ratio:.3f})"
    )
    return [
        Segment(
            id=seg.id,
            start_time=seg.start_time * ratio,
            end_time=seg.end_time * ratio,
            text=seg.text
        )
        for seg in segments
    ]
