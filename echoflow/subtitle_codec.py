"""Reads and writes SRT (SubRip Text) subtitles as Segment collections."""

import logging
import math
import os
import re
from typing import List, Optional, Sequence

from .models import Segment
from .exceptions import FormattingError

logger = logging.getLogger(__name__)

TIME_SEPARATOR = " --> "

_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_TIMESTAMP_RE = re.compile(r"^(\d+):(\d+):(\d+(?:[.,]\d+)?)$")


def parse_timestamp(value: str) -> Optional[float]:
    """
    Converts ``HH:MM:SS,mmm`` (comma or period before the fraction) to seconds.

    Returns:
        Total seconds as a float, or None if the text is not a timestamp.
    """
    match = _TIMESTAMP_RE.match(value.strip())
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds.replace(",", "."))


def format_timestamp(seconds: float) -> str:
    """
    Formats seconds into SRT time format HH:MM:SS,mmm.

    Milliseconds are truncated, not rounded. A tiny epsilon absorbs binary
    float error so that 1.001 does not come out as 00:00:01,000.
    """
    if seconds < 0:
        seconds = 0.0
    milliseconds = int(math.floor(seconds * 1000 + 1e-6))
    hrs = milliseconds // 3600000
    milliseconds %= 3600000
    mins = milliseconds // 60000
    milliseconds %= 60000
    secs = milliseconds // 1000
    milliseconds %= 1000
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{milliseconds:03d}"


def _parse_block(block: str) -> Optional[Segment]:
    lines = [line.strip() for line in block.strip().split("\n")]
    lines = [line for line in lines if line]
    # index, timing, text
    if len(lines) < 3:
        return None

    time_parts = lines[1].split(TIME_SEPARATOR)
    if len(time_parts) != 2:
        return None
    start = parse_timestamp(time_parts[0])
    end = parse_timestamp(time_parts[1])
    if start is None or end is None:
        return None

    text = " ".join(lines[2:]).strip()
    if not text:
        return None
    return Segment(id=-1, start_time=start, end_time=end, text=text)


def parse_subtitles(raw: str) -> List[Segment]:
    """
    Parses SRT text into an ordered list of Segments.

    Malformed blocks are skipped rather than reported, so this never raises
    for bad input; an empty or fully malformed file yields an empty list.
    The serial number in each block is ignored and ids are reassigned from 0.
    Blocks that are out of chronological order are stably re-sorted by start
    time before the ids are assigned.

    Args:
        raw: The full subtitle file contents.

    Returns:
        A list of Segment objects ordered by start time.
    """
    if not raw:
        return []

    content = raw.replace("\r\n", "\n").replace("\r", "\n")
    parsed: List[Segment] = []
    skipped = 0
    for block in _BLOCK_SPLIT_RE.split(content):
        if not block.strip():
            continue
        segment = _parse_block(block)
        if segment is None:
            skipped += 1
            logger.debug(f"Skipping malformed subtitle block: {block[:60]!r}")
            continue
        parsed.append(segment)

    if skipped:
        logger.info(f"Skipped {skipped} malformed subtitle block(s).")

    if any(b.start_time < a.start_time for a, b in zip(parsed, parsed[1:])):
        logger.warning("Subtitle blocks are not in chronological order; re-sorting by start time.")
        parsed.sort(key=lambda seg: seg.start_time)

    return [
        Segment(id=i, start_time=seg.start_time, end_time=seg.end_time, text=seg.text)
        for i, seg in enumerate(parsed)
    ]


def generate_subtitles(segments: Sequence[Segment]) -> str:
    """Serializes segments to SRT text with 1-based indices and LF line endings."""
    lines: List[str] = []
    for i, seg in enumerate(segments, 1):
        lines.append(str(i))
        lines.append(f"{format_timestamp(seg.start_time)}{TIME_SEPARATOR}{format_timestamp(seg.end_time)}")
        lines.append(seg.text)
        lines.append("")
    return "\n".join(lines) + ("\n" if lines else "")


class SRTCodec:
    """File-level wrapper around parse_subtitles/generate_subtitles."""

    def read(self, path: str) -> List[Segment]:
        """
        Reads and parses a UTF-8 SRT file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Subtitle file not found: {path}")
        with open(path, "r", encoding="utf-8-sig") as f:
            segments = parse_subtitles(f.read())
        logger.info(f"Parsed {len(segments)} subtitle blocks from {path}")
        return segments

    def write(self, segments: Sequence[Segment], output_path: str) -> None:
        """
        Writes segments to an SRT file.

        Raises:
            FormattingError: If the file cannot be written.
        """
        logger.info(f"Writing {len(segments)} subtitle blocks to {output_path}")
        try:
            with open(output_path, "w", encoding="utf-8", newline="\n") as f:
                f.write(generate_subtitles(segments))
        except OSError as e:
            logger.error(f"Failed to write SRT file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write SRT file: {e}") from e
