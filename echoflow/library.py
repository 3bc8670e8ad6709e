"""Finds audio tracks in a folder and pairs them with subtitle files."""

import logging
import os
from typing import Iterable, List

from .models import Track

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_EXTENSIONS = (".mp3",)


def find_tracks(directory: str, extensions: Iterable[str] = DEFAULT_AUDIO_EXTENSIONS) -> List[Track]:
    """
    Recursively finds audio files and their ``<name>.srt`` companions.

    Hidden files and folders are skipped.

    Args:
        directory: The folder to scan.
        extensions: Audio file extensions to accept (case-insensitive).

    Returns:
        Tracks sorted case-insensitively by display name.

    Raises:
        FileNotFoundError: If the directory doesn't exist.
        ValueError: If the path is not a directory.
    """
    if not os.path.exists(directory):
        raise FileNotFoundError(f"Input directory not found: {directory}")
    if not os.path.isdir(directory):
        raise ValueError(f"Input path is not a directory: {directory}")

    wanted = tuple(ext.lower() for ext in extensions)
    tracks = []
    logger.info(f"Scanning directory for audio files: {directory}")
    for root, dirs, files in os.walk(directory):
        dirs[:] = [d for d in dirs if not d.startswith(".")]
        for filename in files:
            if filename.startswith(".") or not filename.lower().endswith(wanted):
                continue
            audio_path = os.path.join(root, filename)
            stem = os.path.splitext(filename)[0]
            subtitle_path = os.path.join(root, f"{stem}.srt")
            tracks.append(
                Track(
                    audio_path=audio_path,
                    display_name=stem,
                    subtitle_path=subtitle_path if os.path.isfile(subtitle_path) else None
                )
            )

    tracks.sort(key=lambda track: track.display_name.casefold())
    logger.info(f"Found {len(tracks)} audio files ({sum(1 for t in tracks if t.subtitle_path)} with subtitles).")
    return tracks
