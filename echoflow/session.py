"""Playback-session state: the selected track, its sentences and the active one."""

import logging
import threading
from concurrent.futures import Executor, Future
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .drift import DEFAULT_TOLERANCE, correct_drift
from .library import DEFAULT_AUDIO_EXTENSIONS, find_tracks
from .models import Segment, Track
from .sentence_index import SentenceIndex
from .subtitle_codec import SRTCodec, generate_subtitles, parse_subtitles
from .transcription_service import TranscriptionService

logger = logging.getLogger(__name__)


class PlaybackSession:
    """
    Owns the segment collection shown for the selected track.

    The collection is only ever replaced wholesale. Background transcriptions
    build their own list and publish it in one assignment, so the tick
    handler never sees a half-built index.
    """

    def __init__(self, codec: Optional[SRTCodec] = None, drift_tolerance: float = DEFAULT_TOLERANCE):
        self.codec = codec or SRTCodec()
        self.drift_tolerance = drift_tolerance
        self.tracks: List[Track] = []
        self.track: Optional[Track] = None
        self.active_id: Optional[int] = None
        self._index = SentenceIndex()

    def load_directory(self, directory: str, extensions: Iterable[str] = DEFAULT_AUDIO_EXTENSIONS) -> List[Track]:
        """
        Scans ``directory`` for tracks and clears the current selection.

        Raises:
            FileNotFoundError: If the directory doesn't exist.
            ValueError: If the path is not a directory.
        """
        tracks = find_tracks(directory, extensions)
        self.tracks = tracks
        self.track = None
        self.replace_segments([])
        if not tracks:
            logger.warning(f"No audio files found in {directory}.")
        return list(tracks)

    def _position(self) -> Optional[int]:
        if self.track is None:
            return None
        try:
            return self.tracks.index(self.track)
        except ValueError:
            return None

    def select_next_track(self) -> Optional[Track]:
        """Selects the track after the current one; stays put at the end of the list."""
        position = self._position()
        if position is None or position + 1 >= len(self.tracks):
            return None
        track = self.tracks[position + 1]
        self.select_track(track)
        return track

    def select_previous_track(self) -> Optional[Track]:
        """Selects the track before the current one; stays put at the start of the list."""
        position = self._position()
        if position is None or position == 0:
            return None
        track = self.tracks[position - 1]
        self.select_track(track)
        return track

    @property
    def segments(self) -> List[Segment]:
        return self._index.segments

    @property
    def active_segment(self) -> Optional[Segment]:
        return self._index.get(self.active_id)

    def select_track(self, track: Track) -> List[Segment]:
        """Makes ``track`` current and loads its paired subtitle file, if any."""
        self.track = track
        segments: List[Segment] = []
        if track.subtitle_path:
            try:
                segments = self.codec.read(track.subtitle_path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read subtitles for '{track.display_name}': {e}")
        self.replace_segments(segments)
        return self.segments

    def replace_segments(self, segments: Sequence[Segment]) -> None:
        self._index = SentenceIndex(segments)
        self.active_id = None

    def on_time_update(self, time: float) -> Optional[int]:
        """Playback tick: updates and returns the active segment id."""
        self.active_id = self._index.lookup_active(time, self.active_id)
        return self.active_id

    def import_subtitles(self, raw: str, actual_duration: Optional[float] = None) -> List[Segment]:
        """Replaces the transcript with parsed SRT text, rescaled to the audio length."""
        segments = correct_drift(parse_subtitles(raw), actual_duration, self.drift_tolerance)
        self.replace_segments(segments)
        return self.segments

    def export_subtitles(self) -> str:
        return generate_subtitles(self._index.segments)

    def transcribe_in_background(
        self,
        service: TranscriptionService,
        executor: Executor,
        provider,
        api_key: str,
        model: str,
        language: str = "",
        actual_duration: Optional[float] = None,
        on_complete: Optional[Callable[[List[Segment]], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None
    ) -> Tuple[Future, threading.Event]:
        """
        Transcribes the selected track on ``executor``.

        On success the result replaces the current segments, unless another
        track was selected in the meantime. On failure the current segments
        are kept and ``on_error`` receives the exception. Only one job per
        session should run at a time; that is up to the caller.

        Returns:
            The future and an event that cancels the job when set.
        """
        if self.track is None:
            raise ValueError("No track selected.")
        track = self.track
        cancel_event = threading.Event()

        future = executor.submit(
            service.transcribe_track,
            track,
            provider,
            api_key,
            model,
            language,
            actual_duration,
            cancel_event,
        )

        def _publish(done: Future) -> None:
            if done.cancelled():
                logger.info(f"Transcription of '{track.display_name}' was cancelled.")
                return
            error = done.exception()
            if error is not None:
                logger.error(f"Transcription of '{track.display_name}' failed: {error}")
                if on_error is not None:
                    on_error(error)
                return
            segments = done.result()
            if self.track != track:
                logger.info(f"Discarding transcript for '{track.display_name}'; another track is selected.")
                return
            self.replace_segments(segments)
            if on_complete is not None:
                on_complete(self.segments)

        future.add_done_callback(_publish)
        return future, cancel_event
