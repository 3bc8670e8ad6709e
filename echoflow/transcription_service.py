"""Orchestrates normalization, provider dispatch, validation and drift correction."""

import logging
import math
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .audio_normalizer import AudioNormalizer
from .drift import DEFAULT_TOLERANCE, correct_drift
from .gemini_transcriber import GeminiTranscriber
from .models import Segment, Track, TranscriptionJob, TranscriptionProvider
from .exceptions import (
    InvalidResponseError,
    MissingCredentialError,
    TranscriptionCancelledError,
)
from .transcriber import GrokTranscriber, OpenAITranscriber, Transcriber
from .utils import cleanup_temp_files

logger = logging.getLogger(__name__)

TRANSCRIBERS = {
    TranscriptionProvider.OPENAI: OpenAITranscriber,
    TranscriptionProvider.GEMINI: GeminiTranscriber,
    TranscriptionProvider.GROK: GrokTranscriber,
}


def validate_segments(segments: Any) -> List[Segment]:
    """
    Final shape check shared by every provider.

    Returns:
        The segments renumbered 0..n-1.

    Raises:
        InvalidResponseError: If the result is not a list of Segments with
                              finite, non-negative times.
    """
    if segments is None or not isinstance(segments, list):
        raise InvalidResponseError("Transcription produced no segment list.")
    validated = []
    for i, seg in enumerate(segments):
        if not isinstance(seg, Segment):
            raise InvalidResponseError(f"Unexpected segment at position {i}: {seg!r}")
        for value in (seg.start_time, seg.end_time):
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
                raise InvalidResponseError(f"Segment {i} has an invalid time: {value!r}")
        validated.append(Segment(id=i, start_time=float(seg.start_time), end_time=float(seg.end_time), text=seg.text))
    return validated


class TranscriptionService:
    """
    Runs one transcription end to end: normalize, upload, parse, validate.

    Credentials, provider, model and language are passed on every call; the
    service never reads them from global settings.
    """

    def __init__(
        self,
        normalizer: AudioNormalizer,
        config: Optional[Dict[str, Any]] = None,
        session_factory: Optional[Callable[[], requests.Session]] = None
    ):
        """
        Args:
            normalizer: Converts source audio to the upload profile.
            config: Optional settings (timeouts, polling, base URLs, drift tolerance).
            session_factory: Builds the HTTP session for each driver; tests inject fakes here.
        """
        self.normalizer = normalizer
        self.config = config or {}
        self.session_factory = session_factory or requests.Session
        self.job: Optional[TranscriptionJob] = None

    def create_transcriber(self, provider) -> Transcriber:
        """Builds the driver registered for ``provider``."""
        provider = TranscriptionProvider.from_id(provider)
        kwargs: Dict[str, Any] = {
            "timeout": float(self.config.get("request_timeout_seconds", 300.0)),
            "session": self.session_factory(),
        }
        base_url = self.config.get(f"{provider.value}_base_url")
        if base_url:
            kwargs["base_url"] = base_url
        if provider is TranscriptionProvider.GEMINI:
            kwargs["poll_interval"] = float(self.config.get("poll_interval_seconds", 2.0))
            kwargs["poll_max_attempts"] = int(self.config.get("poll_max_attempts", 30))
        return TRANSCRIBERS[provider](**kwargs)

    @staticmethod
    def _require_credential(job: TranscriptionJob, api_key: str) -> None:
        if not api_key:
            error = MissingCredentialError(job.provider.value)
            job.fail(str(error))
            raise error

    def transcribe(
        self,
        audio_path: str,
        provider,
        api_key: str,
        model: str,
        language: str = "",
        cancel_event: Optional[threading.Event] = None
    ) -> List[Segment]:
        """
        Transcribes one audio file with the chosen provider.

        Args:
            audio_path: Path to the source audio in any format ffmpeg reads.
            provider: A TranscriptionProvider or its id ("openai", "gemini", "grok").
            api_key: Provider credential; must be non-empty.
            model: Provider model id.
            language: Optional language hint.
            cancel_event: Set to abandon the job; temporary files are still removed.

        Returns:
            Validated segments with ids from 0, timestamps as reported by the provider.

        Raises:
            MissingCredentialError: If ``api_key`` is empty (before any I/O).
            FileNotFoundError: If the audio file does not exist.
            AudioNormalizationError: If the audio cannot be converted (before any network call).
            TranscriptionError: Any provider stage failure, unchanged.
        """
        provider = TranscriptionProvider.from_id(provider)
        job = TranscriptionJob(provider=provider, model=model, language=language)
        self.job = job

        self._require_credential(job, api_key)
        if not os.path.exists(audio_path):
            error = FileNotFoundError(f"Audio file not found: {audio_path}")
            job.fail(str(error))
            raise error

        started = time.time()
        job.start()
        logger.info(f"--- Starting {provider.value} transcription for: {audio_path} ---")
        normalized_path = None
        try:
            normalized_path = self.normalizer.normalize(audio_path)
            if cancel_event is not None and cancel_event.is_set():
                raise TranscriptionCancelledError("Transcription cancelled before upload.")
            transcriber = self.create_transcriber(provider)
            raw_segments = transcriber.transcribe(
                normalized_path, api_key, model, language, cancel_event=cancel_event
            )
            segments = validate_segments(raw_segments)
        except Exception as e:
            job.fail(str(e))
            logger.error(f"Transcription failed for {audio_path}: {e}")
            raise
        finally:
            cleanup_temp_files(normalized_path)

        job.complete()
        logger.info(
            f"--- Transcription completed with {len(segments)} segments "
            f"in {time.time() - started:.2f} seconds ---"
        )
        return segments

    def transcribe_track(
        self,
        track: Track,
        provider,
        api_key: str,
        model: str,
        language: str = "",
        actual_duration: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> List[Segment]:
        """
        Transcribes a track and rescales the result to the real audio length.

        When ``actual_duration`` is not supplied (e.g. by the player) the
        source file is probed first, so an unreadable file fails before upload.
        """
        provider = TranscriptionProvider.from_id(provider)
        job = TranscriptionJob(provider=provider, model=model, language=language)
        self.job = job
        self._require_credential(job, api_key)
        if actual_duration is None:
            try:
                actual_duration = self.normalizer.probe(track.audio_path).duration
            except Exception as e:
                job.fail(str(e))
                logger.error(f"Could not probe {track.audio_path}: {e}")
                raise
        segments = self.transcribe(
            track.audio_path, provider, api_key, model, language, cancel_event=cancel_event
        )
        tolerance = float(self.config.get("drift_tolerance", DEFAULT_TOLERANCE))
        return correct_drift(segments, actual_duration, tolerance)
