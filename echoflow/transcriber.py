"""Speech-to-text provider drivers: shared contract and the multipart (OpenAI-style) drivers."""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import requests

from .models import Segment
from .exceptions import InvalidResponseError, NetworkError, ProviderError
from .utils import mime_type_for

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0


class Transcriber(ABC):
    """Abstract base class for transcription providers."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, session: Optional[requests.Session] = None):
        """
        Args:
            timeout: Per-request timeout in seconds. Requests are never retried.
            session: Optional requests session, mainly for tests.
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def transcribe(
        self,
        audio_path: str,
        api_key: str,
        model: str,
        language: str = "",
        cancel_event: Optional[threading.Event] = None
    ) -> List[Segment]:
        """
        Transcribes the given (already normalized) audio file.

        Args:
            audio_path: Path to the audio file to upload.
            api_key: Provider credential.
            model: Provider model id.
            language: Optional ISO 639-1 hint; empty lets the provider detect it.
            cancel_event: Set by the caller to abandon the job.

        Returns:
            Segments with sequential ids from 0.

        Raises:
            TranscriptionError: Any of its subclasses, unchanged from the failing stage.
        """
        pass

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Sends one request, mapping transport failures and HTTP error statuses."""
        kwargs.setdefault("timeout", self.timeout)
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Network error during {method} {url}: {e}")
            raise NetworkError(f"Network error: {e}") from e
        validate_http_response(response)
        return response


def _error_message(response: requests.Response) -> str:
    body = response.text or "Unknown error"
    try:
        payload = response.json()
    except ValueError:
        return body
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return body


def validate_http_response(response: requests.Response) -> None:
    """
    Raises ProviderError for non-2xx responses.

    The message is the provider's ``error.message`` when the body is JSON in
    that shape, otherwise the raw body text.
    """
    if 200 <= response.status_code < 300:
        return
    message = _error_message(response)
    logger.error(f"Provider returned HTTP {response.status_code}: {message}")
    raise ProviderError(response.status_code, message)


def _as_seconds(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def segments_from_items(items: List[Any]) -> List[Segment]:
    """Builds segments from ``{start, end, text}`` mappings, numbering them from 0."""
    segments = []
    for seg_data in items:
        if not isinstance(seg_data, dict):
            raise InvalidResponseError(f"Unexpected segment entry: {seg_data!r}")
        text = seg_data.get("text")
        segments.append(
            Segment(
                id=len(segments),
                start_time=_as_seconds(seg_data.get("start")),
                end_time=_as_seconds(seg_data.get("end")),
                text=text.strip() if isinstance(text, str) else ""
            )
        )
    return segments


def parse_segment_response(body: str) -> List[Segment]:
    """
    Parses a ``verbose_json`` transcription response.

    A ``segments`` array is preferred; a response carrying only ``text``
    becomes a single segment at (0, 0).

    Raises:
        InvalidResponseError: If neither shape is present.
    """
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise InvalidResponseError(f"Could not parse the transcription response: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidResponseError("Could not parse the transcription response: expected a JSON object.")

    items = payload.get("segments")
    if isinstance(items, list):
        return segments_from_items(items)

    text = payload.get("text")
    if isinstance(text, str):
        logger.warning("Response has no segment timestamps; using one segment for the whole file.")
        return [Segment(id=0, start_time=0.0, end_time=0.0, text=text.strip())]

    raise InvalidResponseError("Could not parse the transcription response: no 'segments' or 'text'.")


class MultipartTranscriber(Transcriber):
    """Single-request driver for OpenAI-compatible ``/audio/transcriptions`` endpoints."""

    provider_name = "multipart"
    default_base_url = ""

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.base_url = (base_url or self.default_base_url).rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/audio/transcriptions"

    def build_form_fields(self, model: str, language: str) -> List[tuple]:
        fields = [("model", model)]
        if language:
            fields.append(("language", language))
        fields.append(("response_format", "verbose_json"))
        fields.append(("timestamp_granularities[]", "segment"))
        return fields

    def transcribe(
        self,
        audio_path: str,
        api_key: str,
        model: str,
        language: str = "",
        cancel_event: Optional[threading.Event] = None
    ) -> List[Segment]:
        logger.info(f"Uploading {audio_path} to {self.provider_name} (model '{model}', language '{language or 'auto'}')")
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        with open(audio_path, "rb") as audio_stream:
            response = self._request(
                "POST",
                self.endpoint,
                headers={"Authorization": f"Bearer {api_key}"},
                data=self.build_form_fields(model, language),
                files={"file": (os.path.basename(audio_path), audio_stream, mime_type_for(audio_path))},
            )

        segments = parse_segment_response(response.text)
        logger.info(f"{self.provider_name} returned {len(segments)} segments.")
        return segments


class OpenAITranscriber(MultipartTranscriber):
    """OpenAI Whisper transcription API."""

    provider_name = "openai"
    default_base_url = "https://api.openai.com/v1"


class GrokTranscriber(MultipartTranscriber):
    """xAI transcription API (OpenAI-compatible request and response shape)."""

    provider_name = "grok"
    default_base_url = "https://api.x.ai/v1"
