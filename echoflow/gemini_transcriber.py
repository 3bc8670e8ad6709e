"""Google Gemini driver: resumable upload, activation polling, then a generation request."""

import json
import logging
import os
import threading
import time
from typing import Any, Dict, List, Optional

from .models import Segment
from .exceptions import (
    FileNotReadyError,
    InvalidResponseError,
    TranscriptionCancelledError,
    UploadFailedError,
)
from .transcriber import Transcriber, segments_from_items
from .utils import mime_type_for

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_POLL_MAX_ATTEMPTS = 30

PROMPT_TEMPLATE = (
    "Transcribe this audio file. Language: {language}.\n"
    "Return the transcription as a JSON array of objects with keys \"id\" (integer starting from 1), "
    "\"start\" (seconds as float), \"end\" (seconds as float), and \"text\" (string).\n"
    "Return ONLY the JSON array, no other text or markdown formatting."
)


def _json_array(text: str) -> Optional[List[Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, list) else None


def parse_gemini_response(payload: Any) -> List[Segment]:
    """
    Extracts segments from a ``generateContent`` response.

    The model is asked for a bare JSON array, but may wrap it in prose or
    code fences; the outermost ``[...]`` is tried next, and plain text with
    no array at all becomes one segment spanning the whole file.

    Raises:
        InvalidResponseError: If the response carries no candidate text.
    """
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise InvalidResponseError("Could not parse the transcription response: no candidate text.") from e
    if not isinstance(text, str):
        raise InvalidResponseError("Could not parse the transcription response: candidate text is not a string.")

    items = _json_array(text)
    if items is None:
        start, end = text.find("["), text.rfind("]")
        if start != -1 and end > start:
            items = _json_array(text[start:end + 1])

    if items is None or not all(isinstance(item, dict) for item in items):
        logger.warning("Gemini did not return a JSON segment array; using one segment for the whole file.")
        return [Segment(id=0, start_time=0.0, end_time=0.0, text=text.strip())]
    return segments_from_items(items)


class GeminiTranscriber(Transcriber):
    """Transcribes through the Gemini File API and ``generateContent``."""

    provider_name = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com"

    def __init__(
        self,
        base_url: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
        **kwargs
    ):
        """
        Args:
            base_url: API root, overridable for tests or proxies.
            poll_interval: Seconds to wait before each file status check.
            poll_max_attempts: Status checks before giving up with FileNotReadyError.
        """
        super().__init__(**kwargs)
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts

    def transcribe(
        self,
        audio_path: str,
        api_key: str,
        model: str,
        language: str = "",
        cancel_event: Optional[threading.Event] = None
    ) -> List[Segment]:
        logger.info(f"Transcribing {audio_path} with gemini (model '{model}', language '{language or 'auto'}')")
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        mime = mime_type_for(audio_path)
        with open(audio_path, "rb") as f:
            audio_data = f.read()

        upload_url = self._start_upload(audio_path, len(audio_data), mime, api_key)
        file_info = self._upload_bytes(upload_url, audio_data, mime)
        if file_info.get("state") != "ACTIVE":
            self._wait_for_active(file_info["name"], api_key, cancel_event)

        segments = self._generate(file_info["uri"], mime, api_key, model, language)
        logger.info(f"gemini returned {len(segments)} segments.")
        return segments

    def _start_upload(self, audio_path: str, size: int, mime: str, api_key: str) -> str:
        response = self._request(
            "POST",
            f"{self.base_url}/upload/v1beta/files",
            params={"key": api_key},
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Type": mime,
                "X-Goog-Upload-Header-Content-Length": str(size),
                "Content-Type": "application/json",
            },
            json={"file": {"display_name": os.path.basename(audio_path)}},
        )
        upload_url = response.headers.get("X-Goog-Upload-URL")
        if not upload_url:
            raise UploadFailedError("Failed to upload audio file to the provider: no upload URL returned.")
        logger.debug(f"Resumable upload session opened ({size} bytes, {mime})")
        return upload_url

    def _upload_bytes(self, upload_url: str, audio_data: bytes, mime: str) -> Dict[str, Any]:
        response = self._request(
            "POST",
            upload_url,
            headers={
                "X-Goog-Upload-Command": "upload, finalize",
                "X-Goog-Upload-Offset": "0",
                "Content-Type": mime,
            },
            data=audio_data,
        )
        try:
            file_info = response.json()["file"]
            uri, name = file_info["uri"], file_info["name"]
        except (ValueError, KeyError, TypeError) as e:
            raise UploadFailedError("Failed to upload audio file to the provider: no file handle in response.") from e
        if not isinstance(uri, str) or not isinstance(name, str) or not uri or not name:
            raise UploadFailedError("Failed to upload audio file to the provider: no file handle in response.")
        logger.info(f"Uploaded audio as {name}")
        return file_info

    def _wait_for_active(self, file_name: str, api_key: str, cancel_event: Optional[threading.Event]) -> None:
        status_url = f"{self.base_url}/v1beta/{file_name}"
        for attempt in range(1, self.poll_max_attempts + 1):
            if cancel_event is not None:
                if cancel_event.wait(self.poll_interval):
                    raise TranscriptionCancelledError("Transcription cancelled while waiting for the upload.")
            else:
                time.sleep(self.poll_interval)

            response = self._request("GET", status_url, params={"key": api_key})
            try:
                state = response.json().get("state")
            except (ValueError, AttributeError):
                state = None
            logger.debug(f"File {file_name} state after attempt {attempt}: {state}")
            if state == "ACTIVE":
                return
            if state == "FAILED":
                raise UploadFailedError(f"Provider failed to process uploaded file {file_name}.")

        raise FileNotReadyError(
            f"Uploaded file {file_name} was not ready after {self.poll_max_attempts} checks."
        )

    def _generate(self, file_uri: str, mime: str, api_key: str, model: str, language: str) -> List[Segment]:
        prompt = PROMPT_TEMPLATE.format(language=language or "auto-detect")
        body = {
            "contents": [
                {
                    "parts": [
                        {"file_data": {"mime_type": mime, "file_uri": file_uri}},
                        {"text": prompt},
                    ]
                }
            ],
            "generationConfig": {
                "temperature": 0.1,
                "responseMimeType": "application/json",
            },
        }
        response = self._request(
            "POST",
            f"{self.base_url}/v1beta/models/{model}:generateContent",
            params={"key": api_key},
            json=body,
        )
        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidResponseError(f"Could not parse the transcription response: {e}") from e
        return parse_gemini_response(payload)
