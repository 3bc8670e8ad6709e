"""Data models for EchoFlow."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class Segment:
    """A single timed line of transcript text (a "sentence" on screen)."""
    id: int
    start_time: float
    end_time: float
    text: str


@dataclass(frozen=True)
class Track:
    """
    An audio file, optionally paired with a subtitle file.

    Equality and hashing use only the generated ``id``, so two tracks with
    the same name in different folders stay distinguishable.
    """
    audio_path: str = field(compare=False)
    display_name: str = field(compare=False)
    subtitle_path: Optional[str] = field(default=None, compare=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class AudioProbe:
    """Stream properties reported by ffprobe for an audio file."""
    duration: float
    sample_rate: int
    channels: int
    codec: str


class TranscriptionProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    GROK = "grok"

    @classmethod
    def from_id(cls, value) -> "TranscriptionProvider":
        """Resolves a provider id (case-insensitive) or raises ConfigurationError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ConfigurationError(f"Unknown transcription provider '{value}'. Choose one of: {choices}.") from None


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TranscriptionJob:
    """Lifecycle of one in-flight transcription request. Never persisted."""
    provider: TranscriptionProvider
    model: str
    language: str = ""
    state: JobState = JobState.IDLE
    message: Optional[str] = None

    def start(self) -> None:
        self.state = JobState.RUNNING
        self.message = None

    def complete(self) -> None:
        self.state = JobState.DONE
        self.message = None

    def fail(self, message: str) -> None:
        self.state = JobState.FAILED
        self.message = message
