"""Shared test fixtures."""

import json
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from echoflow.models import Segment


SAMPLE_SRT = """\
1
00:00:00,000 --> 00:00:05,000
Hello there.

2
00:00:05,000 --> 00:00:10,000
How are you
doing today?

3
00:00:10,000 --> 00:00:15,000
Fine, thanks.
"""


class ImmediateExecutor(Executor):
    """Runs submitted work inline so done-callbacks fire before submit returns."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


@pytest.fixture
def three_segments():
    return [
        Segment(id=0, start_time=0.0, end_time=5.0, text="a"),
        Segment(id=1, start_time=5.0, end_time=10.0, text="b"),
        Segment(id=2, start_time=10.0, end_time=15.0, text="c"),
    ]


@pytest.fixture
def sample_srt() -> str:
    return SAMPLE_SRT


@pytest.fixture
def sample_srt_path(tmp_path, sample_srt) -> Path:
    path = tmp_path / "lesson.srt"
    path.write_text(sample_srt, encoding="utf-8")
    return path


@pytest.fixture
def audio_file(tmp_path) -> Path:
    path = tmp_path / "lesson.m4a"
    path.write_bytes(b"\x00\x01fake-audio")
    return path


@pytest.fixture
def make_response():
    """Factory for real requests.Response objects."""

    def _make(status: int = 200, json_body=None, text: Optional[str] = None, headers: Optional[dict] = None):
        response = requests.Response()
        response.status_code = status
        if json_body is not None:
            body = json.dumps(json_body)
        else:
            body = text or ""
        response._content = body.encode("utf-8")
        response.encoding = "utf-8"
        response.headers = CaseInsensitiveDict(headers or {})
        return response

    return _make


@pytest.fixture
def fake_session():
    session = MagicMock(spec=requests.Session)
    return session


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()
