"""Unit tests for the multipart transcription drivers and shared response handling."""

import json

import pytest
import requests

from echoflow.exceptions import InvalidResponseError, NetworkError, ProviderError
from echoflow.models import Segment
from echoflow.transcriber import (
    GrokTranscriber,
    OpenAITranscriber,
    parse_segment_response,
    segments_from_items,
    validate_http_response,
)

VERBOSE_JSON = {
    "task": "transcribe",
    "language": "english",
    "duration": 10.0,
    "text": "Hello there. General Kenobi.",
    "segments": [
        {"id": 0, "start": 0.0, "end": 4.5, "text": " Hello there."},
        {"id": 1, "start": 4.5, "end": 10.0, "text": " General Kenobi."},
    ],
}


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

class TestParseSegmentResponse:
    def test_segments(self):
        segments = parse_segment_response(json.dumps(VERBOSE_JSON))
        assert segments == [
            Segment(id=0, start_time=0.0, end_time=4.5, text="Hello there."),
            Segment(id=1, start_time=4.5, end_time=10.0, text="General Kenobi."),
        ]

    def test_text_only_fallback(self):
        segments = parse_segment_response('{"text": " just words "}')
        assert segments == [Segment(id=0, start_time=0.0, end_time=0.0, text="just words")]

    def test_ids_are_renumbered_from_zero(self):
        body = '{"segments": [{"id": 7, "start": 1, "end": 2, "text": "a"}, {"id": 9, "start": 2, "end": 3, "text": "b"}]}'
        assert [s.id for s in parse_segment_response(body)] == [0, 1]

    def test_integer_times_become_floats(self):
        segment = parse_segment_response('{"segments": [{"start": 1, "end": 2, "text": "a"}]}')[0]
        assert isinstance(segment.start_time, float)
        assert segment.end_time == 2.0

    @pytest.mark.parametrize("body", ["not json", "[1, 2]", '{"foo": 1}', '"text"'])
    def test_invalid(self, body):
        with pytest.raises(InvalidResponseError):
            parse_segment_response(body)

    def test_non_object_segment_entry(self):
        with pytest.raises(InvalidResponseError):
            parse_segment_response('{"segments": ["oops"]}')


class TestSegmentsFromItems:
    def test_missing_fields_default(self):
        assert segments_from_items([{}]) == [Segment(id=0, start_time=0.0, end_time=0.0, text="")]

    def test_string_times(self):
        assert segments_from_items([{"start": "1.5", "end": "2", "text": "x"}])[0].start_time == 1.5


class TestValidateHttpResponse:
    def test_success_passes(self, make_response):
        validate_http_response(make_response(200, json_body={}))

    def test_json_error_message(self, make_response):
        response = make_response(401, json_body={"error": {"message": "Incorrect API key provided"}})
        with pytest.raises(ProviderError) as exc_info:
            validate_http_response(response)
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Incorrect API key provided"
        assert str(exc_info.value) == "API error (401): Incorrect API key provided"

    def test_string_error(self, make_response):
        response = make_response(429, json_body={"error": "rate limited"})
        with pytest.raises(ProviderError, match=r"API error \(429\): rate limited"):
            validate_http_response(response)

    def test_plain_body(self, make_response):
        response = make_response(502, text="Bad Gateway")
        with pytest.raises(ProviderError) as exc_info:
            validate_http_response(response)
        assert exc_info.value.message == "Bad Gateway"

    def test_empty_body(self, make_response):
        with pytest.raises(ProviderError, match="Unknown error"):
            validate_http_response(make_response(500))


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------

class TestOpenAITranscriber:
    def test_posts_multipart_request(self, fake_session, make_response, audio_file):
        fake_session.request.return_value = make_response(200, json_body=VERBOSE_JSON)
        transcriber = OpenAITranscriber(session=fake_session, timeout=12.0)

        segments = transcriber.transcribe(str(audio_file), "sk-test", "whisper-1", "en")

        assert [s.text for s in segments] == ["Hello there.", "General Kenobi."]
        fake_session.request.assert_called_once()
        args, kwargs = fake_session.request.call_args
        assert args == ("POST", "https://api.openai.com/v1/audio/transcriptions")
        assert kwargs["headers"] == {"Authorization": "Bearer sk-test"}
        assert kwargs["timeout"] == 12.0
        assert kwargs["data"] == [
            ("model", "whisper-1"),
            ("language", "en"),
            ("response_format", "verbose_json"),
            ("timestamp_granularities[]", "segment"),
        ]
        name, _, mime = kwargs["files"]["file"]
        assert name == "lesson.m4a"
        assert mime == "audio/mp4"

    def test_language_omitted_when_empty(self, fake_session, make_response, audio_file):
        fake_session.request.return_value = make_response(200, json_body=VERBOSE_JSON)
        OpenAITranscriber(session=fake_session).transcribe(str(audio_file), "sk-test", "whisper-1")
        fields = dict(fake_session.request.call_args.kwargs["data"])
        assert "language" not in fields

    def test_http_error(self, fake_session, make_response, audio_file):
        fake_session.request.return_value = make_response(
            401, json_body={"error": {"message": "Incorrect API key provided"}}
        )
        with pytest.raises(ProviderError, match="Incorrect API key provided"):
            OpenAITranscriber(session=fake_session).transcribe(str(audio_file), "bad", "whisper-1")

    def test_network_error(self, fake_session, audio_file):
        fake_session.request.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(NetworkError, match="connection refused"):
            OpenAITranscriber(session=fake_session).transcribe(str(audio_file), "sk-test", "whisper-1")

    def test_timeout_is_a_network_error(self, fake_session, audio_file):
        fake_session.request.side_effect = requests.Timeout("read timed out")
        with pytest.raises(NetworkError):
            OpenAITranscriber(session=fake_session).transcribe(str(audio_file), "sk-test", "whisper-1")

    def test_unparsable_body(self, fake_session, make_response, audio_file):
        fake_session.request.return_value = make_response(200, text="<html>oops</html>")
        with pytest.raises(InvalidResponseError):
            OpenAITranscriber(session=fake_session).transcribe(str(audio_file), "sk-test", "whisper-1")

    def test_missing_file_makes_no_request(self, fake_session, tmp_path):
        with pytest.raises(FileNotFoundError):
            OpenAITranscriber(session=fake_session).transcribe(str(tmp_path / "nope.m4a"), "sk-test", "whisper-1")
        fake_session.request.assert_not_called()

    def test_base_url_override(self, fake_session, make_response, audio_file):
        fake_session.request.return_value = make_response(200, json_body=VERBOSE_JSON)
        transcriber = OpenAITranscriber(base_url="http://localhost:8080/v1/", session=fake_session)
        transcriber.transcribe(str(audio_file), "sk-test", "whisper-1")
        assert fake_session.request.call_args.args[1] == "http://localhost:8080/v1/audio/transcriptions"


class TestGrokTranscriber:
    def test_uses_xai_endpoint(self, fake_session, make_response, audio_file):
        fake_session.request.return_value = make_response(200, json_body=VERBOSE_JSON)
        segments = GrokTranscriber(session=fake_session).transcribe(str(audio_file), "xai-test", "grok-stt")
        assert len(segments) == 2
        args, kwargs = fake_session.request.call_args
        assert args[1] == "https://api.x.ai/v1/audio/transcriptions"
        assert kwargs["headers"] == {"Authorization": "Bearer xai-test"}
        assert ("model", "grok-stt") in kwargs["data"]
