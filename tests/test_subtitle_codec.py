"""Unit tests for the SRT codec."""

import pytest

from echoflow.exceptions import FormattingError
from echoflow.models import Segment
from echoflow.subtitle_codec import (
    SRTCodec,
    format_timestamp,
    generate_subtitles,
    parse_subtitles,
    parse_timestamp,
)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

class TestParseTimestamp:
    def test_comma_separator(self):
        assert parse_timestamp("01:02:03,500") == 3723.5

    def test_period_separator(self):
        assert parse_timestamp("00:00:01.250") == 1.25

    def test_surrounding_whitespace(self):
        assert parse_timestamp("  00:00:02,000 ") == 2.0

    @pytest.mark.parametrize("value", ["", "00:01", "aa:bb:cc,ddd", "00:00:01,000 X1:10", "1.5"])
    def test_invalid(self, value):
        assert parse_timestamp(value) is None


class TestFormatTimestamp:
    def test_basic(self):
        assert format_timestamp(3723.5) == "01:02:03,500"

    def test_truncates_not_rounds(self):
        assert format_timestamp(1.9999) == "00:00:01,999"

    def test_float_error_does_not_lose_a_millisecond(self):
        assert format_timestamp(1.001) == "00:00:01,001"

    def test_negative_clamped_to_zero(self):
        assert format_timestamp(-3.0) == "00:00:00,000"


# ---------------------------------------------------------------------------
# parse_subtitles
# ---------------------------------------------------------------------------

class TestParseSubtitles:
    def test_basic(self, sample_srt):
        segments = parse_subtitles(sample_srt)
        assert segments == [
            Segment(id=0, start_time=0.0, end_time=5.0, text="Hello there."),
            Segment(id=1, start_time=5.0, end_time=10.0, text="How are you doing today?"),
            Segment(id=2, start_time=10.0, end_time=15.0, text="Fine, thanks."),
        ]

    def test_empty_input(self):
        assert parse_subtitles("") == []

    def test_garbage_input(self):
        assert parse_subtitles("not a subtitle file\n\nat all") == []

    def test_crlf_and_cr_line_endings(self, sample_srt):
        crlf = sample_srt.replace("\n", "\r\n")
        cr = sample_srt.replace("\n", "\r")
        assert parse_subtitles(crlf) == parse_subtitles(sample_srt)
        assert parse_subtitles(cr) == parse_subtitles(sample_srt)

    def test_ids_ignore_source_numbering(self):
        raw = (
            "7\n00:00:01,000 --> 00:00:02,000\nfirst\n\n"
            "7\n00:00:02,000 --> 00:00:03,000\nsecond\n\n"
            "x\n00:00:03,000 --> 00:00:04,000\nthird\n"
        )
        assert [s.id for s in parse_subtitles(raw)] == [0, 1, 2]

    def test_two_line_block_is_skipped(self):
        raw = (
            "1\n00:00:01,000 --> 00:00:02,000\n\n"
            "2\n00:00:02,000 --> 00:00:03,000\nkept\n"
        )
        segments = parse_subtitles(raw)
        assert [(s.id, s.text) for s in segments] == [(0, "kept")]

    def test_unparsable_timestamp_is_skipped(self):
        raw = (
            "1\n00:00:xx,000 --> 00:00:02,000\nbad\n\n"
            "2\n00:00:02,000 --> 00:00:03,000\ngood\n"
        )
        assert [s.text for s in parse_subtitles(raw)] == ["good"]

    def test_wrong_arrow_count_is_skipped(self):
        raw = (
            "1\n00:00:01,000 --> 00:00:02,000 --> 00:00:03,000\nthree\n\n"
            "2\n00:00:01,000 00:00:02,000\nnone\n"
        )
        assert parse_subtitles(raw) == []

    def test_multiple_blank_lines_between_blocks(self):
        raw = (
            "1\n00:00:01,000 --> 00:00:02,000\none\n\n\n  \n"
            "2\n00:00:02,000 --> 00:00:03,000\ntwo\n"
        )
        assert [s.text for s in parse_subtitles(raw)] == ["one", "two"]

    def test_period_fraction_separator(self):
        raw = "1\n00:00:01.500 --> 00:00:02.750\ntext\n"
        segment = parse_subtitles(raw)[0]
        assert (segment.start_time, segment.end_time) == (1.5, 2.75)

    def test_malformed_range_is_accepted(self):
        raw = "1\n00:00:05,000 --> 00:00:01,000\nbackwards\n"
        segment = parse_subtitles(raw)[0]
        assert (segment.start_time, segment.end_time) == (5.0, 1.0)

    def test_out_of_order_blocks_are_sorted(self):
        raw = (
            "1\n00:00:10,000 --> 00:00:12,000\nlater\n\n"
            "2\n00:00:01,000 --> 00:00:02,000\nearlier\n"
        )
        segments = parse_subtitles(raw)
        assert [(s.id, s.text) for s in segments] == [(0, "earlier"), (1, "later")]


# ---------------------------------------------------------------------------
# generate_subtitles
# ---------------------------------------------------------------------------

class TestGenerateSubtitles:
    def test_exact_output(self):
        segments = [
            Segment(id=0, start_time=0.0, end_time=1.5, text="a"),
            Segment(id=1, start_time=2.0, end_time=3.25, text="b"),
        ]
        assert generate_subtitles(segments) == (
            "1\n00:00:00,000 --> 00:00:01,500\na\n\n"
            "2\n00:00:02,000 --> 00:00:03,250\nb\n\n"
        )

    def test_empty(self):
        assert generate_subtitles([]) == ""

    def test_round_trip_preserves_times_and_text(self):
        segments = [
            Segment(id=4, start_time=0.5, end_time=1.25, text="one"),
            Segment(id=9, start_time=61.75, end_time=62.0, text="two words"),
            Segment(id=1, start_time=3723.5, end_time=3725.125, text="three"),
        ]
        parsed = parse_subtitles(generate_subtitles(segments))
        assert [(s.start_time, s.end_time, s.text) for s in parsed] == [
            (s.start_time, s.end_time, s.text) for s in segments
        ]
        assert [s.id for s in parsed] == [0, 1, 2]

    def test_round_trip_of_parsed_file(self, sample_srt):
        segments = parse_subtitles(sample_srt)
        assert parse_subtitles(generate_subtitles(segments)) == segments


# ---------------------------------------------------------------------------
# SRTCodec file I/O
# ---------------------------------------------------------------------------

class TestSRTCodec:
    def test_read(self, sample_srt_path):
        segments = SRTCodec().read(str(sample_srt_path))
        assert len(segments) == 3

    def test_read_with_bom(self, tmp_path):
        path = tmp_path / "bom.srt"
        path.write_bytes("\ufeff1\n00:00:00,000 --> 00:00:01,000\nhi\n".encode("utf-8"))
        assert SRTCodec().read(str(path))[0].text == "hi"

    def test_read_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SRTCodec().read(str(tmp_path / "missing.srt"))

    def test_write_uses_lf(self, tmp_path, three_segments):
        path = tmp_path / "out.srt"
        SRTCodec().write(three_segments, str(path))
        data = path.read_bytes()
        assert b"\r\n" not in data
        assert data.startswith(b"1\n00:00:00,000 --> 00:00:05,000\na\n\n")

    def test_write_to_missing_directory(self, tmp_path, three_segments):
        with pytest.raises(FormattingError):
            SRTCodec().write(three_segments, str(tmp_path / "nope" / "out.srt"))
