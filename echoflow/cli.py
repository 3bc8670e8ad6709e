"""Command-Line Interface handler for EchoFlow."""

import argparse
import logging
import os
import sys
from typing import Dict, Optional

from .audio_normalizer import AudioNormalizer
from .config_loader import ConfigLoader, DEFAULT_CONFIG, merge_config, resolve_api_key
from .drift import correct_drift
from .exceptions import EchoFlowError, ConfigurationError
from .log_setup import setup_logging
from .models import Track, TranscriptionProvider
from .sentence_index import SentenceIndex
from .subtitle_codec import SRTCodec, format_timestamp
from .transcription_service import TranscriptionService

logger = logging.getLogger(__name__)


def load_runtime_config(config_path: str, log_level: int, allow_missing: bool = True) -> dict:
    """
    Sets up logging, loads the YAML config and re-applies log settings from it.

    A missing config file falls back to DEFAULT_CONFIG when ``allow_missing``.
    """
    setup_logging(log_level=log_level, log_dir='logs', log_file='echoflow_init.log')
    try:
        config = ConfigLoader().load_config(config_path)
    except FileNotFoundError:
        if not allow_missing:
            raise
        logger.warning(f"Configuration file not found: {config_path}. Using defaults.")
        config = merge_config(DEFAULT_CONFIG, {})
    setup_logging(log_level=log_level, log_dir=config.get('log_dir', 'logs'), log_file=config.get('log_file', 'echoflow.log'))
    return config


def build_service(config: dict) -> TranscriptionService:
    normalizer = AudioNormalizer(
        ffmpeg_path=config.get('ffmpeg_path'),
        ffprobe_path=config.get('ffprobe_path'),
        temp_dir=config.get('temp_dir')
    )
    return TranscriptionService(normalizer, config=config)


class CLIHandler:
    """Parses arguments and dispatches EchoFlow subcommands."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            "-c", "--config",
            default="config.yaml",
            help="Path to the configuration YAML file."
        )
        common.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        common.add_argument(
            "--temp-dir",
            default=None,
            help="Override the temporary directory for normalized audio."
        )

        parser = argparse.ArgumentParser(
            description="EchoFlow: transcribe audio with AI providers and keep transcripts in sync.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        transcribe = subparsers.add_parser(
            "transcribe", parents=[common],
            help="Transcribe an audio file to SRT.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        transcribe.add_argument("-a", "--audio", required=True, help="Path to the input audio file.")
        transcribe.add_argument("-o", "--output", default=None, help="Output .srt path (defaults to beside the audio).")
        transcribe.add_argument(
            "--provider", default=None,
            choices=[p.value for p in TranscriptionProvider],
            help="Override the provider from the config."
        )
        transcribe.add_argument("--model", default=None, help="Override the model id from the config.")
        transcribe.add_argument("--language", default=None, help="Override the language hint (empty for auto).")

        lookup = subparsers.add_parser(
            "lookup", parents=[common],
            help="Print the sentence active at a playback time.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        lookup.add_argument("-s", "--subtitles", required=True, help="Path to the .srt file.")
        lookup.add_argument("--at", type=float, required=True, help="Playback time in seconds.")
        lookup.add_argument("--previous-id", type=int, default=None, help="Previously active sentence id.")

        rescale = subparsers.add_parser(
            "rescale", parents=[common],
            help="Rescale an .srt file's timestamps to an audio file's duration.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        rescale.add_argument("-s", "--subtitles", required=True, help="Path to the .srt file.")
        rescale.add_argument("-a", "--audio", required=True, help="Audio file whose duration is authoritative.")
        rescale.add_argument("-o", "--output", default=None, help="Output .srt path (defaults to overwriting the input).")

        return parser

    def run(self, argv: Optional[list] = None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the subcommand."""
        args = self.parser.parse_args(argv)
        log_level = getattr(logging, args.log_level.upper(), logging.INFO)

        try:
            config = load_runtime_config(args.config, log_level)
        except ConfigurationError as e:
            logger.critical(f"Failed to load configuration from {args.config}: {e}", exc_info=True)
            sys.exit(1)

        if args.temp_dir:
            logger.info(f"Overriding temp_dir from config with CLI argument: {args.temp_dir}")
            config['temp_dir'] = args.temp_dir

        handlers = {
            "transcribe": self._transcribe,
            "lookup": self._lookup,
            "rescale": self._rescale,
        }
        try:
            handlers[args.command](args, config)
            sys.exit(0)
        except (EchoFlowError, FileNotFoundError) as e:
            logger.error(f"An EchoFlow error occurred: {e}")
            sys.exit(1)
        except KeyboardInterrupt:
             logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
             sys.exit(1)
        except Exception as e:
             logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
             sys.exit(2)

    def _transcribe(self, args: argparse.Namespace, config: Dict) -> None:
        if not os.path.isfile(args.audio):
            raise FileNotFoundError(f"Input audio file not found or is not a file: {args.audio}")

        provider = TranscriptionProvider.from_id(args.provider or config.get('provider', 'openai'))
        model = args.model or config.get('transcription_model', 'whisper-1')
        language = args.language if args.language is not None else (config.get('transcription_language') or '')
        output_path = args.output or os.path.splitext(args.audio)[0] + ".srt"

        service = build_service(config)
        track = Track(
            audio_path=args.audio,
            display_name=os.path.splitext(os.path.basename(args.audio))[0]
        )
        segments = service.transcribe_track(
            track, provider, resolve_api_key(config, provider), model, language
        )
        SRTCodec().write(segments, output_path)
        logger.info(f"Transcript saved to: {output_path}")
        print(output_path)

    def _lookup(self, args: argparse.Namespace, config: Dict) -> None:
        index = SentenceIndex(SRTCodec().read(args.subtitles))
        active_id = index.lookup_active(args.at, args.previous_id)
        if active_id is None:
            print(f"No sentence at {format_timestamp(args.at)}")
            return
        segment = index[active_id]
        print(f"[{active_id}] {format_timestamp(segment.start_time)} --> {format_timestamp(segment.end_time)} {segment.text}")

    def _rescale(self, args: argparse.Namespace, config: Dict) -> None:
        codec = SRTCodec()
        segments = codec.read(args.subtitles)
        duration = build_service(config).normalizer.probe(args.audio).duration
        rescaled = correct_drift(segments, duration, float(config.get('drift_tolerance', 0.02)))
        output_path = args.output or args.subtitles
        codec.write(rescaled, output_path)
        logger.info(f"Rescaled subtitles saved to: {output_path}")


def main() -> None:
    CLIHandler().run()
