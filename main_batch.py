#!/usr/bin/env python3
"""
EchoFlow Batch Processing Entry Point

Transcribes every audio track in a folder that does not have a subtitle file
yet, writing <name>.srt next to each audio file.
"""

import argparse
import logging
import os
import sys
import time

# Progress bar library
from tqdm import tqdm

from echoflow.cli import build_service, load_runtime_config
from echoflow.config_loader import resolve_api_key
from echoflow.exceptions import EchoFlowError, ConfigurationError
from echoflow.library import find_tracks
from echoflow.models import TranscriptionProvider
from echoflow.subtitle_codec import SRTCodec

logger = logging.getLogger(__name__)


def run_batch_processing():
    """Parses arguments, sets up, and runs the batch transcription."""
    parser = argparse.ArgumentParser(
        description="EchoFlow Batch: transcribe every untranscribed audio file in a directory.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "-i", "--input-dir",
        required=True,
        help="Directory containing the input audio files."
    )
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to the configuration YAML file."
    )
    parser.add_argument(
        "--temp-dir",
        default=None,
        help="Override the temporary directory specified in the config file."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level for console and file output."
    )
    parser.add_argument(
        "--provider",
        default=None,
        choices=[p.value for p in TranscriptionProvider],
        help="Override the provider specified in the config file."
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Re-transcribe tracks that already have a subtitle file."
    )

    args = parser.parse_args()
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)

    try:
        config = load_runtime_config(args.config, log_level)
    except ConfigurationError as e:
        logger.critical(f"Failed to load configuration: {e}", exc_info=True)
        sys.exit(1)

    if args.temp_dir:
        logger.info(f"Overriding temp_dir from config with CLI argument: {args.temp_dir}")
        config['temp_dir'] = args.temp_dir

    # --- Find Tracks ---
    try:
        tracks = find_tracks(args.input_dir, config.get('audio_extensions') or ['.mp3'])
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Input directory error: {e}")
        sys.exit(1)

    pending = [t for t in tracks if args.overwrite or not t.subtitle_path]
    if not pending:
        logger.warning(f"No untranscribed audio files found in {args.input_dir}. Exiting.")
        sys.exit(0)

    # --- Initialize Components (ONCE) ---
    try:
        provider = TranscriptionProvider.from_id(args.provider or config.get('provider', 'openai'))
        api_key = resolve_api_key(config, provider)
        if not api_key:
            logger.critical(f"No API key configured for {provider.value}.")
            sys.exit(1)
        service = build_service(config)
    except EchoFlowError as e:
        logger.critical(f"Failed to initialize EchoFlow components: {e}", exc_info=True)
        sys.exit(1)

    model = config.get('transcription_model', 'whisper-1')
    language = config.get('transcription_language') or ''
    codec = SRTCodec()

    total_files = len(pending)
    files_processed = 0
    files_failed = 0
    batch_start_time = time.time()

    logger.info(f"--- Starting Batch Transcription for {total_files} files with {provider.value} ---")

    with tqdm(total=total_files, unit="track", desc="Starting Batch") as pbar:
        for track in pending:
            pbar.set_description(f"Processing: {track.display_name[:30]}...")
            output_path = os.path.splitext(track.audio_path)[0] + ".srt"
            try:
                track_start_time = time.time()
                segments = service.transcribe_track(track, provider, api_key, model, language)
                codec.write(segments, output_path)
                logger.info(
                    f"Transcribed '{track.display_name}' ({len(segments)} segments, "
                    f"{time.time() - track_start_time:.2f}s) -> {output_path}"
                )
                files_processed += 1
            except (EchoFlowError, FileNotFoundError) as e:
                logger.error(f"Transcription failed for '{track.display_name}': {e}")
                files_failed += 1
            except KeyboardInterrupt:
                logger.warning("Batch process interrupted by user (Ctrl+C). Exiting.")
                sys.exit(1)
            except Exception as e:
                logger.error(f"An unexpected error occurred processing '{track.display_name}': {e}", exc_info=True)
                files_failed += 1
            finally:
                pbar.update(1)

    logger.info("--- Batch Transcription Finished ---")
    logger.info(f"Total time: {time.time() - batch_start_time:.2f} seconds")
    logger.info(f"Successfully processed: {files_processed}/{total_files} tracks")
    logger.info(f"Failed: {files_failed}/{total_files} tracks")

    sys.exit(1 if files_failed > 0 else 0)


if __name__ == "__main__":
    if sys.version_info < (3, 9):
        sys.stderr.write("EchoFlow requires Python 3.9 or later.\n")
        sys.exit(1)

    run_batch_processing()
