"""Command-line interface for the Batch Speech-to-Text demo.

WHY: The demo is run from a terminal: it needs credentials from somewhere,
a few knobs for the lifecycle (cleanup strategy, poll interval, failure
handling), and it should leave the output on screen for the operator once
the batch is done.

HOW: Uses argparse for flags, config.load_options() for credentials, and
runs SpeechService.transcribe() via asyncio.run(). Status messages go to
stderr. After the run the process waits for Enter unless --no-wait.

RULES:
- Credentials: --settings file < environment/.env < --region/--api-key/...
- --cleanup chooses all | completed | none (default: completed)
- --keep-waiting-on-failure keeps polling after a tracked job fails
- Exit codes: 0 success, 1 configuration/service/transcription error,
  130 interrupted
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from azure_batch_stt.api.client import BatchClient, ServiceError
from azure_batch_stt.api.models import RecognitionResult
from azure_batch_stt.config import load_options, load_poll_interval
from azure_batch_stt.core.speech_service import (
    CleanupStrategy,
    SpeechService,
    TranscriptionFailedError,
)

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    """Print a status message to stderr and flush immediately."""
    print(msg, file=sys.stderr, flush=True)


async def _run(args: argparse.Namespace) -> List[RecognitionResult]:
    options = load_options(
        settings_path=Path(args.settings) if args.settings else None,
        region=args.region,
        api_key=args.api_key,
        audio_container_url=args.container_url,
        custom_model=args.custom_model,
    )
    poll_interval = load_poll_interval(args.poll_interval)
    logger.debug("Using %r", options)

    async with BatchClient(options, on_status=_status) as client:
        service = SpeechService(
            client,
            options,
            cleanup=CleanupStrategy(args.cleanup),
            poll_interval=poll_interval,
            stop_on_failure=not args.keep_waiting_on_failure,
            on_status=_status,
        )
        return await service.transcribe()


def _wait_for_operator() -> None:
    _status("Press Enter to exit...")
    try:
        input()
    except EOFError:
        pass
    except KeyboardInterrupt:
        sys.exit(130)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="azure_batch_stt",
        description="Submit a batch transcription of an Azure blob container "
                    "and print the recognized text when it is done.",
    )

    parser.add_argument(
        "--settings",
        default=None,
        help="JSON settings file with a 'SpeechService' section "
             "(Region, ApiKey, AudioBlobContainer, CustomModel).",
    )

    parser.add_argument(
        "--region",
        default=None,
        help="Azure region of the speech resource (env: SPEECH_REGION).",
    )

    parser.add_argument(
        "--api-key",
        default=None,
        help="Speech resource subscription key (env: SPEECH_API_KEY).",
    )

    parser.add_argument(
        "--container-url",
        default=None,
        help="SAS URL of the blob container with the audio "
             "(env: SPEECH_AUDIO_CONTAINER_URL).",
    )

    parser.add_argument(
        "--custom-model",
        default=None,
        help="Self URI of a custom speech model to use (env: SPEECH_CUSTOM_MODEL).",
    )

    parser.add_argument(
        "--cleanup",
        choices=[s.value for s in CleanupStrategy],
        default=CleanupStrategy.COMPLETED.value,
        help="Which existing transcriptions to delete before submitting "
             "(default: %(default)s).",
    )

    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between status checks (env: SPEECH_POLL_INTERVAL, default: 60).",
    )

    parser.add_argument(
        "--keep-waiting-on-failure",
        action="store_true",
        help="Keep polling when the submitted transcription fails instead of exiting.",
    )

    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Exit as soon as the batch is done instead of waiting for Enter.",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m azure_batch_stt`` and ``azure-batch-stt``.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except ValueError as e:
        # Config errors (missing region/key/container, bad settings file)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except TranscriptionFailedError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ServiceError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except httpx.HTTPError as e:
        print(f"Error: request failed after retries: {e}", file=sys.stderr)
        sys.exit(1)

    _status("Finished processing batch transcription.")
    if not args.no_wait:
        _wait_for_operator()


if __name__ == "__main__":
    main()
