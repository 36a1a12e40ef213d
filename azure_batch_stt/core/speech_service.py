"""Transcription job lifecycle: sweep, submit, poll, fetch results.

WHY: A batch transcription is not a single request. The demo has to make
room in the account (old jobs count against quotas), submit a job, watch
the shared job listing until its own job finishes, then download the
recognized text. SpeechService owns that sequence so the CLI stays thin.

HOW: Built on a BatchClient. transcribe() runs four stages:
  sweep   : delete existing transcriptions per the CleanupStrategy
  submit  : create one job for the configured audio container
  poll    : enumerate the full listing every poll_interval seconds
  done    : return the recognition results of the tracked jobs

RULES:
- Only jobs created by this run (the tracked set) are counted as completed
  or have their results fetched; other jobs in the account are left alone
- Every enumeration follows @nextLink to the last page
- Results of a job are fetched once, the first time it is seen Succeeded
- No sleep after the pass that resolves the tracked set
- With stop_on_failure a failed tracked job resolves the set and
  transcribe() raises TranscriptionFailedError; without it the failure is
  reported and polling continues indefinitely
- 404 while deleting during the sweep is tolerated (someone got there first)
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional

from azure_batch_stt.api.client import BatchClient, ServiceError
from azure_batch_stt.api.models import (
    ArtifactKind,
    EntityReference,
    RecognitionResult,
    Transcription,
    TranscriptionProperties,
    TranscriptionStatus,
)
from azure_batch_stt.config import (
    DEFAULT_DISPLAY_NAME,
    DEFAULT_LOCALE,
    DEFAULT_POLL_INTERVAL_S,
    SpeechServiceOptions,
)

logger = logging.getLogger(__name__)

TIME_TO_LIVE = timedelta(days=1)


class CleanupStrategy(str, enum.Enum):
    """Which existing transcriptions the sweep deletes.

    RULES:
    - all: every transcription in the account, whatever its status
    - completed: only Succeeded and Failed transcriptions
    - none: skip the sweep
    """

    ALL = "all"
    COMPLETED = "completed"
    NONE = "none"

    def should_delete(self, transcription: Transcription) -> bool:
        if self is CleanupStrategy.ALL:
            return True
        if self is CleanupStrategy.COMPLETED:
            return transcription.status is not None and transcription.status.is_terminal
        return False


class TranscriptionFailedError(Exception):
    """Raised when a tracked transcription ends in the Failed state.

    Carries the error message of each failed job (keyed by self URI) and
    whatever results the successful jobs produced.
    """

    def __init__(
        self,
        failures: Dict[str, Optional[str]],
        results: Optional[List[RecognitionResult]] = None,
    ) -> None:
        self.failures = failures
        self.results = results or []
        details = "; ".join(
            f"{uri}: {message or 'no error detail'}"
            for uri, message in failures.items()
        )
        super().__init__(f"Transcription failed: {details}")


@dataclass
class PollSummary:
    """Counts gathered during one full enumeration of the listing."""

    completed: int = 0
    running: int = 0
    not_started: int = 0
    failed: int = 0

    def describe(self) -> str:
        text = (
            f"Transcriptions status: {self.completed} completed, "
            f"{self.running} running, {self.not_started} not started yet"
        )
        if self.failed:
            text += f", {self.failed} failed"
        return text


class SpeechService:
    """Drives one batch transcription from submission to results.

    WHY: Keeps the lifecycle policy (what to delete, when to stop polling,
    what to do about failures) separate from HTTP concerns.

    HOW: Calls BatchClient one request at a time. Progress is reported via
    on_status and the module logger; the poll delay goes through an
    injectable sleep so tests can run the loop instantly.

    RULES:
    - cleanup defaults to CleanupStrategy.COMPLETED
    - poll_interval defaults to 60 seconds
    - stop_on_failure defaults to True
    """

    def __init__(
        self,
        client: BatchClient,
        options: SpeechServiceOptions,
        *,
        cleanup: CleanupStrategy = CleanupStrategy.COMPLETED,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        stop_on_failure: bool = True,
        locale: str = DEFAULT_LOCALE,
        display_name: str = DEFAULT_DISPLAY_NAME,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        if not options.audio_container_url:
            raise ValueError("options.audio_container_url is required")
        self._client = client
        self._options = options
        self._cleanup = CleanupStrategy(cleanup)
        self._poll_interval = poll_interval
        self._stop_on_failure = stop_on_failure
        self._locale = locale
        self._display_name = display_name
        self._sleep = sleep
        self._on_status = on_status

    def _status(self, msg: str) -> None:
        logger.info(msg)
        if self._on_status:
            self._on_status(msg)

    async def transcribe(self) -> List[RecognitionResult]:
        """Run the whole lifecycle and return the recognition results.

        Raises:
            ServiceError: If any request fails with a non-retryable status.
            TranscriptionFailedError: If a tracked job fails and
                stop_on_failure is set.
        """
        await self.delete_existing_transcriptions()

        transcription = await self.create_transcription()
        created_transcriptions = [transcription.self_uri]

        self._status("Checking status.")
        return await self.poll_transcription_results(created_transcriptions)

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def delete_existing_transcriptions(self) -> int:
        """Delete existing transcriptions selected by the cleanup strategy.

        The whole listing is read before anything is deleted, so deletions
        cannot shift the paging cursor.

        Returns:
            Number of transcriptions deleted.
        """
        if self._cleanup is CleanupStrategy.NONE:
            self._status("Skipping cleanup of existing transcriptions.")
            return 0

        if self._cleanup is CleanupStrategy.ALL:
            self._status("Deleting all existing transcriptions.")
        else:
            self._status("Deleting all existing completed transcriptions.")

        doomed = [
            transcription
            async for transcription in self._client.iter_transcriptions()
            if self._cleanup.should_delete(transcription)
        ]

        deleted = 0
        for transcription in doomed:
            try:
                await self._client.delete_transcription(transcription.self_uri)
            except ServiceError as e:
                if not e.is_not_found:
                    raise
                logger.info("Transcription %s was already gone", transcription.self_uri)
                continue
            deleted += 1
            self._status(f"Deleted transcription {transcription.self_uri}")

        return deleted

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def build_transcription(self) -> Transcription:
        """The job definition submitted by create_transcription()."""
        model = None
        if self._options.custom_model:
            model = EntityReference(self_uri=self._options.custom_model)

        return Transcription(
            display_name=self._display_name,
            locale=self._locale,
            content_container_url=self._options.audio_container_url,
            model=model,
            properties=TranscriptionProperties(
                word_level_timestamps_enabled=True,
                time_to_live=TIME_TO_LIVE,
            ),
        )

    async def create_transcription(self) -> Transcription:
        transcription = await self._client.create_transcription(self.build_transcription())
        self._status(f"Created transcription {transcription.self_uri}")
        return transcription

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------

    async def poll_transcription_results(
        self, created_transcriptions: Sequence[str]
    ) -> List[RecognitionResult]:
        """Poll the listing until every tracked transcription is resolved.

        WHY: The listing endpoint returns every job in the account, so the
        tracked set is what tells this run's jobs apart from everyone else's.

        HOW: Each pass enumerates all pages and tallies statuses. A tracked
        job seen Succeeded for the first time has its results fetched. The
        loop ends when the pass's resolved count reaches the tracked set
        size; otherwise it sleeps poll_interval seconds and starts over.

        Args:
            created_transcriptions: Self URIs of the jobs this run created.

        Returns:
            Recognition results of all tracked jobs, in fetch order.
        """
        tracked = set(created_transcriptions)
        fetched: set = set()
        failures: Dict[str, Optional[str]] = {}
        results: List[RecognitionResult] = []

        while True:
            summary = PollSummary()

            async for transcription in self._client.iter_transcriptions():
                status = transcription.status
                if status is TranscriptionStatus.SUCCEEDED:
                    if transcription.self_uri not in tracked:
                        continue
                    summary.completed += 1
                    if transcription.self_uri not in fetched:
                        fetched.add(transcription.self_uri)
                        results.extend(await self.get_transcription_results(transcription))
                elif status is TranscriptionStatus.RUNNING:
                    summary.running += 1
                elif status is TranscriptionStatus.NOT_STARTED:
                    summary.not_started += 1
                elif status is TranscriptionStatus.FAILED:
                    if transcription.self_uri not in tracked:
                        continue
                    summary.failed += 1
                    if transcription.self_uri not in failures:
                        failures[transcription.self_uri] = transcription.error_message
                        self._status(
                            "Transcription failed. Status: "
                            f"{transcription.error_message or 'no error detail'}"
                        )

            self._status(summary.describe())

            resolved = summary.completed
            if self._stop_on_failure:
                resolved += summary.failed
            if resolved >= len(tracked):
                break

            self._status(
                f"Waiting {self._poll_interval:g} seconds for transcription results..."
            )
            await self._sleep(self._poll_interval)

        if failures:
            raise TranscriptionFailedError(failures, results)
        return results

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def get_transcription_results(
        self, transcription: Transcription
    ) -> List[RecognitionResult]:
        """Fetch every Transcription-kind result file of a succeeded job.

        Follows the file listing across all pages.
        """
        files_uri = transcription.links.files if transcription.links else None
        result_files = [
            file
            async for file in self._client.iter_files(files_uri)
            if file.kind is ArtifactKind.TRANSCRIPTION
        ]
        self._status(f"Transcription succeeded. {len(result_files)} Results: ")

        results = []
        for result_file in result_files:
            result = await self._client.get_result(result_file.content_url)
            self._status(
                f"==== File: {result.source}. Combined recognized phrases:"
            )
            self._status(
                json.dumps(
                    [phrase.to_wire() for phrase in result.combined_recognized_phrases],
                    indent=2,
                )
            )
            results.append(result)
        return results
