"""Job lifecycle orchestration on top of the API client.

Exports SpeechService, which sweeps old transcriptions, submits a new one,
polls until it is resolved and fetches its results.
"""

from azure_batch_stt.core.speech_service import (
    CleanupStrategy,
    SpeechService,
    TranscriptionFailedError,
)

__all__ = ["CleanupStrategy", "SpeechService", "TranscriptionFailedError"]
