"""Batch Speech-to-Text API package: async HTTP interface to the Azure service.

WHY: Listing, creating and deleting transcriptions, and fetching their
results, all go through the same host, auth header, retry behavior and
error mapping. This package keeps that in one place.

HOW: BatchClient (client.py) wraps httpx.AsyncClient and a RetryPolicy
(retry.py). Response bodies are parsed into pydantic models (models.py).

RULES:
- All HTTP calls go through BatchClient (no direct httpx usage elsewhere)
- Authentication is via the Ocp-Apim-Subscription-Key header
- Non-success responses surface as ServiceError
"""

from azure_batch_stt.api.client import BatchClient, ServiceError
from azure_batch_stt.api.models import (
    ArtifactKind,
    RecognitionResult,
    Transcription,
    TranscriptionFile,
    TranscriptionStatus,
)
from azure_batch_stt.api.retry import RetryPolicy

__all__ = [
    "ArtifactKind",
    "BatchClient",
    "RecognitionResult",
    "RetryPolicy",
    "ServiceError",
    "Transcription",
    "TranscriptionFile",
    "TranscriptionStatus",
]
