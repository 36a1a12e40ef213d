"""Async HTTP client for the Azure Batch Speech-to-Text v3.0 API.

WHY: The demo needs to list, create and delete transcription jobs, list
the files of finished jobs and download recognition results. This module
hides the HTTP details (host, auth header, pagination cursors, retries,
error mapping) behind one client class so the orchestrator only deals
with typed models.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. BatchClient is an async
context manager: entering it opens one connection pool bound to
https://{region}.api.cognitive.microsoft.com/ with the subscription key
header, exiting closes it. Every request runs through a RetryPolicy, and
every non-success response is turned into a ServiceError.

RULES:
- Always use the async context manager (async with BatchClient(...) as client:)
- Each operation makes exactly one logical request (retries aside)
- Continuation and resource links are requested by path and query against
  the configured host; result content links are fetched as absolute URLs
- Missing required URIs raise ValueError, never ServiceError
- 401/403/404/415 map to fixed messages; 400 uses the body's "message"
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel

from azure_batch_stt.api.models import (
    PaginatedFiles,
    PaginatedTranscriptions,
    RecognitionResult,
    Transcription,
    TranscriptionFile,
)
from azure_batch_stt.api.retry import RetryPolicy
from azure_batch_stt.config import (
    REQUEST_TIMEOUT_S,
    SPEECH_API_BASE_PATH,
    SUBSCRIPTION_KEY_HEADER,
    SpeechServiceOptions,
)

logger = logging.getLogger(__name__)

TRANSCRIPTIONS_PATH = SPEECH_API_BASE_PATH + "transcriptions"

M = TypeVar("M", bound=BaseModel)


class ServiceError(Exception):
    """Raised when the speech service answers with a non-success status.

    WHY: Callers need a typed exception to tell remote failures apart from
    network errors (httpx) and from misuse of the client (ValueError).

    HOW: Built from the failed response by from_response(), which resolves
    a human-readable message for the common status codes.

    RULES:
    - Always carries status_code and message
    - reason_phrase is an alias of message
    """

    _CANNED_MESSAGES = {
        401: "Not authorized to see the resource.",
        403: "No permission to access this resource.",
        404: "The resource could not be found.",
        415: "The file type isn't supported.",
    }

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Speech service error {status_code}: {message}")

    @property
    def reason_phrase(self) -> str:
        return self.message

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @classmethod
    def from_response(cls, response: httpx.Response) -> ServiceError:
        """Map a failed response to a ServiceError with a resolved message."""
        status = response.status_code
        if status in cls._CANNED_MESSAGES:
            return cls(status, cls._CANNED_MESSAGES[status])
        if status == 400:
            message = _body_message(response)
            if message:
                return cls(status, message)
        return cls(status, response.reason_phrase)


def _body_message(response: httpx.Response) -> Optional[str]:
    """Extract {"message": "..."} from an error body, if there is one."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    message = data.get("message", data.get("Message"))
    if isinstance(message, str) and message:
        return message
    return None


def _path_and_query(uri: str) -> str:
    """Reduce a service link to its path and query string."""
    return httpx.URL(uri).raw_path.decode("ascii")


class BatchClient:
    """Async client for the Batch Speech-to-Text transcription endpoints.

    WHY: One object owns the connection pool, auth and retry behavior, so
    the orchestrator can issue one request at a time without repeating any
    of that.

    HOW: Wraps httpx.AsyncClient (base URL, subscription key header, 25
    minute timeout). A custom transport can be injected for tests.

    RULES:
    - Use as: async with BatchClient(options) as client: ...
    - retry_policy defaults to RetryPolicy(on_status=on_status)
    - on_status, when given, receives human-readable retry notices
    """

    def __init__(
        self,
        options: SpeechServiceOptions,
        *,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self._options = options
        self._retry = retry_policy or RetryPolicy(on_status=on_status)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> BatchClient:
        self._client = httpx.AsyncClient(
            base_url=self._options.base_url,
            headers={SUBSCRIPTION_KEY_HEADER: self._options.api_key},
            timeout=httpx.Timeout(REQUEST_TIMEOUT_S),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "BatchClient must be used as an async context manager: "
                "async with BatchClient(options) as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _send(self, send: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        response = await self._retry.execute(send)
        if not response.is_success:
            error = ServiceError.from_response(response)
            logger.debug(
                "%s %s failed: %s",
                response.request.method,
                response.request.url,
                error,
            )
            raise error
        return response

    async def _get(self, url: str, model: Type[M]) -> M:
        client = self._ensure_client()
        response = await self._send(lambda: client.get(url))
        return model.model_validate(response.json())

    # ------------------------------------------------------------------
    # Transcriptions
    # ------------------------------------------------------------------

    async def list_transcriptions(
        self, continuation: str | None = None
    ) -> PaginatedTranscriptions:
        """Fetch one page of the transcription collection.

        Args:
            continuation: The @nextLink of the previous page, or None for
                the first page.

        Returns:
            The requested page.

        Raises:
            ServiceError: On a non-success response.
        """
        path = TRANSCRIPTIONS_PATH if continuation is None else _path_and_query(continuation)
        return await self._get(path, PaginatedTranscriptions)

    async def iter_transcriptions(self) -> AsyncIterator[Transcription]:
        """Yield every transcription in the account, following @nextLink."""
        continuation: str | None = None
        while True:
            page = await self.list_transcriptions(continuation)
            for transcription in page.values:
                yield transcription
            if page.next_link is None:
                return
            continuation = page.next_link

    async def create_transcription(self, transcription: Transcription) -> Transcription:
        """Submit a new transcription job.

        WHY: POST /transcriptions echoes the created resource, including the
        self URI that identifies the job from then on.

        RULES:
        - The payload omits every field left as None
        - Raises ValueError if transcription is None
        - Raises ServiceError on non-success responses

        Args:
            transcription: The job definition.

        Returns:
            The created transcription as reported by the service.
        """
        if transcription is None:
            raise ValueError("transcription is required")

        client = self._ensure_client()
        payload = transcription.to_wire()
        response = await self._send(lambda: client.post(TRANSCRIPTIONS_PATH, json=payload))
        return Transcription.model_validate(response.json())

    async def delete_transcription(self, self_uri: str) -> None:
        """Delete a transcription by its self URI.

        Raises:
            ValueError: If self_uri is missing.
            ServiceError: On a non-success response; 404 when the
                transcription is unknown or already deleted.
        """
        if not self_uri:
            raise ValueError("self_uri is required")

        client = self._ensure_client()
        path = _path_and_query(self_uri)
        await self._send(lambda: client.delete(path))

    # ------------------------------------------------------------------
    # Files and results
    # ------------------------------------------------------------------

    async def list_files(self, files_uri: str) -> PaginatedFiles:
        """Fetch one page of a transcription's file listing."""
        if not files_uri:
            raise ValueError("files_uri is required")
        return await self._get(_path_and_query(files_uri), PaginatedFiles)

    async def iter_files(self, files_uri: str) -> AsyncIterator[TranscriptionFile]:
        """Yield every file of a transcription, following @nextLink."""
        page = await self.list_files(files_uri)
        while True:
            for file in page.values:
                yield file
            if page.next_link is None:
                return
            page = await self.list_files(page.next_link)

    async def get_result(self, content_uri: str) -> RecognitionResult:
        """Download and parse one recognition result.

        The content URI points at blob storage (usually with a SAS token),
        so it is requested verbatim rather than against the API host.
        """
        if not content_uri:
            raise ValueError("content_uri is required")
        return await self._get(content_uri, RecognitionResult)
