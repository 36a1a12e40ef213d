"""Shared test fixtures for the azure_batch_stt test suite.

WHY: Client and orchestrator tests need a speech service that behaves like
the real Batch Speech-to-Text v3.0 API (paged listings with @nextLink, self
links, file listings, result blobs) without any network access.

HOW: FakeSpeechService keeps transcriptions in memory and answers requests
through httpx.MockTransport. Each transcription can follow a status script;
the fake's sleep() advances every script by one step, so the orchestrator's
poll delay doubles as the service's clock.

RULES:
- Never talks to the network
- Listing pages hold page_size items; nextLink is absolute, like the service's
- Result blobs live on a separate host to exercise absolute content URLs
- The retry policy used by make_client never really sleeps
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from azure_batch_stt.api.client import BatchClient
from azure_batch_stt.api.retry import RetryPolicy
from azure_batch_stt.config import SpeechServiceOptions

REGION = "westus"
API_KEY = "test-subscription-key"
CONTAINER_URL = "https://audiostore.blob.core.windows.net/audio?sv=2020-08-04&sig=abc"
API_ROOT = "https://westus.api.cognitive.microsoft.com/speechtotext/v3.0"
BLOB_ROOT = "https://results.blob.core.windows.net/results"
TRANSCRIPTIONS_PATH = "/speechtotext/v3.0/transcriptions"


async def no_sleep(seconds: float) -> None:
    return None


class FakeSpeechService:
    """In-memory stand-in for the Batch Speech-to-Text API."""

    def __init__(self, page_size: int = 100, files_page_size: int = 100) -> None:
        self.page_size = page_size
        self.files_page_size = files_page_size
        self.transcriptions: Dict[str, Dict[str, Any]] = {}
        self.scripts: Dict[str, List[str]] = {}
        self.files: Dict[str, List[Dict[str, Any]]] = {}
        self.blobs: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.created_payloads: List[Dict[str, Any]] = []
        self.sleeps: List[float] = []
        # Statuses the next created transcription goes through (first = initial)
        self.next_script: List[str] = ["NotStarted"]
        self.next_error: Optional[str] = None
        # Ids that disappear between listing and deletion
        self.vanish_on_delete: set = set()
        self._counter = 0

    # ------------------------------------------------------------------
    # Test setup helpers
    # ------------------------------------------------------------------

    def self_uri(self, transcription_id: str) -> str:
        return f"{API_ROOT}/transcriptions/{transcription_id}"

    def add_transcription(
        self,
        status: str = "Succeeded",
        *,
        script: Optional[List[str]] = None,
        error: Optional[str] = None,
        display_name: str = "Someone else's job",
        result_files: int = 1,
    ) -> str:
        """Register a transcription and return its self URI."""
        self._counter += 1
        transcription_id = f"{self._counter:08d}-0000-4000-8000-000000000000"
        uri = self.self_uri(transcription_id)
        body: Dict[str, Any] = {
            "self": uri,
            "displayName": display_name,
            "locale": "en-US",
            "status": status,
            "links": {"files": uri + "/files"},
            "createdDateTime": "2024-05-01T10:00:00Z",
            "lastActionDateTime": "2024-05-01T10:05:00Z",
            "properties": {"wordLevelTimestampsEnabled": True, "timeToLive": "PT24H"},
        }
        if error:
            body["properties"]["error"] = {"code": "InvalidData", "message": error}
        self.transcriptions[transcription_id] = body
        self.scripts[transcription_id] = list(script or [])

        files = []
        for index in range(result_files):
            content_url = f"{BLOB_ROOT}/{transcription_id}/channel-{index}.json?sig=xyz"
            files.append({
                "self": f"{uri}/files/{index}",
                "name": f"contenturl_{index}.json",
                "kind": "Transcription",
                "links": {"contentUrl": content_url},
            })
            self.blobs[content_url] = {
                "source": f"https://audiostore.blob.core.windows.net/audio/call-{index}.wav",
                "timestamp": "2024-05-01T10:04:59Z",
                "durationInTicks": 41200000,
                "duration": "PT4.12S",
                "combinedRecognizedPhrases": [
                    {
                        "channel": 0,
                        "lexical": "hello world",
                        "itn": "hello world",
                        "maskedITN": "hello world",
                        "display": f"Hello world {index}.",
                    }
                ],
                "recognizedPhrases": [],
            }
        files.append({
            "self": f"{uri}/files/report",
            "name": "report.json",
            "kind": "TranscriptionReport",
            "links": {"contentUrl": f"{BLOB_ROOT}/{transcription_id}/report.json"},
        })
        self.files[transcription_id] = files
        return uri

    def status_of(self, uri: str) -> Optional[str]:
        body = self.transcriptions.get(uri.rsplit("/", 1)[-1])
        return body["status"] if body else None

    def advance(self) -> None:
        """Move every scripted transcription one status forward."""
        for transcription_id, script in self.scripts.items():
            if script and transcription_id in self.transcriptions:
                self.transcriptions[transcription_id]["status"] = script.pop(0)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance()

    def requests_for(self, method: str, path_prefix: str = "") -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.startswith(path_prefix)
        ]

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "results.blob.core.windows.net":
            blob = self.blobs.get(str(request.url))
            if blob is None:
                return httpx.Response(404)
            return httpx.Response(200, json=blob)

        path = request.url.path
        if not path.startswith(TRANSCRIPTIONS_PATH):
            return httpx.Response(404)

        rest = path[len(TRANSCRIPTIONS_PATH):].strip("/")
        parts = rest.split("/") if rest else []

        if not parts and request.method == "GET":
            return self._page(
                request,
                list(self.transcriptions.values()),
                self.page_size,
                f"{API_ROOT}/transcriptions",
            )
        if not parts and request.method == "POST":
            return self._create(json.loads(request.content))
        if len(parts) == 1 and request.method == "DELETE":
            return self._delete(parts[0])
        if len(parts) == 2 and parts[1] == "files" and request.method == "GET":
            files = self.files.get(parts[0])
            if files is None:
                return httpx.Response(404)
            return self._page(
                request,
                files,
                self.files_page_size,
                f"{API_ROOT}/transcriptions/{parts[0]}/files",
            )
        return httpx.Response(404)

    def _page(
        self,
        request: httpx.Request,
        items: List[Dict[str, Any]],
        default_top: int,
        link_base: str,
    ) -> httpx.Response:
        skip = int(request.url.params.get("skip", 0))
        top = int(request.url.params.get("top", default_top))
        body: Dict[str, Any] = {"values": items[skip:skip + top]}
        if skip + top < len(items):
            body["@nextLink"] = f"{link_base}?skip={skip + top}&top={top}"
        return httpx.Response(200, json=body)

    def _create(self, payload: Dict[str, Any]) -> httpx.Response:
        self.created_payloads.append(payload)
        script = list(self.next_script)
        uri = self.add_transcription(
            script.pop(0),
            script=script,
            error=self.next_error,
            display_name=payload.get("displayName", ""),
        )
        body = dict(self.transcriptions[uri.rsplit("/", 1)[-1]])
        return httpx.Response(201, json=body, headers={"Location": uri})

    def _delete(self, transcription_id: str) -> httpx.Response:
        if transcription_id in self.vanish_on_delete:
            self.transcriptions.pop(transcription_id, None)
        if transcription_id not in self.transcriptions:
            return httpx.Response(
                404,
                json={"code": "NotFound", "message": "Entity not found."},
            )
        del self.transcriptions[transcription_id]
        return httpx.Response(204)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def options():
    """Speech service options pointing at the fake westus endpoint."""
    return SpeechServiceOptions(
        region=REGION,
        api_key=API_KEY,
        audio_container_url=CONTAINER_URL,
    )


@pytest.fixture
def fake_service():
    return FakeSpeechService()


@pytest.fixture
def make_client(options, fake_service):
    """Factory for BatchClients wired to the fake service.

    Pass handler= to answer requests with a custom function instead.
    """

    def _make(handler=None, sleep=no_sleep, on_status=None, client_options=None):
        transport = httpx.MockTransport(handler or fake_service.handler)
        return BatchClient(
            client_options or options,
            retry_policy=RetryPolicy(sleep=sleep, on_status=on_status),
            transport=transport,
        )

    return _make
