"""Batch Speech-to-Text v3.0 wire models.

WHY: The service speaks camelCase JSON with a few quirks (an "@nextLink"
cursor, a "self" identity link, enums that older deployments send as
numbers). Typed models keep those quirks in one place so the client and
the orchestrator only ever see Python attributes.

HOW: Every model derives from _WireModel, a pydantic BaseModel configured
with a camelCase alias generator. Enums are str-valued so they serialize as
their names; a before-validator also accepts the numeric ordinal on read.
to_wire() produces the outgoing payload.

RULES:
- Keys are camelCase on the wire, snake_case in Python
- Enums are written as names, read from names or ordinals
- Datetimes are written as yyyy-MM-ddTHH:mm:ssZ (UTC)
- Fields set to None are omitted on write and read back as None
- URIs are kept as plain strings (the service treats them as opaque)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

WIRE_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TranscriptionStatus(str, Enum):
    """Lifecycle state of a transcription, driven entirely by the service.

    RULES:
    - NotStarted -> Running -> Succeeded | Failed
    - Declaration order matches the service's numeric ordinals
    """

    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TranscriptionStatus.SUCCEEDED, TranscriptionStatus.FAILED)


class ArtifactKind(str, Enum):
    """Kind of a file attached to a transcription.

    Only TRANSCRIPTION files hold recognition results.
    """

    TRANSCRIPTION = "Transcription"
    TRANSCRIPTION_REPORT = "TranscriptionReport"
    DATASET_REPORT = "DatasetReport"
    AUDIO = "Audio"
    LANGUAGE_DATA = "LanguageData"
    PRONUNCIATION_DATA = "PronunciationData"
    ACOUSTIC_DATA_ARCHIVE = "AcousticDataArchive"
    ACOUSTIC_DATA_TRANSCRIPTION_V2 = "AcousticDataTranscriptionV2"
    MODEL_REPORT = "ModelReport"
    TEST_REPORT = "TestReport"


E = TypeVar("E", bound=Enum)


def enum_from_wire(enum_cls: Type[E], value: Any) -> Any:
    """Map a numeric ordinal to the matching enum member.

    Strings and members pass through untouched so pydantic can validate
    them as usual. Booleans are not treated as ordinals.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        members = list(enum_cls)
        if not 0 <= value < len(members):
            raise ValueError(
                f"{value} is not a valid {enum_cls.__name__} ordinal"
            )
        return members[value]
    return value


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the outgoing JSON shape (camelCase, no None fields)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    # The wire format carries no offset other than Z; naive values are UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _format_wire_datetime(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(WIRE_DATETIME_FORMAT)


# ---------------------------------------------------------------------------
# Transcriptions
# ---------------------------------------------------------------------------


class EntityReference(_WireModel):
    """Pointer to another resource, e.g. the custom model of a transcription."""

    self_uri: Optional[str] = Field(default=None, alias="self")


class EntityError(_WireModel):
    code: Optional[str] = None
    message: Optional[str] = None


class TranscriptionProperties(_WireModel):
    word_level_timestamps_enabled: Optional[bool] = None
    diarization_enabled: Optional[bool] = None
    channels: Optional[List[int]] = None
    punctuation_mode: Optional[str] = None
    profanity_filter_mode: Optional[str] = None
    time_to_live: Optional[timedelta] = None
    duration: Optional[timedelta] = None
    destination_container_url: Optional[str] = None
    error: Optional[EntityError] = None


class TranscriptionLinks(_WireModel):
    files: Optional[str] = None


class Transcription(_WireModel):
    """A batch transcription job.

    WHY: This is both the request body of POST /transcriptions and every
    item of the transcription listing, so all fields are optional; the
    service fills in self, status, links and timestamps.

    RULES:
    - self_uri is the job identity (unique per job, wire key "self")
    - status is only ever changed by the service
    - links.files points at the (paginated) file listing once available
    """

    self_uri: Optional[str] = Field(default=None, alias="self")
    display_name: Optional[str] = None
    description: Optional[str] = None
    locale: Optional[str] = None
    content_urls: Optional[List[str]] = None
    content_container_url: Optional[str] = None
    model: Optional[EntityReference] = None
    properties: Optional[TranscriptionProperties] = None
    links: Optional[TranscriptionLinks] = None
    status: Optional[TranscriptionStatus] = None
    created_date_time: Optional[datetime] = None
    last_action_date_time: Optional[datetime] = None
    custom_properties: Optional[Dict[str, str]] = None

    @field_validator("status", mode="before")
    @classmethod
    def status_from_ordinal(cls, value: Any) -> Any:
        return enum_from_wire(TranscriptionStatus, value)

    @field_validator("created_date_time", "last_action_date_time")
    @classmethod
    def datetime_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(value)

    @field_serializer("created_date_time", "last_action_date_time", when_used="json-unless-none")
    def serialize_datetime(self, value: datetime) -> str:
        return _format_wire_datetime(value)

    @property
    def error_message(self) -> Optional[str]:
        if self.properties and self.properties.error:
            return self.properties.error.message
        return None


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class FileLinks(_WireModel):
    content_url: Optional[str] = None


class FileProperties(_WireModel):
    size: Optional[int] = None


class TranscriptionFile(_WireModel):
    self_uri: Optional[str] = Field(default=None, alias="self")
    name: Optional[str] = None
    kind: Optional[ArtifactKind] = None
    links: Optional[FileLinks] = None
    properties: Optional[FileProperties] = None
    created_date_time: Optional[datetime] = None

    @field_validator("kind", mode="before")
    @classmethod
    def kind_from_ordinal(cls, value: Any) -> Any:
        return enum_from_wire(ArtifactKind, value)

    @field_validator("created_date_time")
    @classmethod
    def datetime_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(value)

    @field_serializer("created_date_time", when_used="json-unless-none")
    def serialize_datetime(self, value: datetime) -> str:
        return _format_wire_datetime(value)

    @property
    def content_url(self) -> Optional[str]:
        return self.links.content_url if self.links else None


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class PaginatedResult(_WireModel, Generic[T]):
    """One page of a collection listing.

    RULES:
    - next_link is None on the last page, never on an intermediate one
    - A single page is never assumed to be the whole collection
    """

    values: List[T] = Field(default_factory=list)
    next_link: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("@nextLink", "nextLink"),
        serialization_alias="@nextLink",
    )


PaginatedTranscriptions = PaginatedResult[Transcription]
PaginatedFiles = PaginatedResult[TranscriptionFile]


# ---------------------------------------------------------------------------
# Recognition results
# ---------------------------------------------------------------------------


class CombinedRecognizedPhrase(_WireModel):
    """Full recognized text of one channel."""

    channel: Optional[int] = None
    lexical: Optional[str] = None
    itn: Optional[str] = None
    masked_itn: Optional[str] = Field(default=None, alias="maskedITN")
    display: Optional[str] = None


class NBestRecognition(_WireModel):
    confidence: Optional[float] = None
    lexical: Optional[str] = None
    itn: Optional[str] = None
    masked_itn: Optional[str] = Field(default=None, alias="maskedITN")
    display: Optional[str] = None


class RecognizedPhrase(_WireModel):
    recognition_status: Optional[str] = None
    channel: Optional[int] = None
    speaker: Optional[int] = None
    offset: Optional[str] = None
    duration: Optional[str] = None
    offset_in_ticks: Optional[float] = None
    duration_in_ticks: Optional[float] = None
    n_best: Optional[List[NBestRecognition]] = None


class RecognitionResult(_WireModel):
    """Result payload of one transcribed audio file.

    Fetched from the contentUrl of a Transcription-kind file; never changes
    once fetched.
    """

    source: Optional[str] = None
    timestamp: Optional[str] = None
    duration_in_ticks: Optional[float] = None
    duration: Optional[str] = None
    combined_recognized_phrases: List[CombinedRecognizedPhrase] = Field(default_factory=list)
    recognized_phrases: List[RecognizedPhrase] = Field(default_factory=list)
